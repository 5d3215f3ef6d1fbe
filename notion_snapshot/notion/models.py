"""Dataclasses for scanned Notion content, records and graph edges."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set

BREADCRUMB_SEPARATOR = " > "
ROOT_LOCATION = "Root"

TEXT_BLOCK_TYPES = frozenset(
    {
        "paragraph",
        "heading_1",
        "heading_2",
        "heading_3",
        "bulleted_list_item",
        "numbered_list_item",
        "callout",
        "to_do",
        "toggle",
        "quote",
    }
)


class BlockKind(str, Enum):
    """Closed set of block kinds the traversal distinguishes."""

    TEXT = "text"
    IMAGE = "image"
    TABLE = "table"
    CHILD_PAGE = "child_page"
    CHILD_DATABASE = "child_database"
    SYNCED_BLOCK = "synced_block"
    CONTAINER = "container"
    OTHER = "other"


def classify_block(block: Dict[str, Any]) -> BlockKind:
    """
    Map a raw block to its BlockKind.

    Args:
        block: Block object from Notion API

    Returns:
        The kind that decides how the block is handled
    """
    block_type = block.get("type", "")
    if block_type in TEXT_BLOCK_TYPES:
        return BlockKind.TEXT
    if block_type == "image":
        return BlockKind.IMAGE
    if block_type == "table":
        return BlockKind.TABLE
    if block_type == "child_page":
        return BlockKind.CHILD_PAGE
    if block_type == "child_database":
        return BlockKind.CHILD_DATABASE
    if block_type == "synced_block":
        return BlockKind.SYNCED_BLOCK
    if block.get("has_children"):
        return BlockKind.CONTAINER
    return BlockKind.OTHER


def build_location(parent_location: str, title: str) -> str:
    """
    Build breadcrumb path for a child page.

    Args:
        parent_location: Parent's breadcrumb
        title: Current page title

    Returns:
        Breadcrumb string like "Home > Projects > Q3"
    """
    if parent_location:
        return f"{parent_location}{BREADCRUMB_SEPARATOR}{title}"
    return title


def split_location(location: str) -> List[str]:
    """Split a breadcrumb string into its titles."""
    return [part for part in (location or "").split(BREADCRUMB_SEPARATOR) if part]


@dataclass
class RichTextRun:
    """One styled run of rich text."""

    plain_text: str
    href: Optional[str] = None
    bold: bool = False
    italic: bool = False
    code: bool = False
    color: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        annotations: Dict[str, Any] = {
            "bold": self.bold,
            "italic": self.italic,
            "code": self.code,
        }
        if self.color:
            annotations["color"] = self.color
        return {"plain_text": self.plain_text, "href": self.href, "annotations": annotations}


@dataclass
class ContentNode:
    """One visited block in the content tree."""

    block_id: str
    type: str
    kind: BlockKind
    depth: int
    parent_type: str
    location: str
    last_edited_time: Optional[str] = None
    rich_text: Optional[List[RichTextRun]] = None
    children: Optional[List["ContentNode"]] = None
    # image
    url: Optional[str] = None
    caption: Optional[str] = None
    caption_rich_text: Optional[List[RichTextRun]] = None
    parent_page_id: Optional[str] = None
    # table
    table: Optional[Dict[str, Any]] = None
    rows: Optional[List[List[str]]] = None
    # child_page / child_database
    page_id: Optional[str] = None
    page_title: Optional[str] = None
    database_id: Optional[str] = None
    # synced_block that references an original elsewhere
    synced_from: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize, leaving out payload fields that don't apply."""
        data: Dict[str, Any] = {
            "blockId": self.block_id,
            "type": self.type,
            "kind": self.kind.value,
            "depth": self.depth,
            "parentType": self.parent_type,
            "location": self.location,
            "last_edited_time": self.last_edited_time,
        }
        if self.rich_text is not None:
            data["rich_text"] = [run.to_dict() for run in self.rich_text]
        if self.kind is BlockKind.IMAGE:
            data["url"] = self.url
            data["caption"] = self.caption
            data["parent_page_id"] = self.parent_page_id
            if self.caption_rich_text is not None:
                data["caption_rich_text"] = [run.to_dict() for run in self.caption_rich_text]
        if self.table is not None:
            data["table"] = dict(self.table)
        if self.rows is not None:
            data["rows"] = [list(row) for row in self.rows]
        if self.page_id is not None:
            data["page_id"] = self.page_id
            data["page_title"] = self.page_title
        if self.database_id is not None:
            data["database_id"] = self.database_id
        if self.synced_from is not None:
            data["synced_ref"] = {"type": "synced_ref", "original_block_id": self.synced_from}
        if self.error is not None:
            data["error"] = self.error
        if self.children is not None:
            data["children"] = [child.to_dict() for child in self.children]
        return data


@dataclass
class PageRecord:
    """Metadata for a page reached during the scan."""

    id: str
    title: str
    icon: Optional[Dict[str, Any]] = None
    cover: Optional[Dict[str, Any]] = None
    last_edited_time: Optional[str] = None
    parent_locations: List[str] = field(default_factory=list)

    def add_location(self, location: str) -> None:
        """Record another breadcrumb the page was reached through."""
        if location not in self.parent_locations:
            self.parent_locations.append(location)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "icon": self.icon,
            "cover": self.cover,
            "last_edited_time": self.last_edited_time,
            "parentLocations": list(self.parent_locations),
        }


@dataclass
class PropertyDescriptor:
    """Schema entry of one database property."""

    name: str
    type: str
    expression: Optional[str] = None
    options: Optional[List[Dict[str, Any]]] = None
    relation: Optional[Dict[str, Any]] = None
    rollup: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name, "type": self.type}
        for key in ("expression", "options", "relation", "rollup"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data


@dataclass
class SampleRow:
    """A database row captured as an example of the schema in use."""

    row_title: str
    row_id: str
    properties: Dict[str, Any] = field(default_factory=dict)
    relation_titles: Dict[str, List[Dict[str, Optional[str]]]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rowTitle": self.row_title,
            "rowId": self.row_id,
            "properties": dict(self.properties),
            "relationTitles": {k: list(v) for k, v in self.relation_titles.items()},
        }


@dataclass
class DatabaseRecord:
    """A database inspected once per scan."""

    id: str
    title: str
    icon: Optional[Dict[str, Any]] = None
    cover: Optional[Dict[str, Any]] = None
    last_edited_time: Optional[str] = None
    parent_locations: List[str] = field(default_factory=list)
    properties: List[PropertyDescriptor] = field(default_factory=list)
    sample_rows: List[SampleRow] = field(default_factory=list)
    parent: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "icon": self.icon,
            "cover": self.cover,
            "last_edited_time": self.last_edited_time,
            "parentLocations": list(self.parent_locations),
            "properties": [p.to_dict() for p in self.properties],
            "sampleRows": [r.to_dict() for r in self.sample_rows],
        }


class EdgeKind(str, Enum):
    """Relationship types in the output graph."""

    PARENT_CHILD = "parent_child"
    PAGE_DATABASE = "page_database"
    DATABASE_RELATION = "database_relation"


@dataclass(frozen=True)
class GraphEdge:
    """Directed edge between two pages/databases."""

    source: str
    target: str
    kind: EdgeKind
    property: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"from": self.source, "to": self.target, "type": self.kind.value}
        if self.property is not None:
            data["property"] = self.property
        return data


class BlockBudget:
    """
    Global count of fetched blocks, shared by every traversal branch.

    A listing reserves a full page before its request goes out and
    settles the reservation with the real count once the page arrives,
    so branches running concurrently see each other's in-flight pages.
    Only mutated between suspension points, so concurrent asyncio
    branches never interleave inside ``reserve`` or ``settle``.
    """

    def __init__(self, max_blocks: int = 0):
        self.max_blocks = max_blocks
        self.fetched = 0
        self.pending = 0
        self.truncations = 0

    @property
    def exhausted(self) -> bool:
        return self.max_blocks > 0 and self.fetched + self.pending >= self.max_blocks

    def consume(self, count: int) -> None:
        if count > 0:
            self.fetched += count

    def reserve(self, count: int) -> int:
        """Hold ``count`` blocks against the cap until :meth:`settle`."""
        reserved = max(count, 0)
        self.pending += reserved
        return reserved

    def settle(self, reserved: int, count: int) -> None:
        """Release a reservation and record the blocks actually fetched."""
        self.pending -= reserved
        self.consume(count)

    def record_truncation(self) -> None:
        self.truncations += 1


@dataclass
class ScanStats:
    """Counters reported at the end of a run."""

    blocks_fetched: int = 0
    truncations: int = 0
    failed_databases: List[str] = field(default_factory=list)
    failed_branches: List[str] = field(default_factory=list)

    @property
    def failures(self) -> int:
        return len(self.failed_databases) + len(self.failed_branches)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "blocksFetched": self.blocks_fetched,
            "truncations": self.truncations,
            "failures": self.failures,
            "failedDatabases": list(self.failed_databases),
            "failedBranches": list(self.failed_branches),
        }


@dataclass
class TraversalProgress:
    """Progress tracking for a scan."""

    pages_found: int = 0
    databases_processed: int = 0
    blocks_fetched: int = 0
    current_page_title: str = ""
    current_depth: int = 0


class ScanSession:
    """
    Mutable state of one scan, passed by reference into every recursive call.

    Owns the de-duplication sets, the block budget, the collected
    records and the edge list, so independent scans never share state.
    """

    def __init__(self, max_blocks: int = 0):
        self.budget = BlockBudget(max_blocks)
        self.stats = ScanStats()
        self.pages: Dict[str, PageRecord] = {}
        self.databases: Dict[str, DatabaseRecord] = {}
        self.media: List[ContentNode] = []
        self.edges: List[GraphEdge] = []
        self._edge_set: Set[GraphEdge] = set()
        self._claimed_databases: Set[str] = set()
        self._traversed_pages: Set[str] = set()

    def claim_database(self, database_id: str) -> bool:
        """
        Reserve a database for processing.

        Returns:
            True for the first caller, False if it was already claimed
        """
        if database_id in self._claimed_databases:
            return False
        self._claimed_databases.add(database_id)
        return True

    def claim_page_traversal(self, page_id: str) -> bool:
        """Reserve a page's content for traversal; False if already taken."""
        if page_id in self._traversed_pages:
            return False
        self._traversed_pages.add(page_id)
        return True

    def record_page(self, record: PageRecord, location: str) -> PageRecord:
        """Store a page record, or add a location to the existing one."""
        existing = self.pages.get(record.id)
        if existing is not None:
            existing.add_location(location)
            return existing
        record.add_location(location)
        self.pages[record.id] = record
        return record

    def add_edge(self, edge: GraphEdge) -> None:
        if edge not in self._edge_set:
            self._edge_set.add(edge)
            self.edges.append(edge)

    def sync_stats(self) -> ScanStats:
        self.stats.blocks_fetched = self.budget.fetched
        self.stats.truncations = self.budget.truncations
        return self.stats


class RootKind(str, Enum):
    """Resolution state of the scan root."""

    PAGE = "page"
    DATABASE = "database"
    UNKNOWN = "unknown"


@dataclass
class RootInfo:
    """Outcome of resolving a root ID."""

    kind: RootKind
    page: Optional[Dict[str, Any]] = None
    database: Optional[Dict[str, Any]] = None
    title: Optional[str] = None
    error: Optional[BaseException] = None

    @property
    def parent_page_id(self) -> Optional[str]:
        """ID of the page a root database lives in, if its parent is a page."""
        parent = (self.database or {}).get("parent") or {}
        if parent.get("type") == "page_id":
            return parent.get("page_id")
        return None


@dataclass
class ScanResult:
    """Everything a scan produced, before normalization."""

    root_id: str
    root_kind: RootKind
    root_title: str
    start_page_id: Optional[str]
    page_content: List[ContentNode]
    pages: Dict[str, PageRecord]
    databases: List[DatabaseRecord]
    media: List[ContentNode]
    edges: List[GraphEdge]
    stats: ScanStats
    comments: Optional[List[Dict[str, Any]]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Raw bundle: titles, databases, content tree and media."""
        data: Dict[str, Any] = {
            "root": {
                "id": self.root_id,
                "type": self.root_kind.value,
                "title": self.root_title,
                "startPageId": self.start_page_id,
            },
            "titles": {
                "pages": {pid: p.to_dict() for pid, p in self.pages.items()},
                "databases": {db.id: db.to_dict() for db in self.databases},
            },
            "databases": [db.to_dict() for db in self.databases],
            "pageContent": [node.to_dict() for node in self.page_content],
            "media": {"imageBlocks": [node.to_dict() for node in self.media]},
            "stats": self.stats.to_dict(),
        }
        if self.comments is not None:
            data["comments"] = list(self.comments)
        return data
