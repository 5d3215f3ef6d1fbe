"""Flatten a scan's content tree into query-friendly records."""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from .models import (
    ROOT_LOCATION,
    BlockKind,
    ContentNode,
    ScanResult,
    build_location,
    split_location,
)

COUNT_KEYS = (
    "headings",
    "callouts",
    "toggles",
    "columns",
    "bulleted_list_items",
    "numbered_list_items",
    "dividers",
    "images",
    "child_page",
    "child_database",
)

TYPE_COUNT_KEYS = {
    "callout": "callouts",
    "toggle": "toggles",
    "column": "columns",
    "column_list": "columns",
    "bulleted_list_item": "bulleted_list_items",
    "numbered_list_item": "numbered_list_items",
    "divider": "dividers",
    "image": "images",
    "child_page": "child_page",
    "child_database": "child_database",
}


@dataclass
class NormalizedOutput:
    """The flat record sets derived from one scan."""

    pages: List[Dict[str, Any]] = field(default_factory=list)
    databases: List[Dict[str, Any]] = field(default_factory=list)
    media: List[Dict[str, Any]] = field(default_factory=list)
    graph: Dict[str, List[Dict[str, Any]]] = field(
        default_factory=lambda: {"nodes": [], "edges": []}
    )
    formulas: Dict[str, Dict[str, str]] = field(default_factory=dict)


def _walk(nodes: Iterable[ContentNode]) -> Iterable[ContentNode]:
    stack = list(reversed(list(nodes)))
    while stack:
        node = stack.pop()
        yield node
        if node.children:
            stack.extend(reversed(node.children))


def count_blocks(nodes: Iterable[ContentNode]) -> Dict[str, int]:
    """
    Count descendant blocks by category over a whole subtree.

    Args:
        nodes: Top-level nodes of the subtree

    Returns:
        Mapping of every COUNT_KEYS entry to its count
    """
    counts = {key: 0 for key in COUNT_KEYS}
    for node in _walk(nodes):
        if node.type.startswith("heading_"):
            counts["headings"] += 1
            continue
        key = TYPE_COUNT_KEYS.get(node.type)
        if key:
            counts[key] += 1
    return counts


def index_page_nodes(page_content: List[ContentNode]) -> Dict[str, ContentNode]:
    """Map page IDs to the child_page node holding their content."""
    index: Dict[str, ContentNode] = {}
    for node in _walk(page_content):
        if node.kind is not BlockKind.CHILD_PAGE or not node.page_id:
            continue
        existing = index.get(node.page_id)
        if existing is None or (existing.children is None and node.children is not None):
            index[node.page_id] = node
    return index


def normalize(result: ScanResult) -> NormalizedOutput:
    """
    Build pages, databases, media, graph and formula records.

    Pure function of the scan result; calling it again yields equal output.

    A page's ``depth`` is one more than the depth of the child_page
    block linking it (the start page is 0, its child pages 1) and its
    ``breadcrumb`` ends with the page's own title. Outputs written by
    earlier releases used the linking block's depth and stopped the
    breadcrumb at the containing page; compare against those by
    subtracting one and dropping the last breadcrumb entry.

    Args:
        result: Finished scan

    Returns:
        NormalizedOutput
    """
    page_nodes = index_page_nodes(result.page_content)
    root_node: Optional[ContentNode] = None
    if result.start_page_id:
        start_record = result.pages.get(result.start_page_id)
        start_title = start_record.title if start_record else result.root_title
        root_node = ContentNode(
            block_id=result.start_page_id,
            type="child_page",
            kind=BlockKind.CHILD_PAGE,
            depth=0,
            parent_type="page",
            location="",
            page_id=result.start_page_id,
            page_title=start_title,
            children=result.page_content,
        )

    pages = []
    for page_id, record in result.pages.items():
        if root_node is not None and page_id == result.start_page_id:
            node: Optional[ContentNode] = root_node
            breadcrumb = [record.title]
            depth = 0
        else:
            node = page_nodes.get(page_id)
            if node is not None:
                breadcrumb = split_location(build_location(node.location, record.title))
                depth = node.depth + 1
            else:
                first = record.parent_locations[0] if record.parent_locations else ROOT_LOCATION
                breadcrumb = split_location(build_location(first, record.title))
                depth = 0
        pages.append(
            {
                "id": page_id,
                "title": record.title,
                "icon": record.icon,
                "cover": record.cover,
                "last_edited": record.last_edited_time,
                "breadcrumb": breadcrumb,
                "depth": depth,
                "counts": count_blocks((node.children or []) if node else []),
            }
        )

    databases = [
        {
            "id": db.id,
            "title": db.title,
            "icon": db.icon,
            "cover": db.cover,
            "last_edited": db.last_edited_time,
            "parentPath": db.parent_locations[0] if db.parent_locations else ROOT_LOCATION,
            "properties": [p.to_dict() for p in db.properties],
            "sampleRows": [r.to_dict() for r in db.sample_rows],
        }
        for db in result.databases
    ]

    media = [
        {
            "block_id": img.block_id,
            "parent_page_id": img.parent_page_id,
            "parent_path": img.location,
            "url": img.url,
            "caption": img.caption or "",
            "last_edited": img.last_edited_time,
        }
        for img in result.media
    ]

    nodes = [
        {"id": page_id, "label": record.title, "type": "page"}
        for page_id, record in result.pages.items()
    ] + [{"id": db.id, "label": db.title, "type": "database"} for db in result.databases]
    known_ids = {n["id"] for n in nodes}
    # Edges to entities that failed to resolve are dropped
    edges = [
        edge.to_dict()
        for edge in result.edges
        if edge.source in known_ids and edge.target in known_ids
    ]

    formulas: Dict[str, Dict[str, str]] = {}
    for db in result.databases:
        db_formulas = {
            p.name: p.expression for p in db.properties if p.type == "formula" and p.expression
        }
        if db_formulas:
            formulas[db.title] = db_formulas

    return NormalizedOutput(
        pages=pages,
        databases=databases,
        media=media,
        graph={"nodes": nodes, "edges": edges},
        formulas=formulas,
    )
