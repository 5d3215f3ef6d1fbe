"""Recursive traversal of a Notion page or database subtree."""

import logging
from functools import partial
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from ..config.config_schema import ScanConfig
from .client import NotionClient
from .concurrency import run_bounded
from .errors import RootResolutionError
from .extract import (
    describe_property,
    extract_cover,
    extract_icon,
    extract_property_text,
    image_url,
    merge_property_items,
    normalize_rich_text,
    plain_text,
    row_title,
    table_row_cells,
)
from .models import (
    ROOT_LOCATION,
    BlockKind,
    ContentNode,
    DatabaseRecord,
    EdgeKind,
    GraphEdge,
    PageRecord,
    RootInfo,
    RootKind,
    SampleRow,
    ScanResult,
    ScanSession,
    TraversalProgress,
    build_location,
    classify_block,
)
from .pagination import list_all
from .retry import RetryPolicy, call_with_policy

Work = Callable[[], Awaitable[Any]]


class ContentTraverser:
    """
    Walks the content reachable from one root ID.

    The client only needs the async methods of NotionClient
    (retrieve_page, retrieve_database, query_database_rows,
    list_child_blocks, list_comments, retrieve_page_property).
    Each scan uses its own ScanSession, so one traverser instance
    should run one scan.
    """

    def __init__(
        self,
        client: Any,
        scan_config: Optional[ScanConfig] = None,
        session: Optional[ScanSession] = None,
        progress_callback: Optional[Callable[[TraversalProgress], None]] = None,
    ):
        """
        Initialize traverser.

        Args:
            client: NotionClient (or any object with the same async methods)
            scan_config: Scan settings
            session: Shared scan state; a fresh one is created if omitted
            progress_callback: Optional callback for progress updates
        """
        self.client = client
        self.config = scan_config or ScanConfig()
        self.session = session or ScanSession(self.config.max_blocks)
        self.retry = RetryPolicy(
            max_retries=self.config.max_retries,
            base_delay_ms=self.config.base_delay_ms,
        )
        self.progress_callback = progress_callback
        self.progress = TraversalProgress()
        self.logger = logging.getLogger(__name__)

        self._handlers: Dict[BlockKind, Callable[..., Awaitable[Optional[Work]]]] = {
            BlockKind.TEXT: self._handle_text,
            BlockKind.IMAGE: self._handle_image,
            BlockKind.TABLE: self._handle_table,
            BlockKind.CHILD_PAGE: self._handle_child_page,
            BlockKind.CHILD_DATABASE: self._handle_child_database,
            BlockKind.SYNCED_BLOCK: self._handle_synced_block,
            BlockKind.CONTAINER: self._handle_container,
            BlockKind.OTHER: self._handle_other,
        }

    async def _call(self, operation: Callable[[], Awaitable[Any]]) -> Any:
        return await call_with_policy(operation, self.retry)

    def _update_progress(self, **kwargs) -> None:
        """Update progress and call callback if set."""
        for key, value in kwargs.items():
            if hasattr(self.progress, key):
                setattr(self.progress, key, value)
        self.progress.blocks_fetched = self.session.budget.fetched
        if self.progress_callback:
            self.progress_callback(self.progress)

    async def detect_root(self, root_id: str) -> RootInfo:
        """
        Classify an ID as page, database or unknown.

        Page retrieval is tried first, then database retrieval. When
        both fail the database error is kept for diagnostics.

        Args:
            root_id: Notion page or database ID

        Returns:
            RootInfo with the fetched object or the error
        """
        try:
            page = await self._call(lambda: self.client.retrieve_page(root_id))
            return RootInfo(
                kind=RootKind.PAGE, page=page, title=NotionClient.get_page_title(page)
            )
        except Exception as e:
            self.logger.debug(f"{root_id} did not resolve as a page: {e}")

        try:
            database = await self._call(lambda: self.client.retrieve_database(root_id))
            return RootInfo(
                kind=RootKind.DATABASE,
                database=database,
                title=NotionClient.get_database_title(database),
            )
        except Exception as e:
            self.logger.debug(f"{root_id} did not resolve as a database: {e}")
            return RootInfo(kind=RootKind.UNKNOWN, error=e)

    async def scan(self, root_id: str) -> ScanResult:
        """
        Traverse everything reachable from a root page or database.

        Args:
            root_id: Notion page or database ID

        Returns:
            ScanResult with the content tree, records and edges

        Raises:
            RootResolutionError: If the root is neither a page nor a database
        """
        root = await self.detect_root(root_id)
        if root.kind is RootKind.UNKNOWN:
            raise RootResolutionError(root_id, root.error)

        root_title = root.title or "Untitled"
        start_page_id: Optional[str] = None
        start_title = root_title

        if root.kind is RootKind.PAGE:
            self.logger.info(f"Root type: page - {root_title}")
            self.session.record_page(self._page_record(root_id, root.page, root_title), ROOT_LOCATION)
            start_page_id = root_id
        else:
            self.logger.info(f"Root type: database - {root_title}")
            await self.inspect_database(root_id, ROOT_LOCATION, database=root.database)
            parent_page_id = root.parent_page_id
            if parent_page_id:
                start_title = await self._record_parent_page(parent_page_id)
                if start_title is not None:
                    start_page_id = parent_page_id

        page_content: List[ContentNode] = []
        if start_page_id:
            self.session.claim_page_traversal(start_page_id)
            self._update_progress(
                pages_found=len(self.session.pages), current_page_title=start_title, current_depth=0
            )
            try:
                page_content = await self.inspect_block(
                    start_page_id, 0, "page", start_title, start_page_id
                )
            except Exception as e:
                self.logger.error(f"Failed to list content of {start_page_id}: {e}")
                self.session.stats.failed_branches.append(start_page_id)
        else:
            self.logger.info("Root database has no parent page; content tree is empty")

        comments = None
        if self.config.include_comments and start_page_id:
            comments = await self.collect_comments(start_page_id)

        stats = self.session.sync_stats()
        self.logger.info(
            f"Scan complete: {len(self.session.pages)} pages, "
            f"{len(self.session.databases)} databases, {len(self.session.media)} images, "
            f"{stats.blocks_fetched} blocks, {stats.failures} failures"
        )

        return ScanResult(
            root_id=root_id,
            root_kind=root.kind,
            root_title=root_title,
            start_page_id=start_page_id,
            page_content=page_content,
            pages=dict(self.session.pages),
            databases=list(self.session.databases.values()),
            media=list(self.session.media),
            edges=list(self.session.edges),
            stats=stats,
            comments=comments,
        )

    async def _record_parent_page(self, page_id: str) -> Optional[str]:
        """Fetch and record the page a root database lives in; returns its title."""
        try:
            page = await self._call(lambda: self.client.retrieve_page(page_id))
        except Exception as e:
            self.logger.warning(f"Could not fetch parent page {page_id}, skipping traversal: {e}")
            return None
        title = NotionClient.get_page_title(page)
        self.session.record_page(self._page_record(page_id, page, title), ROOT_LOCATION)
        return title

    def _page_record(self, page_id: str, page: Dict[str, Any], title: str) -> PageRecord:
        return PageRecord(
            id=page_id,
            title=title,
            icon=extract_icon(page.get("icon")),
            cover=extract_cover(page.get("cover")),
            last_edited_time=page.get("last_edited_time"),
        )

    async def _list_children(self, block_id: str) -> List[Dict[str, Any]]:
        return await list_all(
            lambda cursor: self.client.list_child_blocks(
                block_id, page_size=self.config.page_size, start_cursor=cursor
            ),
            budget=self.session.budget,
            retry=self.retry,
            page_size=self.config.page_size,
        )

    async def inspect_block(
        self,
        block_id: str,
        depth: int = 0,
        parent_type: str = "page",
        location: str = ROOT_LOCATION,
        parent_page_id: Optional[str] = None,
    ) -> List[ContentNode]:
        """
        List a page's or block's children and descend into them.

        The child listing is complete (all pages fetched) before any
        recursion starts. Recursions and table row fetches are
        collected and then run together with bounded concurrency.

        Args:
            block_id: Page ID or block ID to list
            depth: Depth assigned to the listed children
            parent_type: Type of the containing page/block
            location: Breadcrumb of the containing page
            parent_page_id: ID of the nearest containing page

        Returns:
            Child nodes in the order the API returned them
        """
        blocks = await self._list_children(block_id)
        children: List[ContentNode] = []
        pending: List[Tuple[ContentNode, Work]] = []

        for block in blocks:
            node = self._new_node(block, depth, parent_type, location)
            work = await self._handlers[node.kind](block, node, parent_page_id)
            if work is not None:
                pending.append((node, work))
            children.append(node)

        if pending:
            outcomes = await run_bounded(self.config.concurrency, [work for _, work in pending])
            for (node, _), outcome in zip(pending, outcomes):
                if not outcome.ok:
                    self._record_branch_failure(node, outcome.error)

        return children

    def _new_node(
        self, block: Dict[str, Any], depth: int, parent_type: str, location: str
    ) -> ContentNode:
        block_type = block.get("type", "")
        node = ContentNode(
            block_id=block.get("id", ""),
            type=block_type,
            kind=classify_block(block),
            depth=depth,
            parent_type=parent_type,
            location=location,
            last_edited_time=block.get("last_edited_time"),
        )
        rich = (block.get(block_type) or {}).get("rich_text")
        if isinstance(rich, list):
            node.rich_text = normalize_rich_text(rich)
        return node

    def _record_branch_failure(self, node: ContentNode, error: BaseException) -> None:
        node.error = str(error)
        self.session.stats.failed_branches.append(node.block_id)
        self.logger.warning(f"Failed to traverse {node.type} {node.block_id} at {node.location}: {error}")

    def _descend(
        self,
        block_id: str,
        node: ContentNode,
        depth: int,
        parent_type: str,
        location: str,
        parent_page_id: Optional[str],
    ) -> Work:
        async def descend() -> None:
            node.children = await self.inspect_block(
                block_id, depth, parent_type, location, parent_page_id
            )

        return descend

    async def _handle_text(
        self, block: Dict[str, Any], node: ContentNode, parent_page_id: Optional[str]
    ) -> Optional[Work]:
        # Toggles and list items can nest further blocks
        if block.get("has_children"):
            return await self._handle_container(block, node, parent_page_id)
        return None

    async def _handle_other(
        self, block: Dict[str, Any], node: ContentNode, parent_page_id: Optional[str]
    ) -> Optional[Work]:
        return None

    async def _handle_container(
        self, block: Dict[str, Any], node: ContentNode, parent_page_id: Optional[str]
    ) -> Optional[Work]:
        return self._descend(
            node.block_id, node, node.depth + 1, node.parent_type, node.location, parent_page_id
        )

    async def _handle_image(
        self, block: Dict[str, Any], node: ContentNode, parent_page_id: Optional[str]
    ) -> Optional[Work]:
        image = block.get("image") or {}
        caption = image.get("caption")
        node.url = image_url(image)
        node.caption = plain_text(caption)
        node.parent_page_id = parent_page_id
        if isinstance(caption, list):
            node.caption_rich_text = normalize_rich_text(caption)
        self.session.media.append(node)
        return None

    async def _handle_table(
        self, block: Dict[str, Any], node: ContentNode, parent_page_id: Optional[str]
    ) -> Optional[Work]:
        table = block.get("table") or {}
        node.table = {
            "width": table.get("table_width"),
            "has_column_header": bool(table.get("has_column_header")),
            "has_row_header": bool(table.get("has_row_header")),
        }

        async def fetch_rows() -> None:
            rows = await self._list_children(node.block_id)
            node.rows = [table_row_cells(r) for r in rows if r.get("type") == "table_row"]

        return fetch_rows

    async def _handle_child_database(
        self, block: Dict[str, Any], node: ContentNode, parent_page_id: Optional[str]
    ) -> Optional[Work]:
        database_id = node.block_id
        node.database_id = database_id
        await self.inspect_database(database_id, node.location)
        if parent_page_id:
            self.session.add_edge(GraphEdge(parent_page_id, database_id, EdgeKind.PAGE_DATABASE))
        return None

    async def _handle_child_page(
        self, block: Dict[str, Any], node: ContentNode, parent_page_id: Optional[str]
    ) -> Optional[Work]:
        page_id = node.block_id
        node.page_id = page_id
        try:
            page = await self._call(lambda: self.client.retrieve_page(page_id))
        except Exception as e:
            node.page_title = (block.get("child_page") or {}).get("title") or "Untitled Page"
            self._record_branch_failure(node, e)
            return None

        title = NotionClient.get_page_title(page, default="Untitled Page")
        node.page_title = title
        self.session.record_page(self._page_record(page_id, page, title), node.location)
        if parent_page_id:
            self.session.add_edge(GraphEdge(parent_page_id, page_id, EdgeKind.PARENT_CHILD))

        if not self.session.claim_page_traversal(page_id):
            self.logger.debug(f"Already traversed page: {title} ({page_id})")
            return None

        child_location = build_location(node.location, title)
        self._update_progress(
            pages_found=len(self.session.pages),
            current_page_title=title,
            current_depth=node.depth + 1,
        )
        self.logger.debug(f"Traversing page: {child_location} (depth={node.depth + 1})")
        return self._descend(page_id, node, node.depth + 1, "page", child_location, page_id)

    async def _handle_synced_block(
        self, block: Dict[str, Any], node: ContentNode, parent_page_id: Optional[str]
    ) -> Optional[Work]:
        synced_from = (block.get("synced_block") or {}).get("synced_from") or {}
        original_id = synced_from.get("block_id")
        if original_id:
            # The original is traversed where it lives
            node.synced_from = original_id
            return None
        return self._descend(
            node.block_id, node, node.depth, node.parent_type, node.location, parent_page_id
        )

    async def inspect_database(
        self,
        database_id: str,
        location: str = ROOT_LOCATION,
        database: Optional[Dict[str, Any]] = None,
    ) -> Optional[DatabaseRecord]:
        """
        Process a database once per scan.

        Captures the property schema, relation edges and, when row
        values are enabled, a few sample rows. Failures are logged and
        counted; the database is then left out of the output.

        Args:
            database_id: Database ID
            location: Breadcrumb of the page that embeds it
            database: Already retrieved database object, if any

        Returns:
            The new DatabaseRecord, or None if already processed or failed
        """
        if not self.session.claim_database(database_id):
            self.logger.debug(f"Already processed database: {database_id}")
            return None

        try:
            if database is None:
                database = await self._call(lambda: self.client.retrieve_database(database_id))
            title = NotionClient.get_database_title(database)

            properties = []
            relation_edges: List[GraphEdge] = []
            for name, schema in (database.get("properties") or {}).items():
                descriptor = describe_property(name, schema)
                properties.append(descriptor)
                target = (descriptor.relation or {}).get("database_id")
                if target:
                    relation_edges.append(
                        GraphEdge(database_id, target, EdgeKind.DATABASE_RELATION, property=name)
                    )

            sample_rows: List[SampleRow] = []
            if self.config.include_row_values:
                sample_rows = await self._sample_rows(database_id)
        except Exception as e:
            self.logger.error(f"Failed to inspect database {database_id}: {e}")
            self.session.stats.failed_databases.append(database_id)
            return None

        record = DatabaseRecord(
            id=database_id,
            title=title,
            icon=extract_icon(database.get("icon")),
            cover=extract_cover(database.get("cover")),
            last_edited_time=database.get("last_edited_time"),
            parent_locations=[location],
            properties=properties,
            sample_rows=sample_rows,
            parent=database.get("parent"),
        )
        self.session.databases[database_id] = record
        for edge in relation_edges:
            self.session.add_edge(edge)
        self._update_progress(databases_processed=len(self.session.databases))
        self.logger.debug(f"Inspected database: {title} ({len(properties)} properties)")

        if self.config.follow_relations and relation_edges:
            targets = list(dict.fromkeys(edge.target for edge in relation_edges))
            await run_bounded(
                self.config.concurrency,
                [partial(self.inspect_database, target, location) for target in targets],
            )

        return record

    async def _sample_rows(self, database_id: str) -> List[SampleRow]:
        limit = self.config.sample_row_limit
        response = await self._call(
            lambda: self.client.query_database_rows(database_id, page_size=limit)
        )
        rows = (response.get("results") or [])[:limit]
        outcomes = await run_bounded(
            self.config.concurrency, [partial(self._sample_row, row) for row in rows]
        )
        for outcome in outcomes:
            if not outcome.ok:
                raise outcome.error
        return [outcome.value for outcome in outcomes]

    async def _sample_row(self, row: Dict[str, Any]) -> SampleRow:
        row_id = row.get("id", "")
        properties: Dict[str, Any] = {}
        relation_titles: Dict[str, List[Dict[str, Optional[str]]]] = {}

        for name, value in (row.get("properties") or {}).items():
            if value.get("has_more") and value.get("id"):
                value = await self._full_property_value(row_id, value)
            properties[name] = extract_property_text(value)
            if value.get("type") == "relation":
                relation_titles[name] = await self._resolve_relation_titles(
                    value.get("relation") or []
                )

        return SampleRow(
            row_title=row_title(row),
            row_id=row_id,
            properties=properties,
            relation_titles=relation_titles,
        )

    async def _full_property_value(self, page_id: str, value: Dict[str, Any]) -> Dict[str, Any]:
        property_id = value["id"]
        items = await list_all(
            lambda cursor: self.client.retrieve_page_property(
                page_id, property_id, start_cursor=cursor
            ),
            retry=self.retry,
        )
        return merge_property_items(value, items)

    async def _resolve_relation_titles(
        self, relations: List[Dict[str, Any]]
    ) -> List[Dict[str, Optional[str]]]:
        async def lookup(related_id: str) -> Dict[str, Optional[str]]:
            try:
                page = await self._call(lambda: self.client.retrieve_page(related_id))
            except Exception as e:
                self.logger.debug(f"Could not resolve related page {related_id}: {e}")
                return {"id": related_id, "title": None}
            return {"id": related_id, "title": NotionClient.get_page_title(page)}

        items = relations[: self.config.relation_title_limit]
        outcomes = await run_bounded(
            self.config.relation_lookup_limit,
            [partial(lookup, rel.get("id")) for rel in items],
        )
        return [outcome.value for outcome in outcomes]

    async def collect_comments(self, block_id: str) -> Optional[List[Dict[str, Any]]]:
        """
        Collect top-level comments of a page.

        Args:
            block_id: Page or block ID

        Returns:
            Comment dicts, or None if the comments couldn't be retrieved
        """
        try:
            response = await self._call(lambda: self.client.list_comments(block_id))
        except Exception as e:
            self.logger.warning(f"Could not retrieve comments for {block_id}: {e}")
            return None

        return [
            {
                "id": comment.get("id"),
                "created_time": comment.get("created_time"),
                "rich_text": [
                    {"plain_text": rt.get("plain_text", ""), "href": rt.get("href") or None}
                    for rt in comment.get("rich_text") or []
                ],
            }
            for comment in response.get("results") or []
        ]
