"""Async Notion API client wrapper."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from notion_client import AsyncClient


class NotionClient:
    """
    Thin async wrapper over the official SDK.

    Every raw call holds a slot of a shared semaphore, so at most
    ``max_in_flight`` requests are outstanding at any time regardless
    of how many traversal branches are active. Retrying is left to the
    caller.
    """

    def __init__(self, api_key: str, max_in_flight: int = 3):
        """
        Initialize Notion client.

        Args:
            api_key: Notion integration token
            max_in_flight: Upper bound on concurrent API requests
        """
        self.client = AsyncClient(auth=api_key)
        self.max_in_flight = max(1, max_in_flight)
        self._slots = asyncio.Semaphore(self.max_in_flight)
        self.logger = logging.getLogger(__name__)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.aclose()

    async def _request(
        self, action: str, call: Callable[[], Awaitable[Dict[str, Any]]]
    ) -> Dict[str, Any]:
        """Run one SDK call inside an in-flight slot, logging failures."""
        async with self._slots:
            try:
                return await call()
            except Exception as e:
                self.logger.debug(f"Notion request failed ({action}): {e}")
                raise

    async def retrieve_page(self, page_id: str) -> Dict[str, Any]:
        """
        Fetch a single page by ID.

        Args:
            page_id: Notion page ID

        Returns:
            Page object from Notion API
        """
        return await self._request(
            f"retrieve page {page_id}", lambda: self.client.pages.retrieve(page_id=page_id)
        )

    async def retrieve_database(self, database_id: str) -> Dict[str, Any]:
        """
        Get database metadata and property schema.

        Args:
            database_id: Database ID

        Returns:
            Database object from Notion API
        """
        return await self._request(
            f"retrieve database {database_id}",
            lambda: self.client.databases.retrieve(database_id=database_id),
        )

    async def query_database_rows(
        self,
        database_id: str,
        page_size: int = 100,
        start_cursor: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Fetch one page of database rows.

        Args:
            database_id: Database ID
            page_size: Number of rows per page
            start_cursor: Cursor from a previous response

        Returns:
            List response with ``results``, ``has_more`` and ``next_cursor``
        """
        kwargs: Dict[str, Any] = {"database_id": database_id, "page_size": page_size}
        if start_cursor:
            kwargs["start_cursor"] = start_cursor
        return await self._request(
            f"query database {database_id}", lambda: self.client.databases.query(**kwargs)
        )

    async def list_child_blocks(
        self,
        block_id: str,
        page_size: int = 100,
        start_cursor: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Fetch one page of a block's children.

        Args:
            block_id: Page ID or block ID
            page_size: Number of blocks per page
            start_cursor: Cursor from a previous response

        Returns:
            List response with ``results``, ``has_more`` and ``next_cursor``
        """
        kwargs: Dict[str, Any] = {"block_id": block_id, "page_size": page_size}
        if start_cursor:
            kwargs["start_cursor"] = start_cursor
        return await self._request(
            f"list children of {block_id}", lambda: self.client.blocks.children.list(**kwargs)
        )

    async def list_comments(self, block_id: str) -> Dict[str, Any]:
        """Fetch the comments attached to a page or block."""
        return await self._request(
            f"list comments of {block_id}", lambda: self.client.comments.list(block_id=block_id)
        )

    async def retrieve_page_property(
        self,
        page_id: str,
        property_id: str,
        start_cursor: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Fetch one page of a paginated page property value.

        Args:
            page_id: Page (row) ID
            property_id: Property ID from the row's properties
            start_cursor: Cursor from a previous response

        Returns:
            Property item list response
        """
        kwargs: Dict[str, Any] = {"page_id": page_id, "property_id": property_id}
        if start_cursor:
            kwargs["start_cursor"] = start_cursor
        return await self._request(
            f"retrieve property {property_id} of {page_id}",
            lambda: self.client.pages.properties.retrieve(**kwargs),
        )

    @staticmethod
    def get_page_title(page: Dict[str, Any], default: str = "Untitled") -> str:
        """
        Extract title from page properties.

        Args:
            page: Page object from Notion API
            default: Returned when the page has no title text

        Returns:
            Page title as string
        """
        properties = page.get("properties") or {}

        # Try common title property names
        for prop_name in ["title", "Title", "Name", "name"]:
            prop = properties.get(prop_name)
            if prop and prop.get("type") == "title":
                title_array = prop.get("title") or []
                if title_array:
                    return "".join(t.get("plain_text", "") for t in title_array)

        # Fallback: check all properties for title type
        for prop in properties.values():
            if isinstance(prop, dict) and prop.get("type") == "title":
                title_array = prop.get("title") or []
                if title_array:
                    return "".join(t.get("plain_text", "") for t in title_array)

        return default

    @staticmethod
    def get_database_title(database: Dict[str, Any], default: str = "Untitled") -> str:
        """
        Extract title from database.

        Args:
            database: Database object from Notion API
            default: Returned when the database has no title text

        Returns:
            Database title as string
        """
        title_array = database.get("title") or []
        if title_array:
            return "".join(t.get("plain_text", "") for t in title_array)
        return default
