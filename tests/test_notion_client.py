"""Tests for Notion client."""

import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from notion_snapshot.notion.client import NotionClient


@pytest.fixture
def mock_notion_sdk():
    """Mock notion_client.AsyncClient."""
    with patch("notion_snapshot.notion.client.AsyncClient") as mock:
        sdk = MagicMock()
        sdk.pages.retrieve = AsyncMock()
        sdk.pages.properties.retrieve = AsyncMock()
        sdk.databases.retrieve = AsyncMock()
        sdk.databases.query = AsyncMock()
        sdk.blocks.children.list = AsyncMock()
        sdk.comments.list = AsyncMock()
        sdk.aclose = AsyncMock()
        mock.return_value = sdk
        yield mock


@pytest.fixture
def notion_client(mock_notion_sdk):
    """Create NotionClient with mocked SDK."""
    return NotionClient(api_key="test-api-key", max_in_flight=2)


class TestNotionClient:
    """Tests for NotionClient."""

    def test_init(self, mock_notion_sdk):
        """Test client initialization."""
        client = NotionClient(api_key="test-key", max_in_flight=0)
        mock_notion_sdk.assert_called_once_with(auth="test-key")
        assert client.max_in_flight == 1

    @pytest.mark.asyncio
    async def test_retrieve_page(self, notion_client):
        """Test fetching a page."""
        mock_page = {"id": "page-123", "properties": {}}
        notion_client.client.pages.retrieve.return_value = mock_page

        result = await notion_client.retrieve_page("page-123")

        notion_client.client.pages.retrieve.assert_awaited_once_with(page_id="page-123")
        assert result == mock_page

    @pytest.mark.asyncio
    async def test_retrieve_database(self, notion_client):
        """Test fetching a database."""
        notion_client.client.databases.retrieve.return_value = {"id": "db-1"}

        result = await notion_client.retrieve_database("db-1")

        notion_client.client.databases.retrieve.assert_awaited_once_with(database_id="db-1")
        assert result == {"id": "db-1"}

    @pytest.mark.asyncio
    async def test_list_child_blocks_omits_empty_cursor(self, notion_client):
        """Test that the first request carries no cursor."""
        notion_client.client.blocks.children.list.return_value = {"results": [], "has_more": False}

        await notion_client.list_child_blocks("page-123", page_size=50)

        notion_client.client.blocks.children.list.assert_awaited_once_with(
            block_id="page-123", page_size=50
        )

    @pytest.mark.asyncio
    async def test_list_child_blocks_passes_cursor(self, notion_client):
        """Test that follow-up requests carry the cursor."""
        notion_client.client.blocks.children.list.return_value = {"results": [], "has_more": False}

        await notion_client.list_child_blocks("page-123", start_cursor="cursor-1")

        notion_client.client.blocks.children.list.assert_awaited_once_with(
            block_id="page-123", page_size=100, start_cursor="cursor-1"
        )

    @pytest.mark.asyncio
    async def test_query_database_rows(self, notion_client):
        """Test querying one page of database rows."""
        notion_client.client.databases.query.return_value = {
            "results": [{"id": "page-1"}],
            "has_more": False,
        }

        response = await notion_client.query_database_rows("db-1", page_size=3)

        notion_client.client.databases.query.assert_awaited_once_with(
            database_id="db-1", page_size=3
        )
        assert response["results"] == [{"id": "page-1"}]

    @pytest.mark.asyncio
    async def test_retrieve_page_property(self, notion_client):
        """Test fetching a paginated property."""
        notion_client.client.pages.properties.retrieve.return_value = {"results": []}

        await notion_client.retrieve_page_property("row-1", "prop-1", start_cursor="c2")

        notion_client.client.pages.properties.retrieve.assert_awaited_once_with(
            page_id="row-1", property_id="prop-1", start_cursor="c2"
        )

    @pytest.mark.asyncio
    async def test_list_comments(self, notion_client):
        """Test listing comments."""
        notion_client.client.comments.list.return_value = {"results": []}

        await notion_client.list_comments("page-123")

        notion_client.client.comments.list.assert_awaited_once_with(block_id="page-123")

    @pytest.mark.asyncio
    async def test_requests_are_bounded(self, notion_client):
        """Test that no more than max_in_flight requests run at once."""
        active = 0
        peak = 0

        async def slow_retrieve(page_id):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return {"id": page_id}

        notion_client.client.pages.retrieve.side_effect = slow_retrieve

        await asyncio.gather(*(notion_client.retrieve_page(f"p{i}") for i in range(6)))

        assert peak == 2

    @pytest.mark.asyncio
    async def test_failed_request_is_logged_and_raised(self, notion_client, caplog):
        """Test that SDK errors are logged and propagate unchanged."""
        notion_client.client.blocks.children.list.side_effect = RuntimeError("boom")

        with caplog.at_level("DEBUG", logger="notion_snapshot.notion.client"):
            with pytest.raises(RuntimeError, match="boom"):
                await notion_client.list_child_blocks("page-123")

        assert "Notion request failed (list children of page-123): boom" in caplog.text

    @pytest.mark.asyncio
    async def test_failed_request_frees_its_slot(self, notion_client):
        """Test that a failure releases the in-flight slot."""
        notion_client.client.pages.retrieve.side_effect = [
            RuntimeError("x"),
            RuntimeError("y"),
            {"id": "p"},
        ]

        for _ in range(2):
            with pytest.raises(RuntimeError):
                await notion_client.retrieve_page("p")

        assert await notion_client.retrieve_page("p") == {"id": "p"}

    @pytest.mark.asyncio
    async def test_close(self, notion_client):
        """Test closing the HTTP client."""
        await notion_client.close()
        notion_client.client.aclose.assert_awaited_once()

    def test_get_page_title_from_title_property(self, notion_client):
        """Test extracting title from page with title property."""
        page = {
            "properties": {
                "title": {
                    "type": "title",
                    "title": [{"plain_text": "My Page Title"}],
                }
            }
        }

        title = notion_client.get_page_title(page)
        assert title == "My Page Title"

    def test_get_page_title_from_name_property(self, notion_client):
        """Test extracting title from database entry with Name property."""
        page = {
            "properties": {
                "Name": {
                    "type": "title",
                    "title": [{"plain_text": "Database Entry"}],
                }
            }
        }

        title = notion_client.get_page_title(page)
        assert title == "Database Entry"

    def test_get_page_title_from_custom_property(self):
        """Test extracting title from a renamed title property."""
        page = {
            "properties": {
                "Status": {"type": "select", "select": None},
                "Task": {"type": "title", "title": [{"plain_text": "Write docs"}]},
            }
        }

        assert NotionClient.get_page_title(page) == "Write docs"

    def test_get_page_title_untitled(self, notion_client):
        """Test fallback to Untitled when no title found."""
        page = {"properties": {}}

        assert notion_client.get_page_title(page) == "Untitled"
        assert notion_client.get_page_title(page, default="Untitled Page") == "Untitled Page"

    def test_get_page_title_multiple_text_parts(self, notion_client):
        """Test title with multiple text parts."""
        page = {
            "properties": {
                "title": {
                    "type": "title",
                    "title": [
                        {"plain_text": "Part 1 "},
                        {"plain_text": "Part 2"},
                    ],
                }
            }
        }

        title = notion_client.get_page_title(page)
        assert title == "Part 1 Part 2"

    def test_get_database_title(self):
        """Test database title extraction."""
        assert NotionClient.get_database_title({"title": [{"plain_text": "Tasks"}]}) == "Tasks"
        assert NotionClient.get_database_title({"title": []}) == "Untitled"
