"""Tests for value extraction helpers."""

from notion_snapshot.notion.extract import (
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

from fakes import rich, table_row


def test_plain_text_joins_runs():
    assert plain_text([{"plain_text": "Hello "}, {"plain_text": "world"}]) == "Hello world"
    assert plain_text(None) == ""


def test_normalize_rich_text_keeps_annotations():
    """Test that default colors are dropped and others kept."""
    runs = normalize_rich_text(
        [
            {
                "plain_text": "bold",
                "href": "https://example.com",
                "annotations": {"bold": True, "color": "red"},
            },
            {"plain_text": "plain", "annotations": {"color": "default"}},
        ]
    )

    assert runs[0].to_dict() == {
        "plain_text": "bold",
        "href": "https://example.com",
        "annotations": {"bold": True, "italic": False, "code": False, "color": "red"},
    }
    assert "color" not in runs[1].to_dict()["annotations"]


def test_icon_and_cover():
    assert extract_icon({"type": "emoji", "emoji": "🚀"}) == {"emoji": "🚀"}
    assert extract_icon({"type": "external", "external": {"url": "https://i"}}) == {"url": "https://i"}
    assert extract_icon(None) is None
    assert extract_cover({"type": "file", "file": {"url": "https://c"}}) == {"url": "https://c"}
    assert extract_cover(None) is None


def test_image_url_prefers_external():
    assert image_url({"type": "external", "external": {"url": "https://ext"}}) == "https://ext"
    assert image_url({"type": "file", "file": {"url": "https://file"}}) == "https://file"


def test_table_row_cells():
    assert table_row_cells(table_row("r1", "Name", "Owner")) == ["Name", "Owner"]


def test_extract_property_text_by_type():
    """Test display text for each supported property type."""
    assert extract_property_text({"type": "title", "title": rich("Task A")}) == "Task A"
    assert extract_property_text({"type": "select", "select": {"name": "High"}}) == "High"
    assert extract_property_text({"type": "select", "select": None}) == ""
    assert extract_property_text({"type": "status", "status": {"name": "Done"}}) == "Done"
    assert (
        extract_property_text(
            {"type": "multi_select", "multi_select": [{"name": "a"}, {"name": "b"}]}
        )
        == "a, b"
    )
    assert extract_property_text({"type": "date", "date": {"start": "2024-01-01"}}) == "2024-01-01"
    assert extract_property_text({"type": "number", "number": 3}) == "3"
    assert extract_property_text({"type": "number", "number": None}) == ""
    assert extract_property_text({"type": "checkbox", "checkbox": True}) == "✅"
    assert extract_property_text({"type": "checkbox", "checkbox": False}) == "❌"
    assert extract_property_text({"type": "url", "url": None}) == ""
    assert (
        extract_property_text({"type": "relation", "relation": [{"id": "p1"}, {"id": "p2"}]})
        == "p1, p2"
    )
    assert extract_property_text({"type": "people", "people": [{"id": "u1", "name": "Ann"}]}) == "Ann"
    assert (
        extract_property_text({"type": "formula", "formula": {"type": "number", "number": 5}})
        == "5"
    )


def test_unsupported_property_is_marked():
    assert extract_property_text({"type": "rollup", "rollup": {}}) == {
        "type": "rollup",
        "supported": False,
    }


def test_merge_property_items():
    """Test rebuilding a truncated relation from property items."""
    prop = {"id": "rel", "type": "relation", "relation": [{"id": "p1"}], "has_more": True}
    items = [{"type": "relation", "relation": {"id": f"p{i}"}} for i in range(1, 4)]

    merged = merge_property_items(prop, items)

    assert merged["relation"] == [{"id": "p1"}, {"id": "p2"}, {"id": "p3"}]
    assert merged["has_more"] is False
    assert prop["has_more"] is True


def test_describe_property():
    """Test schema descriptors for formula, select and relation."""
    formula = describe_property(
        "Score", {"type": "formula", "formula": {"expression": "prop(\"A\") * 2"}}
    )
    assert formula.expression == 'prop("A") * 2'

    select = describe_property(
        "Priority",
        {"type": "select", "select": {"options": [{"id": "1", "name": "High", "color": "red"}]}},
    )
    assert select.options == [{"name": "High", "color": "red"}]

    relation = describe_property(
        "Project",
        {
            "type": "relation",
            "relation": {
                "database_id": "db-projects",
                "type": "dual_property",
                "dual_property": {"synced_property_name": "Tasks"},
            },
        },
    )
    assert relation.relation["database_id"] == "db-projects"
    assert relation.relation["synced_property_name"] == "Tasks"
    assert relation.to_dict()["type"] == "relation"


def test_row_title():
    row = {
        "properties": {
            "Done": {"type": "checkbox", "checkbox": True},
            "Name": {"type": "title", "title": rich("Row 1")},
        }
    }
    assert row_title(row) == "Row 1"
    assert row_title({"properties": {}}) == ""
