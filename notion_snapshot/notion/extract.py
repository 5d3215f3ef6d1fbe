"""Extraction of text, media references and schema details from raw Notion objects."""

from typing import Any, Dict, List, Optional

from .models import PropertyDescriptor, RichTextRun

# Property value types whose items come back one per page from the
# page property endpoint
LIST_PROPERTY_TYPES = ("title", "rich_text", "relation", "people")


def plain_text(rich_text: Optional[List[Dict[str, Any]]]) -> str:
    """Concatenate the plain text of a rich text array."""
    return "".join(t.get("plain_text", "") for t in (rich_text or []))


def normalize_rich_text(rich_text: Optional[List[Dict[str, Any]]]) -> List[RichTextRun]:
    """
    Convert a raw rich text array into RichTextRun objects.

    Args:
        rich_text: Rich text array from a block or property

    Returns:
        List of runs with the annotations kept in the snapshot
    """
    runs = []
    for rt in rich_text or []:
        annotations = rt.get("annotations") or {}
        color = annotations.get("color")
        runs.append(
            RichTextRun(
                plain_text=rt.get("plain_text", ""),
                href=rt.get("href") or None,
                bold=bool(annotations.get("bold")),
                italic=bool(annotations.get("italic")),
                code=bool(annotations.get("code")),
                color=color if color and color != "default" else None,
            )
        )
    return runs


def extract_icon(icon: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Reduce a page/database icon to an emoji or a URL."""
    if not icon:
        return None
    icon_type = icon.get("type")
    if icon_type == "emoji":
        return {"emoji": icon.get("emoji")}
    if icon_type == "external":
        return {"url": (icon.get("external") or {}).get("url")}
    if icon_type == "file":
        return {"url": (icon.get("file") or {}).get("url")}
    return None


def extract_cover(cover: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Reduce a page/database cover to its URL."""
    if not cover:
        return None
    cover_type = cover.get("type")
    if cover_type == "external":
        return {"url": (cover.get("external") or {}).get("url")}
    if cover_type == "file":
        return {"url": (cover.get("file") or {}).get("url")}
    return None


def image_url(image: Dict[str, Any]) -> Optional[str]:
    """URL of an image block: the external URL if any, else the hosted file URL."""
    external = image.get("external") or {}
    if image.get("type") == "external" or external.get("url"):
        return external.get("url")
    return (image.get("file") or {}).get("url")


def table_row_cells(row: Dict[str, Any]) -> List[str]:
    """Plain text of every cell in a table_row block."""
    cells = (row.get("table_row") or {}).get("cells") or []
    return [plain_text(cell) for cell in cells]


def extract_property_text(prop: Optional[Dict[str, Any]]) -> Any:
    """
    Extract display text from a row property value.

    Args:
        prop: Property value object from a database row

    Returns:
        Display string, or a marker dict for unsupported types
    """
    if not prop:
        return ""

    prop_type = prop.get("type")
    value = prop.get(prop_type) if prop_type else None

    if prop_type in ("title", "rich_text"):
        return plain_text(value)
    if prop_type in ("select", "status"):
        return (value or {}).get("name") or ""
    if prop_type == "multi_select":
        return ", ".join(option.get("name", "") for option in value or [])
    if prop_type == "date":
        return (value or {}).get("start") or ""
    if prop_type == "number":
        return "" if value is None else str(value)
    if prop_type == "checkbox":
        return "✅" if value else "❌"
    if prop_type in ("url", "email", "phone_number"):
        return value or ""
    if prop_type == "relation":
        return ", ".join(r.get("id", "") for r in value or [])
    if prop_type == "people":
        return ", ".join(p.get("name") or p.get("id", "") for p in value or [])
    if prop_type == "formula":
        formula = value or {}
        result = formula.get(formula.get("type"))
        return "" if result is None else str(result)

    return {"type": prop_type, "supported": False}


def merge_property_items(prop: Dict[str, Any], items: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Rebuild a property value from paginated property items.

    Args:
        prop: Original (truncated) property value from the row
        items: Property items collected from the page property endpoint

    Returns:
        Property value holding every item
    """
    prop_type = prop.get("type")
    if prop_type not in LIST_PROPERTY_TYPES:
        return prop
    merged = dict(prop)
    merged[prop_type] = [item.get(prop_type) for item in items if item.get(prop_type) is not None]
    merged["has_more"] = False
    return merged


def describe_property(name: str, schema: Dict[str, Any]) -> PropertyDescriptor:
    """
    Translate one database schema entry into a PropertyDescriptor.

    Args:
        name: Property name
        schema: Property schema object from the database

    Returns:
        Descriptor with the type-specific detail filled in
    """
    prop_type = schema.get("type", "")
    descriptor = PropertyDescriptor(name=name, type=prop_type)
    detail = schema.get(prop_type) or {}

    if prop_type == "formula":
        descriptor.expression = detail.get("expression") or ""
    elif prop_type in ("select", "multi_select"):
        descriptor.options = [
            {"name": o.get("name"), "color": o.get("color")} for o in detail.get("options") or []
        ]
    elif prop_type == "status":
        descriptor.options = [
            {"id": o.get("id"), "name": o.get("name"), "color": o.get("color")}
            for o in detail.get("options") or []
        ]
    elif prop_type == "relation":
        dual = detail.get("dual_property") or {}
        descriptor.relation = {
            "database_id": detail.get("database_id"),
            "type": detail.get("type"),
            "synced_property_name": detail.get("synced_property_name")
            or dual.get("synced_property_name"),
            "target_property_name": detail.get("property_name")
            or detail.get("target_property_name"),
            "dual_property": detail.get("dual_property"),
        }
    elif prop_type == "rollup":
        descriptor.rollup = {
            "relation_property_name": detail.get("relation_property_name"),
            "rollup_property_name": detail.get("rollup_property_name"),
            "function": detail.get("function"),
        }

    return descriptor


def row_title(row: Dict[str, Any]) -> str:
    """Display text of a row's title property."""
    for prop in (row.get("properties") or {}).values():
        if isinstance(prop, dict) and prop.get("type") == "title":
            return extract_property_text(prop)
    return ""
