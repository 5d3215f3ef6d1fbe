"""Snapshot a Notion page or database subtree into normalized records."""

__version__ = "1.0.0"
