"""Notion traversal, normalization and snapshot output."""

from .client import NotionClient
from .errors import RootResolutionError
from .models import ContentNode, RootKind, ScanResult, ScanSession
from .normalizer import NormalizedOutput, normalize
from .traversal import ContentTraverser
from .writer import write_outputs

__all__ = [
    "NotionClient",
    "RootResolutionError",
    "ContentNode",
    "RootKind",
    "ScanResult",
    "ScanSession",
    "NormalizedOutput",
    "normalize",
    "ContentTraverser",
    "write_outputs",
]
