"""Configuration management module."""

from .config_loader import ConfigLoader, load_config
from .config_schema import AppConfig, NotionConfig, OutputConfig, ScanConfig

__all__ = [
    "ConfigLoader",
    "load_config",
    "AppConfig",
    "NotionConfig",
    "OutputConfig",
    "ScanConfig",
]
