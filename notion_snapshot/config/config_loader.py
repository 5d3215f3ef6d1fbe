"""Configuration loader for YAML files and environment overrides."""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .config_schema import AppConfig

logger = logging.getLogger(__name__)

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}


class ConfigLoader:
    """Load and validate configuration from YAML files."""

    @staticmethod
    def load_config(path: Optional[str] = None) -> AppConfig:
        """
        Load configuration from a YAML file.

        Args:
            path: Path to configuration file. None yields the defaults.

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is empty or invalid
        """
        if path is None:
            return AppConfig()

        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(config_path, "r", encoding="utf-8") as f:
            config_dict = yaml.safe_load(f)

        if not config_dict:
            raise ValueError("Configuration file is empty")

        return AppConfig(**config_dict)

    @staticmethod
    def apply_env_overrides(
        config: AppConfig, environ: Optional[Mapping[str, str]] = None
    ) -> AppConfig:
        """
        Overlay environment variables on a loaded configuration.

        Recognized variables: NOTION_TOKEN, NOTION_API_KEY, PAGE_ID,
        CONCURRENCY, INCLUDE_ROW_VALUES, INCLUDE_COMMENTS, MAX_BLOCKS,
        FOLLOW_RELATIONS. Values that don't parse are ignored.

        Args:
            config: Configuration to overlay
            environ: Environment mapping (defaults to os.environ)

        Returns:
            New AppConfig with overrides applied
        """
        env = os.environ if environ is None else environ

        notion_updates: Dict[str, Any] = {}
        api_key = env.get("NOTION_TOKEN") or env.get("NOTION_API_KEY")
        if api_key:
            notion_updates["api_key"] = api_key
        if env.get("PAGE_ID"):
            notion_updates["root_id"] = env["PAGE_ID"]

        scan_updates: Dict[str, Any] = {}
        concurrency = _parse_int(env.get("CONCURRENCY"), minimum=1)
        if concurrency is not None:
            scan_updates["concurrency"] = concurrency
        max_blocks = _parse_int(env.get("MAX_BLOCKS"), minimum=0)
        if max_blocks is not None:
            scan_updates["max_blocks"] = max_blocks
        for var, field in (
            ("INCLUDE_ROW_VALUES", "include_row_values"),
            ("INCLUDE_COMMENTS", "include_comments"),
            ("FOLLOW_RELATIONS", "follow_relations"),
        ):
            flag = _parse_bool(env.get(var))
            if flag is not None:
                scan_updates[field] = flag

        if not notion_updates and not scan_updates:
            return config

        logger.debug(
            f"Applying environment overrides: {sorted(list(notion_updates) + list(scan_updates))}"
        )
        return config.model_copy(
            update={
                "notion": config.notion.model_copy(update=notion_updates),
                "scan": config.scan.model_copy(update=scan_updates),
            }
        )


def _parse_int(value: Optional[str], minimum: int) -> Optional[int]:
    if value is None or value.strip() == "":
        return None
    try:
        number = int(float(value))
    except ValueError:
        logger.warning(f"Ignoring non-numeric environment value: {value!r}")
        return None
    return number if number >= minimum else None


def _parse_bool(value: Optional[str]) -> Optional[bool]:
    if value is None:
        return None
    lowered = value.strip().lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    return None


def load_config(
    path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None
) -> AppConfig:
    """
    Convenience function to load configuration with environment overrides.

    Args:
        path: Path to configuration file (optional)
        environ: Environment mapping (defaults to os.environ)

    Returns:
        AppConfig instance
    """
    config = ConfigLoader.load_config(path)
    return ConfigLoader.apply_env_overrides(config, environ)
