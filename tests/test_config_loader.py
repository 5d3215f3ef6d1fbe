"""Tests for configuration loader."""

import pytest
import yaml
from pathlib import Path
from tempfile import NamedTemporaryFile

from pydantic import ValidationError

from notion_snapshot.config.config_loader import ConfigLoader, load_config
from notion_snapshot.config.config_schema import AppConfig, ScanConfig


def write_config(config_dict):
    with NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
        yaml.dump(config_dict, f)
        return f.name


def test_load_config_valid():
    """Test loading a valid configuration."""
    config_path = write_config(
        {
            "notion": {"api_key": "secret_token", "root_id": "abc"},
            "scan": {"concurrency": 5, "include_row_values": True, "max_blocks": 200},
            "output": {"directory": "out"},
        }
    )

    try:
        config = load_config(config_path, environ={})
        assert isinstance(config, AppConfig)
        assert config.notion.api_key == "secret_token"
        assert config.scan.concurrency == 5
        assert config.scan.include_row_values is True
        assert config.scan.max_blocks == 200
        assert config.output.directory == "out"
        assert config.output.history_directory == "history"
    finally:
        Path(config_path).unlink()


def test_load_config_without_file_uses_defaults():
    """Test defaults when no file is given."""
    config = load_config(None, environ={})

    assert config.notion.api_key is None
    assert config.scan == ScanConfig()
    assert config.scan.concurrency == 3
    assert config.scan.include_row_values is False
    assert config.scan.include_comments is False
    assert config.scan.max_blocks == 0
    assert config.scan.follow_relations is True
    assert config.output.directory == "outputs"


def test_load_config_missing_file():
    """Test loading a non-existent configuration file."""
    with pytest.raises(FileNotFoundError):
        load_config("nonexistent.yaml")


def test_load_config_empty_file():
    """Test that an empty file is rejected."""
    with NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
        config_path = f.name

    try:
        with pytest.raises(ValueError, match="empty"):
            ConfigLoader.load_config(config_path)
    finally:
        Path(config_path).unlink()


def test_load_config_invalid():
    """Test loading an invalid configuration."""
    config_path = write_config({"scan": {"concurrency": 0}})

    try:
        with pytest.raises(ValidationError):
            load_config(config_path, environ={})
    finally:
        Path(config_path).unlink()


def test_scan_config_is_frozen():
    """Test that scan settings can't change once built."""
    config = ScanConfig()
    with pytest.raises(ValidationError):
        config.concurrency = 10


def test_relation_lookup_limit():
    assert ScanConfig(concurrency=2).relation_lookup_limit == 2
    assert ScanConfig(concurrency=8).relation_lookup_limit == 3


def test_blank_output_directory_rejected():
    with pytest.raises(ValueError, match="must not be empty"):
        AppConfig(output={"directory": "  "})


def test_validate_config():
    """Test configuration validation."""
    AppConfig(notion={"api_key": "token", "root_id": "abc"}).validate()

    with pytest.raises(ValueError, match="API key"):
        AppConfig(notion={"root_id": "abc"}).validate()

    with pytest.raises(ValueError, match="Root ID"):
        AppConfig(notion={"api_key": "token"}).validate()


def test_env_overrides():
    """Test that environment variables override file values."""
    config = AppConfig(notion={"api_key": "from-file"}, scan={"concurrency": 2})

    overridden = ConfigLoader.apply_env_overrides(
        config,
        {
            "NOTION_TOKEN": "from-env",
            "PAGE_ID": "page-1",
            "CONCURRENCY": "6",
            "INCLUDE_ROW_VALUES": "true",
            "INCLUDE_COMMENTS": "1",
            "MAX_BLOCKS": "500",
            "FOLLOW_RELATIONS": "no",
        },
    )

    assert overridden.notion.api_key == "from-env"
    assert overridden.notion.root_id == "page-1"
    assert overridden.scan.concurrency == 6
    assert overridden.scan.include_row_values is True
    assert overridden.scan.include_comments is True
    assert overridden.scan.max_blocks == 500
    assert overridden.scan.follow_relations is False
    assert config.notion.api_key == "from-file"


def test_env_api_key_fallback():
    config = ConfigLoader.apply_env_overrides(AppConfig(), {"NOTION_API_KEY": "legacy"})
    assert config.notion.api_key == "legacy"


def test_invalid_env_values_are_ignored():
    """Test that bad numbers and flags keep the configured values."""
    config = ConfigLoader.apply_env_overrides(
        AppConfig(),
        {"CONCURRENCY": "zero", "MAX_BLOCKS": "-5", "INCLUDE_ROW_VALUES": "maybe"},
    )

    assert config.scan.concurrency == 3
    assert config.scan.max_blocks == 0
    assert config.scan.include_row_values is False
