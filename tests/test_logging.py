"""Tests for logging setup."""

import logging

import pytest

from notion_snapshot.utils.logging import NOISY_LOGGERS, setup_logging


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers:
        handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.mark.parametrize(
    "verbosity, level",
    [(0, logging.WARNING), (1, logging.INFO), (2, logging.DEBUG), (3, logging.DEBUG)],
)
def test_console_level_follows_verbosity(tmp_path, restore_logging, verbosity, level):
    setup_logging(verbosity=verbosity, log_file=tmp_path / "run.log")

    console, file_handler = logging.getLogger().handlers
    assert console.level == level
    assert file_handler.level == logging.DEBUG


def test_file_handler_captures_debug(tmp_path, restore_logging):
    log_file = tmp_path / "nested" / "run.log"
    setup_logging(verbosity=0, log_file=log_file)

    logging.getLogger("notion_snapshot.test").debug("traversal detail")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert "traversal detail" in log_file.read_text(encoding="utf-8")


def test_default_log_file_in_log_dir(tmp_path, restore_logging):
    setup_logging(verbosity=1, log_dir=tmp_path / "logs")

    files = list((tmp_path / "logs").glob("log_*.log"))
    assert len(files) == 1


def test_transport_loggers_quiet_below_trace(tmp_path, restore_logging):
    setup_logging(verbosity=2, log_file=tmp_path / "run.log")
    assert all(logging.getLogger(name).level == logging.WARNING for name in NOISY_LOGGERS)

    setup_logging(verbosity=3, log_file=tmp_path / "run.log")
    assert all(logging.getLogger(name).level == logging.DEBUG for name in NOISY_LOGGERS)

