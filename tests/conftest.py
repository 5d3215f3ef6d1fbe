"""Shared fixtures."""

import pytest

from fakes import FakeNotionAPI


@pytest.fixture
def fake_api():
    """Empty in-memory Notion API."""
    return FakeNotionAPI()
