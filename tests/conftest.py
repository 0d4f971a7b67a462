# tests/conftest.py

"""Shared pytest fixtures for the collector and cache tests."""

from collections.abc import Generator
from unittest.mock import patch

import pytest


@pytest.fixture(autouse=True)
def mock_sleep() -> Generator[None, None, None]:
    """Patch time.sleep globally so retry and cooldown waits return instantly."""
    with patch("time.sleep"):
        yield
