# tests/conftest.py

"""Shared pytest fixtures for the price_sync tests."""

from collections.abc import Generator
from pathlib import Path
from unittest.mock import patch

import pytest

from src.config.settings import Settings


@pytest.fixture(autouse=True)
def isolated_paths(tmp_path: Path) -> Generator[None, None, None]:
    """Point the default store and log paths at a per-test directory."""
    with patch.object(Settings, "DB_PATH", tmp_path / "price_sync.db"), \
            patch.object(Settings, "LOGS_DIR", tmp_path / "logs"):
        yield


@pytest.fixture(autouse=True)
def mock_sleep() -> Generator[None, None, None]:
    """Patch time.sleep globally so nothing in a test actually waits."""
    with patch("time.sleep"):
        yield
