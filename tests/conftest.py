"""Shared test fixtures for the progress tracker."""

import pytest

from src.progress_tracker.store import store


@pytest.fixture(autouse=True)
def _reset_store():
    """Start every test with an empty module-level store."""
    store.reset()
    yield
    store.reset()
