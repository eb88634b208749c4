"""
Pytest fixtures for the livestock dashboard tests.

Provides an in-memory data source seeded with the documents from
sample_records.py, a SnapshotRepository over it, and a variant whose store
can be told to fail fetches or writes.
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))
sys.path.insert(0, str(Path(__file__).resolve().parent))

from pipeline.repository import MemoryDataSource, SnapshotRepository  # noqa: E402
from sample_records import FlakySource, seed_collections  # noqa: E402


@pytest.fixture()
def memory_source():
    """In-memory store seeded with every sample collection."""
    return MemoryDataSource(seed_collections())


@pytest.fixture()
def repository(memory_source):
    """SnapshotRepository over the seeded store, re-fetching only when needed."""
    return SnapshotRepository(memory_source, ttl_seconds=0)


@pytest.fixture()
def flaky_source(memory_source):
    return FlakySource(memory_source)


@pytest.fixture()
def flaky_repository(flaky_source):
    return SnapshotRepository(flaky_source, ttl_seconds=0)
