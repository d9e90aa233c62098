"""
Shared test setup.

Puts src/ on sys.path so tests can import the package without installing it,
and provides an in-memory memory store.
"""

import sys
from pathlib import Path

import pytest

# Add src directory to PYTHONPATH
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from chat_memory.memory.config import MemoryConfig  # noqa: E402
from chat_memory.memory.store import MemoryStore  # noqa: E402
from fake_collection import FakeCollection  # noqa: E402


@pytest.fixture
def collection() -> FakeCollection:
    return FakeCollection()


@pytest.fixture
def store(collection: FakeCollection) -> MemoryStore:
    return MemoryStore(collection, MemoryConfig())
