"""Tests for the memory tools."""

from datetime import UTC, datetime, timedelta
from types import SimpleNamespace

import pytest

from chat_memory.memory.store import MemoryStore
from chat_memory.tools import ALL_TOOLS, ChatMemoryContext, memory_stats, recall_memory
from fake_collection import FakeCollection, make_doc


@pytest.fixture
def runtime(store: MemoryStore) -> SimpleNamespace:
    return SimpleNamespace(context=ChatMemoryContext(store=store, user_id="u1"))


def test_tool_registry() -> None:
    assert [t.name for t in ALL_TOOLS] == ["recall_memory", "memory_stats"]


async def test_recall_memory_lists_hits(runtime, collection: FakeCollection) -> None:
    collection.seed(make_doc("u1", "I love hiking in Colorado"))

    output = await recall_memory.coroutine(query="hiking", runtime=runtime)

    assert "Found 1 memory(ies) for 'hiking'" in output
    assert "I love hiking in Colorado" in output
    assert "relevance 1.10" in output


async def test_recall_memory_truncates_long_memories(runtime, collection: FakeCollection) -> None:
    collection.seed(make_doc("u1", "hiking " + "z" * 2000))

    output = await recall_memory.coroutine(query="hiking", runtime=runtime)

    assert "z" * 600 not in output
    assert output.endswith("...")


async def test_recall_memory_no_hits(runtime) -> None:
    output = await recall_memory.coroutine(query="sailing", runtime=runtime)
    assert output == "No memories found for 'sailing'."


async def test_memory_stats_with_query(runtime, collection: FakeCollection) -> None:
    oldest = datetime(2024, 1, 1, tzinfo=UTC)
    collection.seed(
        make_doc("u1", "hiking in Colorado", createdAt=oldest),
        make_doc("u1", "likes tea", createdAt=oldest + timedelta(days=1)),
    )

    output = await memory_stats.coroutine(runtime=runtime, query="hiking")

    assert "totalMemories: 2" in output
    assert "averageRelevance: 1.00" in output
    assert "oldestMemory: 2024-01-01T00:00:00+00:00" in output
    assert "relevantMemories: 1" in output


async def test_memory_stats_empty(runtime) -> None:
    output = await memory_stats.coroutine(runtime=runtime)

    assert "totalMemories: 0" in output
    assert "oldestMemory: none" in output
    assert "recentMemories" not in output
    assert "relevantMemories" not in output


async def test_memory_stats_lists_newest_memories(runtime, collection: FakeCollection) -> None:
    now = datetime.now(UTC)
    collection.seed(
        make_doc("u1", "Planning a ski vacation", createdAt=now - timedelta(days=2)),
        make_doc("u1", "Booked flights to Denver " + "z" * 600, createdAt=now),
    )

    output = await memory_stats.coroutine(runtime=runtime)

    listing = output.split("recentMemories:\n", 1)[1].splitlines()
    assert listing[0].startswith("- [") and "Booked flights to Denver" in listing[0]
    assert listing[0].endswith("...")
    assert "Planning a ski vacation" in listing[1]
    assert collection.docs[0]["accessCount"] == 0
