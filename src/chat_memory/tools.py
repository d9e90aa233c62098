"""
LangChain tools over the memory store.

- recall_memory: search a user's long-term memories
- memory_stats: summary of a user's memory store and its newest entries,
  optionally with the number of memories relevant to a query

ToolRuntime gives the tools access to the per-request context (the store and
the user the request belongs to).
"""

from dataclasses import dataclass

from langchain.tools import ToolRuntime, tool

from .memory import MemoryStore

# Upper bound on a single memory's text in tool output
MAX_MEMORY_CHARS = 500

# Matches the memory-state endpoint, which counts up to 10 relevant memories
RELEVANT_COUNT_LIMIT = 10

# Newest memories listed by memory_stats
RECENT_LISTING_LIMIT = 5


def _truncate(text: str, max_chars: int = MAX_MEMORY_CHARS) -> str:
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + "..."


@dataclass
class ChatMemoryContext:
    """
    Per-request tool context.

    Accessed in tools through ToolRuntime[ChatMemoryContext].
    """
    store: MemoryStore
    user_id: str


@tool
async def recall_memory(
    query: str,
    runtime: ToolRuntime[ChatMemoryContext],
    limit: int = 5,
) -> str:
    """
    Search the user's long-term memory for past conversation details.

    Use this when the user refers to something discussed in an earlier
    conversation that is not in the current context.

    Args:
        query: Words or a phrase to look for in past conversations
        limit: Maximum number of memories to return
    """
    ctx = runtime.context
    memories = await ctx.store.retrieve(ctx.user_id, query, limit)
    if not memories:
        return f"No memories found for '{query}'."

    lines = [f"Found {len(memories)} memory(ies) for '{query}':", ""]
    for i, memory in enumerate(memories, 1):
        lines.append(
            f"{i}. [{memory.created_at:%Y-%m-%d}] (relevance {memory.relevance_score:.2f})"
        )
        lines.append(_truncate(memory.content))
        lines.append("")
    return "\n".join(lines).rstrip()


@tool
async def memory_stats(
    runtime: ToolRuntime[ChatMemoryContext],
    query: str = "",
) -> str:
    """
    Report how many memories the user has, their average relevance and age
    range, and list the newest few. If a query is given, also count
    memories relevant to it.

    Args:
        query: Optional search text to count relevant memories for
    """
    ctx = runtime.context
    stats = await ctx.store.stats(ctx.user_id)

    lines = [
        f"totalMemories: {stats.total_memories}",
        f"averageRelevance: {stats.average_relevance:.2f}",
        f"oldestMemory: {stats.oldest_memory.isoformat() if stats.oldest_memory else 'none'}",
        f"newestMemory: {stats.newest_memory.isoformat() if stats.newest_memory else 'none'}",
    ]
    recent = await ctx.store.recent(ctx.user_id, RECENT_LISTING_LIMIT)
    if recent:
        lines.append("recentMemories:")
        for memory in recent:
            lines.append(f"- [{memory.created_at:%Y-%m-%d}] {_truncate(memory.content)}")
    if query:
        relevant = await ctx.store.retrieve(ctx.user_id, query, RELEVANT_COUNT_LIMIT)
        lines.append(f"relevantMemories: {len(relevant)}")
    return "\n".join(lines)


ALL_TOOLS = [recall_memory, memory_stats]
