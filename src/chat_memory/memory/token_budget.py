"""
Token budget calculator for the context window manager.

Token counts are character-length heuristics, not tokenizer output. The
buffer constants below were tuned against this approximation, so swapping in
a real tokenizer would also mean retuning them.
"""

import math
from dataclasses import dataclass

from .config import ModelProfile

# ~3.5 characters per token for most models (approximation)
CHARS_PER_TOKEN = 3.5

# Flat cost charged per injected memory instead of tokenizing it
MEMORY_TOKEN_COST = 100

# Margin absorbing estimation error
SAFETY_BUFFER_TOKENS = 1000

NEAR_LIMIT_PERCENT = 75


def message_text(msg) -> str:
    """Extract the text of a LangChain message (string or content blocks)."""
    content = getattr(msg, "content", "")
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
        return "\n".join(parts)
    return str(content) if content else ""


def estimate_tokens(text: str, overhead: int = 0) -> int:
    """Rough token estimate: ceil(chars / 3.5) plus per-message framing."""
    return math.ceil(len(text or "") / CHARS_PER_TOKEN) + overhead


def estimate_message_tokens(msg, profile: ModelProfile) -> int:
    """Estimate tokens for a LangChain message under the given profile."""
    return estimate_tokens(message_text(msg), profile.per_message_overhead_tokens)


def estimate_memory_tokens(memories: list) -> int:
    return len(memories) * MEMORY_TOKEN_COST


@dataclass
class UsageStats:
    """Context usage of a message list against a model's window."""

    tokens_used: int
    max_tokens: int
    percentage: float
    is_near_limit: bool


def calculate_available(profile: ModelProfile, memories: list) -> int:
    """
    Tokens left for conversation history.

    Available = context_window - reply_reserve - memory_estimate - safety_buffer
    May be negative for small windows with many memories.
    """
    return (
        profile.context_window_tokens
        - profile.max_reply_tokens
        - estimate_memory_tokens(memories)
        - SAFETY_BUFFER_TOKENS
    )
