"""
Context budgeting and long-term memory for chat turns.

Two cooperating parts run before every model call:

- ContextBudgetManager: trims the message history to the target model's
  token budget, keeping the newest turns plus the first user message, and
  reports context usage.
- MemoryStore: persists conversation snippets per user in MongoDB and
  retrieves a small, relevance-ranked subset by lexical matching. Retrieval
  reinforces hits; consolidation prunes and decays once a user's store grows
  past a threshold.
"""

from .config import DEFAULT_MODEL, MODEL_PROFILES, MemoryConfig, ModelProfile, get_model_profile
from .database import MongoConnection
from .errors import ConsolidationError, MemoryStoreError, StorageUnavailable
from .keywords import extract_keywords
from .middleware import ContextBudgetManager, is_trim_notice
from .models import MemoryEntry, MemoryStats
from .store import MemoryStore
from .token_budget import (
    UsageStats,
    calculate_available,
    estimate_message_tokens,
    estimate_tokens,
)

__all__ = [
    "DEFAULT_MODEL",
    "MODEL_PROFILES",
    "ConsolidationError",
    "ContextBudgetManager",
    "MemoryConfig",
    "MemoryEntry",
    "MemoryStats",
    "MemoryStore",
    "MemoryStoreError",
    "ModelProfile",
    "MongoConnection",
    "StorageUnavailable",
    "UsageStats",
    "calculate_available",
    "estimate_message_tokens",
    "estimate_tokens",
    "extract_keywords",
    "get_model_profile",
    "is_trim_notice",
]
