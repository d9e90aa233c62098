"""
Memory configuration and model profile mappings.
"""

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelProfile:
    """Token capacity of a target model."""

    context_window_tokens: int
    max_reply_tokens: int
    per_message_overhead_tokens: int = 4

    def __post_init__(self):
        if self.context_window_tokens <= self.max_reply_tokens:
            raise ValueError(
                f"context window ({self.context_window_tokens}) must exceed "
                f"reply reserve ({self.max_reply_tokens})"
            )


DEFAULT_MODEL = "llama-3.1-8b-instant"

# Model → token profile
MODEL_PROFILES: dict[str, ModelProfile] = {
    # Llama 4
    "meta-llama/llama-4-scout-17b-16e-instruct": ModelProfile(32768, 8192),
    # Llama 3.x
    "llama-3.1-8b-instant": ModelProfile(32768, 8192),
    "llama-3.2-90b-text-preview": ModelProfile(131072, 8192),
    "llama-3.2-11b-text-preview": ModelProfile(131072, 8192),
    # Mixtral
    "mixtral-8x7b-32768": ModelProfile(32768, 8192),
    # Gemma
    "gemma-7b-it": ModelProfile(8192, 2048),
}


def get_model_profile(model_id: str) -> ModelProfile:
    """Resolve a model profile, falling back to the default model's profile."""
    profile = MODEL_PROFILES.get(model_id)
    if profile is None:
        logger.debug("Unknown model %r, using %s profile", model_id, DEFAULT_MODEL)
        return MODEL_PROFILES[DEFAULT_MODEL]
    return profile


@dataclass
class MemoryConfig:
    """Configuration for the long-term memory store."""

    # Backing document database
    mongodb_uri: str = "mongodb://localhost:27017"
    database_name: str = "gpt_clone"
    collection_name: str = "memories"
    server_selection_timeout_ms: int = 5000

    # Retrieval
    retrieve_limit: int = 5
    retrieve_timeout: float = 3.0  # seconds, callers treat a timeout as "no memories"
    min_relevance: float = 0.1
    access_boost: float = 0.1
    recency_days: int = 7

    # Keyword extraction
    keyword_limit: int = 10
    min_keyword_length: int = 4

    # Consolidation
    consolidation_threshold: int = 1000
    prune_relevance_below: float = 0.2
    prune_idle_days: int = 30
    prune_access_count_below: int = 2
    decay_factor: float = 0.95

    @classmethod
    def from_env(cls) -> "MemoryConfig":
        """Load configuration from environment variables."""
        return cls(
            mongodb_uri=os.getenv("MONGODB_URI", "mongodb://localhost:27017"),
            database_name=os.getenv("MEMORY_DB_NAME", "gpt_clone"),
            collection_name=os.getenv("MEMORY_COLLECTION", "memories"),
            server_selection_timeout_ms=int(
                os.getenv("MONGODB_SERVER_SELECTION_TIMEOUT_MS", "5000")
            ),
            retrieve_limit=int(os.getenv("MEMORY_RETRIEVE_LIMIT", "5")),
            retrieve_timeout=float(os.getenv("MEMORY_RETRIEVE_TIMEOUT", "3.0")),
            recency_days=int(os.getenv("MEMORY_RECENCY_DAYS", "7")),
            keyword_limit=int(os.getenv("MEMORY_KEYWORD_LIMIT", "10")),
            consolidation_threshold=int(
                os.getenv("MEMORY_CONSOLIDATION_THRESHOLD", "1000")
            ),
            prune_idle_days=int(os.getenv("MEMORY_PRUNE_IDLE_DAYS", "30")),
            decay_factor=float(os.getenv("MEMORY_DECAY_FACTOR", "0.95")),
        )
