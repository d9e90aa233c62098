"""
Context window manager.

Intercepts the message history before it is sent to the LLM and trims it to
the target model's token budget:

- The most recent message is always kept.
- Older messages are kept newest-first until the budget runs out.
- The first user message (the "anchor") is kept when it fits, since it
  carries the original intent of the conversation.
- When anything is dropped, a system notice reporting the count is prepended.

The caller still owns the complete history; this only affects what the LLM
sees.
"""

import logging
import time
from datetime import UTC, datetime

from langchain_core.messages import SystemMessage

from .config import ModelProfile, get_model_profile
from .token_budget import (
    NEAR_LIMIT_PERCENT,
    UsageStats,
    calculate_available,
    estimate_message_tokens,
)

logger = logging.getLogger(__name__)

# Histories this short are never trimmed
MIN_TRIM_LENGTH = 2

TRIM_NOTICE_ID_PREFIX = "context-loss-"


def _role(msg) -> str:
    """Map a LangChain message type onto chat roles."""
    msg_type = getattr(msg, "type", "")
    if msg_type == "human":
        return "user"
    if msg_type == "ai":
        return "assistant"
    return msg_type


def is_trim_notice(msg) -> bool:
    return isinstance(msg, SystemMessage) and str(msg.id or "").startswith(
        TRIM_NOTICE_ID_PREFIX
    )


def _trim_notice(trimmed_count: int) -> SystemMessage:
    return SystemMessage(
        content=(
            f"[Previous {trimmed_count} message(s) trimmed to fit context window. "
            "Conversation continues from here.]"
        ),
        id=f"{TRIM_NOTICE_ID_PREFIX}{int(time.time() * 1000)}",
        additional_kwargs={"created_at": datetime.now(UTC).isoformat()},
    )


class ContextBudgetManager:
    """
    Fits a message history into a model's context window.

    Usage:
        manager = ContextBudgetManager()
        trimmed = manager.fit(messages, "llama-3.1-8b-instant", memories)
        # Send trimmed messages to LLM instead of full history
    """

    def __init__(self, profiles: dict[str, ModelProfile] | None = None):
        self._profiles = profiles

    def profile(self, model_id: str) -> ModelProfile:
        if self._profiles and model_id in self._profiles:
            return self._profiles[model_id]
        return get_model_profile(model_id)

    def available_tokens(self, model_id: str, memories: list | None = None) -> int:
        return calculate_available(self.profile(model_id), memories or [])

    def fit(self, messages: list, model_id: str, memories: list | None = None) -> list:
        """
        Return the subset of messages that fits the model's budget.

        Output is chronological with the trim notice (if any) first. The
        original list is not modified.
        """
        if len(messages) <= MIN_TRIM_LENGTH:
            return list(messages)

        profile = self.profile(model_id)
        available = calculate_available(profile, memories or [])

        last = messages[-1]
        total_tokens = estimate_message_tokens(last, profile)
        kept = [last]

        anchor_index = next(
            (i for i, msg in enumerate(messages[:-1]) if _role(msg) == "user"),
            -1,
        )

        # Walk backwards from the message before the current turn
        for i in range(len(messages) - 2, -1, -1):
            msg = messages[i]
            msg_tokens = estimate_message_tokens(msg, profile)
            fits = total_tokens + msg_tokens <= available

            if i == anchor_index:
                if fits:
                    total_tokens += msg_tokens
                    kept.append(msg)
                continue

            if not fits:
                break

            total_tokens += msg_tokens
            kept.append(msg)

        kept.reverse()

        if len(kept) < len(messages):
            trimmed_count = len(messages) - len(kept)
            logger.info(
                "Trimmed %d of %d messages for %s (%d/%d tokens)",
                trimmed_count,
                len(messages),
                model_id,
                total_tokens,
                available,
            )
            kept.insert(0, _trim_notice(trimmed_count))
        else:
            logger.debug(
                "All %d messages fit in budget (%d/%d tokens), no trimming needed",
                len(messages),
                total_tokens,
                available,
            )

        return kept

    def usage(self, messages: list, model_id: str) -> UsageStats:
        """Estimated context usage of messages, without trimming."""
        profile = self.profile(model_id)
        tokens_used = sum(estimate_message_tokens(m, profile) for m in messages)
        percentage = tokens_used / profile.context_window_tokens * 100
        return UsageStats(
            tokens_used=tokens_used,
            max_tokens=profile.context_window_tokens,
            percentage=percentage,
            is_near_limit=percentage > NEAR_LIMIT_PERCENT,
        )

    def max_reply_tokens(self, model_id: str) -> int:
        return self.profile(model_id).max_reply_tokens

    def context_window_tokens(self, model_id: str) -> int:
        return self.profile(model_id).context_window_tokens
