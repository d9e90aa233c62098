"""
Chat turn runner.

Runs one chat turn the way the web backend does:

1. Retrieve long-term memories for the latest user message. The lookup is
   bounded by a timeout; a slow or failing store means "no memories".
2. Trim the history to the model's context budget.
3. Prepend the retrieved memories as a system message.
4. Call the LLM.
5. Persist the exchange as a new memory.

Memory failures never reach the user: at worst the model answers without
long-term context. LLM errors propagate to the caller.
"""

import asyncio
import logging
import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv
from langchain.chat_models import init_chat_model
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from .memory import (
    DEFAULT_MODEL,
    ContextBudgetManager,
    MemoryConfig,
    MemoryEntry,
    MemoryStore,
    MongoConnection,
    StorageUnavailable,
    UsageStats,
)
from .memory.token_budget import message_text

logger = logging.getLogger(__name__)


# Load environment variables (.env overrides the process environment)
load_dotenv(override=True)


DEFAULT_PROVIDER = "groq"
DEFAULT_TEMPERATURE = 0.7

MEMORY_CONTEXT_TEMPLATE = """Previous conversation context:
{memories}

Please use this context to provide more personalized and relevant responses."""

_MESSAGE_TYPES = {
    "user": HumanMessage,
    "assistant": AIMessage,
    "system": SystemMessage,
}


def get_credentials() -> tuple[str | None, str | None]:
    """
    Resolve API credentials (generic variables take priority).

    - API key: API_KEY > GROQ_API_KEY
    - Base URL: API_BASE_URL > GROQ_BASE_URL
    """
    api_key = os.getenv("API_KEY") or os.getenv("GROQ_API_KEY")
    base_url = os.getenv("API_BASE_URL") or os.getenv("GROQ_BASE_URL")
    return api_key, base_url


def create_chat_model(
    model_name: str,
    max_tokens: int,
    temperature: Optional[float] = None,
):
    """Initialise the chat model through LangChain's provider registry."""
    api_key, base_url = get_credentials()

    init_kwargs = {
        "temperature": temperature if temperature is not None else float(
            os.getenv("MODEL_TEMPERATURE", str(DEFAULT_TEMPERATURE))
        ),
        "max_tokens": max_tokens,
    }
    if api_key:
        init_kwargs["api_key"] = api_key
    if base_url:
        init_kwargs["base_url"] = base_url

    return init_chat_model(
        model_name,
        model_provider=os.getenv("MODEL_PROVIDER", DEFAULT_PROVIDER),
        **init_kwargs,
    )


def messages_from_payload(payload: list[dict]) -> list:
    """Convert `{id, role, content, createdAt}` dicts into LangChain messages."""
    messages = []
    for item in payload:
        role = item.get("role")
        message_cls = _MESSAGE_TYPES.get(role)
        if message_cls is None:
            raise ValueError(f"Unsupported message role: {role!r}")

        extra = {}
        created_at = item.get("createdAt")
        if created_at:
            extra["created_at"] = (
                created_at if isinstance(created_at, str) else created_at.isoformat()
            )
        messages.append(
            message_cls(
                content=item.get("content", ""),
                id=item.get("id"),
                additional_kwargs=extra,
            )
        )
    return messages


def last_user_text(messages: list) -> str:
    """Text of the most recent user message, or "" if there is none."""
    for msg in reversed(messages):
        if isinstance(msg, HumanMessage):
            return message_text(msg)
    return ""


def build_memory_context(memories: list[MemoryEntry]) -> Optional[SystemMessage]:
    """System message carrying retrieved memories, or None when there are none."""
    if not memories:
        return None
    joined = "\n".join(m.content for m in memories)
    return SystemMessage(content=MEMORY_CONTEXT_TEMPLATE.format(memories=joined))


def turn_summary(question: str, reply: str) -> str:
    return f"User: {question}\nAssistant: {reply}"


@dataclass
class ChatTurnResult:
    """Outcome of one chat turn."""

    reply: str
    messages: list  # as sent to the model
    memories: list[MemoryEntry] = field(default_factory=list)
    usage: Optional[UsageStats] = None


class ChatAgent:
    """
    Memory-augmented chat runner.

    Usage:
        agent = ChatAgent()
        result = await agent.respond(messages, user_id="u1")
        print(result.reply)
    """

    def __init__(
        self,
        store: Optional[MemoryStore] = None,
        budget_manager: Optional[ContextBudgetManager] = None,
        llm=None,
        model: Optional[str] = None,
        config: Optional[MemoryConfig] = None,
        temperature: Optional[float] = None,
    ):
        self.config = config or MemoryConfig.from_env()
        self.model_name = model or os.getenv("CHAT_MODEL", DEFAULT_MODEL)
        self.budget_manager = budget_manager or ContextBudgetManager()
        self.temperature = temperature

        self._connection = None
        if store is None:
            self._connection = MongoConnection(self.config)
            store = MemoryStore(self._connection.collection(), self.config)
        self.store = store

        self._llm = llm
        self._llms: dict[str, object] = {}

    def _get_llm(self, model_name: str):
        if self._llm is not None:
            return self._llm
        if model_name not in self._llms:
            self._llms[model_name] = create_chat_model(
                model_name,
                max_tokens=self.budget_manager.max_reply_tokens(model_name),
                temperature=self.temperature,
            )
        return self._llms[model_name]

    async def respond(
        self,
        messages: list,
        user_id: str,
        model: Optional[str] = None,
    ) -> ChatTurnResult:
        """Run one chat turn over the full message history."""
        model_name = model or self.model_name
        query = last_user_text(messages)

        memories = await self._recall(user_id, query)
        outgoing = self.budget_manager.fit(messages, model_name, memories)

        memory_message = build_memory_context(memories)
        if memory_message is not None:
            outgoing.insert(0, memory_message)

        response = await self._get_llm(model_name).ainvoke(outgoing)
        reply = message_text(response)

        await self._remember(user_id, query, reply, model_name)

        return ChatTurnResult(
            reply=reply,
            messages=outgoing,
            memories=memories,
            usage=self.budget_manager.usage(outgoing, model_name),
        )

    async def _recall(self, user_id: str, query: str) -> list[MemoryEntry]:
        if not query:
            return []
        try:
            return await asyncio.wait_for(
                self.store.retrieve(user_id, query, self.config.retrieve_limit),
                timeout=self.config.retrieve_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Memory retrieval timed out after %.1fs for user %s",
                self.config.retrieve_timeout,
                user_id,
            )
            return []

    async def _remember(self, user_id: str, query: str, reply: str, model_name: str):
        if not query:
            return
        try:
            await self.store.add(
                user_id,
                turn_summary(query, reply),
                conversation_context={"model": model_name},
            )
        except StorageUnavailable as e:
            logger.warning("Dropping memory write for user %s: %s", user_id, e)

    async def close(self):
        """Release the database connection if this agent opened it."""
        if self._connection is not None:
            await self._connection.close()


def create_chat_agent(
    model: Optional[str] = None,
    config: Optional[MemoryConfig] = None,
    temperature: Optional[float] = None,
) -> ChatAgent:
    """Convenience factory: a ChatAgent wired to MongoDB from the environment."""
    return ChatAgent(model=model, config=config, temperature=temperature)
