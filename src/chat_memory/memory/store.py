"""
Relevance-ranked long-term memory backed by a MongoDB collection.

Architecture:
  - add → keywords extracted → document inserted → consolidation pass
  - retrieve → search strategies run in priority order → access bookkeeping
  - consolidate → once a user exceeds the size threshold, prune stale
    low-value entries and decay every surviving score

Search strategy (lexical, no embeddings), stopping once `limit` is reached:
  1. Exact phrase full-text match
  2. All-terms full-text match
  3. Case-insensitive substring match on content
  4. Recent entries (last N days) containing any single query term

Every strategy only considers entries above the relevance floor and ranks by
(relevanceScore, lastAccessedAt, accessCount), all descending. Returned
entries are reinforced: a hit bumps the score and access count, so memories
that keep being useful keep ranking high while the rest decay toward pruning.

The collection is injected (an async PyMongo collection in production, an
in-memory fake in tests), so nothing here holds global state.
"""

import logging
import re
import uuid
from datetime import UTC, datetime, timedelta
from typing import Any, Optional

from pymongo import ASCENDING, DESCENDING, TEXT
from pymongo.errors import PyMongoError

from .config import MemoryConfig
from .errors import ConsolidationError, StorageUnavailable
from .keywords import extract_keywords, query_terms
from .models import MemoryEntry, MemoryStats

logger = logging.getLogger(__name__)

RANKING = [
    ("relevanceScore", DESCENDING),
    ("lastAccessedAt", DESCENDING),
    ("accessCount", DESCENDING),
]

INDEXES = [
    [("userId", ASCENDING), ("createdAt", DESCENDING)],
    [("userId", ASCENDING), ("relevanceScore", DESCENDING)],
    [("userId", ASCENDING), ("lastAccessedAt", DESCENDING)],
    [("content", TEXT)],
    [("keywords", ASCENDING)],
]


def _contains(text: str) -> dict:
    return {"$regex": re.escape(text), "$options": "i"}


class MemoryStore:
    """
    Stores and retrieves per-user memories.

    Usage:
        store = MemoryStore(connection.collection(), MemoryConfig.from_env())
        memories = await store.retrieve(user_id, "hiking trips")
        await store.add(user_id, "User: ...\\nAssistant: ...")
    """

    def __init__(self, collection, config: Optional[MemoryConfig] = None):
        self._collection = collection
        self.config = config or MemoryConfig()
        self._indexes_ready = False

    @staticmethod
    def _now() -> datetime:
        return datetime.now(UTC)

    async def ensure_indexes(self):
        """Create the collection indexes (idempotent)."""
        if self._indexes_ready:
            return
        for keys in INDEXES:
            await self._collection.create_index(keys)
        self._indexes_ready = True

    def _strategies(self, query: str, now: datetime) -> list[tuple[str, dict]]:
        """
        Search criteria in priority order.

        Terms for the all-terms and recent-any-term strategies exclude
        stopwords, so a query made only of stopwords ("what about them")
        runs just the phrase and substring strategies.
        """
        terms = query_terms(query)
        phrase = query.replace('"', " ").strip()

        strategies = []
        if phrase:
            strategies.append(("phrase", {"$text": {"$search": f'"{phrase}"'}}))
        if terms:
            all_terms = " ".join(f'"{term}"' for term in terms)
            strategies.append(("all_terms", {"$text": {"$search": all_terms}}))
        strategies.append(("substring", {"content": _contains(query)}))
        if terms:
            since = now - timedelta(days=self.config.recency_days)
            strategies.append((
                "recent_any_term",
                {
                    "createdAt": {"$gte": since},
                    "$or": [{"content": _contains(term)} for term in terms],
                },
            ))
        return strategies

    # -- Read ----------------------------------------------------------------

    async def retrieve(
        self,
        user_id: str,
        query: str,
        limit: Optional[int] = None,
    ) -> list[MemoryEntry]:
        """
        Return up to `limit` memories relevant to `query`, best first.

        Never raises: storage failures are logged and yield an empty list.
        """
        limit = self.config.retrieve_limit if limit is None else limit
        query = (query or "").strip()
        if not query or limit <= 0:
            return []

        try:
            return await self._retrieve(user_id, query, limit)
        except StorageUnavailable as e:
            logger.warning("Memory retrieval failed for user %s: %s", user_id, e)
            return []

    async def _retrieve(self, user_id: str, query: str, limit: int) -> list[MemoryEntry]:
        now = self._now()
        results: list[MemoryEntry] = []
        seen: set[str] = set()

        try:
            await self.ensure_indexes()

            for name, criteria in self._strategies(query, now):
                remaining = limit - len(results)
                if remaining <= 0:
                    break

                filters: dict[str, Any] = {
                    "userId": user_id,
                    "relevanceScore": {"$gt": self.config.min_relevance},
                    **criteria,
                }
                if seen:
                    filters["id"] = {"$nin": sorted(seen)}

                cursor = self._collection.find(filters).sort(RANKING).limit(remaining)
                docs = await cursor.to_list(length=remaining)

                found = 0
                for doc in docs:
                    entry = MemoryEntry.from_document(doc)
                    if entry.id in seen:
                        continue
                    seen.add(entry.id)
                    results.append(entry)
                    found += 1
                logger.debug("Strategy %s found %d memories for user %s", name, found, user_id)

            if results:
                await self._reinforce(results, now)
        except PyMongoError as e:
            raise StorageUnavailable(str(e)) from e

        return results[:limit]

    async def _reinforce(self, entries: list[MemoryEntry], now: datetime):
        """Record an access on each retrieved entry."""
        boost = self.config.access_boost
        await self._collection.update_many(
            {"id": {"$in": [e.id for e in entries]}},
            {
                "$set": {"lastAccessedAt": now},
                "$inc": {"accessCount": 1, "relevanceScore": boost},
            },
        )
        for entry in entries:
            entry.last_accessed_at = now
            entry.access_count += 1
            entry.relevance_score += boost

    async def recent(self, user_id: str, limit: int = 10) -> list[MemoryEntry]:
        """Newest memories for a user, without recording an access."""
        try:
            cursor = (
                self._collection.find({"userId": user_id})
                .sort([("createdAt", DESCENDING)])
                .limit(limit)
            )
            docs = await cursor.to_list(length=limit)
        except PyMongoError as e:
            logger.warning("Failed to list memories for user %s: %s", user_id, e)
            return []
        return [MemoryEntry.from_document(doc) for doc in docs]

    async def stats(self, user_id: str) -> MemoryStats:
        """Aggregate statistics; zeroed when empty or when storage fails."""
        pipeline = [
            {"$match": {"userId": user_id}},
            {
                "$group": {
                    "_id": None,
                    "totalMemories": {"$sum": 1},
                    "averageRelevance": {"$avg": "$relevanceScore"},
                    "oldestMemory": {"$min": "$createdAt"},
                    "newestMemory": {"$max": "$createdAt"},
                }
            },
        ]
        try:
            cursor = await self._collection.aggregate(pipeline)
            rows = await cursor.to_list(length=1)
        except PyMongoError as e:
            logger.warning("Failed to load memory stats for user %s: %s", user_id, e)
            return MemoryStats()

        if not rows:
            return MemoryStats()
        row = rows[0]
        return MemoryStats(
            total_memories=int(row.get("totalMemories", 0)),
            average_relevance=float(row.get("averageRelevance") or 0.0),
            oldest_memory=row.get("oldestMemory"),
            newest_memory=row.get("newestMemory"),
        )

    # -- Write ---------------------------------------------------------------

    async def add(
        self,
        user_id: str,
        content: str,
        conversation_context: Optional[dict[str, Any]] = None,
    ) -> str:
        """
        Store a memory and run a consolidation pass.

        Returns the new entry id. Raises StorageUnavailable if the insert
        fails; consolidation failures are only logged.
        """
        now = self._now()
        entry = MemoryEntry(
            id=str(uuid.uuid4()),
            user_id=user_id,
            content=content,
            created_at=now,
            last_accessed_at=now,
            keywords=extract_keywords(
                content,
                limit=self.config.keyword_limit,
                min_length=self.config.min_keyword_length,
            ),
            metadata=conversation_context or {},
        )

        try:
            await self._collection.insert_one(entry.to_document())
        except PyMongoError as e:
            raise StorageUnavailable(f"Failed to store memory: {e}") from e
        logger.debug("Stored memory %s for user %s: %s", entry.id, user_id, content[:80])

        try:
            await self.consolidate(user_id)
        except ConsolidationError as e:
            logger.warning("Memory consolidation failed for user %s: %s", user_id, e)

        return entry.id

    async def consolidate(self, user_id: str) -> int:
        """
        Bound a user's memory count.

        Above the threshold, delete entries that are low-scoring AND idle AND
        rarely accessed, then decay every remaining score. Returns the number
        of deleted entries.
        """
        config = self.config
        try:
            total = await self._collection.count_documents({"userId": user_id})
            if total <= config.consolidation_threshold:
                return 0

            idle_cutoff = self._now() - timedelta(days=config.prune_idle_days)
            result = await self._collection.delete_many({
                "userId": user_id,
                "relevanceScore": {"$lt": config.prune_relevance_below},
                "lastAccessedAt": {"$lt": idle_cutoff},
                "accessCount": {"$lt": config.prune_access_count_below},
            })
            await self._collection.update_many(
                {"userId": user_id},
                {"$mul": {"relevanceScore": config.decay_factor}},
            )
        except PyMongoError as e:
            raise ConsolidationError(str(e)) from e

        logger.info(
            "Consolidated memories for user %s: %d total, %d pruned",
            user_id,
            total,
            result.deleted_count,
        )
        return result.deleted_count
