"""Data models for long-term memory entries."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional


@dataclass
class MemoryEntry:
    """A persisted memory, stored as a camelCase document."""

    id: str
    user_id: str
    content: str
    created_at: datetime
    last_accessed_at: datetime
    keywords: list[str] = field(default_factory=list)
    relevance_score: float = 1.0
    access_count: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_document(self) -> dict:
        doc = {
            "id": self.id,
            "userId": self.user_id,
            "content": self.content,
            "keywords": list(self.keywords),
            "relevanceScore": self.relevance_score,
            "createdAt": self.created_at,
            "lastAccessedAt": self.last_accessed_at,
            "accessCount": self.access_count,
        }
        if self.metadata:
            doc["conversationContext"] = self.metadata
        return doc

    @classmethod
    def from_document(cls, doc: dict) -> "MemoryEntry":
        created_at = doc.get("createdAt")
        return cls(
            id=str(doc.get("id") or doc.get("_id", "")),
            user_id=doc.get("userId", ""),
            content=doc.get("content", ""),
            created_at=created_at,
            last_accessed_at=doc.get("lastAccessedAt") or created_at,
            keywords=list(doc.get("keywords") or []),
            relevance_score=float(doc.get("relevanceScore", 1.0)),
            access_count=int(doc.get("accessCount", 0)),
            metadata=doc.get("conversationContext") or {},
        )


@dataclass
class MemoryStats:
    """Aggregate view of one user's memories."""

    total_memories: int = 0
    average_relevance: float = 0.0
    oldest_memory: Optional[datetime] = None
    newest_memory: Optional[datetime] = None
