"""
Connect-once MongoDB handle.

The async PyMongo client is created lazily on first use and reused for the
lifetime of the connection object, which is passed explicitly to whatever
needs it.
"""

import logging

from pymongo import AsyncMongoClient

from .config import MemoryConfig

logger = logging.getLogger(__name__)


class MongoConnection:
    """Owns one async MongoDB client and hands out the memory collection."""

    def __init__(self, config: MemoryConfig):
        self.config = config
        self._client = None

    @property
    def client(self) -> AsyncMongoClient:
        if self._client is None:
            self._client = AsyncMongoClient(
                self.config.mongodb_uri,
                tz_aware=True,
                serverSelectionTimeoutMS=self.config.server_selection_timeout_ms,
            )
            logger.info("Created MongoDB client for database %s", self.config.database_name)
        return self._client

    def collection(self):
        """Return the configured memory collection."""
        return self.client[self.config.database_name][self.config.collection_name]

    async def close(self):
        if self._client is not None:
            await self._client.close()
            self._client = None
