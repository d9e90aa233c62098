"""
Memory store exceptions.
"""


class MemoryStoreError(Exception):
    """Base class for memory store failures."""


class StorageUnavailable(MemoryStoreError):
    """The backing database is unreachable or a query failed."""


class ConsolidationError(MemoryStoreError):
    """The post-insert consolidation pass failed."""
