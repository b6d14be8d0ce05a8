"""
Record stores for topics and messages.

This module provides:
- RecordStore: Abstract interface for durable persistence
- MemoryRecordStore: List-backed store
- SqlRecordStore: SQLAlchemy store using the bag database schema
"""

from .base import RecordStore, StoredTopic, StoredMessage, TopicSummary, BagSummary
from .memory_store import MemoryRecordStore
from .sql_store import SqlRecordStore

__all__ = [
    "RecordStore",
    "StoredTopic",
    "StoredMessage",
    "TopicSummary",
    "BagSummary",
    "MemoryRecordStore",
    "SqlRecordStore",
]
