"""
In-memory record store.

Useful for tests and for verifying chains without a database.
"""

import threading
from typing import Iterator, List

from ..core.errors import PersistenceError
from ..core.models import SerializedMessage, TopicMetadata
from .base import RecordStore, StoredMessage, StoredTopic


class MemoryRecordStore(RecordStore):
    """
    Record store backed by two Python lists.

    Ids start at 1, like SQLite rowids.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.topics: List[StoredTopic] = []
        self.messages: List[StoredMessage] = []

    def create_topic(self, topic: TopicMetadata, seed_nonce: bytes, digest: bytes) -> int:
        with self._lock:
            topic_id = len(self.topics) + 1
            self.topics.append(
                StoredTopic(id=topic_id, topic=topic, seed_nonce=bytes(seed_nonce), digest=bytes(digest))
            )
            return topic_id

    def write_message(self, topic_id: int, message: SerializedMessage, digest: bytes) -> int:
        with self._lock:
            if not 1 <= topic_id <= len(self.topics):
                raise PersistenceError(f"no topic with id {topic_id}")
            message_id = len(self.messages) + 1
            self.messages.append(
                StoredMessage(
                    id=message_id,
                    topic_id=topic_id,
                    topic_name=self.topics[topic_id - 1].name,
                    time_stamp=message.time_stamp,
                    data=bytes(message.serialized_data),
                    digest=bytes(digest),
                )
            )
            return message_id

    def list_topics(self) -> List[StoredTopic]:
        with self._lock:
            return list(self.topics)

    def read_ordered(self) -> Iterator[StoredMessage]:
        with self._lock:
            snapshot = sorted(self.messages, key=lambda m: (m.time_stamp, m.id))
        return iter(snapshot)

    def read_topic_chain(self, topic_name: str) -> List[StoredMessage]:
        with self._lock:
            chain = [m for m in self.messages if m.topic_name == topic_name]
        return sorted(chain, key=lambda m: m.id)
