"""
RecordStore abstract interface.

Defines the contract for durable topic/message persistence. Stores keep
chain fields as opaque bytes and never check them.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

from ..core.models import SerializedMessage, TopicMetadata


@dataclass(frozen=True)
class StoredTopic:
    """
    Persisted topic row.

    Fields:
        id: Store-assigned topic id (declaration order)
        topic: Topic metadata
        seed_nonce: Global nonce the topic was seeded with
        digest: Initial topic digest (digest0)
    """
    id: int
    topic: TopicMetadata
    seed_nonce: bytes
    digest: bytes

    @property
    def name(self) -> str:
        return self.topic.name


@dataclass(frozen=True)
class StoredMessage:
    """
    Persisted message row.

    Fields:
        id: Store-assigned message id (insertion order)
        topic_id: Owning topic id
        topic_name: Owning topic name
        time_stamp: Message timestamp (ns)
        data: Payload bytes
        digest: Topic digest after this message
    """
    id: int
    topic_id: int
    topic_name: str
    time_stamp: int
    data: bytes
    digest: bytes

    def to_message(self) -> SerializedMessage:
        return SerializedMessage(
            topic_name=self.topic_name,
            time_stamp=self.time_stamp,
            serialized_data=self.data,
        )


@dataclass(frozen=True)
class TopicSummary:
    topic: TopicMetadata
    message_count: int


@dataclass(frozen=True)
class BagSummary:
    """
    Per-topic counts and time bounds of a store.

    starting_time and ending_time are 0 when the store holds no messages.
    """
    topics_with_message_count: List[TopicSummary] = field(default_factory=list)
    message_count: int = 0
    starting_time: int = 0
    ending_time: int = 0

    @property
    def duration(self) -> int:
        return self.ending_time - self.starting_time


class RecordStore(ABC):
    """
    Abstract record store.

    All implementations must guarantee:
    - Append-only (no updates, no deletes)
    - Ids increase in insertion order
    - Writes raise PersistenceError on failure and leave nothing behind
    """

    @abstractmethod
    def create_topic(self, topic: TopicMetadata, seed_nonce: bytes, digest: bytes) -> int:
        """
        Persist a topic declaration.

        Returns:
            Assigned topic id
        """
        ...

    @abstractmethod
    def write_message(self, topic_id: int, message: SerializedMessage, digest: bytes) -> int:
        """
        Persist a message with its chained digest.

        Returns:
            Assigned message id
        """
        ...

    @abstractmethod
    def list_topics(self) -> List[StoredTopic]:
        """Return all topics ordered by id."""
        ...

    @abstractmethod
    def read_ordered(self) -> Iterator[StoredMessage]:
        """Yield all messages ordered by timestamp, then id (replay order)."""
        ...

    @abstractmethod
    def read_topic_chain(self, topic_name: str) -> List[StoredMessage]:
        """Return one topic's messages in insertion (chain) order."""
        ...

    def get_topic(self, topic_name: str) -> Optional[StoredTopic]:
        for stored in self.list_topics():
            if stored.name == topic_name:
                return stored
        return None

    def summarize(self) -> BagSummary:
        """
        Topic list, per-topic counts and time bounds.

        Implementations may override with a cheaper query.
        """
        counts: Dict[int, int] = {}
        total = 0
        min_time: Optional[int] = None
        max_time: Optional[int] = None
        for msg in self.read_ordered():
            counts[msg.topic_id] = counts.get(msg.topic_id, 0) + 1
            total += 1
            min_time = msg.time_stamp if min_time is None else min(min_time, msg.time_stamp)
            max_time = msg.time_stamp if max_time is None else max(max_time, msg.time_stamp)

        return BagSummary(
            topics_with_message_count=[
                TopicSummary(topic=t.topic, message_count=counts.get(t.id, 0))
                for t in self.list_topics()
            ],
            message_count=total,
            starting_time=min_time or 0,
            ending_time=max_time or 0,
        )

    def close(self) -> None:
        """Release resources. Default does nothing."""
        return None
