"""
Checkpoint model for out-of-band anchoring of chain state.

A checkpoint is emitted for every topic declaration and every message
append, in commit order. Each carries:
- The digest just committed
- The nonce binding the topic into the global declaration chain
- A reference to the record that produced it
"""

from dataclasses import dataclass
from typing import Any, Dict, Union

from ..core.canonical import canonical_json_bytes
from ..core.models import TopicMetadata


@dataclass(frozen=True)
class TopicCheckpoint:
    """
    Emitted once per topic declaration.

    Fields:
        digest: Initial topic digest (digest0)
        nonce: Global nonce the topic was seeded with
        topic: Declared topic metadata
        topic_id: Record store id of the topic
    """
    digest: bytes
    nonce: bytes
    topic: TopicMetadata
    topic_id: int

    kind = "topic"

    @property
    def topic_name(self) -> str:
        return self.topic.name

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "digest": self.digest.hex(),
            "nonce": self.nonce.hex(),
            "topic_id": self.topic_id,
            "topic": self.topic.to_dict(),
        }


@dataclass(frozen=True)
class MessageCheckpoint:
    """
    Emitted once per message append.

    Fields:
        digest: Topic digest after folding the message
        nonce: Seed nonce of the message's topic
        topic_name: Topic the message was appended to
        topic_id: Record store id of the topic
        message_id: Record store id of the message
        time_stamp: Message timestamp (ns)
        payload_size: Length of the persisted payload
    """
    digest: bytes
    nonce: bytes
    topic_name: str
    topic_id: int
    message_id: int
    time_stamp: int
    payload_size: int

    kind = "message"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "digest": self.digest.hex(),
            "nonce": self.nonce.hex(),
            "topic_name": self.topic_name,
            "topic_id": self.topic_id,
            "message_id": self.message_id,
            "time_stamp": self.time_stamp,
            "payload_size": self.payload_size,
        }


Checkpoint = Union[TopicCheckpoint, MessageCheckpoint]


def checkpoint_from_dict(data: Dict[str, Any]) -> Checkpoint:
    """
    Deserialize a checkpoint written by to_dict().

    Raises:
        ValueError: If kind is unknown
    """
    kind = data.get("kind")
    if kind == TopicCheckpoint.kind:
        return TopicCheckpoint(
            digest=bytes.fromhex(data["digest"]),
            nonce=bytes.fromhex(data["nonce"]),
            topic=TopicMetadata.from_dict(data["topic"]),
            topic_id=data["topic_id"],
        )
    if kind == MessageCheckpoint.kind:
        return MessageCheckpoint(
            digest=bytes.fromhex(data["digest"]),
            nonce=bytes.fromhex(data["nonce"]),
            topic_name=data["topic_name"],
            topic_id=data["topic_id"],
            message_id=data["message_id"],
            time_stamp=data["time_stamp"],
            payload_size=data["payload_size"],
        )
    raise ValueError(f"Unknown checkpoint kind: {kind}")


def signing_payload(checkpoint: Checkpoint) -> bytes:
    """Canonical bytes that get signed for a checkpoint."""
    return canonical_json_bytes(checkpoint.to_dict())
