"""
Record models for chained topics and messages.

Both are immutable: a value that has been folded into a digest must not change.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class TopicMetadata:
    """
    Topic declaration.

    Fields:
        name: Topic name (e.g., "/imu/data")
        type: Message type (e.g., "sensor_msgs/msg/Imu")
        serialization_format: Wire format of payloads (e.g., "cdr")
    """
    name: str
    type: str
    serialization_format: str

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "type": self.type,
            "serialization_format": self.serialization_format,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TopicMetadata":
        return cls(
            name=data["name"],
            type=data["type"],
            serialization_format=data["serialization_format"],
        )


@dataclass(frozen=True)
class SerializedMessage:
    """
    Serialized message bound for a topic.

    Fields:
        topic_name: Declared topic this message belongs to
        time_stamp: Receive time in nanoseconds
        serialized_data: Payload bytes exactly as persisted
    """
    topic_name: str
    time_stamp: int
    serialized_data: bytes
