"""
Per-topic chain state.
"""

from dataclasses import dataclass

from ..core.models import TopicMetadata


@dataclass
class TopicChainState:
    """
    Mutable chain state of one declared topic.

    Fields:
        id: Record store id, assigned once at declaration
        topic: Metadata the topic was declared with
        seed_nonce: Global nonce captured at declaration (never changes)
        digest: Running digest, advanced by every append
        message_count: Messages folded into digest this session
    """
    id: int
    topic: TopicMetadata
    seed_nonce: bytes
    digest: bytes
    message_count: int = 0

    @property
    def name(self) -> str:
        return self.topic.name
