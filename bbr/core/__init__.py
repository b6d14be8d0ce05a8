"""
Core chain primitives.

This module provides the foundational abstractions for tamper-evident storage:
- TopicMetadata / SerializedMessage: Records being chained
- Canonical: Unambiguous byte encoding for hashing
- Digest: Pure hash-composition functions
- Nonce: Unpredictable session seed
"""

from .models import TopicMetadata, SerializedMessage
from .canonical import (
    encode_field,
    encode_topic,
    encode_message,
    canonical_json_bytes,
    canonical_json_str,
)
from .digest import (
    DEFAULT_ALGORITHM,
    compute_topic_digest,
    compute_message_digest,
    compute_topic_nonce,
    digest_size,
)
from .nonce import create_nonce
from .errors import (
    BbrError,
    ConfigError,
    UnknownTopicError,
    TopicRemovalUnsupportedError,
    PersistenceError,
    PublicationError,
    DigestComputationError,
    IntegrityError,
    StorageOpenError,
)

__all__ = [
    "TopicMetadata",
    "SerializedMessage",
    "encode_field",
    "encode_topic",
    "encode_message",
    "canonical_json_bytes",
    "canonical_json_str",
    "DEFAULT_ALGORITHM",
    "compute_topic_digest",
    "compute_message_digest",
    "compute_topic_nonce",
    "digest_size",
    "create_nonce",
    "BbrError",
    "ConfigError",
    "UnknownTopicError",
    "TopicRemovalUnsupportedError",
    "PersistenceError",
    "PublicationError",
    "DigestComputationError",
    "IntegrityError",
    "StorageOpenError",
]
