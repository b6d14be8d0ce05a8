"""
Digest engine: pure hash composition over the canonical encodings.

    topic digest:   H(nonce       || encode_topic(topic))
    message digest: H(prev_digest || encode_message(message))
    topic nonce:    H(digest      || encode_topic(topic))

The topic nonce links each topic declaration to the one before it, so all
declarations of a session form a single chain.
"""

import hashlib
from typing import Optional

from .canonical import encode_message, encode_topic
from .errors import DigestComputationError
from .models import SerializedMessage, TopicMetadata

DEFAULT_ALGORITHM = "sha256"
MIN_DIGEST_SIZE = 32


def digest_size(algorithm: str = DEFAULT_ALGORITHM) -> int:
    """
    Return digest width in bytes for a hashlib algorithm.

    Raises:
        DigestComputationError: If the algorithm is unknown, variable-length,
            or narrower than 256 bits
    """
    try:
        h = hashlib.new(algorithm)
    except (ValueError, TypeError) as ex:
        raise DigestComputationError(f"unsupported hash algorithm: {algorithm}") from ex
    if algorithm.startswith("shake"):
        raise DigestComputationError(f"variable-length hash not supported: {algorithm}")
    if h.digest_size < MIN_DIGEST_SIZE:
        raise DigestComputationError(
            f"hash algorithm {algorithm} is {h.digest_size * 8} bits, at least 256 required"
        )
    return h.digest_size


def _hash(prefix: bytes, body: bytes, algorithm: str) -> bytes:
    digest_size(algorithm)
    if not isinstance(prefix, (bytes, bytearray)):
        raise DigestComputationError(f"chain value must be bytes, got {type(prefix).__name__}")
    h = hashlib.new(algorithm)
    h.update(bytes(prefix))
    h.update(body)
    return h.digest()


def compute_topic_digest(
    nonce: bytes, topic: TopicMetadata, algorithm: str = DEFAULT_ALGORITHM
) -> bytes:
    """
    Compute the initial digest of a topic from its seed nonce.
    """
    return _hash(nonce, encode_topic(topic), algorithm)


def compute_message_digest(
    prev_digest: bytes,
    message: SerializedMessage,
    algorithm: str = DEFAULT_ALGORITHM,
    max_payload_bytes: Optional[int] = None,
) -> bytes:
    """
    Fold one message into a topic's running digest.

    Args:
        prev_digest: Current digest of the topic
        message: Message to fold
        algorithm: hashlib algorithm name
        max_payload_bytes: Reject payloads larger than this (None = unlimited)

    Raises:
        DigestComputationError: On malformed or oversized input
    """
    expected = digest_size(algorithm)
    if not isinstance(prev_digest, (bytes, bytearray)) or len(prev_digest) != expected:
        raise DigestComputationError(f"previous digest must be {expected} bytes")
    data = message.serialized_data
    if max_payload_bytes is not None and isinstance(data, (bytes, bytearray, memoryview)):
        if len(data) > max_payload_bytes:
            raise DigestComputationError(
                f"payload of {len(data)} bytes exceeds limit of {max_payload_bytes}"
            )
    return _hash(prev_digest, encode_message(message), algorithm)


def compute_topic_nonce(
    digest: bytes, topic: TopicMetadata, algorithm: str = DEFAULT_ALGORITHM
) -> bytes:
    """
    Derive the next global nonce from a topic's initial digest.
    """
    return _hash(digest, encode_topic(topic), algorithm)
