"""
Tests for the digest engine.

Critical: digests must be deterministic and reproducible byte-for-byte.
"""

import hashlib
import struct

import pytest

from bbr.core.digest import (
    compute_message_digest,
    compute_topic_digest,
    compute_topic_nonce,
    digest_size,
)
from bbr.core.errors import DigestComputationError
from bbr.core.models import SerializedMessage, TopicMetadata
from bbr.core.nonce import create_nonce


def _enc(*fields: bytes) -> bytes:
    return b"".join(struct.pack(">Q", len(f)) + f for f in fields)


def _sha256(*parts: bytes) -> bytes:
    return hashlib.sha256(b"".join(parts)).digest()


TOPIC_A = TopicMetadata(name="A", type="T", serialization_format="F")
TOPIC_B = TopicMetadata(name="B", type="T2", serialization_format="F2")


def test_determinism():
    nonce = create_nonce()
    m = SerializedMessage(topic_name="A", time_stamp=5, serialized_data=b"payload")

    assert compute_topic_digest(nonce, TOPIC_A) == compute_topic_digest(nonce, TOPIC_A)
    d0 = compute_topic_digest(nonce, TOPIC_A)
    assert compute_message_digest(d0, m) == compute_message_digest(d0, m)
    assert len(d0) == 32


def test_reference_scenario():
    """Two topics, two messages, starting from an all-zero nonce."""
    nonce0 = b"\x00" * 32
    p1 = SerializedMessage(topic_name="A", time_stamp=100, serialized_data=b"P1")
    p2 = SerializedMessage(topic_name="A", time_stamp=200, serialized_data=b"P2")

    enc_a = _enc(b"A", b"T", b"F")
    digest0_a = _sha256(nonce0, enc_a)
    nonce1 = _sha256(digest0_a, enc_a)
    digest1_a = _sha256(digest0_a, _enc(struct.pack(">q", 100), b"P1"))
    digest2_a = _sha256(digest1_a, _enc(struct.pack(">q", 200), b"P2"))
    digest0_b = _sha256(nonce1, _enc(b"B", b"T2", b"F2"))

    assert compute_topic_digest(nonce0, TOPIC_A) == digest0_a
    assert compute_topic_nonce(digest0_a, TOPIC_A) == nonce1
    assert compute_message_digest(digest0_a, p1) == digest1_a
    assert compute_message_digest(digest1_a, p2) == digest2_a
    assert compute_topic_digest(nonce1, TOPIC_B) == digest0_b


def test_topic_nonce_differs_from_topic_digest():
    d0 = compute_topic_digest(b"\x00" * 32, TOPIC_A)
    assert compute_topic_nonce(d0, TOPIC_A) != d0


def test_alternate_algorithm():
    d0 = compute_topic_digest(b"\x00" * 32, TOPIC_A, algorithm="sha512")
    assert len(d0) == 64
    m = SerializedMessage(topic_name="A", time_stamp=1, serialized_data=b"x")
    assert len(compute_message_digest(d0, m, algorithm="sha512")) == 64


@pytest.mark.parametrize("algorithm", ["md5", "sha1", "sha224", "shake_256", "nope"])
def test_weak_or_unknown_algorithms_rejected(algorithm):
    with pytest.raises(DigestComputationError):
        digest_size(algorithm)


def test_wrong_width_previous_digest_rejected():
    m = SerializedMessage(topic_name="A", time_stamp=1, serialized_data=b"x")
    with pytest.raises(DigestComputationError):
        compute_message_digest(b"\x00" * 31, m)


def test_oversized_payload_rejected():
    m = SerializedMessage(topic_name="A", time_stamp=1, serialized_data=b"x" * 11)
    d0 = compute_topic_digest(b"\x00" * 32, TOPIC_A)

    with pytest.raises(DigestComputationError):
        compute_message_digest(d0, m, max_payload_bytes=10)
    assert compute_message_digest(d0, m, max_payload_bytes=11)


def test_nonce_is_random_and_sized():
    assert len(create_nonce()) == 32
    assert len(create_nonce(64)) == 64
    assert create_nonce() != create_nonce()
    with pytest.raises(ValueError):
        create_nonce(8)
