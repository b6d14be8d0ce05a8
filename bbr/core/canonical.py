"""
Canonical serialization for deterministic hashing.

Digest input is built from length-prefixed fields so that no two distinct
records share an encoding: ("ab", "c") and ("a", "bc") differ on the wire.

Canonical JSON is used for everything that is hashed or signed outside the
digest chain (checkpoint envelopes, metadata files).
"""

import json
import struct
from typing import Any

from .errors import DigestComputationError
from .models import SerializedMessage, TopicMetadata

_LENGTH = struct.Struct(">Q")
_TIMESTAMP = struct.Struct(">q")


def encode_field(value: bytes) -> bytes:
    """
    Encode one field as an 8-byte big-endian length followed by its bytes.

    Raises:
        DigestComputationError: If value is not bytes-like
    """
    if not isinstance(value, (bytes, bytearray, memoryview)):
        raise DigestComputationError(
            f"cannot encode field of type {type(value).__name__}, expected bytes"
        )
    raw = bytes(value)
    return _LENGTH.pack(len(raw)) + raw


def _encode_text(value: str, field_name: str) -> bytes:
    if not isinstance(value, str):
        raise DigestComputationError(f"topic {field_name} must be str, got {type(value).__name__}")
    return encode_field(value.encode("utf-8"))


def encode_topic(topic: TopicMetadata) -> bytes:
    """
    Encode topic metadata: name, type, serialization format.
    """
    return (
        _encode_text(topic.name, "name")
        + _encode_text(topic.type, "type")
        + _encode_text(topic.serialization_format, "serialization_format")
    )


def encode_message(message: SerializedMessage) -> bytes:
    """
    Encode a message: timestamp (signed 64-bit, nanoseconds) then payload.

    Every persisted field of the message row except the topic reference is
    covered; the topic is bound through the running digest it is folded into.
    """
    ts = message.time_stamp
    if isinstance(ts, bool) or not isinstance(ts, int):
        raise DigestComputationError(f"message timestamp must be int, got {type(ts).__name__}")
    try:
        ts_bytes = _TIMESTAMP.pack(ts)
    except struct.error as ex:
        raise DigestComputationError(f"message timestamp out of range: {ts}") from ex
    return encode_field(ts_bytes) + encode_field(message.serialized_data)


def canonicalize(obj: Any) -> Any:
    """
    Convert arbitrary nested dict/list to canonical form.

    Rules:
    - dict keys sorted alphabetically
    - tuples converted to lists
    - bytes converted to lowercase hex
    """
    if isinstance(obj, dict):
        return {k: canonicalize(obj[k]) for k in sorted(obj.keys())}
    if isinstance(obj, (list, tuple)):
        return [canonicalize(x) for x in obj]
    if isinstance(obj, (bytes, bytearray)):
        return bytes(obj).hex()
    return obj


def canonical_json_bytes(obj: Any) -> bytes:
    """
    Deterministic JSON bytes for hashing and signing.

    Returns:
        UTF-8 encoded JSON bytes with sorted keys and no whitespace
    """
    canon = canonicalize(obj)
    s = json.dumps(canon, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return s.encode("utf-8")


def canonical_json_str(obj: Any) -> str:
    """
    Deterministic JSON string (for display or storage).
    """
    return canonical_json_bytes(obj).decode("utf-8")
