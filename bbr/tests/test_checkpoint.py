"""
Tests for checkpoint publication and signing.
"""

import json
import os
import tempfile

import pytest

from bbr.checkpoint import (
    FileCheckpointPublisher,
    MessageCheckpoint,
    SigningKey,
    TopicCheckpoint,
    VerifyingKey,
    checkpoint_from_dict,
    ensure_keypair,
    load_checkpoints,
)
from bbr.core.errors import IntegrityError, PublicationError
from bbr.tests.conftest import imu_topic

TOPIC_CP = TopicCheckpoint(digest=b"\x01" * 32, nonce=b"\x00" * 32, topic=imu_topic(), topic_id=1)
MESSAGE_CP = MessageCheckpoint(
    digest=b"\x02" * 32,
    nonce=b"\x00" * 32,
    topic_name="/imu",
    topic_id=1,
    message_id=1,
    time_stamp=123,
    payload_size=4,
)


def test_checkpoint_dict_roundtrip():
    assert checkpoint_from_dict(TOPIC_CP.to_dict()) == TOPIC_CP
    assert checkpoint_from_dict(MESSAGE_CP.to_dict()) == MESSAGE_CP
    with pytest.raises(ValueError):
        checkpoint_from_dict({"kind": "other"})


def test_file_publisher_appends_in_order():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = os.path.join(tmpdir, "cp", "checkpoints.jsonl")
        publisher = FileCheckpointPublisher(path)
        publisher.publish(TOPIC_CP)
        publisher.publish(MESSAGE_CP)

        assert load_checkpoints(path) == [TOPIC_CP, MESSAGE_CP]


def test_signed_log_verifies():
    signing_key = SigningKey.generate()
    with tempfile.TemporaryDirectory() as tmpdir:
        path = os.path.join(tmpdir, "checkpoints.jsonl")
        publisher = FileCheckpointPublisher(path, signing_key=signing_key)
        publisher.publish(TOPIC_CP)
        publisher.publish(MESSAGE_CP)

        verifying_key = VerifyingKey.from_signing_key(signing_key)
        assert load_checkpoints(path, verifying_key) == [TOPIC_CP, MESSAGE_CP]


def test_tampered_signed_log_rejected():
    signing_key = SigningKey.generate()
    with tempfile.TemporaryDirectory() as tmpdir:
        path = os.path.join(tmpdir, "checkpoints.jsonl")
        FileCheckpointPublisher(path, signing_key=signing_key).publish(MESSAGE_CP)

        with open(path) as f:
            rec = json.loads(f.readline())
        rec["checkpoint"]["digest"] = "03" * 32
        with open(path, "w") as f:
            f.write(json.dumps(rec) + "\n")

        with pytest.raises(IntegrityError, match="invalid signature"):
            load_checkpoints(path, VerifyingKey.from_signing_key(signing_key))


def test_wrong_key_rejected():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = os.path.join(tmpdir, "checkpoints.jsonl")
        FileCheckpointPublisher(path, signing_key=SigningKey.generate()).publish(TOPIC_CP)

        other = VerifyingKey.from_signing_key(SigningKey.generate())
        with pytest.raises(IntegrityError, match="public key ID mismatch"):
            load_checkpoints(path, other)


def test_unsigned_log_rejected_when_key_given():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = os.path.join(tmpdir, "checkpoints.jsonl")
        FileCheckpointPublisher(path).publish(TOPIC_CP)

        with pytest.raises(IntegrityError):
            load_checkpoints(path, VerifyingKey.from_signing_key(SigningKey.generate()))


def test_malformed_line_rejected():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = os.path.join(tmpdir, "checkpoints.jsonl")
        with open(path, "w") as f:
            f.write("{not json\n")
        with pytest.raises(IntegrityError, match="malformed"):
            load_checkpoints(path)


def test_unwritable_log_raises_publication_error():
    with tempfile.TemporaryDirectory() as tmpdir:
        publisher = FileCheckpointPublisher(os.path.join(tmpdir, "checkpoints.jsonl"))
        publisher.path = tmpdir  # a directory cannot be opened for append
        with pytest.raises(PublicationError):
            publisher.publish(TOPIC_CP)


def test_keypair_roundtrip():
    with tempfile.TemporaryDirectory() as tmpdir:
        private_path, public_path = ensure_keypair(os.path.join(tmpdir, "keys", "bbr"))
        signing_key = SigningKey.load_from_file(private_path)
        verifying_key = VerifyingKey.load_from_file(public_path)

        assert signing_key.get_pubkey_id() == verifying_key.get_pubkey_id()
        signature = signing_key.sign_base64(b"payload")
        assert verifying_key.verify_base64(b"payload", signature)
        assert not verifying_key.verify_base64(b"other", signature)
        assert not verifying_key.verify_base64(b"payload", "not base64!")

        # existing keys are kept
        assert ensure_keypair(private_path) == (private_path, public_path)
        assert SigningKey.load_from_file(private_path).get_pubkey_id() == signing_key.get_pubkey_id()


def test_non_string_signature_rejected():
    signing_key = SigningKey.generate()
    verifying_key = VerifyingKey.from_signing_key(signing_key)
    with tempfile.TemporaryDirectory() as tmpdir:
        path = os.path.join(tmpdir, "checkpoints.jsonl")
        FileCheckpointPublisher(path, signing_key=signing_key).publish(MESSAGE_CP)

        with open(path) as f:
            rec = json.loads(f.readline())
        rec["signature"] = 12345
        with open(path, "w") as f:
            f.write(json.dumps(rec) + "\n")

        with pytest.raises(IntegrityError, match="missing signature"):
            load_checkpoints(path, verifying_key)
        assert not verifying_key.verify_base64(b"payload", 12345)


def test_failed_append_leaves_log_readable(monkeypatch):
    with tempfile.TemporaryDirectory() as tmpdir:
        path = os.path.join(tmpdir, "checkpoints.jsonl")
        publisher = FileCheckpointPublisher(path)
        publisher.publish(TOPIC_CP)

        def no_space(fd):
            raise OSError(28, "No space left on device")

        monkeypatch.setattr(os, "fsync", no_space)
        with pytest.raises(PublicationError):
            publisher.publish(MESSAGE_CP)
        monkeypatch.undo()

        assert load_checkpoints(path) == [TOPIC_CP]
        publisher.publish(MESSAGE_CP)
        assert load_checkpoints(path) == [TOPIC_CP, MESSAGE_CP]
