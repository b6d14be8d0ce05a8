"""
Tests for the bag storage adapter.
"""

import json
import os
import tempfile

import pytest

from bbr.bag import CHECKPOINT_LOG_FILENAME, METADATA_FILENAME, BagStorage, IOFlag, load_metadata
from bbr.checkpoint import VerifyingKey, ensure_keypair, load_checkpoints
from bbr.config import Settings
from bbr.core.errors import StorageOpenError, TopicRemovalUnsupportedError, UnknownTopicError
from bbr.tests.conftest import ZERO_NONCE, imu_topic, msg
from bbr.verify import verify_store


def _record_bag(uri: str) -> None:
    with BagStorage(settings=Settings(), nonce=ZERO_NONCE) as storage:
        storage.open(uri, IOFlag.READ_WRITE)
        storage.create_topic(imu_topic("/imu"))
        storage.create_topic(imu_topic("/gps"))
        storage.write(msg("/imu", 300, b"i2"))
        storage.write(msg("/gps", 200, b"g1"))
        storage.write(msg("/imu", 100, b"i1"))


def test_write_then_read_back_in_timestamp_order():
    with tempfile.TemporaryDirectory() as tmpdir:
        uri = os.path.join(tmpdir, "run1")
        _record_bag(uri)

        assert os.path.exists(os.path.join(uri, "run1.db3"))
        assert os.path.exists(os.path.join(uri, METADATA_FILENAME))

        with BagStorage(settings=Settings()) as storage:
            storage.open(uri, IOFlag.READ_ONLY)
            assert [t.name for t in storage.get_all_topics_and_types()] == ["/imu", "/gps"]

            read = []
            while storage.has_next():
                read.append(storage.read_next())
            assert [(m.topic_name, m.time_stamp, m.serialized_data) for m in read] == [
                ("/imu", 100, b"i1"),
                ("/gps", 200, b"g1"),
                ("/imu", 300, b"i2"),
            ]
            with pytest.raises(IndexError):
                storage.read_next()


def test_metadata_file_contents():
    with tempfile.TemporaryDirectory() as tmpdir:
        uri = os.path.join(tmpdir, "run1")
        _record_bag(uri)

        metadata = load_metadata(uri)
        assert metadata.storage_identifier == "bbr"
        assert metadata.relative_file_paths == ["run1.db3"]
        assert metadata.hash_algorithm == "sha256"
        assert metadata.message_count == 3
        assert metadata.starting_time == 100
        assert metadata.duration == 200
        assert metadata.bag_size > 0
        counts = {
            t["topic_metadata"]["name"]: t["message_count"]
            for t in metadata.topics_with_message_count
        }
        assert counts == {"/imu": 2, "/gps": 1}


def test_checkpoint_log_anchors_bag():
    with tempfile.TemporaryDirectory() as tmpdir:
        uri = os.path.join(tmpdir, "run1")
        _record_bag(uri)

        checkpoints = load_checkpoints(os.path.join(uri, CHECKPOINT_LOG_FILENAME))
        assert [cp.kind for cp in checkpoints] == ["topic", "topic", "message", "message", "message"]

        with BagStorage(settings=Settings()) as storage:
            storage.open(uri, IOFlag.READ_ONLY)
            report = verify_store(storage.store, checkpoints=checkpoints, nonce0=ZERO_NONCE)
            assert report.valid, report.all_errors()


def test_write_errors_surface():
    with tempfile.TemporaryDirectory() as tmpdir:
        with BagStorage(settings=Settings()) as storage:
            storage.open(os.path.join(tmpdir, "bag"), IOFlag.READ_WRITE)
            with pytest.raises(UnknownTopicError):
                storage.write(msg("/imu", 1, b"x"))
            storage.create_topic(imu_topic())
            with pytest.raises(TopicRemovalUnsupportedError):
                storage.remove_topic(imu_topic())


def test_read_only_bag_rejects_writes():
    with tempfile.TemporaryDirectory() as tmpdir:
        uri = os.path.join(tmpdir, "run1")
        _record_bag(uri)
        with BagStorage(settings=Settings()) as storage:
            storage.open(uri, IOFlag.READ_ONLY)
            with pytest.raises(StorageOpenError):
                storage.create_topic(imu_topic("/new"))


def test_open_errors():
    with tempfile.TemporaryDirectory() as tmpdir:
        storage = BagStorage(settings=Settings())
        with pytest.raises(StorageOpenError, match="No metadata found"):
            storage.open(os.path.join(tmpdir, "missing"), IOFlag.READ_ONLY)

        uri = os.path.join(tmpdir, "nodb")
        os.makedirs(uri)
        with open(os.path.join(uri, METADATA_FILENAME), "w") as f:
            json.dump({"relative_file_paths": ["nodb.db3"]}, f)
        with pytest.raises(StorageOpenError, match="does not exist"):
            storage.open(uri, IOFlag.READ_ONLY)

        with open(os.path.join(uri, METADATA_FILENAME), "w") as f:
            json.dump({"relative_file_paths": []}, f)
        with pytest.raises(StorageOpenError, match="Missing database file path"):
            storage.open(uri, IOFlag.READ_ONLY)

        recorded = os.path.join(tmpdir, "run1")
        _record_bag(recorded)
        with pytest.raises(StorageOpenError, match="already exists"):
            storage.open(recorded, IOFlag.READ_WRITE)


def test_unopened_bag_rejects_calls():
    with pytest.raises(StorageOpenError):
        BagStorage(settings=Settings()).has_next()


def test_signing_key_from_settings_signs_checkpoint_log():
    with tempfile.TemporaryDirectory() as tmpdir:
        private_path, public_path = ensure_keypair(os.path.join(tmpdir, "keys", "recorder"))
        uri = os.path.join(tmpdir, "run1")
        with BagStorage(settings=Settings(signing_key_path=private_path)) as storage:
            storage.open(uri, IOFlag.READ_WRITE)
            storage.create_topic(imu_topic())
            storage.write(msg("/imu", 1, b"x"))

        log = os.path.join(uri, CHECKPOINT_LOG_FILENAME)
        checkpoints = load_checkpoints(log, VerifyingKey.load_from_file(public_path))
        assert [cp.kind for cp in checkpoints] == ["topic", "message"]


def test_unreadable_signing_key_rejected_before_recording():
    with tempfile.TemporaryDirectory() as tmpdir:
        uri = os.path.join(tmpdir, "run1")
        settings = Settings(signing_key_path=os.path.join(tmpdir, "missing_key"))
        with pytest.raises(StorageOpenError, match="signing key"):
            BagStorage(settings=settings).open(uri, IOFlag.READ_WRITE)
        assert not os.path.exists(os.path.join(uri, "run1.db3"))
