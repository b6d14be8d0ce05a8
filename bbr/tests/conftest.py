"""Shared fixtures: deterministic settings, stores and publishers."""

import pytest

from bbr.chain import ChainManager
from bbr.checkpoint import MemoryCheckpointPublisher
from bbr.config import Settings
from bbr.core.models import SerializedMessage, TopicMetadata
from bbr.store import MemoryRecordStore

ZERO_NONCE = b"\x00" * 32


@pytest.fixture()
def settings() -> Settings:
    return Settings()


@pytest.fixture()
def store() -> MemoryRecordStore:
    return MemoryRecordStore()


@pytest.fixture()
def publisher() -> MemoryCheckpointPublisher:
    return MemoryCheckpointPublisher()


@pytest.fixture()
def manager(store, publisher, settings) -> ChainManager:
    return ChainManager(store, publisher, settings=settings, nonce=ZERO_NONCE)


def imu_topic(name: str = "/imu") -> TopicMetadata:
    return TopicMetadata(name=name, type="sensor_msgs/msg/Imu", serialization_format="cdr")


def msg(topic: str, ts: int, data: bytes) -> SerializedMessage:
    return SerializedMessage(topic_name=topic, time_stamp=ts, serialized_data=data)
