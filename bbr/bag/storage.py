"""
Bag storage: read/write adapter between a recorder and the chain.

A bag is a directory holding one SQLite database, a metadata.json written
on close, and (by default) a checkpoints.jsonl log of every published
checkpoint.
"""

import logging
import os
from enum import Enum
from typing import Iterator, List, Optional

from .. import metrics
from ..chain.manager import ChainManager
from ..chain.state import TopicChainState
from ..checkpoint.model import MessageCheckpoint
from ..checkpoint.publisher import CheckpointPublisher, FileCheckpointPublisher
from ..checkpoint.signer import SigningKey
from ..config import Settings
from ..core.errors import StorageOpenError
from ..core.models import SerializedMessage, TopicMetadata
from ..store.base import StoredMessage
from ..store.sql_store import SqlRecordStore
from .metadata import BagMetadata, load_metadata, write_metadata

logger = logging.getLogger(__name__)

CHECKPOINT_LOG_FILENAME = "checkpoints.jsonl"


class IOFlag(str, Enum):
    READ_ONLY = "read_only"
    READ_WRITE = "read_write"


def _directory_size(path: str) -> int:
    total = 0
    for root, _, files in os.walk(path):
        for name in files:
            total += os.path.getsize(os.path.join(root, name))
    return total


class BagStorage:
    """
    Tamper-evident bag storage.

    Write mode routes every topic declaration and message through a
    ChainManager. Read mode exposes stored messages in timestamp order.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        publisher: Optional[CheckpointPublisher] = None,
        nonce: Optional[bytes] = None,
        signing_key: Optional[SigningKey] = None,
    ) -> None:
        """
        Args:
            settings: Chain settings (default: from environment)
            publisher: Checkpoint sink (default: checkpoints.jsonl in the bag)
            nonce: Starting global nonce (default: random)
            signing_key: Signs the default checkpoint log (default: the key at
                BBR_SIGNING_KEY, or unsigned)
        """
        self.settings = settings or Settings.from_env()
        self._publisher = publisher
        self._nonce = nonce
        self._signing_key = signing_key
        self.uri: Optional[str] = None
        self.io_flag: Optional[IOFlag] = None
        self.database_name: Optional[str] = None
        self.hash_algorithm = self.settings.hash_algorithm
        self.store: Optional[SqlRecordStore] = None
        self.manager: Optional[ChainManager] = None
        self._cursor: Optional[Iterator[StoredMessage]] = None
        self._peeked: Optional[StoredMessage] = None

    def __enter__(self) -> "BagStorage":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def open(self, uri: str, io_flag: IOFlag = IOFlag.READ_WRITE) -> None:
        """
        Open a bag directory.

        Raises:
            StorageOpenError: Missing metadata or database when reading,
                existing database when writing, unreadable signing key
        """
        if io_flag == IOFlag.READ_ONLY:
            metadata = load_metadata(uri)
            if metadata is None:
                raise StorageOpenError(f"Failed to read from bag '{uri}': No metadata found.")
            if not metadata.relative_file_paths:
                raise StorageOpenError(
                    f"Failed to read from bag '{uri}': Missing database file path in metadata"
                )
            self.database_name = metadata.relative_file_paths[0]
            self.hash_algorithm = metadata.hash_algorithm
            database_path = os.path.join(uri, self.database_name)
            if not os.path.isfile(database_path):
                raise StorageOpenError(
                    f"Failed to read from bag '{uri}': File '{self.database_name}' does not exist."
                )
            self.store = SqlRecordStore.for_path(database_path, create=False)
        else:
            os.makedirs(uri, exist_ok=True)
            self.database_name = os.path.basename(os.path.normpath(uri)) + ".db3"
            database_path = os.path.join(uri, self.database_name)
            if os.path.exists(database_path):
                raise StorageOpenError(
                    f"Failed to open bag '{uri}' for writing: '{self.database_name}' already exists."
                )
            publisher = self._publisher
            if publisher is None:
                publisher = FileCheckpointPublisher(
                    os.path.join(uri, CHECKPOINT_LOG_FILENAME),
                    signing_key=self._load_signing_key(uri),
                )
            self.store = SqlRecordStore.for_path(database_path)
            metrics.start_metrics_server(self.settings.metrics_enabled, self.settings.metrics_port)
            self.manager = ChainManager(
                self.store, publisher, settings=self.settings, nonce=self._nonce
            )

        self.uri = uri
        self.io_flag = io_flag
        logger.info("Opened database '%s'.", uri)

    def _load_signing_key(self, uri: str) -> Optional[SigningKey]:
        if self._signing_key is not None:
            return self._signing_key
        path = self.settings.signing_key_path
        if not path:
            return None
        try:
            key = SigningKey.load_from_file(path)
        except (OSError, TypeError, ValueError) as ex:
            raise StorageOpenError(
                f"Failed to open bag '{uri}' for writing: cannot load signing key '{path}': {ex}"
            ) from ex
        logger.info("Signing checkpoints with key %s", key.get_pubkey_id())
        return key

    def _require_open(self) -> SqlRecordStore:
        if self.store is None:
            raise StorageOpenError("Bag is not open")
        return self.store

    def _require_writable(self) -> ChainManager:
        self._require_open()
        if self.manager is None:
            raise StorageOpenError(f"Bag '{self.uri}' is opened read-only")
        return self.manager

    def create_topic(self, topic: TopicMetadata) -> TopicChainState:
        return self._require_writable().declare_topic(topic)

    def remove_topic(self, topic: TopicMetadata) -> None:
        self._require_writable().remove_topic(topic.name)

    def write(self, message: SerializedMessage) -> MessageCheckpoint:
        return self._require_writable().append_message(message)

    def has_next(self) -> bool:
        store = self._require_open()
        if self._cursor is None:
            self._cursor = store.read_ordered()
        if self._peeked is None:
            self._peeked = next(self._cursor, None)
        return self._peeked is not None

    def read_next(self) -> SerializedMessage:
        """
        Next message in timestamp order.

        Raises:
            IndexError: When all messages have been read
        """
        if not self.has_next():
            raise IndexError("No more messages in bag")
        row, self._peeked = self._peeked, None
        return row.to_message()

    def get_all_topics_and_types(self) -> List[TopicMetadata]:
        return [t.topic for t in self._require_open().list_topics()]

    def get_metadata(self) -> BagMetadata:
        store = self._require_open()
        return BagMetadata.from_summary(
            store.summarize(),
            relative_file_paths=[self.database_name],
            hash_algorithm=self.hash_algorithm,
            bag_size=_directory_size(self.uri),
        )

    def close(self) -> None:
        """
        Close the bag; in write mode, write metadata.json first.
        """
        if self.store is None:
            return
        try:
            if self.manager is not None:
                path = write_metadata(self.uri, self.get_metadata())
                logger.info("Wrote metadata '%s'.", path)
                self.manager.publisher.close()
        finally:
            self.store.close()
            self.store = None
            self.manager = None
            self._cursor = None
            self._peeked = None
