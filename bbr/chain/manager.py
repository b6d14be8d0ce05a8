"""
Chain manager: owns the global nonce and every topic's running digest.

Locking:
- One declaration lock serializes topic declarations and global nonce reads.
- One lock per topic serializes appends to that topic.
- One commit lock spans persist + in-memory commit + publish, so checkpoints
  leave in the same order writes are committed.

Lock order is declaration/topic lock, then commit lock.

Persistence is the commit point: the in-memory chain only advances after
the record store accepted the write. A publication failure is raised after
the commit, with memory and durable state in agreement.
"""

import logging
import threading
from dataclasses import replace
from typing import Callable, Dict, Optional, TypeVar

from .. import metrics
from ..checkpoint.model import Checkpoint, MessageCheckpoint, TopicCheckpoint
from ..checkpoint.publisher import CheckpointPublisher, NullCheckpointPublisher
from ..config import Settings
from ..core.digest import compute_message_digest, compute_topic_digest, compute_topic_nonce
from ..core.errors import (
    BbrError,
    DigestComputationError,
    PersistenceError,
    PublicationError,
    TopicRemovalUnsupportedError,
    UnknownTopicError,
)
from ..core.models import SerializedMessage, TopicMetadata
from ..core.nonce import create_nonce
from ..logging_config import get_logger
from ..store.base import RecordStore
from .state import TopicChainState

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ChainManager:
    """
    Hash-chains topic declarations and message appends.

    Every declaration consumes the global nonce and advances it, so all
    topics of a session hang off one chain. Every append folds the message
    into its topic's running digest.
    """

    def __init__(
        self,
        store: RecordStore,
        publisher: Optional[CheckpointPublisher] = None,
        settings: Optional[Settings] = None,
        nonce: Optional[bytes] = None,
    ) -> None:
        """
        Args:
            store: Durable record store
            publisher: Checkpoint sink (default: discard)
            settings: Hash/nonce/payload settings (default: from environment)
            nonce: Starting global nonce (default: fresh random nonce)
        """
        self.settings = settings or Settings.from_env()
        self.store = store
        self.publisher = publisher or NullCheckpointPublisher()
        self._nonce = bytes(nonce) if nonce is not None else create_nonce(self.settings.nonce_bytes)
        self._declare_lock = threading.Lock()
        self._commit_lock = threading.Lock()
        self._topics: Dict[str, TopicChainState] = {}
        self._topic_locks: Dict[str, threading.Lock] = {}

    @property
    def algorithm(self) -> str:
        return self.settings.hash_algorithm

    @property
    def nonce(self) -> bytes:
        """Current global nonce (the seed of the next declared topic)."""
        with self._declare_lock:
            return self._nonce

    def get_topic_state(self, topic_name: str) -> Optional[TopicChainState]:
        """Return a copy of a topic's chain state, or None if undeclared."""
        state = self._topics.get(topic_name)
        if state is None:
            return None
        lock = self._topic_locks[topic_name]
        with lock:
            return replace(state)

    def topics(self) -> Dict[str, TopicChainState]:
        """Copies of all topic states, in declaration order."""
        with self._declare_lock:
            names = list(self._topics)
        return {name: self.get_topic_state(name) for name in names}

    def declare_topic(self, topic: TopicMetadata) -> TopicChainState:
        """
        Add a topic to the chain.

        Declaring an already known name returns its current state without
        touching the chain or publishing anything.

        Raises:
            DigestComputationError: Malformed metadata
            PersistenceError: Record store rejected the topic
            PublicationError: Topic committed but checkpoint not published
        """
        log = get_logger(__name__, topic=topic.name)
        with self._declare_lock:
            existing = self._topics.get(topic.name)
            if existing is not None:
                if existing.topic != topic:
                    log.warning(
                        "Topic already declared with different metadata, keeping original"
                    )
                return self.get_topic_state(topic.name)

            seed_nonce = self._nonce
            try:
                digest = compute_topic_digest(seed_nonce, topic, self.algorithm)
                next_nonce = compute_topic_nonce(digest, topic, self.algorithm)
            except DigestComputationError:
                metrics.track_failure("digest")
                raise

            with self._commit_lock:
                topic_id = self._persist(
                    log, lambda: self.store.create_topic(topic, seed_nonce, digest)
                )
                state = TopicChainState(
                    id=topic_id, topic=topic, seed_nonce=seed_nonce, digest=digest
                )
                self._topic_locks[topic.name] = threading.Lock()
                self._topics[topic.name] = state
                self._nonce = next_nonce
                metrics.track_topic()
                log.info("Topic declared with id %d", topic_id)

                self._publish(
                    log,
                    TopicCheckpoint(digest=digest, nonce=seed_nonce, topic=topic, topic_id=topic_id),
                )
            return replace(state)

    def append_message(self, message: SerializedMessage) -> MessageCheckpoint:
        """
        Fold a message into its topic's chain and persist it.

        Returns:
            The checkpoint emitted for the message

        Raises:
            UnknownTopicError: Topic was never declared (nothing changes)
            DigestComputationError: Malformed or oversized message (nothing changes)
            PersistenceError: Record store rejected the message (nothing changes)
            PublicationError: Message committed but checkpoint not published
        """
        log = get_logger(__name__, topic=message.topic_name)
        state = self._topics.get(message.topic_name)
        if state is None:
            metrics.track_failure("unknown_topic")
            log.error("Append to undeclared topic rejected")
            raise UnknownTopicError(message.topic_name)

        with self._topic_locks[message.topic_name]:
            try:
                digest = compute_message_digest(
                    state.digest,
                    message,
                    self.algorithm,
                    max_payload_bytes=self.settings.max_payload_bytes,
                )
            except DigestComputationError:
                metrics.track_failure("digest")
                raise

            with self._commit_lock:
                message_id = self._persist(
                    log, lambda: self.store.write_message(state.id, message, digest)
                )
                state.digest = digest
                state.message_count += 1
                metrics.track_message()
                log.debug("Message %d appended", message_id)

                checkpoint = MessageCheckpoint(
                    digest=digest,
                    nonce=state.seed_nonce,
                    topic_name=message.topic_name,
                    topic_id=state.id,
                    message_id=message_id,
                    time_stamp=message.time_stamp,
                    payload_size=len(message.serialized_data),
                )
                self._publish(log, checkpoint)
        return checkpoint

    def remove_topic(self, topic_name: str) -> None:
        """
        Topics cannot leave the chain.

        Raises:
            TopicRemovalUnsupportedError: Always
        """
        get_logger(__name__, topic=topic_name).warning("Topic removal rejected")
        raise TopicRemovalUnsupportedError(topic_name)

    def _persist(self, log: logging.LoggerAdapter, write: Callable[[], T]) -> T:
        try:
            return write()
        except PersistenceError as ex:
            metrics.track_failure("persistence")
            log.error("Persistence failed: %s", ex)
            raise
        except BbrError:
            raise
        except Exception as ex:
            metrics.track_failure("persistence")
            log.error("Persistence failed: %s", ex)
            raise PersistenceError(str(ex)) from ex

    def _publish(self, log: logging.LoggerAdapter, checkpoint: Checkpoint) -> None:
        try:
            self.publisher.publish(checkpoint)
        except PublicationError as ex:
            metrics.track_failure("publication")
            log.error("Checkpoint publication failed: %s", ex)
            raise
        except Exception as ex:
            metrics.track_failure("publication")
            log.error("Checkpoint publication failed: %s", ex)
            raise PublicationError(str(ex)) from ex
        metrics.track_checkpoint(checkpoint.kind)
