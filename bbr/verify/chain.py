"""
Independent chain verification.

Recomputes every digest from what the record store holds and compares the
result with the stored chain fields and, when available, with the
published checkpoints. Nothing here trusts a stored digest: each one is
recomputed from the seed nonce, the metadata and the payloads.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from ..checkpoint.model import Checkpoint, MessageCheckpoint, TopicCheckpoint
from ..core.digest import (
    DEFAULT_ALGORITHM,
    compute_message_digest,
    compute_topic_digest,
    compute_topic_nonce,
)
from ..core.errors import DigestComputationError, IntegrityError
from ..core.models import SerializedMessage
from ..store.base import RecordStore, StoredTopic

logger = logging.getLogger(__name__)


@dataclass
class TopicVerification:
    """
    Result of verifying one topic's message chain.

    Fields:
        topic: Topic name
        valid: All checks passed
        message_count: Persisted messages folded
        final_digest: Recomputed digest after the last message
        broken_at: Id of the first message whose stored digest disagrees
        errors: Human-readable failures
    """
    topic: str
    valid: bool = True
    message_count: int = 0
    final_digest: Optional[bytes] = None
    broken_at: Optional[int] = None
    errors: List[str] = field(default_factory=list)

    def fail(self, error: str) -> None:
        self.valid = False
        self.errors.append(error)


@dataclass
class VerificationReport:
    """
    Result of verifying a whole store.

    Fields:
        valid: Every topic and the declaration chain verified
        topics: Per-topic results in declaration order
        errors: Failures not tied to one topic's message chain
    """
    valid: bool = True
    topics: List[TopicVerification] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def fail(self, error: str) -> None:
        self.valid = False
        self.errors.append(error)

    def all_errors(self) -> List[str]:
        out = list(self.errors)
        for result in self.topics:
            out.extend(f"{result.topic}: {e}" for e in result.errors)
        return out


def fold_messages(
    digest: bytes, messages: Iterable[SerializedMessage], algorithm: str = DEFAULT_ALGORITHM
) -> bytes:
    """
    Left-fold messages into a digest, as appends do.
    """
    for message in messages:
        digest = compute_message_digest(digest, message, algorithm)
    return digest


def verify_topic_chain(
    store: RecordStore,
    topic_name: str,
    published_digest: Optional[bytes] = None,
    algorithm: str = DEFAULT_ALGORITHM,
) -> TopicVerification:
    """
    Recompute one topic's chain from its persisted seed nonce and messages.

    Args:
        store: Record store to read
        topic_name: Topic to verify
        published_digest: Last digest published for this topic, if known
        algorithm: Hash algorithm the chain was written with

    Returns:
        TopicVerification
    """
    result = TopicVerification(topic=topic_name)
    stored = store.get_topic(topic_name)
    if stored is None:
        result.fail("topic not found in store")
        return result

    try:
        digest = compute_topic_digest(stored.seed_nonce, stored.topic, algorithm)
        if digest != stored.digest:
            result.fail("initial digest does not match seed nonce and metadata")

        for msg in store.read_topic_chain(topic_name):
            digest = compute_message_digest(digest, msg.to_message(), algorithm)
            result.message_count += 1
            if digest != msg.digest and result.broken_at is None:
                result.broken_at = msg.id
                result.fail(f"chain broken at message {msg.id}")
    except DigestComputationError as ex:
        result.fail(f"cannot recompute chain: {ex}")
        return result

    result.final_digest = digest
    if published_digest is not None and digest != published_digest:
        result.fail("final digest does not match last published checkpoint")
    return result


def verify_global_chain(
    topics: List[StoredTopic],
    nonce0: Optional[bytes] = None,
    algorithm: str = DEFAULT_ALGORITHM,
) -> List[str]:
    """
    Check that every topic's seed nonce derives from the topic declared before it.

    Args:
        topics: Stored topics in declaration (id) order
        nonce0: Expected seed of the first topic, if known

    Returns:
        List of errors (empty when the declaration chain holds)
    """
    errors: List[str] = []
    prev: Optional[StoredTopic] = None
    for stored in topics:
        if prev is None:
            if nonce0 is not None and stored.seed_nonce != nonce0:
                errors.append(f"topic '{stored.name}' is not seeded with the session nonce")
        else:
            try:
                prev_digest = compute_topic_digest(prev.seed_nonce, prev.topic, algorithm)
                expected = compute_topic_nonce(prev_digest, prev.topic, algorithm)
            except DigestComputationError as ex:
                errors.append(f"cannot recompute nonce after topic '{prev.name}': {ex}")
            else:
                if stored.seed_nonce != expected:
                    errors.append(
                        f"topic '{stored.name}' seed nonce does not follow topic '{prev.name}'"
                    )
        prev = stored
    return errors


def _index_checkpoints(checkpoints: Iterable[Checkpoint]):
    declared: Dict[str, TopicCheckpoint] = {}
    last: Dict[str, MessageCheckpoint] = {}
    counts: Dict[str, int] = {}
    for cp in checkpoints:
        if isinstance(cp, TopicCheckpoint):
            declared.setdefault(cp.topic_name, cp)
        else:
            last[cp.topic_name] = cp
            counts[cp.topic_name] = counts.get(cp.topic_name, 0) + 1
    return declared, last, counts


def verify_store(
    store: RecordStore,
    checkpoints: Optional[Iterable[Checkpoint]] = None,
    nonce0: Optional[bytes] = None,
    algorithm: str = DEFAULT_ALGORITHM,
    strict: bool = False,
) -> VerificationReport:
    """
    Verify every topic chain and the declaration chain of a store.

    With checkpoints, each topic's recomputed digests are also compared to
    what was published: digest0 and seed nonce to its topic checkpoint, the
    final digest to its last message checkpoint.

    Args:
        store: Record store to verify
        checkpoints: Published checkpoints in publication order
        nonce0: Expected seed of the first declared topic
        algorithm: Hash algorithm the chain was written with
        strict: Raise IntegrityError instead of returning an invalid report

    Raises:
        IntegrityError: In strict mode, when verification fails
    """
    report = VerificationReport()
    topics = store.list_topics()

    for error in verify_global_chain(topics, nonce0=nonce0, algorithm=algorithm):
        report.fail(error)

    anchored = checkpoints is not None
    declared, last, counts = _index_checkpoints(checkpoints or [])

    for stored in topics:
        name = stored.name
        published: Optional[bytes] = None
        if anchored:
            topic_cp = declared.get(name)
            if topic_cp is None:
                report.fail(f"topic '{name}' has no published declaration")
            else:
                if topic_cp.digest != stored.digest or topic_cp.nonce != stored.seed_nonce:
                    report.fail(f"topic '{name}' does not match its published declaration")
                published = topic_cp.digest
            message_cp = last.get(name)
            if message_cp is not None:
                published = message_cp.digest
                if message_cp.nonce != stored.seed_nonce:
                    report.fail(f"topic '{name}' messages were published under another nonce")

        result = verify_topic_chain(store, name, published_digest=published, algorithm=algorithm)
        if anchored and result.message_count != counts.get(name, 0):
            result.fail(
                f"{result.message_count} messages stored, {counts.get(name, 0)} published"
            )
        if not result.valid:
            report.valid = False
        report.topics.append(result)

    if anchored:
        known = {t.name for t in topics}
        for name in declared:
            if name not in known:
                report.fail(f"published topic '{name}' is missing from store")

    if report.valid:
        logger.info("Verified %d topics", len(topics))
    else:
        logger.warning("Verification failed: %s", "; ".join(report.all_errors()))
        if strict:
            raise IntegrityError(report.all_errors()[0])
    return report
