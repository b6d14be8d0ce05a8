"""
Checkpoint publishers.

The chain manager hands every checkpoint to exactly one publisher, in commit
order. Publishers must preserve that order.
"""

import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from typing import Iterator, List, Optional

from ..core.canonical import canonical_json_str
from ..core.errors import IntegrityError, PublicationError
from .model import Checkpoint, checkpoint_from_dict, signing_payload
from .signer import SigningKey, VerifyingKey

try:
    import fcntl
except ImportError:  # Windows or unsupported platform
    fcntl = None

logger = logging.getLogger(__name__)


class CheckpointPublisher(ABC):
    """
    Abstract checkpoint sink.

    Implementations raise PublicationError when a checkpoint cannot be
    accepted.
    """

    @abstractmethod
    def publish(self, checkpoint: Checkpoint) -> None:
        ...

    def close(self) -> None:
        """Release resources. Default does nothing."""
        return None


class NullCheckpointPublisher(CheckpointPublisher):
    """Discards checkpoints (chain is still persisted)."""

    def publish(self, checkpoint: Checkpoint) -> None:
        return None


class MemoryCheckpointPublisher(CheckpointPublisher):
    """
    Keeps checkpoints in a list, in publication order.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._checkpoints: List[Checkpoint] = []

    def publish(self, checkpoint: Checkpoint) -> None:
        with self._lock:
            self._checkpoints.append(checkpoint)

    @property
    def checkpoints(self) -> List[Checkpoint]:
        with self._lock:
            return list(self._checkpoints)


class FileCheckpointPublisher(CheckpointPublisher):
    """
    Append-only JSONL checkpoint log.

    Each line: {"checkpoint": {...}} plus, when a signing key is set,
    "pubkey_id" and "signature" (Ed25519 over the canonical checkpoint JSON).

    Guarantees:
    - Append-only (no mutations)
    - Fsync after each line
    - A failed append leaves no partial line behind
    """

    def __init__(self, path: str, signing_key: Optional[SigningKey] = None) -> None:
        self.path = path
        self.signing_key = signing_key
        self._lock = threading.Lock()
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)

    def _record(self, checkpoint: Checkpoint) -> dict:
        rec = {"checkpoint": checkpoint.to_dict()}
        if self.signing_key is not None:
            rec["pubkey_id"] = self.signing_key.get_pubkey_id()
            rec["signature"] = self.signing_key.sign_base64(signing_payload(checkpoint))
        return rec

    def publish(self, checkpoint: Checkpoint) -> None:
        data = (canonical_json_str(self._record(checkpoint)) + "\n").encode("utf-8")
        try:
            with self._lock, open(self.path, "ab", buffering=0) as f:
                if fcntl:
                    fcntl.flock(f.fileno(), fcntl.LOCK_EX)
                start = f.seek(0, os.SEEK_END)
                try:
                    written = f.write(data)
                    if written != len(data):
                        raise OSError(f"short write ({written} of {len(data)} bytes)")
                    os.fsync(f.fileno())
                except OSError:
                    # drop the partial line so later records stay parseable
                    f.truncate(start)
                    raise
                finally:
                    if fcntl:
                        fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        except OSError as ex:
            raise PublicationError(f"cannot append checkpoint to {self.path}: {ex}") from ex


def iter_checkpoints(
    path: str, verifying_key: Optional[VerifyingKey] = None
) -> Iterator[Checkpoint]:
    """
    Read a JSONL checkpoint log in publication order.

    Args:
        path: Log written by FileCheckpointPublisher
        verifying_key: When given, every line must carry a valid signature

    Raises:
        IntegrityError: On a malformed line or a missing/invalid signature
    """
    with open(path, "r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                rec = json.loads(line)
                checkpoint = checkpoint_from_dict(rec["checkpoint"])
            except (ValueError, KeyError, TypeError) as ex:
                raise IntegrityError(f"{path}:{lineno}: malformed checkpoint: {ex}") from ex

            if verifying_key is not None:
                if rec.get("pubkey_id") != verifying_key.get_pubkey_id():
                    raise IntegrityError(f"{path}:{lineno}: public key ID mismatch")
                signature = rec.get("signature")
                if not isinstance(signature, str):
                    raise IntegrityError(f"{path}:{lineno}: missing signature")
                if not verifying_key.verify_base64(signing_payload(checkpoint), signature):
                    raise IntegrityError(f"{path}:{lineno}: invalid signature")

            yield checkpoint


def load_checkpoints(path: str, verifying_key: Optional[VerifyingKey] = None) -> List[Checkpoint]:
    """List form of iter_checkpoints()."""
    checkpoints = list(iter_checkpoints(path, verifying_key))
    logger.debug("Loaded %d checkpoints from %s", len(checkpoints), path)
    return checkpoints
