"""
Checkpoint emission and anchoring.

Provides:
- TopicCheckpoint / MessageCheckpoint models
- Publishers (memory, JSONL file, null)
- Ed25519 signing and verification of published checkpoints
"""

from .model import (
    Checkpoint,
    TopicCheckpoint,
    MessageCheckpoint,
    checkpoint_from_dict,
    signing_payload,
)
from .publisher import (
    CheckpointPublisher,
    NullCheckpointPublisher,
    MemoryCheckpointPublisher,
    FileCheckpointPublisher,
    iter_checkpoints,
    load_checkpoints,
)
from .signer import SigningKey, VerifyingKey, ensure_keypair

__all__ = [
    "Checkpoint",
    "TopicCheckpoint",
    "MessageCheckpoint",
    "checkpoint_from_dict",
    "signing_payload",
    "CheckpointPublisher",
    "NullCheckpointPublisher",
    "MemoryCheckpointPublisher",
    "FileCheckpointPublisher",
    "iter_checkpoints",
    "load_checkpoints",
    "SigningKey",
    "VerifyingKey",
    "ensure_keypair",
]
