"""
Verification of stored chains against recomputed digests and published checkpoints.
"""

from .chain import (
    TopicVerification,
    VerificationReport,
    fold_messages,
    verify_topic_chain,
    verify_global_chain,
    verify_store,
)

__all__ = [
    "TopicVerification",
    "VerificationReport",
    "fold_messages",
    "verify_topic_chain",
    "verify_global_chain",
    "verify_store",
]
