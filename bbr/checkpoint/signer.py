"""
Ed25519 signing for published checkpoints.

Key management:
- Default location: ~/.bbr/keys/checkpoint_ed25519 (+ .pub)
"""

import base64
import hashlib
import os
from pathlib import Path
from typing import Optional, Tuple

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)


def _public_pem(public_key: Ed25519PublicKey) -> bytes:
    return public_key.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def _pubkey_id(public_key: Ed25519PublicKey) -> str:
    return hashlib.sha256(_public_pem(public_key)).hexdigest()[:16]


class SigningKey:
    """
    Ed25519 private key used by the checkpoint publisher.
    """

    def __init__(self, private_key: Ed25519PrivateKey):
        self.private_key = private_key
        self.public_key = private_key.public_key()

    @classmethod
    def generate(cls) -> "SigningKey":
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def load_from_file(cls, path: str) -> "SigningKey":
        """
        Load private key from PEM file.

        Raises:
            FileNotFoundError: If key file doesn't exist
            ValueError: If the file does not hold an Ed25519 private key
        """
        with open(path, "rb") as f:
            private_key = serialization.load_pem_private_key(f.read(), password=None)
        if not isinstance(private_key, Ed25519PrivateKey):
            raise ValueError("Key file is not Ed25519 private key")
        return cls(private_key)

    def save_to_file(self, path: str, public_path: Optional[str] = None) -> None:
        """
        Write private key (and optionally public key) as PEM.
        """
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        private_pem = self.private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
        with open(path, "wb") as f:
            f.write(private_pem)
        os.chmod(path, 0o600)

        if public_path:
            with open(public_path, "wb") as f:
                f.write(_public_pem(self.public_key))

    def sign_base64(self, payload: bytes) -> str:
        """Sign payload bytes and return the base64 signature."""
        return base64.b64encode(self.private_key.sign(payload)).decode("ascii")

    def get_pubkey_id(self) -> str:
        """Public key identifier (first 16 hex chars of SHA-256 over the PEM)."""
        return _pubkey_id(self.public_key)


class VerifyingKey:
    """
    Ed25519 public key for checking checkpoint signatures.
    """

    def __init__(self, public_key: Ed25519PublicKey):
        self.public_key = public_key

    @classmethod
    def load_from_file(cls, path: str) -> "VerifyingKey":
        with open(path, "rb") as f:
            public_key = serialization.load_pem_public_key(f.read())
        if not isinstance(public_key, Ed25519PublicKey):
            raise ValueError("Key file is not Ed25519 public key")
        return cls(public_key)

    @classmethod
    def from_signing_key(cls, signing_key: SigningKey) -> "VerifyingKey":
        return cls(signing_key.public_key)

    def verify_base64(self, payload: bytes, signature_b64: str) -> bool:
        """
        Check a base64 signature over payload bytes.

        Returns:
            True if signature is valid, False otherwise
        """
        try:
            signature = base64.b64decode(signature_b64, validate=True)
            self.public_key.verify(signature, payload)
        except (InvalidSignature, TypeError, ValueError):
            return False
        return True

    def get_pubkey_id(self) -> str:
        return _pubkey_id(self.public_key)


def get_default_key_path() -> Path:
    return Path.home() / ".bbr" / "keys" / "checkpoint_ed25519"


def ensure_keypair(key_path: Optional[str] = None) -> Tuple[str, str]:
    """
    Ensure keypair exists (generate if missing).

    Returns:
        (private_key_path, public_key_path) tuple
    """
    if key_path is None:
        key_path = str(get_default_key_path())
    public_key_path = key_path + ".pub"

    if not os.path.exists(key_path):
        SigningKey.generate().save_to_file(key_path, public_key_path)

    return key_path, public_key_path
