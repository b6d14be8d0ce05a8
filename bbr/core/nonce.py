"""
Session nonce generation.
"""

import secrets

DEFAULT_NONCE_BYTES = 32
MIN_NONCE_BYTES = 16


def create_nonce(size: int = DEFAULT_NONCE_BYTES) -> bytes:
    """
    Draw a fresh nonce from the operating system CSPRNG.

    Args:
        size: Nonce length in bytes

    Raises:
        ValueError: If size is below MIN_NONCE_BYTES
    """
    if size < MIN_NONCE_BYTES:
        raise ValueError(f"nonce must be at least {MIN_NONCE_BYTES} bytes, got {size}")
    return secrets.token_bytes(size)
