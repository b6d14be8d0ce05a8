"""
Environment configuration.

Environment Variables:
    BBR_HASH_ALGORITHM: hashlib algorithm for the digest chain - default: sha256
    BBR_NONCE_BYTES: Session nonce length in bytes - default: 32 (minimum 16)
    BBR_MAX_PAYLOAD_BYTES: Reject larger message payloads - default: unlimited
    BBR_LOG_LEVEL: Log level (DEBUG, INFO, WARNING, ERROR) - default: INFO
    BBR_LOG_FORMAT: Log format (json, text) - default: json
    BBR_METRICS_ENABLED: Start Prometheus endpoint (true/false) - default: false
    BBR_METRICS_PORT: Port for the /metrics endpoint - default: 9464
    BBR_SIGNING_KEY: Ed25519 private key (PEM) that signs the checkpoint log - default: unsigned
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .core.digest import DEFAULT_ALGORITHM, digest_size
from .core.errors import ConfigError, DigestComputationError
from .core.nonce import DEFAULT_NONCE_BYTES, MIN_NONCE_BYTES

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
_LOG_FORMATS = ("json", "text")


def _env_int(env: Mapping[str, str], key: str) -> Optional[int]:
    val = env.get(key)
    if not val:
        return None
    try:
        return int(val)
    except ValueError as ex:
        raise ConfigError(f"{key} must be an integer, got {val!r}") from ex


def _env_bool(env: Mapping[str, str], key: str, default: bool = False) -> bool:
    val = env.get(key)
    if not val:
        return default
    return val.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    """
    Runtime settings.

    Fields:
        hash_algorithm: Digest chain hash (must be >= 256 bits)
        nonce_bytes: Session nonce length
        max_payload_bytes: Payload size guard (None = unlimited)
        log_level: Root log level name
        log_format: "json" or "text"
        metrics_enabled: Expose Prometheus metrics over HTTP
        metrics_port: Port of the metrics endpoint
        signing_key_path: Private key used to sign recorded checkpoints
    """
    hash_algorithm: str = DEFAULT_ALGORITHM
    nonce_bytes: int = DEFAULT_NONCE_BYTES
    max_payload_bytes: Optional[int] = None
    log_level: str = "INFO"
    log_format: str = "json"
    metrics_enabled: bool = False
    metrics_port: int = 9464
    signing_key_path: Optional[str] = None

    def __post_init__(self) -> None:
        try:
            digest_size(self.hash_algorithm)
        except DigestComputationError as ex:
            raise ConfigError(str(ex)) from ex
        if self.nonce_bytes < MIN_NONCE_BYTES:
            raise ConfigError(f"nonce must be at least {MIN_NONCE_BYTES} bytes")
        if self.max_payload_bytes is not None and self.max_payload_bytes <= 0:
            raise ConfigError("max payload size must be positive")
        if self.log_level not in _LOG_LEVELS:
            raise ConfigError(f"unknown log level: {self.log_level}")
        if self.log_format not in _LOG_FORMATS:
            raise ConfigError(f"unknown log format: {self.log_format}")

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables (os.environ by default).

        Raises:
            ConfigError: If any variable has an invalid value
        """
        if env is None:
            env = os.environ
        nonce_bytes = _env_int(env, "BBR_NONCE_BYTES")
        port = _env_int(env, "BBR_METRICS_PORT")
        return cls(
            hash_algorithm=env.get("BBR_HASH_ALGORITHM") or DEFAULT_ALGORITHM,
            nonce_bytes=nonce_bytes if nonce_bytes is not None else DEFAULT_NONCE_BYTES,
            max_payload_bytes=_env_int(env, "BBR_MAX_PAYLOAD_BYTES"),
            log_level=(env.get("BBR_LOG_LEVEL") or "INFO").upper(),
            log_format=(env.get("BBR_LOG_FORMAT") or "json").lower(),
            metrics_enabled=_env_bool(env, "BBR_METRICS_ENABLED"),
            metrics_port=port if port is not None else 9464,
            signing_key_path=env.get("BBR_SIGNING_KEY") or None,
        )
