"""
Prometheus metrics for chain operations.

Usage:
    from bbr.metrics import start_metrics_server, track_checkpoint

    start_metrics_server(enabled=True, port=9464)
    track_checkpoint("message")
"""

import logging
import threading

from prometheus_client import Counter, start_http_server

logger = logging.getLogger(__name__)

TOPICS_DECLARED = Counter(
    "bbr_topics_declared_total",
    "Total number of topics added to the chain",
)

MESSAGES_APPENDED = Counter(
    "bbr_messages_appended_total",
    "Total number of messages folded into topic chains",
)

CHECKPOINTS_PUBLISHED = Counter(
    "bbr_checkpoints_published_total",
    "Total number of checkpoints handed to the publisher",
    labelnames=["kind"],
)

CHAIN_FAILURES = Counter(
    "bbr_chain_failures_total",
    "Total number of failed chain operations",
    labelnames=["reason"],
)

_server_started = False
_server_lock = threading.Lock()


def start_metrics_server(enabled: bool, port: int) -> None:
    """
    Start Prometheus metrics HTTP server in a background thread.

    Args:
        enabled: Whether to start the server (BBR_METRICS_ENABLED)
        port: HTTP port for /metrics (BBR_METRICS_PORT)
    """
    global _server_started

    if not enabled:
        logger.debug("Metrics server disabled")
        return

    with _server_lock:
        if _server_started:
            return
        try:
            start_http_server(port, addr="0.0.0.0")
        except OSError as e:
            logger.error("Failed to start metrics server: %s", e)
            return
        _server_started = True
    logger.info("Metrics server started on http://0.0.0.0:%d/metrics", port)


def track_topic() -> None:
    TOPICS_DECLARED.inc()


def track_message() -> None:
    MESSAGES_APPENDED.inc()


def track_checkpoint(kind: str) -> None:
    """
    Track checkpoint publication.

    Args:
        kind: "topic" or "message"
    """
    CHECKPOINTS_PUBLISHED.labels(kind=kind).inc()


def track_failure(reason: str) -> None:
    """
    Track failed chain operation.

    Args:
        reason: unknown_topic, persistence, publication or digest
    """
    CHAIN_FAILURES.labels(reason=reason).inc()
