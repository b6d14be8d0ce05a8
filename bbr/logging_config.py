"""
Structured logging configuration.

Provides JSON-formatted logs with a topic field for correlating chain
operations on the same topic.

Usage:
    from bbr.logging_config import setup_logging, get_logger

    setup_logging()
    logger = get_logger(__name__, topic="/imu/data")
    logger.info("Topic declared")
"""

import logging
import sys
from typing import Optional, TextIO

from pythonjsonlogger import jsonlogger

from .config import Settings


class TopicFilter(logging.Filter):
    """
    Logging filter that adds topic to all log records.

    Ensures every record has a topic field, even if not set via LoggerAdapter.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "topic"):
            record.topic = "-"  # type: ignore
        return True


def setup_logging(settings: Optional[Settings] = None, stream: Optional[TextIO] = None) -> None:
    """
    Configure root logger with structured logging.

    Args:
        settings: Log level/format source (default: Settings.from_env())
        stream: Output stream (default: stderr)
    """
    if settings is None:
        settings = Settings.from_env()
    level = getattr(logging, settings.log_level, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(level)
    handler.addFilter(TopicFilter())

    if settings.log_format == "json":
        formatter: logging.Formatter = jsonlogger.JsonFormatter(
            "%(asctime)s %(name)s %(levelname)s %(message)s %(topic)s",
            rename_fields={
                "asctime": "timestamp",
                "name": "logger",
                "levelname": "level",
            },
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s [topic=%(topic)s]",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)


def get_logger(name: str, topic: Optional[str] = None) -> logging.LoggerAdapter:
    """
    Get a logger with the topic name attached to every record.

    Example:
        logger = get_logger(__name__, topic="/imu/data")
        logger.info("Message appended")
        # {"timestamp": "...", "level": "INFO", "message": "Message appended", "topic": "/imu/data"}
    """
    logger = logging.getLogger(name)
    return logging.LoggerAdapter(logger, {"topic": topic or "-"})
