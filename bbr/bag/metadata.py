"""
Bag metadata file.

Written next to the database when a bag is closed after recording; read
back to locate the database when the bag is opened for reading.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..core.canonical import canonical_json_str
from ..core.digest import DEFAULT_ALGORITHM
from ..store.base import BagSummary

logger = logging.getLogger(__name__)

METADATA_FILENAME = "metadata.json"
STORAGE_IDENTIFIER = "bbr"


@dataclass
class BagMetadata:
    """
    Summary of a recorded bag.

    Fields:
        version: Format version (currently 1)
        storage_identifier: Always "bbr"
        relative_file_paths: Database files, relative to the bag directory
        hash_algorithm: Hash the chain was written with
        message_count: Total messages
        topics_with_message_count: [{"topic_metadata": {...}, "message_count": n}]
        starting_time: Earliest message timestamp (ns)
        duration: Latest minus earliest timestamp (ns)
        bag_size: Bytes on disk
    """
    relative_file_paths: List[str] = field(default_factory=list)
    hash_algorithm: str = DEFAULT_ALGORITHM
    message_count: int = 0
    topics_with_message_count: List[Dict[str, Any]] = field(default_factory=list)
    starting_time: int = 0
    duration: int = 0
    bag_size: int = 0
    storage_identifier: str = STORAGE_IDENTIFIER
    version: int = 1

    @classmethod
    def from_summary(
        cls,
        summary: BagSummary,
        relative_file_paths: List[str],
        hash_algorithm: str,
        bag_size: int = 0,
    ) -> "BagMetadata":
        return cls(
            relative_file_paths=list(relative_file_paths),
            hash_algorithm=hash_algorithm,
            message_count=summary.message_count,
            topics_with_message_count=[
                {"topic_metadata": t.topic.to_dict(), "message_count": t.message_count}
                for t in summary.topics_with_message_count
            ],
            starting_time=summary.starting_time,
            duration=summary.duration,
            bag_size=bag_size,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "storage_identifier": self.storage_identifier,
            "relative_file_paths": self.relative_file_paths,
            "hash_algorithm": self.hash_algorithm,
            "message_count": self.message_count,
            "topics_with_message_count": self.topics_with_message_count,
            "starting_time": self.starting_time,
            "duration": self.duration,
            "bag_size": self.bag_size,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BagMetadata":
        return cls(
            version=data.get("version", 1),
            storage_identifier=data.get("storage_identifier", STORAGE_IDENTIFIER),
            relative_file_paths=list(data.get("relative_file_paths", [])),
            hash_algorithm=data.get("hash_algorithm", DEFAULT_ALGORITHM),
            message_count=data.get("message_count", 0),
            topics_with_message_count=list(data.get("topics_with_message_count", [])),
            starting_time=data.get("starting_time", 0),
            duration=data.get("duration", 0),
            bag_size=data.get("bag_size", 0),
        )


def metadata_path(uri: str) -> str:
    return os.path.join(uri, METADATA_FILENAME)


def write_metadata(uri: str, metadata: BagMetadata) -> str:
    """
    Write metadata.json into the bag directory.

    Returns:
        Path of the written file
    """
    path = metadata_path(uri)
    with open(path, "w", encoding="utf-8") as f:
        f.write(canonical_json_str(metadata.to_dict()))
    return path


def load_metadata(uri: str) -> Optional[BagMetadata]:
    """
    Read metadata.json from the bag directory.

    Returns:
        BagMetadata, or None if the file is missing or unreadable
    """
    try:
        with open(metadata_path(uri), "r", encoding="utf-8") as f:
            return BagMetadata.from_dict(json.load(f))
    except (OSError, ValueError, TypeError, AttributeError) as e:
        logger.error("Failed to load metadata: %s", e)
        return None
