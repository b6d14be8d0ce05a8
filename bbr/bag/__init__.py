"""
Bag directories: storage adapter and metadata file.
"""

from .metadata import BagMetadata, load_metadata, write_metadata, METADATA_FILENAME
from .storage import BagStorage, IOFlag, CHECKPOINT_LOG_FILENAME

__all__ = [
    "BagMetadata",
    "load_metadata",
    "write_metadata",
    "METADATA_FILENAME",
    "BagStorage",
    "IOFlag",
    "CHECKPOINT_LOG_FILENAME",
]
