"""
Chain state management.
"""

from .state import TopicChainState
from .manager import ChainManager

__all__ = ["TopicChainState", "ChainManager"]
