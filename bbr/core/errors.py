"""
Exception types for the chain core, stores and publishers.
"""


class BbrError(Exception):
    """Base class for all bbr errors."""
    pass


class ConfigError(BbrError):
    """Raised when an environment setting has an invalid value."""
    pass


class UnknownTopicError(BbrError):
    """Raised when a message references a topic that was never declared."""

    def __init__(self, topic_name: str):
        super().__init__(
            f"Topic '{topic_name}' has not been created yet! Call 'create_topic' first."
        )
        self.topic_name = topic_name


class TopicRemovalUnsupportedError(BbrError):
    """Raised on any attempt to remove a topic from the chain."""

    def __init__(self, topic_name: str):
        super().__init__(
            f"Topic '{topic_name}' cannot be removed: topics are permanent members of the chain"
        )
        self.topic_name = topic_name


class PersistenceError(BbrError):
    """Raised when the record store fails to persist a topic or message."""
    pass


class PublicationError(BbrError):
    """Raised when a checkpoint could not be handed to the publisher."""
    pass


class DigestComputationError(BbrError):
    """Raised for malformed or oversized digest input."""
    pass


class IntegrityError(BbrError):
    """Raised when hash chain or signature verification fails."""
    pass


class StorageOpenError(BbrError):
    """Raised when a bag cannot be opened."""
    pass
