from typing import Optional


class EvidenceGraphError(Exception):
    """Base class for errors raised by the evidence graph core."""


class ConfigurationError(EvidenceGraphError):
    """Invalid configuration detected at startup."""


class EmbeddingError(EvidenceGraphError):
    """A vector is missing, malformed or has the wrong dimensionality."""

    def __init__(self, message: str, item_id: Optional[str] = None):
        super().__init__(message)
        self.item_id = item_id


class TraversalError(EvidenceGraphError):
    """A resolution request does not fit the current traversal state."""
