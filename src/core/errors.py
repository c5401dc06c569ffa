"""
Error types for Recall Store.

InvalidInputError and DuplicateKeyError are caller errors and are never
retried. NotFoundError covers a missing record or a missing backing file.
IOFailureError wraps file system failures on the capture write path.
"""


class StoreError(Exception):
    """Base class for all capture store errors."""


class InvalidInputError(StoreError, ValueError):
    """Raised for malformed arguments (mismatched fingerprints, negative distance)."""


class DuplicateKeyError(StoreError):
    """Raised when a capture timestamp is already present in the index."""

    def __init__(self, timestamp: int):
        super().__init__(f"Capture record already exists: {timestamp}")
        self.timestamp = timestamp


class NotFoundError(StoreError, LookupError):
    """Raised when a capture record or its backing file does not exist."""


class IOFailureError(StoreError, OSError):
    """Raised when a file system operation on the capture path fails."""


class StoreNotReadyError(StoreError):
    """Raised when the store is used before a successful initialization."""
