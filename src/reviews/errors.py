"""
Review service error taxonomy.

Provider failures live next to the provider clients (ProviderError) and
never escape an ingestion run; the errors below are the ones callers see.
"""

from typing import Any, Optional


class ReviewServiceError(Exception):
    """Base exception for review service errors."""

    def __init__(self, message: str, details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(self.message)


class DatabaseError(ReviewServiceError):
    """Database operation error (connection or transaction level)."""
    pass


class PersistenceError(ReviewServiceError):
    """A single review could not be written."""

    def __init__(self, identity_key, cause: Exception):
        self.identity_key = identity_key
        self.cause = cause
        super().__init__(f"Failed to persist review {identity_key}: {cause}")


class ValidationError(ReviewServiceError):
    """Caller supplied an invalid argument."""
    pass


class NotFoundError(ReviewServiceError):
    """Targeted review or product does not exist."""
    pass
