"""
Review Aggregator Data Models
=============================

Dataclasses representing the core data structures of the ingestion side.
These models serve as the intermediate representation between provider
payloads and the PostgreSQL reviews table.

Models:
    - Product: Catalog product referenced (never mutated) by ingestion
    - Review: Canonical normalized review, ready for the store
    - StoredReview: A persisted review row, including moderation fields
    - SourceError: One failed source inside an ingestion run
    - IngestionResult: Outcome of a single ingest() call
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional, List, Dict, Any, Tuple


# Provider payloads are opaque JSON objects
RawReviewPayload = Dict[str, Any]

IdentityKey = Tuple[str, str, str]


class ModerationStatus(str, Enum):
    """Publishability state of a stored review."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @classmethod
    def values(cls) -> List[str]:
        return [status.value for status in cls]


@dataclass
class Product:
    """Catalog product, owned by catalog management."""
    id: str
    name: str
    price: Optional[Decimal] = None
    category_id: Optional[int] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass
class Review:
    """
    Canonical review produced by the normalizer.

    (product_id, source, external_review_id) is the identity key used for
    deduplication; the storage row id plays no part in it.
    """
    product_id: str
    source: str
    external_review_id: str
    rating: int
    author: Optional[str] = None
    title: Optional[str] = None
    body: Optional[str] = None
    authored_at: Optional[datetime] = None
    verified_purchase: bool = False

    @property
    def identity_key(self) -> IdentityKey:
        return (self.product_id, self.source, self.external_review_id)


@dataclass
class StoredReview:
    """A row of the reviews table."""
    id: int
    product_id: str
    source: str
    external_review_id: str
    rating: int
    author: Optional[str] = None
    title: Optional[str] = None
    body: Optional[str] = None
    authored_at: Optional[datetime] = None
    fetched_at: Optional[datetime] = None
    verified_purchase: bool = False
    flagged: bool = False
    moderation_status: ModerationStatus = ModerationStatus.APPROVED

    @property
    def identity_key(self) -> IdentityKey:
        return (self.product_id, self.source, self.external_review_id)

    def to_api_dict(self) -> Dict[str, Any]:
        """Wire representation used by listing and moderation endpoints."""
        return {
            "id": self.id,
            "reviewId": self.external_review_id,
            "productId": self.product_id,
            "source": self.source,
            "author": self.author,
            "rating": self.rating,
            "title": self.title,
            "content": self.body,
            "date": self.authored_at.isoformat() if self.authored_at else None,
            "fetchedAt": self.fetched_at.isoformat() if self.fetched_at else None,
            "flagged": self.flagged,
            "moderationStatus": ModerationStatus(self.moderation_status).value,
            "verifiedPurchase": self.verified_purchase,
        }


@dataclass
class SourceError:
    """A source that failed during an ingestion run."""
    source: str
    error_type: str
    message: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "errorType": self.error_type,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class IngestionResult:
    """Result of one ingest() call. Never persisted."""
    product_id: str
    sources_requested: List[str]
    started_at: datetime
    completed_at: Optional[datetime] = None

    # Counts
    total_fetched: int = 0
    inserted: int = 0
    duplicates: int = 0
    failed: int = 0
    sources_succeeded: List[str] = field(default_factory=list)

    # Errors
    per_source_errors: List[SourceError] = field(default_factory=list)

    @property
    def written(self) -> int:
        """Records the store accepted, new or refreshed."""
        return self.inserted + self.duplicates

    @property
    def success(self) -> bool:
        """
        False only when nothing was written.

        Partial source or record failures still count as a successful run.
        """
        return self.written > 0

    @property
    def duration_seconds(self) -> Optional[float]:
        """Calculate duration in seconds."""
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    def add_error(self, source: str, error_type: str, message: str):
        """Record a failed source."""
        self.per_source_errors.append(SourceError(
            source=source,
            error_type=error_type,
            message=message,
        ))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "productId": self.product_id,
            "success": self.success,
            "sourcesRequested": list(self.sources_requested),
            "sourcesSucceeded": list(self.sources_succeeded),
            "totalFetched": self.total_fetched,
            "inserted": self.inserted,
            "duplicates": self.duplicates,
            "failed": self.failed,
            "perSourceErrors": [e.to_dict() for e in self.per_source_errors],
            "startedAt": self.started_at.isoformat(),
            "completedAt": self.completed_at.isoformat() if self.completed_at else None,
            "durationSeconds": self.duration_seconds,
        }
