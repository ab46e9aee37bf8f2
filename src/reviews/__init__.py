"""
Review Store, Moderation & Analytics
====================================

Persistence and read-side engines for aggregated product reviews.

Modules:
    review_store  — Deduplicating PostgreSQL store and product catalog lookup
    listing       — Paged product review listing
    moderation    — Moderation queue, flagging, status changes and deletion
    analytics     — Per-product rollups and the catalog-wide overview
    errors        — Error taxonomy shared by every layer
"""

from .errors import (
    ReviewServiceError,
    DatabaseError,
    PersistenceError,
    ValidationError,
    NotFoundError,
)
from .review_models import (
    AggregateStats,
    AnalyticsOverview,
    BatchUpsertResult,
    ModerationFilters,
    ReviewPage,
    UpsertOutcome,
)
from .review_store import ReviewStore, ProductCatalog
from .moderation import ModerationService
from .listing import list_reviews
from .analytics import ReviewAnalytics

__all__ = [
    # Errors
    "ReviewServiceError",
    "DatabaseError",
    "PersistenceError",
    "ValidationError",
    "NotFoundError",
    # Models
    "AggregateStats",
    "AnalyticsOverview",
    "BatchUpsertResult",
    "ModerationFilters",
    "ReviewPage",
    "UpsertOutcome",
    # Engines
    "ReviewStore",
    "ProductCatalog",
    "ModerationService",
    "list_reviews",
    "ReviewAnalytics",
]
