"""
Review Store & Analytics Data Models
====================================

Read-side structures returned by the store, the moderation engine and the
analytics engine. Nothing here is persisted; every value is rebuilt from
the reviews table on request.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Dict, Optional, Any, Tuple

from src.data.data_models import ModerationStatus, StoredReview


RATING_BUCKETS = (1, 2, 3, 4, 5)


def empty_histogram() -> Dict[int, int]:
    """Dense 1..5 histogram with every bucket at zero."""
    return {rating: 0 for rating in RATING_BUCKETS}


def rounded_average(rating_sum: int, count: int) -> float:
    """Mean rating to two places, ties rounded away from zero like Postgres ROUND(numeric, 2)."""
    if count <= 0:
        return 0.0
    mean = Decimal(rating_sum) / Decimal(count)
    return float(mean.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def clamp_page(limit: Any, offset: Any, default_limit: int, max_limit: int) -> Tuple[int, int]:
    """Clamp paging arguments into [1, max_limit] and >= 0."""
    try:
        limit = int(limit) if limit is not None else default_limit
    except (TypeError, ValueError):
        limit = default_limit
    try:
        offset = int(offset) if offset is not None else 0
    except (TypeError, ValueError):
        offset = 0
    if limit <= 0:
        limit = default_limit
    return min(max_limit, limit), max(0, offset)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class UpsertOutcome:
    """Result of upserting one review."""
    review_id: int
    was_new: bool


@dataclass
class BatchUpsertResult:
    """Result of upserting a batch of reviews."""
    affected: int = 0
    inserted_count: int = 0
    duplicate_count: int = 0
    failed_count: int = 0


@dataclass
class ReviewPage:
    """One page of reviews plus the unpaged total."""
    items: List[StoredReview]
    total: int
    limit: int
    offset: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [review.to_api_dict() for review in self.items],
            "total": self.total,
            "limit": self.limit,
            "offset": self.offset,
        }


@dataclass
class ModerationFilters:
    """Moderation queue filters. None means 'do not filter'."""
    status: Optional[ModerationStatus] = None
    flagged: Optional[bool] = None
    product_id: Optional[str] = None


# ---------------------------------------------------------------------------
# Aggregation primitives (rows as returned by the store's grouped queries)
# ---------------------------------------------------------------------------

@dataclass
class RatingBucketRow:
    """COUNT(*) grouped by (source, rating)."""
    source: str
    rating: int
    count: int


@dataclass
class CorpusSummaryRow:
    """Whole-corpus totals not derivable from the rating buckets."""
    products_with_reviews: int = 0
    last_ingested_at: Optional[datetime] = None


@dataclass
class DailyActivityRow:
    """COUNT(*) and SUM(rating) grouped by (day, source)."""
    day: date
    source: str
    count: int
    rating_sum: int


@dataclass
class ProductActivityRow:
    """Per-product review volume, as ranked by the store."""
    product_id: str
    review_count: int
    rating_sum: int
    first_review_at: Optional[datetime] = None
    last_review_at: Optional[datetime] = None

    @property
    def average_rating(self) -> float:
        return rounded_average(self.rating_sum, self.review_count)


# ---------------------------------------------------------------------------
# Aggregated views
# ---------------------------------------------------------------------------

@dataclass
class SourceBreakdown:
    source: str
    count: int
    average: float

    def to_dict(self) -> Dict[str, Any]:
        return {"source": self.source, "count": self.count, "average": self.average}


@dataclass
class AggregateStats:
    """Single-product rollup."""
    product_id: str
    total_reviews: int = 0
    overall_average: float = 0.0
    source_breakdown: List[SourceBreakdown] = field(default_factory=list)
    rating_histogram: Dict[int, int] = field(default_factory=empty_histogram)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "productId": self.product_id,
            "totalReviews": self.total_reviews,
            "overallAverage": self.overall_average,
            "sourceBreakdown": [s.to_dict() for s in self.source_breakdown],
            "ratingHistogram": {str(k): v for k, v in self.rating_histogram.items()},
        }


@dataclass
class OverviewTotals:
    total_reviews: int = 0
    products_with_reviews: int = 0
    average_rating: float = 0.0
    last_ingested_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalReviews": self.total_reviews,
            "productsWithReviews": self.products_with_reviews,
            "averageRating": self.average_rating,
            "lastIngestedAt": _iso(self.last_ingested_at),
        }


@dataclass
class SourceMixEntry:
    source: str
    count: int
    average_rating: float

    def to_dict(self) -> Dict[str, Any]:
        return {"source": self.source, "count": self.count, "averageRating": self.average_rating}


@dataclass
class TimelinePoint:
    date: date
    count: int
    average_rating: float

    def to_dict(self) -> Dict[str, Any]:
        return {"date": self.date.isoformat(), "count": self.count, "averageRating": self.average_rating}


@dataclass
class SourceActivityPoint:
    source: str
    date: date
    count: int

    def to_dict(self) -> Dict[str, Any]:
        return {"source": self.source, "date": self.date.isoformat(), "count": self.count}


@dataclass
class TopProduct:
    id: str
    review_count: int
    average_rating: float
    name: Optional[str] = None
    price: Optional[Decimal] = None
    category_id: Optional[int] = None
    first_review_at: Optional[datetime] = None
    last_review_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "price": float(self.price) if self.price is not None else None,
            "categoryId": self.category_id,
            "reviewCount": self.review_count,
            "averageRating": self.average_rating,
            "firstReviewAt": _iso(self.first_review_at),
            "lastReviewAt": _iso(self.last_review_at),
        }


@dataclass
class AnalyticsOverview:
    """Catalog-wide dashboard view, recomputed per request."""
    window_days: int
    totals: OverviewTotals
    source_mix: List[SourceMixEntry]
    rating_histogram: Dict[int, int]
    timeline: List[TimelinePoint]
    activity_by_source: List[SourceActivityPoint]
    top_products: List[TopProduct]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "windowDays": self.window_days,
            "totals": self.totals.to_dict(),
            "sourceMix": [s.to_dict() for s in self.source_mix],
            "ratingHistogram": {str(k): v for k, v in self.rating_histogram.items()},
            "timeline": [p.to_dict() for p in self.timeline],
            "activityBySource": [p.to_dict() for p in self.activity_by_source],
            "topProducts": [p.to_dict() for p in self.top_products],
        }
