"""
Review Analytics
================

Dashboard aggregates computed on demand from the reviews table.

The store answers a handful of simple grouped queries (per source and
rating, per day and source, per product); everything else is combined
here, so the same primitives serve both the single-product rollup and
the catalog-wide overview.

Usage:
    analytics = ReviewAnalytics(store, catalog)
    stats = analytics.aggregate_stats("42")
    overview = analytics.overview(window_days=30)
"""

import logging
from collections import OrderedDict
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

from src.data.config import AnalyticsConfig
from .errors import NotFoundError, ValidationError
from .review_models import (
    AggregateStats,
    AnalyticsOverview,
    DailyActivityRow,
    OverviewTotals,
    ProductActivityRow,
    RatingBucketRow,
    SourceActivityPoint,
    SourceBreakdown,
    SourceMixEntry,
    TimelinePoint,
    TopProduct,
    empty_histogram,
    rounded_average,
)

logger = logging.getLogger(__name__)


def clamp_window(days: Any, config: AnalyticsConfig) -> int:
    """Clamp a requested window into [min, max]; missing or garbage means the default."""
    try:
        days = int(days) if days is not None else config.default_window_days
    except (TypeError, ValueError):
        days = config.default_window_days
    return min(max(days, config.min_window_days), config.max_window_days)


def build_histogram(rows: Iterable[RatingBucketRow]) -> Dict[int, int]:
    """Dense 1..5 rating histogram. Out-of-range ratings are ignored."""
    histogram = empty_histogram()
    for row in rows:
        if row.rating in histogram:
            histogram[row.rating] += row.count
    return histogram


def _source_totals(rows: Iterable[RatingBucketRow]) -> "OrderedDict[str, List[int]]":
    totals: "OrderedDict[str, List[int]]" = OrderedDict()
    for row in rows:
        count_sum = totals.setdefault(row.source, [0, 0])
        count_sum[0] += row.count
        count_sum[1] += row.rating * row.count
    return totals


def build_source_breakdown(rows: Iterable[RatingBucketRow]) -> List[SourceBreakdown]:
    """Per-source count and mean rating, largest source first."""
    breakdown = [
        SourceBreakdown(source=source, count=count, average=rounded_average(rating_sum, count))
        for source, (count, rating_sum) in _source_totals(rows).items()
    ]
    return sorted(breakdown, key=lambda s: (-s.count, s.source))


def build_aggregate_stats(product_id: str, rows: List[RatingBucketRow]) -> AggregateStats:
    """Grand total, per-source and per-rating rollup from (source, rating, count) rows."""
    total = sum(row.count for row in rows)
    rating_sum = sum(row.rating * row.count for row in rows)
    return AggregateStats(
        product_id=product_id,
        total_reviews=total,
        overall_average=rounded_average(rating_sum, total),
        source_breakdown=build_source_breakdown(rows),
        rating_histogram=build_histogram(rows),
    )


def build_timeline(rows: Iterable[DailyActivityRow]) -> List[TimelinePoint]:
    """Per-day count and mean rating across sources, oldest day first."""
    days: Dict[date, List[int]] = {}
    for row in rows:
        count_sum = days.setdefault(row.day, [0, 0])
        count_sum[0] += row.count
        count_sum[1] += row.rating_sum
    return [
        TimelinePoint(date=day, count=count, average_rating=rounded_average(rating_sum, count))
        for day, (count, rating_sum) in sorted(days.items())
    ]


def build_activity_by_source(rows: Iterable[DailyActivityRow]) -> List[SourceActivityPoint]:
    """Per-day, per-source counts, oldest day first."""
    points = [SourceActivityPoint(source=row.source, date=row.day, count=row.count) for row in rows]
    return sorted(points, key=lambda p: (p.date, p.source))


class ReviewAnalytics:
    """
    Read-only aggregation over the review corpus.

    Nothing is cached: every call reflects the table at query time, and
    repeated calls over unchanged data return identical results.
    """

    def __init__(self, store, catalog=None, config: Optional[AnalyticsConfig] = None):
        self.store = store
        self.catalog = catalog
        self.config = config or AnalyticsConfig()

    def aggregate_stats(self, product_id: str) -> AggregateStats:
        """
        Single-product rollup: totals, per-source breakdown and rating histogram.

        A product without reviews yields zero totals and an all-zero histogram.

        Raises:
            ValidationError: Empty product id
            NotFoundError: A catalog is configured and does not know the product
        """
        product_id = str(product_id).strip() if product_id is not None else ""
        if not product_id:
            raise ValidationError("Product id is required")
        if self.catalog is not None and self.catalog.resolve(product_id) is None:
            raise NotFoundError(f"Product {product_id} not found")
        return build_aggregate_stats(product_id, self.store.rating_buckets(product_id))

    def overview(self, window_days: Any = None, today: Optional[date] = None) -> AnalyticsOverview:
        """
        Catalog-wide dashboard view.

        Args:
            window_days: Timeline window, clamped to the configured bounds
            today: Reference day for the window (default: today, UTC)
        """
        days = clamp_window(window_days, self.config)
        today = today or datetime.now(timezone.utc).date()
        since = today - timedelta(days=days)

        buckets = self.store.rating_buckets()
        summary = self.store.corpus_summary()
        activity = self.store.daily_activity(since)
        ranked = self.store.top_products(self.config.top_products_limit)

        total = sum(row.count for row in buckets)
        rating_sum = sum(row.rating * row.count for row in buckets)
        totals = OverviewTotals(
            total_reviews=total,
            products_with_reviews=summary.products_with_reviews,
            average_rating=rounded_average(rating_sum, total),
            last_ingested_at=summary.last_ingested_at,
        )

        source_mix = [
            SourceMixEntry(source=s.source, count=s.count, average_rating=s.average)
            for s in build_source_breakdown(buckets)
        ]

        overview = AnalyticsOverview(
            window_days=days,
            totals=totals,
            source_mix=source_mix,
            rating_histogram=build_histogram(buckets),
            timeline=build_timeline(activity),
            activity_by_source=build_activity_by_source(activity),
            top_products=[self._top_product(row) for row in ranked],
        )

        logger.debug(
            f"Analytics overview: {total} reviews, {len(overview.timeline)} days in "
            f"{days}-day window, {len(overview.top_products)} top products"
        )
        return overview

    def _top_product(self, row: ProductActivityRow) -> TopProduct:
        product = self.catalog.resolve(row.product_id) if self.catalog is not None else None
        return TopProduct(
            id=row.product_id,
            review_count=row.review_count,
            average_rating=row.average_rating,
            name=product.name if product else None,
            price=product.price if product else None,
            category_id=product.category_id if product else None,
            first_review_at=row.first_review_at,
            last_review_at=row.last_review_at,
        )
