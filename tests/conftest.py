"""
Shared fixtures for the review aggregator test suite.

InMemoryReviewStore mirrors the read/write surface of the PostgreSQL
ReviewStore (upserts keyed on the identity key, moderation paging, the
grouped aggregation primitives) so ingestion, moderation and analytics can
be exercised without a database.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, List, Optional

import pytest

from src.data.data_models import ModerationStatus, Product, Review, StoredReview
from src.data.provider_clients import ProviderClient, ProviderError
from src.reviews.errors import DatabaseError, PersistenceError
from src.reviews.review_models import (
    BatchUpsertResult,
    CorpusSummaryRow,
    DailyActivityRow,
    ModerationFilters,
    ProductActivityRow,
    RatingBucketRow,
    ReviewPage,
    UpsertOutcome,
)


BASE_TIME = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


class InMemoryReviewStore:
    """Dict-backed stand-in for ReviewStore."""

    def __init__(self):
        self.rows: Dict[int, StoredReview] = {}
        self._by_key: Dict[tuple, int] = {}
        self._next_id = 1
        self._ticks = 0
        # Identity keys whose writes are rejected (PersistenceError)
        self.reject_keys = set()
        # Number of upcoming upsert_batch calls that fail as a whole
        self.failing_batches = 0
        self.batch_sizes: List[int] = []

    def _now(self) -> datetime:
        self._ticks += 1
        return BASE_TIME + timedelta(seconds=self._ticks)

    # -- writes ---------------------------------------------------------------

    def upsert(self, review: Review) -> UpsertOutcome:
        if review.identity_key in self.reject_keys:
            raise PersistenceError(review.identity_key, ValueError("rejected"))

        existing_id = self._by_key.get(review.identity_key)
        if existing_id is not None:
            row = self.rows[existing_id]
            row.author = review.author
            row.rating = review.rating
            row.title = review.title
            row.body = review.body
            row.verified_purchase = review.verified_purchase
            row.fetched_at = self._now()
            return UpsertOutcome(review_id=existing_id, was_new=False)

        row = StoredReview(
            id=self._next_id,
            product_id=review.product_id,
            source=review.source,
            external_review_id=review.external_review_id,
            rating=review.rating,
            author=review.author,
            title=review.title,
            body=review.body,
            authored_at=review.authored_at,
            fetched_at=self._now(),
            verified_purchase=review.verified_purchase,
        )
        self.rows[row.id] = row
        self._by_key[review.identity_key] = row.id
        self._next_id += 1
        return UpsertOutcome(review_id=row.id, was_new=True)

    def upsert_batch(self, reviews: List[Review]) -> BatchUpsertResult:
        self.batch_sizes.append(len(reviews))
        if self.failing_batches > 0:
            self.failing_batches -= 1
            raise DatabaseError("connection lost")

        result = BatchUpsertResult()
        for review in reviews:
            try:
                outcome = self.upsert(review)
            except PersistenceError:
                result.failed_count += 1
                continue
            result.affected += 1
            if outcome.was_new:
                result.inserted_count += 1
            else:
                result.duplicate_count += 1
        return result

    # -- reads ----------------------------------------------------------------

    def list_by_product(self, product_id: str, limit: Optional[int] = None, offset: int = 0) -> List[StoredReview]:
        rows = [r for r in self.rows.values() if r.product_id == str(product_id)]
        rows.sort(key=lambda r: r.id, reverse=True)
        rows.sort(key=lambda r: (r.authored_at is None, -(r.authored_at.timestamp() if r.authored_at else 0)))
        rows = rows[offset:]
        return rows[:limit] if limit is not None else rows

    def count_by_product(self, product_id: str) -> int:
        return sum(1 for r in self.rows.values() if r.product_id == str(product_id))

    def moderation_page(self, filters: ModerationFilters, limit: int, offset: int) -> ReviewPage:
        rows = list(self.rows.values())
        if filters.status is not None:
            rows = [r for r in rows if r.moderation_status == ModerationStatus(filters.status)]
        if filters.flagged is not None:
            rows = [r for r in rows if r.flagged == filters.flagged]
        if filters.product_id:
            rows = [r for r in rows if r.product_id == str(filters.product_id)]
        rows.sort(key=lambda r: (r.fetched_at, r.id), reverse=True)
        return ReviewPage(items=rows[offset:offset + limit], total=len(rows), limit=limit, offset=offset)

    # -- moderation -----------------------------------------------------------

    def update_moderation(self, review_id: int, flagged=None, status=None) -> int:
        row = self.rows.get(review_id)
        if row is None:
            return 0
        if flagged is not None:
            row.flagged = bool(flagged)
        if status is not None:
            row.moderation_status = ModerationStatus(status)
        return 1

    def delete_by_id(self, review_id: int) -> int:
        row = self.rows.pop(review_id, None)
        if row is None:
            return 0
        del self._by_key[row.identity_key]
        return 1

    def delete_by_product(self, product_id: str) -> int:
        ids = [r.id for r in self.rows.values() if r.product_id == str(product_id)]
        for review_id in ids:
            self.delete_by_id(review_id)
        return len(ids)

    # -- aggregation primitives -------------------------------------------------

    def rating_buckets(self, product_id: Optional[str] = None) -> List[RatingBucketRow]:
        counts: Dict[tuple, int] = {}
        for r in self.rows.values():
            if product_id is not None and r.product_id != str(product_id):
                continue
            counts[(r.source, r.rating)] = counts.get((r.source, r.rating), 0) + 1
        return [RatingBucketRow(source=s, rating=rt, count=c) for (s, rt), c in sorted(counts.items())]

    def corpus_summary(self) -> CorpusSummaryRow:
        if not self.rows:
            return CorpusSummaryRow()
        return CorpusSummaryRow(
            products_with_reviews=len({r.product_id for r in self.rows.values()}),
            last_ingested_at=max(r.fetched_at for r in self.rows.values()),
        )

    def daily_activity(self, since: date) -> List[DailyActivityRow]:
        since_at = datetime.combine(since, time.min, tzinfo=timezone.utc)
        buckets: Dict[tuple, List[int]] = {}
        for r in self.rows.values():
            at = r.authored_at or r.fetched_at
            if at < since_at:
                continue
            key = (at.astimezone(timezone.utc).date(), r.source)
            bucket = buckets.setdefault(key, [0, 0])
            bucket[0] += 1
            bucket[1] += r.rating
        return [
            DailyActivityRow(day=day, source=source, count=c, rating_sum=s)
            for (day, source), (c, s) in sorted(buckets.items())
        ]

    def top_products(self, limit: int) -> List[ProductActivityRow]:
        products: Dict[str, ProductActivityRow] = {}
        for r in self.rows.values():
            at = r.authored_at or r.fetched_at
            row = products.get(r.product_id)
            if row is None:
                products[r.product_id] = ProductActivityRow(
                    product_id=r.product_id, review_count=1, rating_sum=r.rating,
                    first_review_at=at, last_review_at=at,
                )
                continue
            row.review_count += 1
            row.rating_sum += r.rating
            row.first_review_at = min(row.first_review_at, at)
            row.last_review_at = max(row.last_review_at, at)
        ranked = sorted(products.values(), key=lambda p: (-p.review_count, -p.average_rating, p.product_id))
        return ranked[:limit]

    def health_check(self):
        return {"status": "healthy", "reviews": len(self.rows)}


class StaticProvider(ProviderClient):
    """Provider returning a fixed payload list, or failing with a fixed cause."""

    def __init__(self, source: str, payloads=None, error=None):
        super().__init__(source)
        self.payloads = payloads or []
        self.error = error
        self.calls: List[str] = []

    def fetch(self, product_id: str):
        self.calls.append(product_id)
        if self.error is not None:
            raise ProviderError(self.source, self.error)
        return [dict(p) for p in self.payloads]


class StaticCatalog:
    """Product catalog backed by a dict."""

    def __init__(self, products=None):
        self.products = {p.id: p for p in (products or [])}

    def resolve(self, product_id: str) -> Optional[Product]:
        return self.products.get(str(product_id))


def make_payload(review_id=None, rating=5, author="Jane", content="Great product", date="2025-02-20", **overrides):
    """Create a scraper-style review payload."""
    data = {"author": author, "rating": rating, "content": content, "date": date}
    if review_id is not None:
        data["id"] = review_id
    data.update(overrides)
    return data


@pytest.fixture
def store():
    return InMemoryReviewStore()

