"""
Deduplicating Review Store
==========================

PostgreSQL persistence boundary for reviews.

The identity key (product_id, source, external_review_id) is enforced by a
UNIQUE constraint, and every write goes through a native
INSERT ... ON CONFLICT DO UPDATE, so two concurrent ingestions of the same
review can never both insert. The statement reports whether the row was
created via RETURNING (xmax = 0).

Also exposes the read surface used by moderation and analytics: product
listings, the moderation queue and the grouped aggregation primitives.

Usage:
    with ReviewStore() as store:
        store.ensure_schema()
        result = store.upsert_batch(reviews)
        print(result.inserted_count, result.duplicate_count)
"""

import logging
from contextlib import contextmanager
from datetime import date, datetime, time, timezone
from typing import List, Optional, Sequence, Dict, Any

import psycopg2
from psycopg2 import pool

from src.data.config import DatabaseConfig
from src.data.data_models import ModerationStatus, Product, Review, StoredReview
from .errors import DatabaseError, PersistenceError
from .review_models import (
    BatchUpsertResult,
    CorpusSummaryRow,
    DailyActivityRow,
    ModerationFilters,
    ProductActivityRow,
    RatingBucketRow,
    ReviewPage,
    UpsertOutcome,
)

logger = logging.getLogger(__name__)


SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS reviews (
        id BIGSERIAL PRIMARY KEY,
        product_id VARCHAR(50) NOT NULL,
        source VARCHAR(50) NOT NULL,
        external_review_id VARCHAR(100) NOT NULL,
        author VARCHAR(100),
        rating SMALLINT NOT NULL CHECK (rating BETWEEN 1 AND 5),
        title VARCHAR(255),
        body TEXT,
        authored_at TIMESTAMPTZ,
        fetched_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        verified_purchase BOOLEAN NOT NULL DEFAULT FALSE,
        flagged BOOLEAN NOT NULL DEFAULT FALSE,
        moderation_status VARCHAR(16) NOT NULL DEFAULT 'approved'
            CHECK (moderation_status IN ('pending', 'approved', 'rejected')),
        CONSTRAINT uq_reviews_identity UNIQUE (product_id, source, external_review_id)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_reviews_product_id ON reviews (product_id)",
    "CREATE INDEX IF NOT EXISTS idx_reviews_source ON reviews (source)",
    "CREATE INDEX IF NOT EXISTS idx_reviews_product_source ON reviews (product_id, source)",
    "CREATE INDEX IF NOT EXISTS idx_reviews_moderation_status ON reviews (moderation_status)",
    "CREATE INDEX IF NOT EXISTS idx_reviews_flagged ON reviews (flagged)",
    "CREATE INDEX IF NOT EXISTS idx_reviews_verified ON reviews (verified_purchase)",
    "CREATE INDEX IF NOT EXISTS idx_reviews_authored_at ON reviews (authored_at)",
    "CREATE INDEX IF NOT EXISTS idx_reviews_fetched_at ON reviews (fetched_at)",
    "CREATE INDEX IF NOT EXISTS idx_reviews_activity_at ON reviews ((COALESCE(authored_at, fetched_at)))",
]

REVIEW_COLUMNS = (
    "id, product_id, source, external_review_id, author, rating, title, body, "
    "authored_at, fetched_at, verified_purchase, flagged, moderation_status"
)

# authored_at is written once; everything else is refreshed on conflict
UPSERT_SQL = """
    INSERT INTO reviews (
        product_id, source, external_review_id, author, rating,
        title, body, authored_at, fetched_at, verified_purchase
    ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, NOW(), %s)
    ON CONFLICT (product_id, source, external_review_id) DO UPDATE SET
        author = EXCLUDED.author,
        rating = EXCLUDED.rating,
        title = EXCLUDED.title,
        body = EXCLUDED.body,
        verified_purchase = EXCLUDED.verified_purchase,
        fetched_at = NOW()
    RETURNING id, (xmax = 0) AS inserted
"""


def _row_to_review(row: Sequence[Any]) -> StoredReview:
    return StoredReview(
        id=row[0],
        product_id=row[1],
        source=row[2],
        external_review_id=row[3],
        author=row[4],
        rating=row[5],
        title=row[6],
        body=row[7],
        authored_at=row[8],
        fetched_at=row[9],
        verified_purchase=bool(row[10]),
        flagged=bool(row[11]),
        moderation_status=ModerationStatus(row[12]),
    )


def _moderation_where(filters: ModerationFilters):
    clauses = []
    params: List[Any] = []
    if filters.status is not None:
        clauses.append("moderation_status = %s")
        params.append(ModerationStatus(filters.status).value)
    if filters.flagged is not None:
        clauses.append("flagged = %s")
        params.append(bool(filters.flagged))
    if filters.product_id:
        clauses.append("product_id = %s")
        params.append(str(filters.product_id))
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    return where, params


class ReviewStore:
    """
    PostgreSQL-backed deduplicating review store.

    The connection pool is created lazily from DatabaseConfig unless one is
    injected; an injected pool is left open on close().
    """

    def __init__(
        self,
        db_pool: Optional[pool.ThreadedConnectionPool] = None,
        database_config: Optional[DatabaseConfig] = None,
    ):
        self._db_pool = db_pool
        self._own_pool = db_pool is None
        self._database_config = database_config

    @property
    def db_pool(self) -> pool.ThreadedConnectionPool:
        """Lazy-initialize database connection pool."""
        if self._db_pool is None:
            db_config = self._database_config or DatabaseConfig()
            self._db_pool = pool.ThreadedConnectionPool(
                minconn=db_config.pool_min_size,
                maxconn=db_config.pool_max_size,
                **db_config.connection_dict
            )
            logger.info("Database connection pool created")
        return self._db_pool

    @contextmanager
    def get_db_connection(self):
        """
        Get a database connection from the pool.

        Commits on success, rolls back and raises DatabaseError otherwise.
        PersistenceError raised inside the block is not wrapped.
        """
        conn = None
        try:
            conn = self.db_pool.getconn()
            yield conn
            conn.commit()
        except PersistenceError:
            if conn:
                conn.rollback()
            raise
        except Exception as e:
            if conn:
                conn.rollback()
            raise DatabaseError(f"Database operation failed: {e}") from e
        finally:
            if conn:
                self.db_pool.putconn(conn)

    def close(self):
        """Clean up resources."""
        if self._own_pool and self._db_pool is not None:
            self._db_pool.closeall()
            self._db_pool = None
            logger.info("Database connection pool closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def ensure_schema(self) -> None:
        """Create the reviews table and its indexes if missing."""
        with self.get_db_connection() as conn:
            with conn.cursor() as cur:
                for statement in SCHEMA_STATEMENTS:
                    cur.execute(statement)
        logger.info("Reviews table initialized")

    # =========================================================================
    # Writes (ingestion)
    # =========================================================================

    def _upsert_row(self, cur, review: Review) -> UpsertOutcome:
        """Upsert one review under a savepoint so a bad row leaves the transaction usable."""
        cur.execute("SAVEPOINT review_upsert")
        try:
            cur.execute(UPSERT_SQL, (
                review.product_id,
                review.source,
                review.external_review_id,
                review.author,
                review.rating,
                review.title,
                review.body,
                review.authored_at,
                review.verified_purchase,
            ))
            row = cur.fetchone()
        except psycopg2.Error as e:
            cur.execute("ROLLBACK TO SAVEPOINT review_upsert")
            raise PersistenceError(review.identity_key, e) from e
        cur.execute("RELEASE SAVEPOINT review_upsert")
        return UpsertOutcome(review_id=row[0], was_new=bool(row[1]))

    def upsert(self, review: Review) -> UpsertOutcome:
        """
        Insert a review, or refresh the row sharing its identity key.

        Raises:
            PersistenceError: The row was rejected (e.g. constraint violation)
            DatabaseError: Connection or transaction failure
        """
        with self.get_db_connection() as conn:
            with conn.cursor() as cur:
                return self._upsert_row(cur, review)

    def upsert_batch(self, reviews: List[Review]) -> BatchUpsertResult:
        """
        Upsert a batch of reviews in one transaction.

        A record that fails to write is logged and skipped; it counts as
        neither inserted nor duplicate.

        Raises:
            DatabaseError: The whole write unit failed
        """
        result = BatchUpsertResult()
        if not reviews:
            return result

        with self.get_db_connection() as conn:
            with conn.cursor() as cur:
                for review in reviews:
                    try:
                        outcome = self._upsert_row(cur, review)
                    except PersistenceError as e:
                        logger.warning(f"Skipping review: {e}")
                        result.failed_count += 1
                        continue

                    result.affected += 1
                    if outcome.was_new:
                        result.inserted_count += 1
                    else:
                        result.duplicate_count += 1

        logger.debug(
            f"Upserted {result.affected} reviews: {result.inserted_count} new, "
            f"{result.duplicate_count} duplicates, {result.failed_count} failed"
        )
        return result

    # =========================================================================
    # Reads
    # =========================================================================

    def list_by_product(
        self,
        product_id: str,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[StoredReview]:
        """Reviews of a product, most recently authored first."""
        sql = f"""
            SELECT {REVIEW_COLUMNS}
            FROM reviews
            WHERE product_id = %s
            ORDER BY authored_at DESC NULLS LAST, id DESC
        """
        params: List[Any] = [str(product_id)]
        if limit is not None:
            sql += " LIMIT %s"
            params.append(limit)
        if offset:
            sql += " OFFSET %s"
            params.append(offset)

        with self.get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, params)
                return [_row_to_review(row) for row in cur.fetchall()]

    def count_by_product(self, product_id: str) -> int:
        with self.get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT COUNT(*) FROM reviews WHERE product_id = %s", (str(product_id),))
                return cur.fetchone()[0] or 0

    def moderation_page(self, filters: ModerationFilters, limit: int, offset: int) -> ReviewPage:
        """Filtered page of reviews, most recently fetched first, with the unpaged total."""
        where, params = _moderation_where(filters)

        with self.get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(f"SELECT COUNT(*) FROM reviews {where}", params)
                total = cur.fetchone()[0] or 0

                cur.execute(
                    f"""
                    SELECT {REVIEW_COLUMNS}
                    FROM reviews
                    {where}
                    ORDER BY fetched_at DESC, id DESC
                    LIMIT %s OFFSET %s
                    """,
                    params + [limit, offset],
                )
                items = [_row_to_review(row) for row in cur.fetchall()]

        return ReviewPage(items=items, total=total, limit=limit, offset=offset)

    # =========================================================================
    # Moderation & administrative writes
    # =========================================================================

    def update_moderation(
        self,
        review_id: int,
        flagged: Optional[bool] = None,
        status: Optional[ModerationStatus] = None,
    ) -> int:
        """Set flagged and/or moderation_status. Returns the number of rows updated."""
        set_clauses = []
        values: List[Any] = []
        if flagged is not None:
            set_clauses.append("flagged = %s")
            values.append(bool(flagged))
        if status is not None:
            set_clauses.append("moderation_status = %s")
            values.append(ModerationStatus(status).value)

        if not set_clauses:
            return 0

        values.append(review_id)
        with self.get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(f"UPDATE reviews SET {', '.join(set_clauses)} WHERE id = %s", values)
                return cur.rowcount

    def delete_by_id(self, review_id: int) -> int:
        with self.get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM reviews WHERE id = %s", (review_id,))
                return cur.rowcount

    def delete_by_product(self, product_id: str) -> int:
        with self.get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM reviews WHERE product_id = %s", (str(product_id),))
                deleted = cur.rowcount
        logger.info(f"Deleted {deleted} reviews of product {product_id}")
        return deleted

    # =========================================================================
    # Aggregation primitives
    # =========================================================================

    def rating_buckets(self, product_id: Optional[str] = None) -> List[RatingBucketRow]:
        """COUNT(*) grouped by source and rating, optionally for one product."""
        sql = "SELECT source, rating, COUNT(*) FROM reviews"
        params: List[Any] = []
        if product_id is not None:
            sql += " WHERE product_id = %s"
            params.append(str(product_id))
        sql += " GROUP BY source, rating ORDER BY source, rating"

        with self.get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, params)
                return [
                    RatingBucketRow(source=row[0], rating=int(row[1]), count=int(row[2]))
                    for row in cur.fetchall()
                ]

    def corpus_summary(self) -> CorpusSummaryRow:
        with self.get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT COUNT(DISTINCT product_id), MAX(fetched_at) FROM reviews")
                row = cur.fetchone()
        return CorpusSummaryRow(products_with_reviews=row[0] or 0, last_ingested_at=row[1])

    def daily_activity(self, since: date) -> List[DailyActivityRow]:
        """
        Review count and rating sum per (UTC day, source), from `since` onward.

        The day of a review is the day of COALESCE(authored_at, fetched_at).
        """
        since_at = datetime.combine(since, time.min, tzinfo=timezone.utc)
        with self.get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT
                        (COALESCE(authored_at, fetched_at) AT TIME ZONE 'UTC')::date AS bucket,
                        source,
                        COUNT(*),
                        SUM(rating)
                    FROM reviews
                    WHERE COALESCE(authored_at, fetched_at) >= %s
                    GROUP BY bucket, source
                    ORDER BY bucket ASC, source ASC
                    """,
                    (since_at,),
                )
                return [
                    DailyActivityRow(day=row[0], source=row[1], count=int(row[2]), rating_sum=int(row[3]))
                    for row in cur.fetchall()
                ]

    def top_products(self, limit: int) -> List[ProductActivityRow]:
        """Products by review count, then mean rating."""
        with self.get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT
                        product_id,
                        COUNT(*) AS review_count,
                        SUM(rating),
                        MIN(COALESCE(authored_at, fetched_at)),
                        MAX(COALESCE(authored_at, fetched_at))
                    FROM reviews
                    GROUP BY product_id
                    ORDER BY review_count DESC, ROUND(AVG(rating), 2) DESC, product_id ASC
                    LIMIT %s
                    """,
                    (limit,),
                )
                return [
                    ProductActivityRow(
                        product_id=row[0],
                        review_count=int(row[1]),
                        rating_sum=int(row[2]),
                        first_review_at=row[3],
                        last_review_at=row[4],
                    )
                    for row in cur.fetchall()
                ]

    def health_check(self) -> Dict[str, Any]:
        """Database reachability. Never raises."""
        try:
            with self.get_db_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute("SELECT COUNT(*) FROM reviews")
                    count = cur.fetchone()[0]
            return {"status": "healthy", "reviews": count}
        except DatabaseError as e:
            logger.warning(f"DB health check failed: {e}")
            return {"status": "unhealthy", "error": str(e)}


class ProductCatalog:
    """Read-only view of the catalog's products table."""

    def __init__(self, store: ReviewStore):
        self.store = store

    def resolve(self, product_id: str) -> Optional[Product]:
        """Return the product, or None when the catalog does not know it."""
        with self.store.get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT id, name, price, category_id, description, image_url, created_at
                    FROM products
                    WHERE id::text = %s
                    """,
                    (str(product_id),),
                )
                row = cur.fetchone()

        if not row:
            return None
        return Product(
            id=str(row[0]),
            name=row[1],
            price=row[2],
            category_id=row[3],
            description=row[4],
            image_url=row[5],
            created_at=row[6],
        )
