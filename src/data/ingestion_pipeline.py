"""
Review Ingestion Pipeline
=========================

Fans out to every requested review source in parallel, normalizes what
comes back, and hands the merged batch to the deduplicating store.

Features:
    - One task per source, each with its own timeout; a failing source
      never affects its siblings
    - Single reference time per run for reviews without an authored date
    - Chunked writes (default 100 records) with per-chunk failure isolation
    - Partial results are a successful ingestion

Usage:
    from src.data.ingestion_pipeline import IngestionPipeline

    with ReviewStore() as store:
        pipeline = IngestionPipeline(store)
        result = pipeline.ingest("42", ["amazon", "bestbuy"])
        print(result.inserted, result.duplicates, result.per_source_errors)
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Generator, Iterable, List, Optional, Union

from .config import IngestionConfig
from .data_models import IngestionResult, RawReviewPayload, Review
from .normalizer import ReviewNormalizer
from .provider_clients import ProviderError, ProviderRegistry, build_default_registry
from src.reviews.errors import DatabaseError, NotFoundError, ValidationError


logger = logging.getLogger(__name__)


@dataclass
class SourceFetch:
    """Outcome of one source task: payloads or an error, never both."""
    source: str
    payloads: List[RawReviewPayload] = field(default_factory=list)
    error: Optional[ProviderError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class IngestionPipeline:
    """
    Orchestrates multi-source review ingestion for one product at a time.

    This pipeline:
    1. Resolves the requested sources against the provider registry
    2. Fetches every source concurrently, turning failures into values
    3. Normalizes successful payloads against one reference time
    4. Writes the merged batch to the store in bounded chunks
    5. Reports inserted/duplicate counts and per-source errors

    Provider calls are never retried here; callers re-run ingest().
    """

    def __init__(
        self,
        store,
        registry: Optional[ProviderRegistry] = None,
        normalizer: Optional[ReviewNormalizer] = None,
        catalog=None,
        config: Optional[IngestionConfig] = None,
    ):
        """
        Initialize the ingestion pipeline.

        Args:
            store: Deduplicating store exposing upsert_batch()
            registry: Provider registry (built from configuration if None)
            normalizer: Review normalizer (created from config if None)
            catalog: Optional product catalog exposing resolve(); when set,
                unknown products are rejected before any fetch
            config: Ingestion configuration (loaded from environment if None)
        """
        self.config = config or IngestionConfig()
        self.store = store
        self.registry = registry if registry is not None else build_default_registry()
        self.normalizer = normalizer or ReviewNormalizer(default_rating=self.config.default_rating)
        self.catalog = catalog

        logger.info(
            f"IngestionPipeline initialized: "
            f"sources={','.join(self.registry.sources) or 'none'}, "
            f"batch_size={self.config.batch_size}"
        )

    # =========================================================================
    # Source resolution and fetching
    # =========================================================================

    def resolve_sources(self, sources: Optional[Union[str, Iterable[str]]] = None) -> List[str]:
        """
        Normalize the requested source list.

        Accepts a list or a comma-separated string; names are trimmed,
        lower-cased and de-duplicated in order. Nothing requested means
        every registered source.
        """
        if sources is None:
            requested: List[str] = []
        elif isinstance(sources, str):
            requested = sources.split(",")
        else:
            requested = list(sources)

        resolved: List[str] = []
        for name in requested:
            if not isinstance(name, str):
                raise ValidationError(f"Invalid source name: {name!r}")
            name = name.strip().lower()
            if name and name not in resolved:
                resolved.append(name)

        return resolved or list(self.registry.sources)

    def _fetch_source(self, source: str, product_id: str) -> SourceFetch:
        """Fetch one source. Every failure is returned, never raised."""
        client = self.registry.get(source)
        if client is None:
            return SourceFetch(source=source, error=ProviderError(source, "Unknown review source"))

        try:
            payloads = client.fetch(product_id)
        except ProviderError as e:
            return SourceFetch(source=source, error=e)
        except Exception as e:
            logger.exception(f"Unexpected failure in {source} provider")
            return SourceFetch(source=source, error=ProviderError(source, e))

        return SourceFetch(source=source, payloads=list(payloads or []))

    def fetch_all(self, product_id: str, sources: List[str]) -> List[SourceFetch]:
        """
        Fetch all sources concurrently and wait for every one to settle.

        Returns one SourceFetch per source, in request order.
        """
        if not sources:
            return []

        workers = min(len(sources), self.config.max_workers)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="review-source") as executor:
            futures = [executor.submit(self._fetch_source, source, product_id) for source in sources]
            return [future.result() for future in futures]

    def generate_batches(
        self,
        reviews: List[Review],
        batch_size: Optional[int] = None,
    ) -> Generator[List[Review], None, None]:
        """
        Generate review chunks for the store.

        Args:
            reviews: Full merged batch
            batch_size: Size of each chunk (default from config)

        Yields:
            Lists of reviews
        """
        size = batch_size or self.config.batch_size
        for i in range(0, len(reviews), size):
            yield reviews[i:i + size]

    # =========================================================================
    # Main entry point
    # =========================================================================

    def ingest(
        self,
        product_id: str,
        sources: Optional[Union[str, Iterable[str]]] = None,
    ) -> IngestionResult:
        """
        Ingest reviews of one product from the requested sources.

        Args:
            product_id: Catalog product id
            sources: Source names (default: every registered source)

        Returns:
            IngestionResult. Partial source or record failures are reported
            inside the result; success is False only when nothing was written.

        Raises:
            ValidationError: Empty product id or invalid source names
            NotFoundError: The catalog does not know the product
        """
        product_id = str(product_id).strip() if product_id is not None else ""
        if not product_id:
            raise ValidationError("Product id is required")

        if self.catalog is not None and self.catalog.resolve(product_id) is None:
            raise NotFoundError(f"Product {product_id} not found")

        requested = self.resolve_sources(sources)
        now = datetime.now(timezone.utc)
        result = IngestionResult(
            product_id=product_id,
            sources_requested=requested,
            started_at=now,
        )

        logger.info(f"Ingesting reviews for product {product_id} from: {', '.join(requested) or 'none'}")

        # Fan out / fan in
        batch: List[Review] = []
        for fetch in self.fetch_all(product_id, requested):
            if not fetch.ok:
                logger.error(f"Failed to fetch from {fetch.source}: {fetch.error.cause}")
                result.add_error(fetch.source, fetch.error.error_type, str(fetch.error.cause))
                continue

            result.sources_succeeded.append(fetch.source)
            result.total_fetched += len(fetch.payloads)
            batch.extend(self._normalize(fetch, product_id, now, result))
            logger.info(f"Got {len(fetch.payloads)} reviews from {fetch.source}")

        if not batch:
            logger.warning(f"No reviews fetched for product {product_id}")
            result.completed_at = datetime.now(timezone.utc)
            return result

        # Persist in bounded write units
        total_chunks = (len(batch) + self.config.batch_size - 1) // self.config.batch_size
        for chunk_num, chunk in enumerate(self.generate_batches(batch), 1):
            try:
                written = self.store.upsert_batch(chunk)
            except DatabaseError as e:
                logger.error(f"Chunk {chunk_num}/{total_chunks} failed, skipping {len(chunk)} reviews: {e}")
                result.failed += len(chunk)
                continue

            result.inserted += written.inserted_count
            result.duplicates += written.duplicate_count
            result.failed += written.failed_count
            logger.debug(
                f"Chunk {chunk_num}/{total_chunks}: {written.inserted_count} new, "
                f"{written.duplicate_count} duplicates, {written.failed_count} failed"
            )

        result.completed_at = datetime.now(timezone.utc)
        logger.info(
            f"Ingestion complete for product {product_id}: "
            f"{result.total_fetched} fetched, {result.inserted} inserted, "
            f"{result.duplicates} duplicates, {result.failed} failed, "
            f"{len(result.per_source_errors)} source errors in {result.duration_seconds:.1f}s"
        )
        return result

    def _normalize(
        self,
        fetch: SourceFetch,
        product_id: str,
        now: datetime,
        result: IngestionResult,
    ) -> List[Review]:
        """Normalize a source's payloads, skipping any the normalizer cannot read."""
        reviews = []
        for payload in fetch.payloads:
            try:
                reviews.append(self.normalizer.normalize(payload, product_id, fetch.source, now=now))
            except (TypeError, ValueError, AttributeError) as e:
                logger.warning(f"Skipping malformed {fetch.source} payload: {e}")
                result.failed += 1
        return reviews
