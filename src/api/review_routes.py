"""
Product Review API Routes
=========================

POST /api/products/{product_id}/reviews/fetch     — ingest reviews from the requested sources
GET  /api/products/{product_id}/reviews           — paged stored reviews
GET  /api/products/{product_id}/reviews/aggregate — rating rollup
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from src.data.ingestion_pipeline import IngestionPipeline
from src.reviews.analytics import ReviewAnalytics
from src.reviews.errors import ReviewServiceError
from src.reviews.listing import list_reviews
from src.reviews.review_store import ReviewStore
from .models import AggregateStatsResponse, ReviewPageResponse
from .shared import get_analytics, get_pipeline, get_store, http_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/products", tags=["Reviews"])


@router.post("/{product_id}/reviews/fetch")
def fetch_reviews(
    product_id: str,
    sources: Optional[str] = Query(None, description="Comma-separated sources (default: all)"),
    pipeline: IngestionPipeline = Depends(get_pipeline),
):
    """
    Ingest reviews of a product.

    Partial source failures still return 200 with the per-source breakdown;
    only a run that wrote nothing answers 502.
    """
    try:
        result = pipeline.ingest(product_id, sources)
    except ReviewServiceError as e:
        raise http_error(e)

    status_code = 200 if result.success else 502
    if not result.success:
        logger.warning(f"Ingestion for product {product_id} wrote nothing")
    return JSONResponse(status_code=status_code, content=result.to_dict())


@router.get("/{product_id}/reviews", response_model=ReviewPageResponse)
def get_reviews(
    product_id: str,
    limit: Optional[int] = Query(None, description="Page size (max 100)"),
    offset: int = Query(0, description="Rows to skip"),
    store: ReviewStore = Depends(get_store),
):
    """Stored reviews of a product, most recently authored first."""
    try:
        page = list_reviews(store, product_id, limit=limit, offset=offset)
    except ReviewServiceError as e:
        raise http_error(e)
    return page.to_dict()


@router.get("/{product_id}/reviews/aggregate", response_model=AggregateStatsResponse)
def get_aggregate(
    product_id: str,
    analytics: ReviewAnalytics = Depends(get_analytics),
):
    """Total, overall average, per-source breakdown and dense 1-5 histogram."""
    try:
        stats = analytics.aggregate_stats(product_id)
    except ReviewServiceError as e:
        raise http_error(e)
    return stats.to_dict()
