"""
Review Moderation API Routes
============================

GET    /api/admin/reviews                       — moderation queue
PATCH  /api/admin/reviews/{review_id}           — flag / change status
DELETE /api/admin/reviews/{review_id}           — delete one review
DELETE /api/admin/products/{product_id}/reviews — purge a product's reviews
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from src.reviews.errors import ReviewServiceError
from src.reviews.moderation import DEFAULT_QUEUE_LIMIT, ModerationService
from src.reviews.review_models import ModerationFilters
from .models import DeleteResponse, ModerationUpdateRequest, ReviewPageResponse, UpdateResponse
from .shared import get_moderation, http_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Moderation"])


@router.get("/reviews", response_model=ReviewPageResponse)
def get_moderation_queue(
    status: Optional[str] = Query(None, description="pending | approved | rejected"),
    flagged: Optional[bool] = Query(None),
    productId: Optional[str] = Query(None),
    limit: int = Query(DEFAULT_QUEUE_LIMIT, description="Page size (max 100)"),
    offset: int = Query(0),
    moderation: ModerationService = Depends(get_moderation),
):
    """Filtered moderation queue, most recently fetched first."""
    try:
        page = moderation.queue(
            ModerationFilters(status=status, flagged=flagged, product_id=productId),
            limit=limit,
            offset=offset,
        )
    except ReviewServiceError as e:
        raise http_error(e)
    return page.to_dict()


@router.patch("/reviews/{review_id}", response_model=UpdateResponse)
def update_review(
    review_id: str,
    request: ModerationUpdateRequest,
    moderation: ModerationService = Depends(get_moderation),
):
    """Set flagged and/or moderation status; omitted fields are unchanged."""
    try:
        updated = moderation.update(review_id, flagged=request.flagged, status=request.moderationStatus)
    except ReviewServiceError as e:
        raise http_error(e)
    return UpdateResponse(updated=updated)


@router.delete("/reviews/{review_id}", response_model=DeleteResponse)
def delete_review(
    review_id: str,
    moderation: ModerationService = Depends(get_moderation),
):
    try:
        deleted = moderation.delete(review_id)
    except ReviewServiceError as e:
        raise http_error(e)
    return DeleteResponse(deleted=deleted)


@router.delete("/products/{product_id}/reviews", response_model=DeleteResponse)
def delete_product_reviews(
    product_id: str,
    moderation: ModerationService = Depends(get_moderation),
):
    """Remove every review of a product. Zero deleted is a valid outcome."""
    try:
        deleted = moderation.delete_product_reviews(product_id)
    except ReviewServiceError as e:
        raise http_error(e)
    logger.info(f"Admin purge of product {product_id}: {deleted} reviews deleted")
    return DeleteResponse(deleted=deleted)
