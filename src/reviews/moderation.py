"""
Review Moderation
=================

Administrative control over stored reviews.

moderation_status (pending | approved | rejected) and flagged are
independent: any status may move to any other status, flagging never
changes status, and changing status never touches flagged. Reviews enter
the store approved and unflagged.
"""

import logging
from typing import Any, Optional, Union

from src.data.data_models import ModerationStatus
from .errors import NotFoundError, ValidationError
from .review_models import ModerationFilters, ReviewPage, clamp_page

logger = logging.getLogger(__name__)


DEFAULT_QUEUE_LIMIT = 25
MAX_QUEUE_LIMIT = 100


def parse_status(value: Union[str, ModerationStatus, None]) -> Optional[ModerationStatus]:
    """Parse a moderation status. None and "" mean 'not given'."""
    if value is None or value == "":
        return None
    if isinstance(value, ModerationStatus):
        return value
    try:
        return ModerationStatus(str(value).strip().lower())
    except ValueError:
        raise ValidationError(
            f"Invalid moderation status '{value}'",
            details={"allowed": ModerationStatus.values()},
        )


def parse_review_id(value: Any) -> int:
    """Parse a review row id; non-numeric ids are rejected."""
    if isinstance(value, bool):
        raise ValidationError("Invalid review id")
    try:
        review_id = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError("Invalid review id")
    if review_id <= 0:
        raise ValidationError("Invalid review id")
    return review_id


class ModerationService:
    """
    Moderation queue and state changes on top of the review store.

    Usage:
        moderation = ModerationService(store)
        page = moderation.queue(ModerationFilters(flagged=True))
        moderation.update(page.items[0].id, status="rejected")
    """

    def __init__(self, store):
        self.store = store

    def queue(
        self,
        filters: Optional[ModerationFilters] = None,
        limit: Any = DEFAULT_QUEUE_LIMIT,
        offset: Any = 0,
    ) -> ReviewPage:
        """Filtered moderation page with the unpaged total."""
        filters = filters or ModerationFilters()
        filters = ModerationFilters(
            status=parse_status(filters.status),
            flagged=filters.flagged,
            product_id=filters.product_id or None,
        )
        limit, offset = clamp_page(limit, offset, DEFAULT_QUEUE_LIMIT, MAX_QUEUE_LIMIT)
        return self.store.moderation_page(filters, limit, offset)

    def update(
        self,
        review_id: Any,
        flagged: Optional[bool] = None,
        status: Union[str, ModerationStatus, None] = None,
    ) -> int:
        """
        Change flagged and/or moderation status of one review.

        Only the fields given are written.

        Returns:
            Number of rows updated (always 1)

        Raises:
            ValidationError: Bad id, bad status, or nothing to update
            NotFoundError: No review with that id
        """
        review_id = parse_review_id(review_id)
        status = parse_status(status)
        if flagged is not None and not isinstance(flagged, bool):
            raise ValidationError("flagged must be a boolean")
        if flagged is None and status is None:
            raise ValidationError("No updates provided")

        updated = self.store.update_moderation(review_id, flagged=flagged, status=status)
        if updated == 0:
            raise NotFoundError(f"Review {review_id} not found")

        logger.info(
            f"Review {review_id} moderated: "
            f"flagged={flagged if flagged is not None else '-'}, "
            f"status={status.value if status else '-'}"
        )
        return updated

    def delete(self, review_id: Any) -> int:
        """
        Permanently delete one review, whatever its status.

        Raises:
            ValidationError: Bad id
            NotFoundError: No review with that id
        """
        review_id = parse_review_id(review_id)
        deleted = self.store.delete_by_id(review_id)
        if deleted == 0:
            raise NotFoundError(f"Review {review_id} not found")
        logger.info(f"Review {review_id} deleted")
        return deleted

    def delete_product_reviews(self, product_id: str) -> int:
        """Administrative purge of a product's reviews. Zero deleted is not an error."""
        product_id = str(product_id).strip() if product_id is not None else ""
        if not product_id:
            raise ValidationError("Product id is required")
        return self.store.delete_by_product(product_id)
