"""
Product Review Listing
======================

Canonical paged read of a product's stored reviews.
"""

from typing import Any

from .errors import ValidationError
from .review_models import ReviewPage, clamp_page


DEFAULT_LIST_LIMIT = 100
MAX_LIST_LIMIT = 100


def list_reviews(store, product_id: str, limit: Any = None, offset: Any = 0) -> ReviewPage:
    """
    One page of a product's reviews, most recently authored first.

    Args:
        store: Review store exposing list_by_product() and count_by_product()
        product_id: Catalog product id
        limit: Page size, clamped to [1, 100] (default 100)
        offset: Rows to skip, negative values become 0

    Raises:
        ValidationError: Empty product id
    """
    product_id = str(product_id).strip() if product_id is not None else ""
    if not product_id:
        raise ValidationError("Product id is required")

    limit, offset = clamp_page(limit, offset, DEFAULT_LIST_LIMIT, MAX_LIST_LIMIT)
    items = store.list_by_product(product_id, limit=limit, offset=offset)
    total = store.count_by_product(product_id)
    return ReviewPage(items=items, total=total, limit=limit, offset=offset)
