"""
Analytics API Routes
====================

GET /api/analytics/overview?days=N — catalog-wide dashboard aggregates
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from src.reviews.analytics import ReviewAnalytics
from src.reviews.errors import ReviewServiceError
from .shared import get_analytics, http_error

router = APIRouter(prefix="/api/analytics", tags=["Analytics"])


@router.get("/overview")
def get_overview(
    days: Optional[str] = Query(None, description="Timeline window, clamped to 7..365 (default 90)"),
    analytics: ReviewAnalytics = Depends(get_analytics),
):
    """Totals, source mix, histogram, timeline, activity by source and top products."""
    try:
        overview = analytics.overview(window_days=days)
    except ReviewServiceError as e:
        raise http_error(e)
    return overview.to_dict()
