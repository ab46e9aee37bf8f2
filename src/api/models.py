"""
Review Aggregator API Models
============================

Pydantic models for API request/response validation.
Field names are camelCase to match the frontend types.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class ReviewModel(BaseModel):
    """One stored review as exposed to clients."""
    id: int
    reviewId: str
    productId: str
    source: str
    author: Optional[str] = None
    rating: int = Field(ge=1, le=5)
    title: Optional[str] = None
    content: Optional[str] = None
    date: Optional[datetime] = None
    fetchedAt: Optional[datetime] = None
    flagged: bool = False
    moderationStatus: str
    verifiedPurchase: bool = False


class ReviewPageResponse(BaseModel):
    """A page of reviews with the unpaged total."""
    items: List[ReviewModel]
    total: int
    limit: int
    offset: int


class SourceBreakdownModel(BaseModel):
    source: str
    count: int
    average: float


class AggregateStatsResponse(BaseModel):
    """Single-product rating rollup."""
    productId: str
    totalReviews: int
    overallAverage: float
    sourceBreakdown: List[SourceBreakdownModel]
    ratingHistogram: Dict[str, int]


class ModerationUpdateRequest(BaseModel):
    """Moderation change. Omitted fields are left untouched."""
    flagged: Optional[bool] = None
    moderationStatus: Optional[str] = None


class UpdateResponse(BaseModel):
    updated: int


class DeleteResponse(BaseModel):
    deleted: int


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    database: str
    reviews: Optional[int] = None
    sources: List[str] = Field(default_factory=list)
