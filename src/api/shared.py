"""
Shared dependency providers and error mapping reused across route modules.
"""

import logging
from functools import lru_cache
from typing import Optional

from fastapi import Depends, HTTPException

from src.data.config import AnalyticsConfig, IngestionConfig, get_settings
from src.data.ingestion_pipeline import IngestionPipeline
from src.data.provider_clients import ProviderRegistry, build_default_registry
from src.reviews.analytics import ReviewAnalytics
from src.reviews.errors import (
    DatabaseError,
    NotFoundError,
    ReviewServiceError,
    ValidationError,
)
from src.reviews.moderation import ModerationService
from src.reviews.review_store import ProductCatalog, ReviewStore
from . import db

logger = logging.getLogger(__name__)


def get_ingestion_config() -> IngestionConfig:
    return get_settings().ingestion


def get_analytics_config() -> AnalyticsConfig:
    return get_settings().analytics


@lru_cache(maxsize=1)
def get_registry() -> ProviderRegistry:
    """Provider registry, built once from configuration."""
    return build_default_registry()


def get_store() -> ReviewStore:
    """Request-scoped store on the shared pool."""
    db_pool = db.get_pool()
    if db_pool is None:
        raise HTTPException(status_code=503, detail="Database not available")
    return ReviewStore(db_pool=db_pool)


def get_catalog(
    store: ReviewStore = Depends(get_store),
    config: IngestionConfig = Depends(get_ingestion_config),
) -> Optional[ProductCatalog]:
    return ProductCatalog(store) if config.catalog_lookup else None


def get_pipeline(
    store: ReviewStore = Depends(get_store),
    registry: ProviderRegistry = Depends(get_registry),
    catalog: Optional[ProductCatalog] = Depends(get_catalog),
    config: IngestionConfig = Depends(get_ingestion_config),
) -> IngestionPipeline:
    return IngestionPipeline(store, registry=registry, catalog=catalog, config=config)


def get_moderation(store: ReviewStore = Depends(get_store)) -> ModerationService:
    return ModerationService(store)


def get_analytics(
    store: ReviewStore = Depends(get_store),
    catalog: Optional[ProductCatalog] = Depends(get_catalog),
    config: AnalyticsConfig = Depends(get_analytics_config),
) -> ReviewAnalytics:
    return ReviewAnalytics(store, catalog=catalog, config=config)


def http_error(error: ReviewServiceError) -> HTTPException:
    """Map a service error onto its HTTP status."""
    if isinstance(error, ValidationError):
        return HTTPException(status_code=400, detail=error.message)
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail=error.message)
    if isinstance(error, DatabaseError):
        logger.error(f"Database failure: {error}")
        return HTTPException(status_code=503, detail="Database not available")
    logger.error(f"Unhandled service error: {error}")
    return HTTPException(status_code=500, detail=str(error))
