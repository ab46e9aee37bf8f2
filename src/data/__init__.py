"""
Review Data Module
==================

Source providers, normalization and the multi-source ingestion pipeline.

This module provides:
    - ProviderClient implementations for the scraper service and the
      ScraperAPI-backed Walmart endpoint, plus a registry keyed by source
    - ReviewNormalizer: turns heterogeneous payloads into Review records
    - IngestionPipeline: concurrent fetch, normalize and deduplicating write

Quick Start:
    from src.data import IngestionPipeline
    from src.reviews import ReviewStore

    with ReviewStore() as store:
        result = IngestionPipeline(store).ingest("42", ["amazon", "walmart"])
        print(f"{result.inserted} new reviews, {result.duplicates} refreshed")

Configuration:
    Set environment variables or create a .env file.
    See .env.example for all available options.

Required Environment Variables:
    DATABASE_PASSWORD: PostgreSQL password
"""

from .config import get_settings, Settings
from .data_models import (
    ModerationStatus,
    Product,
    Review,
    StoredReview,
    SourceError,
    IngestionResult,
)
from .provider_clients import (
    ProviderClient,
    ProviderError,
    ProviderRegistry,
    ScraperServiceClient,
    WalmartApiClient,
    build_default_registry,
)
from .normalizer import ReviewNormalizer
from .ingestion_pipeline import IngestionPipeline, SourceFetch

__version__ = "1.0.0"

__all__ = [
    # Configuration
    "get_settings",
    "Settings",
    # Data models
    "ModerationStatus",
    "Product",
    "Review",
    "StoredReview",
    "SourceError",
    "IngestionResult",
    # Providers
    "ProviderClient",
    "ProviderError",
    "ProviderRegistry",
    "ScraperServiceClient",
    "WalmartApiClient",
    "build_default_registry",
    # Pipeline
    "ReviewNormalizer",
    "IngestionPipeline",
    "SourceFetch",
]
