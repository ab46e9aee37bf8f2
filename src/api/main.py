"""
Review Aggregator FastAPI Application
=====================================

REST API over the review ingestion, moderation and analytics engines.

Endpoints:
    GET    /api/health                                - Health check
    POST   /api/products/{id}/reviews/fetch           - Ingest reviews
    GET    /api/products/{id}/reviews                 - Stored reviews
    GET    /api/products/{id}/reviews/aggregate       - Rating rollup
    GET    /api/admin/reviews                         - Moderation queue
    PATCH  /api/admin/reviews/{id}                    - Moderate a review
    DELETE /api/admin/reviews/{id}                    - Delete a review
    DELETE /api/admin/products/{id}/reviews           - Purge a product's reviews
    GET    /api/analytics/overview                    - Dashboard aggregates

Usage:
    uvicorn src.api.main:app --reload --port 8000

    Or with CLI:
    python -m src.api.main
"""

from contextlib import asynccontextmanager
import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.data.config import get_env_list, get_settings
from src.orchestrator.logging_config import setup_logging
from .models import HealthResponse
from .admin_routes import router as admin_router
from .analytics_routes import router as analytics_router
from .review_routes import router as review_router
from .shared import get_registry
from . import db

settings = get_settings()
APP_VERSION = settings.app_version

_log_config = settings.logging
setup_logging(
    level=_log_config.level,
    json_output=_log_config.json_logs,
    log_file=_log_config.log_file,
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info(f"Starting review aggregator API ({settings.environment})...")

    registry = get_registry()
    logger.info(f"Review sources: {', '.join(registry.sources) or 'none'}")

    db.get_pool()

    yield

    db.close_pool()
    logger.info("Shutting down review aggregator API...")


app = FastAPI(
    title="Review Aggregator API",
    description="Multi-source product review ingestion, moderation and analytics",
    version=APP_VERSION,
    lifespan=lifespan,
    docs_url=None if settings.is_production() else "/docs",
    redoc_url=None if settings.is_production() else "/redoc",
)

# Dashboard dev servers plus whatever CORS_ORIGINS adds
LOCAL_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=LOCAL_ORIGINS + get_env_list("CORS_ORIGINS", ""),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(review_router)
app.include_router(admin_router)
app.include_router(analytics_router)


@app.get("/api/health", response_model=HealthResponse)
def health_check():
    """
    Health check endpoint.

    Reports database connectivity and the configured review sources.
    Never fails: an unreachable database yields status "degraded".
    """
    db_health = db.check_health()
    overall = "healthy" if db_health["status"] == "connected" else "degraded"

    return HealthResponse(
        status=overall,
        version=APP_VERSION,
        database=db_health["status"],
        reviews=db_health.get("reviews"),
        sources=get_registry().sources,
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.api.main:app",
        host=os.getenv("API_HOST", "0.0.0.0"),
        port=int(os.getenv("API_PORT", "8000")),
    )
