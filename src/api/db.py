"""
Review Aggregator Database Connection
=====================================

Process-wide connection pool for the API layer.
Uses psycopg2 with connection pooling; the pool is created on first use
and shared by every request-scoped ReviewStore.
"""

import logging
from typing import Optional, Any, Dict

from psycopg2 import pool as pg_pool

from src.data.config import get_settings
from src.reviews.review_store import ReviewStore

logger = logging.getLogger(__name__)

_pool: Optional[pg_pool.ThreadedConnectionPool] = None


def get_pool() -> Optional[pg_pool.ThreadedConnectionPool]:
    """Get or create connection pool (lazy singleton). None when the database is unreachable."""
    global _pool
    if _pool is not None:
        return _pool

    try:
        config = get_settings().database
        _pool = pg_pool.ThreadedConnectionPool(
            config.pool_min_size,
            config.pool_max_size,
            **config.connection_dict
        )
        logger.info(f"DB pool created: {config.host}:{config.port}/{config.name}")
        return _pool
    except Exception as e:
        logger.warning(f"Failed to create DB pool: {e}")
        return None


def close_pool():
    """Close the connection pool."""
    global _pool
    if _pool is not None:
        _pool.closeall()
        _pool = None
        logger.info("DB pool closed")


def check_health() -> Dict[str, Any]:
    """
    Check database health. Returns status dict.
    Non-blocking: returns 'disconnected' if DB is not reachable.
    """
    db_pool = get_pool()
    if db_pool is None:
        return {"status": "disconnected", "error": "Database pool not available"}

    health = ReviewStore(db_pool=db_pool).health_check()
    if health["status"] != "healthy":
        return {"status": "disconnected", "error": health.get("error")}
    return {"status": "connected", "reviews": health.get("reviews")}
