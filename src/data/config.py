"""
Review Aggregator Configuration Module
======================================

Every tunable is read from the process environment, with a `.env` file at
the repository root loaded first (variables already set in the environment
win over the file).

Environment Variables:
    SCRAPER_SERVICE_URL: Base URL of the review scraper service (default: http://localhost:3001)
    REVIEW_SOURCES: Sources served by the scraper service (default: amazon,bestbuy,walmart)
    PROVIDER_TIMEOUT_SECONDS: Per-source request timeout (default: 30)
    SCRAPERAPI_URL: Structured Walmart review endpoint
    SCRAPERAPI_KEY: ScraperAPI key (optional, enables the walmart_api source)
    SCRAPERAPI_WALMART_IDS: Walmart product ids used by the walmart_api source

    DATABASE_HOST / DATABASE_PORT: Postgres server (localhost:5432)
    DATABASE_NAME / DATABASE_USER: Database and role (reviews / reviews_app)
    DATABASE_PASSWORD: Required whenever the database is used
    DATABASE_POOL_MIN / DATABASE_POOL_MAX: Pool bounds (2 / 10)
    DATABASE_CONNECT_TIMEOUT / DATABASE_SSL_MODE: (10 / prefer)

    INGESTION_BATCH_SIZE: Records per store write unit (default: 100)
    INGESTION_MAX_WORKERS: Max parallel source fetches (default: 8)
    INGESTION_DEFAULT_RATING: Rating used when a payload has none (default: 1)
    CATALOG_LOOKUP: Validate products against the products table (default: true)

    ANALYTICS_DEFAULT_WINDOW_DAYS: Timeline window (default: 90)
    ANALYTICS_MIN_WINDOW_DAYS / ANALYTICS_MAX_WINDOW_DAYS: Window clamp (7 / 365)
    ANALYTICS_TOP_PRODUCTS: Size of the top products ranking (default: 6)

    LOG_LEVEL / LOG_FILE / LOG_JSON: Logging setup (INFO / none / false)
    ENVIRONMENT: development, staging or production (default: development)
"""

import os
from dataclasses import dataclass, field
from functools import cached_property
from pathlib import Path
from typing import Callable, List, Optional, TypeVar

from dotenv import load_dotenv

T = TypeVar("T")

ENV_FILE = Path(__file__).resolve().parents[2] / ".env"
load_dotenv(ENV_FILE, override=False)

TRUTHY = frozenset({"1", "true", "yes", "on"})


def get_env(key: str, default: Optional[str] = None, required: bool = False) -> Optional[str]:
    """
    Read a raw string variable.

    Raises:
        ValueError: when `required` is set and the variable is absent
    """
    if key in os.environ:
        return os.environ[key]
    if required:
        raise ValueError(f"Environment variable {key} must be set")
    return default


def _typed_env(key: str, default: T, cast: Callable[[str], T], kind: str) -> T:
    raw = os.environ.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw.strip())
    except ValueError:
        raise ValueError(f"{key}={raw!r} is not a valid {kind}") from None


def get_env_int(key: str, default: int) -> int:
    return _typed_env(key, default, int, "integer")


def get_env_float(key: str, default: float) -> float:
    return _typed_env(key, default, float, "number")


def get_env_bool(key: str, default: bool) -> bool:
    return _typed_env(key, default, lambda raw: raw.lower() in TRUTHY, "flag")


def get_env_list(key: str, default: str) -> List[str]:
    """Comma-separated variable as a list; blank items are dropped."""
    raw = get_env(key, default) or ""
    return [part.strip() for part in raw.split(",") if part.strip()]


@dataclass
class ProviderConfig:
    """Upstream review provider configuration."""

    scraper_service_url: str = field(
        default_factory=lambda: get_env("SCRAPER_SERVICE_URL", "http://localhost:3001")
    )
    sources: List[str] = field(
        default_factory=lambda: get_env_list("REVIEW_SOURCES", "amazon,bestbuy,walmart")
    )

    # Applied to every source call independently
    request_timeout: float = field(default_factory=lambda: get_env_float("PROVIDER_TIMEOUT_SECONDS", 30.0))

    # Structured Walmart endpoint (ScraperAPI)
    scraperapi_url: str = field(
        default_factory=lambda: get_env(
            "SCRAPERAPI_URL", "https://api.scraperapi.com/structured/walmart/review/v1"
        )
    )
    scraperapi_key: Optional[str] = field(default_factory=lambda: get_env("SCRAPERAPI_KEY") or None)
    walmart_product_ids: List[str] = field(
        default_factory=lambda: get_env_list("SCRAPERAPI_WALMART_IDS", "")
    )

    def __post_init__(self):
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")
        self.sources = [s.strip().lower() for s in self.sources if s.strip()]


@dataclass
class DatabaseConfig:
    """Postgres connection and pool parameters."""

    host: str = field(default_factory=lambda: get_env("DATABASE_HOST", "localhost"))
    port: int = field(default_factory=lambda: get_env_int("DATABASE_PORT", 5432))
    name: str = field(default_factory=lambda: get_env("DATABASE_NAME", "reviews"))
    user: str = field(default_factory=lambda: get_env("DATABASE_USER", "reviews_app"))
    password: str = field(default_factory=lambda: get_env("DATABASE_PASSWORD", required=True))

    pool_min_size: int = field(default_factory=lambda: get_env_int("DATABASE_POOL_MIN", 2))
    pool_max_size: int = field(default_factory=lambda: get_env_int("DATABASE_POOL_MAX", 10))
    connect_timeout: int = field(default_factory=lambda: get_env_int("DATABASE_CONNECT_TIMEOUT", 10))

    # libpq sslmode value
    ssl_mode: str = field(default_factory=lambda: get_env("DATABASE_SSL_MODE", "prefer"))

    @property
    def connection_dict(self) -> dict:
        """Keyword arguments for psycopg2.connect and the pool constructors."""
        return dict(
            host=self.host,
            port=self.port,
            dbname=self.name,
            user=self.user,
            password=self.password,
            sslmode=self.ssl_mode,
            connect_timeout=self.connect_timeout,
        )

    def __post_init__(self):
        if not self.password:
            raise ValueError("DATABASE_PASSWORD must not be empty")
        if not 0 < self.pool_min_size <= self.pool_max_size:
            raise ValueError(
                f"Invalid pool bounds {self.pool_min_size}..{self.pool_max_size}"
            )


@dataclass
class IngestionConfig:
    """Review ingestion pipeline configuration."""

    batch_size: int = field(default_factory=lambda: get_env_int("INGESTION_BATCH_SIZE", 100))
    max_workers: int = field(default_factory=lambda: get_env_int("INGESTION_MAX_WORKERS", 8))

    # Rating assigned when the provider omits one or sends garbage
    default_rating: int = field(default_factory=lambda: get_env_int("INGESTION_DEFAULT_RATING", 1))

    catalog_lookup: bool = field(default_factory=lambda: get_env_bool("CATALOG_LOOKUP", True))

    def __post_init__(self):
        if self.batch_size < 1 or self.max_workers < 1:
            raise ValueError("batch_size and max_workers must be positive")
        if self.default_rating not in range(1, 6):
            raise ValueError(f"default_rating must be 1..5, got {self.default_rating}")


@dataclass
class AnalyticsConfig:
    """Dashboard analytics configuration."""

    default_window_days: int = field(default_factory=lambda: get_env_int("ANALYTICS_DEFAULT_WINDOW_DAYS", 90))
    min_window_days: int = field(default_factory=lambda: get_env_int("ANALYTICS_MIN_WINDOW_DAYS", 7))
    max_window_days: int = field(default_factory=lambda: get_env_int("ANALYTICS_MAX_WINDOW_DAYS", 365))
    top_products_limit: int = field(default_factory=lambda: get_env_int("ANALYTICS_TOP_PRODUCTS", 6))

    def __post_init__(self):
        if not self.min_window_days <= self.default_window_days <= self.max_window_days:
            raise ValueError(
                f"Window bounds must satisfy {self.min_window_days} <= "
                f"{self.default_window_days} <= {self.max_window_days}"
            )
        if self.top_products_limit < 1:
            raise ValueError("top_products_limit must be positive")


@dataclass
class LoggingConfig:
    level: str = field(default_factory=lambda: get_env("LOG_LEVEL", "INFO"))
    log_file: Optional[str] = field(default_factory=lambda: get_env("LOG_FILE") or None)
    json_logs: bool = field(default_factory=lambda: get_env_bool("LOG_JSON", False))


class Settings:
    """
    Process-wide settings.

    Each section is built on first access, so a process that never touches
    the database never needs DATABASE_PASSWORD.
    """

    app_name = "review-aggregator"
    app_version = "1.0.0"

    def __init__(self, environment: Optional[str] = None):
        self.environment = (environment or get_env("ENVIRONMENT", "development")).lower()

    @cached_property
    def providers(self) -> ProviderConfig:
        return ProviderConfig()

    @cached_property
    def database(self) -> DatabaseConfig:
        return DatabaseConfig()

    @cached_property
    def ingestion(self) -> IngestionConfig:
        return IngestionConfig()

    @cached_property
    def analytics(self) -> AnalyticsConfig:
        return AnalyticsConfig()

    @cached_property
    def logging(self) -> LoggingConfig:
        return LoggingConfig()

    def is_production(self) -> bool:
        return self.environment in ("production", "prod")


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Shared Settings instance, created on first call."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
