"""
Review Aggregator CLI
=====================

Command-line interface for operators.

Commands:
    init-db     - Create the reviews table and its indexes
    ingest      - Ingest reviews of one product from its sources
    overview    - Catalog-wide analytics overview
    stats       - Single-product rating rollup
    health      - Check database connectivity

Every command prints JSON on stdout and exits 1 on failure.

Usage:
    python -m src.orchestrator.cli init-db
    python -m src.orchestrator.cli ingest --product 42 --sources amazon,bestbuy
    python -m src.orchestrator.cli overview --days 30
    python -m src.orchestrator.cli stats --product 42
    python -m src.orchestrator.cli health
"""

import argparse
import json
import sys
from typing import Optional

from src.data.config import get_settings
from src.data.ingestion_pipeline import IngestionPipeline
from src.reviews.analytics import ReviewAnalytics
from src.reviews.errors import ReviewServiceError
from src.reviews.review_store import ProductCatalog, ReviewStore
from .logging_config import setup_logging


def _print_json(payload) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _catalog(store: ReviewStore, args) -> Optional[ProductCatalog]:
    """Products table lookup, unless --skip-catalog or CATALOG_LOOKUP=false."""
    if getattr(args, "skip_catalog", False) or not get_settings().ingestion.catalog_lookup:
        return None
    return ProductCatalog(store)


def cmd_init_db(args):
    """Create the reviews schema."""
    try:
        with ReviewStore() as store:
            store.ensure_schema()
        _print_json({"status": "ok", "table": "reviews"})
        return 0
    except (ReviewServiceError, ValueError) as e:
        _print_json({"status": "error", "error": str(e)})
        return 1


def cmd_ingest(args):
    """Ingest reviews of one product."""
    try:
        with ReviewStore() as store:
            pipeline = IngestionPipeline(store, catalog=_catalog(store, args))
            result = pipeline.ingest(args.product, args.sources)

        _print_json(result.to_dict())
        return 0 if result.success else 1

    except (ReviewServiceError, ValueError) as e:
        _print_json({"status": "error", "error": str(e)})
        return 1


def cmd_overview(args):
    """Print the analytics overview."""
    try:
        with ReviewStore() as store:
            analytics = ReviewAnalytics(store, catalog=_catalog(store, args))
            overview = analytics.overview(window_days=args.days)

        _print_json(overview.to_dict())
        return 0

    except (ReviewServiceError, ValueError) as e:
        _print_json({"status": "error", "error": str(e)})
        return 1


def cmd_stats(args):
    """Print one product's rating rollup."""
    try:
        with ReviewStore() as store:
            analytics = ReviewAnalytics(store, catalog=_catalog(store, args))
            stats = analytics.aggregate_stats(args.product)

        _print_json(stats.to_dict())
        return 0

    except (ReviewServiceError, ValueError) as e:
        _print_json({"status": "error", "error": str(e)})
        return 1


def cmd_health(args):
    """Check database connectivity."""
    try:
        with ReviewStore() as store:
            health = store.health_check()
    except ValueError as e:
        health = {"status": "unhealthy", "error": str(e)}

    _print_json(health)
    return 0 if health.get("status") == "healthy" else 1


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="reviews",
        description="Review aggregator operator CLI",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    subparsers.add_parser("init-db", help="Create the reviews table and indexes")

    ingest_parser = subparsers.add_parser("ingest", help="Ingest reviews of one product")
    ingest_parser.add_argument(
        "--product",
        required=True,
        help="Catalog product id",
    )
    ingest_parser.add_argument(
        "--sources",
        help="Comma-separated sources (default: all configured)",
    )
    ingest_parser.add_argument(
        "--skip-catalog",
        action="store_true",
        help="Do not check the product against the products table",
    )

    overview_parser = subparsers.add_parser("overview", help="Analytics overview")
    overview_parser.add_argument(
        "--days",
        type=int,
        help="Timeline window in days (default: 90, clamped to 7..365)",
    )
    overview_parser.add_argument(
        "--skip-catalog",
        action="store_true",
        help="Do not enrich top products from the products table",
    )

    stats_parser = subparsers.add_parser("stats", help="Single-product rating rollup")
    stats_parser.add_argument(
        "--product",
        required=True,
        help="Catalog product id",
    )
    stats_parser.add_argument(
        "--skip-catalog",
        action="store_true",
        help="Do not check the product against the products table",
    )

    subparsers.add_parser("health", help="Check database connectivity")

    args = parser.parse_args(argv)

    log_config = get_settings().logging
    setup_logging(
        level="DEBUG" if args.verbose else log_config.level,
        json_output=log_config.json_logs,
        log_file=log_config.log_file,
    )

    if args.command is None:
        parser.print_help()
        return 1

    commands = {
        "init-db": cmd_init_db,
        "ingest": cmd_ingest,
        "overview": cmd_overview,
        "stats": cmd_stats,
        "health": cmd_health,
    }

    handler = commands.get(args.command)
    if handler:
        return handler(args)
    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
