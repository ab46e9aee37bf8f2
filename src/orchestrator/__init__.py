"""
Review Aggregator Orchestrator Module
=====================================

Operator-facing entry points.

Components:
    - setup_logging: Structured / human-readable logging setup
    - CLI: init-db, ingest, overview, stats, health

Usage:
    python -m src.orchestrator.cli ingest --product 42 --sources amazon,walmart
"""

from .logging_config import JSONFormatter, setup_logging

__all__ = [
    "JSONFormatter",
    "setup_logging",
]
