"""Prometheus metrics configuration."""

from __future__ import annotations

import structlog
from fastapi import FastAPI
from prometheus_client import Counter, Gauge, Histogram
from prometheus_fastapi_instrumentator import Instrumentator

logger = structlog.get_logger("helixio.metrics")

# Application info
app_info = Gauge(
    "app_info",
    "Application information",
    ["version"],
)

# Database connection pool metrics
db_connections_active = Gauge(
    "db_connections_active",
    "Number of active database connections",
)
db_pool_size = Gauge(
    "db_pool_size",
    "Configured database connection pool size",
)

# Database retry operation metrics
db_retry_attempts_total = Counter(
    "db_retry_attempts_total",
    "Total number of database operation retry attempts",
    ["operation_type"],
)
db_lock_errors_total = Counter(
    "db_lock_errors_total",
    "Total number of database lock errors encountered",
)
db_retries_failed_total = Counter(
    "db_retries_failed_total",
    "Total number of database operations that failed after all retries",
    ["operation_type"],
)

# Cross-source matching metrics
cross_source_searches_total = Counter(
    "cross_source_searches_total",
    "Cross-source series searches by target source and outcome",
    ["source", "status"],  # status: matched, no_match, error
)
cross_source_search_duration_seconds = Histogram(
    "cross_source_search_duration_seconds",
    "Duration of a single-source cross-source search in seconds",
    ["source"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

# Similarity engine metrics
similarity_jobs_total = Counter(
    "similarity_jobs_total",
    "Similarity jobs run, by type and final status",
    ["type", "status"],
)
similarity_job_duration_seconds = Histogram(
    "similarity_job_duration_seconds",
    "Duration of similarity jobs in seconds",
    ["type"],
    buckets=(0.1, 0.5, 1.0, 5.0, 15.0, 60.0, 300.0, 900.0, 3600.0),
)
similarity_pairs_stored_total = Counter(
    "similarity_pairs_stored_total",
    "Similarity rows written, by job type",
    ["type"],
)


def setup_metrics(app: FastAPI, app_version: str) -> None:
    """Setup Prometheus metrics using prometheus-fastapi-instrumentator.

    Args:
        app: FastAPI application instance
        app_version: Application version
    """
    if getattr(app.state, "_metrics_initialized", False):
        logger.debug("Metrics already initialized for this app instance, skipping")
        return

    instrumentator = Instrumentator(
        should_group_status_codes=False,
        should_ignore_untemplated=True,
        should_instrument_requests_inprogress=True,
        excluded_handlers=["/metrics", "/docs", "/openapi.json", "/redoc"],
    )
    instrumentator.instrument(app).expose(app, endpoint="/metrics")

    app.state._metrics_initialized = True
    app_info.labels(version=app_version).set(1)

    logger.info("Metrics initialized", version=app_version)
