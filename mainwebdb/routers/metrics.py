"""Prometheus metrics endpoint router.

Exposes /metrics for Prometheus scraping and refreshes the entity gauges
from the document graph on every scrape.
"""

import duckdb
import structlog
from fastapi import APIRouter
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from mainwebdb.config import settings
from mainwebdb.engine import get_webdb
from mainwebdb.metrics import (
    API_KEYS_TOTAL,
    DATABASES_TOTAL,
    QUERY_LOGS_TOTAL,
    ROWS_TOTAL,
    STORAGE_SIZE_BYTES,
    TABLES_TOTAL,
    USERS_TOTAL,
    set_service_info,
)

logger = structlog.get_logger()

router = APIRouter(tags=["metrics"])


def collect_store_metrics() -> None:
    """Refresh entity gauges and the store file size."""
    engine = get_webdb()
    try:
        counts = engine.stats()
        STORAGE_SIZE_BYTES.set(engine.store.size_bytes())
    except (OSError, duckdb.Error) as e:
        logger.error("metrics_collection_failed", error=str(e))
        return

    USERS_TOTAL.set(counts["users"])
    DATABASES_TOTAL.set(counts["databases"])
    TABLES_TOTAL.set(counts["tables"])
    ROWS_TOTAL.set(counts["rows"])
    API_KEYS_TOTAL.set(counts["api_keys"])
    QUERY_LOGS_TOTAL.set(counts["query_logs"])


@router.get(
    "/metrics",
    response_class=PlainTextResponse,
    summary="Prometheus metrics endpoint",
    description="Returns metrics in Prometheus text format for scraping.",
)
async def get_metrics() -> PlainTextResponse:
    """
    Expose Prometheus metrics.

    Not authenticated, so Prometheus can scrape without credentials.
    """
    set_service_info(version=settings.api_version, duckdb_version=duckdb.__version__)
    collect_store_metrics()

    return PlainTextResponse(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
