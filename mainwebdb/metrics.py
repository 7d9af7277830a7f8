"""Prometheus metrics definitions for the MainWebDB service.

This module defines all Prometheus metrics used for observability:
- HTTP request metrics (count, duration, in-flight)
- Document store metrics (reads, writes, recoveries)
- Query gateway metrics (actions by status)
- Entity metrics (users, databases, tables, rows, keys, logs)
"""

import platform
import time
from prometheus_client import Counter, Histogram, Gauge, Info
from prometheus_client import ProcessCollector

# ProcessCollector only works on Linux (uses /proc filesystem)
if platform.system() == "Linux":
    try:
        ProcessCollector()
    except ValueError:
        pass  # Already registered

# =============================================================================
# Service Health Metrics
# =============================================================================

SERVICE_UP = Gauge(
    "mainwebdb_up",
    "Whether the MainWebDB service is up (1) or down (0)"
)

SERVICE_START_TIME = Gauge(
    "mainwebdb_start_time_seconds",
    "Unix timestamp when the service started"
)

SERVICE_INFO = Info(
    "mainwebdb_service",
    "MainWebDB service information"
)

_start_time = time.time()
SERVICE_START_TIME.set(_start_time)
SERVICE_UP.set(1)

# =============================================================================
# HTTP Request Metrics
# =============================================================================

REQUEST_COUNT = Counter(
    "mainwebdb_requests_total",
    "Total number of HTTP requests",
    ["method", "endpoint", "status_code"]
)

REQUEST_DURATION = Histogram(
    "mainwebdb_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

REQUEST_IN_FLIGHT = Gauge(
    "mainwebdb_requests_in_flight",
    "Number of HTTP requests currently being processed",
    ["method"]
)

# =============================================================================
# Error Metrics
# =============================================================================

ERROR_COUNT = Counter(
    "mainwebdb_errors_total",
    "Total number of errors by type",
    ["type", "endpoint"]
)

# =============================================================================
# Document Store Metrics
# =============================================================================

STORE_OPERATIONS = Counter(
    "mainwebdb_store_operations_total",
    "Total number of document store operations",
    ["operation"]  # read, write
)

STORE_DURATION = Histogram(
    "mainwebdb_store_operation_duration_seconds",
    "Document store operation duration in seconds",
    ["operation"],
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0]
)

STORE_RECOVERIES = Counter(
    "mainwebdb_store_recoveries_total",
    "Number of times unreadable storage was reinitialized",
    ["reason"]  # unreadable, malformed
)

STORE_WRITE_CONFLICTS = Counter(
    "mainwebdb_store_write_conflicts_total",
    "Number of saves rejected because the stored revision moved"
)

# =============================================================================
# Query Gateway Metrics
# =============================================================================

GATEWAY_QUERIES = Counter(
    "mainwebdb_gateway_queries_total",
    "Total number of query gateway requests",
    ["action", "status_code"]
)

GATEWAY_DURATION = Histogram(
    "mainwebdb_gateway_duration_seconds",
    "Query gateway execution time in seconds",
    ["action"],
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0]
)

COPYRIGHT_STRIKES_CREATED = Counter(
    "mainwebdb_copyright_strikes_total",
    "Total number of copyright strikes recorded",
    ["content_type"]
)

# =============================================================================
# Entity Metrics (collected on scrape)
# =============================================================================

USERS_TOTAL = Gauge("mainwebdb_users_total", "Total number of users")
DATABASES_TOTAL = Gauge("mainwebdb_databases_total", "Total number of databases")
TABLES_TOTAL = Gauge("mainwebdb_tables_total", "Total number of tables")
ROWS_TOTAL = Gauge("mainwebdb_rows_total", "Total number of rows")
API_KEYS_TOTAL = Gauge("mainwebdb_api_keys_total", "Total number of API keys")
QUERY_LOGS_TOTAL = Gauge("mainwebdb_query_logs_total", "Total number of query log entries")

STORAGE_SIZE_BYTES = Gauge(
    "mainwebdb_storage_size_bytes",
    "Size of the persisted store file in bytes"
)


def set_service_info(version: str, duckdb_version: str) -> None:
    """Set service info labels."""
    SERVICE_INFO.info({
        "version": version,
        "duckdb_version": duckdb_version
    })
