"""MainWebDB API - FastAPI application."""

import logging
import time
import uuid
from contextlib import asynccontextmanager

import duckdb
import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from mainwebdb.config import settings
from mainwebdb.engine import get_webdb
from mainwebdb.errors import WebDBError
from mainwebdb.metrics import ERROR_COUNT, set_service_info
from mainwebdb.middleware.metrics import MetricsMiddleware, normalize_path
from mainwebdb.routers import api_keys, audit, auth, backend, databases, metrics, query, snapshot


def setup_logging() -> None:
    """Configure structured logging."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer() if not settings.debug else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.INFO if not settings.debug else logging.DEBUG
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger = structlog.get_logger()
    logger.info(
        "application_startup",
        version=settings.api_version,
        debug=settings.debug,
        data_dir=str(settings.data_dir),
    )

    try:
        get_webdb().initialize()
    except Exception as e:
        logger.error("document_store_init_failed", error=str(e), exc_info=True)
        raise

    set_service_info(version=settings.api_version, duckdb_version=duckdb.__version__)

    yield

    logger.info("application_shutdown")


# Setup logging before creating app
setup_logging()
logger = structlog.get_logger()

app = FastAPI(
    title=settings.api_title,
    version=settings.api_version,
    description="""
MainWebDB - a multi-tenant document database with an API-key query gateway.

Signed-in users manage their own databases, tables, rows and API keys via
the session-token routes. Applications read and write rows through the single
query endpoint, authenticating with a database API key inside the request body:

```
POST /db-api
{"api_key": "gfx_...", "action": "select", "table": "users", "filters": {"role": "admin"}}
```

Every gateway request with a valid key is recorded in the query log.
    """,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Prometheus request instrumentation
app.add_middleware(MetricsMiddleware)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    """Log all requests with timing and request ID."""
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id)

    start_time = time.perf_counter()

    logger.info("request_started", method=request.method, path=request.url.path)

    response = await call_next(request)

    duration_ms = (time.perf_counter() - start_time) * 1000

    logger.info(
        "request_completed",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round(duration_ms, 2),
    )

    response.headers["X-Request-ID"] = request_id
    return response


@app.exception_handler(WebDBError)
async def webdb_exception_handler(request: Request, exc: WebDBError):
    """Answer domain errors with their status code and error body."""
    logger.info(
        "request_rejected",
        method=request.method,
        path=request.url.path,
        error=exc.error,
        status_code=exc.status_code,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle uncaught exceptions."""
    endpoint = normalize_path(request.url.path)
    error_type = type(exc).__name__

    ERROR_COUNT.labels(type=error_type, endpoint=endpoint).inc()

    logger.error(
        "unhandled_exception",
        method=request.method,
        path=request.url.path,
        error=str(exc),
        error_type=error_type,
        exc_info=True,
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": str(exc) if settings.debug else "An internal error occurred",
        },
    )


app.include_router(backend.router)
app.include_router(auth.router)
app.include_router(databases.router)
app.include_router(api_keys.router)
app.include_router(audit.router)
app.include_router(query.router)
app.include_router(snapshot.router)
app.include_router(metrics.router)


@app.get("/", include_in_schema=False)
async def root():
    """Service summary with links."""
    return {
        "service": settings.api_title,
        "version": settings.api_version,
        "health": "/health",
        "query": settings.query_endpoint,
        "docs": "/docs" if settings.debug else None,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "mainwebdb.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
