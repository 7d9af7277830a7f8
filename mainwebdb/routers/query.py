"""Query gateway endpoint: the single API-key-authenticated data endpoint."""

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from mainwebdb.config import settings
from mainwebdb.dependencies import EngineDep
from mainwebdb.models.responses import QueryErrorResponse

logger = structlog.get_logger()
router = APIRouter(tags=["query"])


@router.post(
    settings.query_endpoint,
    responses={
        200: {"description": "select/update/delete result as {\"data\": ...}"},
        201: {"description": "insert result as {\"data\": row}"},
        400: {"model": QueryErrorResponse, "description": "Missing required fields"},
        401: {"model": QueryErrorResponse, "description": "Invalid or inactive API key"},
        404: {"model": QueryErrorResponse, "description": "Table or row not found"},
        500: {"model": QueryErrorResponse, "description": "Unexpected error"},
    },
    summary="Execute a query",
    description="""
    Run one action against a table of the database the API key belongs to.

    **Envelope:**
    ```
    {"api_key": "gfx_...", "action": "select|insert|update|delete",
     "table": "users", "data": {...}, "filters": {...}, "row_id": "..."}
    ```

    - `select`: rows matching every `filters` pair exactly (all rows if empty)
    - `insert`: new row from `data`
    - `update`: merges `data` into row `row_id`
    - `delete`: removes row `row_id`

    Every request with a valid key is recorded in the query log.
    """,
)
async def execute_query(request: Request, engine: EngineDep) -> JSONResponse:
    """Execute a query envelope."""
    try:
        envelope = await request.json()
    except ValueError:
        logger.info("query_body_not_json")
        envelope = None

    result = engine.execute(envelope)
    return JSONResponse(status_code=result.status_code, content=result.body)
