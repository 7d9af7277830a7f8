"""Whole-store snapshot endpoints: export, import and reset.

All routes require the ADMIN_API_KEY bearer token.
"""

import structlog
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import Response

from mainwebdb.dependencies import EngineDep, require_admin
from mainwebdb.models.responses import ErrorResponse, SnapshotImportResponse

logger = structlog.get_logger()
router = APIRouter(
    prefix="/snapshot",
    tags=["snapshot"],
    dependencies=[Depends(require_admin)],
)

EXPORT_FILENAME = "mainwebdb.json"


@router.get(
    "/export",
    response_class=Response,
    responses={200: {"content": {"application/json": {}}}},
    summary="Export the whole store",
    description="Downloads the complete document graph as indented JSON.",
)
async def export_snapshot(engine: EngineDep) -> Response:
    payload = engine.store.export_snapshot()
    logger.info("snapshot_exported", size_bytes=len(payload))
    return Response(
        content=payload,
        media_type="application/json",
        headers={"Content-Disposition": f"attachment; filename={EXPORT_FILENAME}"},
    )


@router.post(
    "/import",
    response_model=SnapshotImportResponse,
    responses={400: {"model": ErrorResponse}},
    summary="Replace the whole store",
    description="""
    Replaces every record with the posted JSON document graph.

    The body must be the JSON produced by /snapshot/export. Anything else is
    rejected with 400 and the current data is left untouched.
    """,
)
async def import_snapshot(request: Request, engine: EngineDep) -> SnapshotImportResponse:
    payload = await request.body()
    graph = engine.store.import_snapshot(payload)
    return SnapshotImportResponse(
        success=True,
        counts={
            "users": len(graph.users),
            "databases": len(graph.databases),
            "api_keys": len(graph.api_keys),
            "query_logs": len(graph.query_logs),
            "copyright_strikes": len(graph.copyright_strikes),
        },
    )


@router.delete(
    "",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete all data",
    description="Removes the document graph and every session. Cannot be undone.",
)
async def reset_store(engine: EngineDep) -> None:
    engine.store.clear()
