"""Database, table and row management endpoints for the signed-in user."""

from typing import Any

import structlog
from fastapi import APIRouter, Query, status

from mainwebdb.dependencies import EngineDep, SessionDep
from mainwebdb.models.documents import Row
from mainwebdb.models.responses import (
    DatabaseCreate,
    DatabaseCreateResponse,
    DatabaseDeleteResponse,
    DatabaseListResponse,
    DatabaseResponse,
    DatabaseUpdate,
    ErrorResponse,
    RowListResponse,
    RowWrite,
    TableCreate,
    TableListResponse,
    TableResponse,
)

logger = structlog.get_logger()
router = APIRouter(prefix="/databases", tags=["databases"])


# ============================================
# Databases
# ============================================


@router.post(
    "",
    response_model=DatabaseCreateResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
    summary="Create database",
    description="""
    Create a database and its first API key.

    If another user already owns a database with the same name (ignoring
    case), an advisory copyright strike is recorded and returned. The
    database is created either way.

    **IMPORTANT**: The response includes the full API key value.
    """,
)
async def create_database(
    request: DatabaseCreate, session: SessionDep, engine: EngineDep
) -> DatabaseCreateResponse:
    database, api_key, strike = engine.schema.create_database(
        session, request.name, request.description
    )
    return DatabaseCreateResponse(
        database=DatabaseResponse.from_database(database),
        api_key=api_key,
        copyright_strike=strike,
    )


@router.get("", response_model=DatabaseListResponse, summary="List databases")
async def list_databases(session: SessionDep, engine: EngineDep) -> DatabaseListResponse:
    databases = engine.schema.list_databases(session)
    return DatabaseListResponse(
        databases=[DatabaseResponse.from_database(d) for d in databases],
        total=len(databases),
    )


@router.get(
    "/{database_id}",
    response_model=DatabaseResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get database",
)
async def get_database(
    database_id: str, session: SessionDep, engine: EngineDep
) -> DatabaseResponse:
    return DatabaseResponse.from_database(engine.schema.get_database(session, database_id))


@router.patch(
    "/{database_id}",
    response_model=DatabaseResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Update database",
)
async def update_database(
    database_id: str, request: DatabaseUpdate, session: SessionDep, engine: EngineDep
) -> DatabaseResponse:
    database = engine.schema.update_database(
        session,
        database_id,
        name=request.name,
        description=request.description,
        status=request.status,
    )
    return DatabaseResponse.from_database(database)


@router.delete(
    "/{database_id}",
    response_model=DatabaseDeleteResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Delete database",
    description="Deletes the database with all its tables, rows, API keys and query logs.",
)
async def delete_database(
    database_id: str, session: SessionDep, engine: EngineDep
) -> DatabaseDeleteResponse:
    deleted = engine.schema.delete_database(session, database_id)
    return DatabaseDeleteResponse(id=database_id, deleted=deleted)


# ============================================
# Tables
# ============================================


@router.get(
    "/{database_id}/tables",
    response_model=TableListResponse,
    responses={404: {"model": ErrorResponse}},
    summary="List tables",
)
async def list_tables(
    database_id: str, session: SessionDep, engine: EngineDep
) -> TableListResponse:
    tables = engine.schema.list_tables(session, database_id)
    return TableListResponse(
        tables=[TableResponse.from_table(t) for t in tables],
        total=len(tables),
    )


@router.post(
    "/{database_id}/tables",
    response_model=TableResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Create table",
    description="""
    Create a table with ordered columns.

    Columns with a blank name are ignored. At least one named column is
    required. Data types: text, integer, boolean, timestamp, uuid, jsonb, float.
    """,
)
async def create_table(
    database_id: str, request: TableCreate, session: SessionDep, engine: EngineDep
) -> TableResponse:
    table = engine.schema.create_table(session, database_id, request.name, request.columns)
    return TableResponse.from_table(table)


@router.get(
    "/{database_id}/tables/{table_id}",
    response_model=TableResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get table",
)
async def get_table(
    database_id: str, table_id: str, session: SessionDep, engine: EngineDep
) -> TableResponse:
    return TableResponse.from_table(engine.schema.get_table(session, database_id, table_id))


@router.delete(
    "/{database_id}/tables/{table_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
    summary="Delete table",
)
async def delete_table(
    database_id: str, table_id: str, session: SessionDep, engine: EngineDep
) -> None:
    engine.schema.delete_table(session, database_id, table_id)


# ============================================
# Rows
# ============================================


def _parse_filters(filters: list[str]) -> dict[str, Any]:
    """Turn repeated ?filter=column:value parameters into an exact-match map."""
    parsed: dict[str, Any] = {}
    for item in filters:
        column, sep, value = item.partition(":")
        if sep and column:
            parsed[column] = value
    return parsed


@router.get(
    "/{database_id}/tables/{table_id}/rows",
    response_model=RowListResponse,
    responses={404: {"model": ErrorResponse}},
    summary="List rows",
)
async def list_rows(
    database_id: str,
    table_id: str,
    session: SessionDep,
    engine: EngineDep,
    filter: list[str] = Query(default=[], description="column:value exact-match filter (string values)"),
) -> RowListResponse:
    rows = engine.list_rows(session, database_id, table_id, _parse_filters(filter))
    return RowListResponse(rows=rows, total=len(rows))


@router.post(
    "/{database_id}/tables/{table_id}/rows",
    response_model=Row,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Insert row",
)
async def insert_row(
    database_id: str, table_id: str, request: RowWrite, session: SessionDep, engine: EngineDep
) -> Row:
    return engine.insert_row(session, database_id, table_id, request.data)


@router.patch(
    "/{database_id}/tables/{table_id}/rows/{row_id}",
    response_model=Row,
    responses={404: {"model": ErrorResponse}},
    summary="Patch row",
    description="Merges the supplied fields into the row; other fields are kept.",
)
async def patch_row(
    database_id: str,
    table_id: str,
    row_id: str,
    request: RowWrite,
    session: SessionDep,
    engine: EngineDep,
) -> Row:
    return engine.update_row(session, database_id, table_id, row_id, request.data)


@router.put(
    "/{database_id}/tables/{table_id}/rows/{row_id}",
    response_model=Row,
    responses={404: {"model": ErrorResponse}},
    summary="Replace row",
    description="Replaces the row's data with the supplied fields.",
)
async def replace_row(
    database_id: str,
    table_id: str,
    row_id: str,
    request: RowWrite,
    session: SessionDep,
    engine: EngineDep,
) -> Row:
    return engine.update_row(session, database_id, table_id, row_id, request.data, replace=True)


@router.delete(
    "/{database_id}/tables/{table_id}/rows/{row_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
    summary="Delete row",
)
async def delete_row(
    database_id: str, table_id: str, row_id: str, session: SessionDep, engine: EngineDep
) -> None:
    engine.delete_row(session, database_id, table_id, row_id)
