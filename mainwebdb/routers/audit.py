"""Query log, dashboard and copyright strike endpoints."""

import structlog
from fastapi import APIRouter, Query

from mainwebdb.dependencies import EngineDep, SessionDep
from mainwebdb.models.documents import CopyrightStrike
from mainwebdb.models.responses import (
    CopyrightStrikeListResponse,
    DashboardResponse,
    ErrorResponse,
    QueryLogListResponse,
    QueryStatsResponse,
)

logger = structlog.get_logger()
router = APIRouter(tags=["audit"])


@router.get(
    "/query-logs",
    response_model=QueryLogListResponse,
    summary="List query logs",
    description="The caller's query logs, newest first.",
)
async def list_query_logs(
    session: SessionDep,
    engine: EngineDep,
    database_id: str | None = Query(default=None, description="Only logs of this database"),
    method: str | None = Query(default=None, description="Only this action (select, insert, ...)"),
    limit: int | None = Query(default=None, ge=1, le=10000, description="Maximum entries"),
) -> QueryLogListResponse:
    logs = engine.audit.list_query_logs(session, database_id=database_id, method=method, limit=limit)
    return QueryLogListResponse(logs=logs, total=len(logs))


@router.get(
    "/query-logs/stats",
    response_model=QueryStatsResponse,
    summary="Query log statistics",
)
async def query_log_stats(
    session: SessionDep,
    engine: EngineDep,
    database_id: str | None = Query(default=None),
) -> QueryStatsResponse:
    return QueryStatsResponse(**engine.audit.query_stats(session, database_id=database_id))


@router.get("/dashboard", response_model=DashboardResponse, summary="Dashboard counts")
async def dashboard(session: SessionDep, engine: EngineDep) -> DashboardResponse:
    return DashboardResponse(**engine.dashboard(session))


@router.get(
    "/copyright-strikes",
    response_model=CopyrightStrikeListResponse,
    summary="List copyright strikes",
)
async def list_strikes(session: SessionDep, engine: EngineDep) -> CopyrightStrikeListResponse:
    strikes = engine.audit.list_strikes(session)
    return CopyrightStrikeListResponse(strikes=strikes, total=len(strikes))


@router.post(
    "/copyright-strikes/{strike_id}/dismiss",
    response_model=CopyrightStrike,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Dismiss a copyright strike",
)
async def dismiss_strike(strike_id: str, session: SessionDep, engine: EngineDep) -> CopyrightStrike:
    return engine.audit.dismiss_strike(session, strike_id)


@router.post(
    "/copyright-strikes/{strike_id}/resolve",
    response_model=CopyrightStrike,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Resolve a copyright strike",
)
async def resolve_strike(strike_id: str, session: SessionDep, engine: EngineDep) -> CopyrightStrike:
    return engine.audit.resolve_strike(session, strike_id)
