"""Query logs and the copyright guard.

Query logs are append-only: one entry per gateway-authorized request, never
mutated and never pruned here. The copyright guard flags a database name that
already exists (case-insensitively) under another user. It only records a
strike; it never blocks the action it guards.
"""

from collections import Counter
from typing import Any

import structlog

from mainwebdb import metrics
from mainwebdb.config import settings
from mainwebdb.errors import InvalidStrikeTransitionError, StrikeNotFoundError
from mainwebdb.models.documents import CopyrightStrike, DocumentGraph, QueryLog
from mainwebdb.session import Session
from mainwebdb.storage import DocumentStore

logger = structlog.get_logger()


def record_query(
    graph: DocumentGraph,
    *,
    user_id: str,
    database_id: str,
    method: str,
    endpoint: str,
    status_code: int,
    response_time_ms: int | None = None,
    request_body: Any = None,
) -> QueryLog:
    """Append one QueryLog entry to graph."""
    entry = QueryLog(
        user_id=user_id,
        database_id=database_id,
        method=method,
        endpoint=endpoint,
        status_code=status_code,
        response_time_ms=response_time_ms,
        request_body=request_body,
    )
    graph.query_logs.append(entry)
    return entry


def check_duplicate_name(
    graph: DocumentGraph,
    user_id: str,
    name: str,
    content_id: str,
    content_type: str = "database",
) -> CopyrightStrike | None:
    """
    Record a strike if another user already owns a database called name.

    Matching is case-insensitive and exact. Databases owned by user_id are
    ignored. At most one strike is created per call.

    Returns:
        The new strike, or None when no other user owns that name
    """
    wanted = name.lower()
    for existing in graph.databases:
        if existing.user_id == user_id or existing.name.lower() != wanted:
            continue

        strike = CopyrightStrike(
            user_id=user_id,
            content_type=content_type,
            content_id=content_id,
            content_name=name,
            strike_reason=f'Duplicate content detected: "{name}" already exists under another user.',
        )
        graph.copyright_strikes.append(strike)
        metrics.COPYRIGHT_STRIKES_CREATED.labels(content_type=content_type).inc()
        logger.warning(
            "copyright_strike_recorded",
            strike_id=strike.id,
            user_id=user_id,
            content_id=content_id,
            conflicting_database_id=existing.id,
        )
        return strike
    return None


class AuditService:
    """Session-scoped views over query logs and copyright strikes."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    def list_query_logs(
        self,
        session: Session,
        database_id: str | None = None,
        method: str | None = None,
        limit: int | None = None,
    ) -> list[QueryLog]:
        """Return the caller's logs, newest first."""
        user_id = session.require_user()
        logs = [
            log
            for log in self.store.load().query_logs
            if log.user_id == user_id
            and (database_id is None or log.database_id == database_id)
            and (method is None or log.method == method)
        ]
        # Entries sharing a timestamp keep newest-first order
        logs.reverse()
        logs.sort(key=lambda log: log.created_at, reverse=True)
        return logs[: limit or settings.query_log_limit]

    def query_stats(self, session: Session, database_id: str | None = None) -> dict[str, Any]:
        """Count the caller's logged queries per method and status code."""
        user_id = session.require_user()
        logs = [
            log
            for log in self.store.load().query_logs
            if log.user_id == user_id and (database_id is None or log.database_id == database_id)
        ]
        timed = [log.response_time_ms for log in logs if log.response_time_ms is not None]
        return {
            "total": len(logs),
            "by_method": dict(Counter(log.method for log in logs)),
            "by_status": {str(code): count for code, count in Counter(log.status_code for log in logs).items()},
            "avg_response_time_ms": round(sum(timed) / len(timed), 2) if timed else None,
        }

    def list_strikes(self, session: Session) -> list[CopyrightStrike]:
        user_id = session.require_user()
        return [s for s in self.store.load().copyright_strikes if s.user_id == user_id]

    def dismiss_strike(self, session: Session, strike_id: str) -> CopyrightStrike:
        return self._transition(session, strike_id, "dismissed")

    def resolve_strike(self, session: Session, strike_id: str) -> CopyrightStrike:
        return self._transition(session, strike_id, "resolved")

    def _transition(self, session: Session, strike_id: str, new_status: str) -> CopyrightStrike:
        user_id = session.require_user()
        with self.store.transaction() as graph:
            strike = next(
                (s for s in graph.copyright_strikes if s.id == strike_id and s.user_id == user_id),
                None,
            )
            if strike is None:
                raise StrikeNotFoundError(
                    f"Copyright strike {strike_id} not found",
                    details={"strike_id": strike_id},
                )
            if strike.status != "active":
                raise InvalidStrikeTransitionError(
                    f"Strike is already {strike.status}",
                    details={"strike_id": strike_id, "status": strike.status},
                )
            strike.status = new_status

        logger.info("copyright_strike_updated", strike_id=strike_id, status=new_status)
        return strike
