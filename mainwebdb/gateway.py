"""Query gateway - the API-key-authenticated execution path.

Request envelope (one endpoint, POST semantics):

    {"api_key": "...", "action": "select" | "insert" | "update" | "delete",
     "table": "...", "data": {...}, "filters": {...}, "row_id": "..."}

Flow: validate envelope -> resolve key -> locate table by name in the key's
database -> run the row action -> append one QueryLog -> commit.

No engine error escapes execute(): every outcome is a GatewayResponse with
{"data": ...} on success or {"error": message} and the matching status code
(400 missing fields, 401 invalid key, 404 table/row not found, 500
unexpected). A request that passes key resolution is always logged, even
when the action itself fails; the failed mutation is not persisted.
"""

import copy
import time
from dataclasses import dataclass, field
from typing import Any

import structlog
from fastapi import status

from mainwebdb import metrics, rows
from mainwebdb.audit import record_query
from mainwebdb.auth import get_key_prefix
from mainwebdb.config import settings
from mainwebdb.errors import (
    DatabaseNotFoundError,
    InternalError,
    InvalidActionError,
    MissingFieldsError,
    WebDBError,
)
from mainwebdb.keys import resolve_key
from mainwebdb.models.documents import ApiKey, DocumentGraph
from mainwebdb.schema import find_table_by_name
from mainwebdb.storage import DocumentStore

logger = structlog.get_logger()

ACTIONS = ("select", "insert", "update", "delete")
REQUIRED_FIELDS = ("api_key", "action", "table")


@dataclass
class GatewayResponse:
    """Status code plus JSON body of a gateway call."""

    status_code: int
    body: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status_code < 400


def _error_response(error: WebDBError) -> GatewayResponse:
    return GatewayResponse(status_code=error.status_code, body={"error": error.message})


def _validate_envelope(envelope: Any) -> None:
    if not isinstance(envelope, dict):
        raise MissingFieldsError("Request body must be a JSON object")
    missing = [name for name in REQUIRED_FIELDS if not envelope.get(name)]
    if missing:
        raise MissingFieldsError(
            f"Missing required fields: {', '.join(missing)}",
            details={"fields": missing},
        )
    for name in REQUIRED_FIELDS:
        if not isinstance(envelope[name], str):
            raise MissingFieldsError(f"Field '{name}' must be a string", details={"fields": [name]})


def _validate_action(envelope: dict[str, Any]) -> None:
    action = envelope["action"]
    if action not in ACTIONS:
        raise InvalidActionError(
            f"Invalid action '{action}'. Use one of: {', '.join(ACTIONS)}",
            details={"action": action},
        )
    if action in ("insert", "update") and not isinstance(envelope.get("data"), dict):
        raise MissingFieldsError(f"'data' object is required for {action}", details={"fields": ["data"]})
    if action in ("update", "delete"):
        row_id = envelope.get("row_id")
        if not row_id or not isinstance(row_id, str):
            raise MissingFieldsError(f"'row_id' is required for {action}", details={"fields": ["row_id"]})
    filters = envelope.get("filters")
    if filters is not None and not isinstance(filters, dict):
        raise MissingFieldsError("'filters' must be an object", details={"fields": ["filters"]})


class QueryGateway:
    """Executes query envelopes against the document store."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    def execute(self, envelope: Any) -> GatewayResponse:
        start_time = time.perf_counter()
        try:
            _validate_envelope(envelope)
        except WebDBError as e:
            logger.info("gateway_request_rejected", error=e.error)
            return self._finish(_error_response(e), None, start_time)

        action = envelope["action"]
        resolved: ApiKey | None = None
        try:
            with self.store.transaction() as graph:
                resolved = resolve_key(graph, envelope["api_key"])
                try:
                    response = self._dispatch(graph, resolved, envelope)
                except WebDBError as e:
                    response = _error_response(e)
                self._log(graph, resolved, envelope, response, start_time)
            return self._finish(response, action, start_time)

        except WebDBError as e:
            logger.warning(
                "gateway_request_denied",
                error=e.error,
                key_prefix=get_key_prefix(envelope["api_key"]),
            )
            return self._finish(_error_response(e), action, start_time)

        except Exception as e:
            logger.error("gateway_unexpected_error", action=action, error=str(e), exc_info=True)
            response = _error_response(InternalError("Internal server error"))
            if resolved is not None:
                self._log_failure(resolved, envelope, response, start_time)
            return self._finish(response, action, start_time)

    def _dispatch(
        self, graph: DocumentGraph, api_key: ApiKey, envelope: dict[str, Any]
    ) -> GatewayResponse:
        _validate_action(envelope)

        database = graph.find_database(api_key.database_id)
        if database is None:
            raise DatabaseNotFoundError(
                "Database for this API key no longer exists",
                details={"database_id": api_key.database_id},
            )
        table = find_table_by_name(database, envelope["table"])
        action = envelope["action"]
        strict = settings.strict_row_validation

        if action == "select":
            selected = rows.select_rows(table, envelope.get("filters"))
            return GatewayResponse(
                status_code=status.HTTP_200_OK,
                body={"data": [r.model_dump(mode="json") for r in selected]},
            )

        if action == "insert":
            row = rows.insert_row(table, envelope["data"], strict=strict)
            database.touch()
            return GatewayResponse(
                status_code=status.HTTP_201_CREATED,
                body={"data": row.model_dump(mode="json")},
            )

        if action == "update":
            row = rows.update_row(table, envelope["row_id"], envelope["data"], strict=strict)
            database.touch()
            return GatewayResponse(
                status_code=status.HTTP_200_OK,
                body={"data": row.model_dump(mode="json")},
            )

        row = rows.delete_row(table, envelope["row_id"])
        database.touch()
        return GatewayResponse(
            status_code=status.HTTP_200_OK,
            body={"data": {"id": row.id, "deleted": True}},
        )

    def _log(
        self,
        graph: DocumentGraph,
        api_key: ApiKey,
        envelope: dict[str, Any],
        response: GatewayResponse,
        start_time: float,
    ) -> None:
        request_body = copy.deepcopy({k: v for k, v in envelope.items() if k != "api_key"})
        record_query(
            graph,
            user_id=api_key.user_id,
            database_id=api_key.database_id,
            method=str(envelope["action"]),
            endpoint=f"{settings.query_endpoint}/{envelope['table']}",
            status_code=response.status_code,
            response_time_ms=int((time.perf_counter() - start_time) * 1000),
            request_body=request_body,
        )

    def _log_failure(
        self,
        api_key: ApiKey,
        envelope: dict[str, Any],
        response: GatewayResponse,
        start_time: float,
    ) -> None:
        """Record a 500 in a fresh transaction; the failed one was discarded."""
        try:
            with self.store.transaction() as graph:
                self._log(graph, api_key, envelope, response, start_time)
        except Exception as e:
            logger.error("gateway_failure_log_failed", error=str(e), exc_info=True)

    def _finish(
        self, response: GatewayResponse, action: str | None, start_time: float
    ) -> GatewayResponse:
        duration = time.perf_counter() - start_time
        label = action if action in ACTIONS else "invalid"
        metrics.GATEWAY_QUERIES.labels(action=label, status_code=str(response.status_code)).inc()
        metrics.GATEWAY_DURATION.labels(action=label).observe(duration)
        logger.info(
            "gateway_request_completed",
            action=action,
            status_code=response.status_code,
            duration_ms=round(duration * 1000, 2),
        )
        return response
