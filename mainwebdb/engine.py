"""WebDB - the engine facade.

Composes the document store, sessions and the services into one object
the HTTP routers and the CLI talk to. Row and key management wrappers run
each call as one store transaction scoped to the session's own database.
"""

from pathlib import Path
from typing import Any

import structlog

from mainwebdb import rows
from mainwebdb.audit import AuditService
from mainwebdb.config import settings
from mainwebdb.gateway import GatewayResponse, QueryGateway
from mainwebdb.identity import IdentityService
from mainwebdb.keys import find_key, provision_key
from mainwebdb.models.documents import ApiKey, Row
from mainwebdb.schema import SchemaManager, find_table, owned_database
from mainwebdb.session import Session, SessionManager
from mainwebdb.storage import DocumentStore

logger = structlog.get_logger()


class WebDB:
    """Entry point to every engine operation."""

    def __init__(self, store_path: Path | None = None) -> None:
        self.store = DocumentStore(store_path)
        self.sessions = SessionManager(self.store)
        self.identity = IdentityService(self.store, self.sessions)
        self.schema = SchemaManager(self.store)
        self.audit = AuditService(self.store)
        self.gateway = QueryGateway(self.store)

    def initialize(self) -> None:
        self.store.initialize()
        self.store.load()

    def restore_session(self) -> Session:
        """Session active at process start (anonymous if the pointer is stale)."""
        return self.sessions.restore(self.store.load())

    def execute(self, envelope: Any) -> GatewayResponse:
        """Run one query envelope through the gateway."""
        return self.gateway.execute(envelope)

    # ========================================
    # Rows (data explorer)
    # ========================================

    def list_rows(
        self,
        session: Session,
        database_id: str,
        table_id: str,
        filters: dict[str, Any] | None = None,
    ) -> list[Row]:
        table = self.schema.get_table(session, database_id, table_id)
        return rows.select_rows(table, filters)

    def insert_row(
        self, session: Session, database_id: str, table_id: str, data: dict[str, Any]
    ) -> Row:
        user_id = session.require_user()
        with self.store.transaction() as graph:
            database = owned_database(graph, user_id, database_id)
            row = rows.insert_row(
                find_table(database, table_id), data, strict=settings.strict_row_validation
            )
            database.touch()
        logger.info("row_inserted", database_id=database_id, table_id=table_id, row_id=row.id)
        return row

    def update_row(
        self,
        session: Session,
        database_id: str,
        table_id: str,
        row_id: str,
        data: dict[str, Any],
        replace: bool = False,
    ) -> Row:
        """Patch a row, or replace its data wholesale when replace is set."""
        user_id = session.require_user()
        with self.store.transaction() as graph:
            database = owned_database(graph, user_id, database_id)
            table = find_table(database, table_id)
            strict = settings.strict_row_validation
            if replace:
                row = rows.replace_row(table, row_id, data, strict=strict)
            else:
                row = rows.update_row(table, row_id, data, strict=strict)
            database.touch()
        logger.info("row_updated", database_id=database_id, table_id=table_id, row_id=row_id)
        return row

    def delete_row(self, session: Session, database_id: str, table_id: str, row_id: str) -> None:
        user_id = session.require_user()
        with self.store.transaction() as graph:
            database = owned_database(graph, user_id, database_id)
            rows.delete_row(find_table(database, table_id), row_id)
            database.touch()
        logger.info("row_deleted", database_id=database_id, table_id=table_id, row_id=row_id)

    # ========================================
    # API keys
    # ========================================

    def list_keys(self, session: Session, database_id: str) -> list[ApiKey]:
        graph = self.store.load()
        owned_database(graph, session.require_user(), database_id)
        return [k for k in graph.api_keys if k.database_id == database_id]

    def create_key(self, session: Session, database_id: str, name: str | None = None) -> ApiKey:
        user_id = session.require_user()
        with self.store.transaction() as graph:
            database = owned_database(graph, user_id, database_id)
            api_key = provision_key(graph, user_id, database_id, name=name or f"Key for {database.name}")
        return api_key

    def set_key_active(
        self, session: Session, database_id: str, key_id: str, is_active: bool
    ) -> ApiKey:
        user_id = session.require_user()
        with self.store.transaction() as graph:
            owned_database(graph, user_id, database_id)
            api_key = find_key(graph, database_id, key_id)
            api_key.is_active = is_active
        logger.info("api_key_state_changed", key_id=key_id, is_active=is_active)
        return api_key

    def delete_key(self, session: Session, database_id: str, key_id: str) -> None:
        user_id = session.require_user()
        with self.store.transaction() as graph:
            owned_database(graph, user_id, database_id)
            find_key(graph, database_id, key_id)
            graph.api_keys = [k for k in graph.api_keys if k.id != key_id]
        logger.info("api_key_deleted", key_id=key_id, database_id=database_id)

    # ========================================
    # Statistics
    # ========================================

    def dashboard(self, session: Session) -> dict[str, int]:
        """Counts of the caller's own records."""
        user_id = session.require_user()
        graph = self.store.load()
        databases = [d for d in graph.databases if d.user_id == user_id]
        tables = [t for d in databases for t in d.tables]
        return {
            "databases": len(databases),
            "tables": len(tables),
            "rows": sum(len(t.rows) for t in tables),
            "api_keys": sum(1 for k in graph.api_keys if k.user_id == user_id),
            "query_logs": sum(1 for l in graph.query_logs if l.user_id == user_id),
            "active_strikes": sum(
                1 for s in graph.copyright_strikes if s.user_id == user_id and s.status == "active"
            ),
        }

    def stats(self) -> dict[str, int]:
        """Global entity counts."""
        graph = self.store.load()
        tables = [t for d in graph.databases for t in d.tables]
        return {
            "users": len(graph.users),
            "databases": len(graph.databases),
            "tables": len(tables),
            "rows": sum(len(t.rows) for t in tables),
            "api_keys": len(graph.api_keys),
            "query_logs": len(graph.query_logs),
            "copyright_strikes": len(graph.copyright_strikes),
        }


_webdb: WebDB | None = None


def get_webdb() -> WebDB:
    """Return the process-wide engine, created on first use."""
    global _webdb
    if _webdb is None:
        _webdb = WebDB()
    return _webdb


def reset_webdb() -> None:
    """Forget the process-wide engine (tests point settings elsewhere)."""
    global _webdb
    _webdb = None
