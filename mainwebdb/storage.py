"""Document store - the whole graph persisted as one blob in DuckDB.

Storage layout
==============
A single DuckDB file (settings.store_path) holds one key/value table:

    kv_store(key VARCHAR PRIMARY KEY, value VARCHAR, revision BIGINT, updated_at)

The document graph is serialized as JSON under settings.document_key. The
session pointer and the session token map live under their own keys, outside
the graph.

Writes are full overwrites. Every mutation runs as one load -> mutate -> save
cycle through DocumentStore.transaction(), which holds a process-wide lock so
there is one writer at a time, and compares revisions on save so a stale
writer fails with WriteConflictError instead of silently overwriting.
"""

import threading
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator

import duckdb
import structlog
from pydantic import ValidationError

from mainwebdb import metrics
from mainwebdb.config import settings
from mainwebdb.errors import InvalidPayloadError, WriteConflictError
from mainwebdb.models.documents import DocumentGraph

logger = structlog.get_logger()


STORE_SCHEMA = """
CREATE TABLE IF NOT EXISTS kv_store (
    key VARCHAR PRIMARY KEY,
    value VARCHAR NOT NULL,
    revision BIGINT NOT NULL DEFAULT 0,
    updated_at TIMESTAMPTZ DEFAULT now()
);
"""


class DocumentStore:
    """
    Durable load/save of the document graph.

    Note: store_path is read from settings on each access unless given
    explicitly, so tests can point the store at a temporary directory.
    """

    def __init__(self, store_path: Path | None = None) -> None:
        self._store_path = store_path
        self._write_lock = threading.RLock()
        self._initialized_path: Path | None = None

    @property
    def store_path(self) -> Path:
        return self._store_path or settings.store_path

    def initialize(self) -> None:
        """Create the store file and its schema."""
        db_path = self.store_path
        with self._write_lock:
            db_path.parent.mkdir(parents=True, exist_ok=True)
            try:
                self._create_schema(db_path)
            except duckdb.Error as e:
                self._quarantine(db_path, reason=str(e))
                self._create_schema(db_path)
            self._initialized_path = db_path
            logger.info("document_store_initialized", path=str(db_path))

    def _create_schema(self, db_path: Path) -> None:
        conn = duckdb.connect(str(db_path))
        try:
            conn.execute(STORE_SCHEMA)
            conn.commit()
        finally:
            conn.close()

    def _ensure_initialized(self) -> None:
        if self._initialized_path != self.store_path:
            self.initialize()

    def _quarantine(self, db_path: Path, reason: str) -> None:
        """Move an unreadable store file aside so a fresh one can be created."""
        suffix = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
        for path in (db_path, db_path.with_name(db_path.name + ".wal")):
            if path.exists():
                path.rename(path.with_name(f"{path.name}.corrupt-{suffix}"))
        metrics.STORE_RECOVERIES.labels(reason="unreadable").inc()
        logger.warning("document_store_quarantined", path=str(db_path), reason=reason)

    @contextmanager
    def connection(self) -> Generator[duckdb.DuckDBPyConnection, None, None]:
        """
        Get a connection to the store file.

        Usage:
            with store.connection() as conn:
                conn.execute("SELECT key FROM kv_store")
        """
        self._ensure_initialized()
        conn = duckdb.connect(str(self.store_path))
        try:
            yield conn
        finally:
            conn.close()

    # ========================================
    # Key/value primitives
    # ========================================

    def _read(self, key: str) -> tuple[str, int] | None:
        start_time = time.time()
        try:
            with self.connection() as conn:
                row = conn.execute(
                    "SELECT value, revision FROM kv_store WHERE key = ?", [key]
                ).fetchone()
            return (row[0], row[1]) if row else None
        finally:
            metrics.STORE_OPERATIONS.labels(operation="read").inc()
            metrics.STORE_DURATION.labels(operation="read").observe(time.time() - start_time)

    def _write(self, key: str, value: str, expected_revision: int | None = None) -> int:
        start_time = time.time()
        try:
            with self.connection() as conn:
                conn.execute("BEGIN TRANSACTION")
                try:
                    row = conn.execute(
                        "SELECT revision FROM kv_store WHERE key = ?", [key]
                    ).fetchone()
                    current = row[0] if row else 0
                    if expected_revision is not None and current != expected_revision:
                        metrics.STORE_WRITE_CONFLICTS.inc()
                        raise WriteConflictError(
                            f"Stored revision {current} does not match expected {expected_revision}",
                            details={"key": key, "stored": current, "expected": expected_revision},
                        )
                    revision = current + 1
                    conn.execute(
                        """
                        INSERT INTO kv_store (key, value, revision, updated_at)
                        VALUES (?, ?, ?, ?)
                        ON CONFLICT (key) DO UPDATE SET
                            value = excluded.value,
                            revision = excluded.revision,
                            updated_at = excluded.updated_at
                        """,
                        [key, value, revision, datetime.now(timezone.utc)],
                    )
                    conn.execute("COMMIT")
                except Exception:
                    conn.execute("ROLLBACK")
                    raise
            return revision
        finally:
            metrics.STORE_OPERATIONS.labels(operation="write").inc()
            metrics.STORE_DURATION.labels(operation="write").observe(time.time() - start_time)

    def get_item(self, key: str) -> str | None:
        """Return the raw value stored under key, or None."""
        record = self._read(key)
        return record[0] if record else None

    def set_item(self, key: str, value: str) -> None:
        with self._write_lock:
            self._write(key, value)

    def remove_item(self, key: str) -> None:
        with self._write_lock:
            with self.connection() as conn:
                conn.execute("DELETE FROM kv_store WHERE key = ?", [key])
                conn.commit()

    # ========================================
    # Document graph
    # ========================================

    def load_with_revision(self) -> tuple[DocumentGraph, int]:
        """
        Load the graph together with its stored revision.

        Missing storage is initialized with an empty graph. Unreadable or
        malformed storage is reinitialized to an empty graph and persisted
        immediately; no exception reaches the caller.
        """
        key = settings.document_key
        with self._write_lock:
            try:
                record = self._read(key)
            except duckdb.Error as e:
                self._quarantine(self.store_path, reason=str(e))
                self.initialize()
                record = None

            if record is None:
                graph = DocumentGraph()
                return graph, self._write(key, graph.model_dump_json())

            raw, revision = record
            try:
                return DocumentGraph.model_validate_json(raw), revision
            except ValidationError as e:
                metrics.STORE_RECOVERIES.labels(reason="malformed").inc()
                logger.warning(
                    "document_store_recovered",
                    reason="malformed",
                    error_count=e.error_count(),
                )
                graph = DocumentGraph()
                return graph, self._write(key, graph.model_dump_json())

    def load(self) -> DocumentGraph:
        """Return the full document graph."""
        graph, _ = self.load_with_revision()
        return graph

    def save(self, graph: DocumentGraph, expected_revision: int | None = None) -> int:
        """
        Overwrite the persisted graph.

        Args:
            graph: The full graph to persist
            expected_revision: When given, the save fails with
                WriteConflictError unless the stored revision still matches

        Returns:
            The new revision
        """
        with self._write_lock:
            revision = self._write(
                settings.document_key, graph.model_dump_json(), expected_revision
            )
        logger.debug("document_graph_saved", revision=revision)
        return revision

    @contextmanager
    def transaction(self) -> Generator[DocumentGraph, None, None]:
        """
        Run one load -> mutate -> save cycle.

        The graph is saved only if the block completes. Any exception leaves
        the persisted state untouched.

        Usage:
            with store.transaction() as graph:
                graph.users.append(user)
        """
        with self._write_lock:
            graph, revision = self.load_with_revision()
            yield graph
            self.save(graph, expected_revision=revision)

    def export_snapshot(self) -> bytes:
        """Serialize the full graph to a downloadable JSON artifact."""
        return self.load().model_dump_json(indent=2).encode("utf-8")

    def import_snapshot(self, payload: bytes | str) -> DocumentGraph:
        """
        Replace the whole graph with a parsed snapshot.

        Raises:
            InvalidPayloadError: If the payload is not JSON or does not match
                the graph shape
        """
        try:
            graph = DocumentGraph.model_validate_json(payload)
        except ValidationError as e:
            logger.warning("snapshot_import_rejected", error_count=e.error_count())
            raise InvalidPayloadError(
                "Invalid JSON file",
                details={"errors": [err["msg"] for err in e.errors()[:5]]},
            ) from e

        self.save(graph)
        logger.info(
            "snapshot_imported",
            users=len(graph.users),
            databases=len(graph.databases),
        )
        return graph

    def clear(self) -> None:
        """Delete all data, including the session pointer."""
        with self._write_lock:
            for key in (settings.document_key, settings.session_key, settings.session_tokens_key):
                self.remove_item(key)
        logger.warning("document_store_cleared", path=str(self.store_path))

    def size_bytes(self) -> int:
        path = self.store_path
        return path.stat().st_size if path.exists() else 0
