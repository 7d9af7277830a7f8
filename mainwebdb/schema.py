"""Database and table lifecycle.

Databases are owned by exactly one user and carry their tables (and the
tables' rows) inline. Deleting a database also removes every API key and
query log that references it, inside the same store transaction.
"""

import structlog
from pydantic import BaseModel, Field

from mainwebdb.audit import check_duplicate_name
from mainwebdb.errors import (
    DatabaseNotFoundError,
    EmptyColumnSetError,
    MissingFieldsError,
    SchemaViolationError,
    TableNotFoundError,
)
from mainwebdb.keys import provision_key, remove_database_keys
from mainwebdb.models.documents import (
    Column,
    CopyrightStrike,
    ApiKey,
    Database,
    DataType,
    DocumentGraph,
    Table,
)
from mainwebdb.session import Session
from mainwebdb.storage import DocumentStore

logger = structlog.get_logger()


class ColumnDefinition(BaseModel):
    """Column as supplied when creating a table."""

    name: str = Field(description="Column name; blank names are dropped")
    data_type: DataType = Field(default="text", description="Column type tag")
    is_nullable: bool = Field(default=True, description="Whether the column accepts null")
    default_value: str | None = Field(default=None, description="Default value, null for none")


def owned_database(graph: DocumentGraph, user_id: str, database_id: str) -> Database:
    """Return database_id if user_id owns it."""
    database = graph.find_database(database_id)
    if database is None or database.user_id != user_id:
        raise DatabaseNotFoundError(
            f"Database {database_id} not found",
            details={"database_id": database_id},
        )
    return database


def find_table(database: Database, table_id: str) -> Table:
    table = next((t for t in database.tables if t.id == table_id), None)
    if table is None:
        raise TableNotFoundError(
            f"Table {table_id} not found",
            details={"database_id": database.id, "table_id": table_id},
        )
    return table


def find_table_by_name(database: Database, name: str) -> Table:
    """Return the first table in database called name."""
    table = next((t for t in database.tables if t.name == name), None)
    if table is None:
        raise TableNotFoundError(
            f'Table "{name}" not found',
            details={"database_id": database.id, "table": name},
        )
    return table


def build_columns(definitions: list[ColumnDefinition]) -> list[Column]:
    """
    Turn column definitions into positioned columns.

    Blank-named definitions are dropped silently; positions follow input
    order over the remaining ones. An empty default value means no default.

    Raises:
        EmptyColumnSetError: If no definition has a non-blank name
        SchemaViolationError: If two columns share a name
    """
    valid = [d for d in definitions if d.name.strip()]
    if not valid:
        raise EmptyColumnSetError("Add at least one column")

    columns = [
        Column(
            name=d.name.strip(),
            data_type=d.data_type,
            is_nullable=d.is_nullable,
            default_value=d.default_value or None,
            position=i,
        )
        for i, d in enumerate(valid)
    ]

    seen: set[str] = set()
    for column in columns:
        if column.name in seen:
            raise SchemaViolationError(
                f'Duplicate column name "{column.name}"',
                details={"column": column.name},
            )
        seen.add(column.name)
    return columns


class SchemaManager:
    """Database and table lifecycle for the session's user."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    # ========================================
    # Databases
    # ========================================

    def create_database(
        self, session: Session, name: str, description: str = ""
    ) -> tuple[Database, ApiKey, CopyrightStrike | None]:
        """
        Create a database with one auto-provisioned active API key.

        The copyright guard runs first; a strike is advisory and never
        prevents the creation.
        """
        user_id = session.require_user()
        name = (name or "").strip()
        if not name:
            raise MissingFieldsError("Database name is required", details={"fields": ["name"]})

        with self.store.transaction() as graph:
            database = Database(user_id=user_id, name=name, description=description or "")
            strike = check_duplicate_name(graph, user_id, name, database.id, "database")
            graph.databases.append(database)
            api_key = provision_key(graph, user_id, database.id, name=f"Key for {name}")

        logger.info(
            "database_created",
            database_id=database.id,
            user_id=user_id,
            copyright_strike=strike.id if strike else None,
        )
        return database, api_key, strike

    def list_databases(self, session: Session) -> list[Database]:
        user_id = session.require_user()
        return [d for d in self.store.load().databases if d.user_id == user_id]

    def get_database(self, session: Session, database_id: str) -> Database:
        return owned_database(self.store.load(), session.require_user(), database_id)

    def update_database(
        self,
        session: Session,
        database_id: str,
        name: str | None = None,
        description: str | None = None,
        status: str | None = None,
    ) -> Database:
        user_id = session.require_user()
        with self.store.transaction() as graph:
            database = owned_database(graph, user_id, database_id)
            if name is not None:
                if not name.strip():
                    raise MissingFieldsError("Database name is required", details={"fields": ["name"]})
                database.name = name.strip()
            if description is not None:
                database.description = description
            if status is not None:
                database.status = status
            database.touch()

        logger.info("database_updated", database_id=database_id)
        return database

    def delete_database(self, session: Session, database_id: str) -> dict[str, int]:
        """
        Delete a database and everything that references it.

        Returns:
            Counts of removed tables, api keys and query logs
        """
        user_id = session.require_user()
        with self.store.transaction() as graph:
            database = owned_database(graph, user_id, database_id)
            graph.databases = [d for d in graph.databases if d.id != database_id]
            keys_removed = remove_database_keys(graph, database_id)
            logs_before = len(graph.query_logs)
            graph.query_logs = [l for l in graph.query_logs if l.database_id != database_id]

        deleted = {
            "tables": len(database.tables),
            "api_keys": keys_removed,
            "query_logs": logs_before - len(graph.query_logs),
        }
        logger.info("database_deleted", database_id=database_id, **deleted)
        return deleted

    # ========================================
    # Tables
    # ========================================

    def create_table(
        self,
        session: Session,
        database_id: str,
        name: str,
        columns: list[ColumnDefinition],
    ) -> Table:
        """
        Create a table with positioned columns.

        Raises:
            DatabaseNotFoundError: If the caller does not own database_id
            EmptyColumnSetError: If no column has a non-blank name
        """
        user_id = session.require_user()
        name = (name or "").strip()
        if not name:
            raise MissingFieldsError("Table name is required", details={"fields": ["name"]})

        with self.store.transaction() as graph:
            database = owned_database(graph, user_id, database_id)
            table = Table(name=name, columns=build_columns(columns))
            database.tables.append(table)
            database.touch()

        logger.info(
            "table_created",
            database_id=database_id,
            table_id=table.id,
            column_count=len(table.columns),
        )
        return table

    def list_tables(self, session: Session, database_id: str) -> list[Table]:
        return self.get_database(session, database_id).tables

    def get_table(self, session: Session, database_id: str, table_id: str) -> Table:
        return find_table(self.get_database(session, database_id), table_id)

    def delete_table(self, session: Session, database_id: str, table_id: str) -> None:
        """Remove a table together with its rows."""
        user_id = session.require_user()
        with self.store.transaction() as graph:
            database = owned_database(graph, user_id, database_id)
            table = find_table(database, table_id)
            database.tables = [t for t in database.tables if t.id != table_id]
            database.touch()

        logger.info(
            "table_deleted",
            database_id=database_id,
            table_id=table_id,
            row_count=len(table.rows),
        )
