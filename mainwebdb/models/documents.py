"""Document graph models.

The whole persisted state is one DocumentGraph: users, databases (with their
tables, columns and rows inline), api keys, query logs and copyright strikes.
Every collection defaults to an empty list so partially written blobs load
with the missing collections filled in.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, JsonValue, model_validator

GRAPH_COLLECTIONS = ("users", "databases", "api_keys", "query_logs", "copyright_strikes")

DataType = Literal["text", "integer", "boolean", "timestamp", "uuid", "jsonb", "float"]
DATA_TYPES: tuple[str, ...] = ("text", "integer", "boolean", "timestamp", "uuid", "jsonb", "float")

StrikeStatus = Literal["active", "resolved", "dismissed"]


def generate_id() -> str:
    """Return a new opaque identifier."""
    return str(uuid.uuid4())


def utc_now() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


class Document(BaseModel):
    """Base for every persisted entity."""

    model_config = ConfigDict(validate_assignment=True)


class User(Document):
    id: str = Field(default_factory=generate_id)
    email: str
    password: str = Field(description="bcrypt credential, never plaintext")
    display_name: str
    created_at: str = Field(default_factory=utc_now)


class Column(Document):
    id: str = Field(default_factory=generate_id)
    name: str
    data_type: DataType = "text"
    is_nullable: bool = True
    default_value: str | None = None
    position: int


class Row(Document):
    id: str = Field(default_factory=generate_id)
    data: dict[str, JsonValue] = Field(default_factory=dict)
    created_at: str = Field(default_factory=utc_now)
    updated_at: str = Field(default_factory=utc_now)


class Table(Document):
    id: str = Field(default_factory=generate_id)
    name: str
    columns: list[Column] = Field(default_factory=list)
    rows: list[Row] = Field(default_factory=list)
    created_at: str = Field(default_factory=utc_now)

    def column(self, name: str) -> Column | None:
        return next((c for c in self.columns if c.name == name), None)


class Database(Document):
    id: str = Field(default_factory=generate_id)
    user_id: str
    name: str
    description: str = ""
    status: str = "active"
    tables: list[Table] = Field(default_factory=list)
    created_at: str = Field(default_factory=utc_now)
    updated_at: str = Field(default_factory=utc_now)

    def touch(self) -> None:
        self.updated_at = utc_now()


class ApiKey(Document):
    id: str = Field(default_factory=generate_id)
    user_id: str
    database_id: str
    key_value: str
    name: str
    is_active: bool = True
    last_used_at: str | None = None
    created_at: str = Field(default_factory=utc_now)


class QueryLog(Document):
    id: str = Field(default_factory=generate_id)
    user_id: str
    database_id: str
    method: str
    endpoint: str
    status_code: int
    response_time_ms: int | None = None
    request_body: JsonValue = None
    created_at: str = Field(default_factory=utc_now)


class CopyrightStrike(Document):
    id: str = Field(default_factory=generate_id)
    user_id: str
    content_type: str
    content_id: str
    content_name: str
    strike_reason: str
    status: StrikeStatus = "active"
    created_at: str = Field(default_factory=utc_now)


class DocumentGraph(Document):
    """The full persisted collection of all entities."""

    users: list[User] = Field(default_factory=list)
    databases: list[Database] = Field(default_factory=list)
    api_keys: list[ApiKey] = Field(default_factory=list)
    query_logs: list[QueryLog] = Field(default_factory=list)
    copyright_strikes: list[CopyrightStrike] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def default_missing_collections(cls, data: Any) -> Any:
        """Treat null top-level collections like missing ones."""
        if isinstance(data, dict):
            return {
                **data,
                **{name: [] for name in GRAPH_COLLECTIONS if data.get(name) is None},
            }
        return data

    def find_user(self, user_id: str) -> User | None:
        return next((u for u in self.users if u.id == user_id), None)

    def find_user_by_email(self, email: str) -> User | None:
        return next((u for u in self.users if u.email == email), None)

    def find_database(self, database_id: str) -> Database | None:
        return next((d for d in self.databases if d.id == database_id), None)
