"""Request and response models for API endpoints."""

from typing import Any

from pydantic import BaseModel, Field, JsonValue

from mainwebdb.models.documents import (
    ApiKey,
    Column,
    CopyrightStrike,
    Database,
    QueryLog,
    Row,
    Table,
    User,
)
from mainwebdb.schema import ColumnDefinition


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Service status: 'healthy' or 'unhealthy'")
    version: str = Field(description="API version")
    storage_available: bool = Field(description="Whether storage paths are accessible")
    details: dict[str, bool] | None = Field(
        default=None, description="Detailed status of each storage path"
    )


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str = Field(description="Error type")
    message: str = Field(description="Error message")
    details: dict | None = Field(default=None, description="Additional error details")


# ============================================
# Query gateway models
# ============================================


class QueryErrorResponse(BaseModel):
    error: str = Field(description="Error message")


# ============================================
# Auth models
# ============================================


class SignUpRequest(BaseModel):
    email: str = Field(description="Account email (unique)")
    password: str = Field(description="Account password")
    display_name: str | None = Field(default=None, description="Defaults to the email's local part")


class SignInRequest(BaseModel):
    email: str
    password: str


class UserResponse(BaseModel):
    """User without the stored credential."""

    id: str
    email: str
    display_name: str
    created_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            display_name=user.display_name,
            created_at=user.created_at,
        )


class AuthResponse(BaseModel):
    user: UserResponse
    token: str = Field(description="Bearer session token")


class ProfileUpdate(BaseModel):
    display_name: str = Field(min_length=1)


class PasswordUpdate(BaseModel):
    new_password: str


# ============================================
# Database models
# ============================================


class DatabaseCreate(BaseModel):
    """Request to create a new database."""

    name: str = Field(description="Database name")
    description: str = Field(default="", description="Free text description")


class DatabaseUpdate(BaseModel):
    name: str | None = Field(default=None, description="Updated database name")
    description: str | None = Field(default=None, description="Updated description")
    status: str | None = Field(default=None, description="Updated status")


class DatabaseResponse(BaseModel):
    """Database information response (tables summarized)."""

    id: str
    user_id: str
    name: str
    description: str
    status: str
    table_count: int = Field(description="Number of tables")
    row_count: int = Field(description="Number of rows across tables")
    created_at: str
    updated_at: str

    @classmethod
    def from_database(cls, database: Database) -> "DatabaseResponse":
        return cls(
            id=database.id,
            user_id=database.user_id,
            name=database.name,
            description=database.description,
            status=database.status,
            table_count=len(database.tables),
            row_count=sum(len(t.rows) for t in database.tables),
            created_at=database.created_at,
            updated_at=database.updated_at,
        )


class DatabaseCreateResponse(BaseModel):
    """Response for database creation - includes the auto-provisioned key."""

    database: DatabaseResponse
    api_key: ApiKey
    copyright_strike: CopyrightStrike | None = Field(
        default=None, description="Advisory strike if the name duplicates another user's database"
    )


class DatabaseListResponse(BaseModel):
    databases: list[DatabaseResponse]
    total: int


class DatabaseDeleteResponse(BaseModel):
    id: str
    deleted: dict[str, int] = Field(description="Counts of removed tables, api keys and query logs")


# ============================================
# Table and row models
# ============================================


class TableCreate(BaseModel):
    name: str = Field(description="Table name")
    columns: list[ColumnDefinition] = Field(description="Column definitions in display order")


class TableResponse(BaseModel):
    id: str
    name: str
    columns: list[Column]
    row_count: int
    created_at: str

    @classmethod
    def from_table(cls, table: Table) -> "TableResponse":
        return cls(
            id=table.id,
            name=table.name,
            columns=table.columns,
            row_count=len(table.rows),
            created_at=table.created_at,
        )


class TableListResponse(BaseModel):
    tables: list[TableResponse]
    total: int


class RowWrite(BaseModel):
    data: dict[str, JsonValue] = Field(description="Column name to JSON value")


class RowListResponse(BaseModel):
    rows: list[Row]
    total: int


# ============================================
# API key models
# ============================================


class ApiKeyCreate(BaseModel):
    name: str | None = Field(default=None, description="Key label")


class ApiKeyUpdate(BaseModel):
    is_active: bool = Field(description="Activate or deactivate the key")


class ApiKeyListResponse(BaseModel):
    api_keys: list[ApiKey]
    total: int


# ============================================
# Audit models
# ============================================


class QueryLogListResponse(BaseModel):
    logs: list[QueryLog]
    total: int


class QueryStatsResponse(BaseModel):
    total: int
    by_method: dict[str, int]
    by_status: dict[str, int]
    avg_response_time_ms: float | None = None


class DashboardResponse(BaseModel):
    databases: int
    tables: int
    rows: int
    api_keys: int
    query_logs: int
    active_strikes: int


class CopyrightStrikeListResponse(BaseModel):
    strikes: list[CopyrightStrike]
    total: int


# ============================================
# Snapshot models
# ============================================


class SnapshotImportResponse(BaseModel):
    success: bool
    counts: dict[str, Any] = Field(description="Entity counts of the imported graph")
