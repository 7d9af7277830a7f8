"""Error taxonomy for the MainWebDB engine.

Every domain failure is a WebDBError carrying a snake_case error code, a
human readable message and the HTTP status code the API layer answers with.
Services raise these; the query gateway converts them into typed responses
and the management routers rely on the exception handler in main.py.
"""

from typing import Any

from fastapi import status


class WebDBError(Exception):
    """Base class for all engine errors."""

    error: str = "webdb_error"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.error,
            "message": self.message,
            "details": self.details or None,
        }


class MissingFieldsError(WebDBError):
    """Required request fields are missing or blank."""

    error = "missing_fields"
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidActionError(WebDBError):
    """Query action is not one of select/insert/update/delete."""

    error = "invalid_action"
    status_code = status.HTTP_400_BAD_REQUEST


class DuplicateEmailError(WebDBError):
    error = "duplicate_email"
    status_code = status.HTTP_409_CONFLICT


class NotFoundError(WebDBError):
    error = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class UserNotFoundError(NotFoundError):
    error = "user_not_found"


class DatabaseNotFoundError(NotFoundError):
    error = "database_not_found"


class TableNotFoundError(NotFoundError):
    error = "table_not_found"


class RowNotFoundError(NotFoundError):
    error = "row_not_found"


class ApiKeyNotFoundError(NotFoundError):
    error = "api_key_not_found"


class StrikeNotFoundError(NotFoundError):
    error = "strike_not_found"


class InvalidCredentialError(WebDBError):
    error = "invalid_credential"
    status_code = status.HTTP_401_UNAUTHORIZED


class NotAuthenticatedError(WebDBError):
    error = "not_authenticated"
    status_code = status.HTTP_401_UNAUTHORIZED


class InvalidKeyError(WebDBError):
    """API key is unknown or inactive."""

    error = "invalid_key"
    status_code = status.HTTP_401_UNAUTHORIZED


class EmptyColumnSetError(WebDBError):
    """Table definition has no column with a non-blank name."""

    error = "empty_column_set"
    status_code = status.HTTP_400_BAD_REQUEST


class SchemaViolationError(WebDBError):
    """Column definitions or strict-mode row data violate the table schema."""

    error = "schema_violation"
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidStrikeTransitionError(WebDBError):
    error = "invalid_strike_transition"
    status_code = status.HTTP_409_CONFLICT


class KeyCollisionError(WebDBError):
    """Generated API key value already exists."""

    error = "key_collision"
    status_code = status.HTTP_409_CONFLICT


class WriteConflictError(WebDBError):
    """Stored revision changed between load and save."""

    error = "write_conflict"
    status_code = status.HTTP_409_CONFLICT


class InvalidPayloadError(WebDBError):
    """Snapshot payload does not parse or does not match the graph shape."""

    error = "invalid_payload"
    status_code = status.HTTP_400_BAD_REQUEST


class InternalError(WebDBError):
    error = "internal_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
