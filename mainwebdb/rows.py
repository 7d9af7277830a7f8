"""Row engine: CRUD on the freeform JSON rows of a table.

Row data is a mapping from column name to any JSON value. Writes are
permissive by default: keys that are not declared columns are stored
verbatim and values are not checked against the column's data_type. With
strict validation switched on, undeclared keys and missing values for
non-nullable columns are rejected.

Filtering is exact equality on every supplied key; there is no partial,
substring or range matching.
"""

import copy
import json
from typing import Any

import structlog

from mainwebdb.errors import RowNotFoundError, SchemaViolationError
from mainwebdb.models.documents import Column, Row, Table, utc_now

logger = structlog.get_logger()

_TRUE_STRINGS = {"true", "t", "1", "yes"}
_FALSE_STRINGS = {"false", "f", "0", "no"}


def coerce_default(column: Column) -> Any:
    """
    Convert a column's string default to a value of its data_type.

    text, timestamp and uuid defaults stay strings. A default that does not
    parse as its type is kept as the raw string.
    """
    raw = column.default_value
    if raw is None:
        return None
    try:
        if column.data_type == "integer":
            return int(raw)
        if column.data_type == "float":
            return float(raw)
        if column.data_type == "jsonb":
            return json.loads(raw)
        if column.data_type == "boolean":
            lowered = raw.strip().lower()
            if lowered in _TRUE_STRINGS:
                return True
            if lowered in _FALSE_STRINGS:
                return False
    except ValueError:
        logger.debug("column_default_unparsed", column=column.name, data_type=column.data_type)
    return raw


def apply_defaults(table: Table, data: dict[str, Any]) -> dict[str, Any]:
    """Fill in declared columns that are absent from data and have a default."""
    for column in sorted(table.columns, key=lambda c: c.position):
        if column.name not in data and column.default_value is not None:
            data[column.name] = coerce_default(column)
    return data


def validate_strict(table: Table, data: dict[str, Any], partial: bool = False) -> None:
    """
    Check data against the declared columns.

    Raises:
        SchemaViolationError: On undeclared keys in data, or on non-nullable
            columns that are null (or, unless partial, missing)
    """
    declared = {c.name for c in table.columns}
    unknown = sorted(k for k in data if k not in declared)
    if unknown:
        raise SchemaViolationError(
            f"Unknown columns: {', '.join(unknown)}",
            details={"table": table.name, "columns": unknown},
        )

    for column in table.columns:
        if column.is_nullable:
            continue
        if partial and column.name not in data:
            continue
        if data.get(column.name) is None:
            raise SchemaViolationError(
                f'Column "{column.name}" does not accept null',
                details={"table": table.name, "column": column.name},
            )


def values_equal(left: Any, right: Any) -> bool:
    """JSON equality: booleans never equal numbers, 1 equals 1.0, containers compare deeply."""
    if isinstance(left, bool) or isinstance(right, bool):
        return type(left) is type(right) and left == right
    if isinstance(left, dict) or isinstance(right, dict):
        if not (isinstance(left, dict) and isinstance(right, dict)) or left.keys() != right.keys():
            return False
        return all(values_equal(left[key], right[key]) for key in left)
    if isinstance(left, list) or isinstance(right, list):
        if not (isinstance(left, list) and isinstance(right, list)) or len(left) != len(right):
            return False
        return all(values_equal(a, b) for a, b in zip(left, right))
    return left == right


def matches(row: Row, filters: dict[str, Any]) -> bool:
    """True if row.data equals every key/value pair in filters."""
    return all(
        key in row.data and values_equal(row.data[key], value)
        for key, value in filters.items()
    )


def find_row(table: Table, row_id: str) -> Row:
    row = next((r for r in table.rows if r.id == row_id), None)
    if row is None:
        raise RowNotFoundError(
            f"Row {row_id} not found",
            details={"table_id": table.id, "row_id": row_id},
        )
    return row


def insert_row(table: Table, data: dict[str, Any], strict: bool = False) -> Row:
    """Append a row holding a copy of data, with column defaults applied."""
    row_data = apply_defaults(table, copy.deepcopy(data))
    if strict:
        validate_strict(table, row_data)

    now = utc_now()
    row = Row(data=row_data, created_at=now, updated_at=now)
    table.rows.append(row)
    logger.debug("row_inserted", table_id=table.id, row_id=row.id)
    return row


def select_rows(table: Table, filters: dict[str, Any] | None = None) -> list[Row]:
    """Return rows matching every filter, in insertion order."""
    if not filters:
        return list(table.rows)
    return [row for row in table.rows if matches(row, filters)]


def update_row(table: Table, row_id: str, partial: dict[str, Any], strict: bool = False) -> Row:
    """
    Merge partial into the row's data.

    Fields absent from partial are preserved.

    Raises:
        RowNotFoundError: If row_id is not in table
    """
    row = find_row(table, row_id)
    changes = copy.deepcopy(partial)
    if strict:
        validate_strict(table, changes, partial=True)

    row.data = {**row.data, **changes}
    row.updated_at = utc_now()
    logger.debug("row_updated", table_id=table.id, row_id=row_id, fields=sorted(partial))
    return row


def replace_row(table: Table, row_id: str, data: dict[str, Any], strict: bool = False) -> Row:
    """Replace the row's data wholesale."""
    row = find_row(table, row_id)
    new_data = copy.deepcopy(data)
    if strict:
        validate_strict(table, new_data)

    row.data = new_data
    row.updated_at = utc_now()
    logger.debug("row_replaced", table_id=table.id, row_id=row_id)
    return row


def delete_row(table: Table, row_id: str) -> Row:
    """
    Remove a row.

    Raises:
        RowNotFoundError: If row_id is not in table (on every path)
    """
    row = find_row(table, row_id)
    table.rows = [r for r in table.rows if r.id != row_id]
    logger.debug("row_deleted", table_id=table.id, row_id=row_id)
    return row
