"""API key provisioning and resolution.

Each database gets exactly one active key when it is created; owners can add
more, deactivate them or delete them. A key only authorizes operations
against the database it is bound to.
"""

import structlog

from mainwebdb.auth import generate_api_key, get_key_prefix
from mainwebdb.errors import ApiKeyNotFoundError, InvalidKeyError, KeyCollisionError
from mainwebdb.models.documents import ApiKey, DocumentGraph, utc_now

logger = structlog.get_logger()

DEFAULT_KEY_NAME = "Default Key"


def provision_key(
    graph: DocumentGraph, user_id: str, database_id: str, name: str = DEFAULT_KEY_NAME
) -> ApiKey:
    """
    Append a new active key bound to database_id.

    Raises:
        KeyCollisionError: If the generated value already exists
    """
    key_value = generate_api_key()
    if any(k.key_value == key_value for k in graph.api_keys):
        logger.error("api_key_collision", key_prefix=get_key_prefix(key_value))
        raise KeyCollisionError("Generated API key collides with an existing key")

    api_key = ApiKey(
        user_id=user_id,
        database_id=database_id,
        key_value=key_value,
        name=name,
    )
    graph.api_keys.append(api_key)
    logger.info(
        "api_key_provisioned",
        key_id=api_key.id,
        database_id=database_id,
        key_prefix=get_key_prefix(key_value),
    )
    return api_key


def resolve_key(graph: DocumentGraph, key_value: str) -> ApiKey:
    """
    Resolve a presented key to its record and stamp last_used_at.

    Raises:
        InvalidKeyError: If no key matches or the key is inactive
    """
    api_key = next((k for k in graph.api_keys if k.key_value == key_value), None)
    if api_key is None:
        logger.warning("api_key_not_found", key_prefix=get_key_prefix(key_value))
        raise InvalidKeyError("Invalid or inactive API key")
    if not api_key.is_active:
        logger.warning("api_key_inactive", key_id=api_key.id)
        raise InvalidKeyError("Invalid or inactive API key")

    api_key.last_used_at = utc_now()
    return api_key


def find_key(graph: DocumentGraph, database_id: str, key_id: str) -> ApiKey:
    api_key = next(
        (k for k in graph.api_keys if k.id == key_id and k.database_id == database_id),
        None,
    )
    if api_key is None:
        raise ApiKeyNotFoundError(
            f"API key {key_id} not found in database {database_id}",
            details={"database_id": database_id, "key_id": key_id},
        )
    return api_key


def remove_database_keys(graph: DocumentGraph, database_id: str) -> int:
    """Drop every key bound to database_id. Returns the number removed."""
    before = len(graph.api_keys)
    graph.api_keys = [k for k in graph.api_keys if k.database_id != database_id]
    return before - len(graph.api_keys)
