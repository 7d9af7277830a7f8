"""API key management endpoints.

Provides API for managing database API keys:
- List all keys of a database
- Create additional keys
- Activate / deactivate keys
- Delete keys
"""

import structlog
from fastapi import APIRouter, status

from mainwebdb.dependencies import EngineDep, SessionDep
from mainwebdb.models.documents import ApiKey
from mainwebdb.models.responses import (
    ApiKeyCreate,
    ApiKeyListResponse,
    ApiKeyUpdate,
    ErrorResponse,
)

logger = structlog.get_logger()
router = APIRouter(prefix="/databases/{database_id}/api-keys", tags=["api-keys"])


@router.get(
    "",
    response_model=ApiKeyListResponse,
    responses={404: {"model": ErrorResponse}},
    summary="List API keys",
)
async def list_api_keys(
    database_id: str, session: SessionDep, engine: EngineDep
) -> ApiKeyListResponse:
    keys = engine.list_keys(session, database_id)
    return ApiKeyListResponse(api_keys=keys, total=len(keys))


@router.post(
    "",
    response_model=ApiKey,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Create API key",
)
async def create_api_key(
    database_id: str, request: ApiKeyCreate, session: SessionDep, engine: EngineDep
) -> ApiKey:
    api_key = engine.create_key(session, database_id, request.name)
    logger.info("api_key_created", database_id=database_id, key_id=api_key.id)
    return api_key


@router.patch(
    "/{key_id}",
    response_model=ApiKey,
    responses={404: {"model": ErrorResponse}},
    summary="Activate or deactivate API key",
    description="Inactive keys are rejected by the query endpoint with 401.",
)
async def update_api_key(
    database_id: str, key_id: str, request: ApiKeyUpdate, session: SessionDep, engine: EngineDep
) -> ApiKey:
    return engine.set_key_active(session, database_id, key_id, request.is_active)


@router.delete(
    "/{key_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
    summary="Delete API key",
)
async def delete_api_key(
    database_id: str, key_id: str, session: SessionDep, engine: EngineDep
) -> None:
    engine.delete_key(session, database_id, key_id)
