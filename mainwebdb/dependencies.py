"""FastAPI dependencies for authentication and authorization.

Two kinds of credentials reach the HTTP API:

1. Session token (Bearer) - issued by /auth/signup and /auth/signin, scopes
   management routes to the signed-in user's own records
2. ADMIN_API_KEY (from ENV, Bearer) - guards whole-store snapshot routes

Database API keys are not bearer credentials: they travel inside the query
envelope posted to the gateway endpoint.

Usage in routers:
    @router.get("/databases")
    async def list_databases(session: Annotated[Session, Depends(get_session)]):
        ...

    @router.get("/snapshot/export", dependencies=[Depends(require_admin)])
    async def export_snapshot():
        ...
"""

import secrets
from typing import Annotated

import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from mainwebdb.auth import get_key_prefix
from mainwebdb.config import settings
from mainwebdb.engine import WebDB, get_webdb
from mainwebdb.session import Session

logger = structlog.get_logger(__name__)

# Security scheme for Swagger UI
security = HTTPBearer(
    scheme_name="Bearer Auth",
    description="Enter your session token (or ADMIN_API_KEY for snapshot routes)",
    auto_error=False,
)


class AuthenticationError(HTTPException):
    """Raised when authentication fails."""

    def __init__(self, detail: str = "Invalid or missing credentials"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "unauthorized", "message": detail},
            headers={"WWW-Authenticate": "Bearer"},
        )


def get_engine() -> WebDB:
    return get_webdb()


def get_bearer_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> str:
    """
    Extract the bearer token from the Authorization header.

    Raises:
        AuthenticationError: If the header is missing or empty
    """
    if not credentials or not credentials.credentials:
        logger.warning("auth_missing_credentials")
        raise AuthenticationError("Missing or invalid credentials")

    return credentials.credentials


async def get_session(
    token: Annotated[str, Depends(get_bearer_token)],
    engine: Annotated[WebDB, Depends(get_engine)],
) -> Session:
    """
    Resolve the bearer token to the caller's session.

    Unknown tokens surface as NotAuthenticatedError (401).
    """
    return engine.sessions.resolve(token)


def verify_admin_key(api_key: str) -> bool:
    if not settings.admin_api_key:
        logger.warning("auth_admin_key_not_configured")
        return False
    return secrets.compare_digest(api_key, settings.admin_api_key)


async def require_admin(
    api_key: Annotated[str, Depends(get_bearer_token)],
) -> str:
    """
    Dependency that requires admin-level access.

    Use this for whole-store operations:
    - GET /snapshot/export
    - POST /snapshot/import
    - DELETE /snapshot

    Raises:
        AuthenticationError: If the key is not the admin key
    """
    if verify_admin_key(api_key):
        logger.info("auth_admin_access_granted")
        return api_key

    if not settings.admin_api_key:
        logger.error("auth_admin_key_not_configured")
        raise AuthenticationError("Admin API key not configured on server")

    logger.warning("auth_admin_access_denied", key_prefix=get_key_prefix(api_key))
    raise AuthenticationError("Invalid admin API key")


SessionDep = Annotated[Session, Depends(get_session)]
EngineDep = Annotated[WebDB, Depends(get_engine)]
