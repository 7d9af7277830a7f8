"""Account endpoints: sign-up, sign-in, sign-out and profile changes."""

import structlog
from fastapi import APIRouter, status

from mainwebdb.dependencies import EngineDep, SessionDep
from mainwebdb.models.responses import (
    AuthResponse,
    ErrorResponse,
    PasswordUpdate,
    ProfileUpdate,
    SignInRequest,
    SignUpRequest,
    UserResponse,
)

logger = structlog.get_logger()
router = APIRouter(prefix="/auth", tags=["auth"])


@router.post(
    "/signup",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Create an account",
)
async def sign_up(request: SignUpRequest, engine: EngineDep) -> AuthResponse:
    user, session = engine.identity.sign_up(
        request.email, request.password, request.display_name
    )
    return AuthResponse(user=UserResponse.from_user(user), token=session.token)


@router.post(
    "/signin",
    response_model=AuthResponse,
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Sign in",
)
async def sign_in(request: SignInRequest, engine: EngineDep) -> AuthResponse:
    user, session = engine.identity.sign_in(request.email, request.password)
    return AuthResponse(user=UserResponse.from_user(user), token=session.token)


@router.post(
    "/signout",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Sign out",
    description="Forgets the session token. No other server-side state changes.",
)
async def sign_out(session: SessionDep, engine: EngineDep) -> None:
    engine.identity.sign_out(session)


@router.get("/me", response_model=UserResponse, summary="Current user")
async def get_me(session: SessionDep, engine: EngineDep) -> UserResponse:
    return UserResponse.from_user(engine.identity.current_user(session))


@router.patch("/profile", response_model=UserResponse, summary="Update display name")
async def update_profile(
    request: ProfileUpdate, session: SessionDep, engine: EngineDep
) -> UserResponse:
    user = engine.identity.update_profile(session, request.display_name)
    return UserResponse.from_user(user)


@router.put(
    "/password",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={401: {"model": ErrorResponse}},
    summary="Change password",
)
async def update_password(
    request: PasswordUpdate, session: SessionDep, engine: EngineDep
) -> None:
    engine.identity.update_password(session, request.new_password)
