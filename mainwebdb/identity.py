"""User accounts: sign-up, sign-in, profile and password changes."""

import structlog

from mainwebdb.auth import hash_password, verify_password
from mainwebdb.errors import (
    DuplicateEmailError,
    InvalidCredentialError,
    MissingFieldsError,
    NotAuthenticatedError,
    UserNotFoundError,
)
from mainwebdb.models.documents import DocumentGraph, User
from mainwebdb.session import Session, SessionManager
from mainwebdb.storage import DocumentStore

logger = structlog.get_logger()


def _session_user(graph: DocumentGraph, session: Session) -> User:
    user_id = session.require_user()
    user = graph.find_user(user_id)
    if user is None:
        raise NotAuthenticatedError("Session user no longer exists")
    return user


class IdentityService:
    """User records and credential checks."""

    def __init__(self, store: DocumentStore, sessions: SessionManager) -> None:
        self.store = store
        self.sessions = sessions

    def sign_up(
        self, email: str, password: str, display_name: str | None = None
    ) -> tuple[User, Session]:
        """
        Create an account and start a session for it.

        The display name defaults to the local part of the email.

        Raises:
            MissingFieldsError: If email is blank
            DuplicateEmailError: If a user with this exact email exists
        """
        if not email or not email.strip():
            raise MissingFieldsError("Email is required", details={"fields": ["email"]})

        with self.store.transaction() as graph:
            if graph.find_user_by_email(email) is not None:
                logger.warning("sign_up_duplicate_email")
                raise DuplicateEmailError("An account with this email already exists.")

            user = User(
                email=email,
                password=hash_password(password),
                display_name=display_name or email.split("@")[0],
            )
            graph.users.append(user)

        logger.info("user_signed_up", user_id=user.id)
        return user, self.sessions.establish(user.id)

    def sign_in(self, email: str, password: str) -> tuple[User, Session]:
        """
        Check credentials and start a session.

        Raises:
            UserNotFoundError: If no user has this email
            InvalidCredentialError: If the password does not match
        """
        graph = self.store.load()
        user = graph.find_user_by_email(email)
        if user is None:
            raise UserNotFoundError("No account found with this email.")
        if not verify_password(password, user.password):
            logger.warning("sign_in_invalid_password", user_id=user.id)
            raise InvalidCredentialError("Invalid password.")

        logger.info("user_signed_in", user_id=user.id)
        return user, self.sessions.establish(user.id)

    def sign_out(self, session: Session) -> None:
        self.sessions.clear(session)

    def current_user(self, session: Session) -> User:
        return _session_user(self.store.load(), session)

    def update_profile(self, session: Session, display_name: str) -> User:
        """Rewrite the display name of the session's user."""
        with self.store.transaction() as graph:
            user = _session_user(graph, session)
            user.display_name = display_name

        logger.info("user_profile_updated", user_id=user.id)
        return user

    def update_password(self, session: Session, new_password: str) -> None:
        """
        Replace the session user's password.

        Raises:
            NotAuthenticatedError: If the session is anonymous
        """
        with self.store.transaction() as graph:
            user = _session_user(graph, session)
            user.password = hash_password(new_password)

        logger.info("user_password_updated", user_id=user.id)
