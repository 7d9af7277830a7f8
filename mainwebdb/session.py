"""Explicit session handling.

A Session is a value passed into every user-scoped operation. The current
session pointer (the active user's id) is persisted outside the document
graph under settings.session_key; bearer tokens issued to HTTP clients are
kept in a token map under settings.session_tokens_key.
"""

import json
import secrets
from dataclasses import dataclass

import structlog

from mainwebdb.config import settings
from mainwebdb.errors import NotAuthenticatedError
from mainwebdb.models.documents import DocumentGraph
from mainwebdb.storage import DocumentStore

logger = structlog.get_logger()


@dataclass(frozen=True)
class Session:
    """An authenticated or anonymous session."""

    user_id: str | None = None
    token: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    def require_user(self) -> str:
        if self.user_id is None:
            raise NotAuthenticatedError("Not logged in")
        return self.user_id


ANONYMOUS = Session()


class SessionManager:
    """Issues, resolves and clears sessions backed by the document store."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    def _tokens(self) -> dict[str, str]:
        raw = self.store.get_item(settings.session_tokens_key)
        if not raw:
            return {}
        try:
            tokens = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("session_tokens_malformed")
            return {}
        return tokens if isinstance(tokens, dict) else {}

    def establish(self, user_id: str) -> Session:
        """Start a session for user_id and make it the current session."""
        token = secrets.token_urlsafe(32)
        tokens = self._tokens()
        tokens[token] = user_id
        # Oldest tokens first; drop this user's surplus beyond the cap
        owned = [t for t, owner in tokens.items() if owner == user_id]
        for stale in owned[: -settings.max_sessions_per_user]:
            del tokens[stale]
        self.store.set_item(settings.session_tokens_key, json.dumps(tokens))
        self.store.set_item(settings.session_key, json.dumps({"user_id": user_id, "token": token}))
        logger.info("session_established", user_id=user_id)
        return Session(user_id=user_id, token=token)

    def resolve(self, token: str) -> Session:
        """
        Resolve a bearer token to its session.

        Raises:
            NotAuthenticatedError: If the token is unknown
        """
        user_id = self._tokens().get(token)
        if user_id is None:
            raise NotAuthenticatedError("Invalid or expired session token")
        return Session(user_id=user_id, token=token)

    def restore(self, graph: DocumentGraph) -> Session:
        """
        Return the persisted current session.

        The session is anonymous unless the pointer resolves to an existing
        user in graph.
        """
        raw = self.store.get_item(settings.session_key)
        if not raw:
            return ANONYMOUS
        try:
            pointer = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("session_pointer_malformed")
            return ANONYMOUS
        if not isinstance(pointer, dict):
            return ANONYMOUS

        user_id = pointer.get("user_id")
        if user_id is None or graph.find_user(user_id) is None:
            logger.debug("session_pointer_stale", user_id=user_id)
            return ANONYMOUS
        return Session(user_id=user_id, token=pointer.get("token"))

    def clear(self, session: Session) -> None:
        """Forget the session token and clear the current pointer."""
        if session.token:
            tokens = self._tokens()
            if tokens.pop(session.token, None) is not None:
                self.store.set_item(settings.session_tokens_key, json.dumps(tokens))
        self.store.remove_item(settings.session_key)
        logger.info("session_cleared", user_id=session.user_id)
