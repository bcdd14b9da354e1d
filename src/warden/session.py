"""
Principal Resolver for Warden.

Maps opaque session tokens to principals. A token is created at login,
stored with an expiry, and resolved at the start of every request. The token
format is deliberately meaningless: a random URL-safe string with no user
data in it.

Credential checks are out of scope; login is by email address only.
"""

import logging
import secrets
from datetime import timedelta

from warden.config import Settings
from warden.context import Clock
from warden.schema import Principal, now_utc
from warden.store import WardenDB

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32


class SessionManager:
    """
    Issues, resolves and revokes session tokens.

    Usage:
        sessions = SessionManager(db)
        token = sessions.login("author.eng@example.com")
        principal = sessions.current_principal(token)
    """

    def __init__(
        self,
        db: WardenDB,
        settings: Settings | None = None,
        clock: Clock = now_utc,
    ) -> None:
        self.db = db
        self.settings = settings or Settings()
        self.clock = clock

    def login(self, email: str) -> str | None:
        """
        Open a session for the user with ``email``.

        Returns:
            A new session token, or None if no such user exists
        """
        user = self.db.get_user_by_email(email)
        if user is None:
            logger.info("Login failed for unknown email %s", email)
            return None

        token = secrets.token_urlsafe(TOKEN_BYTES)
        expires_at = self.clock() + timedelta(days=self.settings.session_duration_days)
        self.db.create_session(token, user.id, expires_at)
        logger.info("Opened session for user %s", user.id)
        return token

    def current_principal(self, token: str | None) -> Principal | None:
        """
        Resolve a session token to the principal of the request.

        Returns:
            The principal, or None for a missing, unknown or expired token,
            or a token whose user no longer exists
        """
        if not token:
            return None

        session = self.db.get_session(token)
        if session is None:
            return None

        user_id, expires_at = session
        if expires_at <= self.clock():
            self.db.delete_session(token)
            return None

        user = self.db.get_user(user_id)
        if user is None:
            return None
        return user.to_principal()

    def logout(self, token: str) -> None:
        """Revoke a session token."""
        self.db.delete_session(token)
