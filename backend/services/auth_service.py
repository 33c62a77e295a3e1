"""Staff token authentication for venue configuration endpoints."""

from __future__ import annotations

import secrets
from threading import RLock
from typing import Optional

from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


class AuthenticationError(Exception):
    """Base authentication failure."""


class AdminTokenNotConfiguredError(AuthenticationError):
    """Raised when ADMIN_TOKEN is missing."""


class InvalidAdminTokenError(AuthenticationError):
    """Raised when provided token is invalid."""


class AuthService:
    """Exchanges the configured admin token for a session bearer token.

    When ADMIN_TOKEN is unset the venue runs open and every check passes.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._session_tokens: set[str] = set()
        self._lock = RLock()

    @property
    def auth_enabled(self) -> bool:
        return bool(self._settings.admin_token)

    def _expected_token(self) -> str:
        if not self._settings.admin_token:
            raise AdminTokenNotConfiguredError(
                "ADMIN_TOKEN is not configured. Set ADMIN_TOKEN in environment variables."
            )
        return self._settings.admin_token

    def login(self, provided_admin_token: str) -> str:
        expected = self._expected_token()
        if not secrets.compare_digest(provided_admin_token, expected):
            logger.warning("Staff login rejected")
            raise InvalidAdminTokenError("Invalid admin token")
        session_token = secrets.token_urlsafe(32)
        with self._lock:
            self._session_tokens.add(session_token)
        logger.info("Staff session opened | active_sessions=%s", len(self._session_tokens))
        return session_token

    def logout(self, bearer_token: str) -> None:
        with self._lock:
            self._session_tokens.discard(bearer_token)
            remaining = len(self._session_tokens)
        logger.info("Staff session closed | active_sessions=%s", remaining)

    def validate_bearer_token(self, bearer_token: str) -> None:
        if not self.auth_enabled:
            return
        with self._lock:
            active = any(
                secrets.compare_digest(bearer_token, token)
                for token in self._session_tokens
            )
        if not active:
            raise InvalidAdminTokenError("Invalid bearer token. Login first.")
