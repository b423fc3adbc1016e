from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Any

from scheduling_gateway.errors import UnauthenticatedError

DEFAULT_EXPIRES_IN_SECONDS = 300

NOT_AUTHENTICATED_MESSAGE = 'Not authenticated. Please authenticate first.'


@dataclass(frozen=True)
class AuthSession:
    """An access token and the instant it stops being usable."""

    access_token: str
    expires_at: datetime
    token_type: str = 'Bearer'
    scope: str = ''

    @classmethod
    def from_token_response(cls, data: dict[str, Any], now: datetime | None = None) -> 'AuthSession':
        now = now or datetime.now(timezone.utc)
        try:
            expires_in = int(data.get('expires_in') or DEFAULT_EXPIRES_IN_SECONDS)
        except (TypeError, ValueError):
            expires_in = DEFAULT_EXPIRES_IN_SECONDS
        return cls(
            access_token=data['access_token'],
            expires_at=now + timedelta(seconds=expires_in),
            token_type=data.get('token_type') or 'Bearer',
            scope=data.get('scope') or '',
        )

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or datetime.now(timezone.utc)) >= self.expires_at


class TokenStore:
    """Holds the one session set by the most recent successful authentication."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._session: AuthSession | None = None

    @property
    def session(self) -> AuthSession | None:
        return self._session

    @property
    def is_authenticated(self) -> bool:
        session = self._session
        return session is not None and not session.is_expired()

    def set(self, session: AuthSession) -> None:
        with self._lock:
            self._session = session

    def clear(self) -> None:
        with self._lock:
            self._session = None

    def require_token(self) -> str:
        session = self._session
        if session is None:
            raise UnauthenticatedError(NOT_AUTHENTICATED_MESSAGE)
        if session.is_expired():
            self.clear()
            raise UnauthenticatedError('Access token expired. Please authenticate again.')
        return session.access_token
