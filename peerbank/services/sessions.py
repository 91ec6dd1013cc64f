"""In-memory login sessions mapping bearer tokens to user ids."""

import secrets
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, NamedTuple


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _Grant(NamedTuple):
    user_id: int
    expires_at: datetime


class SessionManager:
    """
    Issue and check login tokens.

    Expiry slides forward on every successful lookup. Expired grants are
    swept whenever a new token is issued, so tokens that are never presented
    again do not pile up.
    """

    def __init__(self, ttl: timedelta = timedelta(hours=1), clock: Callable[[], datetime] = _utcnow):
        self._ttl = ttl
        self._clock = clock
        self._grants: dict[str, _Grant] = {}
        self._lock = threading.Lock()

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def __len__(self) -> int:
        with self._lock:
            return len(self._grants)

    def issue(self, user_id: int) -> str:
        token = secrets.token_urlsafe(32)
        now = self._clock()
        with self._lock:
            self._sweep(now)
            self._grants[token] = _Grant(user_id, now + self._ttl)
        return token

    def lookup(self, token: str) -> int | None:
        """Return the user id behind a live token, or None."""
        now = self._clock()
        with self._lock:
            grant = self._grants.get(token)
            if grant is None:
                return None
            if grant.expires_at <= now:
                del self._grants[token]
                return None
            self._grants[token] = grant._replace(expires_at=now + self._ttl)
            return grant.user_id

    def revoke(self, token: str) -> None:
        with self._lock:
            self._grants.pop(token, None)

    def _sweep(self, now: datetime) -> None:
        expired = [token for token, grant in self._grants.items() if grant.expires_at <= now]
        for token in expired:
            del self._grants[token]
