"""
Pending logins awaiting the provider callback.

Each login attempt stores its PKCE code verifier under the state token sent to
the provider. Entries are single use and short-lived (10 minutes), kept in
memory only.
"""

from __future__ import annotations

import logging
import threading
from datetime import UTC, datetime, timedelta

import msgspec

from oidctodo.config import PENDING_LOGIN_LIFETIME
from oidctodo.errors import CodeVerifierExpired, CodeVerifierMissing

_logger = logging.getLogger(__name__)


class PendingLogin(msgspec.Struct):
    """A login started via /auth/login whose callback has not arrived yet."""

    code_verifier: str
    expires: datetime

    def expired(self, now: datetime) -> bool:
        return self.expires <= now


class PendingLoginStore:
    """State token -> PendingLogin, safe for concurrent requests."""

    def __init__(self):
        self._logins: dict[str, PendingLogin] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._logins)

    def put(
        self, state: str, verifier: str, ttl: timedelta = PENDING_LOGIN_LIFETIME
    ) -> None:
        """Store the verifier for a state, replacing any previous entry."""
        entry = PendingLogin(code_verifier=verifier, expires=datetime.now(UTC) + ttl)
        with self._lock:
            self._logins[state] = entry

    def take(self, state: str) -> str:
        """Consume the entry for state and return its code verifier. Atomic removal.

        Raises CodeVerifierMissing if there is no entry (including replays of an
        already consumed state) and CodeVerifierExpired if it has expired.
        """
        with self._lock:
            entry = self._logins.pop(state, None)
        if entry is None:
            raise CodeVerifierMissing("No pending login for state")
        if entry.expired(datetime.now(UTC)):
            raise CodeVerifierExpired(f"Pending login expired at {entry.expires}")
        return entry.code_verifier

    def sweep(self) -> int:
        """Remove expired entries, returning how many were removed."""
        now = datetime.now(UTC)
        with self._lock:
            stale = [s for s, entry in self._logins.items() if entry.expired(now)]
            for state in stale:
                del self._logins[state]
        if stale:
            _logger.info("Cleaned up %d expired pending logins", len(stale))
        return len(stale)
