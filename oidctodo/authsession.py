"""
Server-side sessions and request authentication.

This module is independent of any web framework:
- Session records remembering the identity resolved at login
- Resolving the caller of a request from its access token
"""

from __future__ import annotations

import logging
import threading
from datetime import UTC, datetime

import msgspec

from oidctodo.config import SESSION_LIFETIME
from oidctodo.errors import IdentityResolutionFailed, Unauthenticated
from oidctodo.oidc.discovery import OidcClient
from oidctodo.oidc.identity import UserIdentity, map_claims, read_claims
from oidctodo.util.crypto import hash_secret

_logger = logging.getLogger(__name__)

EXPIRES = SESSION_LIFETIME


def expires() -> datetime:
    return datetime.now(UTC) + EXPIRES


def session_key(token: str) -> str:
    """Store key for an access token; the token itself is never kept."""
    return hash_secret("session", token)


class Session(msgspec.Struct):
    identity: UserIdentity
    expiry: datetime


class SessionStore:
    """Identities of logged in users keyed by their access token."""

    def __init__(self):
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self, token: str, identity: UserIdentity) -> None:
        session = Session(identity=identity, expiry=expires())
        with self._lock:
            self._sessions[session_key(token)] = session

    def get(self, token: str) -> Session | None:
        key = session_key(token)
        with self._lock:
            session = self._sessions.get(key)
            if session and session.expiry <= datetime.now(UTC):
                del self._sessions[key]
                return None
        return session

    def delete(self, token: str) -> None:
        with self._lock:
            self._sessions.pop(session_key(token), None)

    def cleanup(self) -> int:
        """Remove expired sessions, returning how many were removed."""
        now = datetime.now(UTC)
        with self._lock:
            stale = [k for k, s in self._sessions.items() if s.expiry <= now]
            for k in stale:
                del self._sessions[k]
        return len(stale)


async def authenticate(
    token: str | None, client: OidcClient, sessions: SessionStore
) -> UserIdentity:
    """Identify the caller holding `token`.

    Tries the server-side session first, then the token's own claims when it
    is a JWT carrying a subject, and finally the provider's userinfo endpoint.
    Raises Unauthenticated if none of these yields a known subject.
    """
    if not token:
        raise Unauthenticated("Access token required")

    session = sessions.get(token)
    if session and session.identity.authenticated:
        return session.identity

    identity = None
    try:
        claims = await read_claims(client, token, verify_exp=True)
    except IdentityResolutionFailed:
        claims = None  # Opaque token or failed verification
    if claims and claims.get("sub"):
        identity = map_claims(claims)
    else:
        try:
            identity = map_claims(await client.fetch_userinfo(token))
        except IdentityResolutionFailed as e:
            _logger.info("Token validation via userinfo failed: %s", e)
            raise Unauthenticated("Invalid token") from e

    if not identity.authenticated:
        raise Unauthenticated("Invalid token")
    return identity
