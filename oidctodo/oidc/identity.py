"""
Normalized user identity from userinfo responses or token claims.

The same field mapping is used for the login callback and for authenticating
later requests, so an identity looks the same whichever path produced it.
"""

from __future__ import annotations

import logging
from typing import Any

import jwt
import msgspec

from oidctodo.errors import IdentityResolutionFailed
from oidctodo.oidc.discovery import OidcClient

_logger = logging.getLogger(__name__)

UNKNOWN_SUBJECT = "unknown"

# Claim names in order of precedence
SUBJECT_CLAIMS = ("id", "sub", "firebaseId", "email")
NAME_CLAIMS = ("displayName", "name", "username", "preferred_username", "email")


class UserIdentity(msgspec.Struct, omit_defaults=True):
    """Who the caller is. `claims` holds the provider payload as received."""

    sub: str
    email: str | None = None
    name: str | None = None
    claims: dict[str, Any] = {}

    @property
    def authenticated(self) -> bool:
        """False for the minimal identity produced when resolution degraded."""
        return self.sub != UNKNOWN_SUBJECT

    def to_dict(self) -> dict:
        """Flat JSON form: provider claims overlaid with the mapped fields."""
        data = dict(self.claims)
        data["sub"] = self.sub
        if self.email is not None:
            data["email"] = self.email
        if self.name is not None:
            data["name"] = self.name
        return data


def _first(claims: dict, names: tuple[str, ...]):
    for name in names:
        value = claims.get(name)
        if value is not None and value != "":
            return value
    return None


def map_claims(claims: dict) -> UserIdentity:
    """Map a userinfo or token payload to a UserIdentity."""
    sub = _first(claims, SUBJECT_CLAIMS)
    name = _first(claims, NAME_CLAIMS)
    email = claims.get("email")
    return UserIdentity(
        sub=str(sub) if sub is not None else UNKNOWN_SUBJECT,
        email=email if isinstance(email, str) else None,
        name=str(name) if name is not None else None,
        claims=claims,
    )


async def read_claims(
    client: OidcClient,
    token: str,
    *,
    audience: str | None = None,
    verify_exp: bool = False,
) -> dict:
    """Payload of a JWT.

    Signatures are only checked when the client is configured with
    verify_signatures; otherwise the payload is decoded as-is.
    """
    if not client.config.verify_signatures:
        try:
            return jwt.decode(
                token, options={"verify_signature": False, "verify_exp": verify_exp}
            )
        except jwt.PyJWTError as e:
            raise IdentityResolutionFailed(f"Invalid token: {e}") from e

    key = await client.signing_key(token)
    metadata = await client.discover()
    try:
        return jwt.decode(
            token,
            key.key,
            algorithms=[key.algorithm_name],
            audience=audience,
            issuer=metadata.issuer,
            options={"verify_aud": audience is not None},
        )
    except jwt.PyJWTError as e:
        raise IdentityResolutionFailed(f"Token verification failed: {e}") from e


async def resolve_identity(
    client: OidcClient, access_token: str, id_token: str | None = None
) -> UserIdentity:
    """Identity for freshly issued tokens.

    Prefers the userinfo endpoint, falls back to the ID token's claims and
    finally to a minimal identity whose subject is "unknown". Never raises for
    resolution failures; callers must check `authenticated`.
    """
    try:
        return map_claims(await client.fetch_userinfo(access_token))
    except IdentityResolutionFailed as e:
        _logger.info("Userinfo lookup failed, trying ID token: %s", e)

    if id_token:
        try:
            claims = await read_claims(
                client, id_token, audience=client.config.client_id
            )
        except IdentityResolutionFailed as e:
            _logger.warning("ID token decode failed: %s", e)
        else:
            return map_claims(claims)

    _logger.warning("Could not resolve user identity, using minimal identity")
    return UserIdentity(sub=UNKNOWN_SUBJECT)
