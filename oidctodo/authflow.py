"""
Login callback processing.

Turns the provider's redirect back to /auth/callback into a redirect to the
frontend: either the post-login landing route with a fresh access token, or
the login route with a short error code.
"""

import logging
from collections.abc import Mapping

import msgspec

from oidctodo.authsession import SessionStore
from oidctodo.errors import AuthFlowError, StateMissing, TokenExchangeFailed
from oidctodo.oidc.discovery import OidcClient
from oidctodo.oidc.identity import UserIdentity, resolve_identity
from oidctodo.oidc.token import exchange_code
from oidctodo.pending import PendingLoginStore

_logger = logging.getLogger(__name__)

# Frontend routes
LANDING_PATH = "/callback"  # After a successful login
PROTECTED_PATH = "/protected"  # Callback revisited while logged in
NEUTRAL_PATH = "/"  # Callback without a code; the frontend decides
LOGIN_PATH = "/login"


class CallbackResult(msgspec.Struct):
    """Where to send the browser, and the token to set as cookie on success."""

    redirect: str
    token: str | None = None
    identity: UserIdentity | None = None


async def handle_callback(
    params: Mapping[str, str],
    *,
    client: OidcClient,
    pending: PendingLoginStore,
    sessions: SessionStore,
    session_token: str | None = None,
) -> CallbackResult:
    """Process callback query parameters. Never raises for flow failures."""
    config = client.config
    code = params.get("code")
    state = params.get("state")

    if not code:
        if params.get("error"):
            _logger.warning(
                "Provider returned error: %s %s",
                params.get("error"),
                params.get("error_description", ""),
            )
            return CallbackResult(
                config.frontend(f"{LOGIN_PATH}?error=authentication_failed")
            )
        if session_token and sessions.get(session_token):
            return CallbackResult(config.frontend(PROTECTED_PATH))
        return CallbackResult(config.frontend(NEUTRAL_PATH))

    try:
        if not state:
            raise StateMissing("State parameter missing from callback")
        verifier = pending.take(state)
        tokens = await exchange_code(client, code, verifier, iss=params.get("iss"))
        identity = await resolve_identity(client, tokens.access_token, tokens.id_token)
    except AuthFlowError as e:
        if isinstance(e, TokenExchangeFailed) and e.error:
            _logger.warning(
                "Login callback failed (%s): %s [%s: %s]",
                e.code,
                e,
                e.error,
                e.description or "",
            )
        else:
            _logger.warning("Login callback failed (%s): %s", e.code, e)
        return CallbackResult(config.frontend(f"{LOGIN_PATH}?error={e.code}"))
    except Exception:
        _logger.exception("Unexpected error handling login callback")
        return CallbackResult(
            config.frontend(f"{LOGIN_PATH}?error=authentication_failed")
        )

    if identity.authenticated:
        sessions.create(tokens.access_token, identity)
    _logger.info("User logged in: %s", identity.sub)
    return CallbackResult(
        config.frontend(LANDING_PATH), token=tokens.access_token, identity=identity
    )
