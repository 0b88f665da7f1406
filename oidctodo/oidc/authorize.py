"""Authorization request URL construction and login initiation."""

import logging
from urllib.parse import urlencode

from oidctodo.config import OidcConfig
from oidctodo.oidc import pkce
from oidctodo.oidc.discovery import OidcClient
from oidctodo.pending import PendingLoginStore

_logger = logging.getLogger(__name__)


def build_login_url(
    config: OidcConfig, authorization_endpoint: str, challenge: str, state: str
) -> str:
    """Provider authorization URL for an authorization code + PKCE login."""
    params = {
        "response_type": "code",
        "client_id": config.client_id,
        "redirect_uri": config.redirect_uri,
        "scope": config.scope,
        "code_challenge": challenge,
        "code_challenge_method": "S256",
        "state": state,
    }
    separator = "&" if "?" in authorization_endpoint else "?"
    return f"{authorization_endpoint}{separator}{urlencode(params)}"


async def begin_login(client: OidcClient, pending: PendingLoginStore) -> str:
    """Start a login: remember a fresh verifier under a new state, return the URL.

    The caller navigates to the URL itself; nothing is redirected here.
    Raises DiscoveryFailed when the provider's authorization endpoint is unknown.
    """
    endpoint = await client.authorization_endpoint()
    verifier = pkce.generate_code_verifier()
    state = pkce.generate_state()
    url = build_login_url(
        client.config, endpoint, pkce.derive_code_challenge(verifier), state
    )
    pending.put(state, verifier)
    _logger.debug("Login started, %d pending", len(pending))
    return url
