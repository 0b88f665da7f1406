"""Authorization code exchange at the provider's token endpoint."""

import httpx
import msgspec

from oidctodo.errors import TokenExchangeFailed
from oidctodo.oidc.discovery import OidcClient


class TokenSet(msgspec.Struct):
    """Token endpoint response. Lives only as long as the callback request."""

    access_token: str
    token_type: str = "Bearer"
    id_token: str | None = None
    expires_in: int | None = None
    scope: str | None = None


class _TokenError(msgspec.Struct):
    error: str | None = None
    error_description: str | None = None


def _provider_error(resp: httpx.Response) -> _TokenError:
    try:
        return msgspec.json.decode(resp.content, type=_TokenError)
    except msgspec.DecodeError:
        return _TokenError()


async def exchange_code(
    client: OidcClient,
    code: str,
    code_verifier: str,
    *,
    iss: str | None = None,
) -> TokenSet:
    """Exchange an authorization code for tokens, bound to the PKCE verifier.

    The state is not checked here: the verifier can only be obtained by taking
    the pending login stored under the callback's state, which binds the two.
    An `iss` echoed by the provider (RFC 9207) must match the discovered issuer.
    The redirect_uri sent is the configured one, identical to the login request.
    """
    metadata = await client.discover()
    if iss is not None and metadata.issuer and iss != metadata.issuer:
        raise TokenExchangeFailed(
            f"Issuer mismatch: {iss} != {metadata.issuer}", error="invalid_issuer"
        )
    endpoint = await client.token_endpoint()
    config = client.config
    try:
        resp = await client.http.post(
            endpoint,
            data={
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": config.redirect_uri,
                "code_verifier": code_verifier,
                "client_id": config.client_id,
                "client_secret": config.client_secret,
            },
            headers={"Accept": "application/json"},
        )
    except httpx.HTTPError as e:
        raise TokenExchangeFailed(f"Token endpoint unavailable: {e}") from e
    if not resp.is_success:
        err = _provider_error(resp)
        raise TokenExchangeFailed(
            f"Token endpoint returned {resp.status_code}",
            error=err.error,
            description=err.error_description,
        )
    try:
        return msgspec.json.decode(resp.content, type=TokenSet, strict=False)
    except msgspec.DecodeError as e:
        raise TokenExchangeFailed(f"Malformed token response: {e}") from e
