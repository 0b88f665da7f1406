"""
Provider metadata and the HTTP client used for every call to the provider.

Discovery runs lazily on first use and the result is shared by all requests.
Providers that do not publish a userinfo_endpoint are tried against a fixed list
of conventional paths.
"""

import asyncio
import logging
import time
from urllib.parse import urlsplit

import httpx
import jwt
import msgspec

from oidctodo.config import OidcConfig
from oidctodo.errors import DiscoveryFailed, IdentityResolutionFailed

_logger = logging.getLogger(__name__)

# Tried in this order on the issuer origin, first success wins
USERINFO_PATHS = (
    "/userinfo",
    "/api/userinfo",
    "/oauth/userinfo",
    "/api/v1/userinfo",
    "/connect/userinfo",
)

CANDIDATE_TIMEOUT = httpx.Timeout(5.0)


class DiscoveryMetadata(msgspec.Struct, omit_defaults=True):
    """The parts of .well-known/openid-configuration this client uses."""

    issuer: str | None = None
    authorization_endpoint: str | None = None
    token_endpoint: str | None = None
    userinfo_endpoint: str | None = None
    jwks_uri: str | None = None


class OidcClient:
    """Shared connection to the configured provider.

    Constructed once per process (see oidctodo.globals) and handed to the
    login flow and the request authenticator.
    """

    def __init__(
        self,
        config: OidcConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config
        self.http = httpx.AsyncClient(
            timeout=httpx.Timeout(config.http_timeout, connect=5.0),
            transport=transport,
        )
        self._metadata: DiscoveryMetadata | None = None
        self._fetched_at = 0.0
        self._lock = asyncio.Lock()
        self._found_userinfo: str | None = None
        self._jwks: jwt.PyJWKSet | None = None

    async def aclose(self) -> None:
        await self.http.aclose()

    @property
    def discovery_url(self) -> str:
        return f"{self.config.issuer}/.well-known/openid-configuration"

    @property
    def issuer_origin(self) -> str:
        parts = urlsplit(self.config.issuer)
        return f"{parts.scheme}://{parts.netloc}"

    def _cached(self) -> DiscoveryMetadata | None:
        if self._metadata is None:
            return None
        ttl = self.config.discovery_ttl
        if ttl is not None and time.monotonic() - self._fetched_at > ttl:
            return None
        return self._metadata

    async def discover(self) -> DiscoveryMetadata:
        """Return provider metadata, fetching it on first use.

        A failed fetch yields empty metadata and is retried on the next call.
        """
        if cached := self._cached():
            return cached
        async with self._lock:
            # Another request may have completed discovery while we waited
            if cached := self._cached():
                return cached
            metadata = await self._fetch_metadata()
            if metadata is None:
                return DiscoveryMetadata()
            self._metadata = metadata
            self._fetched_at = time.monotonic()
            _logger.info("OIDC discovery completed for %s", self.config.issuer)
            return metadata

    async def _fetch_metadata(self) -> DiscoveryMetadata | None:
        try:
            resp = await self.http.get(self.discovery_url)
        except httpx.HTTPError as e:
            _logger.warning("OIDC discovery failed: %s: %s", self.discovery_url, e)
            return None
        if not resp.is_success:
            _logger.warning(
                "OIDC discovery %s returned %d", self.discovery_url, resp.status_code
            )
            return None
        try:
            return msgspec.json.decode(resp.content, type=DiscoveryMetadata)
        except msgspec.DecodeError as e:
            _logger.warning("OIDC discovery returned invalid metadata: %s", e)
            return None

    async def authorization_endpoint(self) -> str:
        metadata = await self.discover()
        if not metadata.authorization_endpoint:
            raise DiscoveryFailed("Provider metadata has no authorization_endpoint")
        return metadata.authorization_endpoint

    async def token_endpoint(self) -> str:
        metadata = await self.discover()
        if not metadata.token_endpoint:
            raise DiscoveryFailed("Provider metadata has no token_endpoint")
        return metadata.token_endpoint

    @staticmethod
    def _bearer(access_token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
        }

    async def resolve_userinfo_endpoint(self, access_token: str) -> str | None:
        """Userinfo URL from discovery, else the first conventional path answering."""
        metadata = await self.discover()
        if metadata.userinfo_endpoint:
            return metadata.userinfo_endpoint
        if self._found_userinfo:
            return self._found_userinfo
        for path in USERINFO_PATHS:
            url = f"{self.issuer_origin}{path}"
            try:
                resp = await self.http.get(
                    url, headers=self._bearer(access_token), timeout=CANDIDATE_TIMEOUT
                )
            except httpx.HTTPError as e:
                _logger.debug("Userinfo candidate %s failed: %s", url, e)
                continue
            if resp.is_success:
                _logger.info("Found userinfo endpoint by probing: %s", url)
                self._found_userinfo = url
                return url
            _logger.debug("Userinfo candidate %s returned %d", url, resp.status_code)
        return None

    async def fetch_userinfo(self, access_token: str) -> dict:
        """Claims from the userinfo endpoint for the given access token."""
        endpoint = await self.resolve_userinfo_endpoint(access_token)
        if not endpoint:
            raise IdentityResolutionFailed("Userinfo endpoint not found")
        try:
            resp = await self.http.get(endpoint, headers=self._bearer(access_token))
        except httpx.HTTPError as e:
            raise IdentityResolutionFailed(f"Userinfo request failed: {e}") from e
        if not resp.is_success:
            raise IdentityResolutionFailed(
                f"Userinfo request failed: {resp.status_code} {resp.text[:200]}"
            )
        try:
            data = msgspec.json.decode(resp.content)
        except msgspec.DecodeError as e:
            raise IdentityResolutionFailed("Userinfo response is not JSON") from e
        if not isinstance(data, dict):
            raise IdentityResolutionFailed("Userinfo response is not an object")
        return data

    async def signing_key(self, token: str) -> jwt.PyJWK:
        """Provider key matching the token's kid, from the discovered JWKS."""
        try:
            kid = jwt.get_unverified_header(token).get("kid")
        except jwt.PyJWTError as e:
            raise IdentityResolutionFailed(f"Malformed token: {e}") from e
        keys = await self._key_set()
        for key in keys.keys:
            if kid is None or key.key_id == kid:
                return key
        raise IdentityResolutionFailed(f"No provider key matches kid {kid}")

    async def _key_set(self) -> jwt.PyJWKSet:
        if self._jwks is not None:
            return self._jwks
        metadata = await self.discover()
        if not metadata.jwks_uri:
            raise IdentityResolutionFailed("Provider metadata has no jwks_uri")
        try:
            resp = await self.http.get(metadata.jwks_uri)
            resp.raise_for_status()
            self._jwks = jwt.PyJWKSet.from_dict(msgspec.json.decode(resp.content))
        except (httpx.HTTPError, msgspec.DecodeError, jwt.PyJWTError) as e:
            raise IdentityResolutionFailed(f"Failed to fetch JWKS: {e}") from e
        return self._jwks
