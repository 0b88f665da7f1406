"""Configuration for the OIDC client and shared lifetime constants."""

import os
from collections.abc import Mapping
from datetime import timedelta
from functools import lru_cache

import msgspec

# Shared configuration constants for session management.
SESSION_LIFETIME = timedelta(days=7)

# Time allowed between /auth/login and the provider redirecting back
PENDING_LOGIN_LIFETIME = timedelta(minutes=10)

# How often abandoned logins and expired sessions are swept
SWEEP_INTERVAL = timedelta(minutes=10)

DEFAULT_PORT = 3000
DEFAULT_SCOPE = "openid profile email"

# Environment variable used to hand the config to uvicorn workers
CONFIG_ENV = "OIDCTODO_CONFIG"


class OidcConfig(msgspec.Struct, kw_only=True):
    """Settings for the single OIDC provider this server logs in against.

    redirect_uri must match the URI registered with the provider exactly,
    scheme, host, port and path included, or the token exchange is refused.
    """

    issuer: str
    client_id: str
    client_secret: str
    redirect_uri: str
    frontend_url: str
    scope: str = DEFAULT_SCOPE
    cookie_secure: bool = False
    cookie_domain: str | None = None
    verify_signatures: bool = False  # Verify ID token / JWT signatures via JWKS
    discovery_ttl: float | None = None  # Seconds; None caches for process lifetime
    http_timeout: float = 10.0

    def __post_init__(self):
        if not self.issuer:
            raise ValueError("OIDC issuer is required")
        if not self.client_id:
            raise ValueError("OIDC client id is required")
        self.issuer = self.issuer.rstrip("/")
        self.frontend_url = self.frontend_url.rstrip("/")

    def frontend(self, path: str) -> str:
        """Absolute frontend URL for a route such as /login."""
        return f"{self.frontend_url}{path}"


def _flag(value: str | None) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


def from_env(environ: Mapping[str, str] | None = None) -> OidcConfig:
    """Build the configuration from OIDC_* and related environment variables."""
    env = os.environ if environ is None else environ
    port = env.get("PORT") or str(DEFAULT_PORT)
    # The provider redirects to the backend, which then redirects to the frontend
    redirect_uri = env.get("OIDC_REDIRECT_URI") or (
        f"http://localhost:{port}/auth/callback"
    )
    return OidcConfig(
        issuer=env.get("OIDC_ISSUER", ""),
        client_id=env.get("OIDC_CLIENT_ID", ""),
        client_secret=env.get("OIDC_CLIENT_SECRET", ""),
        redirect_uri=redirect_uri,
        frontend_url=env.get("FRONTEND_URL") or f"http://localhost:{port}",
        scope=env.get("OIDC_SCOPE") or DEFAULT_SCOPE,
        cookie_secure=_flag(env.get("COOKIE_SECURE")),
        cookie_domain=env.get("COOKIE_DOMAIN") or None,
        verify_signatures=_flag(env.get("OIDC_VERIFY_SIGNATURES")),
    )


def export(config: OidcConfig) -> None:
    """Publish the configuration to worker processes via the environment."""
    os.environ[CONFIG_ENV] = msgspec.json.encode(config).decode()
    load.cache_clear()


@lru_cache(maxsize=1)
def load() -> OidcConfig:
    """Load the exported configuration, falling back to plain env variables."""
    config_json = os.getenv(CONFIG_ENV)
    if not config_json:
        return from_env()
    return msgspec.json.decode(config_json.encode(), type=OidcConfig)
