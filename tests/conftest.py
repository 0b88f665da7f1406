"""
Pytest configuration and fixtures for oidctodo tests.

FastAPI provides excellent testing support through httpx.ASGITransport,
which allows us to make async requests directly to the ASGI app without
running a server.

The OIDC provider is emulated by FakeProvider, served to the application's
shared httpx client through httpx.MockTransport.
"""

from __future__ import annotations

import secrets
from collections.abc import AsyncGenerator
from urllib.parse import parse_qs

import httpx
import pytest
import pytest_asyncio

from oidctodo import globals as oidctodo_globals
from oidctodo.config import OidcConfig
from oidctodo.fastapi.mainapp import app
from oidctodo.fastapi.session import AUTH_COOKIE_NAME
from oidctodo.oidc.discovery import OidcClient
from oidctodo.oidc.identity import UserIdentity

ISSUER = "https://id.example.com"
FRONTEND = "http://localhost:5173"
REDIRECT_URI = "http://localhost:3000/auth/callback"


class FakeProvider:
    """Minimal OIDC provider answering discovery, token and userinfo calls.

    Tests flip the attributes to simulate provider behaviour; every request is
    recorded in `requests`.
    """

    def __init__(self):
        self.discovery_status = 200
        self.publish_userinfo = True
        self.userinfo_path = "/userinfo"
        self.userinfo_status = 200
        self.userinfo: dict = {
            "id": "user-123",
            "email": "ada@example.com",
            "displayName": "Ada Lovelace",
        }
        self.token_status = 200
        self.token_error = {"error": "invalid_grant", "error_description": "bad code"}
        self.access_token = f"at-{secrets.token_urlsafe(8)}"
        self.id_token: str | None = None
        self.jwks: dict | None = None
        self.valid_tokens = {self.access_token}
        self.requests: list[httpx.Request] = []

    def metadata(self) -> dict:
        data = {
            "issuer": ISSUER,
            "authorization_endpoint": f"{ISSUER}/authorize",
            "token_endpoint": f"{ISSUER}/token",
            "jwks_uri": f"{ISSUER}/jwks",
        }
        if self.publish_userinfo:
            data["userinfo_endpoint"] = f"{ISSUER}{self.userinfo_path}"
        return data

    def paths(self, method: str | None = None) -> list[str]:
        return [
            r.url.path for r in self.requests if method is None or r.method == method
        ]

    @property
    def token_forms(self) -> list[dict[str, str]]:
        return [
            {k: v[0] for k, v in parse_qs(r.content.decode()).items()}
            for r in self.requests
            if r.url.path == "/token"
        ]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/.well-known/openid-configuration":
            if self.discovery_status != 200:
                return httpx.Response(self.discovery_status, text="unavailable")
            return httpx.Response(200, json=self.metadata())
        if path == "/token" and request.method == "POST":
            if self.token_status != 200:
                return httpx.Response(self.token_status, json=self.token_error)
            body = {
                "access_token": self.access_token,
                "token_type": "Bearer",
                "expires_in": 3600,
            }
            if self.id_token:
                body["id_token"] = self.id_token
            return httpx.Response(200, json=body)
        if path == "/jwks" and self.jwks is not None:
            return httpx.Response(200, json=self.jwks)
        if path == self.userinfo_path:
            auth = request.headers.get("authorization", "")
            if auth.removeprefix("Bearer ") not in self.valid_tokens:
                return httpx.Response(401, json={"error": "invalid_token"})
            if self.userinfo_status != 200:
                return httpx.Response(self.userinfo_status, text="broken")
            return httpx.Response(200, json=self.userinfo)
        return httpx.Response(404, text="not found")


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def oidc_config() -> OidcConfig:
    return OidcConfig(
        issuer=ISSUER,
        client_id="todo-app",
        client_secret="s3cret",
        redirect_uri=REDIRECT_URI,
        frontend_url=FRONTEND,
    )


@pytest_asyncio.fixture(scope="function")
async def oidc_client(
    oidc_config: OidcConfig, provider: FakeProvider
) -> AsyncGenerator[OidcClient, None]:
    """OIDC client talking to the fake provider."""
    client = OidcClient(oidc_config, transport=httpx.MockTransport(provider.handler))
    yield client
    await client.aclose()


@pytest_asyncio.fixture(scope="function")
async def app_globals(oidc_config: OidcConfig, provider: FakeProvider):
    """Initialize the process-wide instances the app uses."""
    await oidctodo_globals.init(
        oidc_config, transport=httpx.MockTransport(provider.handler)
    )
    yield oidctodo_globals
    await oidctodo_globals.close()


@pytest_asyncio.fixture(scope="function")
async def client(app_globals) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Create an async test client for the FastAPI app."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(
        transport=transport,
        base_url="http://localhost:3000",
    ) as client:
        yield client


@pytest.fixture
def session_token(app_globals) -> str:
    """Token of a logged in user with subject "alice"."""
    return create_test_session("alice")


@pytest.fixture
def other_session_token(app_globals) -> str:
    """Token of a second logged in user with subject "bob"."""
    return create_test_session("bob")


def create_test_session(sub: str, **claims) -> str:
    """Store a session for `sub` and return the access token that opens it."""
    token = secrets.token_urlsafe(12)
    identity = UserIdentity(sub=sub, claims={"sub": sub, **claims})
    oidctodo_globals.sessions.instance.create(token, identity)
    return token


def auth_headers(token: str) -> dict[str, str]:
    """Return headers with auth cookie set."""
    return {"Cookie": f"{AUTH_COOKIE_NAME}={token}"}
