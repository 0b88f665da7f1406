"""
Session credential transport.

The access token obtained at login is the session credential. Browsers carry
it in an HTTP-only cookie; API clients may send it as a Bearer token instead.
"""

from fastapi import Cookie, Request, Response

from oidctodo.authsession import EXPIRES
from oidctodo.config import OidcConfig

AUTH_COOKIE_NAME = "accessToken"
AUTH_COOKIE = Cookie(None, alias=AUTH_COOKIE_NAME)


def bearer_token(request: Request) -> str | None:
    """Access token from the session cookie, else from the Authorization header."""
    if token := request.cookies.get(AUTH_COOKIE_NAME):
        return token
    scheme, _, credentials = request.headers.get("authorization", "").partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None


def _cookie_options(config: OidcConfig) -> dict:
    # Clearing only works when these match the attributes used when setting
    return {
        "httponly": True,
        "secure": config.cookie_secure,
        "domain": config.cookie_domain,
        "path": "/",
        "samesite": "lax",
    }


def set_session_cookie(response: Response, token: str, config: OidcConfig) -> None:
    response.set_cookie(
        AUTH_COOKIE_NAME,
        token,
        max_age=int(EXPIRES.total_seconds()),
        **_cookie_options(config),
    )


def clear_session_cookie(response: Response, config: OidcConfig) -> None:
    response.set_cookie(
        AUTH_COOKIE_NAME, "", max_age=0, expires=0, **_cookie_options(config)
    )
