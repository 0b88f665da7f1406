"""
Login endpoints, mounted at /auth/.

- GET /login - Authorization URL for the frontend to navigate to
- GET /callback - Provider redirect target (redirect_uri)
- GET /me - Current user
- POST /logout - Clear the session
"""

import logging

from fastapi import Depends, FastAPI, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from oidctodo import globals
from oidctodo.authflow import handle_callback
from oidctodo.errors import DiscoveryFailed
from oidctodo.fastapi import authz, session
from oidctodo.fastapi.errors import install_error_handlers
from oidctodo.fastapi.session import AUTH_COOKIE
from oidctodo.oidc.authorize import begin_login
from oidctodo.oidc.identity import UserIdentity

_logger = logging.getLogger(__name__)

app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)

install_error_handlers(app)


@app.get("/login")
async def login():
    """Start a login and hand the provider URL back to the frontend."""
    try:
        auth_url = await begin_login(globals.client.instance, globals.pending.instance)
    except DiscoveryFailed as e:
        _logger.error("Login unavailable: %s", e)
        return JSONResponse(
            {
                "error": "Authentication service is currently unavailable",
                "details": (
                    "The authentication server is not responding. "
                    "Please try again later."
                ),
                "code": "AUTH_SERVER_UNAVAILABLE",
            },
            status_code=503,
        )
    return {"authUrl": auth_url}


@app.get("/callback")
async def callback(request: Request, auth=AUTH_COOKIE):
    """Complete the login and redirect the browser to the frontend."""
    result = await handle_callback(
        request.query_params,
        client=globals.client.instance,
        pending=globals.pending.instance,
        sessions=globals.sessions.instance,
        session_token=auth,
    )
    response = RedirectResponse(result.redirect, status_code=302)
    if result.token:
        config = globals.client.instance.config
        session.set_session_cookie(response, result.token, config)
    return response


@app.get("/me")
async def me(user: UserIdentity = Depends(authz.verify)):
    return {"user": user.to_dict()}


@app.post("/logout")
async def logout(request: Request, response: Response):
    if token := session.bearer_token(request):
        globals.sessions.instance.delete(token)
    session.clear_session_cookie(response, globals.client.instance.config)
    return {"message": "Logged out successfully"}
