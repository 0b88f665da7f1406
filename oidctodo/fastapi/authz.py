import logging

from fastapi import Request

from oidctodo import globals
from oidctodo.authsession import authenticate
from oidctodo.fastapi.session import bearer_token
from oidctodo.oidc.identity import UserIdentity

logger = logging.getLogger(__name__)


async def verify(request: Request) -> UserIdentity:
    """Dependency resolving the caller of a protected route.

    Raises Unauthenticated (answered with 401 by install_error_handlers) when
    the request has no valid credential, so the route body never runs.
    """
    identity = await authenticate(
        bearer_token(request),
        globals.client.instance,
        globals.sessions.instance,
    )
    logger.debug("Authenticated %s %s", identity.sub, request.url.path)
    return identity
