"""Exception handlers shared by the main app and every mounted sub-app."""

import logging

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from oidctodo.errors import Unauthenticated

_logger = logging.getLogger(__name__)


async def _unauthenticated(_request, exc: Unauthenticated):
    return JSONResponse(
        {"error": exc.detail},
        status_code=401,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def _bad_request(_request, exc: ValueError):
    return JSONResponse({"message": str(exc)}, status_code=400)


async def _internal_error(_request, exc: Exception):  # pragma: no cover
    _logger.exception("Unhandled exception", exc_info=exc)
    return JSONResponse({"message": "Internal server error"}, status_code=500)


def install_error_handlers(app: FastAPI) -> None:
    """Answer Unauthenticated with 401, ValueError with 400 and the rest with 500."""
    app.add_exception_handler(Unauthenticated, _unauthenticated)
    app.add_exception_handler(ValueError, _bad_request)
    app.add_exception_handler(Exception, _internal_error)
