"""
Request logging and cache headers.

Every request is logged as one line on the oidctodo.access logger:

    203.0.113.7     302 GET     /auth/callback 41ms

Query strings are left out because the callback carries authorization codes.
Responses under /api/ and /auth/ are marked as non-cacheable.
"""

import logging
import sys
import time
from ipaddress import ip_address, ip_network

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("oidctodo.access")

NO_STORE_PREFIXES = ("/api/", "/auth/")
NO_STORE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate, private",
    "Pragma": "no-cache",
    "Expires": "0",
}

RESET = "\033[0m"
# By status class: 1xx..5xx
STATUS_COLORS = {
    1: "\033[32m",
    2: "\033[92m",
    3: "\033[32m",
    4: "\033[0;31m",
    5: "\033[1;31m",
}
SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})
SAFE_COLOR = "\033[0;34m"
UNSAFE_COLOR = "\033[1;34m"
DIM = "\033[2m"


def format_client_ip(ip: str) -> str:
    """Client address for logs; IPv6 clients are shown by their /64 network."""
    if not ip or ip == "-":
        return "-"
    try:
        addr = ip_address(ip)
    except ValueError:
        return ip
    if addr.version == 6:
        return str(ip_network(f"{addr}/64", strict=False).network_address)
    return str(addr)


def _paint(text: str, color: str, enabled: bool) -> str:
    return f"{color}{text}{RESET}" if enabled else text


def format_access_log(
    client: str, status: int, method: str, path: str, duration_ms: float
) -> str:
    color = sys.stderr.isatty()
    return " ".join(
        (
            format_client_ip(client).ljust(15),
            _paint(str(status), STATUS_COLORS.get(status // 100, ""), color),
            _paint(
                method.ljust(7),
                SAFE_COLOR if method in SAFE_METHODS else UNSAFE_COLOR,
                color,
            ),
            path,
            _paint(f"{duration_ms:.0f}ms", DIM, color),
        )
    )


class AccessLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        started = time.perf_counter()
        response = await call_next(request)
        elapsed = (time.perf_counter() - started) * 1000

        if request.url.path.startswith(NO_STORE_PREFIXES):
            response.headers.update(NO_STORE_HEADERS)

        logger.info(
            format_access_log(
                request.client.host if request.client else "-",
                response.status_code,
                request.method,
                request.url.path,
                elapsed,
            )
        )
        return response


def configure_access_logging():
    """Send access lines to stderr as-is, bypassing the root logger format."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False
