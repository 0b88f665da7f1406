"""Startup banner listing the effective configuration."""

import sys

from oidctodo.config import OidcConfig

WIDTH = 60


def _row(text: str) -> str:
    text = text if len(text) <= WIDTH else text[: WIDTH - 1] + "…"
    return f"┃ {text.ljust(WIDTH)} ┃"


def format_startup_config(config: OidcConfig, host: str, port: int) -> str:
    rows = [
        ("Backend", f"http://{host}:{port}"),
        ("Frontend", config.frontend_url),
        ("Issuer", config.issuer),
        ("Client ID", config.client_id),
        ("Redirect URI", config.redirect_uri),
        ("Scope", config.scope),
    ]
    body = ["oidctodo"] + [f"{label + ':':<15} {value}" for label, value in rows]
    if not config.client_secret:
        body.append("⚠️  No client secret configured")
    if not config.verify_signatures:
        body.append("⚠️  Token signatures are not verified")
    rule = "━" * (WIDTH + 2)
    return "\n".join([f"┏{rule}┓", *map(_row, body), f"┗{rule}┛", ""])


def print_startup_config(config: OidcConfig, host: str, port: int) -> None:
    sys.stderr.write(format_startup_config(config, host, port))
