import argparse
import logging
import os

import uvicorn

from oidctodo import config as _config
from oidctodo.fastapi.logging import configure_access_logging
from oidctodo.util import startupbox

DEVMODE = os.getenv("OIDCTODO_DEV") == "1"

EPILOG = """\
Example:
  oidctodo --issuer https://id.example.com --client-id todo-app \\
      --frontend-url http://localhost:5173

Every option defaults to its environment variable (OIDC_ISSUER, OIDC_CLIENT_ID,
OIDC_CLIENT_SECRET, OIDC_REDIRECT_URI, OIDC_SCOPE, FRONTEND_URL, PORT,
COOKIE_DOMAIN, COOKIE_SECURE, OIDC_VERIFY_SIGNATURES).
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="oidctodo",
        description="Todo API server with OpenID Connect login",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=EPILOG,
    )
    parser.add_argument("--host", default="localhost", help="Listen address")
    parser.add_argument(
        "--port", type=int, help=f"Listen port (default: {_config.DEFAULT_PORT})"
    )
    parser.add_argument("--issuer", help="OIDC issuer URL")
    parser.add_argument("--client-id", help="OAuth client id")
    parser.add_argument("--redirect-uri", help="Registered redirect URI")
    parser.add_argument("--scope", help="Requested scopes")
    parser.add_argument("--frontend-url", help="Base URL of the frontend app")
    parser.add_argument("--cookie-domain", help="Domain attribute of the cookie")
    parser.add_argument(
        "--verify-signatures",
        action="store_true",
        help="Verify ID token and JWT signatures against the provider JWKS",
    )
    return parser


def main():
    # Configure logging to remove the "ERROR:root:" prefix
    logging.basicConfig(level=logging.INFO, format="%(message)s", force=True)

    args = build_parser().parse_args()

    # Command line options override the environment
    overrides = {
        "PORT": args.port,
        "OIDC_ISSUER": args.issuer,
        "OIDC_CLIENT_ID": args.client_id,
        "OIDC_REDIRECT_URI": args.redirect_uri,
        "OIDC_SCOPE": args.scope,
        "FRONTEND_URL": args.frontend_url,
        "COOKIE_DOMAIN": args.cookie_domain,
        "OIDC_VERIFY_SIGNATURES": "1" if args.verify_signatures else None,
    }
    env = dict(os.environ)
    env.update({k: str(v) for k, v in overrides.items() if v is not None})
    port = int(env.get("PORT") or _config.DEFAULT_PORT)

    try:
        config = _config.from_env(env)
    except ValueError as e:
        raise SystemExit(f"Invalid configuration: {e}")

    # Export configuration for worker processes
    _config.export(config)

    startupbox.print_startup_config(config, args.host, port)
    configure_access_logging()

    dev = {"reload": True, "reload_dirs": ["oidctodo"]} if DEVMODE else {}
    uvicorn.run(
        "oidctodo.fastapi.mainapp:app",
        host=args.host,
        port=port,
        log_level="warning",
        access_log=False,
        **dev,
    )


if __name__ == "__main__":
    main()
