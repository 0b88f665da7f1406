"""PKCE (RFC 7636) verifier/challenge pairs and login state tokens."""

import base64
import hashlib
import secrets


def generate_code_verifier() -> str:
    """Random URL-safe verifier, 86 characters (within the 43-128 limit)."""
    return secrets.token_urlsafe(64)


def derive_code_challenge(verifier: str) -> str:
    """S256 challenge: base64url(sha256(verifier)) without padding."""
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def generate_state() -> str:
    """Random state token (256 bits) correlating the callback with its login."""
    return secrets.token_urlsafe(32)
