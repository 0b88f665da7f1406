"""Tests for PKCE verifier/challenge and state generation."""

import base64
import hashlib
import re

from oidctodo.oidc import pkce

URLSAFE = re.compile(r"^[A-Za-z0-9_-]+$")


def test_code_verifier_format():
    verifier = pkce.generate_code_verifier()
    # RFC 7636: 43-128 characters from the unreserved set
    assert 43 <= len(verifier) <= 128
    assert URLSAFE.match(verifier)


def test_challenge_is_s256_without_padding():
    verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
    # Example from RFC 7636 appendix B
    assert (
        pkce.derive_code_challenge(verifier)
        == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"
    )


def test_challenge_is_deterministic():
    verifier = pkce.generate_code_verifier()
    assert pkce.derive_code_challenge(verifier) == pkce.derive_code_challenge(verifier)


def test_distinct_verifiers_give_distinct_challenges():
    a, b = pkce.generate_code_verifier(), pkce.generate_code_verifier()
    assert a != b
    assert pkce.derive_code_challenge(a) != pkce.derive_code_challenge(b)


def test_challenge_matches_manual_derivation():
    verifier = pkce.generate_code_verifier()
    digest = hashlib.sha256(verifier.encode()).digest()
    expected = base64.urlsafe_b64encode(digest).rstrip(b"=").decode()
    assert pkce.derive_code_challenge(verifier) == expected
    assert "=" not in expected


def test_state_is_random_and_urlsafe():
    states = {pkce.generate_state() for _ in range(20)}
    assert len(states) == 20
    assert all(URLSAFE.match(s) for s in states)
