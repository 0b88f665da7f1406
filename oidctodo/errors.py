"""
Exceptions raised by the OIDC login flow and request authentication.

Callback failures carry a short machine-readable `code` that is passed to the
frontend login route as `?error=<code>`. The exception message itself is only
ever logged, never shown to the browser.
"""


class AuthFlowError(Exception):
    """Base class for login flow failures."""

    code = "authentication_failed"


class DiscoveryFailed(AuthFlowError):
    """Provider metadata is unavailable or lacks a required endpoint."""


class StateMissing(AuthFlowError):
    code = "state_missing"


class CodeVerifierMissing(AuthFlowError):
    """No pending login exists for the state (unknown, tampered or replayed)."""

    code = "code_verifier_missing"


class CodeVerifierExpired(AuthFlowError):
    code = "code_verifier_expired"


class TokenExchangeFailed(AuthFlowError):
    """The token endpoint rejected the code or could not be reached."""

    def __init__(
        self, message: str, error: str | None = None, description: str | None = None
    ):
        super().__init__(message)
        self.error = error
        self.description = description


class IdentityResolutionFailed(AuthFlowError):
    """Userinfo lookup or ID token decoding did not produce claims."""


class Unauthenticated(Exception):
    """Request carries no usable credential."""

    def __init__(self, detail: str = "Authentication required"):
        super().__init__(detail)
        self.detail = detail
