import base64
import hashlib
import hmac


def hash_secret(namespace: str, secret: str | bytes, length: int = 16) -> str:
    """Keyed digest of a secret, unusable as the secret itself.

    The namespace keeps digests of the same secret apart between uses.
    """
    if isinstance(secret, str):
        secret = secret.encode()
    digest = hmac.new(namespace.encode(), secret, hashlib.sha256).digest()
    return base64.urlsafe_b64encode(digest[:length]).rstrip(b"=").decode("ascii")
