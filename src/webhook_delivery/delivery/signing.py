"""
Module: signing.py
Description: HMAC-SHA256 signatures for outbound webhook bodies.

The signature covers the exact bytes sent as the HTTP body. Callers must
serialize the body once and pass those same bytes to both sign() and the
HTTP client.
"""

import hashlib
import hmac
import secrets

SIGNATURE_PREFIX = "sha256="


def sign(payload: bytes, secret: str) -> str:
    """
    Compute the signature header value for a serialized body.

    Args:
        payload: Exact body bytes that will be transmitted
        secret: Endpoint signing secret

    Returns:
        "sha256=" followed by the lowercase hex HMAC-SHA256 digest
    """
    if not isinstance(payload, (bytes, bytearray)):
        raise ValueError("payload must be bytes")
    if not secret:
        raise ValueError("secret must be a non-empty string")

    digest = hmac.new(secret.encode("utf-8"), bytes(payload), hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify(payload: bytes, secret: str, signature: str) -> bool:
    """Check a received signature against the body using a constant-time compare."""
    if not signature or not secret:
        return False
    expected = sign(payload, secret)
    return hmac.compare_digest(expected, signature)


def generate_secret() -> str:
    """Generate a URL-safe random signing secret for a new endpoint."""
    return secrets.token_urlsafe(32)
