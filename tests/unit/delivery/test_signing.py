"""
Module: test_signing.py
Description: Unit tests for webhook payload signing.
"""

import hashlib
import hmac

import pytest

from webhook_delivery.delivery.signing import generate_secret, sign, verify

PAYLOAD = b'{"id":"dlv_0001","event":"project.created","created_at":"2024-01-15T10:30:00.000Z","data":{}}'
SECRET = "whsec_test_secret"


class TestSign:
    """Test cases for sign()."""

    def test_signature_format(self):
        """Signature is "sha256=" plus 64 lowercase hex characters."""
        signature = sign(PAYLOAD, SECRET)

        assert signature.startswith("sha256=")
        digest = signature[len("sha256="):]
        assert len(digest) == 64
        assert digest == digest.lower()
        int(digest, 16)

    def test_matches_reference_hmac(self):
        """Signature equals a reference HMAC-SHA256 over the same bytes."""
        expected = hmac.new(SECRET.encode(), PAYLOAD, hashlib.sha256).hexdigest()
        assert sign(PAYLOAD, SECRET) == f"sha256={expected}"

    def test_deterministic(self):
        """Identical inputs yield identical signatures."""
        assert sign(PAYLOAD, SECRET) == sign(PAYLOAD, SECRET)

    def test_changing_one_byte_changes_signature(self):
        """Any byte change in the payload changes the signature."""
        tampered = PAYLOAD.replace(b"project.created", b"project.creates")
        assert sign(tampered, SECRET) != sign(PAYLOAD, SECRET)

    def test_changing_secret_changes_signature(self):
        """A different secret changes the signature."""
        assert sign(PAYLOAD, SECRET + "x") != sign(PAYLOAD, SECRET)

    def test_rejects_text_payload(self):
        """Only bytes are signed so callers cannot sign a re-serialized string."""
        with pytest.raises(ValueError, match="payload must be bytes"):
            sign(PAYLOAD.decode(), SECRET)

    def test_rejects_empty_secret(self):
        with pytest.raises(ValueError, match="secret must be a non-empty string"):
            sign(PAYLOAD, "")


class TestVerify:
    """Test cases for verify()."""

    def test_valid_signature(self):
        assert verify(PAYLOAD, SECRET, sign(PAYLOAD, SECRET))

    def test_invalid_signature(self):
        assert not verify(PAYLOAD, SECRET, "sha256=" + "0" * 64)
        assert not verify(PAYLOAD, "other-secret", sign(PAYLOAD, SECRET))
        assert not verify(PAYLOAD, SECRET, "")


def test_generate_secret_is_random():
    """Generated secrets are long and unique."""
    first, second = generate_secret(), generate_secret()
    assert len(first) >= 32
    assert first != second
