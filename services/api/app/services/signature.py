"""Webhook signature verification.

Platforms sign the raw request body with HMAC-SHA256 using a shared secret and
send the base64 digest in a header. Verification MUST run on the exact bytes
received: parsing and re-serializing the JSON changes key order/whitespace and
every signature would fail.

Two secrets may be active at once while a secret is being rotated; a delivery
signed with either one is accepted.
"""

import base64
import hashlib
import hmac
import logging
from collections.abc import Iterable

from app.services.errors import AuthenticationError

logger = logging.getLogger("uvicorn.error")


def compute_signature(raw_body: bytes, secret: str) -> str:
    """Compute the base64 HMAC-SHA256 digest of `raw_body`."""
    digest = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_signature(raw_body: bytes, signature: str | None, secret: str) -> bool:
    """Check a signature header against one secret in constant time."""
    if not signature or not secret:
        return False
    expected = compute_signature(raw_body, secret)
    return hmac.compare_digest(expected.encode("ascii"), signature.strip().encode("utf-8"))


class WebhookVerifier:
    """Verifies webhook deliveries against the configured secrets."""

    def __init__(self, secrets: Iterable[str]):
        self.secrets = [s for s in secrets if s]

    def verify(self, raw_body: bytes, signature: str | None) -> bool:
        """Return True if `signature` matches any accepted secret."""
        if not self.secrets:
            logger.error("Webhook secret not configured, rejecting delivery")
            return False
        if not signature:
            return False
        # Evaluate every secret so timing doesn't reveal which one matched.
        results = [verify_signature(raw_body, signature, secret) for secret in self.secrets]
        return any(results)

    def require(self, raw_body: bytes, signature: str | None) -> None:
        """Raise AuthenticationError unless the delivery is signed correctly."""
        if not self.verify(raw_body, signature):
            raise AuthenticationError("Invalid webhook signature")
