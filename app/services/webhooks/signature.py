"""
Webhook authentication: HMAC-SHA256 of the raw request body with a shared
secret, sent as `sha256=<hex>`. Compared in constant time.
"""
import hashlib
import hmac
import logging

logger = logging.getLogger(__name__)

SIGNATURE_PREFIX = "sha256="


def compute_signature(body: bytes, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(body: bytes, header: str | None, secret: str | None) -> bool:
    """
    True if `header` carries a valid signature of `body`.
    With no secret configured every payload is accepted (logged as a warning).
    """
    if not secret:
        logger.warning("webhook_signature_not_configured")
        return True
    if not header:
        return False
    provided = header.strip()
    if not provided.startswith(SIGNATURE_PREFIX):
        provided = f"{SIGNATURE_PREFIX}{provided}"
    return hmac.compare_digest(
        provided.lower().encode("utf-8"), compute_signature(body, secret).encode("utf-8")
    )
