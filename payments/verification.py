"""Callback token verification.

Xendit authenticates callbacks with a static shared token in the
x-callback-token header (no body signature). Comparison is constant-time and
fails closed when either side is missing.
"""

import hmac
import logging

logger = logging.getLogger(__name__)

CALLBACK_TOKEN_HEADER = "x-callback-token"


def verify_callback_token(token: str | None, expected: str | None) -> bool:
    """
    Check a callback token against the configured secret.

    Args:
        token: Value of the x-callback-token header
        expected: Configured shared secret

    Returns:
        True only if both are present and equal
    """
    if not expected:
        logger.warning("Callback token not configured - rejecting webhook")
        return False
    if not token:
        return False

    return hmac.compare_digest(token.encode("utf-8"), expected.encode("utf-8"))
