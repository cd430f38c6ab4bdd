"""HMAC-SHA256 signatures used by the gateway.

Checkout callback: hex(HMAC(key_secret, f"{gateway_order_id}|{gateway_payment_id}"))
Webhook:           hex(HMAC(webhook_secret, raw_body))
"""

import hashlib
import hmac


def sign(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def callback_signature(secret: str, gateway_order_id: str, gateway_payment_id: str) -> str:
    return sign(secret, f"{gateway_order_id}|{gateway_payment_id}".encode())


def signatures_match(expected: str, supplied: str) -> bool:
    """Constant-time comparison. Compares bytes so non-ASCII input is a mismatch, not a TypeError."""
    return hmac.compare_digest(expected.encode(), supplied.encode())
