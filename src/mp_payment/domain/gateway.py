"""Payment gateway contract.

Implementations translate transport failures (network, timeout, 5xx) into
GatewayUnavailableError. A signature mismatch is a ``False`` result, never
an exception.
"""

from typing import Protocol

from src.mp_payment.domain.models import RefundResult


class PaymentGatewayProtocol(Protocol):
    key_id: str

    async def create_gateway_order(
        self, amount_minor: int, currency: str, receipt_id: str
    ) -> str: ...

    def verify_callback(
        self, gateway_order_id: str, gateway_payment_id: str, signature: str
    ) -> bool: ...

    def verify_webhook(self, raw_body: bytes, signature: str) -> bool: ...

    async def refund(
        self, gateway_payment_id: str, amount_minor: int, idempotency_key: str
    ) -> RefundResult:
        """Refund at most once per (gateway_payment_id, idempotency_key)."""
        ...


def refund_idempotency_key(order_id: str) -> str:
    return f"refund-{order_id}"
