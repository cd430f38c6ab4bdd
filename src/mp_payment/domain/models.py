"""Payment domain models: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, replace
from datetime import datetime

from src.mp_common.enums import PaymentRecordStatus
from src.mp_common.errors import ValidationError


@dataclass(frozen=True)
class RefundResult:
    refund_id: str
    gateway_payment_id: str
    amount: int


@dataclass(frozen=True)
class PaymentRecord:
    """Gateway-facing record of one order's payment attempt."""

    id: str
    order_id: str
    user_id: str
    gateway_order_id: str
    amount: int  # minor units, equals the order total
    currency: str = "INR"
    status: PaymentRecordStatus = PaymentRecordStatus.PENDING
    gateway_payment_id: str | None = None
    signature: str | None = None
    refund_id: str | None = None
    refund_amount: int | None = None
    failure_reason: str | None = None
    created_at: datetime | None = None
    paid_at: datetime | None = None
    refunded_at: datetime | None = None

    def completed(self, gateway_payment_id: str, signature: str, now: datetime) -> "PaymentRecord":
        return replace(
            self,
            status=PaymentRecordStatus.COMPLETED,
            gateway_payment_id=gateway_payment_id,
            signature=signature,
            paid_at=now,
        )

    def failed(self, reason: str | None) -> "PaymentRecord":
        return replace(self, status=PaymentRecordStatus.FAILED, failure_reason=reason)

    def refunded(self, refund: RefundResult, now: datetime) -> "PaymentRecord":
        if refund.amount > self.amount:
            raise ValidationError(
                f"refund {refund.amount} exceeds captured amount {self.amount}"
            )
        return replace(
            self,
            status=PaymentRecordStatus.REFUNDED,
            refund_id=refund.refund_id,
            refund_amount=refund.amount,
            refunded_at=now,
        )
