# src/mp_payment/application/schemas.py
from datetime import datetime

from pydantic import BaseModel, Field

from src.mp_common.enums import PaymentRecordStatus, PaymentStatus


class PaymentIntentResponse(BaseModel):
    order_id: str
    order_number: str
    gateway_order_id: str
    key_id: str
    amount: int
    currency: str


class VerifyPaymentRequest(BaseModel):
    gateway_order_id: str = Field(min_length=1, max_length=64)
    gateway_payment_id: str = Field(min_length=1, max_length=64)
    signature: str = Field(min_length=1, max_length=256)


class PaymentVerificationResponse(BaseModel):
    verified: bool
    order_id: str
    payment_status: PaymentStatus


class PaymentResponse(BaseModel):
    id: str
    order_id: str
    gateway_order_id: str
    gateway_payment_id: str | None = None
    amount: int
    currency: str
    status: PaymentRecordStatus
    refund_id: str | None = None
    refund_amount: int | None = None
    failure_reason: str | None = None
    created_at: datetime | None = None
    paid_at: datetime | None = None
    refunded_at: datetime | None = None


class PaymentListResponse(BaseModel):
    items: list[PaymentResponse]
    next_cursor: str | None = None
    has_more: bool = False


class WebhookAck(BaseModel):
    received: bool = True
    event: str | None = None
    action: str
