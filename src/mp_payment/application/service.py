# src/mp_payment/application/service.py
"""PaymentApplicationService: payment intents, checkout callbacks, webhooks.

Signature checks happen here, before the ledger is touched: a failed check
is a negative result with no state change, never an exception.
"""

import json
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_authz.domain.models import Actor, Operation, Ownership
from src.mp_authz.domain.policy import AuthorizationPolicy
from src.mp_common.datetime_utils import utc_now
from src.mp_common.enums import PaymentRecordStatus, PaymentStatus
from src.mp_common.errors import (
    InvalidTransitionError,
    PaymentNotFoundError,
    UnauthorizedTransitionError,
    ValidationError,
)
from src.mp_common.id_generator import generate_id
from src.mp_order.application.ledger import OrderLedger
from src.mp_order.application.service import get_order_ledger
from src.mp_order.domain.models import Order
from src.mp_payment.application.gateway_provider import get_gateway
from src.mp_payment.application.schemas import (
    PaymentIntentResponse,
    PaymentListResponse,
    PaymentResponse,
    PaymentVerificationResponse,
    VerifyPaymentRequest,
    WebhookAck,
)
from src.mp_payment.domain.gateway import PaymentGatewayProtocol
from src.mp_payment.domain.models import PaymentRecord
from src.mp_payment.domain.repository import PaymentRepositoryProtocol
from src.mp_payment.infrastructure.persistence import PaymentRepository

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("mp.security")

_PAYMENT_FAILED_EVENT = "payment.failed"


def _intent(order: Order, record: PaymentRecord, key_id: str) -> PaymentIntentResponse:
    return PaymentIntentResponse(
        order_id=order.id,
        order_number=order.order_number,
        gateway_order_id=record.gateway_order_id,
        key_id=key_id,
        amount=record.amount,
        currency=record.currency,
    )


def _payment_to_response(record: PaymentRecord) -> PaymentResponse:
    return PaymentResponse(
        id=record.id,
        order_id=record.order_id,
        gateway_order_id=record.gateway_order_id,
        gateway_payment_id=record.gateway_payment_id,
        amount=record.amount,
        currency=record.currency,
        status=record.status,
        refund_id=record.refund_id,
        refund_amount=record.refund_amount,
        failure_reason=record.failure_reason,
        created_at=record.created_at,
        paid_at=record.paid_at,
        refunded_at=record.refunded_at,
    )


def _payment_entity(event: dict) -> dict:
    """``event["payload"]["payment"]["entity"]``, each level required to be an object."""
    node: object = event
    for key in ("payload", "payment", "entity"):
        node = node.get(key) if isinstance(node, dict) else None
        if not isinstance(node, dict):
            raise ValidationError(f"payment.failed webhook without an object at {key!r}")
    return node


class PaymentApplicationService:
    def __init__(
        self,
        ledger: OrderLedger | None = None,
        gateway: PaymentGatewayProtocol | None = None,
        payments: PaymentRepositoryProtocol | None = None,
        policy: AuthorizationPolicy | None = None,
    ) -> None:
        # Ledger and gateway are resolved lazily: both exist only once the app lifespan ran.
        self._ledger = ledger
        self._gateway = gateway
        self._payments: PaymentRepositoryProtocol = payments or PaymentRepository()
        self._policy = policy or AuthorizationPolicy()

    @property
    def ledger(self) -> OrderLedger:
        return self._ledger or get_order_ledger()

    @property
    def gateway(self) -> PaymentGatewayProtocol:
        return self._gateway or get_gateway()

    async def _payable_order(self, db: AsyncSession, actor: Actor, order_id: str) -> Order:
        order = await self.ledger.get_order(db, actor, order_id)
        self._policy.authorize(Operation.PAY, actor, order)
        return order

    async def create_payment_intent(
        self, db: AsyncSession, actor: Actor, order_id: str
    ) -> PaymentIntentResponse:
        """Open (or reopen) a gateway order for an unpaid order."""
        order = await self._payable_order(db, actor, order_id)
        existing = await self._payments.get_by_order_id(db, order_id)
        if existing is not None:
            if existing.status is not PaymentRecordStatus.PENDING or order.is_cancelled:
                raise InvalidTransitionError(
                    order_id, order.payment_status.value, PaymentStatus.PAYMENT_PENDING.value
                )
            return _intent(order, existing, self.gateway.key_id)
        if order.is_cancelled or order.payment_status is not PaymentStatus.PAYMENT_PENDING:
            raise InvalidTransitionError(
                order_id, order.payment_status.value, PaymentStatus.PAYMENT_PENDING.value
            )

        gateway_order_id = await self.gateway.create_gateway_order(
            order.total, order.currency, order.order_number
        )
        record = PaymentRecord(
            id=generate_id(),
            order_id=order.id,
            user_id=order.user_id,
            gateway_order_id=gateway_order_id,
            amount=order.total,
            currency=order.currency,
            created_at=utc_now(),
        )
        order, record = await self.ledger.attach_gateway_order(db, order.id, record)
        return _intent(order, record, self.gateway.key_id)

    async def verify_payment(
        self, db: AsyncSession, actor: Actor, order_id: str, req: VerifyPaymentRequest
    ) -> PaymentVerificationResponse:
        order = await self._payable_order(db, actor, order_id)
        if not self.gateway.verify_callback(
            req.gateway_order_id, req.gateway_payment_id, req.signature
        ):
            security_logger.warning(
                "Rejected payment callback for order %s from user %s", order_id, actor.user_id
            )
            return PaymentVerificationResponse(
                verified=False, order_id=order.id, payment_status=order.payment_status
            )

        order = await self.ledger.mark_payment_completed(
            db,
            order_id,
            req.gateway_order_id,
            req.gateway_payment_id,
            req.signature,
            actor=actor,
        )
        return PaymentVerificationResponse(
            verified=True, order_id=order.id, payment_status=order.payment_status
        )

    async def handle_webhook(
        self, db: AsyncSession, raw_body: bytes, signature: str
    ) -> WebhookAck | None:
        """Process a gateway webhook. Returns None when the signature does not verify."""
        if not self.gateway.verify_webhook(raw_body, signature):
            return None
        try:
            event = json.loads(raw_body)
        except ValueError:
            raise ValidationError("webhook body is not valid JSON") from None
        if not isinstance(event, dict):
            raise ValidationError("webhook body must be a JSON object")

        event_type = event.get("event")
        if event_type != _PAYMENT_FAILED_EVENT:
            return WebhookAck(event=event_type, action="ignored")

        entity = _payment_entity(event)
        gateway_order_id = entity.get("order_id")
        if not isinstance(gateway_order_id, str) or not gateway_order_id:
            raise ValidationError("payment.failed webhook without order_id")

        record = await self._payments.get_by_gateway_order_id(db, gateway_order_id)
        if record is None:
            logger.warning("Webhook for unknown gateway order %s", gateway_order_id)
            return WebhookAck(event=event_type, action="unknown_order")

        reason = entity.get("error_description")
        try:
            await self.ledger.mark_payment_failed(
                db, record.order_id, gateway_order_id, reason if isinstance(reason, str) else None
            )
        except InvalidTransitionError as exc:
            # Late failure notice for a payment that already settled; the gateway must not retry.
            logger.warning("Ignoring payment.failed for order %s: %s", record.order_id, exc.message)
            return WebhookAck(event=event_type, action="stale")
        return WebhookAck(event=event_type, action="payment_failed")

    async def get_payment(
        self, db: AsyncSession, actor: Actor, order_id: str
    ) -> PaymentResponse:
        await self.ledger.get_order(db, actor, order_id)
        record = await self._payments.get_by_order_id(db, order_id)
        if record is None:
            raise PaymentNotFoundError(order_id)
        return _payment_to_response(record)

    async def list_payments(
        self,
        db: AsyncSession,
        actor: Actor,
        status: PaymentRecordStatus | None = None,
        limit: int = 20,
        cursor: str | None = None,
    ) -> PaymentListResponse:
        """Newest first. Customers see their own payments; admins see every payment."""
        rule = self._policy.rule_for(Operation.LIST_PAYMENTS, actor.role)
        if rule is None:
            raise UnauthorizedTransitionError(Operation.LIST_PAYMENTS.value, "-")
        user_id = actor.user_id if rule.ownership is Ownership.OWNER else None
        records = await self._payments.list_payments(db, user_id, status, limit + 1, cursor)
        has_more = len(records) > limit
        records = records[:limit]
        return PaymentListResponse(
            items=[_payment_to_response(r) for r in records],
            next_cursor=records[-1].id if has_more and records else None,
            has_more=has_more,
        )
