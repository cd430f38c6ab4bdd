"""OrderLedger: the only writer of order and payment state.

Every mutating operation follows the same shape:

    lock(order) -> load -> role/ownership -> state machine -> role/state scope
    -> side effects (inventory, gateway) -> versioned update -> commit
    -> tracking event + notification (best effort, after commit)

Transitions on one order are serialized in-process by a per-order lock; the
versioned UPDATE catches writers in other processes. Failures before commit
roll back, so a raised error always means "no state changed".
"""

import asyncio
import logging
import weakref
from dataclasses import dataclass, replace
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_authz.domain.models import Actor, Operation, Ownership
from src.mp_authz.domain.policy import AuthorizationPolicy
from src.mp_cart.domain.models import CartSnapshot, PriceBreakdown
from src.mp_cart.domain.repository import CartRepositoryProtocol
from src.mp_cart.infrastructure.persistence import CartRepository
from src.mp_common.datetime_utils import utc_now
from src.mp_common.enums import (
    DeliveryType,
    NotificationEventType,
    OrderStatus,
    PaymentMethod,
    PaymentRecordStatus,
    PaymentStatus,
    TrackingEventType,
)
from src.mp_common.errors import (
    InvalidTransitionError,
    OrderNotFoundError,
    PaymentNotFoundError,
    UnauthorizedTransitionError,
    ValidationError,
)
from src.mp_common.id_generator import generate_id, generate_order_number
from src.mp_inventory.application.service import InventoryReservationManager
from src.mp_notification.application.dispatcher import NotificationDispatcher
from src.mp_order.domain.models import Order, ShippingAddress
from src.mp_order.domain.repository import OrderRepositoryProtocol
from src.mp_order.domain.state_machine import (
    apply_advance,
    apply_cancel,
    apply_payment,
    check_advance,
    check_cancel,
    check_payment,
)
from src.mp_order.infrastructure.persistence import OrderRepository
from src.mp_payment.domain.gateway import PaymentGatewayProtocol, refund_idempotency_key
from src.mp_payment.domain.models import PaymentRecord
from src.mp_payment.domain.repository import PaymentRepositoryProtocol
from src.mp_payment.infrastructure.persistence import PaymentRepository
from src.mp_tracking.application.service import TrackingEventLog
from src.mp_tracking.domain.models import (
    STATUS_EVENTS,
    TrackingEvent,
    status_from_events,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Transition:
    tracking: TrackingEventType
    notification: NotificationEventType
    description: str | None = None


class OrderLedger:
    def __init__(
        self,
        gateway: PaymentGatewayProtocol,
        repo: OrderRepositoryProtocol | None = None,
        payments: PaymentRepositoryProtocol | None = None,
        inventory: InventoryReservationManager | None = None,
        carts: CartRepositoryProtocol | None = None,
        tracking: TrackingEventLog | None = None,
        notifier: NotificationDispatcher | None = None,
        policy: AuthorizationPolicy | None = None,
    ) -> None:
        self._gateway = gateway
        self._repo: OrderRepositoryProtocol = repo or OrderRepository()
        self._payments: PaymentRepositoryProtocol = payments or PaymentRepository()
        self._inventory = inventory or InventoryReservationManager()
        self._carts: CartRepositoryProtocol = carts or CartRepository()
        self._policy = policy or AuthorizationPolicy()
        self._tracking = tracking or TrackingEventLog(policy=self._policy)
        self._notifier = notifier or NotificationDispatcher()
        # Entries disappear once no coroutine holds or waits on the lock.
        self._order_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _get_or_create_lock(self, order_id: str) -> asyncio.Lock:
        lock = self._order_locks.get(order_id)
        if lock is None:
            lock = asyncio.Lock()
            self._order_locks[order_id] = lock
        return lock

    async def _load(self, db: AsyncSession, order_id: str) -> Order:
        order = await self._repo.get_by_id(db, order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    async def _load_payment(self, db: AsyncSession, order_id: str) -> PaymentRecord:
        payment = await self._payments.get_by_order_id(db, order_id)
        if payment is None:
            raise PaymentNotFoundError(order_id)
        return payment

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_order(
        self,
        db: AsyncSession,
        actor: Actor,
        snapshot: CartSnapshot,
        pricing: PriceBreakdown,
        shipping_address: ShippingAddress,
        delivery_type: DeliveryType,
        payment_method: PaymentMethod,
        currency: str = "INR",
    ) -> Order:
        """Reserve inventory, persist a PROCESSING / PAYMENT_PENDING order and
        consume the cart lines it was built from, in one transaction."""
        self._policy.authorize(Operation.CHECKOUT, actor)
        if not snapshot.items:
            raise ValidationError("an order needs at least one line item")

        order_id = generate_id()
        now = utc_now()
        order = Order(
            id=order_id,
            order_number=generate_order_number(order_id),
            user_id=actor.user_id,
            shop_id=snapshot.shop_id,
            items=snapshot.items,
            pricing=pricing,
            shipping_address=shipping_address,
            delivery_type=delivery_type,
            payment_method=payment_method,
            currency=currency,
            created_at=now,
            status_changed_at=now,
        )
        try:
            await self._inventory.reserve(db, order.id, order.items)
            await self._repo.save(db, order)
            await self._carts.clear_lines(db, actor.user_id, snapshot.product_ids)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Order %s created for user %s (shop %s, total %d)",
            order.order_number,
            order.user_id,
            order.shop_id,
            order.total,
        )
        await self._after_commit(
            db,
            order,
            actor,
            [_Transition(TrackingEventType.ORDER_PLACED, NotificationEventType.ORDER_PLACED)],
        )
        return order

    # ------------------------------------------------------------------
    # Fulfillment
    # ------------------------------------------------------------------

    async def advance(
        self, db: AsyncSession, actor: Actor, order_id: str, next_status: OrderStatus
    ) -> Order:
        """Move the order one step along the fulfillment path."""
        async with self._get_or_create_lock(order_id):
            order = await self._load(db, order_id)
            self._policy.ensure_can_attempt(Operation.ADVANCE, actor, order)
            check_advance(order, next_status)
            self._policy.authorize(Operation.ADVANCE, actor, order)

            updated = apply_advance(order, next_status, utc_now())
            await self._persist(db, order, updated)

        logger.info(
            "Order %s advanced %s -> %s by %s",
            order_id,
            order.status.value,
            updated.status.value,
            actor.user_id,
        )
        await self._after_commit(
            db,
            updated,
            actor,
            [
                _Transition(
                    STATUS_EVENTS[updated.status], NotificationEventType.ORDER_STATUS_CHANGED
                )
            ],
        )
        return updated

    async def cancel(
        self, db: AsyncSession, actor: Actor, order_id: str, reason: str | None = None
    ) -> Order:
        """Cancel an order that has not left the shop's hands yet.

        Releases the reserved stock and, when the payment was captured,
        refunds it before anything is written. A GatewayUnavailableError from
        the refund leaves the order untouched so the caller can retry.
        """
        async with self._get_or_create_lock(order_id):
            order = await self._load(db, order_id)
            self._policy.ensure_can_attempt(Operation.CANCEL, actor, order)
            check_cancel(order)
            self._policy.authorize(Operation.CANCEL, actor, order)

            now = utc_now()
            updated = apply_cancel(order, actor.role, reason, now)
            transitions = [
                _Transition(
                    TrackingEventType.CANCELLED, NotificationEventType.ORDER_CANCELLED, reason
                )
            ]
            payment: PaymentRecord | None = None
            if order.payment_status is PaymentStatus.PAYMENT_COMPLETED:
                updated, payment = await self._refund(db, updated, now)
                transitions.append(self._refund_transition(payment))

            try:
                await self._inventory.release(db, order.id, order.items)
                if payment is not None:
                    await self._payments.update(db, payment)
                await self._repo.update(db, updated, expected_version=order.version)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        logger.info(
            "Order %s cancelled from %s by %s (%s)",
            order_id,
            order.status.value,
            actor.user_id,
            actor.role.value,
        )
        await self._after_commit(db, updated, actor, transitions)
        return updated

    # ------------------------------------------------------------------
    # Payment
    # ------------------------------------------------------------------

    async def attach_gateway_order(
        self, db: AsyncSession, order_id: str, record: PaymentRecord
    ) -> tuple[Order, PaymentRecord]:
        """Store the payment record for a freshly created gateway order.

        If another request attached a payment first, that one wins and is
        returned; the surplus gateway order simply expires unpaid.
        """
        async with self._get_or_create_lock(order_id):
            order = await self._load(db, order_id)
            existing = await self._payments.get_by_order_id(db, order_id)
            if existing is not None:
                return order, existing
            if order.is_cancelled or order.payment_status is not PaymentStatus.PAYMENT_PENDING:
                raise InvalidTransitionError(
                    order_id, order.payment_status.value, PaymentStatus.PAYMENT_PENDING.value
                )

            updated = replace(
                order, gateway_order_id=record.gateway_order_id, version=order.version + 1
            )
            try:
                await self._payments.save(db, record)
                await self._repo.update(db, updated, expected_version=order.version)
                await db.commit()
            except Exception:
                await db.rollback()
                raise
        return updated, record

    async def mark_payment_completed(
        self,
        db: AsyncSession,
        order_id: str,
        gateway_order_id: str,
        gateway_payment_id: str,
        signature: str,
        actor: Actor | None = None,
    ) -> Order:
        """Record a captured payment. Callers must have verified the signature.

        Replays with the same payment id return the order unchanged. A payment
        that lands on an already cancelled order is refunded straight away.
        """
        async with self._get_or_create_lock(order_id):
            order = await self._load(db, order_id)
            self._check_gateway_order(order, gateway_order_id)
            if (
                order.payment_status in (PaymentStatus.PAYMENT_COMPLETED, PaymentStatus.REFUNDED)
                and order.gateway_payment_id == gateway_payment_id
            ):
                return order
            check_payment(order, PaymentStatus.PAYMENT_COMPLETED)

            now = utc_now()
            payment = (await self._load_payment(db, order_id)).completed(
                gateway_payment_id, signature, now
            )
            updated = apply_payment(
                order, PaymentStatus.PAYMENT_COMPLETED, gateway_payment_id=gateway_payment_id
            )
            transitions = [
                _Transition(
                    TrackingEventType.PAYMENT_COMPLETED, NotificationEventType.PAYMENT_COMPLETED
                )
            ]
            if updated.is_cancelled:
                updated, payment = await self._refund(db, updated, now, payment)
                transitions.append(self._refund_transition(payment))

            try:
                await self._payments.update(db, payment)
                await self._repo.update(db, updated, expected_version=order.version)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        logger.info("Payment %s captured for order %s", gateway_payment_id, order_id)
        await self._after_commit(db, updated, actor, transitions)
        return updated

    async def mark_payment_failed(
        self,
        db: AsyncSession,
        order_id: str,
        gateway_order_id: str,
        reason: str | None = None,
    ) -> Order:
        """Record a failed payment. Failed is terminal; replays are no-ops."""
        async with self._get_or_create_lock(order_id):
            order = await self._load(db, order_id)
            self._check_gateway_order(order, gateway_order_id)
            if order.payment_status is PaymentStatus.PAYMENT_FAILED:
                return order
            check_payment(order, PaymentStatus.PAYMENT_FAILED)

            payment = (await self._load_payment(db, order_id)).failed(reason)
            updated = apply_payment(order, PaymentStatus.PAYMENT_FAILED)
            try:
                await self._payments.update(db, payment)
                await self._repo.update(db, updated, expected_version=order.version)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        logger.info("Payment failed for order %s: %s", order_id, reason)
        await self._after_commit(
            db,
            updated,
            None,
            [
                _Transition(
                    TrackingEventType.PAYMENT_FAILED, NotificationEventType.PAYMENT_FAILED, reason
                )
            ],
        )
        return updated

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    async def get_order(self, db: AsyncSession, actor: Actor, order_id: str) -> Order:
        order = await self._load(db, order_id)
        self._policy.authorize(Operation.VIEW, actor, order)
        return order

    async def list_orders(
        self,
        db: AsyncSession,
        actor: Actor,
        status: OrderStatus | None = None,
        limit: int = 20,
        cursor: str | None = None,
    ) -> list[Order]:
        """Orders visible to the actor, newest first; ``cursor`` is the last id seen."""
        rule = self._policy.rule_for(Operation.VIEW, actor.role)
        if rule is None:
            raise UnauthorizedTransitionError(Operation.VIEW.value, "-")
        user_id: str | None = None
        shop_ids: list[str] | None = None
        if rule.ownership is Ownership.OWNER:
            user_id = actor.user_id
        elif rule.ownership is Ownership.SHOP:
            shop_ids = sorted(actor.shop_ids)
        return await self._repo.list_orders(
            db,
            user_id=user_id,
            shop_ids=shop_ids,
            status=status,
            limit=limit,
            cursor_id=cursor,
        )

    # ------------------------------------------------------------------
    # Repair
    # ------------------------------------------------------------------

    async def reconcile_tracking(self, db: AsyncSession, order_id: str) -> TrackingEvent | None:
        """Append the status event a lost best-effort write left out, if any."""
        async with self._get_or_create_lock(order_id):
            order = await self._load(db, order_id)
            events = await self._tracking.list_by_order(db, order_id)
            if status_from_events(events) is order.status:
                return None
            logger.warning(
                "Tracking log for order %s is behind ledger status %s; repairing",
                order_id,
                order.status.value,
            )
            return await self._tracking.append(
                db,
                TrackingEvent(
                    order_id=order_id,
                    event_type=STATUS_EVENTS[order.status],
                    description="reconciled from order ledger",
                ),
            )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _check_gateway_order(order: Order, gateway_order_id: str) -> None:
        if order.gateway_order_id != gateway_order_id:
            raise ValidationError(
                f"gateway order {gateway_order_id} does not belong to order {order.id}"
            )

    async def _refund(
        self,
        db: AsyncSession,
        order: Order,
        now: datetime,
        payment: PaymentRecord | None = None,
    ) -> tuple[Order, PaymentRecord]:
        """Refund the captured payment of a cancelled order; nothing is persisted here."""
        if payment is None:
            payment = await self._load_payment(db, order.id)
        if payment.status is not PaymentRecordStatus.COMPLETED or not payment.gateway_payment_id:
            raise InvalidTransitionError(
                order.id, payment.status.value, PaymentStatus.REFUNDED.value
            )
        refund = await self._gateway.refund(
            payment.gateway_payment_id, payment.amount, refund_idempotency_key(order.id)
        )
        return apply_payment(order, PaymentStatus.REFUNDED), payment.refunded(refund, now)

    @staticmethod
    def _refund_transition(payment: PaymentRecord) -> _Transition:
        return _Transition(
            TrackingEventType.REFUNDED,
            NotificationEventType.ORDER_REFUNDED,
            f"refund {payment.refund_id}",
        )

    async def _persist(self, db: AsyncSession, before: Order, after: Order) -> None:
        try:
            await self._repo.update(db, after, expected_version=before.version)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    async def _after_commit(
        self,
        db: AsyncSession,
        order: Order,
        actor: Actor | None,
        transitions: list[_Transition],
    ) -> None:
        for transition in transitions:
            await self._tracking.append_best_effort(
                db,
                TrackingEvent(
                    order_id=order.id,
                    event_type=transition.tracking,
                    actor_id=actor.user_id if actor else None,
                    actor_role=actor.role if actor else None,
                    description=transition.description,
                ),
            )
            self._notifier.dispatch(order.user_id, transition.notification, order)
