"""Order and payment state machines.

Fulfillment:  PROCESSING -> PACKED -> SHIPPED -> OUT_FOR_DELIVERY -> DELIVERED
Cancellation: PROCESSING | PACKED | SHIPPED -> CANCELLED
Payment:      PAYMENT_PENDING -> PAYMENT_COMPLETED | PAYMENT_FAILED
              PAYMENT_COMPLETED -> REFUNDED   (only once the order is CANCELLED)

All functions are pure. ``apply_*`` return a new Order with the version bumped;
``check_*`` raise InvalidTransitionError. The repository persists the new
version conditionally on the version that was loaded, however many steps
one ledger call chains together.
"""

from dataclasses import replace
from datetime import datetime

from src.mp_authz.domain.policy import CANCELLABLE_STATES
from src.mp_common.enums import OrderStatus, PaymentStatus, Role
from src.mp_common.errors import InvalidTransitionError
from src.mp_order.domain.models import Order

FULFILLMENT_PATH: tuple[OrderStatus, ...] = (
    OrderStatus.PROCESSING,
    OrderStatus.PACKED,
    OrderStatus.SHIPPED,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
)

NEXT_STATUS: dict[OrderStatus, OrderStatus] = dict(
    zip(FULFILLMENT_PATH, FULFILLMENT_PATH[1:])
)

PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PAYMENT_PENDING: frozenset(
        {PaymentStatus.PAYMENT_COMPLETED, PaymentStatus.PAYMENT_FAILED}
    ),
    PaymentStatus.PAYMENT_COMPLETED: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.PAYMENT_FAILED: frozenset(),
    PaymentStatus.REFUNDED: frozenset(),
}


def next_status(current: OrderStatus) -> OrderStatus | None:
    return NEXT_STATUS.get(current)


def check_advance(order: Order, requested: OrderStatus) -> None:
    if NEXT_STATUS.get(order.status) is not requested:
        raise InvalidTransitionError(order.id, order.status.value, requested.value)


def check_cancel(order: Order) -> None:
    if order.status not in CANCELLABLE_STATES:
        raise InvalidTransitionError(
            order.id, order.status.value, OrderStatus.CANCELLED.value
        )


def check_payment(order: Order, target: PaymentStatus) -> None:
    if target not in PAYMENT_TRANSITIONS[order.payment_status]:
        raise InvalidTransitionError(order.id, order.payment_status.value, target.value)
    if target is PaymentStatus.REFUNDED and not order.is_cancelled:
        raise InvalidTransitionError(order.id, order.status.value, target.value)


def apply_advance(order: Order, requested: OrderStatus, now: datetime) -> Order:
    check_advance(order, requested)
    return replace(
        order,
        status=requested,
        status_changed_at=now,
        delivered_at=now if requested is OrderStatus.DELIVERED else order.delivered_at,
        version=order.version + 1,
    )


def apply_cancel(
    order: Order, cancelled_by: Role, reason: str | None, now: datetime
) -> Order:
    check_cancel(order)
    return replace(
        order,
        status=OrderStatus.CANCELLED,
        cancel_reason=reason,
        cancelled_by=cancelled_by,
        status_changed_at=now,
        version=order.version + 1,
    )


def apply_payment(
    order: Order,
    target: PaymentStatus,
    gateway_payment_id: str | None = None,
) -> Order:
    check_payment(order, target)
    return replace(
        order,
        payment_status=target,
        gateway_payment_id=gateway_payment_id or order.gateway_payment_id,
        version=order.version + 1,
    )
