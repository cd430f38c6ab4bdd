# src/mp_order/application/service.py
"""Order use cases exposed over HTTP: checkout, fulfillment, cancellation,
reads and tracking. State changes all go through the shared OrderLedger."""

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.mp_authz.domain.models import Actor
from src.mp_cart.domain.pricing import compute_breakdown, shipping_fee
from src.mp_cart.domain.snapshot import build_snapshot
from src.mp_cart.infrastructure.persistence import CartRepository, ProductRepository
from src.mp_common.enums import OrderStatus
from src.mp_common.errors import OrderNotFoundError
from src.mp_common.id_generator import ORDER_NUMBER_PREFIX, order_id_from_number
from src.mp_common.money import minor_to_display
from src.mp_notification.application.dispatcher import NotificationDispatcher
from src.mp_order.application.ledger import OrderLedger
from src.mp_order.application.schemas import (
    AdvanceOrderRequest,
    CancelOrderRequest,
    CheckoutRequest,
    LineItemResponse,
    LocationIn,
    MilestoneRequest,
    OrderListResponse,
    OrderResponse,
    PricingResponse,
    ShippingAddressIn,
    TrackingEventResponse,
    TrackingHistoryResponse,
)
from src.mp_order.domain.models import Order, ShippingAddress
from src.mp_payment.application.gateway_provider import get_gateway
from src.mp_tracking.application.service import TrackingEventLog
from src.mp_tracking.domain.models import Location, TrackingEvent

_carts = CartRepository()
_products = ProductRepository()
_tracking = TrackingEventLog()

_ledger: OrderLedger | None = None
_dispatcher: NotificationDispatcher | None = None


def get_notification_dispatcher() -> NotificationDispatcher:
    global _dispatcher  # noqa: PLW0603
    if _dispatcher is None:
        _dispatcher = NotificationDispatcher()
    return _dispatcher


def get_order_ledger() -> OrderLedger:
    global _ledger  # noqa: PLW0603
    if _ledger is None:
        _ledger = OrderLedger(
            gateway=get_gateway(),
            carts=_carts,
            tracking=_tracking,
            notifier=get_notification_dispatcher(),
        )
    return _ledger


def reset_order_ledger() -> None:
    """Drop the cached ledger so the next call picks up a newly installed gateway."""
    global _ledger  # noqa: PLW0603
    _ledger = None


# ---------------------------------------------------------------------------
# Mapping
# ---------------------------------------------------------------------------


def order_to_response(order: Order) -> OrderResponse:
    return OrderResponse(
        id=order.id,
        order_number=order.order_number,
        user_id=order.user_id,
        shop_id=order.shop_id,
        items=[LineItemResponse(**item.to_dict()) for item in order.items],
        pricing=PricingResponse(
            subtotal=order.pricing.subtotal,
            tax=order.pricing.tax,
            shipping=order.pricing.shipping,
            total=order.pricing.total,
            currency=order.currency,
            total_display=minor_to_display(order.pricing.total, order.currency),
        ),
        shipping_address=ShippingAddressIn(**order.shipping_address.to_dict()),
        delivery_type=order.delivery_type,
        payment_method=order.payment_method,
        status=order.status,
        payment_status=order.payment_status.value,
        gateway_order_id=order.gateway_order_id,
        cancel_reason=order.cancel_reason,
        cancelled_by=order.cancelled_by.value if order.cancelled_by else None,
        created_at=order.created_at,
        status_changed_at=order.status_changed_at,
        delivered_at=order.delivered_at,
    )


def _event_to_response(event: TrackingEvent) -> TrackingEventResponse:
    return TrackingEventResponse(
        id=event.id,
        event_type=event.event_type,
        actor_id=event.actor_id,
        actor_role=event.actor_role.value if event.actor_role else None,
        location=LocationIn(**event.location.to_dict()) if event.location else None,
        description=event.description,
        created_at=event.created_at,
    )


# ---------------------------------------------------------------------------
# Use cases
# ---------------------------------------------------------------------------


async def checkout(req: CheckoutRequest, actor: Actor, db: AsyncSession) -> OrderResponse:
    lines = await _carts.list_lines(db, actor.user_id)
    products = await _products.get_many(db, [line.product_id for line in lines]) if lines else {}
    snapshot = build_snapshot(lines, products)
    pricing = compute_breakdown(
        snapshot.items, shipping_fee(req.delivery_type, settings.DELIVERY_FEE_MINOR)
    )
    order = await get_order_ledger().create_order(
        db,
        actor,
        snapshot,
        pricing,
        ShippingAddress(**req.shipping_address.model_dump()),
        req.delivery_type,
        req.payment_method,
        currency=settings.CURRENCY,
    )
    return order_to_response(order)


def resolve_order_ref(order_ref: str) -> str:
    """Accept either an order id or the customer-facing order number."""
    if not order_ref.startswith(ORDER_NUMBER_PREFIX):
        return order_ref
    try:
        return order_id_from_number(order_ref)
    except ValueError as exc:
        raise OrderNotFoundError(order_ref) from exc


async def advance_order(
    order_id: str, req: AdvanceOrderRequest, actor: Actor, db: AsyncSession
) -> OrderResponse:
    order = await get_order_ledger().advance(
        db, actor, resolve_order_ref(order_id), req.next_status
    )
    return order_to_response(order)


async def cancel_order(
    order_id: str, req: CancelOrderRequest, actor: Actor, db: AsyncSession
) -> OrderResponse:
    order = await get_order_ledger().cancel(db, actor, resolve_order_ref(order_id), req.reason)
    return order_to_response(order)


async def get_order(order_ref: str, actor: Actor, db: AsyncSession) -> OrderResponse:
    order = await get_order_ledger().get_order(db, actor, resolve_order_ref(order_ref))
    return order_to_response(order)


async def list_orders(
    actor: Actor,
    status: OrderStatus | None,
    limit: int,
    cursor: str | None,
    db: AsyncSession,
) -> OrderListResponse:
    orders = await get_order_ledger().list_orders(
        db, actor, status=status, limit=limit + 1, cursor=cursor
    )
    has_more = len(orders) > limit
    if has_more:
        orders = orders[:limit]
    return OrderListResponse(
        items=[order_to_response(o) for o in orders],
        next_cursor=orders[-1].id if has_more else None,
        has_more=has_more,
    )


async def get_tracking(order_id: str, actor: Actor, db: AsyncSession) -> TrackingHistoryResponse:
    order = await get_order_ledger().get_order(db, actor, resolve_order_ref(order_id))
    events = await _tracking.history(db, actor, order)
    return TrackingHistoryResponse(
        order_id=order.id,
        status=order.status,
        events=[_event_to_response(e) for e in events],
    )


async def record_milestone(
    order_id: str, req: MilestoneRequest, actor: Actor, db: AsyncSession
) -> TrackingEventResponse:
    order = await get_order_ledger().get_order(db, actor, resolve_order_ref(order_id))
    event = await _tracking.record_milestone(
        db,
        actor,
        order,
        req.event_type,
        location=Location(**req.location.model_dump()) if req.location else None,
        description=req.description,
    )
    return _event_to_response(event)
