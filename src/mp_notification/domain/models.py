"""Notification records and the (event type -> title/body) templates."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from src.mp_common.datetime_utils import utc_now
from src.mp_common.enums import NotificationEventType, OrderStatus

_STATUS_COPY: dict[OrderStatus, tuple[str, str]] = {
    OrderStatus.PACKED: ("Order Packed", "Your order #{number} has been packed!"),
    OrderStatus.SHIPPED: ("Order Shipped", "Your order #{number} has been shipped!"),
    OrderStatus.OUT_FOR_DELIVERY: (
        "Order Out for Delivery",
        "Your order #{number} is out for delivery!",
    ),
    OrderStatus.DELIVERED: ("Order Delivered", "Your order #{number} has been delivered!"),
}

_EVENT_COPY: dict[NotificationEventType, tuple[str, str]] = {
    NotificationEventType.ORDER_PLACED: (
        "New Order Placed",
        "Your order #{number} has been placed successfully!",
    ),
    NotificationEventType.ORDER_CANCELLED: (
        "Order Cancelled",
        "Your order #{number} has been cancelled.",
    ),
    NotificationEventType.PAYMENT_COMPLETED: (
        "Payment Received",
        "We received your payment for order #{number}.",
    ),
    NotificationEventType.PAYMENT_FAILED: (
        "Payment Failed",
        "Payment for order #{number} failed. You can try again from your orders page.",
    ),
    NotificationEventType.ORDER_REFUNDED: (
        "Order Refunded",
        "Your payment for order #{number} has been refunded.",
    ),
}


class NotifiableOrder(Protocol):
    id: str
    order_number: str
    status: OrderStatus


@dataclass(frozen=True)
class Notification:
    user_id: str
    event_type: NotificationEventType
    title: str
    body: str
    payload: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "event_type": self.event_type.value,
            "title": self.title,
            "body": self.body,
            "payload": self.payload,
            "created_at": self.created_at.isoformat(),
        }


def build_notification(
    user_id: str,
    event_type: NotificationEventType,
    order: NotifiableOrder,
    frontend_url: str,
) -> Notification:
    if event_type is NotificationEventType.ORDER_STATUS_CHANGED:
        title, body = _STATUS_COPY.get(
            order.status, ("Order Update", "Your order #{number} status has been updated!")
        )
    else:
        title, body = _EVENT_COPY[event_type]

    return Notification(
        user_id=user_id,
        event_type=event_type,
        title=title,
        body=body.format(number=order.order_number),
        payload={
            "order_id": order.id,
            "order_number": order.order_number,
            "status": order.status.value,
            "action_url": f"{frontend_url.rstrip('/')}/orders/{order.order_number}",
        },
    )
