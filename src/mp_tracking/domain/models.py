"""Tracking domain models: append-only fulfillment milestones."""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from src.mp_common.enums import OrderStatus, Role, TrackingEventType

STATUS_EVENTS: dict[OrderStatus, TrackingEventType] = {
    OrderStatus.PROCESSING: TrackingEventType.ORDER_PLACED,
    OrderStatus.PACKED: TrackingEventType.ORDER_PACKED,
    OrderStatus.SHIPPED: TrackingEventType.ORDER_SHIPPED,
    OrderStatus.OUT_FOR_DELIVERY: TrackingEventType.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED: TrackingEventType.DELIVERED,
    OrderStatus.CANCELLED: TrackingEventType.CANCELLED,
}
EVENT_STATUSES: dict[TrackingEventType, OrderStatus] = {v: k for k, v in STATUS_EVENTS.items()}

MILESTONE_EVENTS = frozenset(
    {
        TrackingEventType.DELIVERY_ATTEMPTED,
        TrackingEventType.DELAYED,
        TrackingEventType.LOCATION_UPDATED,
    }
)


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"latitude out of range: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"longitude out of range: {self.longitude}")

    def to_dict(self) -> dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "Location | None":
        if not data:
            return None
        return cls(latitude=float(data["latitude"]), longitude=float(data["longitude"]))


@dataclass(frozen=True)
class TrackingEvent:
    order_id: str
    event_type: TrackingEventType
    actor_id: str | None = None
    actor_role: Role | None = None
    location: Location | None = None
    description: str | None = None
    id: int | None = None                # BIGSERIAL, assigned on append
    created_at: datetime | None = None


def status_from_events(events: Sequence[TrackingEvent]) -> OrderStatus | None:
    """Order status implied by the latest status-bearing event (events oldest first)."""
    for event in reversed(events):
        status = EVENT_STATUSES.get(event.event_type)
        if status is not None:
            return status
    return None
