"""Order domain model: pure dataclasses, no SQLAlchemy dependency.

Orders are immutable snapshots: every transition produces a new instance via
``dataclasses.replace`` (see state_machine), never by field assignment.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from src.mp_cart.domain.models import LineItem, PriceBreakdown
from src.mp_common.enums import (
    DeliveryType,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    Role,
)


@dataclass(frozen=True)
class ShippingAddress:
    name: str
    street: str
    city: str
    state: str
    postal_code: str
    country: str = "India"
    phone: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "street": self.street,
            "city": self.city,
            "state": self.state,
            "postal_code": self.postal_code,
            "country": self.country,
            "phone": self.phone,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ShippingAddress":
        return cls(
            name=data["name"],
            street=data["street"],
            city=data["city"],
            state=data["state"],
            postal_code=data["postal_code"],
            country=data.get("country", "India"),
            phone=data.get("phone"),
        )


@dataclass(frozen=True)
class Order:
    id: str
    order_number: str
    user_id: str
    shop_id: str
    items: tuple[LineItem, ...]
    pricing: PriceBreakdown
    shipping_address: ShippingAddress
    delivery_type: DeliveryType
    payment_method: PaymentMethod
    currency: str = "INR"
    status: OrderStatus = OrderStatus.PROCESSING
    payment_status: PaymentStatus = PaymentStatus.PAYMENT_PENDING
    # Gateway references
    gateway_order_id: str | None = None
    gateway_payment_id: str | None = None
    # Cancellation
    cancel_reason: str | None = None
    cancelled_by: Role | None = None
    # Optimistic concurrency token, bumped on every persisted change
    version: int = 0
    created_at: datetime | None = None
    status_changed_at: datetime | None = None
    delivered_at: datetime | None = None

    @property
    def total(self) -> int:
        return self.pricing.total

    @property
    def is_cancelled(self) -> bool:
        return self.status is OrderStatus.CANCELLED
