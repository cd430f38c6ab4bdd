# src/mp_order/application/schemas.py
from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from src.mp_common.enums import DeliveryType, OrderStatus, PaymentMethod, TrackingEventType


class ShippingAddressIn(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    street: str = Field(min_length=1, max_length=200)
    city: str = Field(min_length=1, max_length=100)
    state: str = Field(min_length=1, max_length=100)
    postal_code: str = Field(min_length=3, max_length=12)
    country: str = "India"
    phone: str | None = None


class CheckoutRequest(BaseModel):
    shipping_address: ShippingAddressIn
    delivery_type: DeliveryType = DeliveryType.DELIVERY
    payment_method: PaymentMethod


class AdvanceOrderRequest(BaseModel):
    next_status: OrderStatus

    @field_validator("next_status")
    @classmethod
    def not_cancelled(cls, v: OrderStatus) -> OrderStatus:
        if v is OrderStatus.CANCELLED:
            raise ValueError("use the cancel endpoint to cancel an order")
        return v


class CancelOrderRequest(BaseModel):
    reason: str | None = Field(None, max_length=500)


class LineItemResponse(BaseModel):
    product_id: str
    name: str
    unit: str
    quantity: int
    unit_price: int
    tax_rate_bps: int
    item_total: int
    tax_amount: int


class PricingResponse(BaseModel):
    subtotal: int
    tax: int
    shipping: int
    total: int
    currency: str
    total_display: str


class OrderResponse(BaseModel):
    id: str
    order_number: str
    user_id: str
    shop_id: str
    items: list[LineItemResponse]
    pricing: PricingResponse
    shipping_address: ShippingAddressIn
    delivery_type: DeliveryType
    payment_method: PaymentMethod
    status: OrderStatus
    payment_status: str
    gateway_order_id: str | None = None
    cancel_reason: str | None = None
    cancelled_by: str | None = None
    created_at: datetime | None = None
    status_changed_at: datetime | None = None
    delivered_at: datetime | None = None


class OrderListResponse(BaseModel):
    items: list[OrderResponse]
    next_cursor: str | None
    has_more: bool


class LocationIn(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class MilestoneRequest(BaseModel):
    event_type: TrackingEventType
    location: LocationIn | None = None
    description: str | None = Field(None, max_length=500)


class TrackingEventResponse(BaseModel):
    id: int | None
    event_type: TrackingEventType
    actor_id: str | None = None
    actor_role: str | None = None
    location: LocationIn | None = None
    description: str | None = None
    created_at: datetime | None = None


class TrackingHistoryResponse(BaseModel):
    order_id: str
    status: OrderStatus
    events: list[TrackingEventResponse]
