# src/mp_order/infrastructure/persistence.py
"""OrderRepository: raw SQL persistence implementation."""

import json
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_cart.domain.models import LineItem, PriceBreakdown
from src.mp_common.datetime_utils import as_utc
from src.mp_common.enums import (
    DeliveryType,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    Role,
)
from src.mp_common.errors import PersistenceConflictError
from src.mp_order.domain.models import Order, ShippingAddress

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_INSERT_ORDER_SQL = text("""
    INSERT INTO orders (id, order_number, user_id, shop_id, items,
        subtotal, tax, shipping, total, currency, shipping_address,
        delivery_type, payment_method, status, payment_status, version,
        created_at, status_changed_at)
    VALUES (:id, :order_number, :user_id, :shop_id, CAST(:items AS JSONB),
        :subtotal, :tax, :shipping, :total, :currency, CAST(:shipping_address AS JSONB),
        :delivery_type, :payment_method, :status, :payment_status, :version,
        COALESCE(CAST(:created_at AS TIMESTAMPTZ), NOW()),
        COALESCE(CAST(:created_at AS TIMESTAMPTZ), NOW()))
""")

# Compare-and-swap on version: 0 rows means another writer got there first.
_UPDATE_ORDER_SQL = text("""
    UPDATE orders
    SET status = :status, payment_status = :payment_status,
        gateway_order_id = :gateway_order_id, gateway_payment_id = :gateway_payment_id,
        cancel_reason = :cancel_reason, cancelled_by = :cancelled_by,
        status_changed_at = :status_changed_at, delivered_at = :delivered_at,
        version = :version, updated_at = NOW()
    WHERE id = :id AND version = :expected_version
    RETURNING id
""")

_SELECT_COLUMNS = """
    id, order_number, user_id, shop_id, items,
    subtotal, tax, shipping, total, currency, shipping_address,
    delivery_type, payment_method, status, payment_status,
    gateway_order_id, gateway_payment_id, cancel_reason, cancelled_by,
    version, created_at, status_changed_at, delivered_at
"""

_GET_ORDER_BY_ID_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM orders WHERE id = :id
""")

# Ids are decimal snowflakes: shorter means older, so order by (length, text).
_LIST_ORDERS_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM orders
    WHERE (CAST(:user_id AS TEXT) IS NULL OR user_id = :user_id)
      AND (CAST(:shop_ids_csv AS TEXT) IS NULL
           OR shop_id = ANY(string_to_array(CAST(:shop_ids_csv AS TEXT), ',')))
      AND (CAST(:status AS TEXT) IS NULL OR status = :status)
      AND (CAST(:cursor_id AS TEXT) IS NULL
           OR (length(id), id) < (length(CAST(:cursor_id AS TEXT)), CAST(:cursor_id AS TEXT)))
    ORDER BY length(id) DESC, id DESC
    LIMIT :limit
""")


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _json(value: Any) -> Any:
    # asyncpg hands JSONB back as text unless a codec is registered
    return json.loads(value) if isinstance(value, str) else value


def _row_to_order(row: Any) -> Order:
    """Convert a DB result row to an Order domain object."""
    return Order(
        id=row.id,
        order_number=row.order_number,
        user_id=row.user_id,
        shop_id=row.shop_id,
        items=tuple(LineItem.from_dict(item) for item in _json(row.items)),
        pricing=PriceBreakdown(
            subtotal=row.subtotal, tax=row.tax, shipping=row.shipping, total=row.total
        ),
        currency=row.currency,
        shipping_address=ShippingAddress.from_dict(_json(row.shipping_address)),
        delivery_type=DeliveryType(row.delivery_type),
        payment_method=PaymentMethod(row.payment_method),
        status=OrderStatus(row.status),
        payment_status=PaymentStatus(row.payment_status),
        gateway_order_id=row.gateway_order_id,
        gateway_payment_id=row.gateway_payment_id,
        cancel_reason=row.cancel_reason,
        cancelled_by=Role(row.cancelled_by) if row.cancelled_by else None,
        version=row.version,
        created_at=as_utc(row.created_at),
        status_changed_at=as_utc(row.status_changed_at),
        delivered_at=as_utc(row.delivered_at),
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class OrderRepository:
    """Concrete implementation of OrderRepositoryProtocol using raw SQL."""

    async def save(self, db: AsyncSession, order: Order) -> None:
        await db.execute(
            _INSERT_ORDER_SQL,
            {
                "id": order.id,
                "order_number": order.order_number,
                "user_id": order.user_id,
                "shop_id": order.shop_id,
                "items": json.dumps([item.to_dict() for item in order.items]),
                "subtotal": order.pricing.subtotal,
                "tax": order.pricing.tax,
                "shipping": order.pricing.shipping,
                "total": order.pricing.total,
                "currency": order.currency,
                "shipping_address": json.dumps(order.shipping_address.to_dict()),
                "delivery_type": order.delivery_type.value,
                "payment_method": order.payment_method.value,
                "status": order.status.value,
                "payment_status": order.payment_status.value,
                "version": order.version,
                "created_at": order.created_at,
            },
        )

    async def get_by_id(self, db: AsyncSession, order_id: str) -> Order | None:
        result = await db.execute(_GET_ORDER_BY_ID_SQL, {"id": order_id})
        row = result.fetchone()
        return _row_to_order(row) if row else None

    async def update(self, db: AsyncSession, order: Order, expected_version: int) -> None:
        result = await db.execute(
            _UPDATE_ORDER_SQL,
            {
                "id": order.id,
                "status": order.status.value,
                "payment_status": order.payment_status.value,
                "gateway_order_id": order.gateway_order_id,
                "gateway_payment_id": order.gateway_payment_id,
                "cancel_reason": order.cancel_reason,
                "cancelled_by": order.cancelled_by.value if order.cancelled_by else None,
                "status_changed_at": order.status_changed_at,
                "delivered_at": order.delivered_at,
                "version": order.version,
                "expected_version": expected_version,
            },
        )
        if result.fetchone() is None:
            raise PersistenceConflictError("order", order.id)

    async def list_orders(
        self,
        db: AsyncSession,
        user_id: str | None,
        shop_ids: list[str] | None,
        status: OrderStatus | None,
        limit: int,
        cursor_id: str | None,
    ) -> list[Order]:
        # shop_ids == [] (vendor without shops) must match nothing, not everything
        if shop_ids is not None and not shop_ids:
            return []
        result = await db.execute(
            _LIST_ORDERS_SQL,
            {
                "user_id": user_id,
                "shop_ids_csv": ",".join(shop_ids) if shop_ids else None,
                "status": status.value if status else None,
                "cursor_id": cursor_id,
                "limit": limit,
            },
        )
        return [_row_to_order(row) for row in result.fetchall()]
