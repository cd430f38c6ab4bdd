"""Cart & product repositories: raw SQL, read side plus checkout cleanup.

Transaction ownership: the caller commits.
"""

from collections.abc import Sequence
from typing import Any

from sqlalchemy import bindparam, text
from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_cart.domain.models import CartLine, Product

_LIST_CART_SQL = text("""
    SELECT user_id, product_id, quantity, added_at
    FROM cart_items
    WHERE user_id = :user_id
    ORDER BY added_at ASC, product_id ASC
""")

_CLEAR_CART_SQL = text("""
    DELETE FROM cart_items
    WHERE user_id = :user_id AND product_id IN :product_ids
""").bindparams(bindparam("product_ids", expanding=True))

_GET_PRODUCTS_SQL = text("""
    SELECT id, shop_id, name, unit, price, tax_rate_bps, stock, is_active
    FROM products
    WHERE id IN :product_ids
""").bindparams(bindparam("product_ids", expanding=True))


def _row_to_cart_line(row: Any) -> CartLine:
    return CartLine(
        user_id=str(row.user_id),
        product_id=row.product_id,
        quantity=row.quantity,
        added_at=row.added_at,
    )


def _row_to_product(row: Any) -> Product:
    return Product(
        id=row.id,
        shop_id=row.shop_id,
        name=row.name,
        unit=row.unit,
        price=row.price,
        tax_rate_bps=row.tax_rate_bps,
        stock=row.stock,
        is_active=row.is_active,
    )


class CartRepository:
    async def list_lines(self, db: AsyncSession, user_id: str) -> list[CartLine]:
        result = await db.execute(_LIST_CART_SQL, {"user_id": user_id})
        return [_row_to_cart_line(row) for row in result.fetchall()]

    async def clear_lines(
        self, db: AsyncSession, user_id: str, product_ids: Sequence[str]
    ) -> None:
        if not product_ids:
            return
        await db.execute(
            _CLEAR_CART_SQL, {"user_id": user_id, "product_ids": list(product_ids)}
        )


class ProductRepository:
    async def get_many(
        self, db: AsyncSession, product_ids: Sequence[str]
    ) -> dict[str, Product]:
        if not product_ids:
            return {}
        result = await db.execute(_GET_PRODUCTS_SQL, {"product_ids": list(product_ids)})
        return {row.id: _row_to_product(row) for row in result.fetchall()}
