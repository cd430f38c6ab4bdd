"""StockRepository: atomic PostgreSQL UPDATE ... RETURNING on products.stock.

A result of 0 rows from the decrement means the bounded check failed
(stock < quantity, or the product is disabled). Concurrent decrements on the
same product serialize on the row lock taken by UPDATE, so two reservations
can never both pass the check and overdraw stock.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

_DECREMENT_STOCK_SQL = text("""
    UPDATE products
    SET stock = stock - :quantity,
        updated_at = NOW()
    WHERE id = :product_id AND is_active AND stock >= :quantity
    RETURNING stock
""")

_INCREMENT_STOCK_SQL = text("""
    UPDATE products
    SET stock = stock + :quantity,
        updated_at = NOW()
    WHERE id = :product_id
    RETURNING stock
""")


class StockRepository:
    async def try_decrement(
        self, db: AsyncSession, product_id: str, quantity: int
    ) -> int | None:
        result = await db.execute(
            _DECREMENT_STOCK_SQL, {"product_id": product_id, "quantity": quantity}
        )
        row = result.fetchone()
        return row.stock if row else None

    async def increment(self, db: AsyncSession, product_id: str, quantity: int) -> int | None:
        result = await db.execute(
            _INCREMENT_STOCK_SQL, {"product_id": product_id, "quantity": quantity}
        )
        row = result.fetchone()
        return row.stock if row else None
