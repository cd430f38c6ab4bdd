"""StockRepository Protocol: the only writer of product stock counters."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession


class StockRepositoryProtocol(Protocol):
    async def try_decrement(
        self, db: AsyncSession, product_id: str, quantity: int
    ) -> int | None:
        """Atomic bounded decrement. Returns remaining stock, or None if it would go negative."""
        ...

    async def increment(self, db: AsyncSession, product_id: str, quantity: int) -> int | None:
        """Return stock. Returns the new stock, or None if the product row is gone."""
        ...
