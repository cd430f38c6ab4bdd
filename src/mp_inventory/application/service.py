"""InventoryReservationManager: all-or-nothing stock reservation per order.

Runs inside the caller's transaction. On a failed line every decrement made
earlier in the same call is released explicitly before the error surfaces,
so the guarantee holds even when the caller does not roll back.
"""

import logging
from collections.abc import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_cart.domain.models import LineItem
from src.mp_common.errors import InsufficientStockError
from src.mp_inventory.domain.repository import StockRepositoryProtocol
from src.mp_inventory.infrastructure.persistence import StockRepository

logger = logging.getLogger(__name__)


def _lock_order(items: Iterable[LineItem]) -> list[LineItem]:
    # Deterministic product order so two reservations never wait on each other's rows.
    return sorted(items, key=lambda item: item.product_id)


class InventoryReservationManager:
    def __init__(self, repo: StockRepositoryProtocol | None = None) -> None:
        self._repo: StockRepositoryProtocol = repo or StockRepository()

    async def reserve(
        self, db: AsyncSession, order_id: str, items: Iterable[LineItem]
    ) -> None:
        """Decrement stock for every line or for none.

        Lines are reserved in product_id order, not the caller's order.

        Raises:
            InsufficientStockError: naming the first product, in product_id order,
                that could not be reserved.
        """
        reserved: list[LineItem] = []
        for item in _lock_order(items):
            remaining = await self._repo.try_decrement(db, item.product_id, item.quantity)
            if remaining is None:
                await self._release_items(db, reserved)
                logger.info(
                    "Reservation for order %s failed on product %s (qty %d); %d line(s) rolled back",
                    order_id,
                    item.product_id,
                    item.quantity,
                    len(reserved),
                )
                raise InsufficientStockError(item.product_id, item.quantity)
            reserved.append(item)

    async def release(
        self, db: AsyncSession, order_id: str, items: Iterable[LineItem]
    ) -> None:
        """Give reserved stock back (cancellation before delivery)."""
        released = await self._release_items(db, _lock_order(items))
        logger.info("Released %d line(s) for order %s", released, order_id)

    async def _release_items(self, db: AsyncSession, items: list[LineItem]) -> int:
        released = 0
        for item in items:
            stock = await self._repo.increment(db, item.product_id, item.quantity)
            if stock is None:
                logger.warning("Product %s vanished; cannot return %d unit(s)",
                               item.product_id, item.quantity)
                continue
            released += 1
        return released
