"""OrderRepository Protocol: interface contract for persistence layer."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_common.enums import OrderStatus
from src.mp_order.domain.models import Order


class OrderRepositoryProtocol(Protocol):
    async def save(self, db: AsyncSession, order: Order) -> None: ...

    async def get_by_id(self, db: AsyncSession, order_id: str) -> Order | None: ...

    async def update(self, db: AsyncSession, order: Order, expected_version: int) -> None:
        """Persist ``order`` only if the stored row still has ``expected_version``.

        Raises PersistenceConflictError otherwise.
        """
        ...

    async def list_orders(
        self,
        db: AsyncSession,
        user_id: str | None,
        shop_ids: list[str] | None,
        status: OrderStatus | None,
        limit: int,
        cursor_id: str | None,
    ) -> list[Order]: ...
