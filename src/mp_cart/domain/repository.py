"""Repository Protocols for the cart context."""

from collections.abc import Sequence
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_cart.domain.models import CartLine, Product


class CartRepositoryProtocol(Protocol):
    async def list_lines(self, db: AsyncSession, user_id: str) -> list[CartLine]: ...

    async def clear_lines(
        self, db: AsyncSession, user_id: str, product_ids: Sequence[str]
    ) -> None: ...


class ProductRepositoryProtocol(Protocol):
    async def get_many(
        self, db: AsyncSession, product_ids: Sequence[str]
    ) -> dict[str, Product]: ...
