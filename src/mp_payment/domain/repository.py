"""PaymentRepository Protocol: interface contract for persistence layer."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_common.enums import PaymentRecordStatus
from src.mp_payment.domain.models import PaymentRecord


class PaymentRepositoryProtocol(Protocol):
    async def save(self, db: AsyncSession, record: PaymentRecord) -> None: ...

    async def get_by_order_id(self, db: AsyncSession, order_id: str) -> PaymentRecord | None: ...

    async def get_by_gateway_order_id(
        self, db: AsyncSession, gateway_order_id: str
    ) -> PaymentRecord | None: ...

    async def update(self, db: AsyncSession, record: PaymentRecord) -> None: ...

    async def list_payments(
        self,
        db: AsyncSession,
        user_id: str | None,
        status: PaymentRecordStatus | None,
        limit: int,
        cursor_id: str | None,
    ) -> list[PaymentRecord]: ...
