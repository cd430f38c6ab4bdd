"""TrackingEventRepository Protocol: append and read, nothing else."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_tracking.domain.models import TrackingEvent


class TrackingEventRepositoryProtocol(Protocol):
    async def append(self, db: AsyncSession, event: TrackingEvent) -> TrackingEvent: ...

    async def list_by_order(self, db: AsyncSession, order_id: str) -> list[TrackingEvent]: ...
