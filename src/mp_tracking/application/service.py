"""TrackingEventLog: append-only order history.

``append`` is the single mutating operation. Ledger transitions go through
``append_best_effort``: the transition is already committed, so a failed
append is logged and dropped rather than surfaced.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_authz.domain.models import Actor, Operation, OrderLike
from src.mp_authz.domain.policy import AuthorizationPolicy
from src.mp_common.enums import OrderStatus, TrackingEventType
from src.mp_common.errors import InvalidTransitionError, ValidationError
from src.mp_tracking.domain.models import MILESTONE_EVENTS, Location, TrackingEvent
from src.mp_tracking.domain.repository import TrackingEventRepositoryProtocol
from src.mp_tracking.infrastructure.persistence import TrackingEventRepository

logger = logging.getLogger(__name__)

_TERMINAL = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})


class TrackingEventLog:
    def __init__(
        self,
        repo: TrackingEventRepositoryProtocol | None = None,
        policy: AuthorizationPolicy | None = None,
    ) -> None:
        self._repo: TrackingEventRepositoryProtocol = repo or TrackingEventRepository()
        self._policy = policy or AuthorizationPolicy()

    async def append(self, db: AsyncSession, event: TrackingEvent) -> TrackingEvent:
        try:
            stored = await self._repo.append(db, event)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return stored

    async def append_best_effort(
        self, db: AsyncSession, event: TrackingEvent
    ) -> TrackingEvent | None:
        try:
            return await self.append(db, event)
        except Exception:
            logger.exception(
                "Tracking append failed for order %s (%s)", event.order_id, event.event_type.value
            )
            return None

    async def list_by_order(self, db: AsyncSession, order_id: str) -> list[TrackingEvent]:
        """Events for one order, oldest first."""
        return await self._repo.list_by_order(db, order_id)

    async def history(
        self, db: AsyncSession, actor: Actor, order: OrderLike
    ) -> list[TrackingEvent]:
        self._policy.authorize(Operation.VIEW, actor, order)
        return await self.list_by_order(db, order.id)

    async def record_milestone(
        self,
        db: AsyncSession,
        actor: Actor,
        order: OrderLike,
        event_type: TrackingEventType,
        location: Location | None = None,
        description: str | None = None,
    ) -> TrackingEvent:
        """Add a non-transition milestone (delay, delivery attempt, location ping).

        Status-bearing events are only ever written by the order ledger.
        """
        self._policy.authorize(Operation.RECORD_MILESTONE, actor, order)
        if event_type not in MILESTONE_EVENTS:
            raise ValidationError(f"{event_type.value} is not a milestone event")
        if order.status in _TERMINAL:
            raise InvalidTransitionError(order.id, order.status.value, event_type.value)
        return await self.append(
            db,
            TrackingEvent(
                order_id=order.id,
                event_type=event_type,
                actor_id=actor.user_id,
                actor_role=actor.role,
                location=location,
                description=description,
            ),
        )
