"""TrackingEventRepository: INSERT and SELECT only; rows are never updated or deleted."""

import json
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_common.datetime_utils import as_utc
from src.mp_common.enums import Role, TrackingEventType
from src.mp_tracking.domain.models import Location, TrackingEvent

_INSERT_EVENT_SQL = text("""
    INSERT INTO tracking_events
        (order_id, event_type, actor_id, actor_role, location, description)
    VALUES
        (:order_id, :event_type, :actor_id, :actor_role, CAST(:location AS JSONB), :description)
    RETURNING id, order_id, event_type, actor_id, actor_role, location, description, created_at
""")

_LIST_EVENTS_SQL = text("""
    SELECT id, order_id, event_type, actor_id, actor_role, location, description, created_at
    FROM tracking_events
    WHERE order_id = :order_id
    ORDER BY id ASC
""")


def _row_to_event(row: Any) -> TrackingEvent:
    location = row.location
    if isinstance(location, str):
        location = json.loads(location)
    return TrackingEvent(
        id=row.id,
        order_id=row.order_id,
        event_type=TrackingEventType(row.event_type),
        actor_id=row.actor_id,
        actor_role=Role(row.actor_role) if row.actor_role else None,
        location=Location.from_dict(location),
        description=row.description,
        created_at=as_utc(row.created_at),
    )


class TrackingEventRepository:
    async def append(self, db: AsyncSession, event: TrackingEvent) -> TrackingEvent:
        result = await db.execute(
            _INSERT_EVENT_SQL,
            {
                "order_id": event.order_id,
                "event_type": event.event_type.value,
                "actor_id": event.actor_id,
                "actor_role": event.actor_role.value if event.actor_role else None,
                "location": json.dumps(event.location.to_dict()) if event.location else None,
                "description": event.description,
            },
        )
        return _row_to_event(result.fetchone())

    async def list_by_order(self, db: AsyncSession, order_id: str) -> list[TrackingEvent]:
        result = await db.execute(_LIST_EVENTS_SQL, {"order_id": order_id})
        return [_row_to_event(row) for row in result.fetchall()]
