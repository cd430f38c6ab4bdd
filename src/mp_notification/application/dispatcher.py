"""NotificationDispatcher: fan-out of order lifecycle events.

dispatch() returns immediately: delivery runs in a background task and its
failures are logged, never propagated to the transition that triggered it.
"""

import asyncio
import logging

from config.settings import settings
from src.mp_common.enums import NotificationEventType
from src.mp_notification.domain.delivery import NotificationDeliveryProtocol
from src.mp_notification.domain.models import (
    NotifiableOrder,
    Notification,
    build_notification,
)
from src.mp_notification.infrastructure.redis_delivery import RedisNotificationDelivery

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    def __init__(
        self,
        delivery: NotificationDeliveryProtocol | None = None,
        frontend_url: str | None = None,
    ) -> None:
        self._delivery: NotificationDeliveryProtocol = delivery or RedisNotificationDelivery()
        self._frontend_url = frontend_url or settings.FRONTEND_URL
        self._pending: set[asyncio.Task[None]] = set()

    def dispatch(
        self, user_id: str, event_type: NotificationEventType, order: NotifiableOrder
    ) -> Notification | None:
        try:
            notification = build_notification(user_id, event_type, order, self._frontend_url)
            task = asyncio.create_task(self._deliver(notification))
        except Exception:
            logger.exception(
                "Could not schedule %s notification for order %s", event_type.value, order.id
            )
            return None
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return notification

    async def _deliver(self, notification: Notification) -> None:
        try:
            await self._delivery.deliver(notification)
        except Exception:
            logger.exception(
                "Notification delivery failed: %s -> user %s",
                notification.event_type.value,
                notification.user_id,
            )

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for in-flight deliveries (shutdown, tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending))
