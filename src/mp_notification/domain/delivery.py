"""Delivery collaborator contract: at-least-once, best-effort, result never awaited by the core."""

from typing import Protocol

from src.mp_notification.domain.models import Notification


class NotificationDeliveryProtocol(Protocol):
    async def deliver(self, notification: Notification) -> None: ...
