"""Unit-test fixtures: in-memory repositories wired into an OrderLedger."""

from unittest.mock import AsyncMock

import pytest

from src.mp_inventory.application.service import InventoryReservationManager
from src.mp_notification.application.dispatcher import NotificationDispatcher
from src.mp_order.application.ledger import OrderLedger
from src.mp_tracking.application.service import TrackingEventLog
from tests.unit.fakes import (
    FakeGateway,
    InMemoryCartRepository,
    InMemoryOrderRepository,
    InMemoryPaymentRepository,
    InMemoryStockRepository,
    InMemoryTrackingRepository,
    RecordingDelivery,
)


@pytest.fixture
def db() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def stock_repo() -> InMemoryStockRepository:
    return InMemoryStockRepository({"prod-a": 10, "prod-b": 5})


@pytest.fixture
def order_repo() -> InMemoryOrderRepository:
    return InMemoryOrderRepository()


@pytest.fixture
def payment_repo() -> InMemoryPaymentRepository:
    return InMemoryPaymentRepository()


@pytest.fixture
def cart_repo() -> InMemoryCartRepository:
    return InMemoryCartRepository()


@pytest.fixture
def tracking_repo() -> InMemoryTrackingRepository:
    return InMemoryTrackingRepository()


@pytest.fixture
def delivery() -> RecordingDelivery:
    return RecordingDelivery()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def dispatcher(delivery: RecordingDelivery) -> NotificationDispatcher:
    return NotificationDispatcher(delivery=delivery, frontend_url="https://shop.test")


@pytest.fixture
def ledger(
    gateway: FakeGateway,
    order_repo: InMemoryOrderRepository,
    payment_repo: InMemoryPaymentRepository,
    stock_repo: InMemoryStockRepository,
    cart_repo: InMemoryCartRepository,
    tracking_repo: InMemoryTrackingRepository,
    dispatcher: NotificationDispatcher,
) -> OrderLedger:
    return OrderLedger(
        gateway=gateway,
        repo=order_repo,
        payments=payment_repo,
        inventory=InventoryReservationManager(repo=stock_repo),
        carts=cart_repo,
        tracking=TrackingEventLog(repo=tracking_repo),
        notifier=dispatcher,
    )
