"""Tests for TrackingEventLog: append-only history and milestones."""

import pytest

from src.mp_common.enums import OrderStatus, TrackingEventType
from src.mp_common.errors import (
    InvalidTransitionError,
    UnauthorizedTransitionError,
    ValidationError,
)
from src.mp_tracking.application.service import TrackingEventLog
from src.mp_tracking.domain.models import Location, TrackingEvent, status_from_events
from tests.unit.fakes import CUSTOMER, OTHER_CUSTOMER, VENDOR, make_order


@pytest.fixture
def log(tracking_repo) -> TrackingEventLog:
    return TrackingEventLog(repo=tracking_repo)


class TestAppend:
    async def test_ids_are_monotonic(self, log, db) -> None:
        first = await log.append(db, TrackingEvent("o1", TrackingEventType.ORDER_PLACED))
        second = await log.append(db, TrackingEvent("o1", TrackingEventType.ORDER_PACKED))
        assert first.id < second.id
        events = await log.list_by_order(db, "o1")
        assert [e.event_type for e in events] == [
            TrackingEventType.ORDER_PLACED,
            TrackingEventType.ORDER_PACKED,
        ]

    async def test_best_effort_swallows_and_rolls_back(self, log, db, tracking_repo) -> None:
        async def broken(db, event):
            raise RuntimeError("insert failed")

        tracking_repo.append = broken
        result = await log.append_best_effort(
            db, TrackingEvent("o1", TrackingEventType.ORDER_PLACED)
        )
        assert result is None
        db.rollback.assert_awaited()


class TestHistory:
    async def test_owner_reads_history(self, log, db) -> None:
        order = make_order()
        await log.append(db, TrackingEvent(order.id, TrackingEventType.ORDER_PLACED))
        history = await log.history(db, CUSTOMER, order)
        assert len(history) == 1

    async def test_stranger_cannot_read(self, log, db) -> None:
        with pytest.raises(UnauthorizedTransitionError):
            await log.history(db, OTHER_CUSTOMER, make_order())


class TestMilestones:
    async def test_vendor_records_location(self, log, db) -> None:
        event = await log.record_milestone(
            db,
            VENDOR,
            make_order(status=OrderStatus.SHIPPED),
            TrackingEventType.LOCATION_UPDATED,
            location=Location(12.97, 77.59),
        )
        assert event.actor_id == VENDOR.user_id
        assert event.location == Location(12.97, 77.59)

    async def test_status_events_are_ledger_only(self, log, db) -> None:
        with pytest.raises(ValidationError):
            await log.record_milestone(
                db, VENDOR, make_order(), TrackingEventType.ORDER_SHIPPED
            )

    async def test_customer_cannot_record(self, log, db) -> None:
        with pytest.raises(UnauthorizedTransitionError):
            await log.record_milestone(db, CUSTOMER, make_order(), TrackingEventType.DELAYED)

    @pytest.mark.parametrize("status", [OrderStatus.DELIVERED, OrderStatus.CANCELLED])
    async def test_no_milestones_after_terminal(self, log, db, status) -> None:
        with pytest.raises(InvalidTransitionError):
            await log.record_milestone(
                db, VENDOR, make_order(status=status), TrackingEventType.DELAYED
            )


class TestStatusFromEvents:
    def test_latest_status_event_wins(self) -> None:
        events = [
            TrackingEvent("o1", TrackingEventType.ORDER_PLACED),
            TrackingEvent("o1", TrackingEventType.ORDER_PACKED),
            TrackingEvent("o1", TrackingEventType.DELAYED),
            TrackingEvent("o1", TrackingEventType.PAYMENT_COMPLETED),
        ]
        assert status_from_events(events) is OrderStatus.PACKED

    def test_empty(self) -> None:
        assert status_from_events([]) is None


class TestLocation:
    def test_out_of_range(self) -> None:
        with pytest.raises(ValueError):
            Location(91.0, 0.0)
