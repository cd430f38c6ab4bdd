"""Tests for PaymentApplicationService: intents, callbacks and webhooks."""

import json

import pytest

from src.mp_common.enums import OrderStatus, PaymentRecordStatus, PaymentStatus
from src.mp_common.errors import (
    InvalidTransitionError,
    PaymentNotFoundError,
    UnauthorizedTransitionError,
    ValidationError,
)
from src.mp_payment.application.schemas import VerifyPaymentRequest
from src.mp_payment.application.service import PaymentApplicationService
from src.mp_payment.domain.models import PaymentRecord
from tests.unit.fakes import ADMIN, CUSTOMER, OTHER_CUSTOMER, VENDOR, make_order


@pytest.fixture
def service(ledger, gateway, payment_repo) -> PaymentApplicationService:
    return PaymentApplicationService(ledger=ledger, gateway=gateway, payments=payment_repo)


def _webhook(event: str, gateway_order_id: str = "order_gw_1") -> bytes:
    return json.dumps(
        {
            "event": event,
            "payload": {
                "payment": {
                    "entity": {
                        "id": "pay_1",
                        "order_id": gateway_order_id,
                        "error_description": "card declined",
                    }
                }
            },
        }
    ).encode()


class TestPaymentIntent:
    async def test_creates_and_reuses_gateway_order(
        self, service, db, order_repo, gateway
    ) -> None:
        order_repo.orders["order-1"] = make_order()

        intent = await service.create_payment_intent(db, CUSTOMER, "order-1")
        again = await service.create_payment_intent(db, CUSTOMER, "order-1")

        assert intent.gateway_order_id == "order_gw_1"
        assert intent.key_id == "rzp_test_key"
        assert intent.amount == 29500
        assert again == intent
        gateway.create_gateway_order.assert_awaited_once_with(29500, "INR", "DMP-1")
        assert order_repo.orders["order-1"].gateway_order_id == "order_gw_1"

    async def test_cancelled_order_cannot_be_paid(self, service, db, order_repo, gateway) -> None:
        order_repo.orders["order-1"] = make_order(status=OrderStatus.CANCELLED)
        with pytest.raises(InvalidTransitionError):
            await service.create_payment_intent(db, CUSTOMER, "order-1")
        gateway.create_gateway_order.assert_not_awaited()

    async def test_only_the_owner_pays(self, service, db, order_repo) -> None:
        order_repo.orders["order-1"] = make_order()
        with pytest.raises(UnauthorizedTransitionError):
            await service.create_payment_intent(db, OTHER_CUSTOMER, "order-1")


class TestVerifyPayment:
    @pytest.fixture(autouse=True)
    async def _intent(self, service, db, order_repo) -> None:
        order_repo.orders["order-1"] = make_order()
        await service.create_payment_intent(db, CUSTOMER, "order-1")

    async def test_valid_signature_completes_payment(
        self, service, db, order_repo, payment_repo
    ) -> None:
        req = VerifyPaymentRequest(
            gateway_order_id="order_gw_1", gateway_payment_id="pay_1", signature="sig"
        )
        result = await service.verify_payment(db, CUSTOMER, "order-1", req)

        assert result.verified
        assert result.payment_status is PaymentStatus.PAYMENT_COMPLETED
        assert payment_repo.records["order-1"].status is PaymentRecordStatus.COMPLETED

    async def test_bad_signature_changes_nothing(
        self, service, db, order_repo, gateway
    ) -> None:
        gateway.callback_valid = False
        version = order_repo.orders["order-1"].version
        req = VerifyPaymentRequest(
            gateway_order_id="order_gw_1", gateway_payment_id="pay_1", signature="forged"
        )
        result = await service.verify_payment(db, CUSTOMER, "order-1", req)

        assert not result.verified
        assert result.payment_status is PaymentStatus.PAYMENT_PENDING
        assert order_repo.orders["order-1"].version == version

    async def test_get_payment(self, service, db) -> None:
        payment = await service.get_payment(db, CUSTOMER, "order-1")
        assert payment.status is PaymentRecordStatus.PENDING
        assert payment.amount == 29500


class TestGetPayment:
    async def test_missing_record(self, service, db, order_repo) -> None:
        order_repo.orders["order-1"] = make_order()
        with pytest.raises(PaymentNotFoundError):
            await service.get_payment(db, CUSTOMER, "order-1")


class TestListPayments:
    @pytest.fixture(autouse=True)
    def _seed(self, payment_repo) -> None:
        for pid, user_id, status in [
            ("8", "cust-1", PaymentRecordStatus.COMPLETED),
            ("9", "cust-2", PaymentRecordStatus.PENDING),
            ("10", "cust-1", PaymentRecordStatus.PENDING),
            ("11", "cust-1", PaymentRecordStatus.REFUNDED),
        ]:
            payment_repo.records[f"order-{pid}"] = PaymentRecord(
                id=pid,
                order_id=f"order-{pid}",
                user_id=user_id,
                gateway_order_id=f"order_gw_{pid}",
                amount=29500,
                status=status,
            )

    async def test_customer_sees_only_own_payments(self, service, db) -> None:
        page = await service.list_payments(db, CUSTOMER)
        assert [p.id for p in page.items] == ["11", "10", "8"]
        assert page.has_more is False
        assert page.next_cursor is None

    async def test_admin_sees_all_and_filters_by_status(self, service, db) -> None:
        page = await service.list_payments(db, ADMIN)
        assert [p.id for p in page.items] == ["11", "10", "9", "8"]

        pending = await service.list_payments(db, ADMIN, status=PaymentRecordStatus.PENDING)
        assert [p.id for p in pending.items] == ["10", "9"]

    async def test_cursor_pages_past_a_digit_boundary(self, service, db) -> None:
        first = await service.list_payments(db, ADMIN, limit=2)
        assert [p.id for p in first.items] == ["11", "10"]
        assert first.has_more is True
        assert first.next_cursor == "10"

        rest = await service.list_payments(db, ADMIN, limit=2, cursor=first.next_cursor)
        assert [p.id for p in rest.items] == ["9", "8"]
        assert rest.has_more is False

    async def test_vendor_cannot_list_payments(self, service, db) -> None:
        with pytest.raises(UnauthorizedTransitionError):
            await service.list_payments(db, VENDOR)


class TestWebhook:
    @pytest.fixture(autouse=True)
    async def _intent(self, service, db, order_repo) -> None:
        order_repo.orders["order-1"] = make_order()
        await service.create_payment_intent(db, CUSTOMER, "order-1")

    async def test_bad_signature_returns_none(self, service, db, gateway, order_repo) -> None:
        gateway.webhook_valid = False
        assert await service.handle_webhook(db, _webhook("payment.failed"), "forged") is None
        assert order_repo.orders["order-1"].payment_status is PaymentStatus.PAYMENT_PENDING

    async def test_payment_failed(self, service, db, order_repo, payment_repo) -> None:
        ack = await service.handle_webhook(db, _webhook("payment.failed"), "sig")

        assert ack.action == "payment_failed"
        assert order_repo.orders["order-1"].payment_status is PaymentStatus.PAYMENT_FAILED
        assert payment_repo.records["order-1"].failure_reason == "card declined"

    async def test_replayed_failure_is_acknowledged(self, service, db) -> None:
        await service.handle_webhook(db, _webhook("payment.failed"), "sig")
        ack = await service.handle_webhook(db, _webhook("payment.failed"), "sig")
        assert ack.action == "payment_failed"

    async def test_failure_after_capture_is_stale(self, service, db, ledger, order_repo) -> None:
        await ledger.mark_payment_completed(db, "order-1", "order_gw_1", "pay_1", "sig")
        ack = await service.handle_webhook(db, _webhook("payment.failed"), "sig")

        assert ack.action == "stale"
        assert order_repo.orders["order-1"].payment_status is PaymentStatus.PAYMENT_COMPLETED

    async def test_other_events_are_ignored(self, service, db) -> None:
        ack = await service.handle_webhook(db, _webhook("payment.captured"), "sig")
        assert ack.action == "ignored"
        assert ack.event == "payment.captured"

    async def test_unknown_gateway_order(self, service, db) -> None:
        ack = await service.handle_webhook(db, _webhook("payment.failed", "order_gw_x"), "sig")
        assert ack.action == "unknown_order"

    @pytest.mark.parametrize("body", [b"not json", b"[1, 2]"])
    async def test_malformed_body(self, service, db, body) -> None:
        with pytest.raises(ValidationError):
            await service.handle_webhook(db, body, "sig")

    @pytest.mark.parametrize(
        "body",
        [
            {"event": "payment.failed", "payload": None},
            {"event": "payment.failed", "payload": {"payment": "pay_1"}},
            {"event": "payment.failed", "payload": {"payment": {"entity": [1]}}},
            {"event": "payment.failed", "payload": {"payment": {"entity": {"order_id": 7}}}},
        ],
    )
    async def test_non_object_payload_is_rejected(self, service, db, order_repo, body) -> None:
        with pytest.raises(ValidationError):
            await service.handle_webhook(db, json.dumps(body).encode(), "sig")
        assert order_repo.orders["order-1"].payment_status is PaymentStatus.PAYMENT_PENDING
