"""HTTP-level tests: routers, error envelope and request ids.

Auth and the DB session are replaced through dependency_overrides; the
services run against the in-memory repositories from the unit fixtures.
"""

import json
from unittest.mock import AsyncMock

import pytest

from src.main import app
from src.mp_cart.domain.models import CartLine, Product
from src.mp_common.database import get_db_session
from src.mp_common.datetime_utils import utc_now
from src.mp_common.enums import OrderStatus, PaymentStatus
from src.mp_common.errors import GENERIC_RETRY_MESSAGE, GatewayUnavailableError
from src.mp_common.id_generator import generate_order_number
from src.mp_gateway.auth.dependencies import get_current_actor
from src.mp_order.application import service as order_service
from src.mp_payment.api import router as payment_api
from src.mp_payment.application.service import PaymentApplicationService
from src.mp_payment.domain.models import PaymentRecord
from src.mp_tracking.application.service import TrackingEventLog
from tests.unit.fakes import (
    ADMIN,
    CUSTOMER,
    OTHER_CUSTOMER,
    VENDOR,
    InMemoryProductRepository,
    make_order,
)

ADDRESS = {
    "name": "Asha Rao",
    "street": "12 MG Road",
    "city": "Bengaluru",
    "state": "KA",
    "postal_code": "560001",
}


@pytest.fixture
def as_actor(monkeypatch, db, ledger, gateway, payment_repo, cart_repo, tracking_repo):
    """Wire the app to the in-memory ledger; returns a setter for the calling actor."""
    products = InMemoryProductRepository(
        [
            Product("prod-a", "shop-1", "Rice", "kg", 10000, 1000, 10),
            Product("prod-b", "shop-1", "Dal", "kg", 5000, 1000, 5),
        ]
    )
    monkeypatch.setattr(order_service, "_ledger", ledger)
    monkeypatch.setattr(order_service, "_carts", cart_repo)
    monkeypatch.setattr(order_service, "_products", products)
    monkeypatch.setattr(order_service, "_tracking", TrackingEventLog(repo=tracking_repo))
    monkeypatch.setattr(
        payment_api,
        "_service",
        PaymentApplicationService(ledger=ledger, gateway=gateway, payments=payment_repo),
    )

    current = {"actor": CUSTOMER}
    app.dependency_overrides[get_db_session] = lambda: db
    app.dependency_overrides[get_current_actor] = lambda: current["actor"]

    def _set(actor) -> None:
        current["actor"] = actor

    yield _set
    app.dependency_overrides.clear()


class TestCheckout:
    async def test_checkout_creates_order(self, client, as_actor, cart_repo) -> None:
        cart_repo.lines[CUSTOMER.user_id] = [
            CartLine(CUSTOMER.user_id, "prod-a", 2),
            CartLine(CUSTOMER.user_id, "prod-b", 1),
        ]
        resp = await client.post(
            "/api/v1/orders/checkout",
            json={"shipping_address": ADDRESS, "payment_method": "upi"},
        )

        assert resp.status_code == 201
        data = resp.json()["data"]
        assert data["status"] == "PROCESSING"
        assert data["payment_status"] == "PAYMENT_PENDING"
        # 25000 + 10% tax + flat delivery fee
        assert data["pricing"]["total"] == 25000 + 2500 + 5000
        assert data["pricing"]["total_display"] == "₹325.00"
        assert len(data["items"]) == 2

    async def test_empty_cart(self, client, as_actor) -> None:
        resp = await client.post(
            "/api/v1/orders/checkout",
            json={"shipping_address": ADDRESS, "payment_method": "card"},
        )
        assert resp.status_code == 422
        assert resp.json()["code"] == 2001


class TestFulfillment:
    async def test_vendor_advances(self, client, as_actor, order_repo) -> None:
        order_repo.orders["order-1"] = make_order()
        as_actor(VENDOR)
        resp = await client.post(
            "/api/v1/orders/order-1/advance", json={"next_status": "PACKED"}
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["status"] == "PACKED"

    async def test_skip_is_conflict(self, client, as_actor, order_repo) -> None:
        order_repo.orders["order-1"] = make_order()
        as_actor(VENDOR)
        resp = await client.post(
            "/api/v1/orders/order-1/advance", json={"next_status": "DELIVERED"}
        )
        assert resp.status_code == 409
        assert resp.json()["code"] == 3002

    async def test_advance_cannot_cancel(self, client, as_actor, order_repo) -> None:
        order_repo.orders["order-1"] = make_order()
        as_actor(VENDOR)
        resp = await client.post(
            "/api/v1/orders/order-1/advance", json={"next_status": "CANCELLED"}
        )
        assert resp.status_code == 422

    async def test_cancel_then_tracking(self, client, as_actor, order_repo) -> None:
        order_repo.orders["order-1"] = make_order()
        resp = await client.post("/api/v1/orders/order-1/cancel", json={"reason": "oops"})
        assert resp.status_code == 200
        assert resp.json()["data"]["status"] == "CANCELLED"

        resp = await client.get("/api/v1/orders/order-1/tracking")
        assert resp.status_code == 200
        assert [e["event_type"] for e in resp.json()["data"]["events"]] == ["CANCELLED"]

    async def test_gateway_outage_is_retryable(
        self, client, as_actor, order_repo, payment_repo, gateway
    ) -> None:
        order_repo.orders["order-1"] = make_order(
            gateway_order_id="order_gw_1",
            gateway_payment_id="pay_1",
            payment_status=PaymentStatus.PAYMENT_COMPLETED,
        )
        payment_repo.records["order-1"] = PaymentRecord(
            id="p1", order_id="order-1", user_id=CUSTOMER.user_id,
            gateway_order_id="order_gw_1", amount=29500,
        ).completed("pay_1", "sig", utc_now())
        gateway.refund.side_effect = GatewayUnavailableError("connect timeout")

        resp = await client.post("/api/v1/orders/order-1/cancel", json={})

        assert resp.status_code == 503
        assert resp.json()["message"] == GENERIC_RETRY_MESSAGE
        assert order_repo.orders["order-1"].status is OrderStatus.PROCESSING

    async def test_vendor_records_milestone(self, client, as_actor, order_repo) -> None:
        order_repo.orders["order-1"] = make_order(status=OrderStatus.SHIPPED)
        as_actor(VENDOR)
        resp = await client.post(
            "/api/v1/orders/order-1/tracking",
            json={"event_type": "DELAYED", "description": "monsoon"},
        )
        assert resp.status_code == 201
        assert resp.json()["data"]["event_type"] == "DELAYED"


class TestReads:
    async def test_stranger_is_forbidden(self, client, as_actor, order_repo) -> None:
        order_repo.orders["order-1"] = make_order()
        as_actor(OTHER_CUSTOMER)
        resp = await client.get("/api/v1/orders/order-1")
        assert resp.status_code == 403
        assert resp.json()["code"] == 3003

    async def test_missing_order(self, client, as_actor) -> None:
        resp = await client.get("/api/v1/orders/nope")
        assert resp.status_code == 404

    async def test_lookup_by_order_number(self, client, as_actor, order_repo) -> None:
        order_repo.orders["12345"] = make_order(id="12345")
        resp = await client.get(f"/api/v1/orders/{generate_order_number('12345')}")
        assert resp.status_code == 200
        assert resp.json()["data"]["id"] == "12345"

    async def test_malformed_order_number_is_not_found(self, client, as_actor) -> None:
        resp = await client.get("/api/v1/orders/DMP-UU")
        assert resp.status_code == 404
        assert resp.json()["code"] == 3001

    async def test_list_paginates(self, client, as_actor, order_repo) -> None:
        for order_id in ("1", "2", "3"):
            order_repo.orders[order_id] = make_order(id=order_id)

        resp = await client.get("/api/v1/orders", params={"limit": 2})
        page = resp.json()["data"]
        assert [o["id"] for o in page["items"]] == ["3", "2"]
        assert page["has_more"] is True
        assert page["next_cursor"] == "2"

        resp = await client.get("/api/v1/orders", params={"limit": 2, "cursor": "2"})
        page = resp.json()["data"]
        assert [o["id"] for o in page["items"]] == ["1"]
        assert page["has_more"] is False
        assert page["next_cursor"] is None

    async def test_list_orders_newest_first_across_digit_boundary(
        self, client, as_actor, order_repo
    ) -> None:
        for order_id in ("9", "10"):
            order_repo.orders[order_id] = make_order(id=order_id)

        resp = await client.get("/api/v1/orders", params={"limit": 1})
        page = resp.json()["data"]
        assert [o["id"] for o in page["items"]] == ["10"]
        assert page["next_cursor"] == "10"

        resp = await client.get("/api/v1/orders", params={"limit": 1, "cursor": "10"})
        assert [o["id"] for o in resp.json()["data"]["items"]] == ["9"]

    async def test_tracking_by_order_number(self, client, as_actor, order_repo) -> None:
        order_repo.orders["12345"] = make_order(id="12345", status=OrderStatus.SHIPPED)
        order_number = generate_order_number("12345")

        as_actor(VENDOR)
        resp = await client.post(
            f"/api/v1/orders/{order_number}/tracking",
            json={"event_type": "DELAYED", "description": "monsoon"},
        )
        assert resp.status_code == 201

        as_actor(CUSTOMER)
        resp = await client.get(f"/api/v1/orders/{order_number}/tracking")
        assert resp.status_code == 200
        assert resp.json()["data"]["order_id"] == "12345"

    async def test_request_id_is_echoed(self, client, as_actor, order_repo) -> None:
        order_repo.orders["order-1"] = make_order()
        resp = await client.get(
            "/api/v1/orders/order-1", headers={"X-Request-ID": "req_from_edge"}
        )
        assert resp.headers["X-Request-ID"] == "req_from_edge"
        assert resp.json()["request_id"] == "req_from_edge"


class TestPayments:
    async def test_intent_and_bad_signature(self, client, as_actor, order_repo, gateway) -> None:
        order_repo.orders["order-1"] = make_order()

        resp = await client.post("/api/v1/payments/order-1/intent")
        assert resp.status_code == 200
        assert resp.json()["data"]["gateway_order_id"] == "order_gw_1"

        gateway.callback_valid = False
        resp = await client.post(
            "/api/v1/payments/order-1/verify",
            json={
                "gateway_order_id": "order_gw_1",
                "gateway_payment_id": "pay_1",
                "signature": "forged",
            },
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == 4003
        assert order_repo.orders["order-1"].payment_status is PaymentStatus.PAYMENT_PENDING

    async def test_verified_payment(self, client, as_actor, order_repo) -> None:
        order_repo.orders["order-1"] = make_order()
        await client.post("/api/v1/payments/order-1/intent")
        resp = await client.post(
            "/api/v1/payments/order-1/verify",
            json={
                "gateway_order_id": "order_gw_1",
                "gateway_payment_id": "pay_1",
                "signature": "good",
            },
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["payment_status"] == "PAYMENT_COMPLETED"

        resp = await client.get("/api/v1/payments/order-1")
        assert resp.json()["data"]["status"] == "COMPLETED"

    async def test_webhook(self, client, as_actor, order_repo, gateway) -> None:
        order_repo.orders["order-1"] = make_order()
        await client.post("/api/v1/payments/order-1/intent")
        body = json.dumps(
            {
                "event": "payment.failed",
                "payload": {"payment": {"entity": {"order_id": "order_gw_1"}}},
            }
        )

        gateway.webhook_valid = False
        resp = await client.post(
            "/api/v1/webhooks/gateway", content=body,
            headers={"X-Razorpay-Signature": "forged"},
        )
        assert resp.status_code == 400

        gateway.webhook_valid = True
        resp = await client.post(
            "/api/v1/webhooks/gateway", content=body,
            headers={"X-Razorpay-Signature": "good"},
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["action"] == "payment_failed"
        assert order_repo.orders["order-1"].payment_status is PaymentStatus.PAYMENT_FAILED

    async def test_list_payments(self, client, as_actor, order_repo) -> None:
        order_repo.orders["order-1"] = make_order()
        await client.post("/api/v1/payments/order-1/intent")

        resp = await client.get("/api/v1/payments")
        assert resp.status_code == 200
        page = resp.json()["data"]
        assert [p["order_id"] for p in page["items"]] == ["order-1"]
        assert page["has_more"] is False

        as_actor(OTHER_CUSTOMER)
        resp = await client.get("/api/v1/payments")
        assert resp.json()["data"]["items"] == []

        as_actor(ADMIN)
        resp = await client.get("/api/v1/payments", params={"status": "COMPLETED"})
        assert resp.json()["data"]["items"] == []
        resp = await client.get("/api/v1/payments", params={"status": "PENDING"})
        assert [p["order_id"] for p in resp.json()["data"]["items"]] == ["order-1"]

        as_actor(VENDOR)
        resp = await client.get("/api/v1/payments")
        assert resp.status_code == 403


class TestAuth:
    async def test_missing_token(self, client) -> None:
        resp = await client.get("/api/v1/orders")
        assert resp.status_code == 401

    async def test_health(self, client) -> None:
        resp = await client.get("/health")
        assert resp.json()["status"] == "ok"

    async def test_ready_degraded_without_redis(self, client, monkeypatch) -> None:
        monkeypatch.setattr("src.main.database_ready", AsyncMock(return_value=True))
        monkeypatch.setattr("src.main.redis_ready", AsyncMock(return_value=False))
        resp = await client.get("/health/ready")
        assert resp.status_code == 200
        assert resp.json() == {"status": "degraded", "database": True, "redis": False}

    async def test_not_ready_without_database(self, client, monkeypatch) -> None:
        monkeypatch.setattr("src.main.database_ready", AsyncMock(return_value=False))
        monkeypatch.setattr("src.main.redis_ready", AsyncMock(return_value=True))
        resp = await client.get("/health/ready")
        assert resp.status_code == 503
        assert resp.json()["status"] == "unavailable"
