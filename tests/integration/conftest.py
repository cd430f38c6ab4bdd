"""Integration-test fixtures.

All integration tests share one session-scoped event loop so the
module-level async engine pool, created at import time, stays bound to a
live loop for the whole run.

Requires PostgreSQL with migrations applied (alembic upgrade head); the
tests are skipped when the database is unreachable. The payment gateway is
the real adapter talking to an httpx.MockTransport.
"""

import json
import uuid

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from config.settings import settings
from src.main import app
from src.mp_common.database import async_session_factory
from src.mp_gateway.auth.jwt_handler import create_access_token
from src.mp_order.application.service import reset_order_ledger
from src.mp_payment.application.gateway_provider import install_gateway
from src.mp_payment.infrastructure.razorpay_gateway import RazorpayGateway


def _gateway_handler(request: httpx.Request) -> httpx.Response:
    if request.url.path.endswith("/orders"):
        return httpx.Response(200, json={"id": f"order_{uuid.uuid4().hex[:14]}"})
    if request.url.path.endswith("/refund"):
        amount = json.loads(request.content)["amount"]
        return httpx.Response(
            200, json={"id": f"rfnd_{uuid.uuid4().hex[:14]}", "amount": amount}
        )
    return httpx.Response(404)


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client() -> AsyncClient:  # type: ignore[override]
    """Session-scoped async HTTP client: keeps the engine pool alive."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture(loop_scope="session", scope="session", autouse=True)
async def gateway() -> RazorpayGateway:
    """ASGITransport skips the lifespan, so install the gateway here."""
    gw = RazorpayGateway(
        key_id=settings.GATEWAY_KEY_ID,
        key_secret=settings.GATEWAY_KEY_SECRET,
        webhook_secret=settings.GATEWAY_WEBHOOK_SECRET,
        client=httpx.AsyncClient(
            transport=httpx.MockTransport(_gateway_handler), base_url="https://gateway.test/v1"
        ),
    )
    install_gateway(gw)
    reset_order_ledger()
    yield gw
    install_gateway(None)
    reset_order_ledger()
    await gw.aclose()


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def marketplace() -> dict[str, str]:
    """Seed one customer, one vendor with a shop, and a product with stock 5."""
    uid = uuid.uuid4().hex[:8]
    ids = {
        "customer": f"cust_{uid}",
        "vendor": f"vend_{uid}",
        "shop": f"shop_{uid}",
        "product": f"prod_{uid}",
    }
    try:
        async with async_session_factory() as db:
            await db.execute(
                text("""
                    INSERT INTO users (id, email, name, role) VALUES
                        (:customer, :customer_email, 'Test Customer', 'CUSTOMER'),
                        (:vendor, :vendor_email, 'Test Vendor', 'VENDOR')
                """),
                {
                    "customer": ids["customer"],
                    "customer_email": f"{ids['customer']}@example.com",
                    "vendor": ids["vendor"],
                    "vendor_email": f"{ids['vendor']}@example.com",
                },
            )
            await db.execute(
                text("INSERT INTO shops (id, owner_id, name) VALUES (:shop, :vendor, 'Test Shop')"),
                {"shop": ids["shop"], "vendor": ids["vendor"]},
            )
            await db.execute(
                text("""
                    INSERT INTO products (id, shop_id, name, unit, price, tax_rate_bps, stock)
                    VALUES (:product, :shop, 'Basmati Rice', 'kg', 10000, 1000, 5)
                """),
                {"product": ids["product"], "shop": ids["shop"]},
            )
            await db.commit()
    except (OSError, SQLAlchemyError) as exc:
        pytest.skip(f"PostgreSQL not available: {exc}")

    ids["customer_token"] = create_access_token(ids["customer"])
    ids["vendor_token"] = create_access_token(ids["vendor"])
    return ids
