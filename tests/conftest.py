"""Shared test fixtures."""

import os

# Settings() requires JWT_SECRET at import time; tests never read a real .env.
os.environ.setdefault("JWT_SECRET", "test-secret-not-for-production")
os.environ.setdefault("GATEWAY_KEY_ID", "rzp_test_key")
os.environ.setdefault("GATEWAY_KEY_SECRET", "rzp_test_secret")
os.environ.setdefault("GATEWAY_WEBHOOK_SECRET", "rzp_test_webhook_secret")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from src.main import app  # noqa: E402


@pytest.fixture
async def client() -> AsyncClient:
    """Async HTTP client for testing FastAPI endpoints."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
