"""RazorpayGateway: PaymentGatewayProtocol over the Razorpay REST API (httpx).

Constructed once at startup by ``build_gateway`` and shared afterwards; the
only mutable state is the refund dedupe cache: a bounded LRU of recent results
guarded by per-key locks that vanish once no refund is in flight. An evicted
entry falls back to the gateway's own X-Refund-Idempotency dedupe.
"""

import asyncio
import logging
import weakref
from collections import OrderedDict
from typing import Any

import httpx

from config.settings import Settings
from src.mp_common.errors import GatewayRejectedError, GatewayUnavailableError
from src.mp_payment.domain.models import RefundResult
from src.mp_payment.domain.signature import callback_signature, sign, signatures_match

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("mp.security")

_RETRYABLE_STATUSES = frozenset({408, 429})


class RazorpayGateway:
    def __init__(
        self,
        key_id: str,
        key_secret: str,
        webhook_secret: str = "",
        base_url: str = "https://api.razorpay.com/v1",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
        refund_cache_size: int = 1024,
    ) -> None:
        self.key_id = key_id
        self._key_secret = key_secret
        self._webhook_secret = webhook_secret
        self._client = client or httpx.AsyncClient(
            base_url=base_url, auth=(key_id, key_secret), timeout=timeout
        )
        self._refunds: OrderedDict[tuple[str, str], RefundResult] = OrderedDict()
        self._refund_cache_size = refund_cache_size
        self._refund_locks: weakref.WeakValueDictionary[tuple[str, str], asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _get_or_create_lock(self, key: tuple[str, str]) -> asyncio.Lock:
        lock = self._refund_locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._refund_locks[key] = lock
        return lock

    def _remember_refund(self, key: tuple[str, str], result: RefundResult) -> None:
        self._refunds[key] = result
        self._refunds.move_to_end(key)
        while len(self._refunds) > self._refund_cache_size:
            self._refunds.popitem(last=False)

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    async def create_gateway_order(
        self, amount_minor: int, currency: str, receipt_id: str
    ) -> str:
        data = await self._post(
            "/orders",
            {"amount": amount_minor, "currency": currency, "receipt": receipt_id},
        )
        logger.info("Gateway order %s created for receipt %s", data["id"], receipt_id)
        return str(data["id"])

    # ------------------------------------------------------------------
    # Signature verification (local, no network)
    # ------------------------------------------------------------------

    def verify_callback(
        self, gateway_order_id: str, gateway_payment_id: str, signature: str
    ) -> bool:
        expected = callback_signature(self._key_secret, gateway_order_id, gateway_payment_id)
        if signatures_match(expected, signature):
            return True
        security_logger.warning(
            "Callback signature mismatch for gateway order %s payment %s",
            gateway_order_id,
            gateway_payment_id,
        )
        return False

    def verify_webhook(self, raw_body: bytes, signature: str) -> bool:
        if not self._webhook_secret:
            security_logger.warning("Webhook received but no webhook secret is configured")
            return False
        if signatures_match(sign(self._webhook_secret, raw_body), signature):
            return True
        security_logger.warning("Webhook signature mismatch (%d byte body)", len(raw_body))
        return False

    # ------------------------------------------------------------------
    # Refunds
    # ------------------------------------------------------------------

    async def refund(
        self, gateway_payment_id: str, amount_minor: int, idempotency_key: str
    ) -> RefundResult:
        key = (gateway_payment_id, idempotency_key)
        async with self._get_or_create_lock(key):
            cached = self._refunds.get(key)
            if cached is not None:
                self._refunds.move_to_end(key)
                if cached.amount != amount_minor:
                    logger.warning(
                        "Refund replay for %s asked for %d, returning original %d",
                        gateway_payment_id,
                        amount_minor,
                        cached.amount,
                    )
                return cached

            data = await self._post(
                f"/payments/{gateway_payment_id}/refund",
                {"amount": amount_minor, "receipt": idempotency_key},
                headers={"X-Refund-Idempotency": idempotency_key},
            )
            result = RefundResult(
                refund_id=str(data["id"]),
                gateway_payment_id=gateway_payment_id,
                amount=int(data.get("amount", amount_minor)),
            )
            self._remember_refund(key, result)
            logger.info(
                "Refund %s issued for payment %s (%d)",
                result.refund_id,
                gateway_payment_id,
                result.amount,
            )
            return result

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _post(
        self, path: str, payload: dict[str, Any], headers: dict[str, str] | None = None
    ) -> dict[str, Any]:
        try:
            response = await self._client.post(path, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("Gateway call %s failed: %s", path, exc)
            raise GatewayUnavailableError(type(exc).__name__) from exc

        status = response.status_code
        if status >= 500 or status in _RETRYABLE_STATUSES:
            logger.warning("Gateway call %s returned HTTP %d", path, status)
            raise GatewayUnavailableError(f"HTTP {status}")
        if status >= 400:
            logger.error("Gateway rejected %s: HTTP %d %s", path, status, response.text)
            raise GatewayRejectedError(f"HTTP {status}")
        return response.json()

    async def aclose(self) -> None:
        await self._client.aclose()


def build_gateway(settings: Settings) -> RazorpayGateway:
    """Construct the adapter from configuration. Fails fast on missing credentials."""
    if not settings.GATEWAY_KEY_ID or not settings.GATEWAY_KEY_SECRET:
        raise RuntimeError("GATEWAY_KEY_ID and GATEWAY_KEY_SECRET must be set")
    return RazorpayGateway(
        key_id=settings.GATEWAY_KEY_ID,
        key_secret=settings.GATEWAY_KEY_SECRET,
        webhook_secret=settings.GATEWAY_WEBHOOK_SECRET,
        base_url=settings.GATEWAY_BASE_URL,
        timeout=settings.GATEWAY_TIMEOUT_SECONDS,
        refund_cache_size=settings.GATEWAY_REFUND_CACHE_SIZE,
    )
