"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from config.settings import settings
from src.mp_common.database import database_ready, engine
from src.mp_common.errors import AppError
from src.mp_common.redis_client import close_redis, redis_ready
from src.mp_common.response import error_response, request_id_of
from src.mp_gateway.middleware.request_log import RequestLogMiddleware
from src.mp_order.api.router import router as order_router
from src.mp_order.application.service import get_notification_dispatcher, reset_order_ledger
from src.mp_payment.api.router import router as payment_router
from src.mp_payment.api.router import webhook_router
from src.mp_payment.application.gateway_provider import install_gateway
from src.mp_payment.infrastructure.razorpay_gateway import build_gateway

logger = logging.getLogger("mp.app")

APP_VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: require PostgreSQL, ping Redis, install the payment gateway.
    Shutdown: flush pending notifications, then release gateway, engine and Redis."""
    if not await database_ready():
        raise RuntimeError("PostgreSQL is unreachable; refusing to start")
    await redis_ready()
    gateway = build_gateway(settings)
    install_gateway(gateway)
    reset_order_ledger()
    logger.info("%s %s started", settings.APP_NAME, APP_VERSION)
    yield
    await get_notification_dispatcher().drain()
    install_gateway(None)
    reset_order_ledger()
    await gateway.aclose()
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version=APP_VERSION,
    lifespan=lifespan,
)


app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    resp = error_response(exc.code, exc.public_message, request_id_of(request))
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


app.include_router(order_router, prefix="/api/v1")
app.include_router(payment_router, prefix="/api/v1")
app.include_router(webhook_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": APP_VERSION}


@app.get("/health/ready")
async def readiness() -> JSONResponse:
    """503 when PostgreSQL is down; Redis only degrades notifications."""
    db_ok = await database_ready()
    redis_ok = await redis_ready()
    if not db_ok:
        status = "unavailable"
    elif not redis_ok:
        status = "degraded"
    else:
        status = "ok"
    return JSONResponse(
        status_code=200 if db_ok else 503,
        content={"status": status, "database": db_ok, "redis": redis_ok},
    )
