# src/mp_payment/api/router.py
"""Payment REST API: intents and checkout callbacks (JWT), gateway webhooks (HMAC)."""

from typing import Annotated

from fastapi import APIRouter, Depends, Header, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_authz.domain.models import Actor
from src.mp_common.database import get_db_session
from src.mp_common.enums import PaymentRecordStatus
from src.mp_common.errors import PaymentSignatureInvalid
from src.mp_common.response import ApiResponse, respond
from src.mp_gateway.auth.dependencies import get_current_actor
from src.mp_payment.application.schemas import VerifyPaymentRequest
from src.mp_payment.application.service import PaymentApplicationService

router = APIRouter(prefix="/payments", tags=["payments"])
webhook_router = APIRouter(prefix="/webhooks", tags=["webhooks"])

_service = PaymentApplicationService()


@router.get("")
async def list_payments(
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    status: PaymentRecordStatus | None = Query(None, description="Filter by payment status"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    cursor: str | None = Query(None, description="Pagination cursor (payment ID)"),
) -> ApiResponse:
    data = await _service.list_payments(db, actor, status, limit, cursor)
    return respond(request, data.model_dump(mode="json"))


@router.post("/{order_id}/intent")
async def create_payment_intent(
    order_id: str,
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.create_payment_intent(db, actor, order_id)
    return respond(request, data.model_dump(mode="json"))


@router.post("/{order_id}/verify")
async def verify_payment(
    order_id: str,
    body: VerifyPaymentRequest,
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.verify_payment(db, actor, order_id, body)
    if not data.verified:
        raise PaymentSignatureInvalid()
    return respond(request, data.model_dump(mode="json"))


@router.get("/{order_id}")
async def get_payment(
    order_id: str,
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_payment(db, actor, order_id)
    return respond(request, data.model_dump(mode="json"))


@webhook_router.post("/gateway")
async def gateway_webhook(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    x_razorpay_signature: Annotated[str, Header()] = "",
) -> ApiResponse:
    raw_body = await request.body()
    ack = await _service.handle_webhook(db, raw_body, x_razorpay_signature)
    if ack is None:
        raise PaymentSignatureInvalid()
    return respond(request, ack.model_dump())
