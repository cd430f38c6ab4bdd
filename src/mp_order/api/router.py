# src/mp_order/api/router.py
"""Order REST API: checkout, fulfillment, cancellation and tracking. All
endpoints require JWT authentication; authorization is decided by the ledger."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_authz.domain.models import Actor
from src.mp_common.database import get_db_session
from src.mp_common.enums import OrderStatus
from src.mp_common.response import ApiResponse, respond
from src.mp_gateway.auth.dependencies import get_current_actor
from src.mp_order.application import service as svc
from src.mp_order.application.schemas import (
    AdvanceOrderRequest,
    CancelOrderRequest,
    CheckoutRequest,
    MilestoneRequest,
)

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("/checkout", status_code=201)
async def checkout(
    body: CheckoutRequest,
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await svc.checkout(body, actor, db)
    return respond(request, data.model_dump(mode="json"))


@router.get("")
async def list_orders(
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    status: OrderStatus | None = Query(None, description="Filter by order status"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    cursor: str | None = Query(None, description="Pagination cursor (order ID)"),
) -> ApiResponse:
    data = await svc.list_orders(actor, status, limit, cursor, db)
    return respond(request, data.model_dump(mode="json"))


@router.get("/{order_id}")
async def get_order(
    order_id: str,
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await svc.get_order(order_id, actor, db)
    return respond(request, data.model_dump(mode="json"))


@router.post("/{order_id}/advance")
async def advance_order(
    order_id: str,
    body: AdvanceOrderRequest,
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await svc.advance_order(order_id, body, actor, db)
    return respond(request, data.model_dump(mode="json"))


@router.post("/{order_id}/cancel")
async def cancel_order(
    order_id: str,
    body: CancelOrderRequest,
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await svc.cancel_order(order_id, body, actor, db)
    return respond(request, data.model_dump(mode="json"))


@router.get("/{order_id}/tracking")
async def get_tracking(
    order_id: str,
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await svc.get_tracking(order_id, actor, db)
    return respond(request, data.model_dump(mode="json"))


@router.post("/{order_id}/tracking", status_code=201)
async def record_milestone(
    order_id: str,
    body: MilestoneRequest,
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await svc.record_milestone(order_id, body, actor, db)
    return respond(request, data.model_dump(mode="json"))
