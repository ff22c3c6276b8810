"""Staff order routes: entry, confirmation, rejection and item progress."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from .auth import User, role_required
from .db import get_session
from .deps.runtime import get_policy, get_stock
from .domain.order_status import OrderItemStatus, OrderType
from .domain.roles import FLOOR_STAFF, KITCHEN_STAFF, STAFF_ROLES
from .events import NotificationHub, get_hub
from .services import order_lifecycle
from .services.inventory import StockService
from .services.kitchen_routing import RoutingPolicy
from .utils.responses import ok

router = APIRouter(prefix="/api/outlet/{restaurant_id}/orders")

floor_staff = role_required(*FLOOR_STAFF)
any_staff = role_required(*STAFF_ROLES)


class OrderLine(BaseModel):
    menu_item_id: int
    quantity: int = Field(default=1)
    notes: str | None = None


class StaffOrderPayload(BaseModel):
    items: List[OrderLine]
    table_id: str | None = None
    order_type: OrderType = OrderType.DINE_IN
    notes: str | None = None


class ConfirmPayload(BaseModel):
    guest_count: int


class ReasonPayload(BaseModel):
    reason: str | None = None


class ItemStatusPayload(BaseModel):
    status: OrderItemStatus


@router.post("")
async def create_order(
    restaurant_id: str,
    payload: StaffOrderPayload,
    user: User = Depends(floor_staff),
    db: AsyncSession = Depends(get_session),
    hub: NotificationHub = Depends(get_hub),
    policy: RoutingPolicy = Depends(get_policy),
) -> dict:
    order = await order_lifecycle.create_staff_order(
        db,
        hub,
        policy,
        restaurant_id,
        [line.model_dump() for line in payload.items],
        actor=user.actor,
        table_id=payload.table_id,
        order_type=payload.order_type,
        notes=payload.notes,
    )
    return ok(order_lifecycle.serialize_order(order, policy))


@router.get("/{order_id}")
async def get_order(
    restaurant_id: str,
    order_id: str,
    user: User = Depends(any_staff),
    db: AsyncSession = Depends(get_session),
    policy: RoutingPolicy = Depends(get_policy),
) -> dict:
    order = await order_lifecycle.get_order(db, restaurant_id, order_id)
    return ok(order_lifecycle.serialize_order(order, policy))


@router.post("/{order_id}/send")
async def send_to_kitchen(
    restaurant_id: str,
    order_id: str,
    user: User = Depends(floor_staff),
    db: AsyncSession = Depends(get_session),
    hub: NotificationHub = Depends(get_hub),
    policy: RoutingPolicy = Depends(get_policy),
) -> dict:
    order = await order_lifecycle.send_to_kitchen(
        db, hub, policy, restaurant_id, order_id, actor=user.actor
    )
    return ok(order_lifecycle.serialize_order(order, policy))


@router.post("/{order_id}/confirm")
async def confirm_order(
    restaurant_id: str,
    order_id: str,
    payload: ConfirmPayload,
    user: User = Depends(floor_staff),
    db: AsyncSession = Depends(get_session),
    hub: NotificationHub = Depends(get_hub),
    policy: RoutingPolicy = Depends(get_policy),
) -> dict:
    """Confirm a guest order and release it to the kitchen."""

    order = await order_lifecycle.confirm_order(
        db, hub, policy, restaurant_id, order_id, payload.guest_count, actor=user.actor
    )
    return ok(order_lifecycle.serialize_order(order, policy))


@router.post("/{order_id}/reject")
async def reject_order(
    restaurant_id: str,
    order_id: str,
    payload: ReasonPayload,
    user: User = Depends(floor_staff),
    db: AsyncSession = Depends(get_session),
    hub: NotificationHub = Depends(get_hub),
    policy: RoutingPolicy = Depends(get_policy),
) -> dict:
    order = await order_lifecycle.reject_order(
        db, hub, policy, restaurant_id, order_id, payload.reason or "", actor=user.actor
    )
    return ok(order_lifecycle.serialize_order(order, policy))


@router.post("/{order_id}/cancel")
async def cancel_order(
    restaurant_id: str,
    order_id: str,
    payload: ReasonPayload | None = None,
    user: User = Depends(floor_staff),
    db: AsyncSession = Depends(get_session),
    hub: NotificationHub = Depends(get_hub),
    policy: RoutingPolicy = Depends(get_policy),
) -> dict:
    order = await order_lifecycle.cancel_order(
        db,
        hub,
        policy,
        restaurant_id,
        order_id,
        payload.reason if payload else None,
        actor=user.actor,
    )
    return ok(order_lifecycle.serialize_order(order, policy))


@router.post("/{order_id}/items/{item_id}/status")
async def update_item_status(
    restaurant_id: str,
    order_id: str,
    item_id: str,
    payload: ItemStatusPayload,
    user: User = Depends(role_required(*KITCHEN_STAFF, *FLOOR_STAFF)),
    db: AsyncSession = Depends(get_session),
    hub: NotificationHub = Depends(get_hub),
    stock: StockService = Depends(get_stock),
    policy: RoutingPolicy = Depends(get_policy),
) -> dict:
    """Move one item along PENDING -> ... -> SERVED."""

    order = await order_lifecycle.transition_order_item(
        db,
        hub,
        stock,
        policy,
        restaurant_id,
        order_id,
        item_id,
        payload.status,
        actor=user.actor,
    )
    return ok(order_lifecycle.serialize_order(order, policy))


@router.post("/{order_id}/serve")
async def bulk_serve(
    restaurant_id: str,
    order_id: str,
    user: User = Depends(floor_staff),
    db: AsyncSession = Depends(get_session),
    hub: NotificationHub = Depends(get_hub),
    stock: StockService = Depends(get_stock),
    policy: RoutingPolicy = Depends(get_policy),
) -> dict:
    order = await order_lifecycle.bulk_serve(
        db, hub, stock, policy, restaurant_id, order_id, actor=user.actor
    )
    return ok(order_lifecycle.serialize_order(order, policy))
