"""Guest-facing table routes reached by scanning the table's QR code.

No login is required; a guest proves presence at the table by entering its
3-digit OTP before ordering.
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from config import get_settings

from .db import get_session
from .deps.runtime import client_ip, get_policy
from .domain.assistance import AssistanceType
from .domain.roles import GUEST_ACTOR
from .events import NotificationHub, get_hub
from .services import assistance as assistance_service
from .services import order_lifecycle, session_lifecycle
from .services.kitchen_routing import RoutingPolicy
from .utils.responses import ok

router = APIRouter(prefix="/g/{restaurant_id}/tables/{table_id}")


class ScanPayload(BaseModel):
    device_fingerprint: str | None = None


class VerifyOtpPayload(BaseModel):
    otp: str
    guest_count: int
    device_fingerprint: str | None = None


class OrderLine(BaseModel):
    """Single line item for a guest order."""

    menu_item_id: int
    quantity: int = Field(default=1)
    notes: str | None = None


class OrderPayload(BaseModel):
    """Payload containing the items being ordered."""

    items: List[OrderLine]
    notes: str | None = None


class AssistancePayload(BaseModel):
    type: AssistanceType
    message: str | None = None


@router.post("/scan")
async def scan(
    restaurant_id: str,
    table_id: str,
    request: Request,
    payload: ScanPayload | None = None,
    db: AsyncSession = Depends(get_session),
    hub: NotificationHub = Depends(get_hub),
) -> dict:
    """Record a QR scan and return the table's guest view."""

    session, created = await session_lifecycle.record_scan(
        db,
        hub,
        restaurant_id,
        table_id,
        device_fingerprint=payload.device_fingerprint if payload else None,
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    view = await session_lifecycle.get_guest_view(db, restaurant_id, table_id)
    return ok({**view, "created": created})


@router.post("/verify-otp")
async def verify_otp(
    restaurant_id: str,
    table_id: str,
    payload: VerifyOtpPayload,
    db: AsyncSession = Depends(get_session),
    hub: NotificationHub = Depends(get_hub),
) -> dict:
    session = await session_lifecycle.verify_otp(
        db,
        hub,
        restaurant_id,
        table_id,
        payload.otp,
        payload.guest_count,
        device_fingerprint=payload.device_fingerprint,
    )
    return ok(
        {
            "sessionId": session.id,
            "phase": session.phase.value,
            "guestCount": session.guest_count,
            "otpVerified": session.otp_verified,
        }
    )


@router.get("/session")
async def session_status(
    restaurant_id: str, table_id: str, db: AsyncSession = Depends(get_session)
) -> dict:
    return ok(await session_lifecycle.get_guest_view(db, restaurant_id, table_id))


@router.post("/order")
async def place_order(
    restaurant_id: str,
    table_id: str,
    payload: OrderPayload,
    db: AsyncSession = Depends(get_session),
    hub: NotificationHub = Depends(get_hub),
    policy: RoutingPolicy = Depends(get_policy),
) -> dict:
    """Place a QR order for the table's verified party."""

    order = await order_lifecycle.place_guest_order(
        db,
        hub,
        policy,
        restaurant_id,
        table_id,
        [line.model_dump() for line in payload.items],
        requires_confirmation=get_settings().qr_order_requires_confirmation,
        notes=payload.notes,
        actor=GUEST_ACTOR,
    )
    return ok(order_lifecycle.serialize_order(order, policy))


@router.get("/orders")
async def list_orders(
    restaurant_id: str,
    table_id: str,
    db: AsyncSession = Depends(get_session),
    policy: RoutingPolicy = Depends(get_policy),
) -> dict:
    orders = await order_lifecycle.list_table_orders(db, restaurant_id, table_id)
    return ok([order_lifecycle.serialize_order(o, policy) for o in orders])


@router.delete("/orders/{order_id}/items/{item_id}")
async def remove_item(
    restaurant_id: str,
    table_id: str,
    order_id: str,
    item_id: str,
    db: AsyncSession = Depends(get_session),
    hub: NotificationHub = Depends(get_hub),
    policy: RoutingPolicy = Depends(get_policy),
) -> dict:
    """Drop a line the staff have not confirmed yet."""

    order = await order_lifecycle.remove_pending_item(
        db,
        hub,
        policy,
        restaurant_id,
        table_id,
        order_id,
        item_id,
        actor=GUEST_ACTOR,
    )
    return ok(order_lifecycle.serialize_order(order, policy))


@router.post("/bill")
async def request_bill(
    restaurant_id: str,
    table_id: str,
    db: AsyncSession = Depends(get_session),
    hub: NotificationHub = Depends(get_hub),
) -> dict:
    session = await session_lifecycle.request_bill(
        db, hub, restaurant_id, actor=GUEST_ACTOR, table_id=table_id
    )
    return ok(session_lifecycle.serialize_session(session))


@router.post("/assistance")
async def create_assistance(
    restaurant_id: str,
    table_id: str,
    payload: AssistancePayload,
    db: AsyncSession = Depends(get_session),
    hub: NotificationHub = Depends(get_hub),
) -> dict:
    request = await assistance_service.create_request(
        db, hub, restaurant_id, table_id, payload.type, payload.message
    )
    return ok(assistance_service.serialize_request(request))


@router.get("/assistance")
async def list_assistance(
    restaurant_id: str, table_id: str, db: AsyncSession = Depends(get_session)
) -> dict:
    requests = await assistance_service.list_for_table(db, restaurant_id, table_id)
    return ok([assistance_service.serialize_request(r) for r in requests])


@router.post("/assistance/{request_id}/cancel")
async def cancel_assistance(
    restaurant_id: str,
    table_id: str,
    request_id: str,
    db: AsyncSession = Depends(get_session),
) -> dict:
    request = await assistance_service.cancel_by_guest(
        db, restaurant_id, table_id, request_id
    )
    return ok(assistance_service.serialize_request(request))
