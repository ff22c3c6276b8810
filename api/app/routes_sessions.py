"""Staff routes for table sessions: seating, bills, payment and closing."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from config import get_settings

from .auth import User, role_required
from .db import get_session
from .domain.roles import FLOOR_STAFF, MANAGEMENT, Role
from .domain.table_status import EndReason
from .events import NotificationHub, get_hub
from .services import session_lifecycle
from .utils.clock import isoformat
from .utils.responses import ok

router = APIRouter(prefix="/api/outlet/{restaurant_id}/sessions")

floor_staff = role_required(*FLOOR_STAFF)


class SeatPayload(BaseModel):
    table_id: str
    guest_count: int


class EndPayload(BaseModel):
    reason: EndReason = EndReason.MANUAL_END


class GuestCountPayload(BaseModel):
    guest_count: int
    reason: str | None = None


class PaymentPayload(BaseModel):
    """Result reported by the payment gateway."""

    success: bool
    amount: float | None = None
    transaction_id: str | None = None


@router.post("/seat")
async def seat_guests(
    restaurant_id: str,
    payload: SeatPayload,
    user: User = Depends(floor_staff),
    db: AsyncSession = Depends(get_session),
    hub: NotificationHub = Depends(get_hub),
) -> dict:
    session = await session_lifecycle.seat_guests(
        db, hub, restaurant_id, payload.table_id, payload.guest_count, actor=user.actor
    )
    return ok(session_lifecycle.serialize_session(session))


@router.post("/{session_id}/end")
async def end_session(
    restaurant_id: str,
    session_id: str,
    payload: EndPayload | None = None,
    user: User = Depends(floor_staff),
    db: AsyncSession = Depends(get_session),
    hub: NotificationHub = Depends(get_hub),
) -> dict:
    """End the session, rotate the table OTP and queue cleaning."""

    result = await session_lifecycle.end_session(
        db,
        hub,
        restaurant_id,
        session_id,
        actor=user.actor,
        reason=payload.reason if payload else EndReason.MANUAL_END,
    )
    table = result["table"]
    return ok(
        {
            "session": session_lifecycle.serialize_session(result["session"]),
            "tableStatus": table.status.value,
            "newOtp": table.current_otp,
            "otpGeneratedAt": isoformat(table.otp_generated_at),
            "cleaningRecordId": result["cleaningRecordId"],
            "completedOrders": result["completedOrders"],
            "cancelledOrders": result["cancelledOrders"],
        }
    )


@router.post("/{session_id}/guest-count")
async def update_guest_count(
    restaurant_id: str,
    session_id: str,
    payload: GuestCountPayload,
    user: User = Depends(floor_staff),
    db: AsyncSession = Depends(get_session),
) -> dict:
    session = await session_lifecycle.update_guest_count(
        db,
        restaurant_id,
        session_id,
        payload.guest_count,
        actor=user.actor,
        reason=payload.reason,
    )
    return ok(session_lifecycle.serialize_session(session))


@router.post("/{session_id}/bill")
async def request_bill(
    restaurant_id: str,
    session_id: str,
    user: User = Depends(floor_staff),
    db: AsyncSession = Depends(get_session),
    hub: NotificationHub = Depends(get_hub),
) -> dict:
    session = await session_lifecycle.request_bill(
        db, hub, restaurant_id, actor=user.actor, session_id=session_id
    )
    return ok(session_lifecycle.serialize_session(session))


@router.post("/{session_id}/payment")
async def record_payment(
    restaurant_id: str,
    session_id: str,
    payload: PaymentPayload,
    user: User = Depends(role_required(*FLOOR_STAFF)),
    db: AsyncSession = Depends(get_session),
) -> dict:
    session = await session_lifecycle.record_payment(
        db,
        restaurant_id,
        session_id,
        success=payload.success,
        amount=payload.amount,
        transaction_id=payload.transaction_id,
        actor=user.actor,
    )
    return ok(session_lifecycle.serialize_session(session))


@router.get("/{session_id}/timeline")
async def timeline(
    restaurant_id: str,
    session_id: str,
    user: User = Depends(role_required(*FLOOR_STAFF)),
    db: AsyncSession = Depends(get_session),
) -> dict:
    return ok(await session_lifecycle.session_timeline(db, restaurant_id, session_id))


@router.get("/{session_id}/summary")
async def summary(
    restaurant_id: str,
    session_id: str,
    user: User = Depends(role_required(*FLOOR_STAFF)),
    db: AsyncSession = Depends(get_session),
) -> dict:
    return ok(await session_lifecycle.session_summary(db, restaurant_id, session_id))


@router.get("/alerts/otp-help")
async def otp_help_pending(
    restaurant_id: str,
    user: User = Depends(role_required(Role.HOST, Role.WAITER, *MANAGEMENT)),
    db: AsyncSession = Depends(get_session),
) -> dict:
    """Scans that have waited too long for OTP entry."""

    scans = await session_lifecycle.scans_pending_otp_help(
        db, restaurant_id, get_settings().otp_help_delay_minutes
    )
    return ok(
        [
            {
                "scanId": s.id,
                "tableId": s.table_id,
                "sessionId": s.session_id,
                "scannedAt": isoformat(s.scanned_at),
                "otpAttempts": s.otp_attempts,
            }
            for s in scans
        ]
    )


@router.post("/alerts/otp-help/{scan_id}/notify")
async def otp_help_notify(
    restaurant_id: str,
    scan_id: str,
    user: User = Depends(role_required(Role.HOST, Role.WAITER, *MANAGEMENT)),
    db: AsyncSession = Depends(get_session),
    hub: NotificationHub = Depends(get_hub),
) -> dict:
    scan = await session_lifecycle.notify_otp_help(db, hub, restaurant_id, scan_id)
    return ok({"scanId": scan.id, "notifiedAt": isoformat(scan.otp_help_notified_at)})
