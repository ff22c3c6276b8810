"""Table sessions from QR scan to vacating.

A session is opened by the first QR scan of a free table (phase CREATED)
or by staff seating a party (phase OTP_VERIFIED). Guests must enter the
table's 3-digit OTP before ordering. Ending a session is the only way a
table leaves OCCUPIED: it moves the table to CLEANING, rotates the OTP so
the departing party can never reuse it, and enqueues a cleaning record.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta
from typing import Any, Dict, List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.assistance import OPEN_ASSISTANCE, AssistanceStatus
from ..domain.errors import Conflict, Forbidden, InvalidTransition, ValidationError
from ..domain.order_status import AWAITING_KITCHEN, OrderItemStatus, OrderStatus
from ..domain.roles import Actor, Role
from ..domain.state_machine import (
    apply_assistance_status,
    apply_item_status,
    apply_order_status,
    apply_phase,
    apply_table_status,
)
from ..domain.table_status import (
    SEATABLE_TABLE,
    EndReason,
    OtpAction,
    SessionPhase,
    SessionStatus,
    TableStatus,
)
from ..events import DomainEvent, EventType, NotificationHub
from ..models_tenant import (
    CleaningRecord,
    GuestCountHistory,
    OtpHistory,
    QrScanEvent,
    Table,
    TableSession,
)
from ..repos_sqlalchemy import assistance_repo_sql, orders_repo_sql, tables_repo_sql
from ..routes_metrics import sessions_ended_total
from ..utils.clock import as_utc, isoformat, minutes_between, utcnow
from .activity import log_activity
from .otp import rotate_otp

logger = logging.getLogger(__name__)

OTP_RE = re.compile(r"^\d{3}$")


def _table_event(table: Table, **extra: Any) -> DomainEvent:
    return DomainEvent(
        type=EventType.TABLE_STATUS_CHANGED,
        restaurant_id=table.restaurant_id,
        table_id=table.id,
        payload={
            "tableNumber": table.table_number,
            "status": TableStatus(table.status).value,
            **extra,
        },
    )


def _publish(hub: NotificationHub | None, events: List[DomainEvent]) -> None:
    if hub is not None and events:
        hub.publish_all(events)


def _require_active(session: TableSession) -> None:
    if session.status != SessionStatus.ACTIVE:
        raise Conflict("session is no longer active")


def _open_session(table: Table, now: datetime, **fields: Any) -> TableSession:
    if TableStatus(table.status) not in SEATABLE_TABLE:
        raise InvalidTransition("table", table.status, TableStatus.OCCUPIED)
    apply_table_status(table, TableStatus.OCCUPIED)
    return TableSession(
        restaurant_id=table.restaurant_id,
        table_id=table.id,
        status=SessionStatus.ACTIVE,
        created_at=now,
        **fields,
    )


async def _load_session(
    db: AsyncSession,
    restaurant_id: str,
    *,
    session_id: str | None = None,
    table_id: str | None = None,
) -> TableSession:
    if session_id is not None:
        return await tables_repo_sql.get_session(db, restaurant_id, session_id)
    return await tables_repo_sql.get_active_session(db, restaurant_id, table_id)


async def _record_scan_once(
    db: AsyncSession,
    restaurant_id: str,
    table_id: str,
    device_fingerprint: str | None,
    ip_address: str | None,
    user_agent: str | None,
) -> tuple[TableSession, bool, List[DomainEvent]]:
    now = utcnow()
    events: List[DomainEvent] = []
    async with db.begin():
        table = await tables_repo_sql.get_table(db, restaurant_id, table_id)
        session = await tables_repo_sql.find_active_session(db, restaurant_id, table_id)
        created = session is None
        if created:
            session = _open_session(
                table, now, phase=SessionPhase.CREATED, qr_scanned_at=now
            )
            db.add(session)
            await db.flush()
            events.append(_table_event(table, sessionId=session.id))
        elif session.qr_scanned_at is None:
            session.qr_scanned_at = now
        db.add(
            QrScanEvent(
                restaurant_id=restaurant_id,
                table_id=table_id,
                session_id=session.id,
                device_fingerprint=device_fingerprint,
                ip_address=ip_address,
                user_agent=user_agent,
                scanned_at=now,
            )
        )
    return session, created, events


async def record_scan(
    db: AsyncSession,
    hub: NotificationHub | None,
    restaurant_id: str,
    table_id: str,
    *,
    device_fingerprint: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> tuple[TableSession, bool]:
    """Record a QR scan, opening a session if the table has none.

    Scanning a table that already has an ACTIVE session attaches the scan to
    that session; ``qr_scanned_at`` keeps the first scan's time. Returns the
    session and whether it was created by this scan.
    """

    try:
        session, created, events = await _record_scan_once(
            db, restaurant_id, table_id, device_fingerprint, ip_address, user_agent
        )
    except IntegrityError:
        # Lost the race to open the session; the winner's row is now visible.
        logger.info("concurrent scan opened session for table=%s; retrying", table_id)
        session, created, events = await _record_scan_once(
            db, restaurant_id, table_id, device_fingerprint, ip_address, user_agent
        )
    if created:
        logger.info("session %s opened by scan table=%s", session.id, table_id)
    _publish(hub, events)
    return session, created


async def verify_otp(
    db: AsyncSession,
    hub: NotificationHub | None,
    restaurant_id: str,
    table_id: str,
    code: str,
    guest_count: int,
    *,
    device_fingerprint: str | None = None,
) -> TableSession:
    """Check ``code`` against the table's OTP and enable ordering.

    A wrong code leaves the session untouched; only the scan's attempt
    counter is incremented. A party that already verified keeps its guest
    count when another device joins.
    """

    code = (code or "").strip()
    if not OTP_RE.match(code):
        raise ValidationError("OTP must be exactly 3 digits")
    if guest_count is None or guest_count < 1:
        raise ValidationError("guest count must be at least 1")
    now = utcnow()
    events: List[DomainEvent] = []
    async with db.begin():
        table = await tables_repo_sql.get_table(db, restaurant_id, table_id)
        session = await tables_repo_sql.get_active_session(db, restaurant_id, table_id)
        scan = _latest_open_scan(
            await tables_repo_sql.list_scans(db, session.id), device_fingerprint
        )
        if scan is not None:
            scan.otp_attempts += 1
        matched = table.current_otp is not None and code == table.current_otp
        if matched:
            if scan is not None:
                scan.otp_entered_at = now
            if not session.otp_verified:
                apply_phase(session, SessionPhase.OTP_VERIFIED)
                session.otp_verified = True
                session.otp_verified_at = now
                session.guest_count = guest_count
                if session.seated_at is None:
                    session.seated_at = now
                events.append(
                    DomainEvent(
                        type=EventType.SESSION_ALERT,
                        restaurant_id=restaurant_id,
                        table_id=table_id,
                        payload={
                            "alert": "GUEST_SEATED",
                            "sessionId": session.id,
                            "tableNumber": table.table_number,
                            "guestCount": guest_count,
                        },
                    )
                )
            db.add(
                OtpHistory(
                    restaurant_id=restaurant_id,
                    table_id=table.id,
                    otp=table.current_otp,
                    action=OtpAction.USED,
                    created_at=now,
                )
            )
    if not matched:
        logger.info("otp mismatch restaurant=%s table=%s", restaurant_id, table_id)
        raise Forbidden("incorrect OTP")
    _publish(hub, events)
    return session


def _latest_open_scan(
    scans: List[QrScanEvent], device_fingerprint: str | None
) -> QrScanEvent | None:
    open_scans = [s for s in scans if s.otp_entered_at is None]
    if device_fingerprint:
        own = [s for s in open_scans if s.device_fingerprint == device_fingerprint]
        open_scans = own or open_scans
    return open_scans[-1] if open_scans else None


async def seat_guests(
    db: AsyncSession,
    hub: NotificationHub | None,
    restaurant_id: str,
    table_id: str,
    guest_count: int,
    *,
    actor: Actor,
) -> TableSession:
    """Staff seating: opens an already verified session for a walk-in party."""

    if guest_count is None or guest_count < 1:
        raise ValidationError("guest count must be at least 1")
    now = utcnow()
    async with db.begin():
        table = await tables_repo_sql.get_table(db, restaurant_id, table_id)
        if await tables_repo_sql.find_active_session(db, restaurant_id, table_id):
            raise Conflict("table already has an active session")
        session = _open_session(
            table,
            now,
            phase=SessionPhase.OTP_VERIFIED,
            otp_verified=True,
            otp_verified_at=now,
            seated_at=now,
            guest_count=guest_count,
            waiter_id=actor.id if actor.role is Role.WAITER else None,
        )
        db.add(session)
        await db.flush()
        log_activity(
            db,
            restaurant_id,
            actor,
            "SESSION_SEATED",
            entity_type="session",
            entity_id=session.id,
            details={"guestCount": guest_count, "table": table.table_number},
        )
    _publish(hub, [_table_event(table, sessionId=session.id)])
    return session


async def update_guest_count(
    db: AsyncSession,
    restaurant_id: str,
    session_id: str,
    new_count: int,
    *,
    actor: Actor,
    reason: str | None = None,
) -> TableSession:
    """Correct the party size; every change is kept in the history."""

    if new_count is None or new_count < 1:
        raise ValidationError("guest count must be at least 1")
    now = utcnow()
    async with db.begin():
        session = await tables_repo_sql.get_session(db, restaurant_id, session_id)
        _require_active(session)
        if session.guest_count != new_count:
            db.add(
                GuestCountHistory(
                    restaurant_id=restaurant_id,
                    session_id=session.id,
                    previous_count=session.guest_count,
                    new_count=new_count,
                    changed_by=actor.id,
                    reason=reason,
                    created_at=now,
                )
            )
            session.guest_count = new_count
            log_activity(
                db,
                restaurant_id,
                actor,
                "GUEST_COUNT_UPDATED",
                entity_type="session",
                entity_id=session.id,
                description=reason,
                details={"newCount": new_count},
            )
    return session


async def request_bill(
    db: AsyncSession,
    hub: NotificationHub | None,
    restaurant_id: str,
    *,
    actor: Actor,
    session_id: str | None = None,
    table_id: str | None = None,
) -> TableSession:
    """Move the party to BILL_REQUESTED and alert floor staff.

    Asking again while the bill is already requested is a no-op.
    """

    now = utcnow()
    async with db.begin():
        session = await _load_session(
            db, restaurant_id, session_id=session_id, table_id=table_id
        )
        table = await tables_repo_sql.get_table(db, restaurant_id, session.table_id)
        _require_active(session)
        if actor.is_guest and not session.otp_verified:
            raise Forbidden("verify the table OTP first")
        changed = apply_phase(session, SessionPhase.BILL_REQUESTED)
        if changed:
            session.bill_requested_at = now
            log_activity(
                db,
                restaurant_id,
                actor,
                "BILL_REQUESTED",
                entity_type="session",
                entity_id=session.id,
            )
    if changed:
        _publish(
            hub,
            [
                DomainEvent(
                    type=EventType.BILL_REQUEST,
                    restaurant_id=restaurant_id,
                    table_id=session.table_id,
                    payload={
                        "sessionId": session.id,
                        "tableNumber": table.table_number,
                    },
                )
            ],
        )
    return session


async def record_payment(
    db: AsyncSession,
    restaurant_id: str,
    session_id: str,
    *,
    success: bool,
    amount: float | None = None,
    transaction_id: str | None = None,
    actor: Actor,
) -> TableSession:
    """Apply a payment gateway result to the session.

    A failed payment changes nothing and is only logged; the party can
    retry. Ending the session stays a separate staff action.
    """

    now = utcnow()
    async with db.begin():
        session = await tables_repo_sql.get_session(db, restaurant_id, session_id)
        _require_active(session)
        if success:
            if session.payment_completed_at is None:
                session.payment_completed_at = now
            session.payment_reference = transaction_id
        log_activity(
            db,
            restaurant_id,
            actor,
            "PAYMENT_COMPLETED" if success else "PAYMENT_FAILED",
            entity_type="session",
            entity_id=session.id,
            details={"amount": amount, "transactionId": transaction_id},
        )
    if not success:
        logger.warning(
            "payment failed restaurant=%s session=%s txn=%s",
            restaurant_id,
            session_id,
            transaction_id,
        )
    return session


def _settle_orders(orders, now) -> tuple[List[Any], List[Any]]:
    completed, cancelled = [], []
    for order in orders:
        status = OrderStatus(order.status)
        if status is OrderStatus.SERVED:
            apply_order_status(order, OrderStatus.COMPLETED, now)
            completed.append(order)
        elif status in AWAITING_KITCHEN:
            apply_order_status(order, OrderStatus.CANCELLED, now)
            order.cancellation_reason = "session ended"
            for item in order.items:
                if item.status != OrderItemStatus.CANCELLED:
                    apply_item_status(
                        item, OrderItemStatus.CANCELLED, now, order_cancellation=True
                    )
            cancelled.append(order)
    return completed, cancelled


async def end_session(
    db: AsyncSession,
    hub: NotificationHub | None,
    restaurant_id: str,
    session_id: str,
    *,
    actor: Actor,
    reason: EndReason = EndReason.MANUAL_END,
) -> Dict[str, Any]:
    """End an ACTIVE session and hand the table to housekeeping.

    In one transaction: closes the session (CANCELLED for a no-show,
    COMPLETED otherwise), moves the table to CLEANING, issues a fresh OTP
    that differs from the previous one, enqueues a cleaning record, completes
    served orders, cancels orders that never reached the kitchen and closes
    open assistance requests.
    """

    reason = EndReason(reason)
    now = utcnow()
    async with db.begin():
        session = await tables_repo_sql.get_session(db, restaurant_id, session_id)
        if session.status != SessionStatus.ACTIVE:
            raise Conflict("session has already ended")
        table = await tables_repo_sql.get_table(db, restaurant_id, session.table_id)

        session.status = (
            SessionStatus.CANCELLED if reason is EndReason.NO_SHOW else SessionStatus.COMPLETED
        )
        apply_phase(session, SessionPhase.ENDED)
        session.end_reason = reason
        session.vacated_at = now
        if reason is EndReason.PAYMENT_COMPLETED and session.payment_completed_at is None:
            session.payment_completed_at = now

        apply_table_status(table, TableStatus.CLEANING)
        rotate_otp(db, table, OtpAction.CHANGED_AFTER_SESSION, now, actor.id)
        cleaning = CleaningRecord(
            restaurant_id=restaurant_id,
            table_id=table.id,
            session_id=session.id,
            requested_at=now,
        )
        db.add(cleaning)

        orders = await orders_repo_sql.list_session_orders(db, session.id)
        completed, cancelled = _settle_orders(orders, now)
        for request in await assistance_repo_sql.list_for_session(db, session.id):
            if AssistanceStatus(request.status) in OPEN_ASSISTANCE:
                apply_assistance_status(request, AssistanceStatus.CANCELLED, now)
        await db.flush()
        log_activity(
            db,
            restaurant_id,
            actor,
            "SESSION_ENDED",
            entity_type="session",
            entity_id=session.id,
            description=reason.value,
            details={
                "completedOrders": len(completed),
                "cancelledOrders": len(cancelled),
            },
        )
    sessions_ended_total.labels(reason=reason.value).inc()
    logger.info(
        "session %s ended restaurant=%s table=%s reason=%s",
        session.id,
        restaurant_id,
        table.table_number,
        reason.value,
    )
    events = [
        DomainEvent(
            type=EventType.SESSION_ENDED,
            restaurant_id=restaurant_id,
            table_id=table.id,
            payload={
                "sessionId": session.id,
                "tableNumber": table.table_number,
                "reason": reason.value,
            },
        ),
        _table_event(table),
    ]
    for order in completed:
        events.append(
            DomainEvent(
                type=EventType.ORDER_COMPLETED,
                restaurant_id=restaurant_id,
                table_id=table.id,
                payload={
                    "orderId": order.id,
                    "orderNumber": order.order_number,
                    "sessionId": session.id,
                },
            )
        )
    _publish(hub, events)
    return {
        "session": session,
        "table": table,
        "cleaningRecordId": cleaning.id,
        "completedOrders": [o.id for o in completed],
        "cancelledOrders": [o.id for o in cancelled],
    }


async def get_guest_view(
    db: AsyncSession, restaurant_id: str, table_id: str
) -> Dict[str, Any]:
    """What a guest device may know about the table; never the OTP."""

    async with db.begin():
        table = await tables_repo_sql.get_table(db, restaurant_id, table_id)
        session = await tables_repo_sql.find_active_session(db, restaurant_id, table_id)
    view: Dict[str, Any] = {
        "tableId": table.id,
        "tableNumber": table.table_number,
        "tableStatus": TableStatus(table.status).value,
        "session": None,
    }
    if session is not None:
        view["session"] = {
            "id": session.id,
            "phase": SessionPhase(session.phase).value,
            "otpVerified": session.otp_verified,
            "guestCount": session.guest_count,
        }
    return view


def _first_served_at(orders) -> datetime | None:
    served = [
        as_utc(i.served_at) for o in orders for i in o.items if i.served_at is not None
    ]
    return min(served) if served else None


def _whole_minutes(start, end) -> int | None:
    value = minutes_between(start, end)
    return None if value is None else int(value // 1)


async def session_timeline(
    db: AsyncSession, restaurant_id: str, session_id: str
) -> List[Dict[str, Any]]:
    """All recorded moments of a session in chronological order."""

    async with db.begin():
        session = await tables_repo_sql.get_session(db, restaurant_id, session_id)
        scans = await tables_repo_sql.list_scans(db, session.id)
        counts = await tables_repo_sql.guest_count_history(db, session.id)
        orders = await orders_repo_sql.list_session_orders(db, session.id)
        cleanings = await tables_repo_sql.cleaning_for_session(db, session.id)

    timeline: List[Dict[str, Any]] = []

    def add(ts, event, phase, details=None, user=None):
        if ts is not None:
            timeline.append(
                {
                    "timestamp": as_utc(ts),
                    "event": event,
                    "phase": phase,
                    "details": details,
                    "userId": user,
                }
            )

    for scan in scans:
        add(scan.scanned_at, "QR_SCANNED", SessionPhase.CREATED.value)
        add(
            scan.otp_entered_at,
            "OTP_VERIFIED",
            SessionPhase.OTP_VERIFIED.value,
            f"attempts: {scan.otp_attempts}",
        )
    if not scans:
        add(session.created_at, "SESSION_CREATED", SessionPhase.CREATED.value)
    add(
        session.seated_at,
        "GUEST_SEATED",
        SessionPhase.OTP_VERIFIED.value,
        f"{session.guest_count} guests" if session.guest_count else None,
        session.waiter_id,
    )
    for change in counts:
        details = f"{change.previous_count} -> {change.new_count}"
        if change.reason:
            details = f"{details}: {change.reason}"
        add(change.created_at, "GUEST_COUNT_UPDATED", None, details, change.changed_by)
    for order in orders:
        add(
            order.placed_at,
            "ORDER_PLACED",
            SessionPhase.ORDERING.value,
            f"{order.order_number}, {len(order.items)} items",
            order.created_by,
        )
        ordering = SessionPhase.ORDERING.value
        add(
            order.confirmed_at,
            "ORDER_CONFIRMED",
            ordering,
            order.order_number,
            order.confirmed_by,
        )
        add(
            order.cancelled_at,
            "ORDER_CANCELLED",
            ordering,
            order.rejection_reason or order.cancellation_reason,
        )
        for item in order.items:
            add(item.preparing_at, "ITEM_PREPARING", ordering, item.name_snapshot)
            add(item.ready_at, "ITEM_READY", ordering, item.name_snapshot)
            add(item.served_at, "ITEM_SERVED", ordering, item.name_snapshot)
    add(session.bill_requested_at, "BILL_REQUESTED", SessionPhase.BILL_REQUESTED.value)
    add(
        session.payment_completed_at,
        "PAYMENT_COMPLETED",
        SessionPhase.BILL_REQUESTED.value,
        session.payment_reference,
    )
    add(
        session.vacated_at,
        "SESSION_ENDED",
        SessionPhase.ENDED.value,
        session.end_reason.value if session.end_reason else None,
    )
    for record in cleanings:
        add(record.requested_at, "CLEANING_REQUESTED", SessionPhase.ENDED.value)
        add(
            record.cleaned_at,
            "CLEANING_COMPLETED",
            SessionPhase.ENDED.value,
            f"{record.duration_minutes} minutes"
            if record.duration_minutes is not None
            else None,
            record.cleaned_by,
        )

    timeline.sort(key=lambda e: e["timestamp"])
    for entry in timeline:
        entry["timestamp"] = isoformat(entry["timestamp"])
    return timeline


async def session_summary(
    db: AsyncSession, restaurant_id: str, session_id: str, now: datetime | None = None
) -> Dict[str, Any]:
    """Session totals and the duration of each phase in whole minutes."""

    now = now or utcnow()
    async with db.begin():
        session = await tables_repo_sql.get_session(db, restaurant_id, session_id)
        table = await tables_repo_sql.get_table(db, restaurant_id, session.table_id)
        orders = await orders_repo_sql.list_session_orders(db, session.id)

    live_orders = [o for o in orders if o.status != OrderStatus.CANCELLED]
    total = sum(
        i.price_snapshot * i.quantity
        for o in live_orders
        for i in o.items
        if i.status != OrderItemStatus.CANCELLED
    )
    first_food = _first_served_at(orders)
    started = session.seated_at or session.qr_scanned_at or session.created_at
    return {
        "id": session.id,
        "tableId": session.table_id,
        "tableNumber": table.table_number,
        "status": SessionStatus(session.status).value,
        "phase": SessionPhase(session.phase).value,
        "guestCount": session.guest_count,
        "endReason": session.end_reason.value if session.end_reason else None,
        "totalOrders": len(live_orders),
        "totalAmount": float(total),
        "timestamps": {
            "qrScannedAt": isoformat(session.qr_scanned_at),
            "seatedAt": isoformat(session.seated_at),
            "firstOrderAt": isoformat(session.first_order_at),
            "firstFoodServedAt": isoformat(first_food),
            "billRequestedAt": isoformat(session.bill_requested_at),
            "paymentCompletedAt": isoformat(session.payment_completed_at),
            "vacatedAt": isoformat(session.vacated_at),
        },
        "durations": {
            "totalMinutes": _whole_minutes(started, session.vacated_at or now) or 0,
            "seatingToOrderMinutes": _whole_minutes(
                session.seated_at, session.first_order_at
            ),
            "orderToFoodMinutes": _whole_minutes(session.first_order_at, first_food),
            "diningMinutes": _whole_minutes(first_food, session.bill_requested_at),
            "billToPaymentMinutes": _whole_minutes(
                session.bill_requested_at, session.payment_completed_at
            ),
        },
    }


async def scans_pending_otp_help(
    db: AsyncSession,
    restaurant_id: str,
    delay_minutes: int,
    now: datetime | None = None,
) -> List[QrScanEvent]:
    """Scans still waiting for an OTP after ``delay_minutes``, not yet alerted."""

    now = now or utcnow()
    async with db.begin():
        return await tables_repo_sql.scans_awaiting_otp(
            db, restaurant_id, now - timedelta(minutes=delay_minutes)
        )


async def notify_otp_help(
    db: AsyncSession,
    hub: NotificationHub | None,
    restaurant_id: str,
    scan_id: str,
) -> QrScanEvent:
    """Alert floor staff that a guest seems stuck at the OTP prompt."""

    now = utcnow()
    async with db.begin():
        scan = await tables_repo_sql.get_scan(db, restaurant_id, scan_id)
        if scan.otp_entered_at is not None:
            raise Conflict("OTP already entered for this scan")
        already = scan.otp_help_notified_at is not None
        if not already:
            scan.otp_help_notified_at = now
        table = await tables_repo_sql.get_table(db, restaurant_id, scan.table_id)
    if not already:
        _publish(
            hub,
            [
                DomainEvent(
                    type=EventType.SESSION_ALERT,
                    restaurant_id=restaurant_id,
                    table_id=table.id,
                    payload={
                        "alert": "OTP_HELP",
                        "scanId": scan.id,
                        "sessionId": scan.session_id,
                        "tableNumber": table.table_number,
                        "scannedAt": isoformat(scan.scanned_at),
                    },
                )
            ],
        )
    return scan


def serialize_session(session: TableSession) -> Dict[str, Any]:
    return {
        "id": session.id,
        "tableId": session.table_id,
        "status": SessionStatus(session.status).value,
        "phase": SessionPhase(session.phase).value,
        "guestCount": session.guest_count,
        "otpVerified": session.otp_verified,
        "waiterId": session.waiter_id,
        "endReason": session.end_reason.value if session.end_reason else None,
        "qrScannedAt": isoformat(session.qr_scanned_at),
        "seatedAt": isoformat(session.seated_at),
        "firstOrderAt": isoformat(session.first_order_at),
        "lastOrderAt": isoformat(session.last_order_at),
        "billRequestedAt": isoformat(session.bill_requested_at),
        "paymentCompletedAt": isoformat(session.payment_completed_at),
        "vacatedAt": isoformat(session.vacated_at),
    }


__all__ = [
    "end_session",
    "get_guest_view",
    "notify_otp_help",
    "record_payment",
    "record_scan",
    "request_bill",
    "scans_pending_otp_help",
    "seat_guests",
    "serialize_session",
    "session_summary",
    "session_timeline",
    "update_guest_count",
    "verify_otp",
]
