"""Table setup, manual status changes, OTP administration and housekeeping."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.errors import Conflict, InvalidTransition, ValidationError
from ..domain.roles import Actor
from ..domain.state_machine import apply_table_status
from ..domain.table_status import MANUAL_TABLE_STATUSES, OtpAction, TableStatus
from ..events import DomainEvent, EventType, NotificationHub
from ..models_tenant import Table
from ..repos_sqlalchemy import tables_repo_sql
from ..utils.clock import isoformat, minutes_between, utcnow
from .activity import log_activity
from .otp import rotate_otp

logger = logging.getLogger(__name__)


def serialize_table(table: Table) -> Dict[str, Any]:
    """Floor view of a table; the OTP is only exposed by :func:`current_otp`."""

    return {
        "id": table.id,
        "tableNumber": table.table_number,
        "capacity": table.capacity,
        "status": TableStatus(table.status).value,
        "lastCleanedAt": isoformat(table.last_cleaned_at),
    }


def _status_event(table: Table) -> DomainEvent:
    return DomainEvent(
        type=EventType.TABLE_STATUS_CHANGED,
        restaurant_id=table.restaurant_id,
        table_id=table.id,
        payload={
            "tableNumber": table.table_number,
            "status": TableStatus(table.status).value,
        },
    )


async def create_table(
    db: AsyncSession,
    restaurant_id: str,
    table_number: str,
    capacity: int = 4,
    *,
    actor: Actor,
) -> Table:
    """Add a table and issue its first OTP."""

    table_number = (table_number or "").strip()
    if not table_number:
        raise ValidationError("table number is required")
    if capacity < 1:
        raise ValidationError("capacity must be at least 1")
    now = utcnow()
    async with db.begin():
        taken = await db.scalar(
            select(Table.id).where(
                Table.restaurant_id == restaurant_id,
                Table.table_number == table_number,
            )
        )
        if taken is not None:
            raise Conflict(f"table {table_number} already exists")
        table = Table(
            restaurant_id=restaurant_id,
            table_number=table_number,
            capacity=capacity,
            status=TableStatus.AVAILABLE,
            created_at=now,
        )
        db.add(table)
        await db.flush()
        rotate_otp(db, table, OtpAction.GENERATED, now, actor.id)
        log_activity(
            db,
            restaurant_id,
            actor,
            "TABLE_CREATED",
            entity_type="table",
            entity_id=table.id,
            details={"tableNumber": table_number, "capacity": capacity},
        )
    return table


async def list_tables(db: AsyncSession, restaurant_id: str) -> List[Table]:
    async with db.begin():
        return await tables_repo_sql.list_tables(db, restaurant_id)


async def set_table_status(
    db: AsyncSession,
    hub: NotificationHub | None,
    restaurant_id: str,
    table_id: str,
    target: TableStatus,
    *,
    actor: Actor,
) -> Table:
    """Reserve, block or free a table by hand.

    OCCUPIED and CLEANING belong to the session lifecycle and cannot be set
    or left here; a table in CLEANING is released only by
    :func:`mark_cleaned`.
    """

    target = TableStatus(target)
    if target not in MANUAL_TABLE_STATUSES:
        raise ValidationError(f"{target.value} cannot be set manually")
    async with db.begin():
        table = await tables_repo_sql.get_table(db, restaurant_id, table_id)
        current = TableStatus(table.status)
        if current in (TableStatus.OCCUPIED, TableStatus.CLEANING):
            raise InvalidTransition("table", current, target)
        if await tables_repo_sql.find_active_session(db, restaurant_id, table_id):
            raise Conflict("table has an active session")
        changed = apply_table_status(table, target)
        if changed:
            log_activity(
                db,
                restaurant_id,
                actor,
                "TABLE_STATUS_CHANGED",
                entity_type="table",
                entity_id=table.id,
                details={"from": current.value, "to": target.value},
            )
    if changed and hub is not None:
        hub.publish(_status_event(table))
    return table


async def current_otp(
    db: AsyncSession, restaurant_id: str, table_id: str
) -> Dict[str, Any]:
    async with db.begin():
        table = await tables_repo_sql.get_table(db, restaurant_id, table_id)
    return {
        "tableId": table.id,
        "tableNumber": table.table_number,
        "otp": table.current_otp,
        "generatedAt": isoformat(table.otp_generated_at),
    }


async def rotate_table_otp(
    db: AsyncSession, restaurant_id: str, table_id: str, *, actor: Actor
) -> Dict[str, Any]:
    """Manually issue a new OTP; seated parties keep their verified session."""

    now = utcnow()
    async with db.begin():
        table = await tables_repo_sql.get_table(db, restaurant_id, table_id)
        rotate_otp(db, table, OtpAction.ROTATED, now, actor.id)
        log_activity(
            db,
            restaurant_id,
            actor,
            "OTP_ROTATED",
            entity_type="table",
            entity_id=table.id,
        )
    logger.info("otp rotated restaurant=%s table=%s", restaurant_id, table.table_number)
    return {
        "tableId": table.id,
        "tableNumber": table.table_number,
        "otp": table.current_otp,
        "generatedAt": isoformat(table.otp_generated_at),
    }


async def otp_history(
    db: AsyncSession, restaurant_id: str, table_id: str, limit: int = 20
) -> List[Dict[str, Any]]:
    async with db.begin():
        await tables_repo_sql.get_table(db, restaurant_id, table_id)
        rows = await tables_repo_sql.otp_history(db, restaurant_id, table_id, limit)
    return [
        {
            "otp": row.otp,
            "previousOtp": row.previous_otp,
            "action": OtpAction(row.action).value,
            "actor": row.actor,
            "createdAt": isoformat(row.created_at),
        }
        for row in rows
    ]


async def cleaning_queue(
    db: AsyncSession,
    restaurant_id: str,
    alert_minutes: int,
    now: datetime | None = None,
) -> List[Dict[str, Any]]:
    """Tables waiting for housekeeping, longest wait first."""

    now = now or utcnow()
    async with db.begin():
        records = await tables_repo_sql.pending_cleaning(db, restaurant_id)
        tables = {t.id: t for t in await tables_repo_sql.list_tables(db, restaurant_id)}
    queue = []
    for record in records:
        waiting = int(minutes_between(record.requested_at, now) // 1)
        table = tables.get(record.table_id)
        queue.append(
            {
                "cleaningRecordId": record.id,
                "tableId": record.table_id,
                "tableNumber": table.table_number if table else None,
                "sessionId": record.session_id,
                "requestedAt": isoformat(record.requested_at),
                "waitingMinutes": max(waiting, 0),
                "isDelayed": waiting > alert_minutes,
            }
        )
    return queue


async def mark_cleaned(
    db: AsyncSession,
    hub: NotificationHub | None,
    restaurant_id: str,
    table_id: str,
    *,
    actor: Actor,
) -> Table:
    """Staff confirmation that a table is clean: the only CLEANING -> AVAILABLE path."""

    now = utcnow()
    async with db.begin():
        table = await tables_repo_sql.get_table(db, restaurant_id, table_id)
        current = TableStatus(table.status)
        if current is not TableStatus.CLEANING:
            raise InvalidTransition("table", current, TableStatus.AVAILABLE)
        apply_table_status(table, TableStatus.AVAILABLE)
        table.last_cleaned_at = now
        record = await tables_repo_sql.open_cleaning_for_table(db, table.id)
        if record is not None:
            record.cleaned_at = now
            record.cleaned_by = actor.id
            record.duration_minutes = int(minutes_between(record.requested_at, now) // 1)
        log_activity(
            db,
            restaurant_id,
            actor,
            "TABLE_CLEANED",
            entity_type="table",
            entity_id=table.id,
            details={
                "durationMinutes": record.duration_minutes if record else None,
            },
        )
    if hub is not None:
        hub.publish(_status_event(table))
    return table
