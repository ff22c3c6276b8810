"""Queries for tables, sessions and their history rows."""

from __future__ import annotations

from datetime import datetime
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.errors import NotFound
from ..domain.table_status import SessionStatus
from ..models_tenant import (
    CleaningRecord,
    GuestCountHistory,
    OtpHistory,
    QrScanEvent,
    Table,
    TableSession,
)
from . import RestaurantGuard


async def get_table(session: AsyncSession, restaurant_id: str, table_id: str) -> Table:
    table = await session.get(Table, table_id)
    return RestaurantGuard.assert_restaurant(table, restaurant_id, "table")


async def list_tables(session: AsyncSession, restaurant_id: str) -> List[Table]:
    result = await session.scalars(
        select(Table)
        .where(Table.restaurant_id == restaurant_id)
        .order_by(Table.table_number)
    )
    return list(result)


async def get_session(
    session: AsyncSession, restaurant_id: str, session_id: str
) -> TableSession:
    row = await session.get(TableSession, session_id)
    return RestaurantGuard.assert_restaurant(row, restaurant_id, "session")


async def find_active_session(
    session: AsyncSession, restaurant_id: str, table_id: str
) -> TableSession | None:
    """Return the ACTIVE session for ``table_id`` if one exists."""

    return await session.scalar(
        select(TableSession).where(
            TableSession.restaurant_id == restaurant_id,
            TableSession.table_id == table_id,
            TableSession.status == SessionStatus.ACTIVE,
        )
    )


async def get_active_session(
    session: AsyncSession, restaurant_id: str, table_id: str
) -> TableSession:
    row = await find_active_session(session, restaurant_id, table_id)
    if row is None:
        raise NotFound("no active session for this table")
    return row


async def list_scans(session: AsyncSession, session_id: str) -> List[QrScanEvent]:
    result = await session.scalars(
        select(QrScanEvent)
        .where(QrScanEvent.session_id == session_id)
        .order_by(QrScanEvent.scanned_at)
    )
    return list(result)


async def scans_awaiting_otp(
    session: AsyncSession, restaurant_id: str, scanned_before: datetime
) -> List[QrScanEvent]:
    """Scans older than ``scanned_before`` with no OTP entered or alert sent."""

    result = await session.scalars(
        select(QrScanEvent)
        .where(
            QrScanEvent.restaurant_id == restaurant_id,
            QrScanEvent.scanned_at <= scanned_before,
            QrScanEvent.otp_entered_at.is_(None),
            QrScanEvent.otp_help_notified_at.is_(None),
        )
        .order_by(QrScanEvent.scanned_at)
    )
    return list(result)


async def pending_cleaning(
    session: AsyncSession, restaurant_id: str
) -> List[CleaningRecord]:
    result = await session.scalars(
        select(CleaningRecord)
        .where(
            CleaningRecord.restaurant_id == restaurant_id,
            CleaningRecord.cleaned_at.is_(None),
        )
        .order_by(CleaningRecord.requested_at)
    )
    return list(result)


async def open_cleaning_for_table(
    session: AsyncSession, table_id: str
) -> CleaningRecord | None:
    return await session.scalar(
        select(CleaningRecord)
        .where(
            CleaningRecord.table_id == table_id,
            CleaningRecord.cleaned_at.is_(None),
        )
        .order_by(CleaningRecord.requested_at.desc())
        .limit(1)
    )


async def otp_history(
    session: AsyncSession, restaurant_id: str, table_id: str, limit: int = 20
) -> List[OtpHistory]:
    result = await session.scalars(
        select(OtpHistory)
        .where(
            OtpHistory.restaurant_id == restaurant_id,
            OtpHistory.table_id == table_id,
        )
        .order_by(OtpHistory.created_at.desc(), OtpHistory.id.desc())
        .limit(limit)
    )
    return list(result)


async def guest_count_history(
    session: AsyncSession, session_id: str
) -> List[GuestCountHistory]:
    result = await session.scalars(
        select(GuestCountHistory)
        .where(GuestCountHistory.session_id == session_id)
        .order_by(GuestCountHistory.created_at, GuestCountHistory.id)
    )
    return list(result)


async def cleaning_for_session(
    session: AsyncSession, session_id: str
) -> List[CleaningRecord]:
    result = await session.scalars(
        select(CleaningRecord)
        .where(CleaningRecord.session_id == session_id)
        .order_by(CleaningRecord.requested_at)
    )
    return list(result)


async def get_scan(
    session: AsyncSession, restaurant_id: str, scan_id: str
) -> QrScanEvent:
    scan = await session.get(QrScanEvent, scan_id)
    return RestaurantGuard.assert_restaurant(scan, restaurant_id, "scan")
