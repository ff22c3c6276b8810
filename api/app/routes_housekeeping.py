"""Table administration and housekeeping routes.

Staff can create tables, reserve or block them, read and rotate OTPs and
work through the cleaning queue. Marking a table cleaned is the only way
it becomes available again after a session.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from config import get_settings

from .auth import User, role_required
from .db import get_session
from .domain.roles import FLOOR_STAFF, MANAGEMENT
from .domain.table_status import TableStatus
from .events import NotificationHub, get_hub
from .services import tables as table_service
from .utils.responses import ok

router = APIRouter(prefix="/api/outlet/{restaurant_id}/tables")

floor_staff = role_required(*FLOOR_STAFF)
managers = role_required(*MANAGEMENT)


class TablePayload(BaseModel):
    table_number: str
    capacity: int = Field(default=4)


class StatusPayload(BaseModel):
    status: TableStatus


@router.post("")
async def create_table(
    restaurant_id: str,
    payload: TablePayload,
    user: User = Depends(managers),
    db: AsyncSession = Depends(get_session),
) -> dict:
    table = await table_service.create_table(
        db, restaurant_id, payload.table_number, payload.capacity, actor=user.actor
    )
    return ok(table_service.serialize_table(table))


@router.get("")
async def list_tables(
    restaurant_id: str,
    user: User = Depends(floor_staff),
    db: AsyncSession = Depends(get_session),
) -> dict:
    tables = await table_service.list_tables(db, restaurant_id)
    return ok([table_service.serialize_table(t) for t in tables])


@router.get("/cleaning")
async def cleaning_queue(
    restaurant_id: str,
    user: User = Depends(floor_staff),
    db: AsyncSession = Depends(get_session),
) -> dict:
    """Tables waiting for housekeeping with a delayed flag."""

    queue = await table_service.cleaning_queue(
        db, restaurant_id, get_settings().cleaning_alert_minutes
    )
    return ok(queue)


@router.post("/{table_id}/status")
async def set_status(
    restaurant_id: str,
    table_id: str,
    payload: StatusPayload,
    user: User = Depends(floor_staff),
    db: AsyncSession = Depends(get_session),
    hub: NotificationHub = Depends(get_hub),
) -> dict:
    table = await table_service.set_table_status(
        db, hub, restaurant_id, table_id, payload.status, actor=user.actor
    )
    return ok(table_service.serialize_table(table))


@router.post("/{table_id}/cleaned")
async def mark_cleaned(
    restaurant_id: str,
    table_id: str,
    user: User = Depends(floor_staff),
    db: AsyncSession = Depends(get_session),
    hub: NotificationHub = Depends(get_hub),
) -> dict:
    table = await table_service.mark_cleaned(
        db, hub, restaurant_id, table_id, actor=user.actor
    )
    return ok(table_service.serialize_table(table))


@router.get("/{table_id}/otp")
async def current_otp(
    restaurant_id: str,
    table_id: str,
    user: User = Depends(floor_staff),
    db: AsyncSession = Depends(get_session),
) -> dict:
    return ok(await table_service.current_otp(db, restaurant_id, table_id))


@router.post("/{table_id}/otp/rotate")
async def rotate_otp(
    restaurant_id: str,
    table_id: str,
    user: User = Depends(floor_staff),
    db: AsyncSession = Depends(get_session),
) -> dict:
    return ok(
        await table_service.rotate_table_otp(db, restaurant_id, table_id, actor=user.actor)
    )


@router.get("/{table_id}/otp/history")
async def otp_history(
    restaurant_id: str,
    table_id: str,
    limit: int = 20,
    user: User = Depends(managers),
    db: AsyncSession = Depends(get_session),
) -> dict:
    return ok(await table_service.otp_history(db, restaurant_id, table_id, limit))
