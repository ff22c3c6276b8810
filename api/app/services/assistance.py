"""Guest assistance requests (water, cutlery, call waiter, ...)."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.assistance import (
    GUEST_CANCELLABLE_ASSISTANCE,
    OPEN_ASSISTANCE,
    AssistanceStatus,
    AssistanceType,
)
from ..domain.errors import Conflict, Forbidden, InvalidTransition
from ..domain.roles import Actor
from ..domain.state_machine import apply_assistance_status
from ..events import DomainEvent, EventType, NotificationHub
from ..models_tenant import AssistanceRequest
from ..repos_sqlalchemy import assistance_repo_sql, tables_repo_sql
from ..utils.clock import isoformat, utcnow
from .activity import log_activity

logger = logging.getLogger(__name__)


def serialize_request(request: AssistanceRequest) -> Dict[str, Any]:
    return {
        "id": request.id,
        "sessionId": request.session_id,
        "tableId": request.table_id,
        "type": AssistanceType(request.type).value,
        "status": AssistanceStatus(request.status).value,
        "message": request.message,
        "handledBy": request.handled_by,
        "createdAt": isoformat(request.created_at),
        "acknowledgedAt": isoformat(request.acknowledged_at),
        "startedAt": isoformat(request.started_at),
        "resolvedAt": isoformat(request.resolved_at),
        "cancelledAt": isoformat(request.cancelled_at),
    }


async def create_request(
    db: AsyncSession,
    hub: NotificationHub | None,
    restaurant_id: str,
    table_id: str,
    request_type: AssistanceType,
    message: str | None = None,
) -> AssistanceRequest:
    """Open a request for the table's active session.

    At most one request per type may be open for a session; a duplicate is
    reported as :class:`Conflict`.
    """

    request_type = AssistanceType(request_type)
    now = utcnow()
    async with db.begin():
        table = await tables_repo_sql.get_table(db, restaurant_id, table_id)
        session = await tables_repo_sql.get_active_session(db, restaurant_id, table_id)
        if not session.otp_verified:
            raise Forbidden("verify the table OTP first")
        if await assistance_repo_sql.find_open(
            db, session.id, request_type, OPEN_ASSISTANCE
        ):
            raise Conflict(f"a {request_type.value} request is already open")
        request = AssistanceRequest(
            restaurant_id=restaurant_id,
            session_id=session.id,
            table_id=table_id,
            type=request_type,
            status=AssistanceStatus.PENDING,
            message=message,
            created_at=now,
        )
        db.add(request)
        try:
            await db.flush()
        except IntegrityError as exc:
            raise Conflict(f"a {request_type.value} request is already open") from exc
    if hub is not None:
        delivered = hub.publish(
            DomainEvent(
                type=EventType.ASSISTANCE_REQUEST,
                restaurant_id=restaurant_id,
                table_id=table_id,
                payload={
                    "requestId": request.id,
                    "type": request_type.value,
                    "tableNumber": table.table_number,
                    "message": message,
                },
            )
        )
        if delivered:
            await _mark_notified(db, request)
    return request


async def _mark_notified(db: AsyncSession, request: AssistanceRequest) -> None:
    async with db.begin():
        request = await assistance_repo_sql.get_request(
            db, request.restaurant_id, request.id
        )
        if request.status == AssistanceStatus.PENDING:
            apply_assistance_status(request, AssistanceStatus.NOTIFIED, utcnow())


async def list_for_table(
    db: AsyncSession, restaurant_id: str, table_id: str
) -> List[AssistanceRequest]:
    async with db.begin():
        session = await tables_repo_sql.get_active_session(db, restaurant_id, table_id)
        return await assistance_repo_sql.list_for_session(db, session.id)


async def list_open(db: AsyncSession, restaurant_id: str) -> List[AssistanceRequest]:
    async with db.begin():
        return await assistance_repo_sql.list_open(db, restaurant_id, OPEN_ASSISTANCE)


async def cancel_by_guest(
    db: AsyncSession, restaurant_id: str, table_id: str, request_id: str
) -> AssistanceRequest:
    """Withdraw a request before staff picked it up."""

    now = utcnow()
    async with db.begin():
        session = await tables_repo_sql.get_active_session(db, restaurant_id, table_id)
        request = await assistance_repo_sql.get_request(db, restaurant_id, request_id)
        if request.session_id != session.id:
            raise Forbidden("request belongs to another party")
        status = AssistanceStatus(request.status)
        if status not in GUEST_CANCELLABLE_ASSISTANCE:
            if status is AssistanceStatus.CANCELLED:
                raise Conflict("request is already CANCELLED")
            raise InvalidTransition("assistance request", status, AssistanceStatus.CANCELLED)
        apply_assistance_status(request, AssistanceStatus.CANCELLED, now)
    return request


async def advance_request(
    db: AsyncSession,
    restaurant_id: str,
    request_id: str,
    target: AssistanceStatus,
    *,
    actor: Actor,
) -> AssistanceRequest:
    """Staff acknowledge, start or resolve a request."""

    target = AssistanceStatus(target)
    now = utcnow()
    async with db.begin():
        request = await assistance_repo_sql.get_request(db, restaurant_id, request_id)
        if apply_assistance_status(request, target, now):
            request.handled_by = actor.id
            log_activity(
                db,
                restaurant_id,
                actor,
                f"ASSISTANCE_{target.value}",
                entity_type="assistance_request",
                entity_id=request.id,
            )
    return request
