"""Server-Sent Events streams for staff and guest devices.

Each connection registers one subscriber on the application's
:class:`~api.app.events.NotificationHub`. The stream opens with a
``CONNECTED`` frame, relays matching domain events and sends a
``HEARTBEAT`` frame whenever the line has been quiet for
``heartbeat_interval_sec``. Closing the connection removes the subscriber
and releases the per-IP connection slot.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from config import get_settings

from .auth import User, role_required
from .db import get_session
from .deps.runtime import client_ip
from .domain.roles import STAFF_ROLES, Role
from .events import NotificationHub, Subscriber, event_stream, get_hub
from .middlewares.realtime_guard import slots
from .repos_sqlalchemy import tables_repo_sql
from .routes_metrics import sse_clients_gauge

router = APIRouter()

SSE_HEADERS = {"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}


def _stream(request: Request, hub: NotificationHub, sub: Subscriber, ip: str):
    sse_clients_gauge.inc()

    def on_close() -> None:
        sse_clients_gauge.dec()
        slots.release(ip)

    return StreamingResponse(
        event_stream(
            hub,
            sub,
            get_settings().heartbeat_interval_sec,
            is_disconnected=request.is_disconnected,
            on_close=on_close,
        ),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.get(
    "/api/outlet/{restaurant_id}/notifications/stream",
    response_class=StreamingResponse,
    responses={200: {"content": {"text/event-stream": {}}}},
)
async def staff_stream(
    restaurant_id: str,
    request: Request,
    user: User = Depends(role_required(*STAFF_ROLES)),
    hub: NotificationHub = Depends(get_hub),
) -> StreamingResponse:
    """Stream events for the caller's role within their restaurant."""

    ip = client_ip(request)
    with slots.holding(ip):
        sub = hub.subscribe(restaurant_id, user.role)
    return _stream(request, hub, sub, ip)


@router.get(
    "/g/{restaurant_id}/tables/{table_id}/stream",
    response_class=StreamingResponse,
    responses={200: {"content": {"text/event-stream": {}}}},
)
async def guest_stream(
    restaurant_id: str,
    table_id: str,
    request: Request,
    db: AsyncSession = Depends(get_session),
    hub: NotificationHub = Depends(get_hub),
) -> StreamingResponse:
    """Stream order and session updates for one table."""

    async with db.begin():
        await tables_repo_sql.get_table(db, restaurant_id, table_id)
    ip = client_ip(request)
    with slots.holding(ip):
        sub = hub.subscribe(restaurant_id, Role.GUEST, table_id=table_id)
    return _stream(request, hub, sub, ip)
