"""Kitchen Display System routes.

Each station (``KITCHEN`` or ``BAR``) gets its own FIFO queue of confirmed
work. Reads never open a write transaction.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from .auth import User, role_required
from .db import get_session
from .deps.runtime import get_policy
from .domain.order_status import KitchenStation
from .domain.roles import KITCHEN_STAFF, Role
from .routes_metrics import kds_oldest_wait_minutes
from .services.kitchen_routing import RoutingPolicy, get_display_queue, summarize
from .utils.clock import utcnow
from .utils.responses import ok

router = APIRouter(prefix="/api/outlet/{restaurant_id}/kds")

display_roles = role_required(*KITCHEN_STAFF, Role.WAITER)


async def _queue(db: AsyncSession, restaurant_id: str, station, policy):
    async with db.begin():
        queue = await get_display_queue(db, restaurant_id, station, policy, utcnow())
    oldest = max((e["metrics"]["waitingTimeMinutes"] for e in queue), default=0)
    kds_oldest_wait_minutes.labels(station=station.value).set(oldest)
    return queue


@router.get("/{station}/queue")
async def station_queue(
    restaurant_id: str,
    station: KitchenStation,
    user: User = Depends(display_roles),
    db: AsyncSession = Depends(get_session),
    policy: RoutingPolicy = Depends(get_policy),
) -> dict:
    """Return the station's orders, oldest first, with wait metrics."""

    queue = await _queue(db, restaurant_id, station, policy)
    return ok({"station": station.value, "orders": queue})


@router.get("/{station}/summary")
async def station_summary(
    restaurant_id: str,
    station: KitchenStation,
    user: User = Depends(display_roles),
    db: AsyncSession = Depends(get_session),
    policy: RoutingPolicy = Depends(get_policy),
) -> dict:
    queue = await _queue(db, restaurant_id, station, policy)
    return ok(
        {
            "station": station.value,
            "urgentThresholdMinutes": policy.urgent_threshold_minutes,
            **summarize(queue),
        }
    )
