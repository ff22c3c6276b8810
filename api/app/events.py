# events.py

"""In-process notification hub for real-time kitchen, floor and guest views.

One :class:`NotificationHub` lives for the lifetime of the application. It is
created in the app lifespan, stored on ``app.state.hub`` and handed to
request handlers through :func:`get_hub`. Nothing here is persisted: a
restart drops every subscriber and clients re-fetch on reconnect.

Delivery is best-effort and at-most-once. Each subscriber owns a bounded
queue; a subscriber that cannot keep up is dropped instead of blocking the
publisher.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Iterable

from fastapi import Request

from .domain.order_status import KitchenStation
from .domain.roles import Role
from .routes_metrics import notifications_dropped_total, notifications_published_total
from .utils.clock import isoformat, utcnow

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    NEW_ORDER = "NEW_ORDER"
    ORDER_UPDATE = "ORDER_UPDATE"
    ORDER_READY = "ORDER_READY"
    ORDER_COMPLETED = "ORDER_COMPLETED"
    BILL_REQUEST = "BILL_REQUEST"
    TABLE_STATUS_CHANGED = "TABLE_STATUS_CHANGED"
    ASSISTANCE_REQUEST = "ASSISTANCE_REQUEST"
    SESSION_ALERT = "SESSION_ALERT"
    SESSION_ENDED = "SESSION_ENDED"


# ``None`` means every event type.
ROLE_EVENTS: Dict[Role, frozenset[EventType] | None] = {
    Role.OWNER: None,
    Role.MANAGER: None,
    Role.ADMIN: None,
    Role.KITCHEN: frozenset({EventType.NEW_ORDER, EventType.ORDER_UPDATE}),
    Role.BAR: frozenset({EventType.NEW_ORDER, EventType.ORDER_UPDATE}),
    Role.WAITER: frozenset(
        {
            EventType.NEW_ORDER,
            EventType.ORDER_READY,
            EventType.ORDER_UPDATE,
            EventType.BILL_REQUEST,
            EventType.TABLE_STATUS_CHANGED,
            EventType.ASSISTANCE_REQUEST,
            EventType.SESSION_ALERT,
            EventType.SESSION_ENDED,
        }
    ),
    Role.HOST: frozenset(
        {
            EventType.TABLE_STATUS_CHANGED,
            EventType.BILL_REQUEST,
            EventType.ASSISTANCE_REQUEST,
            EventType.SESSION_ENDED,
        }
    ),
    Role.GUEST: frozenset(
        {EventType.ORDER_UPDATE, EventType.ORDER_READY, EventType.SESSION_ENDED}
    ),
}

STATION_ROLES = {Role.KITCHEN: KitchenStation.KITCHEN, Role.BAR: KitchenStation.BAR}


@dataclass
class DomainEvent:
    """A committed state change, scoped to one restaurant."""

    type: EventType
    restaurant_id: str
    payload: Dict[str, Any] = field(default_factory=dict)
    table_id: str | None = None
    # Stations whose items the event concerns; empty means all stations.
    stations: tuple[KitchenStation, ...] = ()
    # Orders awaiting confirmation are hidden from kitchen and bar.
    kitchen_visible: bool = True
    ts: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "restaurantId": self.restaurant_id,
            "tableId": self.table_id,
            "stations": [s.value for s in self.stations],
            "payload": self.payload,
            "timestamp": isoformat(self.ts),
        }


@dataclass(eq=False)
class Subscriber:
    id: str
    restaurant_id: str
    role: Role
    queue: asyncio.Queue
    table_id: str | None = None
    connected_at: datetime = field(default_factory=utcnow)
    closed: bool = False

    def wants(self, event: DomainEvent) -> bool:
        """Return ``True`` if ``event`` should be delivered to this subscriber."""

        if event.restaurant_id != self.restaurant_id:
            return False
        allowed = ROLE_EVENTS.get(self.role, frozenset())
        if allowed is not None and event.type not in allowed:
            return False
        if self.role is Role.GUEST and event.table_id != self.table_id:
            return False
        station = STATION_ROLES.get(self.role)
        if station is not None:
            if not event.kitchen_visible:
                return False
            if event.stations and station not in event.stations:
                return False
        return True


class NotificationHub:
    """Process-scoped registry of live subscribers."""

    def __init__(self, queue_max: int = 100) -> None:
        self.queue_max = queue_max
        self._subs: Dict[str, Subscriber] = {}
        self._closed = False

    @property
    def subscriber_count(self) -> int:
        return len(self._subs)

    def subscribe(
        self,
        restaurant_id: str,
        role: Role | str,
        *,
        table_id: str | None = None,
        subscriber_id: str | None = None,
    ) -> Subscriber:
        """Register a subscriber and return it with a fresh bounded queue."""

        if self._closed:
            raise RuntimeError("notification hub is closed")
        sub = Subscriber(
            id=subscriber_id or str(uuid.uuid4()),
            restaurant_id=restaurant_id,
            role=Role(role),
            queue=asyncio.Queue(maxsize=self.queue_max),
            table_id=table_id,
        )
        self._subs[sub.id] = sub
        logger.info(
            "subscriber %s joined restaurant=%s role=%s",
            sub.id,
            restaurant_id,
            sub.role.value,
        )
        return sub

    def unsubscribe(self, subscriber_id: str) -> bool:
        """Remove a subscriber; safe to call more than once."""

        sub = self._subs.pop(subscriber_id, None)
        if sub is None:
            return False
        sub.closed = True
        logger.info("subscriber %s left restaurant=%s", sub.id, sub.restaurant_id)
        return True

    def subscribers(self, restaurant_id: str | None = None) -> list[Subscriber]:
        return [
            s
            for s in self._subs.values()
            if restaurant_id is None or s.restaurant_id == restaurant_id
        ]

    def publish(self, event: DomainEvent) -> int:
        """Deliver ``event`` to matching subscribers without blocking.

        Returns the number of subscribers that received the event.
        """

        notifications_published_total.labels(type=event.type.value).inc()
        message = event.to_dict()
        delivered = 0
        for sub in list(self._subs.values()):
            if not sub.wants(event):
                continue
            try:
                sub.queue.put_nowait(message)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning(
                    "dropping slow subscriber %s restaurant=%s",
                    sub.id,
                    sub.restaurant_id,
                )
                notifications_dropped_total.inc()
                self.unsubscribe(sub.id)
        return delivered

    def publish_all(self, events: Iterable[DomainEvent]) -> int:
        return sum(self.publish(e) for e in events)

    async def close(self) -> None:
        """Drop every subscriber and wake their streams."""

        self._closed = True
        for sub in list(self._subs.values()):
            self.unsubscribe(sub.id)
            try:
                sub.queue.put_nowait(None)
            except asyncio.QueueFull:
                pass


def sse_frame(data: Dict[str, Any]) -> str:
    return f"data: {json.dumps(data)}\n\n"


async def event_stream(
    hub: NotificationHub,
    sub: Subscriber,
    heartbeat_interval: float,
    is_disconnected: Callable[[], Awaitable[bool]] | None = None,
    on_close: Callable[[], None] | None = None,
) -> AsyncIterator[str]:
    """Yield SSE frames for ``sub`` until the client goes away.

    A ``HEARTBEAT`` frame is emitted whenever no event arrived within
    ``heartbeat_interval`` seconds. The subscriber is always removed from
    the hub on exit, including cancellation on client disconnect.
    """

    try:
        yield sse_frame(
            {
                "type": "CONNECTED",
                "subscriberId": sub.id,
                "timestamp": isoformat(utcnow()),
            }
        )
        while not sub.closed:
            try:
                message = await asyncio.wait_for(
                    sub.queue.get(), timeout=heartbeat_interval
                )
            except asyncio.TimeoutError:
                if is_disconnected is not None and await is_disconnected():
                    break
                yield sse_frame(
                    {"type": "HEARTBEAT", "timestamp": isoformat(utcnow())}
                )
                continue
            if message is None:
                break
            yield sse_frame(message)
    finally:
        hub.unsubscribe(sub.id)
        if on_close is not None:
            on_close()


def get_hub(request: Request) -> NotificationHub:
    """FastAPI dependency returning the application's hub."""

    return request.app.state.hub
