"""Kitchen and bar display queues.

Orders appear oldest-placed first and their items oldest-created first.
Only items that were confirmed into the kitchen are ever shown: an item in
PENDING is unconfirmed guest input and stays invisible to both stations.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List

from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.order_status import KITCHEN_VISIBLE_ITEM, KitchenStation, OrderItemStatus
from ..models_tenant import MenuItem, Order, OrderItem
from ..repos_sqlalchemy import orders_repo_sql, tables_repo_sql
from ..utils.clock import as_utc, isoformat


@dataclass(frozen=True)
class RoutingPolicy:
    """Deployment-tunable display policy."""

    bar_categories: frozenset[str]
    urgent_threshold_minutes: int = 10

    @classmethod
    def from_settings(cls, settings: Any) -> "RoutingPolicy":
        return cls(
            bar_categories=frozenset(c.lower() for c in settings.bar_categories),
            urgent_threshold_minutes=settings.urgent_threshold_minutes,
        )


def station_for(
    explicit: KitchenStation | str | None,
    category_name: str | None,
    policy: RoutingPolicy,
) -> KitchenStation:
    """Route by explicit tag, falling back to the beverage category list."""

    if explicit is not None:
        return KitchenStation(explicit)
    if category_name and category_name.lower() in policy.bar_categories:
        return KitchenStation.BAR
    return KitchenStation.KITCHEN


def station_for_menu_item(item: MenuItem, policy: RoutingPolicy) -> KitchenStation:
    category = item.category.name if item.category is not None else None
    return station_for(item.kitchen_station, category, policy)


def item_station(item: OrderItem, policy: RoutingPolicy) -> KitchenStation:
    return station_for(item.kitchen_station, item.category_snapshot, policy)


def stations_of(items: Iterable[OrderItem], policy: RoutingPolicy) -> tuple[KitchenStation, ...]:
    """Distinct stations touched by ``items`` in a stable order."""

    found = {item_station(i, policy) for i in items}
    return tuple(s for s in KitchenStation if s in found)


def waiting_minutes(items: Iterable[OrderItem], now: datetime) -> int:
    """Whole minutes since the oldest non-served item was created."""

    created = [
        as_utc(i.created_at) for i in items if i.status != OrderItemStatus.SERVED
    ]
    if not created:
        return 0
    return max(int((as_utc(now) - min(created)).total_seconds() // 60), 0)


def _item_view(item: OrderItem, policy: RoutingPolicy) -> Dict[str, Any]:
    return {
        "id": item.id,
        "menuItemId": item.menu_item_id,
        "name": item.name_snapshot,
        "quantity": item.quantity,
        "notes": item.notes,
        "status": OrderItemStatus(item.status).value,
        "kitchenStation": item_station(item, policy).value,
        "createdAt": isoformat(item.created_at),
        "sentToKitchenAt": isoformat(item.sent_to_kitchen_at),
        "preparingAt": isoformat(item.preparing_at),
        "readyAt": isoformat(item.ready_at),
    }


def build_display_queue(
    orders: Iterable[Order],
    station: KitchenStation,
    policy: RoutingPolicy,
    now: datetime,
    table_numbers: Dict[str, str] | None = None,
) -> List[Dict[str, Any]]:
    """Pure projection of active orders onto one station's display."""

    table_numbers = table_numbers or {}
    ordered = sorted(orders, key=lambda o: (as_utc(o.placed_at), o.order_number))
    queue: List[Dict[str, Any]] = []
    for order in ordered:
        items = [
            i
            for i in order.items
            if OrderItemStatus(i.status) in KITCHEN_VISIBLE_ITEM
            and item_station(i, policy) is station
        ]
        if not items:
            continue
        items.sort(key=lambda i: (as_utc(i.created_at), i.line_no))
        wait = waiting_minutes(items, now)
        queue.append(
            {
                "orderId": order.id,
                "orderNumber": order.order_number,
                "orderStatus": order.status.value,
                "orderType": order.order_type.value,
                "tableId": order.table_id,
                "tableNumber": table_numbers.get(order.table_id),
                "placedAt": isoformat(order.placed_at),
                "items": [_item_view(i, policy) for i in items],
                "metrics": {
                    "waitingTimeMinutes": wait,
                    "itemCount": len(items),
                    "isUrgent": wait > policy.urgent_threshold_minutes,
                },
            }
        )
    return queue


def summarize(queue: List[Dict[str, Any]]) -> Dict[str, int]:
    """Station totals shown above the display."""

    items = [i for entry in queue for i in entry["items"]]
    return {
        "totalOrders": len(queue),
        "totalItems": len(items),
        "pendingItems": sum(
            1 for i in items if i["status"] == OrderItemStatus.SENT_TO_KITCHEN.value
        ),
        "preparingItems": sum(
            1 for i in items if i["status"] == OrderItemStatus.PREPARING.value
        ),
        "readyItems": sum(1 for i in items if i["status"] == OrderItemStatus.READY.value),
        "urgentOrders": sum(1 for entry in queue if entry["metrics"]["isUrgent"]),
    }


async def get_display_queue(
    db: AsyncSession,
    restaurant_id: str,
    station: KitchenStation,
    policy: RoutingPolicy,
    now: datetime,
) -> List[Dict[str, Any]]:
    """Return the FIFO display queue for ``station``; read-only."""

    orders = await orders_repo_sql.list_kitchen_orders(db, restaurant_id)
    tables = await tables_repo_sql.list_tables(db, restaurant_id)
    numbers = {t.id: t.table_number for t in tables}
    return build_display_queue(orders, station, policy, now, numbers)
