"""SQLAlchemy-backed repository helpers for orders.

These helpers only read or stage rows on an ``AsyncSession``; the calling
service owns the transaction. Order items snapshot menu names, prices and
category names so that history survives menu edits.
"""

from __future__ import annotations

from typing import Dict, Iterable, List

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError

from ..domain.errors import Conflict, NotFound, ValidationError
from ..domain.order_status import ACTIVE_KITCHEN_ORDER, OrderStatus
from ..models_tenant import MenuItem, Order, OrderItem
from . import RestaurantGuard

ORDER_NUMBER_PREFIX = "ORD-"


async def get_order(session: AsyncSession, restaurant_id: str, order_id: str) -> Order:
    order = await session.get(Order, order_id)
    return RestaurantGuard.assert_restaurant(order, restaurant_id, "order")


async def get_order_item(
    session: AsyncSession, restaurant_id: str, order_id: str, item_id: str
) -> tuple[Order, OrderItem]:
    """Return an item together with its owning order."""

    order = await get_order(session, restaurant_id, order_id)
    for item in order.items:
        if item.id == item_id:
            return order, item
    raise NotFound("order item not found")


async def flush_claimed(session: AsyncSession, order: Order) -> None:
    """Flush pending changes with a version check on ``order`` itself.

    An item change alone only writes the item row. Marking the order dirty
    makes two concurrent edits of the same order collide on its version
    counter; the loser gets :class:`Conflict` and its transaction rolls back.
    """

    number = order.order_number
    flag_modified(order, "status")
    try:
        await session.flush()
    except StaleDataError as exc:
        raise Conflict(
            f"order {number} was changed by someone else; reload and retry"
        ) from exc


async def next_order_number(session: AsyncSession, restaurant_id: str) -> str:
    """Return the next sequential ``ORD-00001`` style number."""

    count = await session.scalar(
        select(func.count(Order.id)).where(Order.restaurant_id == restaurant_id)
    )
    return f"{ORDER_NUMBER_PREFIX}{(count or 0) + 1:05d}"


async def load_menu_items(
    session: AsyncSession, restaurant_id: str, menu_item_ids: Iterable[int]
) -> Dict[int, MenuItem]:
    """Fetch available menu items by id, failing on unknown ids."""

    ids = set(menu_item_ids)
    if not ids:
        return {}
    result = await session.scalars(
        select(MenuItem).where(
            MenuItem.restaurant_id == restaurant_id, MenuItem.id.in_(ids)
        )
    )
    items = {item.id: item for item in result}
    missing = ids - items.keys()
    if missing:
        raise ValidationError(
            "unknown menu items", {"menu_item_ids": sorted(missing)}
        )
    unavailable = sorted(i.id for i in items.values() if not i.is_available)
    if unavailable:
        raise ValidationError(
            "menu items are not available", {"menu_item_ids": unavailable}
        )
    return items


async def list_kitchen_orders(session: AsyncSession, restaurant_id: str) -> List[Order]:
    """Orders the kitchen is working on, oldest placed first."""

    result = await session.scalars(
        select(Order)
        .where(
            Order.restaurant_id == restaurant_id,
            Order.status.in_(list(ACTIVE_KITCHEN_ORDER)),
        )
        .order_by(Order.placed_at, Order.order_number)
    )
    return list(result)


async def list_session_orders(
    session: AsyncSession,
    session_id: str,
    statuses: Iterable[OrderStatus] | None = None,
) -> List[Order]:
    stmt = select(Order).where(Order.session_id == session_id)
    if statuses is not None:
        stmt = stmt.where(Order.status.in_(list(statuses)))
    result = await session.scalars(stmt.order_by(Order.placed_at))
    return list(result)
