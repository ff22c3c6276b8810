"""Pure transition logic shared by the order, session and table services.

Every helper here mutates the passed entity in place and never touches the
database. Callers own the transaction; a raised :class:`DomainError` leaves
the entity unchanged.

Timestamps are stamped on first entry to a status only, so re-applying a
status that an entity already holds is a silent no-op.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Mapping

from .assistance import ASSISTANCE_TIMESTAMPS, ASSISTANCE_TRANSITIONS, AssistanceStatus
from .errors import Conflict, InvalidTransition
from .order_status import (
    DERIVED_ORDER_STATUSES,
    ITEM_TIMESTAMPS,
    ITEM_TRANSITIONS,
    ORDER_RANK,
    ORDER_TIMESTAMPS,
    ORDER_TRANSITIONS,
    USER_CANCELLABLE_ITEM,
    OrderItemStatus,
    OrderStatus,
)
from .table_status import PHASE_TRANSITIONS, TABLE_TRANSITIONS, SessionPhase, TableStatus


def check_transition(
    entity: str, transitions: Mapping[Any, list], current: Any, target: Any
) -> None:
    """Raise :class:`InvalidTransition` unless ``current -> target`` is legal."""

    if target not in transitions.get(current, []):
        raise InvalidTransition(entity, current.value, target.value)


def expect_status(entity: str, current: Any, allowed: Iterable[Any], target: Any) -> None:
    """Guard a command that is only legal from ``allowed`` states.

    An entity already sitting in ``target`` lost a race to a concurrent
    actor and is reported as :class:`Conflict`.
    """

    allowed = set(allowed)
    if current in allowed:
        return
    if current == target:
        raise Conflict(f"{entity} is already {target.value}")
    raise InvalidTransition(entity, current.value, target.value)


def _stamp(entity: Any, field: str | None, now: datetime) -> None:
    if field and getattr(entity, field, None) is None:
        setattr(entity, field, now)


def apply_item_status(
    item: Any,
    target: OrderItemStatus,
    now: datetime,
    *,
    order_cancellation: bool = False,
) -> bool:
    """Move ``item`` to ``target`` and stamp its timestamp.

    Returns ``False`` when the item already holds ``target``. Cancelling an
    item that has been dispatched to the kitchen is reserved for order-level
    cancellation, signalled by ``order_cancellation``.
    """

    current = OrderItemStatus(item.status)
    target = OrderItemStatus(target)
    if current is target:
        return False
    if (
        target is OrderItemStatus.CANCELLED
        and not order_cancellation
        and current not in USER_CANCELLABLE_ITEM
    ):
        raise InvalidTransition("order item", current.value, target.value)
    check_transition("order item", ITEM_TRANSITIONS, current, target)
    item.status = target
    _stamp(item, ITEM_TIMESTAMPS.get(target), now)
    return True


def apply_order_status(order: Any, target: OrderStatus, now: datetime) -> bool:
    """Move ``order`` to ``target`` if legal; ``False`` when already there."""

    current = OrderStatus(order.status)
    target = OrderStatus(target)
    if current is target:
        return False
    check_transition("order", ORDER_TRANSITIONS, current, target)
    order.status = target
    _stamp(order, ORDER_TIMESTAMPS.get(target), now)
    return True


def recompute_order_status(
    current: OrderStatus, item_statuses: Iterable[OrderItemStatus]
) -> OrderStatus:
    """Derive an order's status from the multiset of its item statuses.

    Only confirmed orders follow their items. Cancelled lines are ignored,
    and the derived status never moves an order backwards.

    >>> recompute_order_status(OrderStatus.CONFIRMED, ["PREPARING", "SENT_TO_KITCHEN"])
    <OrderStatus.PREPARING: 'PREPARING'>
    """

    current = OrderStatus(current)
    if current not in DERIVED_ORDER_STATUSES:
        return current
    live = [
        OrderItemStatus(s)
        for s in item_statuses
        if OrderItemStatus(s) is not OrderItemStatus.CANCELLED
    ]
    if not live:
        return current
    if all(s is OrderItemStatus.READY for s in live):
        derived = OrderStatus.READY
    elif all(s is OrderItemStatus.SERVED for s in live):
        derived = OrderStatus.SERVED
    elif any(s is OrderItemStatus.PREPARING for s in live):
        derived = OrderStatus.PREPARING
    else:
        return current
    if ORDER_RANK[derived] < ORDER_RANK[current]:
        return current
    return derived


def sync_order_status(order: Any, now: datetime) -> OrderStatus | None:
    """Recompute ``order.status`` from ``order.items``.

    Returns the new status when it changed, ``None`` otherwise.
    """

    target = recompute_order_status(order.status, [i.status for i in order.items])
    if apply_order_status(order, target, now):
        return target
    return None


def apply_table_status(table: Any, target: TableStatus) -> bool:
    current = TableStatus(table.status)
    target = TableStatus(target)
    if current is target:
        return False
    check_transition("table", TABLE_TRANSITIONS, current, target)
    table.status = target
    return True


def apply_phase(session: Any, target: SessionPhase) -> bool:
    current = SessionPhase(session.phase)
    target = SessionPhase(target)
    if current is target:
        return False
    check_transition("session", PHASE_TRANSITIONS, current, target)
    session.phase = target
    return True


def apply_assistance_status(
    request: Any, target: AssistanceStatus, now: datetime
) -> bool:
    current = AssistanceStatus(request.status)
    target = AssistanceStatus(target)
    if current is target:
        return False
    check_transition("assistance request", ASSISTANCE_TRANSITIONS, current, target)
    request.status = target
    _stamp(request, ASSISTANCE_TIMESTAMPS.get(target), now)
    return True


__all__ = [
    "apply_assistance_status",
    "apply_item_status",
    "apply_order_status",
    "apply_phase",
    "apply_table_status",
    "check_transition",
    "expect_status",
    "recompute_order_status",
    "sync_order_status",
]
