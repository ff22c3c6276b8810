"""Order placement, confirmation and item-level preparation workflow.

Every command runs in one transaction: multi-row changes such as
confirming an order (session guest count, order status, every item) are
applied together or not at all. Events are published only after commit,
and stock deduction for served items runs in the background afterwards.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.errors import Conflict, Forbidden, InvalidTransition, ValidationError
from ..domain.order_status import (
    AWAITING_KITCHEN,
    DERIVED_ORDER_STATUSES,
    OrderItemStatus,
    OrderSource,
    OrderStatus,
    OrderType,
)
from ..domain.roles import Actor
from ..domain.state_machine import (
    apply_item_status,
    apply_order_status,
    apply_phase,
    expect_status,
    sync_order_status,
)
from ..domain.table_status import ORDERING_PHASES, SessionPhase, SessionStatus
from ..events import DomainEvent, EventType, NotificationHub
from ..models_tenant import GuestCountHistory, Order, OrderItem, TableSession
from ..repos_sqlalchemy import orders_repo_sql, tables_repo_sql
from ..routes_metrics import (
    item_transitions_total,
    order_transitions_total,
    orders_created_total,
)
from ..utils.clock import isoformat, utcnow
from .activity import log_activity
from .inventory import StockLine, StockService, schedule_deduction
from .kitchen_routing import RoutingPolicy, item_station, stations_of

logger = logging.getLogger(__name__)


def serialize_item(item: OrderItem, policy: RoutingPolicy) -> Dict[str, Any]:
    return {
        "id": item.id,
        "menuItemId": item.menu_item_id,
        "name": item.name_snapshot,
        "price": float(item.price_snapshot),
        "quantity": item.quantity,
        "notes": item.notes,
        "status": OrderItemStatus(item.status).value,
        "kitchenStation": item_station(item, policy).value,
        "createdAt": isoformat(item.created_at),
        "sentToKitchenAt": isoformat(item.sent_to_kitchen_at),
        "preparingAt": isoformat(item.preparing_at),
        "readyAt": isoformat(item.ready_at),
        "servedAt": isoformat(item.served_at),
        "cancelledAt": isoformat(item.cancelled_at),
    }


def serialize_order(order: Order, policy: RoutingPolicy) -> Dict[str, Any]:
    live = [i for i in order.items if i.status != OrderItemStatus.CANCELLED]
    return {
        "id": order.id,
        "orderNumber": order.order_number,
        "tableId": order.table_id,
        "sessionId": order.session_id,
        "orderType": OrderType(order.order_type).value,
        "source": OrderSource(order.source).value,
        "status": OrderStatus(order.status).value,
        "notes": order.notes,
        "rejectionReason": order.rejection_reason,
        "cancellationReason": order.cancellation_reason,
        "subtotal": float(sum(i.price_snapshot * i.quantity for i in live)),
        "placedAt": isoformat(order.placed_at),
        "confirmedAt": isoformat(order.confirmed_at),
        "preparingAt": isoformat(order.preparing_at),
        "readyAt": isoformat(order.ready_at),
        "servedAt": isoformat(order.served_at),
        "completedAt": isoformat(order.completed_at),
        "rejectedAt": isoformat(order.rejected_at),
        "cancelledAt": isoformat(order.cancelled_at),
        "items": [serialize_item(i, policy) for i in order.items],
    }


def _order_event(
    event_type: EventType,
    order: Order,
    policy: RoutingPolicy,
    items: Iterable[OrderItem] | None = None,
    **extra: Any,
) -> DomainEvent:
    scoped = list(items) if items is not None else list(order.items)
    status = OrderStatus(order.status)
    return DomainEvent(
        type=event_type,
        restaurant_id=order.restaurant_id,
        table_id=order.table_id,
        stations=stations_of(scoped, policy),
        kitchen_visible=order.confirmed_at is not None,
        payload={
            "orderId": order.id,
            "orderNumber": order.order_number,
            "status": status.value,
            **extra,
        },
    )


def _publish(hub: NotificationHub | None, events: Sequence[DomainEvent]) -> None:
    if hub is not None and events:
        hub.publish_all(events)


def _validate_lines(lines: Sequence[Dict[str, Any]]) -> None:
    if not lines:
        raise ValidationError("an order needs at least one item")
    for line in lines:
        if int(line.get("quantity", 0)) < 1:
            raise ValidationError(
                "quantity must be at least 1", {"menu_item_id": line.get("menu_item_id")}
            )


async def _build_order(
    db: AsyncSession,
    restaurant_id: str,
    lines: Sequence[Dict[str, Any]],
    policy: RoutingPolicy,
    now,
    **fields: Any,
) -> Order:
    menu = await orders_repo_sql.load_menu_items(
        db, restaurant_id, [line["menu_item_id"] for line in lines]
    )
    order = Order(
        restaurant_id=restaurant_id,
        order_number=await orders_repo_sql.next_order_number(db, restaurant_id),
        placed_at=now,
        **fields,
    )
    for line_no, line in enumerate(lines):
        menu_item = menu[line["menu_item_id"]]
        order.items.append(
            OrderItem(
                menu_item_id=menu_item.id,
                line_no=line_no,
                name_snapshot=menu_item.name,
                price_snapshot=menu_item.price,
                category_snapshot=menu_item.category.name if menu_item.category else None,
                quantity=int(line["quantity"]),
                notes=line.get("notes"),
                status=OrderItemStatus.PENDING,
                kitchen_station=menu_item.kitchen_station,
                created_at=now,
            )
        )
    db.add(order)
    return order


def _dispatch_to_kitchen(order: Order, now) -> List[OrderItem]:
    """Move the order to CONFIRMED and every PENDING item to the kitchen."""

    apply_order_status(order, OrderStatus.CONFIRMED, now)
    sent = []
    for item in order.items:
        if item.status == OrderItemStatus.PENDING:
            apply_item_status(item, OrderItemStatus.SENT_TO_KITCHEN, now)
            sent.append(item)
    order_transitions_total.labels(status=OrderStatus.CONFIRMED.value).inc()
    return sent


def _touch_session_for_order(session: TableSession, now) -> None:
    if SessionPhase(session.phase) not in ORDERING_PHASES:
        raise InvalidTransition("session", session.phase, SessionPhase.ORDERING)
    apply_phase(session, SessionPhase.ORDERING)
    if session.first_order_at is None:
        session.first_order_at = now
    session.last_order_at = now


async def place_guest_order(
    db: AsyncSession,
    hub: NotificationHub | None,
    policy: RoutingPolicy,
    restaurant_id: str,
    table_id: str,
    lines: Sequence[Dict[str, Any]],
    *,
    requires_confirmation: bool = True,
    notes: str | None = None,
    actor: Actor,
) -> Order:
    """Place a QR order for the table's active, OTP-verified session.

    The order waits in PENDING_CONFIRMATION for staff when confirmation is
    required or the party size is still unknown; otherwise it goes straight
    to the kitchen in the same transaction.
    """

    _validate_lines(lines)
    now = utcnow()
    async with db.begin():
        await tables_repo_sql.get_table(db, restaurant_id, table_id)
        session = await tables_repo_sql.get_active_session(db, restaurant_id, table_id)
        if not session.otp_verified:
            raise Forbidden("verify the table OTP before ordering")
        order = await _build_order(
            db,
            restaurant_id,
            lines,
            policy,
            now,
            table_id=table_id,
            session_id=session.id,
            order_type=OrderType.DINE_IN,
            source=OrderSource.QR,
            status=OrderStatus.PENDING_CONFIRMATION,
            notes=notes,
        )
        _touch_session_for_order(session, now)
        auto_confirm = not requires_confirmation and session.guest_count >= 1
        if auto_confirm:
            _dispatch_to_kitchen(order, now)
        await db.flush()
        log_activity(
            db,
            restaurant_id,
            actor,
            "ORDER_PLACED",
            entity_type="order",
            entity_id=order.id,
            description=f"Guest placed {order.order_number}",
            details={"items": len(order.items), "autoConfirmed": auto_confirm},
        )
    orders_created_total.labels(source=OrderSource.QR.value).inc()
    logger.info(
        "guest order %s placed restaurant=%s status=%s",
        order.order_number,
        restaurant_id,
        OrderStatus(order.status).value,
    )
    _publish(hub, [_order_event(EventType.NEW_ORDER, order, policy)])
    return order


async def create_staff_order(
    db: AsyncSession,
    hub: NotificationHub | None,
    policy: RoutingPolicy,
    restaurant_id: str,
    lines: Sequence[Dict[str, Any]],
    *,
    actor: Actor,
    table_id: str | None = None,
    order_type: OrderType = OrderType.DINE_IN,
    notes: str | None = None,
) -> Order:
    """Create a PENDING order entered by staff; it reaches the kitchen via
    :func:`send_to_kitchen`. Takeaway orders carry no table or session."""

    _validate_lines(lines)
    if order_type is OrderType.DINE_IN and table_id is None:
        raise ValidationError("dine-in orders need a table")
    now = utcnow()
    async with db.begin():
        session = None
        if order_type is OrderType.DINE_IN:
            await tables_repo_sql.get_table(db, restaurant_id, table_id)
            session = await tables_repo_sql.get_active_session(
                db, restaurant_id, table_id
            )
        order = await _build_order(
            db,
            restaurant_id,
            lines,
            policy,
            now,
            table_id=table_id if session is not None else None,
            session_id=session.id if session is not None else None,
            order_type=order_type,
            source=OrderSource.STAFF,
            status=OrderStatus.PENDING,
            notes=notes,
            created_by=actor.id,
        )
        if session is not None:
            _touch_session_for_order(session, now)
        await db.flush()
        log_activity(
            db,
            restaurant_id,
            actor,
            "ORDER_CREATED",
            entity_type="order",
            entity_id=order.id,
            description=f"Staff created {order.order_number}",
        )
    orders_created_total.labels(source=OrderSource.STAFF.value).inc()
    _publish(hub, [_order_event(EventType.NEW_ORDER, order, policy)])
    return order


async def send_to_kitchen(
    db: AsyncSession,
    hub: NotificationHub | None,
    policy: RoutingPolicy,
    restaurant_id: str,
    order_id: str,
    *,
    actor: Actor,
) -> Order:
    """Dispatch a staff-entered PENDING order to the kitchen."""

    now = utcnow()
    async with db.begin():
        order = await orders_repo_sql.get_order(db, restaurant_id, order_id)
        expect_status(
            "order", OrderStatus(order.status), {OrderStatus.PENDING}, OrderStatus.CONFIRMED
        )
        sent = _dispatch_to_kitchen(order, now)
        order.confirmed_by = actor.id
        await orders_repo_sql.flush_claimed(db, order)
        log_activity(
            db,
            restaurant_id,
            actor,
            "ORDER_SENT_TO_KITCHEN",
            entity_type="order",
            entity_id=order.id,
            details={"items": len(sent)},
        )
    _publish(hub, [_order_event(EventType.ORDER_UPDATE, order, policy, sent)])
    return order


async def confirm_order(
    db: AsyncSession,
    hub: NotificationHub | None,
    policy: RoutingPolicy,
    restaurant_id: str,
    order_id: str,
    guest_count: int,
    *,
    actor: Actor,
) -> Order:
    """Confirm a guest order awaiting staff review.

    Stamps the party size and waiter on the session, moves the order to
    CONFIRMED and sends every PENDING item to the kitchen, atomically.
    """

    if guest_count is None or guest_count < 1:
        raise ValidationError("guest count must be at least 1")
    now = utcnow()
    async with db.begin():
        order = await orders_repo_sql.get_order(db, restaurant_id, order_id)
        expect_status(
            "order",
            OrderStatus(order.status),
            {OrderStatus.PENDING_CONFIRMATION},
            OrderStatus.CONFIRMED,
        )
        if order.session_id is not None:
            session = await tables_repo_sql.get_session(db, restaurant_id, order.session_id)
            if session.guest_count != guest_count:
                db.add(
                    GuestCountHistory(
                        restaurant_id=restaurant_id,
                        session_id=session.id,
                        previous_count=session.guest_count,
                        new_count=guest_count,
                        changed_by=actor.id,
                        reason="order confirmation",
                        created_at=now,
                    )
                )
            session.guest_count = guest_count
            session.waiter_id = actor.id
        sent = _dispatch_to_kitchen(order, now)
        order.confirmed_by = actor.id
        await orders_repo_sql.flush_claimed(db, order)
        log_activity(
            db,
            restaurant_id,
            actor,
            "ORDER_CONFIRMED",
            entity_type="order",
            entity_id=order.id,
            details={"guestCount": guest_count, "items": len(sent)},
        )
    logger.info("order %s confirmed by %s", order.order_number, actor.id)
    _publish(hub, [_order_event(EventType.ORDER_UPDATE, order, policy, sent)])
    return order


def _cancel_items(order: Order, now) -> List[OrderItem]:
    cancelled = []
    for item in order.items:
        if item.status in (OrderItemStatus.SERVED, OrderItemStatus.CANCELLED):
            continue
        apply_item_status(item, OrderItemStatus.CANCELLED, now, order_cancellation=True)
        cancelled.append(item)
    return cancelled


async def reject_order(
    db: AsyncSession,
    hub: NotificationHub | None,
    policy: RoutingPolicy,
    restaurant_id: str,
    order_id: str,
    reason: str,
    *,
    actor: Actor,
) -> Order:
    """Reject an order that never reached the kitchen."""

    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("a rejection reason is required")
    now = utcnow()
    async with db.begin():
        order = await orders_repo_sql.get_order(db, restaurant_id, order_id)
        expect_status("order", OrderStatus(order.status), AWAITING_KITCHEN, OrderStatus.CANCELLED)
        apply_order_status(order, OrderStatus.CANCELLED, now)
        order.rejected_at = now
        order.rejection_reason = reason
        _cancel_items(order, now)
        await orders_repo_sql.flush_claimed(db, order)
        log_activity(
            db,
            restaurant_id,
            actor,
            "ORDER_REJECTED",
            entity_type="order",
            entity_id=order.id,
            description=reason,
        )
    order_transitions_total.labels(status=OrderStatus.CANCELLED.value).inc()
    _publish(
        hub,
        [_order_event(EventType.ORDER_UPDATE, order, policy, rejected=True, reason=reason)],
    )
    return order


async def cancel_order(
    db: AsyncSession,
    hub: NotificationHub | None,
    policy: RoutingPolicy,
    restaurant_id: str,
    order_id: str,
    reason: str | None,
    *,
    actor: Actor,
) -> Order:
    """Cancel an order from any non-terminal state.

    Every non-terminal item is cancelled with it; items already served stay
    served.
    """

    now = utcnow()
    async with db.begin():
        order = await orders_repo_sql.get_order(db, restaurant_id, order_id)
        if order.status == OrderStatus.CANCELLED:
            raise Conflict("order is already CANCELLED")
        apply_order_status(order, OrderStatus.CANCELLED, now)
        order.cancellation_reason = reason
        cancelled = _cancel_items(order, now)
        await orders_repo_sql.flush_claimed(db, order)
        log_activity(
            db,
            restaurant_id,
            actor,
            "ORDER_CANCELLED",
            entity_type="order",
            entity_id=order.id,
            description=reason,
            details={"items": len(cancelled)},
        )
    order_transitions_total.labels(status=OrderStatus.CANCELLED.value).inc()
    _publish(
        hub,
        [_order_event(EventType.ORDER_UPDATE, order, policy, cancelled, reason=reason)],
    )
    return order


async def remove_pending_item(
    db: AsyncSession,
    hub: NotificationHub | None,
    policy: RoutingPolicy,
    restaurant_id: str,
    table_id: str,
    order_id: str,
    item_id: str,
    *,
    actor: Actor,
) -> Order:
    """Let a guest drop a line before staff confirm the order.

    Removing the last live line cancels the order.
    """

    now = utcnow()
    async with db.begin():
        session = await tables_repo_sql.get_active_session(db, restaurant_id, table_id)
        if not session.otp_verified:
            raise Forbidden("verify the table OTP before changing an order")
        order, item = await orders_repo_sql.get_order_item(
            db, restaurant_id, order_id, item_id
        )
        if order.session_id != session.id:
            raise Forbidden("order belongs to another party")
        if OrderStatus(order.status) not in AWAITING_KITCHEN:
            raise InvalidTransition("order item", item.status, OrderItemStatus.CANCELLED)
        apply_item_status(item, OrderItemStatus.CANCELLED, now)
        if all(i.status == OrderItemStatus.CANCELLED for i in order.items):
            apply_order_status(order, OrderStatus.CANCELLED, now)
            order.cancellation_reason = "all items removed"
        await orders_repo_sql.flush_claimed(db, order)
        log_activity(
            db,
            restaurant_id,
            actor,
            "ORDER_ITEM_REMOVED",
            entity_type="order_item",
            entity_id=item.id,
        )
    _publish(hub, [_order_event(EventType.ORDER_UPDATE, order, policy, [item])])
    return order


def _served_lines(items: Iterable[OrderItem]) -> List[StockLine]:
    return [
        StockLine(menu_item_id=i.menu_item_id, quantity=i.quantity, order_item_id=i.id)
        for i in items
    ]


async def _complete_if_party_left(
    db: AsyncSession, restaurant_id: str, order: Order, now
) -> bool:
    """Complete a SERVED order whose session already ended."""

    if order.status != OrderStatus.SERVED or order.session_id is None:
        return False
    session = await tables_repo_sql.get_session(db, restaurant_id, order.session_id)
    if session.status == SessionStatus.ACTIVE:
        return False
    apply_order_status(order, OrderStatus.COMPLETED, now)
    return True


def _after_item_change(
    order: Order,
    changed: List[OrderItem],
    new_order_status: OrderStatus | None,
    policy: RoutingPolicy,
) -> List[DomainEvent]:
    events = [
        _order_event(
            EventType.ORDER_UPDATE,
            order,
            policy,
            changed,
            itemStatuses=[
                {"id": i.id, "status": OrderItemStatus(i.status).value} for i in changed
            ],
        )
    ]
    if new_order_status is not None:
        order_transitions_total.labels(status=new_order_status.value).inc()
        if new_order_status is OrderStatus.READY:
            events.append(_order_event(EventType.ORDER_READY, order, policy))
    if order.status == OrderStatus.COMPLETED:
        order_transitions_total.labels(status=OrderStatus.COMPLETED.value).inc()
        events.append(
            _order_event(
                EventType.ORDER_COMPLETED, order, policy, sessionId=order.session_id
            )
        )
    return events


async def transition_order_item(
    db: AsyncSession,
    hub: NotificationHub | None,
    stock: StockService | None,
    policy: RoutingPolicy,
    restaurant_id: str,
    order_id: str,
    item_id: str,
    target: OrderItemStatus,
    *,
    actor: Actor,
) -> Order:
    """Move one item forward and recompute its order's status.

    Re-applying the status an item already holds is a no-op. Serving an
    item schedules a best-effort stock deduction once committed.
    """

    target = OrderItemStatus(target)
    now = utcnow()
    async with db.begin():
        order, item = await orders_repo_sql.get_order_item(
            db, restaurant_id, order_id, item_id
        )
        if target is OrderItemStatus.SENT_TO_KITCHEN and (
            OrderStatus(order.status) not in DERIVED_ORDER_STATUSES
        ):
            raise InvalidTransition("order item", item.status, target)
        changed = apply_item_status(item, target, now)
        if not changed:
            return order
        new_status = sync_order_status(order, now)
        if (
            target is OrderItemStatus.CANCELLED
            and all(i.status == OrderItemStatus.CANCELLED for i in order.items)
        ):
            apply_order_status(order, OrderStatus.CANCELLED, now)
            new_status = OrderStatus.CANCELLED
        elif new_status is OrderStatus.SERVED:
            await _complete_if_party_left(db, restaurant_id, order, now)
        await orders_repo_sql.flush_claimed(db, order)
        log_activity(
            db,
            restaurant_id,
            actor,
            "ORDER_ITEM_STATUS",
            entity_type="order_item",
            entity_id=item.id,
            details={"status": target.value},
        )
    item_transitions_total.labels(status=target.value).inc()
    _publish(hub, _after_item_change(order, [item], new_status, policy))
    if target is OrderItemStatus.SERVED:
        schedule_deduction(stock, restaurant_id, _served_lines([item]))
    return order


async def bulk_serve(
    db: AsyncSession,
    hub: NotificationHub | None,
    stock: StockService | None,
    policy: RoutingPolicy,
    restaurant_id: str,
    order_id: str,
    *,
    actor: Actor,
) -> Order:
    """Serve every READY item of an order in one transaction."""

    now = utcnow()
    async with db.begin():
        order = await orders_repo_sql.get_order(db, restaurant_id, order_id)
        ready = [i for i in order.items if i.status == OrderItemStatus.READY]
        if not ready:
            raise ValidationError("no items are ready to serve")
        for item in ready:
            apply_item_status(item, OrderItemStatus.SERVED, now)
        new_status = sync_order_status(order, now)
        if new_status is OrderStatus.SERVED:
            await _complete_if_party_left(db, restaurant_id, order, now)
        await orders_repo_sql.flush_claimed(db, order)
        log_activity(
            db,
            restaurant_id,
            actor,
            "ORDER_BULK_SERVED",
            entity_type="order",
            entity_id=order.id,
            details={"items": len(ready)},
        )
    item_transitions_total.labels(status=OrderItemStatus.SERVED.value).inc(len(ready))
    _publish(hub, _after_item_change(order, ready, new_status, policy))
    schedule_deduction(stock, restaurant_id, _served_lines(ready))
    return order


async def get_order(db: AsyncSession, restaurant_id: str, order_id: str) -> Order:
    async with db.begin():
        return await orders_repo_sql.get_order(db, restaurant_id, order_id)


async def list_table_orders(
    db: AsyncSession, restaurant_id: str, table_id: str
) -> List[Order]:
    """Orders of the table's current party."""

    async with db.begin():
        session = await tables_repo_sql.get_active_session(db, restaurant_id, table_id)
        return await orders_repo_sql.list_session_orders(db, session.id)
