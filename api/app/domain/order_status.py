"""Order and order item status enumerations and allowed transitions."""

from __future__ import annotations

from enum import Enum


class OrderStatus(str, Enum):
    """Enumerate the lifecycle states for an order."""

    PENDING = "PENDING"
    PENDING_CONFIRMATION = "PENDING_CONFIRMATION"
    CONFIRMED = "CONFIRMED"
    PREPARING = "PREPARING"
    READY = "READY"
    SERVED = "SERVED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class OrderItemStatus(str, Enum):
    """Enumerate the preparation states of a single order line."""

    PENDING = "PENDING"
    SENT_TO_KITCHEN = "SENT_TO_KITCHEN"
    PREPARING = "PREPARING"
    READY = "READY"
    SERVED = "SERVED"
    CANCELLED = "CANCELLED"


class KitchenStation(str, Enum):
    """Preparation queue an order item is routed to."""

    KITCHEN = "KITCHEN"
    BAR = "BAR"


class OrderType(str, Enum):
    DINE_IN = "DINE_IN"
    TAKEAWAY = "TAKEAWAY"


class OrderSource(str, Enum):
    QR = "QR"
    STAFF = "STAFF"


# Order status only moves forward; CANCELLED is reachable while any item can
# still be cancelled.
ORDER_TRANSITIONS: dict[OrderStatus, list[OrderStatus]] = {
    OrderStatus.PENDING: [OrderStatus.CONFIRMED, OrderStatus.CANCELLED],
    OrderStatus.PENDING_CONFIRMATION: [OrderStatus.CONFIRMED, OrderStatus.CANCELLED],
    OrderStatus.CONFIRMED: [
        OrderStatus.PREPARING,
        OrderStatus.READY,
        OrderStatus.SERVED,
        OrderStatus.CANCELLED,
    ],
    OrderStatus.PREPARING: [
        OrderStatus.READY,
        OrderStatus.SERVED,
        OrderStatus.CANCELLED,
    ],
    OrderStatus.READY: [OrderStatus.SERVED, OrderStatus.CANCELLED],
    OrderStatus.SERVED: [OrderStatus.COMPLETED],
    OrderStatus.COMPLETED: [],
    OrderStatus.CANCELLED: [],
}

ORDER_RANK: dict[OrderStatus, int] = {
    OrderStatus.PENDING: 0,
    OrderStatus.PENDING_CONFIRMATION: 0,
    OrderStatus.CONFIRMED: 1,
    OrderStatus.PREPARING: 2,
    OrderStatus.READY: 3,
    OrderStatus.SERVED: 4,
    OrderStatus.COMPLETED: 5,
    OrderStatus.CANCELLED: 6,
}

ORDER_TIMESTAMPS: dict[OrderStatus, str] = {
    OrderStatus.CONFIRMED: "confirmed_at",
    OrderStatus.PREPARING: "preparing_at",
    OrderStatus.READY: "ready_at",
    OrderStatus.SERVED: "served_at",
    OrderStatus.COMPLETED: "completed_at",
    OrderStatus.CANCELLED: "cancelled_at",
}

# Once an order has been confirmed its status is derived from its items.
DERIVED_ORDER_STATUSES = frozenset(
    {
        OrderStatus.CONFIRMED,
        OrderStatus.PREPARING,
        OrderStatus.READY,
        OrderStatus.SERVED,
    }
)

AWAITING_KITCHEN = frozenset({OrderStatus.PENDING, OrderStatus.PENDING_CONFIRMATION})
ACTIVE_KITCHEN_ORDER = frozenset(
    {OrderStatus.CONFIRMED, OrderStatus.PREPARING, OrderStatus.READY}
)

ITEM_TRANSITIONS: dict[OrderItemStatus, list[OrderItemStatus]] = {
    OrderItemStatus.PENDING: [OrderItemStatus.SENT_TO_KITCHEN, OrderItemStatus.CANCELLED],
    OrderItemStatus.SENT_TO_KITCHEN: [
        OrderItemStatus.PREPARING,
        OrderItemStatus.READY,
        OrderItemStatus.CANCELLED,
    ],
    OrderItemStatus.PREPARING: [OrderItemStatus.READY, OrderItemStatus.CANCELLED],
    OrderItemStatus.READY: [OrderItemStatus.SERVED, OrderItemStatus.CANCELLED],
    OrderItemStatus.SERVED: [],
    OrderItemStatus.CANCELLED: [],
}

# Item-level cancellation requests are honoured only before dispatch.
USER_CANCELLABLE_ITEM = frozenset({OrderItemStatus.PENDING})

ITEM_TIMESTAMPS: dict[OrderItemStatus, str] = {
    OrderItemStatus.SENT_TO_KITCHEN: "sent_to_kitchen_at",
    OrderItemStatus.PREPARING: "preparing_at",
    OrderItemStatus.READY: "ready_at",
    OrderItemStatus.SERVED: "served_at",
    OrderItemStatus.CANCELLED: "cancelled_at",
}

KITCHEN_VISIBLE_ITEM = frozenset(
    {
        OrderItemStatus.SENT_TO_KITCHEN,
        OrderItemStatus.PREPARING,
        OrderItemStatus.READY,
    }
)


def can_transition(src: OrderStatus, dst: OrderStatus) -> bool:
    """Return ``True`` if an order can move from ``src`` to ``dst``."""

    return dst in ORDER_TRANSITIONS.get(src, [])


def can_transition_item(src: OrderItemStatus, dst: OrderItemStatus) -> bool:
    """Return ``True`` if an order item can move from ``src`` to ``dst``."""

    return dst in ITEM_TRANSITIONS.get(src, [])


def is_terminal_item(status: OrderItemStatus) -> bool:
    return not ITEM_TRANSITIONS[status]
