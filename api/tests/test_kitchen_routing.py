import pathlib
import sys
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))

from api.app.domain.order_status import (  # noqa: E402
    KitchenStation,
    OrderItemStatus,
    OrderStatus,
    OrderType,
)
from api.app.domain.roles import GUEST_ACTOR, Actor, Role  # noqa: E402
from api.app.services import order_lifecycle, session_lifecycle  # noqa: E402
from api.app.services.kitchen_routing import (  # noqa: E402
    RoutingPolicy,
    build_display_queue,
    get_display_queue,
    station_for,
    summarize,
    waiting_minutes,
)
from api.app.utils.clock import utcnow  # noqa: E402

RID = "r1"
WAITER = Actor(id="waiter-1", role=Role.WAITER)
NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
POLICY = RoutingPolicy(bar_categories=frozenset({"beverages", "drinks"}))


def _item(line_no, status, minutes_ago, category="Mains", station=None):
    return SimpleNamespace(
        id=f"i{line_no}",
        menu_item_id=line_no,
        line_no=line_no,
        name_snapshot=f"item {line_no}",
        quantity=1,
        notes=None,
        status=status,
        category_snapshot=category,
        kitchen_station=station,
        created_at=NOW - timedelta(minutes=minutes_ago),
        sent_to_kitchen_at=None,
        preparing_at=None,
        ready_at=None,
    )


def _order(number, minutes_ago, items, status=OrderStatus.CONFIRMED):
    return SimpleNamespace(
        id=f"o{number}",
        order_number=f"ORD-{number:05d}",
        status=status,
        order_type=OrderType.DINE_IN,
        table_id="t1",
        placed_at=NOW - timedelta(minutes=minutes_ago),
        items=items,
    )


def test_station_for_prefers_explicit_tag():
    assert station_for(None, "Beverages", POLICY) is KitchenStation.BAR
    assert station_for(None, "DRINKS", POLICY) is KitchenStation.BAR
    assert station_for(None, "Desserts", POLICY) is KitchenStation.KITCHEN
    assert station_for(None, None, POLICY) is KitchenStation.KITCHEN
    assert station_for("KITCHEN", "Beverages", POLICY) is KitchenStation.KITCHEN
    assert station_for(KitchenStation.BAR, "Mains", POLICY) is KitchenStation.BAR


def test_queue_is_fifo_by_placement():
    newer = _order(2, 3, [_item(1, OrderItemStatus.SENT_TO_KITCHEN, 3)])
    older = _order(1, 8, [_item(2, OrderItemStatus.PREPARING, 8)])
    queue = build_display_queue([newer, older], KitchenStation.KITCHEN, POLICY, NOW)
    assert [e["orderNumber"] for e in queue] == ["ORD-00001", "ORD-00002"]


def test_items_sorted_and_filtered_by_station():
    order = _order(
        1,
        5,
        [
            _item(3, OrderItemStatus.SENT_TO_KITCHEN, 1),
            _item(1, OrderItemStatus.PREPARING, 5),
            _item(2, OrderItemStatus.SENT_TO_KITCHEN, 4, category="Beverages"),
        ],
    )
    kitchen = build_display_queue([order], KitchenStation.KITCHEN, POLICY, NOW)
    bar = build_display_queue([order], KitchenStation.BAR, POLICY, NOW)
    assert [i["id"] for i in kitchen[0]["items"]] == ["i1", "i3"]
    assert [i["id"] for i in bar[0]["items"]] == ["i2"]
    assert bar[0]["items"][0]["kitchenStation"] == "BAR"


def test_pending_and_finished_items_are_hidden():
    order = _order(
        1,
        5,
        [
            _item(1, OrderItemStatus.PENDING, 5),
            _item(2, OrderItemStatus.SERVED, 5),
            _item(3, OrderItemStatus.CANCELLED, 5),
        ],
    )
    assert build_display_queue([order], KitchenStation.KITCHEN, POLICY, NOW) == []


def test_urgency_threshold_is_strict():
    at_threshold = _order(1, 10, [_item(1, OrderItemStatus.SENT_TO_KITCHEN, 10)])
    past = _order(2, 11, [_item(2, OrderItemStatus.SENT_TO_KITCHEN, 11)])
    queue = build_display_queue([at_threshold, past], KitchenStation.KITCHEN, POLICY, NOW)
    by_number = {e["orderNumber"]: e["metrics"] for e in queue}
    assert by_number["ORD-00001"] == {
        "waitingTimeMinutes": 10,
        "itemCount": 1,
        "isUrgent": False,
    }
    assert by_number["ORD-00002"]["isUrgent"] is True
    assert by_number["ORD-00002"]["waitingTimeMinutes"] == 11

    custom = RoutingPolicy(bar_categories=frozenset(), urgent_threshold_minutes=5)
    queue = build_display_queue([at_threshold], KitchenStation.KITCHEN, custom, NOW)
    assert queue[0]["metrics"]["isUrgent"] is True


def test_waiting_minutes_ignores_served_items():
    items = [
        _item(1, OrderItemStatus.SERVED, 30),
        _item(2, OrderItemStatus.READY, 4),
    ]
    assert waiting_minutes(items, NOW) == 4
    assert waiting_minutes([], NOW) == 0


def test_summary_counts():
    order = _order(
        1,
        12,
        [
            _item(1, OrderItemStatus.SENT_TO_KITCHEN, 12),
            _item(2, OrderItemStatus.PREPARING, 12),
            _item(3, OrderItemStatus.READY, 12),
        ],
    )
    summary = summarize(build_display_queue([order], KitchenStation.KITCHEN, POLICY, NOW))
    assert summary == {
        "totalOrders": 1,
        "totalItems": 3,
        "pendingItems": 1,
        "preparingItems": 1,
        "readyItems": 1,
        "urgentOrders": 1,
    }


@pytest.mark.anyio
async def test_display_queue_excludes_unconfirmed_orders(db, hub, policy, seeded):
    await session_lifecycle.record_scan(db, hub, RID, seeded.t1)
    await session_lifecycle.verify_otp(db, hub, RID, seeded.t1, seeded.otp, 2)
    lines = [
        {"menu_item_id": seeded.menu.burger, "quantity": 1},
        {"menu_item_id": seeded.menu.cola, "quantity": 1},
    ]
    waiting = await order_lifecycle.place_guest_order(
        db, hub, policy, RID, seeded.t1, lines, actor=GUEST_ACTOR
    )
    async with db.begin():
        queue = await get_display_queue(db, RID, KitchenStation.KITCHEN, policy, utcnow())
    assert queue == []

    await order_lifecycle.confirm_order(db, hub, policy, RID, waiting.id, 2, actor=WAITER)
    async with db.begin():
        kitchen = await get_display_queue(db, RID, KitchenStation.KITCHEN, policy, utcnow())
        bar = await get_display_queue(db, RID, KitchenStation.BAR, policy, utcnow())
    assert [e["orderId"] for e in kitchen] == [waiting.id]
    assert kitchen[0]["tableNumber"] == "T1"
    assert [i["name"] for i in kitchen[0]["items"]] == ["Burger"]
    assert [i["name"] for i in bar[0]["items"]] == ["Cola"]
    for entry in kitchen + bar:
        for item in entry["items"]:
            assert item["status"] != OrderItemStatus.PENDING.value


@pytest.mark.anyio
async def test_display_queue_is_tenant_scoped(db, hub, policy, seeded):
    await order_lifecycle.create_staff_order(
        db,
        hub,
        policy,
        RID,
        [{"menu_item_id": seeded.menu.fries, "quantity": 1}],
        actor=WAITER,
        order_type=OrderType.TAKEAWAY,
    )
    async with db.begin():
        other = await get_display_queue(db, "r2", KitchenStation.KITCHEN, policy, utcnow())
    assert other == []
