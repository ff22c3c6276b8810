import pathlib
import sys
from datetime import timedelta

import pytest
from sqlalchemy import select

sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))

from api.app.domain.errors import (  # noqa: E402
    Conflict,
    Forbidden,
    InvalidTransition,
    ValidationError,
)
from api.app.domain.order_status import OrderItemStatus, OrderStatus  # noqa: E402
from api.app.domain.roles import GUEST_ACTOR, Actor, Role  # noqa: E402
from api.app.domain.table_status import (  # noqa: E402
    EndReason,
    SessionPhase,
    SessionStatus,
    TableStatus,
)
from api.app.events import EventType  # noqa: E402
from api.app.models_tenant import CleaningRecord, QrScanEvent  # noqa: E402
from api.app.services import order_lifecycle, session_lifecycle  # noqa: E402
from api.app.services import tables as table_service  # noqa: E402
from api.app.utils.clock import utcnow  # noqa: E402

RID = "r1"
WAITER = Actor(id="waiter-1", role=Role.WAITER)
HOST = Actor(id="host-1", role=Role.HOST)


@pytest.mark.anyio
async def test_scan_is_idempotent(db, hub, seeded):
    host = hub.subscribe(RID, Role.HOST)
    first, created = await session_lifecycle.record_scan(
        db, hub, RID, seeded.t1, device_fingerprint="phone-a"
    )
    assert created is True
    assert first.phase is SessionPhase.CREATED
    assert first.status is SessionStatus.ACTIVE
    scanned_at = first.qr_scanned_at

    second, created = await session_lifecycle.record_scan(
        db, hub, RID, seeded.t1, device_fingerprint="phone-b"
    )
    assert created is False
    assert second.id == first.id
    assert second.qr_scanned_at == scanned_at

    table = await table_service.list_tables(db, RID)
    assert {t.table_number: t.status for t in table}["T1"] is TableStatus.OCCUPIED
    scans = (await db.scalars(select(QrScanEvent))).all()
    assert len(scans) == 2
    assert {s.session_id for s in scans} == {first.id}
    # only the opening scan changes the table
    assert host.queue.qsize() == 1


@pytest.mark.anyio
async def test_scan_of_blocked_table_is_rejected(db, hub, seeded):
    await table_service.set_table_status(
        db, hub, RID, seeded.t2, TableStatus.BLOCKED, actor=HOST
    )
    with pytest.raises(InvalidTransition):
        await session_lifecycle.record_scan(db, hub, RID, seeded.t2)


@pytest.mark.anyio
async def test_verify_otp(db, hub, seeded):
    session, _ = await session_lifecycle.record_scan(db, hub, RID, seeded.t1)
    waiter = hub.subscribe(RID, Role.WAITER)

    session = await session_lifecycle.verify_otp(db, hub, RID, seeded.t1, seeded.otp, 3)

    assert session.phase is SessionPhase.OTP_VERIFIED
    assert session.otp_verified is True
    assert session.guest_count == 3
    assert session.otp_verified_at is not None
    alert = waiter.queue.get_nowait()
    assert alert["type"] == EventType.SESSION_ALERT.value
    assert alert["payload"]["alert"] == "GUEST_SEATED"


@pytest.mark.anyio
async def test_wrong_otp_leaves_session_untouched(db, hub, seeded):
    session, _ = await session_lifecycle.record_scan(db, hub, RID, seeded.t1)
    wrong = f"{(int(seeded.otp) + 1) % 1000:03d}"
    with pytest.raises(Forbidden):
        await session_lifecycle.verify_otp(db, hub, RID, seeded.t1, wrong, 2)
    assert session.phase is SessionPhase.CREATED
    assert session.otp_verified is False
    assert session.guest_count == 0
    scan = (await db.scalars(select(QrScanEvent))).one()
    assert scan.otp_attempts == 1


@pytest.mark.anyio
@pytest.mark.parametrize("code", ["12", "1234", "abc", ""])
async def test_malformed_otp_is_validation_error(db, hub, seeded, code):
    await session_lifecycle.record_scan(db, hub, RID, seeded.t1)
    with pytest.raises(ValidationError):
        await session_lifecycle.verify_otp(db, hub, RID, seeded.t1, code, 2)


@pytest.mark.anyio
async def test_second_device_keeps_guest_count(db, hub, seeded):
    await session_lifecycle.record_scan(db, hub, RID, seeded.t1, device_fingerprint="a")
    await session_lifecycle.verify_otp(db, hub, RID, seeded.t1, seeded.otp, 4)
    await session_lifecycle.record_scan(db, hub, RID, seeded.t1, device_fingerprint="b")
    session = await session_lifecycle.verify_otp(
        db, hub, RID, seeded.t1, seeded.otp, 1, device_fingerprint="b"
    )
    assert session.guest_count == 4


@pytest.mark.anyio
async def test_seat_guests(db, hub, seeded):
    session = await session_lifecycle.seat_guests(db, hub, RID, seeded.t2, 2, actor=WAITER)
    assert session.phase is SessionPhase.OTP_VERIFIED
    assert session.waiter_id == WAITER.id
    with pytest.raises(Conflict):
        await session_lifecycle.seat_guests(db, hub, RID, seeded.t2, 2, actor=WAITER)


@pytest.mark.anyio
async def test_end_session_rotates_otp_and_queues_cleaning(db, hub, policy, seeded):
    await session_lifecycle.record_scan(db, hub, RID, seeded.t1)
    session = await session_lifecycle.verify_otp(db, hub, RID, seeded.t1, seeded.otp, 2)
    pending = await order_lifecycle.place_guest_order(
        db,
        hub,
        policy,
        RID,
        seeded.t1,
        [{"menu_item_id": seeded.menu.burger, "quantity": 1}],
        actor=GUEST_ACTOR,
    )
    served = await order_lifecycle.place_guest_order(
        db,
        hub,
        policy,
        RID,
        seeded.t1,
        [{"menu_item_id": seeded.menu.cola, "quantity": 1}],
        requires_confirmation=False,
        actor=GUEST_ACTOR,
    )
    for target in (OrderItemStatus.READY, OrderItemStatus.SERVED):
        await order_lifecycle.transition_order_item(
            db, hub, None, policy, RID, served.id, served.items[0].id, target, actor=WAITER
        )
    guest = hub.subscribe(RID, Role.GUEST, table_id=seeded.t1)

    result = await session_lifecycle.end_session(
        db, hub, RID, session.id, actor=WAITER, reason=EndReason.PAYMENT_COMPLETED
    )

    table = result["table"]
    assert session.status is SessionStatus.COMPLETED
    assert session.phase is SessionPhase.ENDED
    assert session.vacated_at is not None
    assert table.status is TableStatus.CLEANING
    assert table.current_otp != seeded.otp
    assert len(table.current_otp) == 3 and table.current_otp.isdigit()
    assert result["completedOrders"] == [served.id]
    assert result["cancelledOrders"] == [pending.id]
    assert served.status is OrderStatus.COMPLETED
    assert pending.status is OrderStatus.CANCELLED
    record = (await db.scalars(select(CleaningRecord))).one()
    assert record.id == result["cleaningRecordId"]
    assert record.cleaned_at is None
    assert guest.queue.get_nowait()["type"] == EventType.SESSION_ENDED.value


@pytest.mark.anyio
async def test_old_otp_cannot_open_next_session(db, hub, seeded):
    await session_lifecycle.record_scan(db, hub, RID, seeded.t1)
    session = await session_lifecycle.verify_otp(db, hub, RID, seeded.t1, seeded.otp, 2)
    await session_lifecycle.end_session(db, hub, RID, session.id, actor=WAITER)
    # the table must be cleaned before anyone can sit down again
    with pytest.raises(InvalidTransition):
        await session_lifecycle.record_scan(db, hub, RID, seeded.t1)
    await table_service.mark_cleaned(db, hub, RID, seeded.t1, actor=WAITER)
    await session_lifecycle.record_scan(db, hub, RID, seeded.t1)
    with pytest.raises(Forbidden):
        await session_lifecycle.verify_otp(db, hub, RID, seeded.t1, seeded.otp, 2)


@pytest.mark.anyio
async def test_end_session_twice_is_conflict(db, hub, seeded):
    session = await session_lifecycle.seat_guests(db, hub, RID, seeded.t1, 2, actor=WAITER)
    await session_lifecycle.end_session(
        db, hub, RID, session.id, actor=WAITER, reason=EndReason.NO_SHOW
    )
    assert session.status is SessionStatus.CANCELLED
    with pytest.raises(Conflict):
        await session_lifecycle.end_session(db, hub, RID, session.id, actor=WAITER)


@pytest.mark.anyio
async def test_update_guest_count(db, hub, seeded):
    session = await session_lifecycle.seat_guests(db, hub, RID, seeded.t1, 2, actor=WAITER)
    with pytest.raises(ValidationError):
        await session_lifecycle.update_guest_count(db, RID, session.id, 0, actor=WAITER)
    session = await session_lifecycle.update_guest_count(
        db, RID, session.id, 5, actor=WAITER, reason="late arrivals"
    )
    assert session.guest_count == 5
    assert session.phase is SessionPhase.OTP_VERIFIED
    timeline = await session_lifecycle.session_timeline(db, RID, session.id)
    counts = [e for e in timeline if e["event"] == "GUEST_COUNT_UPDATED"]
    assert counts[0]["details"] == "2 -> 5: late arrivals"


@pytest.mark.anyio
async def test_request_bill_is_idempotent(db, hub, seeded):
    session = await session_lifecycle.seat_guests(db, hub, RID, seeded.t1, 2, actor=WAITER)
    waiter = hub.subscribe(RID, Role.WAITER)
    await session_lifecycle.request_bill(db, hub, RID, actor=GUEST_ACTOR, table_id=seeded.t1)
    first = session.bill_requested_at
    await session_lifecycle.request_bill(db, hub, RID, actor=WAITER, session_id=session.id)
    assert session.phase is SessionPhase.BILL_REQUESTED
    assert session.bill_requested_at == first
    assert waiter.queue.qsize() == 1
    assert waiter.queue.get_nowait()["type"] == EventType.BILL_REQUEST.value


@pytest.mark.anyio
async def test_guest_bill_request_needs_otp(db, hub, seeded):
    await session_lifecycle.record_scan(db, hub, RID, seeded.t1)
    with pytest.raises(Forbidden):
        await session_lifecycle.request_bill(
            db, hub, RID, actor=GUEST_ACTOR, table_id=seeded.t1
        )


@pytest.mark.anyio
async def test_payment_result(db, hub, seeded):
    session = await session_lifecycle.seat_guests(db, hub, RID, seeded.t1, 2, actor=WAITER)
    session = await session_lifecycle.record_payment(
        db, RID, session.id, success=False, amount=10.0, transaction_id="t-1", actor=WAITER
    )
    assert session.payment_completed_at is None
    session = await session_lifecycle.record_payment(
        db, RID, session.id, success=True, amount=10.0, transaction_id="t-2", actor=WAITER
    )
    assert session.payment_completed_at is not None
    assert session.payment_reference == "t-2"
    assert session.status is SessionStatus.ACTIVE


@pytest.mark.anyio
async def test_summary_durations(db, hub, policy, seeded):
    session = await session_lifecycle.seat_guests(db, hub, RID, seeded.t1, 2, actor=WAITER)
    await order_lifecycle.place_guest_order(
        db,
        hub,
        policy,
        RID,
        seeded.t1,
        [{"menu_item_id": seeded.menu.fries, "quantity": 2}],
        actor=GUEST_ACTOR,
    )
    summary = await session_lifecycle.session_summary(
        db, RID, session.id, now=utcnow() + timedelta(minutes=45)
    )
    assert summary["tableNumber"] == "T1"
    assert summary["totalOrders"] == 1
    assert summary["totalAmount"] == 8.0
    assert summary["durations"]["totalMinutes"] in (44, 45)
    assert summary["durations"]["orderToFoodMinutes"] is None


@pytest.mark.anyio
async def test_otp_help_alert(db, hub, seeded):
    await session_lifecycle.record_scan(db, hub, RID, seeded.t1)
    assert await session_lifecycle.scans_pending_otp_help(db, RID, 2) == []
    later = utcnow() + timedelta(minutes=3)
    pending = await session_lifecycle.scans_pending_otp_help(db, RID, 2, now=later)
    assert len(pending) == 1

    host = hub.subscribe(RID, Role.WAITER)
    await session_lifecycle.notify_otp_help(db, hub, RID, pending[0].id)
    await session_lifecycle.notify_otp_help(db, hub, RID, pending[0].id)
    assert host.queue.qsize() == 1
    assert host.queue.get_nowait()["payload"]["alert"] == "OTP_HELP"
    assert await session_lifecycle.scans_pending_otp_help(db, RID, 2, now=later) == []


@pytest.mark.anyio
async def test_guest_view_hides_otp(db, hub, seeded):
    view = await session_lifecycle.get_guest_view(db, RID, seeded.t1)
    assert view["session"] is None
    assert "otp" not in str(view).lower()
