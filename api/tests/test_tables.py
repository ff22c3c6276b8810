import pathlib
import sys
from datetime import timedelta

import pytest

sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))

from api.app.domain.errors import (  # noqa: E402
    Conflict,
    InvalidTransition,
    NotFound,
    ValidationError,
)
from api.app.domain.roles import Actor, Role  # noqa: E402
from api.app.domain.table_status import TableStatus  # noqa: E402
from api.app.services import session_lifecycle  # noqa: E402
from api.app.services import tables as table_service  # noqa: E402
from api.app.utils.clock import utcnow  # noqa: E402

RID = "r1"
MANAGER = Actor(id="manager-1", role=Role.MANAGER)
WAITER = Actor(id="waiter-1", role=Role.WAITER)


@pytest.mark.anyio
async def test_create_table_validates_and_issues_otp(session_factory, seeded):
    async with session_factory() as db:
        with pytest.raises(ValidationError):
            await table_service.create_table(db, RID, "  ", actor=MANAGER)
        with pytest.raises(ValidationError):
            await table_service.create_table(db, RID, "T9", 0, actor=MANAGER)
    async with session_factory() as db:
        with pytest.raises(Conflict):
            await table_service.create_table(db, RID, "T1", actor=MANAGER)
    async with session_factory() as db:
        table = await table_service.create_table(db, RID, " T3 ", 6, actor=MANAGER)
    assert table.table_number == "T3"
    assert table.status is TableStatus.AVAILABLE
    assert len(table.current_otp) == 3 and table.current_otp.isdigit()


@pytest.mark.anyio
async def test_serialized_table_hides_otp(db, seeded):
    tables = await table_service.list_tables(db, RID)
    assert [t.table_number for t in tables] == ["T1", "T2"]
    view = table_service.serialize_table(tables[0])
    assert "otp" not in {k.lower() for k in view}


@pytest.mark.anyio
async def test_manual_status_changes(db, hub, seeded):
    host = hub.subscribe(RID, Role.HOST)
    table = await table_service.set_table_status(
        db, hub, RID, seeded.t2, TableStatus.RESERVED, actor=WAITER
    )
    assert table.status is TableStatus.RESERVED
    assert host.queue.get_nowait()["payload"]["status"] == "RESERVED"
    # same status again publishes nothing
    await table_service.set_table_status(
        db, hub, RID, seeded.t2, TableStatus.RESERVED, actor=WAITER
    )
    assert host.queue.empty()
    with pytest.raises(ValidationError):
        await table_service.set_table_status(
            db, hub, RID, seeded.t2, TableStatus.CLEANING, actor=WAITER
        )


@pytest.mark.anyio
async def test_occupied_table_cannot_be_freed_by_hand(db, hub, seeded):
    await session_lifecycle.record_scan(db, hub, RID, seeded.t1)
    with pytest.raises(InvalidTransition):
        await table_service.set_table_status(
            db, hub, RID, seeded.t1, TableStatus.AVAILABLE, actor=WAITER
        )


@pytest.mark.anyio
async def test_rotate_otp_keeps_history(db, seeded):
    rotated = await table_service.rotate_table_otp(db, RID, seeded.t1, actor=MANAGER)
    assert rotated["otp"] != seeded.otp
    current = await table_service.current_otp(db, RID, seeded.t1)
    assert current["otp"] == rotated["otp"]
    history = await table_service.otp_history(db, RID, seeded.t1)
    assert [h["action"] for h in history] == ["ROTATED", "GENERATED"]
    assert history[0]["previousOtp"] == seeded.otp
    assert history[0]["actor"] == "manager-1"


@pytest.mark.anyio
async def test_tables_are_tenant_scoped(db, seeded):
    with pytest.raises(NotFound):
        await table_service.current_otp(db, "r2", seeded.t1)


@pytest.mark.anyio
async def test_cleaning_queue_flags_delays(db, hub, seeded):
    session = await session_lifecycle.seat_guests(db, hub, RID, seeded.t1, 2, actor=WAITER)
    await session_lifecycle.end_session(db, hub, RID, session.id, actor=WAITER)

    queue = await table_service.cleaning_queue(db, RID, alert_minutes=10)
    assert len(queue) == 1
    assert queue[0]["tableNumber"] == "T1"
    assert queue[0]["isDelayed"] is False

    later = utcnow() + timedelta(minutes=11)
    queue = await table_service.cleaning_queue(db, RID, alert_minutes=10, now=later)
    assert queue[0]["isDelayed"] is True
    assert queue[0]["waitingMinutes"] >= 10

    await table_service.mark_cleaned(db, hub, RID, seeded.t1, actor=WAITER)
    assert await table_service.cleaning_queue(db, RID, alert_minutes=10) == []
