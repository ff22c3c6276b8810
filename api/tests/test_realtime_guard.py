import pathlib
import sys
from types import SimpleNamespace

import pytest
from fastapi import HTTPException

sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))

from api.app.middlewares import realtime_guard  # noqa: E402
from api.app.middlewares.realtime_guard import StreamSlots  # noqa: E402


@pytest.fixture
def slots(monkeypatch):
    monkeypatch.setattr(
        realtime_guard, "get_settings", lambda: SimpleNamespace(max_conn_per_ip=2)
    )
    return StreamSlots()


def test_cap_applies_per_address(slots):
    slots.acquire("1.1.1.1")
    slots.acquire("1.1.1.1")
    with pytest.raises(HTTPException) as exc:
        slots.acquire("1.1.1.1")
    assert exc.value.status_code == 429
    assert exc.value.headers["Retry-After"] == "5"
    slots.acquire("2.2.2.2")
    assert slots.open == {"1.1.1.1": 2, "2.2.2.2": 1}


def test_release_frees_a_slot_and_never_goes_negative(slots):
    slots.acquire("1.1.1.1")
    slots.acquire("1.1.1.1")
    slots.release("1.1.1.1")
    slots.acquire("1.1.1.1")
    for _ in range(3):
        slots.release("1.1.1.1")
    assert "1.1.1.1" not in slots.open


def test_holding_returns_slot_when_subscribe_fails(slots):
    with pytest.raises(RuntimeError):
        with slots.holding("3.3.3.3"):
            raise RuntimeError("hub closed")
    assert "3.3.3.3" not in slots.open

    with slots.holding("3.3.3.3"):
        pass
    assert slots.open["3.3.3.3"] == 1
