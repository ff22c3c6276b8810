import pathlib
import sys

import pytest

sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))

from api.app.domain.roles import Role  # noqa: E402

RID = "r1"


async def _seat(client, seeded, guests=2):
    resp = await client.post(f"/g/{RID}/tables/{seeded.t1}/scan", json={})
    assert resp.status_code == 200
    resp = await client.post(
        f"/g/{RID}/tables/{seeded.t1}/verify-otp",
        json={"otp": seeded.otp, "guest_count": guests},
    )
    assert resp.status_code == 200
    return resp.json()["data"]


@pytest.mark.anyio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"ok": True, "data": {"status": "ok"}}


@pytest.mark.anyio
async def test_staff_routes_require_a_token(client):
    resp = await client.get(f"/api/outlet/{RID}/kds/KITCHEN/queue")
    assert resp.status_code == 401
    body = resp.json()
    assert body["ok"] is False
    assert body["error"]["code"] == 401
    assert "request_id" in body


@pytest.mark.anyio
async def test_token_for_another_restaurant_is_rejected(client, headers):
    resp = await client.get(
        f"/api/outlet/{RID}/kds/KITCHEN/queue", headers=headers(Role.KITCHEN, "r2")
    )
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "FORBIDDEN"


@pytest.mark.anyio
async def test_role_is_enforced(client, headers):
    resp = await client.post(
        f"/api/outlet/{RID}/orders",
        headers=headers(Role.KITCHEN),
        json={"items": [{"menu_item_id": 1}]},
    )
    assert resp.status_code == 403


@pytest.mark.anyio
async def test_scan_verify_order_confirm_and_display(client, seeded, headers):
    scan = await client.post(f"/g/{RID}/tables/{seeded.t1}/scan", json={})
    data = scan.json()["data"]
    assert data["created"] is True
    assert data["tableStatus"] == "OCCUPIED"
    assert "otp" not in data

    seated = await client.post(
        f"/g/{RID}/tables/{seeded.t1}/verify-otp",
        json={"otp": seeded.otp, "guest_count": 2},
    )
    assert seated.json()["data"]["otpVerified"] is True

    placed = await client.post(
        f"/g/{RID}/tables/{seeded.t1}/order",
        json={
            "items": [
                {"menu_item_id": seeded.menu.burger, "quantity": 2},
                {"menu_item_id": seeded.menu.cola},
            ]
        },
    )
    assert placed.status_code == 200
    order = placed.json()["data"]
    assert order["status"] == "PENDING_CONFIRMATION"
    assert order["subtotal"] == 27.0

    kitchen = headers(Role.KITCHEN, username="chef-1")
    queue = await client.get(f"/api/outlet/{RID}/kds/KITCHEN/queue", headers=kitchen)
    assert queue.json()["data"]["orders"] == []

    confirmed = await client.post(
        f"/api/outlet/{RID}/orders/{order['id']}/confirm",
        headers=headers(Role.WAITER),
        json={"guest_count": 2},
    )
    assert confirmed.status_code == 200
    assert confirmed.json()["data"]["status"] == "CONFIRMED"

    queue = await client.get(f"/api/outlet/{RID}/kds/KITCHEN/queue", headers=kitchen)
    orders = queue.json()["data"]["orders"]
    assert [o["orderId"] for o in orders] == [order["id"]]
    assert [i["name"] for i in orders[0]["items"]] == ["Burger"]

    summary = await client.get(f"/api/outlet/{RID}/kds/BAR/summary", headers=kitchen)
    assert summary.json()["data"]["totalItems"] == 1
    assert summary.json()["data"]["urgentThresholdMinutes"] == 10

    burger = next(i for i in order["items"] if i["name"] == "Burger")
    ready = await client.post(
        f"/api/outlet/{RID}/orders/{order['id']}/items/{burger['id']}/status",
        headers=kitchen,
        json={"status": "READY"},
    )
    assert ready.status_code == 200
    backwards = await client.post(
        f"/api/outlet/{RID}/orders/{order['id']}/items/{burger['id']}/status",
        headers=kitchen,
        json={"status": "PREPARING"},
    )
    assert backwards.status_code == 409
    assert backwards.json()["error"]["code"] == "INVALID_TRANSITION"


@pytest.mark.anyio
async def test_domain_errors_use_the_error_envelope(client, seeded):
    resp = await client.post(
        f"/g/{RID}/tables/{seeded.t1}/order",
        json={"items": [{"menu_item_id": seeded.menu.burger}]},
    )
    assert resp.status_code == 404
    body = resp.json()
    assert body["ok"] is False
    assert set(body["error"]) >= {"code", "message"}
    assert body["error"]["code"] == "NOT_FOUND"


@pytest.mark.anyio
async def test_malformed_body_is_a_validation_error(client, seeded):
    resp = await client.post(
        f"/g/{RID}/tables/{seeded.t1}/verify-otp", json={"otp": "123"}
    )
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.anyio
async def test_wrong_otp_is_forbidden(client, seeded):
    await client.post(f"/g/{RID}/tables/{seeded.t1}/scan", json={})
    wrong = f"{(int(seeded.otp) + 1) % 1000:03d}"
    resp = await client.post(
        f"/g/{RID}/tables/{seeded.t1}/verify-otp",
        json={"otp": wrong, "guest_count": 2},
    )
    assert resp.status_code == 403


@pytest.mark.anyio
async def test_end_session_then_clean(client, seeded, headers):
    seated = await _seat(client, seeded)
    waiter = headers(Role.WAITER)
    ended = await client.post(
        f"/api/outlet/{RID}/sessions/{seated['sessionId']}/end", headers=waiter
    )
    assert ended.status_code == 200
    data = ended.json()["data"]
    assert data["tableStatus"] == "CLEANING"
    assert data["newOtp"] != seeded.otp
    assert data["session"]["phase"] == "ENDED"

    queue = await client.get(f"/api/outlet/{RID}/tables/cleaning", headers=waiter)
    assert [e["tableId"] for e in queue.json()["data"]] == [seeded.t1]

    cleaned = await client.post(
        f"/api/outlet/{RID}/tables/{seeded.t1}/cleaned", headers=waiter
    )
    assert cleaned.json()["data"]["status"] == "AVAILABLE"
    again = await client.post(
        f"/api/outlet/{RID}/tables/{seeded.t1}/cleaned", headers=waiter
    )
    assert again.status_code == 409


@pytest.mark.anyio
async def test_otp_history_is_for_managers(client, seeded, headers):
    path = f"/api/outlet/{RID}/tables/{seeded.t1}/otp/history"
    assert (await client.get(path, headers=headers(Role.WAITER))).status_code == 403
    resp = await client.get(path, headers=headers(Role.MANAGER))
    assert resp.status_code == 200
    assert resp.json()["data"][0]["action"] == "GENERATED"


@pytest.mark.anyio
async def test_guest_stream_for_unknown_table_is_not_found(client):
    resp = await client.get(f"/g/{RID}/tables/nope/stream")
    assert resp.status_code == 404


@pytest.mark.anyio
async def test_staff_stream_requires_a_token(client):
    resp = await client.get(f"/api/outlet/{RID}/notifications/stream")
    assert resp.status_code == 401


@pytest.mark.anyio
async def test_guest_assistance_and_staff_resolution(client, seeded, headers):
    await _seat(client, seeded)
    created = await client.post(
        f"/g/{RID}/tables/{seeded.t1}/assistance", json={"type": "WATER_REFILL"}
    )
    assert created.status_code == 200
    request_id = created.json()["data"]["id"]
    duplicate = await client.post(
        f"/g/{RID}/tables/{seeded.t1}/assistance", json={"type": "WATER_REFILL"}
    )
    assert duplicate.status_code == 409

    waiter = headers(Role.WAITER)
    listed = await client.get(f"/api/outlet/{RID}/assistance", headers=waiter)
    assert [r["id"] for r in listed.json()["data"]] == [request_id]
    resolved = await client.post(
        f"/api/outlet/{RID}/assistance/{request_id}/resolve", headers=waiter
    )
    assert resolved.json()["data"]["status"] == "RESOLVED"
    assert resolved.json()["data"]["handledBy"] == "staff-1"
