import json
import logging
import pathlib
import sys
from types import SimpleNamespace

import pytest

sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))

from api.app.middlewares import logging as logging_mw  # noqa: E402
from api.app.middlewares.guest_utils import restaurant_from_path  # noqa: E402
from api.app.middlewares.request_id import accept_request_id  # noqa: E402
from api.app.obs.logging import JsonFormatter, _redact_pii  # noqa: E402


def test_redact_masks_otp_and_device():
    body = {
        "otp": "123",
        "guest_count": 2,
        "device_fingerprint": "abc",
        "items": [{"notes": "no onions", "phone": "5551234567"}],
    }
    assert logging_mw._redact(body) == {
        "otp": "***",
        "guest_count": 2,
        "device_fingerprint": "***",
        "items": [{"notes": "no onions", "phone": "***"}],
    }


def test_free_text_redaction():
    text = "guest typed otp: 042 from a@b.com 5551234567"
    assert _redact_pii(text) == "guest typed otp: *** from *** ***"


def test_json_formatter_redacts_message():
    record = logging.LogRecord("api", logging.INFO, __file__, 1, "otp=314", None, None)
    record.restaurant = "r1"
    data = json.loads(JsonFormatter().format(record))
    assert data["msg"] == "otp=***"
    assert data["restaurant"] == "r1"
    assert data["level"] == "INFO"


def test_restaurant_from_path():
    assert restaurant_from_path("/g/r1/tables/t1/scan") == "r1"
    assert restaurant_from_path("/api/outlet/r9/orders") == "r9"
    assert restaurant_from_path("/health") is None


@pytest.mark.anyio
async def test_request_logs_never_contain_the_otp(client, seeded, caplog, monkeypatch):
    monkeypatch.setattr(
        logging_mw, "get_settings", lambda: SimpleNamespace(log_sample_2xx=1.0)
    )
    caplog.set_level(logging.INFO, logger="api")
    await client.post(f"/g/r1/tables/{seeded.t1}/scan", json={})
    resp = await client.post(
        f"/g/r1/tables/{seeded.t1}/verify-otp",
        json={"otp": seeded.otp, "guest_count": 2, "device_fingerprint": "dev-1"},
    )
    assert resp.status_code == 200
    assert resp.headers["X-Request-ID"]

    lines = [
        json.loads(JsonFormatter().format(r))
        for r in caplog.records
        if r.name == "api" and getattr(r, "fields", {}).get("path", "").endswith(
            "/verify-otp"
        )
    ]
    assert len(lines) == 1
    line = lines[0]
    assert line["body"]["otp"] == "***"
    assert line["body"]["device_fingerprint"] == "***"
    assert line["body"]["guest_count"] == 2
    assert line["restaurant"] == "r1"
    assert line["status"] == 200
    assert "dev-1" not in json.dumps(line)


@pytest.mark.anyio
async def test_successful_requests_are_sampled(client, caplog, monkeypatch):
    monkeypatch.setattr(
        logging_mw, "get_settings", lambda: SimpleNamespace(log_sample_2xx=0.0)
    )
    caplog.set_level(logging.INFO, logger="api")
    await client.get("/health")
    assert not [r for r in caplog.records if getattr(r, "fields", None)]


def test_unsafe_request_ids_are_replaced():
    assert accept_request_id("abc-123.x_y") == "abc-123.x_y"
    replaced = accept_request_id("bad id\nwith newline")
    assert replaced != "bad id\nwith newline"
    assert len(replaced) == 36
    assert len(accept_request_id("x" * 65)) == 36
    assert len(accept_request_id(None)) == 36


def test_slow_statements_are_reported_without_parameters(caplog):
    from prometheus_client import REGISTRY
    from sqlalchemy import create_engine, text

    from api.app.obs.queries import add_query_logger

    def slow_count():
        return REGISTRY.get_sample_value("db_slow_queries_total", {"db": "probe"}) or 0

    engine = create_engine("sqlite://")
    add_query_logger(engine, "probe", threshold_ms=-1)
    before = slow_count()
    caplog.set_level(logging.WARNING, logger="obs")
    with engine.connect() as conn:
        conn.execute(text("SELECT :secret"), {"secret": "otp-999"})
    assert slow_count() >= before + 1
    assert "db=probe" in caplog.text
    assert "otp-999" not in caplog.text
    engine.dispose()
