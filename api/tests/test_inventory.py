import pathlib
import sys

import httpx
import pytest

sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))

from api.app.domain.errors import ExternalServiceFailure  # noqa: E402
from api.app.services import inventory  # noqa: E402
from api.app.services.inventory import (  # noqa: E402
    HttpStockService,
    NullStockService,
    StockLine,
    build_stock_service,
    deduct_served,
    schedule_deduction,
)

LINES = [StockLine(1, 2, "a"), StockLine(2, 1, "b"), StockLine(3, 1, "c")]


class FlakyStock:
    def __init__(self, failing):
        self.failing = set(failing)
        self.calls = []

    async def deduct(self, restaurant_id, line):
        self.calls.append(line.menu_item_id)
        if line.menu_item_id in self.failing:
            raise ExternalServiceFailure("stock down")


def test_build_stock_service():
    assert isinstance(build_stock_service(None, 1.0), NullStockService)
    service = build_stock_service("http://stock.local/", 2.0)
    assert isinstance(service, HttpStockService)
    assert service.base_url == "http://stock.local"


@pytest.mark.anyio
async def test_failures_are_counted_not_raised():
    stock = FlakyStock({2})
    failures = await deduct_served(stock, "r1", LINES)
    assert failures == 1
    assert stock.calls == [1, 2, 3]


@pytest.mark.anyio
async def test_unexpected_errors_are_swallowed_too():
    class Broken:
        async def deduct(self, restaurant_id, line):
            raise RuntimeError("boom")

    assert await deduct_served(Broken(), "r1", LINES) == 3


@pytest.mark.anyio
async def test_schedule_runs_in_background():
    stock = FlakyStock(set())
    assert schedule_deduction(None, "r1", LINES) is None
    assert schedule_deduction(stock, "r1", []) is None
    task = schedule_deduction(stock, "r1", LINES)
    assert task in inventory._background
    assert await task == 0
    assert stock.calls == [1, 2, 3]


@pytest.mark.anyio
async def test_http_stock_service_wraps_transport_errors(monkeypatch):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(503)

    transport = httpx.MockTransport(handler)
    real_client = httpx.AsyncClient

    def client_factory(**kwargs):
        return real_client(transport=transport, **kwargs)

    monkeypatch.setattr(inventory.httpx, "AsyncClient", client_factory)
    service = HttpStockService("http://stock.local")
    with pytest.raises(ExternalServiceFailure):
        await service.deduct("r1", LINES[0])
    assert seen[0].url.path == "/deduct"
