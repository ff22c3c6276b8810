"""Best-effort stock deduction for served order items.

Serving a dish is the authoritative event; inventory accuracy is secondary.
Deductions therefore run in a background task after the serve transaction
commits, and any failure is logged and counted, never raised.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable, Protocol

import httpx

from ..domain.errors import ExternalServiceFailure
from ..routes_metrics import stock_deduction_failures_total

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StockLine:
    menu_item_id: int
    quantity: int
    order_item_id: str


class StockService(Protocol):
    async def deduct(self, restaurant_id: str, line: StockLine) -> None:
        """Deduct stock for one served line or raise ``ExternalServiceFailure``."""


class NullStockService:
    """Used when no stock service is configured."""

    async def deduct(self, restaurant_id: str, line: StockLine) -> None:
        logger.debug(
            "stock service not configured; skipping item=%s qty=%s",
            line.menu_item_id,
            line.quantity,
        )


class HttpStockService:
    """Client for an external inventory service exposing ``POST /deduct``."""

    def __init__(self, base_url: str, timeout: float = 3.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def deduct(self, restaurant_id: str, line: StockLine) -> None:
        payload = {
            "restaurantId": restaurant_id,
            "menuItemId": line.menu_item_id,
            "quantity": line.quantity,
            "reference": line.order_item_id,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(f"{self.base_url}/deduct", json=payload)
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise ExternalServiceFailure(
                "stock deduction failed", {"menu_item_id": line.menu_item_id}
            ) from exc


def build_stock_service(url: str | None, timeout: float) -> StockService:
    return HttpStockService(url, timeout) if url else NullStockService()


async def deduct_served(
    stock: StockService, restaurant_id: str, lines: Iterable[StockLine]
) -> int:
    """Deduct every line, swallowing failures. Returns the failure count."""

    failures = 0
    for line in lines:
        try:
            await stock.deduct(restaurant_id, line)
        except Exception:  # best effort; never fails the serve
            failures += 1
            stock_deduction_failures_total.inc()
            logger.warning(
                "stock deduction failed restaurant=%s item=%s qty=%s",
                restaurant_id,
                line.menu_item_id,
                line.quantity,
                exc_info=True,
            )
    return failures


_background: set[asyncio.Task] = set()


def schedule_deduction(
    stock: StockService | None, restaurant_id: str, lines: list[StockLine]
) -> asyncio.Task | None:
    """Run :func:`deduct_served` in the background without awaiting it."""

    if stock is None or not lines:
        return None
    task = asyncio.create_task(deduct_served(stock, restaurant_id, lines))
    _background.add(task)
    task.add_done_callback(_background.discard)
    return task
