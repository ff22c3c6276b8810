"""Per-IP cap on concurrently open notification streams."""

from __future__ import annotations

from collections import Counter
from contextlib import contextmanager
from typing import Iterator

from fastapi import HTTPException

from config import get_settings


class StreamSlots:
    """Counts open streams per client address.

    The cap is read on every acquire so a settings reload applies to new
    connections without touching the ones already open.
    """

    def __init__(self) -> None:
        self.open: Counter[str] = Counter()

    def acquire(self, ip: str) -> None:
        if self.open[ip] >= get_settings().max_conn_per_ip:
            raise HTTPException(
                status_code=429,
                detail="too many open streams from this address",
                headers={"Retry-After": "5"},
            )
        self.open[ip] += 1

    def release(self, ip: str) -> None:
        remaining = self.open[ip] - 1
        if remaining > 0:
            self.open[ip] = remaining
        else:
            self.open.pop(ip, None)

    @contextmanager
    def holding(self, ip: str) -> Iterator[None]:
        """Acquire a slot and give it back if the body raises."""
        self.acquire(ip)
        try:
            yield
        except BaseException:
            self.release(ip)
            raise


slots = StreamSlots()
