"""Request metrics keyed by route template rather than raw path."""

from __future__ import annotations

import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from ..routes_metrics import (
    http_errors_total,
    http_request_seconds,
    http_requests_total,
)


def route_template(request: Request) -> str:
    """``/g/{restaurant_id}/...`` style label so ids never explode cardinality."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        path = route_template(request)
        status = response.status_code
        http_requests_total.labels(
            path=path, method=request.method, status=str(status)
        ).inc()
        if status >= 400:
            http_errors_total.labels(status=str(status)).inc()
        # streams stay open for minutes; only the handshake is timed
        http_request_seconds.labels(path=path).observe(time.perf_counter() - started)
        return response
