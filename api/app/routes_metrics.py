# routes_metrics.py

"""Prometheus collectors for the lifecycle engine and the ``/metrics`` route.

Collectors live at module level so services can increment them without
holding a reference to the application. Counters that may legitimately
stay at zero are touched once so they show up in the first scrape.
"""

from __future__ import annotations

from fastapi import APIRouter, Request, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# HTTP
http_requests_total = Counter(
    "http_requests_total", "HTTP requests by route template", ["path", "method", "status"]
)
http_errors_total = Counter(
    "http_errors_total", "HTTP responses with a 4xx or 5xx status", ["status"]
)
http_request_seconds = Histogram(
    "http_request_seconds", "Time to produce the response head", ["path"]
)

# Orders and sessions
orders_created_total = Counter(
    "orders_created_total", "Orders placed, by channel", ["source"]
)
order_transitions_total = Counter(
    "order_transitions_total", "Order status changes, by target status", ["status"]
)
item_transitions_total = Counter(
    "order_item_transitions_total", "Item status changes, by target status", ["status"]
)
sessions_ended_total = Counter(
    "table_sessions_ended_total", "Table sessions closed, by reason", ["reason"]
)
stock_deduction_failures_total = Counter(
    "stock_deduction_failures_total", "Stock deductions that failed and were skipped"
)

# Notifications
notifications_published_total = Counter(
    "notifications_published_total", "Domain events published", ["type"]
)
notifications_dropped_total = Counter(
    "notifications_dropped_total", "Subscribers evicted because their queue filled up"
)
subscribers_gauge = Gauge(
    "notification_subscribers", "Subscribers currently registered on the hub"
)
sse_clients_gauge = Gauge("sse_clients", "Open SSE connections")

# Storage
db_slow_queries_total = Counter(
    "db_slow_queries_total", "Statements slower than db_slow_query_ms", ["db"]
)

# Kitchen display
kds_oldest_wait_minutes = Gauge(
    "kds_oldest_wait_minutes", "Longest wait on a station display", ["station"]
)

for _counter in (stock_deduction_failures_total, notifications_dropped_total):
    _counter.inc(0)

router = APIRouter()


@router.get("/metrics")
async def metrics_endpoint(request: Request) -> Response:
    hub = getattr(request.app.state, "hub", None)
    subscribers_gauge.set(hub.subscriber_count if hub is not None else 0)
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
