"""HTTP middleware stack, outermost first: request id, logging, metrics."""

from .logging import LoggingMiddleware
from .metrics import MetricsMiddleware
from .request_id import RequestIdMiddleware

__all__ = ["RequestIdMiddleware", "LoggingMiddleware", "MetricsMiddleware"]
