"""One structured log line per HTTP request.

JSON request bodies are attached with secrets masked; event streams are
never buffered. Successful requests are sampled at ``log_sample_2xx`` and
rejected guest writes at :data:`GUEST_4XX_SAMPLE`; server errors are
always logged.
"""

from __future__ import annotations

import json
import logging
import random
import time
import uuid
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from config import get_settings

from ..utils.responses import error_response
from .guest_utils import _is_guest_post, restaurant_from_path

REDACTED_KEYS = {
    "otp",
    "code",
    "authorization",
    "device_fingerprint",
    "email",
    "phone",
}
GUEST_4XX_SAMPLE = 0.1
BODY_METHODS = {"POST", "PUT", "PATCH"}

logger = logging.getLogger("api")


def _redact(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            k: "***" if k.lower() in REDACTED_KEYS else _redact(v)
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [_redact(v) for v in value]
    return value


async def _read_json_body(request: Request) -> Any:
    """Read the body once and replay it to the endpoint."""
    raw = await request.body()

    async def replay() -> dict:
        return {"type": "http.request", "body": raw, "more_body": False}

    request._receive = replay
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return None


def _wanted(request: Request, status: int) -> bool:
    if status >= 500:
        return True
    if status < 400:
        return random.random() < get_settings().log_sample_2xx
    if _is_guest_post(request.url.path, request.method):
        return random.random() < GUEST_4XX_SAMPLE
    return True


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        body = None
        if request.method in BODY_METHODS and not path.endswith("/stream"):
            body = await _read_json_body(request)

        started = time.perf_counter()
        error_id = None
        try:
            response = await call_next(request)
        except Exception:
            error_id = str(uuid.uuid4())
            logger.exception("unhandled error %s", error_id)
            response = error_response(500, "INTERNAL_ERROR", "Internal Server Error")
        status = response.status_code
        if not _wanted(request, status):
            return response

        fields: dict[str, Any] = {
            "method": request.method,
            "path": path,
            "ip": request.client.host if request.client else None,
        }
        if request.query_params:
            fields["query"] = _redact(dict(request.query_params))
        if body is not None:
            fields["body"] = _redact(body)
        if error_id:
            fields["error_id"] = error_id
        logger.log(
            logging.ERROR if status >= 500 else logging.INFO,
            "%s %s -> %d",
            request.method,
            path,
            status,
            extra={
                "restaurant": restaurant_from_path(path),
                "user": getattr(request.state, "user_id", None),
                "status": status,
                "latency_ms": int((time.perf_counter() - started) * 1000),
                "fields": fields,
            },
        )
        return response
