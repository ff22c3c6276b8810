"""JSON log formatting with guest-secret redaction.

Every record becomes one JSON object. Context passed through ``extra``
under the names in :data:`CONTEXT_FIELDS` is lifted into the object; a
``fields`` mapping in ``extra`` is merged in as-is. The rendered message
is scrubbed for table OTPs, phone numbers and e-mail addresses.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from ..middlewares.request_id import request_id_ctx
from ..utils.clock import isoformat, utcnow

CONTEXT_FIELDS = (
    "restaurant",
    "table",
    "session",
    "order",
    "user",
    "route",
    "status",
    "latency_ms",
)

EMAIL_RE = re.compile(r"[\w.+-]+@[\w-]+\.[\w.-]+", re.I)
PHONE_RE = re.compile(r"\b\d{10}\b")
OTP_RE = re.compile(r"(?i)(otp[\"']?\s*[:=]?\s*[\"']?)(\d{3})\b")


def _redact_pii(text: str) -> str:
    text = EMAIL_RE.sub("***", text)
    text = OTP_RE.sub(lambda m: m.group(1) + "***", text)
    return PHONE_RE.sub("***", text)


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.req_id = request_id_ctx.get(None)
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, Any] = {
            "ts": isoformat(utcnow()),
            "level": record.levelname,
            "logger": record.name,
            "req_id": getattr(record, "req_id", None),
            "msg": _redact_pii(record.getMessage()),
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                data[name] = value
        fields = getattr(record, "fields", None)
        if isinstance(fields, dict):
            data.update(fields)
        if record.exc_info:
            data["exc"] = self.formatException(record.exc_info)
        return json.dumps(data, default=str)


def configure_logging(level: int | str = logging.INFO) -> None:
    """Route every logger through a single JSON handler on stderr."""
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    handler.addFilter(RequestIdFilter())

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)
    # request lines come from LoggingMiddleware
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
