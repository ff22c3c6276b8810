"""Per-request correlation ids.

An inbound ``X-Request-ID`` is honoured when it looks like an opaque token
(letters, digits, ``-``, ``_`` and ``.``, at most 64 characters); anything
else is replaced with a fresh UUID so client input never reaches the logs
verbatim.
"""

from __future__ import annotations

import re
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

HEADER = "X-Request-ID"
_VALID_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)


def accept_request_id(value: str | None) -> str:
    """Return ``value`` if it is a usable id, else a new UUID4 string."""
    if value and _VALID_ID.match(value):
        return value
    return str(uuid.uuid4())


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        req_id = accept_request_id(request.headers.get(HEADER))
        request.state.request_id = req_id
        token = request_id_ctx.set(req_id)
        try:
            response = await call_next(request)
        finally:
            request_id_ctx.reset(token)
        response.headers[HEADER] = req_id
        return response
