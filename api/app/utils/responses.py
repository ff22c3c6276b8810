"""Response envelopes shared by every route.

Success bodies look like ``{"ok": true, "data": ...}``. Failures carry the
request id so a guest screenshot can be matched to a log line.
"""

from __future__ import annotations

from typing import Any

from fastapi.responses import JSONResponse


def ok(data: Any) -> dict[str, Any]:
    return {"ok": True, "data": data}


def err(
    code: int | str, message: str, details: dict[str, Any] | None = None
) -> dict[str, Any]:
    from ..middlewares.request_id import request_id_ctx

    error: dict[str, Any] = {"code": code, "message": message}
    if details:
        error["details"] = details
    return {"ok": False, "request_id": request_id_ctx.get(None), "error": error}


def error_response(
    status_code: int,
    code: int | str,
    message: str,
    details: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Wrap :func:`err` in a ``JSONResponse`` with the given status."""
    return JSONResponse(
        err(code, message, details), status_code=status_code, headers=headers
    )
