"""Shared helpers for guest request handling."""

from __future__ import annotations

import re

_RESTAURANT_RE = re.compile(r"^/(?:g|api/outlet)/([^/]+)/")


def _is_guest_post(path: str, method: str) -> bool:
    """Return True if the request is a guest POST to ``/g/*``."""
    return method == "POST" and path.startswith("/g/")


def restaurant_from_path(path: str) -> str | None:
    """Extract the restaurant id from guest and outlet routes."""
    match = _RESTAURANT_RE.match(path)
    return match.group(1) if match else None
