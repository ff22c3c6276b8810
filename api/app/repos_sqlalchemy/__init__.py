"""SQLAlchemy-backed repository helpers.

This module also exposes ``RestaurantGuard``, a tiny helper ensuring that a
loaded row belongs to the restaurant a request is scoped to. Rows of other
restaurants are reported as missing so that ids never leak across tenants.
"""

from __future__ import annotations

from typing import Any, TypeVar

from ..domain.errors import NotFound

T = TypeVar("T")


class RestaurantGuard:
    """Utility providing restaurant scoping assertions."""

    @staticmethod
    def assert_restaurant(row: T | None, restaurant_id: str, what: str) -> T:
        """Return ``row`` if it exists and belongs to ``restaurant_id``.

        Raises
        ------
        AssertionError
            If ``restaurant_id`` is blank.
        NotFound
            If the row is missing or owned by a different restaurant.
        """

        if not restaurant_id:
            raise AssertionError("restaurant_id required")
        owner: Any = getattr(row, "restaurant_id", None)
        if row is None or owner != restaurant_id:
            raise NotFound(f"{what} not found")
        return row


__all__ = ["RestaurantGuard"]
