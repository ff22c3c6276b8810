"""Dependency helpers exposing process-scoped collaborators to routes."""

from __future__ import annotations

from fastapi import Request

from ..services.inventory import NullStockService, StockService
from ..services.kitchen_routing import RoutingPolicy

from config import get_settings


def get_policy(request: Request) -> RoutingPolicy:
    """Return the station routing policy built at startup."""
    policy = getattr(request.app.state, "policy", None)
    if policy is None:
        policy = RoutingPolicy.from_settings(get_settings())
    return policy


def get_stock(request: Request) -> StockService:
    """Return the configured stock service, or a no-op one."""
    return getattr(request.app.state, "stock", None) or NullStockService()


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "?"
