"""Queries for guest assistance requests."""

from __future__ import annotations

from typing import Iterable, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.assistance import AssistanceStatus, AssistanceType
from ..models_tenant import AssistanceRequest
from . import RestaurantGuard


async def get_request(
    session: AsyncSession, restaurant_id: str, request_id: str
) -> AssistanceRequest:
    row = await session.get(AssistanceRequest, request_id)
    return RestaurantGuard.assert_restaurant(row, restaurant_id, "assistance request")


async def list_for_session(
    session: AsyncSession, session_id: str
) -> List[AssistanceRequest]:
    result = await session.scalars(
        select(AssistanceRequest)
        .where(AssistanceRequest.session_id == session_id)
        .order_by(AssistanceRequest.created_at)
    )
    return list(result)


async def find_open(
    session: AsyncSession,
    session_id: str,
    request_type: AssistanceType,
    open_statuses: Iterable[AssistanceStatus],
) -> AssistanceRequest | None:
    """Return the open request of ``request_type`` for a session, if any."""

    return await session.scalar(
        select(AssistanceRequest).where(
            AssistanceRequest.session_id == session_id,
            AssistanceRequest.type == request_type,
            AssistanceRequest.status.in_(list(open_statuses)),
        )
    )


async def list_open(
    session: AsyncSession,
    restaurant_id: str,
    open_statuses: Iterable[AssistanceStatus],
) -> List[AssistanceRequest]:
    result = await session.scalars(
        select(AssistanceRequest)
        .where(
            AssistanceRequest.restaurant_id == restaurant_id,
            AssistanceRequest.status.in_(list(open_statuses)),
        )
        .order_by(AssistanceRequest.created_at)
    )
    return list(result)
