"""Staff handling of guest assistance requests."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from .auth import User, role_required
from .db import get_session
from .domain.assistance import AssistanceStatus
from .domain.roles import FLOOR_STAFF
from .services import assistance as assistance_service
from .utils.responses import ok

router = APIRouter(prefix="/api/outlet/{restaurant_id}/assistance")

floor_staff = role_required(*FLOOR_STAFF)


@router.get("")
async def list_open(
    restaurant_id: str,
    user: User = Depends(floor_staff),
    db: AsyncSession = Depends(get_session),
) -> dict:
    requests = await assistance_service.list_open(db, restaurant_id)
    return ok([assistance_service.serialize_request(r) for r in requests])


async def _advance(db, restaurant_id, request_id, target, user: User) -> dict:
    request = await assistance_service.advance_request(
        db, restaurant_id, request_id, target, actor=user.actor
    )
    return ok(assistance_service.serialize_request(request))


@router.post("/{request_id}/acknowledge")
async def acknowledge(
    restaurant_id: str,
    request_id: str,
    user: User = Depends(floor_staff),
    db: AsyncSession = Depends(get_session),
) -> dict:
    return await _advance(
        db, restaurant_id, request_id, AssistanceStatus.ACKNOWLEDGED, user
    )


@router.post("/{request_id}/start")
async def start(
    restaurant_id: str,
    request_id: str,
    user: User = Depends(floor_staff),
    db: AsyncSession = Depends(get_session),
) -> dict:
    return await _advance(db, restaurant_id, request_id, AssistanceStatus.IN_PROGRESS, user)


@router.post("/{request_id}/resolve")
async def resolve(
    restaurant_id: str,
    request_id: str,
    user: User = Depends(floor_staff),
    db: AsyncSession = Depends(get_session),
) -> dict:
    return await _advance(db, restaurant_id, request_id, AssistanceStatus.RESOLVED, user)
