"""Audit trail of staff and guest actions."""

from __future__ import annotations

import logging
from typing import Any, Dict

from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.roles import Actor
from ..models_tenant import ActivityLog

logger = logging.getLogger(__name__)


def log_activity(
    session: AsyncSession,
    restaurant_id: str,
    actor: Actor,
    activity_type: str,
    *,
    entity_type: str | None = None,
    entity_id: str | None = None,
    description: str | None = None,
    details: Dict[str, Any] | None = None,
) -> ActivityLog:
    """Stage an ``ActivityLog`` row in the caller's transaction."""

    entry = ActivityLog(
        restaurant_id=restaurant_id,
        actor=actor.id,
        actor_role=actor.role.value,
        activity_type=activity_type,
        entity_type=entity_type,
        entity_id=entity_id,
        description=description,
        details=details or {},
    )
    session.add(entry)
    logger.debug(
        "activity %s %s:%s by %s", activity_type, entity_type, entity_id, actor.id
    )
    return entry
