"""Staff and guest roles used for authorization and event filtering."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    OWNER = "OWNER"
    MANAGER = "MANAGER"
    ADMIN = "ADMIN"
    WAITER = "WAITER"
    HOST = "HOST"
    KITCHEN = "KITCHEN"
    BAR = "BAR"
    GUEST = "GUEST"


MANAGEMENT = (Role.OWNER, Role.MANAGER, Role.ADMIN)
FLOOR_STAFF = (Role.WAITER, Role.HOST, *MANAGEMENT)
KITCHEN_STAFF = (Role.KITCHEN, Role.BAR, *MANAGEMENT)
STAFF_ROLES = tuple(r for r in Role if r is not Role.GUEST)


@dataclass(frozen=True)
class Actor:
    """Who performed a command; ``id`` is ``None`` for anonymous guests."""

    id: str | None
    role: Role

    @property
    def is_guest(self) -> bool:
        return self.role is Role.GUEST


GUEST_ACTOR = Actor(id=None, role=Role.GUEST)
