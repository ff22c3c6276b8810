"""Guest assistance request types, states and transitions."""

from __future__ import annotations

from enum import Enum


class AssistanceType(str, Enum):
    WATER_REFILL = "WATER_REFILL"
    CALL_WAITER = "CALL_WAITER"
    CUTLERY_NAPKINS = "CUTLERY_NAPKINS"
    FOOD_ISSUE = "FOOD_ISSUE"
    BILL_REQUEST = "BILL_REQUEST"
    OTHER = "OTHER"


class AssistanceStatus(str, Enum):
    PENDING = "PENDING"
    NOTIFIED = "NOTIFIED"
    ACKNOWLEDGED = "ACKNOWLEDGED"
    IN_PROGRESS = "IN_PROGRESS"
    CANCELLED = "CANCELLED"
    RESOLVED = "RESOLVED"


ASSISTANCE_TRANSITIONS: dict[AssistanceStatus, list[AssistanceStatus]] = {
    AssistanceStatus.PENDING: [
        AssistanceStatus.NOTIFIED,
        AssistanceStatus.ACKNOWLEDGED,
        AssistanceStatus.IN_PROGRESS,
        AssistanceStatus.RESOLVED,
        AssistanceStatus.CANCELLED,
    ],
    AssistanceStatus.NOTIFIED: [
        AssistanceStatus.ACKNOWLEDGED,
        AssistanceStatus.IN_PROGRESS,
        AssistanceStatus.RESOLVED,
        AssistanceStatus.CANCELLED,
    ],
    AssistanceStatus.ACKNOWLEDGED: [
        AssistanceStatus.IN_PROGRESS,
        AssistanceStatus.RESOLVED,
        AssistanceStatus.CANCELLED,
    ],
    AssistanceStatus.IN_PROGRESS: [AssistanceStatus.RESOLVED, AssistanceStatus.CANCELLED],
    AssistanceStatus.CANCELLED: [],
    AssistanceStatus.RESOLVED: [],
}

OPEN_ASSISTANCE = frozenset(
    {
        AssistanceStatus.PENDING,
        AssistanceStatus.NOTIFIED,
        AssistanceStatus.ACKNOWLEDGED,
        AssistanceStatus.IN_PROGRESS,
    }
)

# Guests may withdraw a request only until staff picked it up.
GUEST_CANCELLABLE_ASSISTANCE = frozenset(
    {AssistanceStatus.PENDING, AssistanceStatus.NOTIFIED}
)

ASSISTANCE_TIMESTAMPS: dict[AssistanceStatus, str] = {
    AssistanceStatus.NOTIFIED: "notified_at",
    AssistanceStatus.ACKNOWLEDGED: "acknowledged_at",
    AssistanceStatus.IN_PROGRESS: "started_at",
    AssistanceStatus.RESOLVED: "resolved_at",
    AssistanceStatus.CANCELLED: "cancelled_at",
}
