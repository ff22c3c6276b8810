"""Domain models and helpers."""

from .assistance import AssistanceStatus, AssistanceType
from .errors import (
    Conflict,
    DomainError,
    ExternalServiceFailure,
    Forbidden,
    InvalidTransition,
    NotFound,
    ValidationError,
)
from .order_status import (
    KitchenStation,
    OrderItemStatus,
    OrderSource,
    OrderStatus,
    OrderType,
    can_transition,
    can_transition_item,
)
from .table_status import (
    EndReason,
    OtpAction,
    SessionPhase,
    SessionStatus,
    TableStatus,
)

__all__ = [
    "AssistanceStatus",
    "AssistanceType",
    "Conflict",
    "DomainError",
    "EndReason",
    "ExternalServiceFailure",
    "Forbidden",
    "InvalidTransition",
    "KitchenStation",
    "NotFound",
    "OrderItemStatus",
    "OrderSource",
    "OrderStatus",
    "OrderType",
    "OtpAction",
    "SessionPhase",
    "SessionStatus",
    "TableStatus",
    "ValidationError",
    "can_transition",
    "can_transition_item",
]
