"""Table and session state enumerations."""

from __future__ import annotations

from enum import Enum


class TableStatus(str, Enum):
    """Lifecycle states for a dining table."""

    AVAILABLE = "AVAILABLE"
    OCCUPIED = "OCCUPIED"
    RESERVED = "RESERVED"
    CLEANING = "CLEANING"
    BLOCKED = "BLOCKED"


# CLEANING -> AVAILABLE is only taken by a staff-confirmed "mark cleaned".
TABLE_TRANSITIONS: dict[TableStatus, list[TableStatus]] = {
    TableStatus.AVAILABLE: [
        TableStatus.OCCUPIED,
        TableStatus.RESERVED,
        TableStatus.BLOCKED,
    ],
    TableStatus.RESERVED: [
        TableStatus.OCCUPIED,
        TableStatus.AVAILABLE,
        TableStatus.BLOCKED,
    ],
    TableStatus.OCCUPIED: [TableStatus.CLEANING],
    TableStatus.CLEANING: [TableStatus.AVAILABLE],
    TableStatus.BLOCKED: [TableStatus.AVAILABLE],
}

# Statuses staff may set directly; the rest follow the session lifecycle.
MANUAL_TABLE_STATUSES = frozenset(
    {TableStatus.AVAILABLE, TableStatus.RESERVED, TableStatus.BLOCKED}
)

SEATABLE_TABLE = frozenset({TableStatus.AVAILABLE, TableStatus.RESERVED})


class SessionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class SessionPhase(str, Enum):
    """Guest-facing journey of a session, distinct from ``SessionStatus``."""

    CREATED = "CREATED"
    OTP_VERIFIED = "OTP_VERIFIED"
    ORDERING = "ORDERING"
    BILL_REQUESTED = "BILL_REQUESTED"
    ENDED = "ENDED"


PHASE_TRANSITIONS: dict[SessionPhase, list[SessionPhase]] = {
    SessionPhase.CREATED: [SessionPhase.OTP_VERIFIED, SessionPhase.ENDED],
    SessionPhase.OTP_VERIFIED: [
        SessionPhase.ORDERING,
        SessionPhase.BILL_REQUESTED,
        SessionPhase.ENDED,
    ],
    SessionPhase.ORDERING: [SessionPhase.BILL_REQUESTED, SessionPhase.ENDED],
    SessionPhase.BILL_REQUESTED: [SessionPhase.ORDERING, SessionPhase.ENDED],
    SessionPhase.ENDED: [],
}

ORDERING_PHASES = frozenset(
    {SessionPhase.OTP_VERIFIED, SessionPhase.ORDERING, SessionPhase.BILL_REQUESTED}
)


class EndReason(str, Enum):
    PAYMENT_COMPLETED = "PAYMENT_COMPLETED"
    MANUAL_END = "MANUAL_END"
    NO_SHOW = "NO_SHOW"
    TIMEOUT = "TIMEOUT"


class OtpAction(str, Enum):
    GENERATED = "GENERATED"
    ROTATED = "ROTATED"
    CHANGED_AFTER_SESSION = "CHANGED_AFTER_SESSION"
    USED = "USED"
