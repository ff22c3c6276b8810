"""Tenant-scoped database models.

Every row carries a ``restaurant_id``; queries always filter on it so that
one database can serve many restaurants. These models are kept isolated
from any application wiring so that they can be used in tests or
migrations independently.

Table, TableSession, Order and OrderItem use a SQLAlchemy version counter;
a concurrent writer that lost the race gets ``StaleDataError`` on flush.
"""

from __future__ import annotations

import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import declarative_base, relationship

from .domain.assistance import OPEN_ASSISTANCE, AssistanceStatus, AssistanceType
from .domain.order_status import (
    KitchenStation,
    OrderItemStatus,
    OrderSource,
    OrderStatus,
    OrderType,
)
from .domain.table_status import (
    EndReason,
    OtpAction,
    SessionPhase,
    SessionStatus,
    TableStatus,
)
from .utils.clock import utcnow

Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


OPEN_ASSISTANCE_SQL = "status IN ({})".format(
    ", ".join(sorted(f"'{s.value}'" for s in OPEN_ASSISTANCE))
)


def _enum(enum_cls) -> Enum:
    return Enum(enum_cls, native_enum=False, length=32, validate_strings=True)


class MenuCategory(Base):
    """Categories for menu items; the name drives bar routing."""

    __tablename__ = "menu_categories"

    id = Column(Integer, primary_key=True)
    restaurant_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    sort = Column(Integer, nullable=False, default=0)


class MenuItem(Base):
    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True)
    restaurant_id = Column(String, nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("menu_categories.id"), nullable=False)
    name = Column(String, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    # Explicit routing tag; ``None`` falls back to the category allow-list.
    kitchen_station = Column(_enum(KitchenStation), nullable=True)
    is_available = Column(Boolean, nullable=False, default=True)

    category = relationship("MenuCategory", lazy="selectin")


class Table(Base):
    """Dining tables guarded by a rotating 3-digit OTP."""

    __tablename__ = "tables"
    __table_args__ = (
        UniqueConstraint("restaurant_id", "table_number", name="uq_table_number"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    restaurant_id = Column(String, nullable=False, index=True)
    table_number = Column(String, nullable=False)
    capacity = Column(Integer, nullable=False, default=4)
    status = Column(_enum(TableStatus), nullable=False, default=TableStatus.AVAILABLE)
    current_otp = Column(String(3), nullable=True)
    otp_generated_at = Column(DateTime(timezone=True), nullable=True)
    last_cleaned_at = Column(DateTime(timezone=True), nullable=True)
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __mapper_args__ = {"version_id_col": version}


class TableSession(Base):
    """One seated party at a table, from scan or seating to vacating."""

    __tablename__ = "table_sessions"
    __table_args__ = (
        # At most one ACTIVE session per table.
        Index(
            "uq_active_session_per_table",
            "table_id",
            unique=True,
            sqlite_where=text("status = 'ACTIVE'"),
            postgresql_where=text("status = 'ACTIVE'"),
        ),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    restaurant_id = Column(String, nullable=False, index=True)
    table_id = Column(String(36), ForeignKey("tables.id"), nullable=False)
    status = Column(_enum(SessionStatus), nullable=False, default=SessionStatus.ACTIVE)
    phase = Column(_enum(SessionPhase), nullable=False, default=SessionPhase.CREATED)
    guest_count = Column(Integer, nullable=False, default=0)
    otp_verified = Column(Boolean, nullable=False, default=False)
    waiter_id = Column(String, nullable=True)
    end_reason = Column(_enum(EndReason), nullable=True)
    payment_reference = Column(String, nullable=True)

    qr_scanned_at = Column(DateTime(timezone=True), nullable=True)
    otp_verified_at = Column(DateTime(timezone=True), nullable=True)
    seated_at = Column(DateTime(timezone=True), nullable=True)
    first_order_at = Column(DateTime(timezone=True), nullable=True)
    last_order_at = Column(DateTime(timezone=True), nullable=True)
    bill_requested_at = Column(DateTime(timezone=True), nullable=True)
    payment_completed_at = Column(DateTime(timezone=True), nullable=True)
    vacated_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    version = Column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}


class QrScanEvent(Base):
    __tablename__ = "qr_scan_events"

    id = Column(String(36), primary_key=True, default=_uuid)
    restaurant_id = Column(String, nullable=False, index=True)
    table_id = Column(String(36), ForeignKey("tables.id"), nullable=False)
    session_id = Column(String(36), ForeignKey("table_sessions.id"), nullable=True)
    device_fingerprint = Column(String, nullable=True)
    ip_address = Column(String, nullable=True)
    user_agent = Column(Text, nullable=True)
    scanned_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    otp_attempts = Column(Integer, nullable=False, default=0)
    otp_entered_at = Column(DateTime(timezone=True), nullable=True)
    otp_help_notified_at = Column(DateTime(timezone=True), nullable=True)


class Order(Base):
    """Orders placed by guests via QR or entered by staff."""

    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint("restaurant_id", "order_number", name="uq_order_number"),
        Index("idx_orders_restaurant_status_placed", "restaurant_id", "status", "placed_at"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    restaurant_id = Column(String, nullable=False, index=True)
    table_id = Column(String(36), ForeignKey("tables.id"), nullable=True)
    session_id = Column(String(36), ForeignKey("table_sessions.id"), nullable=True)
    order_number = Column(String, nullable=False)
    order_type = Column(_enum(OrderType), nullable=False, default=OrderType.DINE_IN)
    source = Column(_enum(OrderSource), nullable=False, default=OrderSource.STAFF)
    status = Column(_enum(OrderStatus), nullable=False, default=OrderStatus.PENDING)
    notes = Column(Text, nullable=True)
    created_by = Column(String, nullable=True)
    confirmed_by = Column(String, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    placed_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    preparing_at = Column(DateTime(timezone=True), nullable=True)
    ready_at = Column(DateTime(timezone=True), nullable=True)
    served_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    version = Column(Integer, nullable=False, default=1)

    items = relationship(
        "OrderItem",
        lazy="selectin",
        order_by=lambda: [OrderItem.created_at, OrderItem.line_no],
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}


class OrderItem(Base):
    """Order lines with menu name and price snapshotted at placement."""

    __tablename__ = "order_items"

    id = Column(String(36), primary_key=True, default=_uuid)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    menu_item_id = Column(Integer, ForeignKey("menu_items.id"), nullable=False)
    line_no = Column(Integer, nullable=False, default=0)
    name_snapshot = Column(String, nullable=False)
    price_snapshot = Column(Numeric(10, 2), nullable=False)
    category_snapshot = Column(String, nullable=True)
    quantity = Column(Integer, nullable=False, default=1)
    notes = Column(Text, nullable=True)
    status = Column(_enum(OrderItemStatus), nullable=False, default=OrderItemStatus.PENDING)
    # Copied from the menu item tag; ``None`` routes by category name.
    kitchen_station = Column(_enum(KitchenStation), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    sent_to_kitchen_at = Column(DateTime(timezone=True), nullable=True)
    preparing_at = Column(DateTime(timezone=True), nullable=True)
    ready_at = Column(DateTime(timezone=True), nullable=True)
    served_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    version = Column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}


class AssistanceRequest(Base):
    __tablename__ = "assistance_requests"
    __table_args__ = (
        # At most one open request per (session, type).
        Index(
            "uq_open_assistance_per_session_type",
            "session_id",
            "type",
            unique=True,
            sqlite_where=text(OPEN_ASSISTANCE_SQL),
            postgresql_where=text(OPEN_ASSISTANCE_SQL),
        ),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    restaurant_id = Column(String, nullable=False, index=True)
    session_id = Column(String(36), ForeignKey("table_sessions.id"), nullable=False)
    table_id = Column(String(36), ForeignKey("tables.id"), nullable=False)
    type = Column(_enum(AssistanceType), nullable=False)
    status = Column(
        _enum(AssistanceStatus), nullable=False, default=AssistanceStatus.PENDING
    )
    message = Column(Text, nullable=True)
    handled_by = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    notified_at = Column(DateTime(timezone=True), nullable=True)
    acknowledged_at = Column(DateTime(timezone=True), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)


class CleaningRecord(Base):
    """Cleaning task enqueued when a session ends."""

    __tablename__ = "cleaning_records"

    id = Column(String(36), primary_key=True, default=_uuid)
    restaurant_id = Column(String, nullable=False, index=True)
    table_id = Column(String(36), ForeignKey("tables.id"), nullable=False)
    session_id = Column(String(36), ForeignKey("table_sessions.id"), nullable=True)
    requested_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    cleaned_at = Column(DateTime(timezone=True), nullable=True)
    cleaned_by = Column(String, nullable=True)
    duration_minutes = Column(Integer, nullable=True)


class OtpHistory(Base):
    __tablename__ = "otp_history"

    id = Column(Integer, primary_key=True)
    restaurant_id = Column(String, nullable=False, index=True)
    table_id = Column(String(36), ForeignKey("tables.id"), nullable=False)
    otp = Column(String(3), nullable=False)
    previous_otp = Column(String(3), nullable=True)
    action = Column(_enum(OtpAction), nullable=False)
    actor = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class GuestCountHistory(Base):
    __tablename__ = "guest_count_history"

    id = Column(Integer, primary_key=True)
    restaurant_id = Column(String, nullable=False, index=True)
    session_id = Column(String(36), ForeignKey("table_sessions.id"), nullable=False)
    previous_count = Column(Integer, nullable=False)
    new_count = Column(Integer, nullable=False)
    changed_by = Column(String, nullable=True)
    reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class ActivityLog(Base):
    """Append-only audit trail of staff and guest actions."""

    __tablename__ = "activity_log"

    id = Column(Integer, primary_key=True)
    restaurant_id = Column(String, nullable=False, index=True)
    actor = Column(String, nullable=True)
    actor_role = Column(String, nullable=True)
    activity_type = Column(String, nullable=False)
    entity_type = Column(String, nullable=True)
    entity_id = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    details = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


__all__ = [
    "ActivityLog",
    "AssistanceRequest",
    "Base",
    "CleaningRecord",
    "GuestCountHistory",
    "MenuCategory",
    "MenuItem",
    "Order",
    "OrderItem",
    "OtpHistory",
    "QrScanEvent",
    "Table",
    "TableSession",
]
