"""table lifecycle schema

Revision ID: 0001_table_lifecycle_schema
Revises:
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa

revision: str = "0001_table_lifecycle_schema"
down_revision: str | None = None
branch_labels: tuple[str, ...] | None = None
depends_on: tuple[str, ...] | None = None


OPEN_ASSISTANCE_SQL = (
    "status IN ('ACKNOWLEDGED', 'IN_PROGRESS', 'NOTIFIED', 'PENDING')"
)


def _ts(name: str, nullable: bool = True) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def _status(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.String(length=32), nullable=nullable)


def upgrade() -> None:
    op.create_table(
        "menu_categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("restaurant_id", sa.String(), nullable=False, index=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("sort", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_table(
        "menu_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("restaurant_id", sa.String(), nullable=False, index=True),
        sa.Column(
            "category_id",
            sa.Integer(),
            sa.ForeignKey("menu_categories.id"),
            nullable=False,
        ),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        _status("kitchen_station", nullable=True),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_table(
        "tables",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("restaurant_id", sa.String(), nullable=False, index=True),
        sa.Column("table_number", sa.String(), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False, server_default="4"),
        _status("status"),
        sa.Column("current_otp", sa.String(length=3), nullable=True),
        _ts("otp_generated_at"),
        _ts("last_cleaned_at"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        _ts("created_at", nullable=False),
        _ts("updated_at", nullable=False),
        sa.UniqueConstraint("restaurant_id", "table_number", name="uq_table_number"),
    )
    op.create_table(
        "table_sessions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("restaurant_id", sa.String(), nullable=False, index=True),
        sa.Column("table_id", sa.String(length=36), sa.ForeignKey("tables.id"), nullable=False),
        _status("status"),
        _status("phase"),
        sa.Column("guest_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("otp_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("waiter_id", sa.String(), nullable=True),
        _status("end_reason", nullable=True),
        sa.Column("payment_reference", sa.String(), nullable=True),
        _ts("qr_scanned_at"),
        _ts("otp_verified_at"),
        _ts("seated_at"),
        _ts("first_order_at"),
        _ts("last_order_at"),
        _ts("bill_requested_at"),
        _ts("payment_completed_at"),
        _ts("vacated_at"),
        _ts("created_at", nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
    )
    op.create_index(
        "uq_active_session_per_table",
        "table_sessions",
        ["table_id"],
        unique=True,
        sqlite_where=sa.text("status = 'ACTIVE'"),
        postgresql_where=sa.text("status = 'ACTIVE'"),
    )
    op.create_table(
        "qr_scan_events",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("restaurant_id", sa.String(), nullable=False, index=True),
        sa.Column("table_id", sa.String(length=36), sa.ForeignKey("tables.id"), nullable=False),
        sa.Column(
            "session_id",
            sa.String(length=36),
            sa.ForeignKey("table_sessions.id"),
            nullable=True,
        ),
        sa.Column("device_fingerprint", sa.String(), nullable=True),
        sa.Column("ip_address", sa.String(), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        _ts("scanned_at", nullable=False),
        sa.Column("otp_attempts", sa.Integer(), nullable=False, server_default="0"),
        _ts("otp_entered_at"),
        _ts("otp_help_notified_at"),
    )
    op.create_table(
        "orders",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("restaurant_id", sa.String(), nullable=False, index=True),
        sa.Column("table_id", sa.String(length=36), sa.ForeignKey("tables.id"), nullable=True),
        sa.Column(
            "session_id",
            sa.String(length=36),
            sa.ForeignKey("table_sessions.id"),
            nullable=True,
        ),
        sa.Column("order_number", sa.String(), nullable=False),
        _status("order_type"),
        _status("source"),
        _status("status"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column("confirmed_by", sa.String(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        _ts("placed_at", nullable=False),
        _ts("confirmed_at"),
        _ts("preparing_at"),
        _ts("ready_at"),
        _ts("served_at"),
        _ts("completed_at"),
        _ts("rejected_at"),
        _ts("cancelled_at"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.UniqueConstraint("restaurant_id", "order_number", name="uq_order_number"),
    )
    op.create_index(
        "idx_orders_restaurant_status_placed",
        "orders",
        ["restaurant_id", "status", "placed_at"],
    )
    op.create_table(
        "order_items",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "order_id",
            sa.String(length=36),
            sa.ForeignKey("orders.id"),
            nullable=False,
            index=True,
        ),
        sa.Column(
            "menu_item_id", sa.Integer(), sa.ForeignKey("menu_items.id"), nullable=False
        ),
        sa.Column("line_no", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("name_snapshot", sa.String(), nullable=False),
        sa.Column("price_snapshot", sa.Numeric(10, 2), nullable=False),
        sa.Column("category_snapshot", sa.String(), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("notes", sa.Text(), nullable=True),
        _status("status"),
        _status("kitchen_station", nullable=True),
        _ts("created_at", nullable=False),
        _ts("sent_to_kitchen_at"),
        _ts("preparing_at"),
        _ts("ready_at"),
        _ts("served_at"),
        _ts("cancelled_at"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
    )
    op.create_table(
        "assistance_requests",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("restaurant_id", sa.String(), nullable=False, index=True),
        sa.Column(
            "session_id",
            sa.String(length=36),
            sa.ForeignKey("table_sessions.id"),
            nullable=False,
        ),
        sa.Column("table_id", sa.String(length=36), sa.ForeignKey("tables.id"), nullable=False),
        _status("type"),
        _status("status"),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("handled_by", sa.String(), nullable=True),
        _ts("created_at", nullable=False),
        _ts("notified_at"),
        _ts("acknowledged_at"),
        _ts("started_at"),
        _ts("resolved_at"),
        _ts("cancelled_at"),
    )
    op.create_index(
        "uq_open_assistance_per_session_type",
        "assistance_requests",
        ["session_id", "type"],
        unique=True,
        sqlite_where=sa.text(OPEN_ASSISTANCE_SQL),
        postgresql_where=sa.text(OPEN_ASSISTANCE_SQL),
    )
    op.create_table(
        "cleaning_records",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("restaurant_id", sa.String(), nullable=False, index=True),
        sa.Column("table_id", sa.String(length=36), sa.ForeignKey("tables.id"), nullable=False),
        sa.Column(
            "session_id",
            sa.String(length=36),
            sa.ForeignKey("table_sessions.id"),
            nullable=True,
        ),
        _ts("requested_at", nullable=False),
        _ts("cleaned_at"),
        sa.Column("cleaned_by", sa.String(), nullable=True),
        sa.Column("duration_minutes", sa.Integer(), nullable=True),
    )
    op.create_table(
        "otp_history",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("restaurant_id", sa.String(), nullable=False, index=True),
        sa.Column("table_id", sa.String(length=36), sa.ForeignKey("tables.id"), nullable=False),
        sa.Column("otp", sa.String(length=3), nullable=False),
        sa.Column("previous_otp", sa.String(length=3), nullable=True),
        _status("action"),
        sa.Column("actor", sa.String(), nullable=True),
        _ts("created_at", nullable=False),
    )
    op.create_table(
        "guest_count_history",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("restaurant_id", sa.String(), nullable=False, index=True),
        sa.Column(
            "session_id",
            sa.String(length=36),
            sa.ForeignKey("table_sessions.id"),
            nullable=False,
        ),
        sa.Column("previous_count", sa.Integer(), nullable=False),
        sa.Column("new_count", sa.Integer(), nullable=False),
        sa.Column("changed_by", sa.String(), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        _ts("created_at", nullable=False),
    )
    op.create_table(
        "activity_log",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("restaurant_id", sa.String(), nullable=False, index=True),
        sa.Column("actor", sa.String(), nullable=True),
        sa.Column("actor_role", sa.String(), nullable=True),
        sa.Column("activity_type", sa.String(), nullable=False),
        sa.Column("entity_type", sa.String(), nullable=True),
        sa.Column("entity_id", sa.String(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("details", sa.JSON(), nullable=False),
        _ts("created_at", nullable=False),
    )


def downgrade() -> None:
    op.drop_table("activity_log")
    op.drop_table("guest_count_history")
    op.drop_table("otp_history")
    op.drop_table("cleaning_records")
    op.drop_index("uq_open_assistance_per_session_type", table_name="assistance_requests")
    op.drop_table("assistance_requests")
    op.drop_table("order_items")
    op.drop_index("idx_orders_restaurant_status_placed", table_name="orders")
    op.drop_table("orders")
    op.drop_table("qr_scan_events")
    op.drop_index("uq_active_session_per_table", table_name="table_sessions")
    op.drop_table("table_sessions")
    op.drop_table("tables")
    op.drop_table("menu_items")
    op.drop_table("menu_categories")
