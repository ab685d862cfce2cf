"""initial

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19

"""

from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

ACTIVE = sa.text("status IN ('pending', 'confirmed')")

def upgrade() -> None:
    op.create_table(
        "facilities",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("owner_id", sa.String(length=36), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="INR"),
        sa.Column("peak_start", sa.String(length=5), nullable=True),
        sa.Column("peak_end", sa.String(length=5), nullable=True),
        sa.Column("peak_multiplier", sa.Numeric(6, 2), nullable=False, server_default="1.00"),
        sa.Column("total_bookings", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_facilities_owner_id", "facilities", ["owner_id"])

    op.create_table(
        "facility_operating_hours",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("facility_id", sa.String(length=36), sa.ForeignKey("facilities.id", ondelete="CASCADE"), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("is_open", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("open_time", sa.String(length=5), nullable=False, server_default="06:00"),
        sa.Column("close_time", sa.String(length=5), nullable=False, server_default="22:00"),
        sa.UniqueConstraint("facility_id", "day_of_week", name="uq_operating_hours_facility_day"),
    )
    op.create_index("ix_facility_operating_hours_facility_id", "facility_operating_hours", ["facility_id"])

    op.create_table(
        "courts",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("facility_id", sa.String(length=36), sa.ForeignKey("facilities.id"), nullable=False),
        sa.Column("name", sa.String(length=50), nullable=False),
        sa.Column("sport", sa.String(length=30), nullable=False, server_default="Other"),
        sa.Column("hourly_rate", sa.Numeric(10, 2), nullable=False),
        sa.Column("min_booking_hours", sa.Float(), nullable=False, server_default="0.5"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("total_bookings", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_courts_facility_id", "courts", ["facility_id"])

    op.create_table(
        "court_day_availability",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("court_id", sa.String(length=36), sa.ForeignKey("courts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.UniqueConstraint("court_id", "day_of_week", name="uq_court_day_availability"),
    )
    op.create_index("ix_court_day_availability_court_id", "court_day_availability", ["court_id"])

    op.create_table(
        "maintenance_blocks",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("court_id", sa.String(length=36), sa.ForeignKey("courts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("block_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("end_time", sa.String(length=5), nullable=False),
        sa.Column("description", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("is_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_index("ix_maintenance_blocks_court_id", "maintenance_blocks", ["court_id"])
    op.create_index("ix_maintenance_blocks_block_date", "maintenance_blocks", ["block_date"])

    op.create_table(
        "court_day_ledgers",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("court_id", sa.String(length=36), nullable=False),
        sa.Column("booking_date", sa.Date(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("court_id", "booking_date", name="uq_court_day_ledger"),
    )
    op.create_index("ix_court_day_ledgers_court_id", "court_day_ledgers", ["court_id"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("facility_id", sa.String(length=36), nullable=False),
        sa.Column("court_id", sa.String(length=36), nullable=False),
        sa.Column("booking_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("end_time", sa.String(length=5), nullable=False),
        sa.Column("duration_hours", sa.Float(), nullable=False),
        sa.Column("base_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("peak_multiplier_applied", sa.Numeric(6, 4), nullable=False, server_default="1"),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="INR"),
        sa.Column("payment_method", sa.String(length=12), nullable=False),
        sa.Column("payment_status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("order_id", sa.String(length=120), nullable=True),
        sa.Column("transaction_id", sa.String(length=120), nullable=True),
        sa.Column("paid_amount", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("refund_amount", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("refunded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("participants", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("special_requests", sa.String(length=500), nullable=False, server_default=""),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_by", sa.String(length=36), nullable=True),
        sa.Column("cancellation_reason", sa.String(length=500), nullable=True),
        sa.Column("cancellation_refund_amount", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("refund_due", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("manual_refund_required", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    op.create_index("ix_bookings_facility_id", "bookings", ["facility_id"])
    op.create_index("ix_bookings_status", "bookings", ["status"])
    op.create_index("ix_bookings_payment_status", "bookings", ["payment_status"])
    op.create_index("ix_bookings_court_date", "bookings", ["court_id", "booking_date"])
    # Two holding bookings may never share the exact same slot
    op.create_index(
        "uq_bookings_active_slot",
        "bookings",
        ["court_id", "booking_date", "start_time", "end_time"],
        unique=True,
        postgresql_where=ACTIVE,
        sqlite_where=ACTIVE,
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("actor_user_id", sa.String(length=36), nullable=False),
        sa.Column("action", sa.String(length=80), nullable=False),
        sa.Column("entity_type", sa.String(length=40), nullable=False),
        sa.Column("entity_id", sa.String(length=36), nullable=False),
        sa.Column("details_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_audit_logs_actor_user_id", "audit_logs", ["actor_user_id"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_entity_type", "audit_logs", ["entity_type"])
    op.create_index("ix_audit_logs_entity_id", "audit_logs", ["entity_id"])

def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_index("uq_bookings_active_slot", table_name="bookings")
    op.drop_table("bookings")
    op.drop_table("court_day_ledgers")
    op.drop_table("maintenance_blocks")
    op.drop_table("court_day_availability")
    op.drop_table("courts")
    op.drop_table("facility_operating_hours")
    op.drop_table("facilities")
