from sqlalchemy import String, Integer, Float, Numeric, Boolean, Date, DateTime, Index, text
from sqlalchemy.orm import Mapped, mapped_column
from datetime import date, datetime, timezone
from decimal import Decimal
from quickcourt.db.session import Base

_ACTIVE = text("status IN ('pending', 'confirmed')")

class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        Index("ix_bookings_court_date", "court_id", "booking_date"),
        # Two holding bookings can never share the exact same slot, even if the ledger guard is bypassed.
        Index(
            "uq_bookings_active_slot",
            "court_id", "booking_date", "start_time", "end_time",
            unique=True,
            postgresql_where=_ACTIVE,
            sqlite_where=_ACTIVE,
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)

    user_id: Mapped[str] = mapped_column(String(36), index=True)
    facility_id: Mapped[str] = mapped_column(String(36), index=True)
    court_id: Mapped[str] = mapped_column(String(36))

    booking_date: Mapped[date] = mapped_column(Date)
    start_time: Mapped[str] = mapped_column(String(5))  # HH:MM, 24h
    end_time: Mapped[str] = mapped_column(String(5))
    duration_hours: Mapped[float] = mapped_column(Float)

    # Frozen at creation; later rate changes never touch these
    base_price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    peak_multiplier_applied: Mapped[Decimal] = mapped_column(Numeric(6, 4), default=Decimal("1"))
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    currency: Mapped[str] = mapped_column(String(3), default="INR")

    payment_method: Mapped[str] = mapped_column(String(12))  # stripe, razorpay, cash, wallet
    payment_status: Mapped[str] = mapped_column(String(20), default="pending", index=True)  # pending, completed, failed, refunded, partially_refunded
    order_id: Mapped[str] = mapped_column(String(120), nullable=True)
    transaction_id: Mapped[str] = mapped_column(String(120), nullable=True)
    paid_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    paid_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)
    refund_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    refunded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)

    status: Mapped[str] = mapped_column(String(20), default="pending", index=True)  # pending, confirmed, cancelled, completed, no_show

    participants: Mapped[int] = mapped_column(Integer, default=1)
    special_requests: Mapped[str] = mapped_column(String(500), default="")

    # Populated only when status becomes cancelled
    cancelled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_by: Mapped[str] = mapped_column(String(36), nullable=True)
    cancellation_reason: Mapped[str] = mapped_column(String(500), nullable=True)
    cancellation_refund_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    refund_due: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    manual_refund_required: Mapped[bool] = mapped_column(Boolean, default=False)

    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)

    # Optimistic concurrency token, bumped by every guarded update
    version: Mapped[int] = mapped_column(Integer, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
