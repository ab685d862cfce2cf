from sqlalchemy import String, Integer, Float, Numeric, Boolean, Date, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import date, datetime, timezone
from decimal import Decimal
from quickcourt.db.session import Base

class Court(Base):
    __tablename__ = "courts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    facility_id: Mapped[str] = mapped_column(String(36), ForeignKey("facilities.id"), index=True)
    name: Mapped[str] = mapped_column(String(50))
    sport: Mapped[str] = mapped_column(String(30), default="Other")

    hourly_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    min_booking_hours: Mapped[float] = mapped_column(Float, default=0.5)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    total_bookings: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    day_availability: Mapped[list["CourtDayAvailability"]] = relationship(cascade="all, delete-orphan", lazy="selectin")
    maintenance: Mapped[list["MaintenanceSchedule"]] = relationship(cascade="all, delete-orphan", lazy="selectin")


class CourtDayAvailability(Base):
    """Court-level weekday switch layered over the facility's opening hours."""
    __tablename__ = "court_day_availability"
    __table_args__ = (
        UniqueConstraint("court_id", "day_of_week", name="uq_court_day_availability"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    court_id: Mapped[str] = mapped_column(String(36), ForeignKey("courts.id", ondelete="CASCADE"), index=True)
    day_of_week: Mapped[int] = mapped_column(Integer)  # 0=Mon..6=Sun
    is_available: Mapped[bool] = mapped_column(Boolean, default=True)


class MaintenanceSchedule(Base):
    __tablename__ = "maintenance_blocks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    court_id: Mapped[str] = mapped_column(String(36), ForeignKey("courts.id", ondelete="CASCADE"), index=True)
    block_date: Mapped[date] = mapped_column(Date, index=True)
    start_time: Mapped[str] = mapped_column(String(5))  # HH:MM, same day as end_time
    end_time: Mapped[str] = mapped_column(String(5))
    description: Mapped[str] = mapped_column(String(200), default="")
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False)
