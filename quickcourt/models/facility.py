from sqlalchemy import String, Integer, Numeric, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime, timezone
from decimal import Decimal
from quickcourt.db.session import Base

class Facility(Base):
    __tablename__ = "facilities"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(120))
    owner_id: Mapped[str] = mapped_column(String(36), index=True)
    currency: Mapped[str] = mapped_column(String(3), default="INR")

    # Facility-wide daily peak window (HH:MM) and multiplier (>= 1)
    peak_start: Mapped[str] = mapped_column(String(5), nullable=True, default="18:00")
    peak_end: Mapped[str] = mapped_column(String(5), nullable=True, default="21:00")
    peak_multiplier: Mapped[Decimal] = mapped_column(Numeric(6, 2), default=Decimal("1.00"))

    total_bookings: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    operating_hours: Mapped[list["FacilityOperatingHours"]] = relationship(
        back_populates="facility", cascade="all, delete-orphan", lazy="selectin"
    )


class FacilityOperatingHours(Base):
    __tablename__ = "facility_operating_hours"
    __table_args__ = (
        UniqueConstraint("facility_id", "day_of_week", name="uq_operating_hours_facility_day"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    facility_id: Mapped[str] = mapped_column(String(36), ForeignKey("facilities.id", ondelete="CASCADE"), index=True)
    day_of_week: Mapped[int] = mapped_column(Integer)  # 0=Mon..6=Sun
    is_open: Mapped[bool] = mapped_column(Boolean, default=True)
    open_time: Mapped[str] = mapped_column(String(5), default="06:00")
    close_time: Mapped[str] = mapped_column(String(5), default="22:00")

    facility: Mapped[Facility] = relationship(back_populates="operating_hours")
