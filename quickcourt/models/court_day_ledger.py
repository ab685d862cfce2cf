from sqlalchemy import String, Integer, Date, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from datetime import date
from quickcourt.db.session import Base

class CourtDayLedger(Base):
    """One row per (court, date). Every booking insert for that court+date bumps `version`
    with a compare-and-set, so two inserts that both passed the overlap check cannot both commit."""
    __tablename__ = "court_day_ledgers"
    __table_args__ = (
        UniqueConstraint("court_id", "booking_date", name="uq_court_day_ledger"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    court_id: Mapped[str] = mapped_column(String(36), index=True)
    booking_date: Mapped[date] = mapped_column(Date)
    version: Mapped[int] = mapped_column(Integer, default=0)
