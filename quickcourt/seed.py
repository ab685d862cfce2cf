import logging
import uuid
from decimal import Decimal

from sqlalchemy import text
from sqlalchemy.exc import OperationalError, ProgrammingError
from sqlalchemy.orm import Session

from quickcourt.db.session import SessionLocal
from quickcourt.core.config import settings
from quickcourt.models.facility import Facility, FacilityOperatingHours
from quickcourt.models.court import Court

logger = logging.getLogger(__name__)

# Stable ids so re-running the seed never duplicates the demo venue
DEMO_NAMESPACE = uuid.UUID("6f2b8c1e-4d0a-4b7e-9a51-2c3d5e7f9a10")
DEMO_OWNER_ID = str(uuid.uuid5(DEMO_NAMESPACE, "owner"))
DEMO_FACILITY_ID = str(uuid.uuid5(DEMO_NAMESPACE, "facility"))

DEMO_COURTS = [
    ("Court 1", "Badminton"),
    ("Court 2", "Badminton"),
]


def ensure_facility(db: Session) -> Facility:
    f = db.get(Facility, DEMO_FACILITY_ID)
    if f:
        return f
    f = Facility(
        id=DEMO_FACILITY_ID,
        name="QuickCourt Demo Arena",
        owner_id=DEMO_OWNER_ID,
        currency=settings.DEFAULT_CURRENCY,
        peak_start="18:00",
        peak_end="21:00",
        peak_multiplier=Decimal("1.5"),
        total_bookings=0,
    )
    db.add(f)
    for day in range(7):
        db.add(FacilityOperatingHours(
            id=str(uuid.uuid5(DEMO_NAMESPACE, f"hours-{day}")),
            facility_id=f.id,
            day_of_week=day,
            is_open=True,
            open_time="06:00",
            close_time="22:00",
        ))
    db.flush()
    return f


def ensure_court(db: Session, facility: Facility, name: str, sport: str) -> Court:
    court_id = str(uuid.uuid5(DEMO_NAMESPACE, f"court-{name}"))
    c = db.get(Court, court_id)
    if c:
        return c
    c = Court(
        id=court_id,
        facility_id=facility.id,
        name=name,
        sport=sport,
        hourly_rate=Decimal("500"),
        min_booking_hours=0.5,
        is_active=True,
        total_bookings=0,
    )
    db.add(c)
    return c


def run(db=None):
    if db is None:
        db = SessionLocal()
    try:
        # If migrations haven't been applied yet, seeding must not crash the API.
        try:
            db.execute(text("SELECT 1 FROM facilities LIMIT 1"))
        except (ProgrammingError, OperationalError):
            db.rollback()
            logger.warning("[seed] facilities table not found yet. Skipping seeding (run alembic upgrade head).")
            return

        facility = ensure_facility(db)
        for name, sport in DEMO_COURTS:
            ensure_court(db, facility, name, sport)
        db.commit()
        logger.info("[seed] demo facility %s ready", facility.id)
    finally:
        db.close()


if __name__ == "__main__":
    run()
