"""
SQL persistence for bookings.

All booking writes go through this store. Creation is validate-then-insert
made atomic per (court, date): the insert transaction bumps that court-day's
ledger row with a compare-and-set on ``version`` (and holds ``FOR UPDATE`` on
it where the database supports row locks), re-runs the overlap check, then
inserts. Two requests that both passed an earlier check cannot both commit:
the second one's ledger bump matches zero rows, so it re-reads and either
finds the new booking (``BookingConflict``) or retries cleanly.
"""
import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Iterable, Protocol

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from quickcourt.core.config import settings
from quickcourt.core.enums import ACTIVE_STATUSES, BookingStatus
from quickcourt.core.errors import BookingConflict, ConcurrentModification, NotFound
from quickcourt.db.session import SessionLocal
from quickcourt.models.booking import Booking
from quickcourt.models.court import Court
from quickcourt.models.court_day_ledger import CourtDayLedger
from quickcourt.models.facility import Facility
from quickcourt.services.audit_service import log_audit
from quickcourt.services.availability_service import CourtRules, FacilityRules, active_intervals
from quickcourt.services.operating_calendar import MaintenanceBlock, weekly_from_rows
from quickcourt.services.pricing_service import CourtRate, FacilityPricing
from quickcourt.services.time_interval import overlaps, to_interval

logger = logging.getLogger(__name__)


class BookingStore(Protocol):
    def load_rules(self, court_id: str) -> tuple[CourtRules, FacilityRules]: ...

    def find_bookings_for(self, court_id: str, on_date: date, statuses: Iterable[str]) -> list[Booking]: ...

    def insert_booking_if_no_conflict(self, booking: Booking, actor: str | None = None) -> Booking: ...

    def get_booking(self, booking_id: str) -> Booking: ...

    def update_booking(self, booking_id: str, patch: dict, expected_version: int,
                       actor: str | None = None, action: str | None = None, details: dict | None = None) -> Booking: ...

    def increment_booking_counters(self, facility_id: str, court_id: str) -> None: ...

    def find_due_for_completion(self, through_date: date) -> list[Booking]: ...

    def find_bookings_for_user(self, user_id: str, status: str | None = None, upcoming_from: date | None = None,
                               offset: int = 0, limit: int = 10) -> tuple[list[Booking], int]: ...

    def find_bookings_for_facility(self, facility_id: str, status: str | None = None, on_date: date | None = None,
                                   offset: int = 0, limit: int = 10) -> tuple[list[Booking], int]: ...

    def facility_owner(self, facility_id: str) -> str: ...


def facility_rules_from(facility: Facility) -> FacilityRules:
    peak_window = None
    if facility.peak_start and facility.peak_end:
        peak_window = to_interval(facility.peak_start, facility.peak_end)
    return FacilityRules(
        facility_id=facility.id,
        weekly=weekly_from_rows(facility.operating_hours),
        pricing=FacilityPricing(peak_window=peak_window, peak_multiplier=Decimal(facility.peak_multiplier or 1)),
    )


def court_rules_from(court: Court, currency: str) -> CourtRules:
    return CourtRules(
        court_id=court.id,
        facility_id=court.facility_id,
        rate=CourtRate(hourly_rate=Decimal(court.hourly_rate), currency=currency),
        court_days={int(d.day_of_week): bool(d.is_available) for d in court.day_availability},
        maintenance=tuple(
            MaintenanceBlock(m.block_date, to_interval(m.start_time, m.end_time), m.description or "")
            for m in court.maintenance
            if not m.is_completed
        ),
        is_active=bool(court.is_active),
        min_booking_hours=float(court.min_booking_hours or settings.MIN_BOOKING_HOURS),
    )


class SqlBookingStore:
    def __init__(self, session_factory: sessionmaker = SessionLocal, retries: int | None = None):
        self.session_factory = session_factory
        self.retries = retries or settings.BOOKING_INSERT_RETRIES

    def load_rules(self, court_id: str) -> tuple[CourtRules, FacilityRules]:
        with self.session_factory() as db:
            court = db.get(Court, court_id)
            if not court:
                raise NotFound("Court not found", details={"court_id": court_id})
            facility = db.get(Facility, court.facility_id)
            if not facility:
                raise NotFound("Facility not found", details={"facility_id": court.facility_id})
            return court_rules_from(court, facility.currency or settings.DEFAULT_CURRENCY), facility_rules_from(facility)

    def find_bookings_for(self, court_id: str, on_date: date, statuses: Iterable[str] = ACTIVE_STATUSES) -> list[Booking]:
        with self.session_factory() as db:
            return self._bookings_for(db, court_id, on_date, list(statuses))

    def get_booking(self, booking_id: str) -> Booking:
        with self.session_factory() as db:
            b = db.get(Booking, booking_id)
            if not b:
                raise NotFound("Booking not found", details={"booking_id": booking_id})
            return b

    def insert_booking_if_no_conflict(self, booking: Booking, actor: str | None = None) -> Booking:
        for attempt in range(1, self.retries + 1):
            with self.session_factory() as db:
                try:
                    seen = self._ledger_version(db, booking.court_id, booking.booking_date)
                    colliding = self._colliding_ids(db, booking)
                    if colliding:
                        db.rollback()
                        raise BookingConflict(
                            "This slot overlaps an existing booking",
                            details={"conflicting_booking_id": colliding[0], "conflicting_booking_ids": colliding},
                        )
                    if not self._bump_ledger(db, booking.court_id, booking.booking_date, seen):
                        db.rollback()
                        logger.info(
                            "court %s on %s changed during insert (attempt %d), re-checking",
                            booking.court_id, booking.booking_date, attempt,
                        )
                        continue
                    db.add(booking)
                    log_audit(db, actor, "booking.created", "booking", booking.id, {
                        "court_id": booking.court_id,
                        "date": booking.booking_date.isoformat(),
                        "startTime": booking.start_time,
                        "endTime": booking.end_time,
                        "totalAmount": booking.total_amount,
                    })
                    db.commit()
                    return booking
                except IntegrityError as exc:
                    db.rollback()
                    if "court_day_ledger" in str(exc.orig):
                        # another request created the ledger row first
                        continue
                    raise BookingConflict(
                        "This slot overlaps an existing booking",
                        details={"court_id": booking.court_id, "startTime": booking.start_time, "endTime": booking.end_time},
                    ) from exc
        raise BookingConflict(
            "Court is busy with other bookings for this date, please try again",
            details={"court_id": booking.court_id, "date": booking.booking_date.isoformat()},
        )

    def update_booking(self, booking_id: str, patch: dict, expected_version: int,
                       actor: str | None = None, action: str | None = None, details: dict | None = None) -> Booking:
        values = dict(patch)
        values["version"] = expected_version + 1
        values["updated_at"] = datetime.now(timezone.utc)
        with self.session_factory() as db:
            res = db.execute(
                update(Booking)
                .where(Booking.id == booking_id, Booking.version == expected_version)
                .values(**values)
            )
            if res.rowcount != 1:
                db.rollback()
                if db.get(Booking, booking_id) is None:
                    raise NotFound("Booking not found", details={"booking_id": booking_id})
                raise ConcurrentModification(
                    "Booking was changed by another request",
                    details={"booking_id": booking_id, "expected_version": expected_version},
                )
            if action:
                log_audit(db, actor, action, "booking", booking_id, details or patch)
            db.commit()
            return db.get(Booking, booking_id)

    def increment_booking_counters(self, facility_id: str, court_id: str) -> None:
        with self.session_factory() as db:
            db.execute(update(Facility).where(Facility.id == facility_id).values(total_bookings=Facility.total_bookings + 1))
            db.execute(update(Court).where(Court.id == court_id).values(total_bookings=Court.total_bookings + 1))
            db.commit()

    def find_due_for_completion(self, through_date: date) -> list[Booking]:
        with self.session_factory() as db:
            return list(db.scalars(
                select(Booking)
                .where(Booking.status == BookingStatus.CONFIRMED.value, Booking.booking_date <= through_date)
                .order_by(Booking.booking_date.asc(), Booking.end_time.asc())
            ))

    def find_bookings_for_user(self, user_id: str, status: str | None = None, upcoming_from: date | None = None,
                               offset: int = 0, limit: int = 10) -> tuple[list[Booking], int]:
        filters = [Booking.user_id == user_id]
        if status:
            filters.append(Booking.status == status)
        if upcoming_from is not None:
            filters.append(Booking.booking_date >= upcoming_from)
        return self._page(filters, offset, limit)

    def find_bookings_for_facility(self, facility_id: str, status: str | None = None, on_date: date | None = None,
                                   offset: int = 0, limit: int = 10) -> tuple[list[Booking], int]:
        filters = [Booking.facility_id == facility_id]
        if status:
            filters.append(Booking.status == status)
        if on_date is not None:
            filters.append(Booking.booking_date == on_date)
        return self._page(filters, offset, limit)

    def facility_owner(self, facility_id: str) -> str:
        with self.session_factory() as db:
            facility = db.get(Facility, facility_id)
            if not facility:
                raise NotFound("Facility not found", details={"facility_id": facility_id})
            return facility.owner_id

    # internals

    def _page(self, filters: list, offset: int, limit: int) -> tuple[list[Booking], int]:
        """Newest first, like the booking history screens."""
        with self.session_factory() as db:
            total = db.scalar(select(func.count()).select_from(Booking).where(*filters))
            rows = list(db.scalars(
                select(Booking)
                .where(*filters)
                .order_by(Booking.booking_date.desc(), Booking.start_time.desc())
                .offset(offset)
                .limit(limit)
            ))
            return rows, total or 0

    def _bookings_for(self, db: Session, court_id: str, on_date: date, statuses: list[str]) -> list[Booking]:
        return list(db.scalars(
            select(Booking)
            .where(Booking.court_id == court_id, Booking.booking_date == on_date, Booking.status.in_(statuses))
            .order_by(Booking.start_time.asc())
        ))

    def _colliding_ids(self, db: Session, booking: Booking) -> list[str]:
        wanted = to_interval(booking.start_time, booking.end_time)
        existing = self._bookings_for(db, booking.court_id, booking.booking_date, list(ACTIVE_STATUSES))
        return [bid for bid, iv in active_intervals(existing) if bid != booking.id and overlaps(iv, wanted)]

    def _ledger_version(self, db: Session, court_id: str, on_date: date) -> int:
        ledger = db.execute(
            select(CourtDayLedger)
            .where(CourtDayLedger.court_id == court_id, CourtDayLedger.booking_date == on_date)
            .with_for_update()
        ).scalar_one_or_none()
        if ledger is None:
            ledger = CourtDayLedger(id=str(uuid.uuid4()), court_id=court_id, booking_date=on_date, version=0)
            db.add(ledger)
            db.flush()
        return ledger.version

    def _bump_ledger(self, db: Session, court_id: str, on_date: date, seen: int) -> bool:
        res = db.execute(
            update(CourtDayLedger)
            .where(
                CourtDayLedger.court_id == court_id,
                CourtDayLedger.booking_date == on_date,
                CourtDayLedger.version == seen,
            )
            .values(version=seen + 1)
        )
        return res.rowcount == 1
