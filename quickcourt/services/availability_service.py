"""
Slot availability for one court on one date.

Existing bookings only block a slot while they are pending or confirmed.
Overlap uses the half-open rule from ``time_interval``: a request that ends
exactly when another booking starts is fine.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Iterator, Mapping, Protocol

from quickcourt.core.config import settings
from quickcourt.core.enums import ACTIVE_STATUSES
from quickcourt.core.errors import BookingConflict, FacilityClosed, MaintenanceConflict, OutsideOperatingHours
from quickcourt.services.operating_calendar import (
    DAY_NAMES,
    CourtCalendar,
    MaintenanceBlock,
    OperatingWindow,
    is_open_at,
    maintenance_conflicts,
)
from quickcourt.services.pricing_service import CourtRate, FacilityPricing, PriceQuote, price_for
from quickcourt.services.time_interval import TimeInterval, contains, duration_hours, overlaps, to_interval

logger = logging.getLogger(__name__)


class BookedSlot(Protocol):
    id: str
    status: str
    start_time: str
    end_time: str


@dataclass(frozen=True)
class FacilityRules:
    facility_id: str
    weekly: Mapping[int, OperatingWindow]
    pricing: FacilityPricing = field(default_factory=FacilityPricing)


@dataclass(frozen=True)
class CourtRules:
    court_id: str
    facility_id: str
    rate: CourtRate
    court_days: Mapping[int, bool] = field(default_factory=dict)
    maintenance: tuple[MaintenanceBlock, ...] = ()
    is_active: bool = True
    min_booking_hours: float = 0.5

    def calendar(self, facility: FacilityRules) -> CourtCalendar:
        return CourtCalendar(weekly=facility.weekly, court_days=self.court_days, maintenance=self.maintenance)


@dataclass(frozen=True)
class Slot:
    interval: TimeInterval
    price: PriceQuote

    @property
    def start_time(self) -> str:
        return self.interval.start_time

    @property
    def end_time(self) -> str:
        return self.interval.end_time

    @property
    def duration_hours(self) -> float:
        return duration_hours(self.interval)

    @property
    def is_peak(self) -> bool:
        return self.price.is_peak


def active_intervals(existing_bookings: Iterable[BookedSlot]) -> list[tuple[str, TimeInterval]]:
    return [
        (b.id, to_interval(b.start_time, b.end_time))
        for b in existing_bookings
        if b.status in ACTIVE_STATUSES
    ]


def list_available_slots(
    court: CourtRules,
    facility: FacilityRules,
    on_date: date,
    existing_bookings: Iterable[BookedSlot],
    slot_minutes: int = 60,
    step_minutes: int | None = None,
    not_before_minutes: int | None = None,
) -> Iterator[Slot]:
    """Yield bookable slots from opening to closing time.

    Candidates start at opening time and advance by ``step_minutes``
    (defaults to SLOT_GRANULARITY_MINUTES); a candidate must end by closing
    time. ``not_before_minutes`` drops candidates that start earlier, which
    is how today's already-started slots are hidden.
    """
    step = step_minutes or settings.SLOT_GRANULARITY_MINUTES
    calendar = court.calendar(facility)
    window = calendar.window_for(on_date)
    if not court.is_active or not window.is_open:
        return

    taken = active_intervals(existing_bookings)
    blocks = calendar.maintenance_on(on_date)
    start = window.hours.start_minutes
    while start + slot_minutes <= window.hours.end_minutes:
        candidate = TimeInterval(start, start + slot_minutes)
        start += step
        if not_before_minutes is not None and candidate.start_minutes < not_before_minutes:
            continue
        if any(overlaps(m.interval, candidate) for m in blocks):
            continue
        if any(overlaps(iv, candidate) for _, iv in taken):
            continue
        yield Slot(candidate, price_for(court.rate, facility.pricing, candidate))


def validate_requested_slot(
    court: CourtRules,
    facility: FacilityRules,
    on_date: date,
    interval: TimeInterval,
    existing_bookings: Iterable[BookedSlot],
) -> None:
    """Raise the first reason the interval cannot be booked; return None if it can."""
    calendar = court.calendar(facility)
    day = DAY_NAMES[on_date.weekday()]

    if not court.is_active:
        raise FacilityClosed("Court is not accepting bookings", details={"court_id": court.court_id})
    if not is_open_at(calendar, on_date, interval):
        raise FacilityClosed(
            f"Court is closed on {day}",
            details={"court_id": court.court_id, "date": on_date.isoformat(), "day": day},
        )

    hours = calendar.window_for(on_date).hours
    if not contains(hours, interval):
        raise OutsideOperatingHours(
            f"Requested time {interval} is outside operating hours {hours}",
            details={"openTime": hours.start_time, "closeTime": hours.end_time},
        )

    blocked = maintenance_conflicts(calendar, on_date, interval)
    if blocked:
        m = blocked[0]
        raise MaintenanceConflict(
            f"Court is under maintenance {m.interval}",
            details={"startTime": m.interval.start_time, "endTime": m.interval.end_time, "description": m.description},
        )

    colliding = [booking_id for booking_id, iv in active_intervals(existing_bookings) if overlaps(iv, interval)]
    if colliding:
        logger.info("slot %s on %s for court %s collides with %s", interval, on_date, court.court_id, colliding)
        raise BookingConflict(
            "This slot overlaps an existing booking",
            details={"conflicting_booking_id": colliding[0], "conflicting_booking_ids": colliding},
        )
