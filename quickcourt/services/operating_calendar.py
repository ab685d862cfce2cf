"""
Operating calendar for a court: facility opening hours per weekday, court
per-weekday overrides and dated maintenance blocks.

Day-of-week convention: 0 = Monday .. 6 = Sunday (``date.weekday()``).
Maintenance blocks are single-day; a block that would run past midnight has
to be entered as two blocks.
"""
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Mapping

from quickcourt.services.time_interval import TimeInterval, overlaps, to_interval

DAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


@dataclass(frozen=True)
class OperatingWindow:
    is_open: bool
    hours: TimeInterval | None = None

    def __post_init__(self):
        if self.is_open and self.hours is None:
            raise ValueError("an open day needs opening hours")

    @classmethod
    def open(cls, open_time: str, close_time: str) -> "OperatingWindow":
        return cls(True, to_interval(open_time, close_time))

    @classmethod
    def closed(cls) -> "OperatingWindow":
        return cls(False, None)


@dataclass(frozen=True)
class MaintenanceBlock:
    date: date
    interval: TimeInterval
    description: str = ""


@dataclass(frozen=True)
class CourtCalendar:
    weekly: Mapping[int, OperatingWindow]
    # court-level weekday switch; missing days follow the facility
    court_days: Mapping[int, bool] = field(default_factory=dict)
    maintenance: tuple[MaintenanceBlock, ...] = ()

    def window_for(self, on_date: date) -> OperatingWindow:
        day = on_date.weekday()
        window = self.weekly.get(day) or OperatingWindow.closed()
        if not self.court_days.get(day, True):
            return OperatingWindow.closed()
        return window

    def maintenance_on(self, on_date: date) -> list[MaintenanceBlock]:
        return [m for m in self.maintenance if m.date == on_date]


def weekly_from_rows(rows: Iterable) -> dict[int, OperatingWindow]:
    """Build the weekday map from objects with day_of_week/is_open/open_time/close_time."""
    out: dict[int, OperatingWindow] = {}
    for r in rows:
        if r.is_open:
            out[int(r.day_of_week)] = OperatingWindow.open(r.open_time, r.close_time)
        else:
            out[int(r.day_of_week)] = OperatingWindow.closed()
    return out


def is_open_at(calendar: CourtCalendar, on_date: date, interval: TimeInterval) -> bool:
    """Open/closed flag for the weekday only; containment is the resolver's job."""
    return calendar.window_for(on_date).is_open


def maintenance_conflicts(calendar: CourtCalendar, on_date: date, interval: TimeInterval) -> list[MaintenanceBlock]:
    return [m for m in calendar.maintenance_on(on_date) if overlaps(m.interval, interval)]


def has_maintenance_conflict(calendar: CourtCalendar, on_date: date, interval: TimeInterval) -> bool:
    return bool(maintenance_conflicts(calendar, on_date, interval))
