"""
Half-open time-of-day intervals on a single calendar day.

Times are minute offsets from midnight: "18:30" -> 1110. An interval
[start, end) includes its start and excludes its end, so 10:00-11:00 and
11:00-12:00 do not overlap. Every overlap check in the booking core goes
through ``overlaps`` below.
"""
import re
from dataclasses import dataclass

from quickcourt.core.errors import InvalidRange, InvalidTimeFormat

MINUTES_PER_DAY = 1440

_HHMM = re.compile(r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$")


@dataclass(frozen=True)
class TimeInterval:
    start_minutes: int
    end_minutes: int

    def __post_init__(self):
        if not (0 <= self.start_minutes < self.end_minutes <= MINUTES_PER_DAY):
            raise InvalidRange(
                "End time must be after start time",
                details={"start_minutes": self.start_minutes, "end_minutes": self.end_minutes},
            )

    @property
    def start_time(self) -> str:
        return format_time(self.start_minutes)

    @property
    def end_time(self) -> str:
        return format_time(self.end_minutes)

    @property
    def minutes(self) -> int:
        return self.end_minutes - self.start_minutes

    def __str__(self) -> str:
        return f"{self.start_time}-{self.end_time}"


def parse_time(s: str) -> int:
    """'HH:MM' -> minutes after midnight."""
    if not isinstance(s, str) or not _HHMM.match(s):
        raise InvalidTimeFormat(f"Invalid time {s!r}, expected HH:MM", details={"value": s})
    hh, mm = map(int, s.split(":"))
    return hh * 60 + mm


def format_time(minutes: int) -> str:
    """Minutes after midnight -> canonical zero-padded 'HH:MM' (1440 renders as '24:00')."""
    hh, mm = divmod(minutes, 60)
    return f"{hh:02d}:{mm:02d}"


def to_interval(start: str, end: str) -> TimeInterval:
    start_min = parse_time(start)
    end_min = parse_time(end)
    if end_min <= start_min:
        raise InvalidRange(
            "End time must be after start time",
            details={"startTime": start, "endTime": end},
        )
    return TimeInterval(start_min, end_min)


def overlaps(a: TimeInterval, b: TimeInterval) -> bool:
    return a.start_minutes < b.end_minutes and a.end_minutes > b.start_minutes


def contains(outer: TimeInterval, inner: TimeInterval) -> bool:
    return outer.start_minutes <= inner.start_minutes and inner.end_minutes <= outer.end_minutes


def intersection(a: TimeInterval, b: TimeInterval) -> TimeInterval | None:
    start = max(a.start_minutes, b.start_minutes)
    end = min(a.end_minutes, b.end_minutes)
    if start >= end:
        return None
    return TimeInterval(start, end)


def duration_hours(i: TimeInterval) -> float:
    return (i.end_minutes - i.start_minutes) / 60
