"""
Peak/off-peak pricing.

The hourly rate belongs to the court, the peak window and multiplier to the
facility. An interval that straddles a peak boundary is split at the boundary
and each part is charged pro rata at its own rate, so 17:30-18:30 with peak
from 18:00 costs half an hour off-peak plus half an hour at peak.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from quickcourt.services.time_interval import TimeInterval, intersection

# ISO 4217 minor units for currencies that differ from the usual 2
MINOR_UNITS = {"JPY": 0, "KRW": 0, "VND": 0, "BHD": 3, "KWD": 3, "OMR": 3}


def minor_unit(currency: str) -> Decimal:
    digits = MINOR_UNITS.get((currency or "").upper(), 2)
    return Decimal(1).scaleb(-digits)


def round_money(amount: Decimal, currency: str) -> Decimal:
    return Decimal(amount).quantize(minor_unit(currency), rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class CourtRate:
    hourly_rate: Decimal
    currency: str = "INR"

    def __post_init__(self):
        if Decimal(self.hourly_rate) < 0:
            raise ValueError("hourly rate cannot be negative")


@dataclass(frozen=True)
class FacilityPricing:
    peak_window: TimeInterval | None = None
    peak_multiplier: Decimal = Decimal("1")

    def __post_init__(self):
        if Decimal(self.peak_multiplier) < 1:
            raise ValueError("peak multiplier must be at least 1")


@dataclass(frozen=True)
class PriceQuote:
    base_price: Decimal
    peak_multiplier_applied: Decimal
    total_amount: Decimal
    currency: str
    peak_minutes: int
    off_peak_minutes: int

    @property
    def is_peak(self) -> bool:
        return self.peak_minutes > 0


def peak_minutes_in(pricing: FacilityPricing, interval: TimeInterval) -> int:
    if pricing.peak_window is None:
        return 0
    part = intersection(interval, pricing.peak_window)
    return part.minutes if part else 0


def price_for(court: CourtRate, facility: FacilityPricing, interval: TimeInterval) -> PriceQuote:
    rate = Decimal(court.hourly_rate)
    multiplier = Decimal(facility.peak_multiplier)

    peak = peak_minutes_in(facility, interval)
    off_peak = interval.minutes - peak

    raw = rate * off_peak / 60 + rate * multiplier * peak / 60
    total = round_money(raw, court.currency)

    # minute-weighted multiplier, equal to the facility's when the slot is all peak
    applied = ((off_peak + multiplier * peak) / interval.minutes).quantize(Decimal("0.0001"), rounding=ROUND_HALF_UP)
    return PriceQuote(
        base_price=round_money(rate, court.currency),
        peak_multiplier_applied=applied,
        total_amount=total,
        currency=court.currency,
        peak_minutes=peak,
        off_peak_minutes=off_peak,
    )
