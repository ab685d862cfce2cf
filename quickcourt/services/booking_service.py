"""
Booking lifecycle: create, confirm payment, cancel with tiered refund,
no-show, completion.

The manager owns the state machine and talks to three collaborators that are
injected: the booking store, a gateway registry and a notification sender.
Every state change is a versioned update, so two concurrent transitions on
the same booking can never both apply.

    pending ──confirm──> confirmed ──end passed──> completed
       │                    │ └──────no show─────> no_show
       └──────cancel────────┴────────────────────> cancelled
"""
import logging
import math
import uuid
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Callable, Mapping

import pytz

from quickcourt.core.config import settings
from quickcourt.core.enums import (
    ACTIVE_STATUSES,
    GATEWAY_METHODS,
    TERMINAL_STATUSES,
    BookingStatus,
    PaymentMethod,
    PaymentStatus,
)
from quickcourt.core.errors import (
    CancellationWindowClosed,
    ConcurrentModification,
    DurationTooShort,
    ExternalServiceUnavailable,
    Forbidden,
    InvalidRequest,
    InvalidTransition,
    PastDate,
    PaymentFailed,
    RefundFailed,
)
from quickcourt.models.booking import Booking
from quickcourt.services.availability_service import Slot, list_available_slots, validate_requested_slot
from quickcourt.services.booking_store import BookingStore
from quickcourt.services.notification_service import (
    BOOKING_CANCELLED,
    BOOKING_CONFIRMED,
    BOOKING_CREATED,
    REFUND_ACTION_REQUIRED,
    LoggingNotifier,
    NotificationSender,
    send_safely,
)
from quickcourt.services.payment_gateway import (
    Failed,
    GatewayError,
    GatewayRegistry,
    GatewayTimeout,
    ManualRefundRequired,
    OrderHandle,
    default_registry,
)
from quickcourt.services.pricing_service import price_for, round_money
from quickcourt.services.time_interval import duration_hours, parse_time, to_interval

logger = logging.getLogger(__name__)

# (minimum hours before start, percent refunded), checked top-down
REFUND_TIERS = ((24, 100), (12, 75), (6, 50), (2, 25))

MAX_SPECIAL_REQUESTS = 500

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def refund_percentage(hours_until_start: float) -> int:
    for threshold, percent in REFUND_TIERS:
        if hours_until_start >= threshold:
            return percent
    return 0


def facility_tz():
    return pytz.timezone(settings.FACILITY_TIMEZONE)


def local_instant(on_date: date, hhmm: str) -> datetime:
    minutes = parse_time(hhmm)
    return facility_tz().localize(datetime.combine(on_date, time(minutes // 60, minutes % 60)))


def booking_start(booking: Booking) -> datetime:
    return local_instant(booking.booking_date, booking.start_time)


def booking_end(booking: Booking) -> datetime:
    return local_instant(booking.booking_date, booking.end_time)


def hours_until_start(booking: Booking, now: datetime) -> float:
    return (booking_start(booking) - now).total_seconds() / 3600


def can_cancel(booking: Booking, now: datetime, cutoff_hours: float | None = None) -> bool:
    """Holding bookings can be cancelled until ``cutoff_hours`` before they start."""
    if booking.status not in ACTIVE_STATUSES:
        return False
    cutoff = settings.CANCELLATION_CUTOFF_HOURS if cutoff_hours is None else cutoff_hours
    return now < booking_start(booking) - timedelta(hours=cutoff)


def calculate_refund(booking: Booking, now: datetime) -> Decimal:
    if not can_cancel(booking, now):
        return Decimal("0")
    percent = refund_percentage(hours_until_start(booking, now))
    return round_money(Decimal(booking.total_amount) * percent / 100, booking.currency)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class BookingRequest:
    user_id: str
    facility_id: str
    court_id: str
    booking_date: date
    start_time: str
    end_time: str
    payment_method: str = PaymentMethod.RAZORPAY.value
    participants: int = 1
    special_requests: str = ""


@dataclass
class BookingPage:
    bookings: list[Booking]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit)


def _check_paging(status: str | None, page: int, limit: int) -> None:
    if status and status not in {s.value for s in BookingStatus}:
        raise InvalidRequest("Unknown booking status", details={"status": status})
    if page < 1 or not 1 <= limit <= MAX_PAGE_SIZE:
        raise InvalidRequest(
            f"page must be at least 1 and limit between 1 and {MAX_PAGE_SIZE}",
            details={"page": page, "limit": limit},
        )


class BookingManager:
    def __init__(
        self,
        store: BookingStore,
        gateways: GatewayRegistry | None = None,
        notifier: NotificationSender | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.gateways = gateways or default_registry()
        self.notifier = notifier or LoggingNotifier()
        self.clock = clock

    # Queries

    def available_slots(self, court_id: str, on_date: date, slot_minutes: int | None = None) -> list[Slot]:
        court, facility = self.store.load_rules(court_id)
        now_local = self.clock().astimezone(facility_tz())
        if on_date < now_local.date():
            return []
        not_before = None
        if on_date == now_local.date():
            # a slot starting this minute has already begun
            not_before = now_local.hour * 60 + now_local.minute + 1
        existing = self.store.find_bookings_for(court_id, on_date, ACTIVE_STATUSES)
        return list(list_available_slots(
            court, facility, on_date, existing,
            slot_minutes=slot_minutes or settings.SLOT_GRANULARITY_MINUTES,
            not_before_minutes=not_before,
        ))

    def get_booking(self, booking_id: str) -> Booking:
        return self.store.get_booking(booking_id)

    def list_user_bookings(self, user_id: str, status: str | None = None, upcoming: bool = False,
                           page: int = 1, limit: int = DEFAULT_PAGE_SIZE) -> BookingPage:
        _check_paging(status, page, limit)
        upcoming_from = self.clock().astimezone(facility_tz()).date() if upcoming else None
        rows, total = self.store.find_bookings_for_user(
            user_id, status=status, upcoming_from=upcoming_from, offset=(page - 1) * limit, limit=limit,
        )
        return BookingPage(bookings=rows, total=total, page=page, limit=limit)

    def list_facility_bookings(self, facility_id: str, requester_id: str, status: str | None = None,
                               on_date: date | None = None, page: int = 1, limit: int = DEFAULT_PAGE_SIZE) -> BookingPage:
        """Bookings across all courts of a facility; only its owner may look."""
        if self.store.facility_owner(facility_id) != requester_id:
            raise Forbidden("Not authorized to view facility bookings", details={"facility_id": facility_id})
        _check_paging(status, page, limit)
        rows, total = self.store.find_bookings_for_facility(
            facility_id, status=status, on_date=on_date, offset=(page - 1) * limit, limit=limit,
        )
        return BookingPage(bookings=rows, total=total, page=page, limit=limit)

    # Creation

    def create_booking(self, req: BookingRequest) -> Booking:
        interval = to_interval(req.start_time, req.end_time)
        court, facility = self.store.load_rules(req.court_id)
        if court.facility_id != req.facility_id:
            raise InvalidRequest(
                "Court does not belong to the specified facility",
                details={"court_id": req.court_id, "facility_id": req.facility_id},
            )
        if req.payment_method not in {m.value for m in PaymentMethod}:
            raise InvalidRequest("Unsupported payment method", details={"paymentMethod": req.payment_method})
        if req.participants < 1:
            raise InvalidRequest("At least one participant is required", details={"participants": req.participants})
        if len(req.special_requests or "") > MAX_SPECIAL_REQUESTS:
            raise InvalidRequest(f"Special requests are limited to {MAX_SPECIAL_REQUESTS} characters")

        hours = duration_hours(interval)
        min_hours = max(settings.MIN_BOOKING_HOURS, court.min_booking_hours)
        if hours < min_hours:
            raise DurationTooShort(
                f"Minimum booking duration is {min_hours} hours",
                details={"requested_hours": hours, "minimum_hours": min_hours},
            )

        now = self.clock()
        if req.booking_date < now.astimezone(facility_tz()).date():
            raise PastDate("Booking date cannot be in the past", details={"date": req.booking_date.isoformat()})
        if local_instant(req.booking_date, interval.start_time) <= now:
            raise PastDate("Booking start time has already passed", details={"startTime": interval.start_time})

        existing = self.store.find_bookings_for(req.court_id, req.booking_date, ACTIVE_STATUSES)
        validate_requested_slot(court, facility, req.booking_date, interval, existing)

        quote = price_for(court.rate, facility.pricing, interval)
        booking = Booking(
            id=str(uuid.uuid4()),
            user_id=req.user_id,
            facility_id=req.facility_id,
            court_id=req.court_id,
            booking_date=req.booking_date,
            start_time=interval.start_time,
            end_time=interval.end_time,
            duration_hours=hours,
            base_price=quote.base_price,
            peak_multiplier_applied=quote.peak_multiplier_applied,
            total_amount=quote.total_amount,
            currency=quote.currency,
            payment_method=req.payment_method,
            payment_status=PaymentStatus.PENDING.value,
            paid_amount=Decimal("0"),
            refund_amount=Decimal("0"),
            status=BookingStatus.PENDING.value,
            participants=req.participants,
            special_requests=req.special_requests or "",
            cancellation_refund_amount=Decimal("0"),
            refund_due=Decimal("0"),
            manual_refund_required=False,
            version=1,
            created_at=now,
            updated_at=now,
        )
        if req.payment_method in GATEWAY_METHODS:
            booking.order_id = self._open_order(booking).order_id

        saved = self.store.insert_booking_if_no_conflict(booking, actor=req.user_id)
        logger.info(
            "booking %s created: court=%s %s %s-%s total=%s %s",
            saved.id, saved.court_id, saved.booking_date, saved.start_time, saved.end_time,
            saved.total_amount, saved.currency,
        )
        send_safely(self.notifier, saved.user_id, BOOKING_CREATED, _context(saved))
        return saved

    def _open_order(self, booking: Booking) -> OrderHandle:
        gateway = self._gateway(booking.payment_method)
        try:
            return gateway.charge(
                Decimal(booking.total_amount),
                booking.currency,
                {"booking_id": booking.id, "court_id": booking.court_id, "user_id": booking.user_id},
            )
        except GatewayTimeout as exc:
            raise ExternalServiceUnavailable("Payment provider did not respond", details={"reason": str(exc)}) from exc
        except GatewayError as exc:
            raise PaymentFailed("Could not create payment order", details={"reason": str(exc)}) from exc

    # Transitions

    def confirm_payment(self, booking_id: str, proof: Mapping[str, str], actor_id: str | None = None) -> Booking:
        b = self.store.get_booking(booking_id)
        if b.status == BookingStatus.CONFIRMED.value and b.payment_status == PaymentStatus.COMPLETED.value:
            return b
        self._require(b, (BookingStatus.PENDING.value,), "confirm")

        gateway = self._gateway(b.payment_method)
        order = OrderHandle(order_id=b.order_id or "", amount=Decimal(b.total_amount), currency=b.currency)
        try:
            result = gateway.verify(order, proof)
        except GatewayTimeout as exc:
            raise ExternalServiceUnavailable("Payment provider did not respond", details={"booking_id": b.id}) from exc
        except GatewayError as exc:
            result = Failed(str(exc))

        if isinstance(result, Failed):
            self.store.update_booking(
                b.id, {"payment_status": PaymentStatus.FAILED.value}, b.version,
                actor=actor_id or b.user_id, action="booking.payment_failed", details={"reason": result.reason},
            )
            logger.warning("payment verification failed for booking %s: %s", b.id, result.reason)
            raise PaymentFailed("Payment verification failed", details={"booking_id": b.id, "reason": result.reason})

        now = self.clock()
        confirmed = self.store.update_booking(
            b.id,
            {
                "status": BookingStatus.CONFIRMED.value,
                "payment_status": PaymentStatus.COMPLETED.value,
                "transaction_id": result.transaction_id,
                "paid_amount": Decimal(b.total_amount),
                "paid_at": now,
            },
            b.version,
            actor=actor_id or b.user_id,
            action="booking.confirmed",
            details={"transaction_id": result.transaction_id, "amount": b.total_amount},
        )
        self.store.increment_booking_counters(b.facility_id, b.court_id)
        logger.info("booking %s confirmed, transaction %s", b.id, result.transaction_id)
        send_safely(self.notifier, confirmed.user_id, BOOKING_CONFIRMED, _context(confirmed))
        return confirmed

    def cancel_booking(self, booking_id: str, cancelled_by: str, reason: str | None = None) -> Booking:
        b = self.store.get_booking(booking_id)
        self._require(b, ACTIVE_STATUSES, "cancel")
        now = self.clock()
        if not can_cancel(b, now):
            raise CancellationWindowClosed(
                f"Bookings can only be cancelled up to {settings.CANCELLATION_CUTOFF_HOURS} hours before start",
                details={"booking_id": b.id, "hours_until_start": round(hours_until_start(b, now), 2)},
            )

        paid = b.payment_status == PaymentStatus.COMPLETED.value
        refund = calculate_refund(b, now) if paid else Decimal("0")

        # The versioned write decides which of two concurrent cancels wins.
        cancelled = self.store.update_booking(
            b.id,
            {
                "status": BookingStatus.CANCELLED.value,
                "cancelled_at": now,
                "cancelled_by": cancelled_by,
                "cancellation_reason": reason or "User requested cancellation",
                "cancellation_refund_amount": Decimal("0"),
                "refund_due": refund,
            },
            b.version,
            actor=cancelled_by,
            action="booking.cancelled",
            details={"reason": reason, "refund_due": refund, "percent": refund_percentage(hours_until_start(b, now))},
        )
        logger.info("booking %s cancelled by %s, refund due %s", b.id, cancelled_by, refund)

        if refund > 0:
            cancelled = self._refund(cancelled, refund, cancelled_by)

        send_safely(self.notifier, cancelled.user_id, BOOKING_CANCELLED, _context(cancelled))
        return cancelled

    def _refund(self, b: Booking, amount: Decimal, actor_id: str) -> Booking:
        gateway = self._gateway(b.payment_method)
        try:
            gateway.refund(b.transaction_id, amount)
        except ManualRefundRequired:
            flagged = self._flag_manual_refund(b, actor_id, "manual settlement")
            logger.info("booking %s refund of %s left for manual settlement", b.id, amount)
            return flagged
        except GatewayTimeout as exc:
            self._flag_manual_refund(b, actor_id, str(exc))
            raise ExternalServiceUnavailable(
                "Refund provider did not respond; refund is queued for manual reconciliation",
                details={"booking_id": b.id, "refund_due": str(amount)},
            ) from exc
        except GatewayError as exc:
            self._flag_manual_refund(b, actor_id, str(exc))
            raise RefundFailed(
                "Booking was cancelled but the refund could not be issued",
                details={"booking_id": b.id, "refund_due": str(amount), "reason": str(exc)},
            ) from exc

        now = self.clock()
        refunded = self.store.update_booking(
            b.id,
            {
                "payment_status": PaymentStatus.REFUNDED.value,
                "refund_amount": amount,
                "refunded_at": now,
                "cancellation_refund_amount": amount,
                "refund_due": Decimal("0"),
            },
            b.version,
            actor=actor_id,
            action="booking.refunded",
            details={"amount": amount},
        )
        logger.info("booking %s refunded %s %s", b.id, amount, b.currency)
        return refunded

    def _flag_manual_refund(self, b: Booking, actor_id: str, reason: str) -> Booking:
        flagged = self.store.update_booking(
            b.id, {"manual_refund_required": True}, b.version,
            actor=actor_id, action="booking.refund_manual", details={"refund_due": b.refund_due, "reason": reason},
        )
        logger.warning("booking %s needs a manual refund of %s: %s", b.id, b.refund_due, reason)
        send_safely(self.notifier, flagged.user_id, REFUND_ACTION_REQUIRED, _context(flagged))
        return flagged

    def mark_no_show(self, booking_id: str, actor_id: str | None = None) -> Booking:
        b = self.store.get_booking(booking_id)
        self._require(b, (BookingStatus.CONFIRMED.value,), "mark as no-show")
        updated = self.store.update_booking(
            b.id, {"status": BookingStatus.NO_SHOW.value}, b.version,
            actor=actor_id, action="booking.no_show",
        )
        logger.info("booking %s marked no-show", b.id)
        return updated

    def complete_booking(self, booking_id: str, actor_id: str | None = None) -> Booking:
        b = self.store.get_booking(booking_id)
        self._require(b, (BookingStatus.CONFIRMED.value,), "complete")
        now = self.clock()
        if booking_end(b) > now:
            raise InvalidTransition(
                "Booking cannot be completed before it ends",
                details={"booking_id": b.id, "endTime": b.end_time},
            )
        updated = self.store.update_booking(
            b.id, {"status": BookingStatus.COMPLETED.value, "completed_at": now}, b.version,
            actor=actor_id, action="booking.completed",
        )
        logger.info("booking %s completed", b.id)
        return updated

    def complete_due_bookings(self) -> int:
        """Complete every confirmed booking whose end has passed. Returns how many were completed."""
        now = self.clock()
        done = 0
        for b in self.store.find_due_for_completion(now.astimezone(facility_tz()).date()):
            if booking_end(b) > now:
                continue
            try:
                self.complete_booking(b.id)
                done += 1
            except (ConcurrentModification, InvalidTransition) as exc:
                logger.info("skipping completion of booking %s: %s", b.id, exc.message)
        return done

    def update_status(
        self,
        booking_id: str,
        status: str,
        actor_id: str,
        reason: str | None = None,
        proof: Mapping[str, str] | None = None,
    ) -> Booking:
        if status == BookingStatus.CONFIRMED.value:
            return self.confirm_payment(booking_id, proof or {}, actor_id=actor_id)
        if status == BookingStatus.CANCELLED.value:
            return self.cancel_booking(booking_id, cancelled_by=actor_id, reason=reason)
        if status == BookingStatus.COMPLETED.value:
            return self.complete_booking(booking_id, actor_id=actor_id)
        if status == BookingStatus.NO_SHOW.value:
            return self.mark_no_show(booking_id, actor_id=actor_id)
        raise InvalidRequest("Unsupported status", details={"status": status})

    # helpers

    def _require(self, b: Booking, allowed: tuple, action: str) -> None:
        if b.status in allowed:
            return
        if b.status in TERMINAL_STATUSES:
            msg = f"Cannot {action} a booking that is already {b.status}"
        else:
            msg = f"Cannot {action} a booking in status {b.status}"
        raise InvalidTransition(msg, details={"booking_id": b.id, "status": b.status})

    def _gateway(self, method: str):
        try:
            return self.gateways.for_method(method)
        except GatewayError as exc:
            raise InvalidRequest("Unsupported payment method", details={"paymentMethod": method}) from exc


def _context(b: Booking) -> dict:
    return {
        "booking_id": b.id,
        "court_id": b.court_id,
        "date": b.booking_date.isoformat(),
        "startTime": b.start_time,
        "endTime": b.end_time,
        "totalAmount": str(b.total_amount),
        "currency": b.currency,
        "status": b.status,
        "refund": str(b.cancellation_refund_amount or 0),
    }
