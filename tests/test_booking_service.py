from datetime import timedelta
from decimal import Decimal

import pytest

from conftest import BOOKING_DAY, NOW, SUNDAY, TODAY
from quickcourt.core.errors import (
    BookingConflict,
    CancellationWindowClosed,
    ConcurrentModification,
    DurationTooShort,
    FacilityClosed,
    Forbidden,
    InvalidRange,
    InvalidRequest,
    InvalidTimeFormat,
    InvalidTransition,
    MaintenanceConflict,
    OutsideOperatingHours,
    PastDate,
    PaymentFailed,
    RefundFailed,
)
from quickcourt.core.enums import PaymentMethod
from quickcourt.models.court import Court
from quickcourt.models.facility import Facility
from quickcourt.services.audit_service import audit_trail
from quickcourt.services.booking_service import (
    BookingManager,
    BookingRequest,
    local_instant,
    refund_percentage,
)
from quickcourt.services.payment_gateway import GatewayError, GatewayRegistry, OfflineGateway, SandboxGateway


def hours_before(on, hhmm, hours):
    return local_instant(on, hhmm) - timedelta(hours=hours)


class TestCreateBooking:
    def test_creates_pending_booking_with_frozen_price(self, book, notifier, session_factory):
        b = book("10:00", "12:00")
        assert b.status == "pending"
        assert b.payment_status == "pending"
        assert b.total_amount == Decimal("1000")
        assert b.duration_hours == 2.0
        assert b.order_id.startswith("order_")
        assert b.version == 1
        assert notifier.kinds() == ["booking_created"]
        with session_factory() as db:
            assert [a.action for a in audit_trail(db, "booking", b.id)] == ["booking.created"]

    def test_peak_and_straddle_pricing(self, book):
        assert book("18:00", "19:00").total_amount == Decimal("750")
        straddle = book("17:00", "18:00", court_id="court-2")
        assert straddle.total_amount == Decimal("500")
        half = book("17:30", "18:30", on=BOOKING_DAY + timedelta(days=1))
        assert half.total_amount == Decimal("625")
        assert half.peak_multiplier_applied == Decimal("1.25")

    def test_cash_booking_has_no_gateway_order(self, book):
        b = book("10:00", "11:00", method="cash")
        assert b.order_id is None

    def test_adjacent_bookings_are_allowed(self, book):
        book("10:00", "11:00")
        book("11:00", "12:00")
        book("09:00", "10:00")

    def test_overlap_names_existing_booking(self, book):
        first = book("10:00", "11:00")
        with pytest.raises(BookingConflict) as exc:
            book("10:30", "11:30")
        assert exc.value.details["conflicting_booking_id"] == first.id

    def test_other_court_is_independent(self, book, venue):
        book("10:00", "11:00")
        book("10:00", "11:00", court_id=venue.other_court_id)

    def test_cancelled_booking_frees_the_slot(self, book, manager):
        first = book("10:00", "11:00")
        manager.cancel_booking(first.id, cancelled_by="user-1")
        assert book("10:00", "11:00").status == "pending"

    @pytest.mark.parametrize("start,end,error", [
        ("25:00", "26:00", InvalidTimeFormat),
        ("10:00", "09:00", InvalidRange),
        ("10:00", "10:15", DurationTooShort),
        ("21:30", "22:30", OutsideOperatingHours),
        ("05:00", "07:00", OutsideOperatingHours),
        ("14:30", "15:30", MaintenanceConflict),
    ])
    def test_rejections(self, book, start, end, error):
        with pytest.raises(error):
            book(start, end)

    def test_closed_day(self, book):
        with pytest.raises(FacilityClosed):
            book("10:00", "11:00", on=SUNDAY)

    def test_past_date(self, book):
        with pytest.raises(PastDate):
            book("10:00", "11:00", on=TODAY - timedelta(days=1))

    def test_start_already_passed_today(self, book):
        with pytest.raises(PastDate):
            book("09:00", "10:00", on=TODAY)
        assert book("11:00", "12:00", on=TODAY).status == "pending"

    def test_inactive_court(self, book, session_factory, venue):
        with session_factory() as db:
            db.get(Court, venue.court_id).is_active = False
            db.commit()
        with pytest.raises(FacilityClosed):
            book("10:00", "11:00")

    def test_court_minimum_duration(self, book, session_factory, venue):
        with session_factory() as db:
            db.get(Court, venue.court_id).min_booking_hours = 1.0
            db.commit()
        with pytest.raises(DurationTooShort) as exc:
            book("10:00", "10:30")
        assert exc.value.details["minimum_hours"] == 1.0

    def test_request_validation(self, book, venue):
        with pytest.raises(InvalidRequest):
            book("10:00", "11:00", participants=0)
        with pytest.raises(InvalidRequest):
            book("10:00", "11:00", special_requests="x" * 501)
        with pytest.raises(InvalidRequest):
            book("10:00", "11:00", method="cheque")

    def test_notifier_failure_does_not_block(self, store, gateways, clock, venue):
        class Broken:
            def notify(self, user_id, kind, context):
                raise RuntimeError("smtp down")

        manager = BookingManager(store, gateways=gateways, notifier=Broken(), clock=clock)
        b = manager.create_booking(BookingRequest(
            user_id="user-1", facility_id=venue.facility_id, court_id=venue.court_id,
            booking_date=BOOKING_DAY, start_time="10:00", end_time="11:00",
        ))
        assert b.status == "pending"


class TestConfirmPayment:
    def test_valid_signature_confirms(self, book, pay, notifier, session_factory, venue):
        b = book("10:00", "12:00")
        confirmed = pay(b, "pay_abc")
        assert confirmed.status == "confirmed"
        assert confirmed.payment_status == "completed"
        assert confirmed.transaction_id == "pay_abc"
        assert confirmed.paid_amount == Decimal("1000")
        assert confirmed.paid_at is not None
        assert "booking_confirmed" in notifier.kinds()
        with session_factory() as db:
            assert db.get(Facility, venue.facility_id).total_bookings == 1
            assert db.get(Court, venue.court_id).total_bookings == 1

    def test_confirm_is_idempotent(self, book, pay, manager):
        b = book("10:00", "11:00")
        confirmed = pay(b)
        again = manager.confirm_payment(b.id, {})
        assert again.version == confirmed.version
        assert again.status == "confirmed"

    def test_bad_signature_fails_and_keeps_pending(self, book, pay, manager):
        b = book("10:00", "11:00")
        with pytest.raises(PaymentFailed):
            manager.confirm_payment(b.id, {"payment_id": "pay_x", "signature": "forged"})
        stored = manager.get_booking(b.id)
        assert stored.status == "pending"
        assert stored.payment_status == "failed"
        # a later genuine payment still goes through
        assert pay(stored).status == "confirmed"

    def test_cash_confirmed_with_receipt(self, book, manager):
        b = book("10:00", "11:00", method="cash")
        confirmed = manager.confirm_payment(b.id, {"receipt": "R-1001"})
        assert confirmed.transaction_id == "R-1001"
        assert confirmed.status == "confirmed"

    def test_cash_without_receipt_stays_unpaid(self, book, manager, venue, session_factory):
        b = book("10:00", "11:00", method="cash")
        with pytest.raises(PaymentFailed):
            manager.confirm_payment(b.id, {})
        stored = manager.get_booking(b.id)
        assert stored.status == "pending"
        assert stored.payment_status == "failed"
        with session_factory() as db:
            assert db.get(Court, venue.court_id).total_bookings == 0


class TestCancelBooking:
    @pytest.mark.parametrize("hours,refund", [(25, "1000"), (24, "1000"), (13, "750"), (7, "500"), (3, "250")])
    def test_refund_tiers(self, book, pay, manager, clock, sandbox, hours, refund):
        b = pay(book("10:00", "12:00"))
        clock.now = hours_before(BOOKING_DAY, "10:00", hours)
        cancelled = manager.cancel_booking(b.id, cancelled_by="user-1", reason="rain")
        assert cancelled.status == "cancelled"
        assert cancelled.cancellation_refund_amount == Decimal(refund)
        assert cancelled.refund_amount == Decimal(refund)
        assert cancelled.refund_due == Decimal("0")
        assert cancelled.payment_status == "refunded"
        assert cancelled.cancellation_reason == "rain"
        assert sandbox.refunds[-1].amount == Decimal(refund)

    def test_inside_cutoff_is_refused(self, book, pay, manager, clock):
        b = pay(book("10:00", "12:00"))
        clock.now = hours_before(BOOKING_DAY, "10:00", 1)
        with pytest.raises(CancellationWindowClosed):
            manager.cancel_booking(b.id, cancelled_by="user-1")
        stored = manager.get_booking(b.id)
        assert stored.status == "confirmed"
        assert stored.version == b.version

    def test_unpaid_booking_cancels_without_refund(self, book, manager, sandbox):
        b = book("10:00", "11:00")
        cancelled = manager.cancel_booking(b.id, cancelled_by="user-1")
        assert cancelled.status == "cancelled"
        assert cancelled.cancellation_refund_amount == Decimal("0")
        assert cancelled.payment_status == "pending"
        assert cancelled.cancellation_reason == "User requested cancellation"
        assert sandbox.refunds == []

    def test_cash_refund_is_flagged_for_manual_settlement(self, book, manager, notifier):
        b = book("10:00", "12:00", method="cash")
        manager.confirm_payment(b.id, {"receipt": "R-1"})
        cancelled = manager.cancel_booking(b.id, cancelled_by="owner-1")
        assert cancelled.status == "cancelled"
        assert cancelled.manual_refund_required is True
        assert cancelled.refund_due == Decimal("1000")
        assert cancelled.refund_amount == Decimal("0")
        assert cancelled.cancellation_refund_amount == Decimal("0")
        assert cancelled.payment_status == "completed"
        assert "refund_action_required" in notifier.kinds()

    def test_refund_failure_cancels_and_reports(self, store, notifier, clock, venue, session_factory):
        class RefundBroken(SandboxGateway):
            def refund(self, transaction_id, amount):
                raise GatewayError("provider rejected refund")

        gw = RefundBroken(secret="test-secret")
        registry = GatewayRegistry({PaymentMethod.RAZORPAY.value: gw, PaymentMethod.CASH.value: OfflineGateway()})
        manager = BookingManager(store, gateways=registry, notifier=notifier, clock=clock)
        b = manager.create_booking(BookingRequest(
            user_id="user-1", facility_id=venue.facility_id, court_id=venue.court_id,
            booking_date=BOOKING_DAY, start_time="10:00", end_time="12:00",
        ))
        manager.confirm_payment(b.id, {"payment_id": "pay_1", "signature": gw.sign(b.order_id, "pay_1")})

        with pytest.raises(RefundFailed) as exc:
            manager.cancel_booking(b.id, cancelled_by="user-1")
        assert exc.value.details["refund_due"] == "1000.00"

        stored = manager.get_booking(b.id)
        assert stored.status == "cancelled"
        assert stored.cancellation_refund_amount == Decimal("0")
        assert stored.refund_due == Decimal("1000")
        assert stored.manual_refund_required is True
        with session_factory() as db:
            actions = {a.action for a in audit_trail(db, "booking", b.id)}
        assert {"booking.cancelled", "booking.refund_manual"} <= actions

    def test_audit_trail_for_paid_cancellation(self, book, pay, manager, session_factory):
        b = pay(book("10:00", "11:00"))
        manager.cancel_booking(b.id, cancelled_by="user-1")
        with session_factory() as db:
            actions = {a.action for a in audit_trail(db, "booking", b.id)}
        assert actions == {"booking.created", "booking.confirmed", "booking.cancelled", "booking.refunded"}


class TestTerminalStates:
    def test_cancelled_booking_rejects_every_transition(self, book, manager):
        b = manager.cancel_booking(book("10:00", "11:00").id, cancelled_by="user-1")
        for attempt in (
            lambda: manager.cancel_booking(b.id, cancelled_by="user-1"),
            lambda: manager.confirm_payment(b.id, {}),
            lambda: manager.mark_no_show(b.id),
            lambda: manager.complete_booking(b.id),
        ):
            with pytest.raises(InvalidTransition):
                attempt()
        stored = manager.get_booking(b.id)
        assert stored.version == b.version
        assert stored.status == "cancelled"

    def test_no_show(self, book, pay, manager):
        pending = book("10:00", "11:00")
        with pytest.raises(InvalidTransition):
            manager.mark_no_show(pending.id)
        b = manager.mark_no_show(pay(pending).id)
        assert b.status == "no_show"
        with pytest.raises(InvalidTransition):
            manager.cancel_booking(b.id, cancelled_by="user-1")

    def test_complete_only_after_end(self, book, pay, manager, clock):
        b = pay(book("10:00", "11:00"))
        with pytest.raises(InvalidTransition):
            manager.complete_booking(b.id)
        clock.now = local_instant(BOOKING_DAY, "11:00")
        done = manager.complete_booking(b.id)
        assert done.status == "completed"
        assert done.completed_at is not None

    def test_complete_due_bookings(self, book, pay, manager, clock):
        early = pay(book("10:00", "11:00"))
        late = pay(book("18:00", "19:00"))
        pending = book("12:00", "13:00")
        clock.now = local_instant(BOOKING_DAY, "12:30")
        assert manager.complete_due_bookings() == 1
        assert manager.get_booking(early.id).status == "completed"
        assert manager.get_booking(late.id).status == "confirmed"
        assert manager.get_booking(pending.id).status == "pending"

    def test_stale_version_is_rejected(self, book, manager, store):
        b = book("10:00", "11:00")
        manager.cancel_booking(b.id, cancelled_by="user-1")
        with pytest.raises(ConcurrentModification):
            store.update_booking(b.id, {"status": "no_show"}, b.version)


class TestUpdateStatus:
    def test_dispatches_by_status(self, book, manager, sandbox):
        b = book("10:00", "11:00")
        proof = {"payment_id": "pay_9", "signature": sandbox.sign(b.order_id, "pay_9")}
        assert manager.update_status(b.id, "confirmed", actor_id="owner-1", proof=proof).status == "confirmed"
        assert manager.update_status(b.id, "cancelled", actor_id="owner-1", reason="court flooded").status == "cancelled"

    def test_unknown_status(self, book, manager):
        b = book("10:00", "11:00")
        with pytest.raises(InvalidRequest):
            manager.update_status(b.id, "archived", actor_id="owner-1")


class TestAvailableSlots:
    def test_slots_exclude_bookings_and_maintenance(self, book, manager, venue):
        book("10:00", "12:00")
        starts = [s.start_time for s in manager.available_slots(venue.court_id, BOOKING_DAY)]
        assert len(starts) == 13
        assert "10:00" not in starts and "11:00" not in starts and "14:00" not in starts

    def test_today_skips_started_slots(self, manager, venue):
        slots = manager.available_slots(venue.court_id, TODAY)
        assert slots[0].start_time == "11:00"
        assert len(slots) == 11

    @pytest.mark.parametrize("offset", [timedelta(0), timedelta(seconds=30), timedelta(minutes=59, seconds=59)])
    def test_first_slot_listed_today_can_be_booked(self, manager, book, clock, venue, offset):
        clock.now = NOW + offset
        first = manager.available_slots(venue.court_id, TODAY)[0]
        assert first.start_time == "11:00"
        assert book(first.start_time, first.end_time, on=TODAY).status == "pending"

    def test_past_and_closed_days_are_empty(self, manager, venue):
        assert manager.available_slots(venue.court_id, TODAY - timedelta(days=1)) == []
        assert manager.available_slots(venue.court_id, SUNDAY) == []


class TestBookingLists:
    def test_user_bookings_with_filters_and_pages(self, book, manager, clock):
        book("11:00", "12:00", on=TODAY)
        book("10:00", "11:00")
        cancelled = book("16:00", "17:00")
        manager.cancel_booking(cancelled.id, "user-1")
        book("12:00", "13:00", user_id="user-2")

        page = manager.list_user_bookings("user-1", limit=2)
        assert page.total == 3
        assert page.total_pages == 2
        assert [b.start_time for b in page.bookings] == ["16:00", "10:00"]
        assert [b.booking_date for b in manager.list_user_bookings("user-1", page=2, limit=2).bookings] == [TODAY]

        assert manager.list_user_bookings("user-1", status="cancelled").total == 1
        clock.now = local_instant(BOOKING_DAY, "06:00")
        assert manager.list_user_bookings("user-1", upcoming=True).total == 2

    def test_facility_bookings_are_owner_only(self, book, manager, venue):
        book("10:00", "11:00")
        book("10:00", "11:00", court_id=venue.other_court_id, user_id="user-2")
        page = manager.list_facility_bookings(venue.facility_id, "owner-1", on_date=BOOKING_DAY)
        assert page.total == 2
        with pytest.raises(Forbidden):
            manager.list_facility_bookings(venue.facility_id, "user-1")

    @pytest.mark.parametrize("kwargs", [{"status": "archived"}, {"page": 0}, {"limit": 0}, {"limit": 101}])
    def test_bad_list_arguments(self, manager, venue, kwargs):
        with pytest.raises(InvalidRequest):
            manager.list_user_bookings("user-1", **kwargs)

    def test_empty_history_has_no_pages(self, manager, venue):
        page = manager.list_user_bookings("nobody")
        assert page.bookings == []
        assert page.total_pages == 0


def test_refund_percentage_boundaries():
    assert refund_percentage(48) == 100
    assert refund_percentage(24) == 100
    assert refund_percentage(23.99) == 75
    assert refund_percentage(12) == 75
    assert refund_percentage(6) == 50
    assert refund_percentage(2) == 25
    assert refund_percentage(1.99) == 0


def test_now_fixture_is_monday_morning_in_facility_time():
    assert local_instant(TODAY, "10:00") == NOW
