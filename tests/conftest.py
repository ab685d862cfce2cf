import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest

from quickcourt.core.enums import PaymentMethod
from quickcourt.db.session import Base, make_engine, make_session_factory
from quickcourt.models.audit_log import AuditLog  # noqa: F401
from quickcourt.models.booking import Booking
from quickcourt.models.court import Court, MaintenanceSchedule
from quickcourt.models.court_day_ledger import CourtDayLedger  # noqa: F401
from quickcourt.models.facility import Facility, FacilityOperatingHours
from quickcourt.services.booking_service import BookingManager, BookingRequest
from quickcourt.services.booking_store import SqlBookingStore
from quickcourt.services.payment_gateway import GatewayRegistry, OfflineGateway, SandboxGateway

# Monday 2026-11-02, 10:00 in Asia/Kolkata
NOW = datetime(2026, 11, 2, 4, 30, tzinfo=timezone.utc)
TODAY = date(2026, 11, 2)
BOOKING_DAY = date(2026, 11, 4)  # Wednesday
SUNDAY = date(2026, 11, 8)

FACILITY_ID = "facility-1"
COURT_ID = "court-1"
OTHER_COURT_ID = "court-2"


class FixedClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    def notify(self, user_id, kind, context):
        self.sent.append((user_id, kind, dict(context)))

    def kinds(self):
        return [k for _, k, _ in self.sent]


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'quickcourt-test.db'}")
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def venue(session_factory):
    """Facility open 06:00-22:00 except Sundays, peak 18:00-21:00 at 1.5x, two courts at 500/h.

    Court 1 has maintenance 14:00-15:00 on BOOKING_DAY.
    """
    with session_factory() as db:
        db.add(Facility(
            id=FACILITY_ID,
            name="Test Arena",
            owner_id="owner-1",
            currency="INR",
            peak_start="18:00",
            peak_end="21:00",
            peak_multiplier=Decimal("1.5"),
            total_bookings=0,
        ))
        db.flush()
        for day in range(7):
            db.add(FacilityOperatingHours(
                id=str(uuid.uuid4()),
                facility_id=FACILITY_ID,
                day_of_week=day,
                is_open=day != 6,
                open_time="06:00",
                close_time="22:00",
            ))
        for court_id, name in ((COURT_ID, "Court 1"), (OTHER_COURT_ID, "Court 2")):
            db.add(Court(
                id=court_id,
                facility_id=FACILITY_ID,
                name=name,
                sport="Badminton",
                hourly_rate=Decimal("500"),
                min_booking_hours=0.5,
                is_active=True,
                total_bookings=0,
            ))
        db.flush()
        db.add(MaintenanceSchedule(
            id=str(uuid.uuid4()),
            court_id=COURT_ID,
            block_date=BOOKING_DAY,
            start_time="14:00",
            end_time="15:00",
            description="Net replacement",
            is_completed=False,
        ))
        db.commit()
    return SimpleNamespace(facility_id=FACILITY_ID, court_id=COURT_ID, other_court_id=OTHER_COURT_ID)


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def sandbox():
    return SandboxGateway(secret="test-secret")


@pytest.fixture
def gateways(sandbox):
    offline = OfflineGateway()
    return GatewayRegistry({
        PaymentMethod.RAZORPAY.value: sandbox,
        PaymentMethod.STRIPE.value: sandbox,
        PaymentMethod.CASH.value: offline,
        PaymentMethod.WALLET.value: offline,
    })


@pytest.fixture
def store(session_factory):
    return SqlBookingStore(session_factory)


@pytest.fixture
def manager(store, gateways, notifier, clock, venue):
    return BookingManager(store, gateways=gateways, notifier=notifier, clock=clock)


@pytest.fixture
def book(manager, venue):
    def _book(start, end, on=BOOKING_DAY, court_id=COURT_ID, method="razorpay", user_id="user-1", **extra):
        return manager.create_booking(BookingRequest(
            user_id=user_id,
            facility_id=venue.facility_id,
            court_id=court_id,
            booking_date=on,
            start_time=start,
            end_time=end,
            payment_method=method,
            **extra,
        ))
    return _book


@pytest.fixture
def pay(manager, sandbox):
    def _pay(b, payment_id="pay_test_1"):
        return manager.confirm_payment(b.id, {
            "payment_id": payment_id,
            "signature": sandbox.sign(b.order_id, payment_id),
        })
    return _pay


@pytest.fixture
def make_booking():
    """Unvalidated Booking row for exercising the store directly."""
    def _make(start, end, on=BOOKING_DAY, court_id=COURT_ID, status="pending"):
        return Booking(
            id=str(uuid.uuid4()),
            user_id="user-raw",
            facility_id=FACILITY_ID,
            court_id=court_id,
            booking_date=on,
            start_time=start,
            end_time=end,
            duration_hours=1.0,
            base_price=Decimal("500"),
            peak_multiplier_applied=Decimal("1"),
            total_amount=Decimal("500"),
            currency="INR",
            payment_method="cash",
            payment_status="pending",
            paid_amount=Decimal("0"),
            refund_amount=Decimal("0"),
            status=status,
            participants=1,
            special_requests="",
            cancellation_refund_amount=Decimal("0"),
            refund_due=Decimal("0"),
            manual_refund_required=False,
            version=1,
            created_at=NOW,
            updated_at=NOW,
        )
    return _make
