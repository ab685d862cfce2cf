import datetime as dt
from typing import Optional

from fastapi import APIRouter, Depends, Query

from quickcourt.api.deps import get_booking_manager, get_current_user_id
from quickcourt.models.booking import Booking
from quickcourt.schemas.booking import (
    AvailableSlotsOut,
    BookingCreate,
    BookingListOut,
    BookingOut,
    CancellationOut,
    PaginationOut,
    PaymentConfirmation,
    PaymentOut,
    PricingOut,
    SlotOut,
    StatusUpdate,
    TimeSlotOut,
)
from quickcourt.services.booking_service import BookingManager, BookingPage, BookingRequest

router = APIRouter(prefix="/bookings", tags=["bookings"])

def booking_out(b: Booking) -> BookingOut:
    cancellation = None
    if b.status == "cancelled":
        cancellation = CancellationOut(
            cancelledAt=b.cancelled_at,
            cancelledBy=b.cancelled_by,
            reason=b.cancellation_reason,
            refundAmount=b.cancellation_refund_amount or 0,
            refundDue=b.refund_due or 0,
            manualRefundRequired=bool(b.manual_refund_required),
        )
    return BookingOut(
        id=b.id,
        user=b.user_id,
        facility=b.facility_id,
        court=b.court_id,
        date=b.booking_date,
        timeSlot=TimeSlotOut(startTime=b.start_time, endTime=b.end_time, duration=b.duration_hours),
        pricing=PricingOut(
            basePrice=b.base_price,
            peakMultiplierApplied=b.peak_multiplier_applied,
            totalAmount=b.total_amount,
            currency=b.currency,
        ),
        payment=PaymentOut(
            method=b.payment_method,
            status=b.payment_status,
            orderId=b.order_id,
            transactionId=b.transaction_id,
            paidAmount=b.paid_amount or 0,
            paidAt=b.paid_at,
            refundAmount=b.refund_amount or 0,
            refundedAt=b.refunded_at,
        ),
        status=b.status,
        participants=b.participants,
        specialRequests=b.special_requests or "",
        cancellation=cancellation,
        completedAt=b.completed_at,
        version=b.version,
    )

@router.post("", response_model=BookingOut, status_code=201)
def create(
    body: BookingCreate,
    user_id: str = Depends(get_current_user_id),
    manager: BookingManager = Depends(get_booking_manager),
):
    b = manager.create_booking(BookingRequest(
        user_id=user_id,
        facility_id=body.facility,
        court_id=body.court,
        booking_date=body.date,
        start_time=body.timeSlot.startTime,
        end_time=body.timeSlot.endTime,
        payment_method=body.paymentMethod,
        participants=body.participants,
        special_requests=body.specialRequests,
    ))
    return booking_out(b)

@router.get("/available-slots/{court_id}", response_model=AvailableSlotsOut)
def available_slots(
    court_id: str,
    date: dt.date = Query(...),
    manager: BookingManager = Depends(get_booking_manager),
):
    slots = manager.available_slots(court_id, date)
    return AvailableSlotsOut(
        courtId=court_id,
        date=date,
        slots=[
            SlotOut(
                startTime=s.start_time,
                endTime=s.end_time,
                duration=s.duration_hours,
                price=s.price.total_amount,
                peakMultiplierApplied=s.price.peak_multiplier_applied,
                isPeak=s.is_peak,
            )
            for s in slots
        ],
    )

def page_out(page: BookingPage) -> BookingListOut:
    return BookingListOut(
        bookings=[booking_out(b) for b in page.bookings],
        pagination=PaginationOut(currentPage=page.page, totalPages=page.total_pages, totalBookings=page.total),
    )

@router.get("", response_model=BookingListOut)
def list_mine(
    status: Optional[str] = None,
    upcoming: bool = False,
    page: int = 1,
    limit: int = 10,
    user_id: str = Depends(get_current_user_id),
    manager: BookingManager = Depends(get_booking_manager),
):
    return page_out(manager.list_user_bookings(user_id, status=status, upcoming=upcoming, page=page, limit=limit))

@router.get("/facility/{facility_id}", response_model=BookingListOut)
def list_for_facility(
    facility_id: str,
    status: Optional[str] = None,
    date: Optional[dt.date] = None,
    page: int = 1,
    limit: int = 10,
    user_id: str = Depends(get_current_user_id),
    manager: BookingManager = Depends(get_booking_manager),
):
    return page_out(manager.list_facility_bookings(
        facility_id, user_id, status=status, on_date=date, page=page, limit=limit,
    ))

@router.get("/{booking_id}", response_model=BookingOut)
def get_one(
    booking_id: str,
    user_id: str = Depends(get_current_user_id),
    manager: BookingManager = Depends(get_booking_manager),
):
    return booking_out(manager.get_booking(booking_id))

@router.put("/{booking_id}/status", response_model=BookingOut)
def update_status(
    booking_id: str,
    body: StatusUpdate,
    user_id: str = Depends(get_current_user_id),
    manager: BookingManager = Depends(get_booking_manager),
):
    b = manager.update_status(
        booking_id,
        body.status,
        actor_id=user_id,
        reason=body.reason,
        proof=body.payment.proof() if body.payment else None,
    )
    return booking_out(b)

@router.post("/{booking_id}/confirm-payment", response_model=BookingOut)
def confirm_payment(
    booking_id: str,
    body: PaymentConfirmation,
    user_id: str = Depends(get_current_user_id),
    manager: BookingManager = Depends(get_booking_manager),
):
    b = manager.confirm_payment(booking_id, body.proof(), actor_id=user_id)
    return booking_out(b)
