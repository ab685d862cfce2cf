import datetime as dt
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

class TimeSlotIn(BaseModel):
    startTime: str
    endTime: str

class BookingCreate(BaseModel):
    facility: str
    court: str
    date: dt.date
    timeSlot: TimeSlotIn
    paymentMethod: str = "razorpay"
    participants: int = 1
    specialRequests: str = ""

class TimeSlotOut(BaseModel):
    startTime: str
    endTime: str
    duration: float

class PricingOut(BaseModel):
    basePrice: Decimal
    peakMultiplierApplied: Decimal
    totalAmount: Decimal
    currency: str

class PaymentOut(BaseModel):
    method: str
    status: str
    orderId: Optional[str] = None
    transactionId: Optional[str] = None
    paidAmount: Decimal = Decimal("0")
    paidAt: Optional[dt.datetime] = None
    refundAmount: Decimal = Decimal("0")
    refundedAt: Optional[dt.datetime] = None

class CancellationOut(BaseModel):
    cancelledAt: Optional[dt.datetime] = None
    cancelledBy: Optional[str] = None
    reason: Optional[str] = None
    refundAmount: Decimal = Decimal("0")
    refundDue: Decimal = Decimal("0")
    manualRefundRequired: bool = False

class BookingOut(BaseModel):
    id: str
    user: str
    facility: str
    court: str
    date: dt.date
    timeSlot: TimeSlotOut
    pricing: PricingOut
    payment: PaymentOut
    status: str
    participants: int = 1
    specialRequests: str = ""
    cancellation: Optional[CancellationOut] = None
    completedAt: Optional[dt.datetime] = None
    version: int = 1

class SlotOut(BaseModel):
    startTime: str
    endTime: str
    duration: float
    price: Decimal
    peakMultiplierApplied: Decimal
    isPeak: bool = False

class AvailableSlotsOut(BaseModel):
    courtId: str
    date: dt.date
    slots: List[SlotOut] = Field(default_factory=list)

class PaymentConfirmation(BaseModel):
    paymentId: Optional[str] = None
    orderId: Optional[str] = None
    signature: Optional[str] = None
    receipt: Optional[str] = None

    def proof(self) -> dict:
        return {
            "payment_id": self.paymentId or "",
            "order_id": self.orderId or "",
            "signature": self.signature or "",
            "receipt": self.receipt or "",
        }

class StatusUpdate(BaseModel):
    status: str
    reason: Optional[str] = Field(default=None, max_length=500)
    payment: Optional[PaymentConfirmation] = None

class PaginationOut(BaseModel):
    currentPage: int
    totalPages: int
    totalBookings: int

class BookingListOut(BaseModel):
    bookings: List[BookingOut] = Field(default_factory=list)
    pagination: PaginationOut
