"""
Booking error taxonomy.

Every error the booking core reports carries a stable ``code`` and a
``details`` dict so the API layer can tell the client *why* a slot was
refused and offer alternatives.
"""
from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class DomainError(Exception):
    """Base class for all booking-core errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, code: Optional[str] = None, details: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={"message": self.message, "code": self.code, "details": self.details},
        )


# Input errors: caller's fault, nothing happened.

class InputError(DomainError):
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidTimeFormat(InputError):
    pass


class InvalidRange(InputError):
    pass


class PastDate(InputError):
    pass


class DurationTooShort(InputError):
    pass


class InvalidRequest(InputError):
    pass


class NotFound(DomainError):
    status_code = status.HTTP_404_NOT_FOUND


class Forbidden(DomainError):
    status_code = status.HTTP_403_FORBIDDEN


# Availability errors

class AvailabilityError(DomainError):
    status_code = status.HTTP_409_CONFLICT


class FacilityClosed(AvailabilityError):
    pass


class OutsideOperatingHours(AvailabilityError):
    pass


class MaintenanceConflict(AvailabilityError):
    pass


class BookingConflict(AvailabilityError):
    pass


# State errors

class StateError(DomainError):
    status_code = status.HTTP_409_CONFLICT


class InvalidTransition(StateError):
    pass


class CancellationWindowClosed(StateError):
    pass


class ConcurrentModification(StateError):
    pass


# External collaborator errors, already translated from provider exceptions

class ExternalError(DomainError):
    status_code = status.HTTP_502_BAD_GATEWAY


class PaymentFailed(ExternalError):
    status_code = status.HTTP_402_PAYMENT_REQUIRED


class RefundFailed(ExternalError):
    pass


class ExternalServiceUnavailable(ExternalError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
