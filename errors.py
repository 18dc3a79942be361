"""Exception classes for the demo booking core."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class RejectionReason(str, Enum):
    """Why a booking request did not commit."""

    INVALID_SLOT = "InvalidSlot"
    MAX_BOOKINGS_REACHED = "MaxBookingsReached"
    PRODUCT_ALREADY_BOOKED = "ProductAlreadyBooked"
    SLOT_FULL = "SlotFull"
    PERSISTENCE_FAILURE = "PersistenceFailure"

    @property
    def retryable(self) -> bool:
        return self is RejectionReason.PERSISTENCE_FAILURE


class KioskBookingError(Exception):
    """Base exception for the booking core."""

    def __init__(
        self, message: str, recoverable: bool = False, details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize booking error.

        Args:
            message: Error message
            recoverable: Whether resubmitting the same request may succeed
            details: Additional error details
        """
        self.message = message
        self.recoverable = recoverable
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "recoverable": self.recoverable,
            "details": self.details,
            "timestamp": self.timestamp,
        }


class PersistenceError(KioskBookingError):
    """The booking store could not complete a read or write."""

    def __init__(
        self,
        message: str = "Booking store unavailable",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, recoverable=True, details=details)


class BookingRejectedError(KioskBookingError):
    """A business rule failed while re-checking at commit time."""

    reason: RejectionReason

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, recoverable=False, details=details)


class SlotFullError(BookingRejectedError):
    """Every seat in the slot is taken."""

    reason = RejectionReason.SLOT_FULL

    def __init__(self, message: str = "This session is fully booked", **kwargs):
        super().__init__(message, **kwargs)


class MaxBookingsReachedError(BookingRejectedError):
    """User already holds the maximum number of bookings."""

    reason = RejectionReason.MAX_BOOKINGS_REACHED

    def __init__(self, message: str = "Maximum number of product demos reached", **kwargs):
        super().__init__(message, **kwargs)


class ProductAlreadyBookedError(BookingRejectedError):
    """User already holds a booking for this product."""

    reason = RejectionReason.PRODUCT_ALREADY_BOOKED

    def __init__(self, message: str = "You have already booked this product demo", **kwargs):
        super().__init__(message, **kwargs)
