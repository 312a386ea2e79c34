"""Database models."""
from turfbook.models.station import Station
from turfbook.models.customer import Customer
from turfbook.models.booking import Booking, BookingStatus, ACTIVE_STATUSES, INACTIVE_STATUSES
from turfbook.models.pending_payment import PendingPayment, PendingPaymentStatus

__all__ = [
    "Station",
    "Customer",
    "Booking",
    "BookingStatus",
    "ACTIVE_STATUSES",
    "INACTIVE_STATUSES",
    "PendingPayment",
    "PendingPaymentStatus",
]
