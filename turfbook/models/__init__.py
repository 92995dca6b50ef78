from turfbook.models.user import User, UserRole
from turfbook.models.turf import (
    Turf,
    TurfCreate,
    TurfPublic,
    TurfRejectRequest,
    TurfStatus,
    TurfUpdate,
)
from turfbook.models.booking import Booking, BookingBase, BookingStatus, PaymentStatus

__all__ = [
    "User",
    "UserRole",
    "Turf",
    "TurfCreate",
    "TurfPublic",
    "TurfRejectRequest",
    "TurfStatus",
    "TurfUpdate",
    "Booking",
    "BookingBase",
    "BookingStatus",
    "PaymentStatus",
]
