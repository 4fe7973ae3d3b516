from .user import User, UserRole
from .resource import Resource, ResourceKind, Court
from .ledger import ReservationLedger
from .payment import Payment, PaymentStatus, PaymentMethod, OFFLINE_PAYMENT_METHODS
from .booking import (
    Booking,
    BookingStatus,
    BookingType,
    BookingPaymentStatus,
    ApprovalStatus,
    ACTIVE_BOOKING_STATUSES,
)
from .wallet import Wallet
from .booking_event import BookingEvent, BookingEventType
