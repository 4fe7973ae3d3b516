from .availability import DayAvailability, SlotAvailability
from .booking import (
    Booking,
    BookingCreate,
    BookingCancel,
    CancellationPreview,
    ConsecutiveBookingCreate,
    GuestInfo,
    OwnerReservedBookingCreate,
    WeeklyBookingCreate,
)
from .payment import PaymentWebhookResult
from .schedule import HolidayCreate
