import datetime as dt
from pydantic import BaseModel, Field

from ..models.booking import ApprovalStatus, BookingPaymentStatus, BookingStatus, BookingType


class GuestInfo(BaseModel):
    email: str | None = None
    name: str | None = None
    phone: str | None = None


class BookingRequestBase(BaseModel):
    resource_id: int
    court_id: int | None = None
    start_time: str = Field(pattern=r"^\d{2}:\d{2}$")
    end_time: str = Field(pattern=r"^\d{2}:\d{2}$")
    payment_method: str = "cash"
    note: str | None = Field(default=None, max_length=1000)
    guest: GuestInfo | None = None
    # accepted for compatibility, always recomputed server-side
    total_price: int | None = None


class BookingCreate(BookingRequestBase):
    date: dt.date


class ConsecutiveBookingCreate(BookingRequestBase):
    start_date: dt.date
    end_date: dt.date


class WeeklyBookingCreate(BookingRequestBase):
    start_date: dt.date
    weekdays: list[int]
    weeks: int = 4


class OwnerReservedBookingCreate(BaseModel):
    resource_id: int
    court_id: int | None = None
    date: dt.date
    start_time: str = Field(pattern=r"^\d{2}:\d{2}$")
    end_time: str = Field(pattern=r"^\d{2}:\d{2}$")
    note: str | None = None


class BookingCancel(BaseModel):
    reason: str | None = None


class CancellationPreview(BaseModel):
    role: str
    hours_until_start: float
    percentage: int
    refund_amount: int
    penalty_amount: int


class Booking(BaseModel):
    id: int
    user_id: int
    resource_id: int
    sub_resource_id: int
    booking_type: BookingType
    date: dt.date
    start_time: str
    end_time: str
    num_slots: int
    status: BookingStatus
    payment_status: BookingPaymentStatus
    approval_status: ApprovalStatus
    note: str | None = None
    booking_amount: int
    platform_fee: int
    total_price: int
    discount_amount: int = 0
    refund_amount: int = 0
    penalty_amount: int = 0
    payment_id: int | None = None
    recurring_group_id: str | None = None
    is_owner_reserved: bool = False
    cancellation_reason: str | None = None
    cancelled_at: dt.datetime | None = None
    checkout_url: str | None = None

    class Config:
        from_attributes = True
