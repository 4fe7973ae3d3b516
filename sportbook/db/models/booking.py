import datetime as dt
from enum import Enum as PyEnum
from sqlalchemy import Boolean, Date, DateTime, Enum, ForeignKey, Integer, JSON, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from ..session import Base


class BookingType(str, PyEnum):
    field = "field"
    coach = "coach"


class BookingStatus(str, PyEnum):
    pending = "pending"
    confirmed = "confirmed"
    checked_in = "checked_in"
    completed = "completed"
    cancelled = "cancelled"


class BookingPaymentStatus(str, PyEnum):
    unpaid = "unpaid"
    paid = "paid"
    refunded = "refunded"


class ApprovalStatus(str, PyEnum):
    none = "none"
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


ACTIVE_BOOKING_STATUSES = (BookingStatus.pending, BookingStatus.confirmed)


class Booking(Base):
    __tablename__ = "bookings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    resource_id: Mapped[int] = mapped_column(ForeignKey("resources.id", ondelete="CASCADE"), index=True)
    sub_resource_id: Mapped[int] = mapped_column(Integer, default=0)
    booking_type: Mapped[BookingType] = mapped_column(Enum(BookingType), default=BookingType.field)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    start_time: Mapped[str] = mapped_column(String(5))
    end_time: Mapped[str] = mapped_column(String(5))
    num_slots: Mapped[int] = mapped_column(Integer, default=1)
    status: Mapped[BookingStatus] = mapped_column(Enum(BookingStatus), default=BookingStatus.pending)
    payment_status: Mapped[BookingPaymentStatus] = mapped_column(
        Enum(BookingPaymentStatus), default=BookingPaymentStatus.unpaid
    )
    approval_status: Mapped[ApprovalStatus] = mapped_column(Enum(ApprovalStatus), default=ApprovalStatus.none)
    note: Mapped[str | None] = mapped_column(Text)
    booking_amount: Mapped[int] = mapped_column(Integer, default=0)
    platform_fee: Mapped[int] = mapped_column(Integer, default=0)
    total_price: Mapped[int] = mapped_column(Integer, default=0)
    discount_amount: Mapped[int] = mapped_column(Integer, default=0)
    refund_amount: Mapped[int] = mapped_column(Integer, default=0)
    penalty_amount: Mapped[int] = mapped_column(Integer, default=0)
    pricing_snapshot: Mapped[dict | None] = mapped_column(JSON)
    payment_id: Mapped[int | None] = mapped_column(ForeignKey("payments.id", ondelete="SET NULL"), index=True)
    recurring_group_id: Mapped[str | None] = mapped_column(String(36), index=True)
    is_owner_reserved: Mapped[bool] = mapped_column(Boolean, default=False)
    owner_fee_amount: Mapped[int] = mapped_column(Integer, default=0)
    cancellation_reason: Mapped[str | None] = mapped_column(String(255))
    cancelled_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_by: Mapped[str | None] = mapped_column(String(64))
    confirmation_notified_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    user = relationship("User")
    resource = relationship("Resource")
    payment = relationship("Payment", back_populates="bookings")

    @property
    def checkout_url(self) -> str | None:
        return self.payment.checkout_url if self.payment else None
