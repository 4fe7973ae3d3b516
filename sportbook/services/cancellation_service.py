import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.clock import local_now, local_timezone, utc_now
from ..core.constants import SYSTEM_ACTOR
from ..core.errors import AccessDenied, NotFound, StateConflict
from ..db import models
from ..db.models.booking_event import BookingEventType
from ..db.session import atomic
from . import ledger_service, wallet_service
from .cancellation_policy import ActorRole, CancellationQuote, hours_until_start, quote
from .conflicts import TimeWindow
from .notification_service import dispatch_events, record_event

logger = logging.getLogger(__name__)


def load_booking(db: Session, booking_id: int) -> models.Booking:
    booking = db.scalars(
        select(models.Booking)
        .where(models.Booking.id == booking_id)
        .execution_options(populate_existing=True)
    ).one_or_none()
    if not booking:
        raise NotFound("Booking not found")
    return booking


def resolve_role(booking: models.Booking, actor_id: int) -> ActorRole:
    resource = booking.resource
    if resource.owner_id == actor_id and (booking.is_owner_reserved or booking.user_id != actor_id):
        if resource.kind == models.ResourceKind.coach:
            return ActorRole.provider
        return ActorRole.owner
    if booking.user_id == actor_id:
        return ActorRole.customer
    raise AccessDenied("You are not allowed to manage this booking")


def ensure_cancellable(booking: models.Booking) -> None:
    if booking.status in (models.BookingStatus.checked_in, models.BookingStatus.completed):
        raise StateConflict("Bookings that have started or completed cannot be cancelled")
    if booking.status not in models.ACTIVE_BOOKING_STATUSES:
        raise StateConflict(f"Cannot cancel a booking in status {booking.status.value}")


def _hours_left(booking: models.Booking, now: datetime | None) -> float:
    return hours_until_start(
        booking.date, booking.start_time, now or local_now(), local_timezone()
    )


def build_quote(
    booking: models.Booking, role: ActorRole, now: datetime | None = None
) -> CancellationQuote:
    return quote(
        role,
        _hours_left(booking, now),
        booking_amount=booking.booking_amount,
        platform_fee=booking.platform_fee,
        total_price=booking.total_price,
        is_paid=booking.payment_status == models.BookingPaymentStatus.paid,
    )


def get_cancellation_preview(
    db: Session, booking_id: int, role: ActorRole, now: datetime | None = None
) -> CancellationQuote:
    booking = load_booking(db, booking_id)
    return build_quote(booking, role, now)


def _revenue_credited(booking: models.Booking) -> bool:
    return (
        booking.booking_type == models.BookingType.field
        and not booking.is_owner_reserved
        and booking.confirmation_notified_at is not None
    )


def apply_cancellation(
    db: Session,
    booking: models.Booking,
    cancellation: CancellationQuote,
    *,
    reason: str | None,
    cancelled_by: str,
    release: bool = True,
) -> models.BookingEvent:
    """Cancel inside the caller's transaction: money, status and ledger together."""
    booking.status = models.BookingStatus.cancelled
    booking.cancelled_at = utc_now()
    booking.cancelled_by = cancelled_by
    booking.cancellation_reason = reason
    booking.refund_amount = cancellation.refund_amount
    booking.penalty_amount = cancellation.penalty_amount
    money_moved = False
    if cancellation.refund_amount > 0:
        wallet_service.credit_refund_balance(db, booking.user_id, cancellation.refund_amount)
        money_moved = True
        if _revenue_credited(booking):
            wallet_service.reclaim_pending(
                db,
                booking.resource.owner_id,
                min(cancellation.refund_amount, booking.booking_amount),
            )
    if booking.is_owner_reserved and booking.owner_fee_amount > 0:
        wallet_service.credit_pending(db, booking.resource.owner_id, booking.owner_fee_amount)
        money_moved = True
    if money_moved:
        booking.payment_status = models.BookingPaymentStatus.refunded
    if release:
        ledger_service.release(
            db,
            booking.resource_id,
            booking.sub_resource_id,
            booking.date,
            TimeWindow.parse(booking.start_time, booking.end_time),
        )
    db.flush()
    logger.info(
        "Booking cancelled",
        extra={
            "booking_id": booking.id,
            "role": cancellation.role.value,
            "refund_amount": cancellation.refund_amount,
            "penalty_amount": cancellation.penalty_amount,
        },
    )
    return record_event(
        db,
        BookingEventType.cancelled,
        booking,
        reason=reason,
        refund_amount=cancellation.refund_amount,
        penalty_amount=cancellation.penalty_amount,
    )


def cancel_booking(
    db: Session,
    booking_id: int,
    actor_id: int,
    reason: str | None = None,
    now: datetime | None = None,
) -> models.Booking:
    booking = load_booking(db, booking_id)
    role = resolve_role(booking, actor_id)
    with atomic(db):
        booking = load_booking(db, booking_id)
        ensure_cancellable(booking)
        cancellation = build_quote(booking, role, now)
        if cancellation.hours_until_start <= 0:
            raise StateConflict("Booking has already started and can no longer be cancelled")
        event = apply_cancellation(
            db, booking, cancellation, reason=reason, cancelled_by=str(actor_id)
        )
        event_id = event.id
    dispatch_events(db, [event_id])
    return booking


def cancel_by_system(
    db: Session,
    booking: models.Booking,
    reason: str,
    cancelled_by: str = SYSTEM_ACTOR,
    release: bool = True,
) -> models.BookingEvent:
    """Full-refund cancellation used by payment failures, rejections and holidays."""
    ensure_cancellable(booking)
    return apply_cancellation(
        db,
        booking,
        build_quote(booking, ActorRole.system),
        reason=reason,
        cancelled_by=cancelled_by,
        release=release,
    )
