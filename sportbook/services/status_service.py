import logging

from sqlalchemy.orm import Session

from ..core.errors import AccessDenied, StateConflict
from ..db import models
from ..db.models.booking_event import BookingEventType
from ..db.session import atomic
from . import wallet_service
from .cancellation_service import cancel_by_system, load_booking
from .notification_service import dispatch_events, record_event

logger = logging.getLogger(__name__)


def _ensure_manager(booking: models.Booking, actor_id: int) -> None:
    if booking.resource.owner_id != actor_id:
        raise AccessDenied("Only the resource owner can manage this booking")


def accept_booking(db: Session, booking_id: int, actor_id: int) -> models.Booking:
    """Approve a note under review or a coach booking waiting for the coach."""
    with atomic(db):
        booking = load_booking(db, booking_id)
        _ensure_manager(booking, actor_id)
        if booking.status != models.BookingStatus.pending:
            raise StateConflict("Only pending bookings can be accepted")
        if booking.approval_status == models.ApprovalStatus.pending:
            booking.approval_status = models.ApprovalStatus.approved
        paid = booking.payment_status == models.BookingPaymentStatus.paid
        unpaid_cash = (
            booking.payment_status == models.BookingPaymentStatus.unpaid
            and booking.payment is not None
            and not booking.payment.method.is_online
        )
        event_ids = []
        if paid or unpaid_cash:
            booking.status = models.BookingStatus.confirmed
            db.flush()
            event_ids.append(record_event(db, BookingEventType.confirmed, booking).id)
    logger.info("Booking accepted", extra={"booking_id": booking.id, "status": booking.status.value})
    dispatch_events(db, event_ids)
    return booking


def reject_booking(
    db: Session, booking_id: int, actor_id: int, reason: str | None = None
) -> models.Booking:
    with atomic(db):
        booking = load_booking(db, booking_id)
        _ensure_manager(booking, actor_id)
        if booking.status != models.BookingStatus.pending:
            raise StateConflict("Only pending bookings can be rejected")
        if booking.approval_status == models.ApprovalStatus.pending:
            booking.approval_status = models.ApprovalStatus.rejected
        event_id = cancel_by_system(
            db, booking, reason or "Rejected by owner", cancelled_by=str(actor_id)
        ).id
    dispatch_events(db, [event_id])
    return booking


def _transition(
    db: Session,
    booking_id: int,
    actor_id: int,
    source: models.BookingStatus,
    target: models.BookingStatus,
) -> models.Booking:
    with atomic(db):
        booking = load_booking(db, booking_id)
        _ensure_manager(booking, actor_id)
        if booking.status != source:
            raise StateConflict(
                f"Cannot move booking from {booking.status.value} to {target.value}"
            )
        booking.status = target
    logger.info("Booking status changed", extra={"booking_id": booking.id, "status": target.value})
    return booking


def _unlock_owner_revenue(db: Session, booking: models.Booking) -> None:
    if (
        booking.booking_type != models.BookingType.field
        or booking.is_owner_reserved
        or booking.payment_status != models.BookingPaymentStatus.paid
    ):
        return
    try:
        wallet_service.unlock_pending(db, booking.resource.owner_id, booking.booking_amount)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Failed to unlock owner revenue", extra={"booking_id": booking.id})


def check_in(db: Session, booking_id: int, actor_id: int) -> models.Booking:
    booking = _transition(
        db, booking_id, actor_id, models.BookingStatus.confirmed, models.BookingStatus.checked_in
    )
    _unlock_owner_revenue(db, booking)
    return booking


def complete(db: Session, booking_id: int, actor_id: int) -> models.Booking:
    return _transition(
        db, booking_id, actor_id, models.BookingStatus.checked_in, models.BookingStatus.completed
    )
