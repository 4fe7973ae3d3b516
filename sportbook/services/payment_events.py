"""Payment-driven booking transitions.

Gateways deliver callbacks at least once and in any order. Success is applied
as conditional updates that converge no matter how often they run; only the
delivery that claims ``confirmation_notified_at`` fires side effects.
"""
import logging

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..core.clock import utc_now
from ..core.constants import PAYMENT_FAILED_REASON
from ..db import models
from ..db.models.booking_event import BookingEventType
from ..db.session import atomic
from . import wallet_service
from .cancellation_service import cancel_by_system
from .notification_service import dispatch_events, record_event

logger = logging.getLogger(__name__)


def _load_payment(db: Session, payment_id: int) -> models.Payment | None:
    return db.scalars(
        select(models.Payment)
        .where(models.Payment.id == payment_id)
        .execution_options(populate_existing=True)
    ).one_or_none()


def _load_bookings(db: Session, payment_id: int) -> list[models.Booking]:
    return list(
        db.scalars(
            select(models.Booking)
            .where(models.Booking.payment_id == payment_id)
            .order_by(models.Booking.id)
            .execution_options(populate_existing=True)
        )
    )


def on_payment_succeeded(
    db: Session,
    payment_id: int,
    provider_payment_id: str | None = None,
    amount: int | None = None,
) -> list[int]:
    """Mark the payment's bookings paid and return the ids claimed by this call."""
    with atomic(db):
        payment = _load_payment(db, payment_id)
        if not payment:
            logger.warning("Success event for unknown payment", extra={"payment_id": payment_id})
            return []
        if amount is not None and amount < payment.amount:
            # payment stays pending until a full success or expiry
            logger.warning(
                "Underpaid success ignored",
                extra={"payment_id": payment.id, "expected": payment.amount, "received": amount},
            )
            return []
        if amount is not None and amount > payment.amount:
            logger.warning(
                "Payment amount mismatch",
                extra={"payment_id": payment.id, "expected": payment.amount, "received": amount},
            )
        payment.status = models.PaymentStatus.succeeded
        payment.failure_reason = None
        if provider_payment_id:
            payment.provider_payment_id = provider_payment_id
        db.execute(
            update(models.Booking)
            .where(
                models.Booking.payment_id == payment.id,
                models.Booking.status != models.BookingStatus.cancelled,
            )
            .values(payment_status=models.BookingPaymentStatus.paid)
            .execution_options(synchronize_session=False)
        )
        # coach bookings and notes under review wait for a human decision
        db.execute(
            update(models.Booking)
            .where(
                models.Booking.payment_id == payment.id,
                models.Booking.status == models.BookingStatus.pending,
                models.Booking.booking_type != models.BookingType.coach,
                models.Booking.approval_status != models.ApprovalStatus.pending,
            )
            .values(status=models.BookingStatus.confirmed)
            .execution_options(synchronize_session=False)
        )
        claimed = list(
            db.execute(
                update(models.Booking)
                .where(
                    models.Booking.payment_id == payment.id,
                    models.Booking.status != models.BookingStatus.cancelled,
                    models.Booking.confirmation_notified_at.is_(None),
                )
                .values(confirmation_notified_at=utc_now())
                .returning(models.Booking.id)
                .execution_options(synchronize_session=False)
            ).scalars()
        )
        bookings = _load_bookings(db, payment.id)
        event_ids = []
        for booking in bookings:
            if booking.status == models.BookingStatus.cancelled:
                logger.warning(
                    "Payment succeeded for a cancelled booking, needs reconciliation",
                    extra={"booking_id": booking.id, "payment_id": payment.id},
                )
            elif booking.id in claimed and booking.status == models.BookingStatus.confirmed:
                # held bookings announce confirmation when they are accepted
                event_ids.append(record_event(db, BookingEventType.confirmed, booking).id)
    if not claimed:
        logger.info("Duplicate payment success ignored", extra={"payment_id": payment_id})
        return []
    logger.info("Payment succeeded", extra={"payment_id": payment_id, "booking_ids": claimed})
    dispatch_events(db, event_ids)
    _credit_owner_revenue(db, [booking for booking in bookings if booking.id in claimed])
    return claimed


def _credit_owner_revenue(db: Session, bookings: list[models.Booking]) -> None:
    for booking in bookings:
        # coach revenue is settled outside the wallet
        if booking.booking_type != models.BookingType.field or booking.is_owner_reserved:
            continue
        try:
            wallet_service.credit_pending(db, booking.resource.owner_id, booking.booking_amount)
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("Failed to credit owner revenue", extra={"booking_id": booking.id})


def on_payment_failed(
    db: Session, payment_id: int, reason: str = PAYMENT_FAILED_REASON
) -> list[int]:
    """Fail the payment and cancel its unpaid bookings. Never raises."""
    try:
        with atomic(db):
            payment = _load_payment(db, payment_id)
            if not payment:
                logger.warning("Failure event for unknown payment", extra={"payment_id": payment_id})
                return []
            if payment.status == models.PaymentStatus.succeeded:
                logger.warning("Failure after success ignored", extra={"payment_id": payment_id})
                return []
            payment.status = models.PaymentStatus.failed
            payment.failure_reason = reason
            cancelled, event_ids = [], []
            for booking in _load_bookings(db, payment.id):
                if (
                    booking.status != models.BookingStatus.pending
                    or booking.payment_status != models.BookingPaymentStatus.unpaid
                ):
                    continue
                event_ids.append(cancel_by_system(db, booking, reason).id)
                cancelled.append(booking.id)
        logger.info(
            "Payment failed", extra={"payment_id": payment_id, "booking_ids": cancelled, "reason": reason}
        )
        dispatch_events(db, event_ids)
        return cancelled
    except Exception:
        logger.exception("Payment failure handling failed", extra={"payment_id": payment_id})
        return []
