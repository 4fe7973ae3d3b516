import logging
import uuid
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..config import get_settings
from ..core.clock import utc_now
from ..core.constants import CHECKOUT_FAILED_REASON, PAYMENT_EXPIRED_REASON, PAYMENT_FAILED_REASON
from ..core.errors import ExternalFailure
from ..db import models
from . import payment_events
from .payments import gateway

logger = logging.getLogger(__name__)


def create_payment_record(
    db: Session, user_id: int, amount: int, method: models.PaymentMethod
) -> models.Payment:
    """Add the payment row inside the caller's booking transaction."""
    settings = get_settings()
    payment = models.Payment(
        user_id=user_id,
        amount=amount,
        currency=(settings.payment_currency or "VND").upper(),
        method=method,
        status=models.PaymentStatus.pending,
        provider=settings.payment_provider if method.is_online else None,
        order_id=str(uuid.uuid4()),
    )
    db.add(payment)
    db.flush()
    return payment


def start_checkout(db: Session, payment: models.Payment) -> str | None:
    """Ask the gateway for a checkout link once the booking is committed.

    A gateway error fails the payment, which releases the held slots.
    """
    settings = get_settings()
    try:
        gateway_client = gateway.get_gateway(settings)
        response = gateway_client.initiate_checkout(
            order_id=payment.order_id,
            amount=payment.amount,
            currency=payment.currency,
            description=f"Booking payment #{payment.order_id}",
            return_url=settings.payment_return_url,
            metadata={"payment_id": payment.id, "user_id": payment.user_id},
        )
    except Exception as exc:
        logger.exception("Checkout initiation failed", extra={"payment_id": payment.id})
        payment_events.on_payment_failed(db, payment.id, reason=CHECKOUT_FAILED_REASON)
        raise ExternalFailure("Payment provider is unavailable, please try again") from exc
    payment.checkout_url = response.get("checkout_url")
    payment.provider_payment_id = response.get("provider_payment_id")
    db.commit()
    return payment.checkout_url


def get_payment_by_order(db: Session, order_id: str) -> models.Payment | None:
    return db.scalar(select(models.Payment).where(models.Payment.order_id == order_id))


def handle_webhook(db: Session, data: dict[str, Any]) -> bool:
    """Route a gateway callback to the payment event handlers.

    Returns False for callbacks that were ignored.
    """
    settings = get_settings()
    event = gateway.get_gateway(settings).parse_webhook(data)
    if not event.order_id or event.succeeded is None:
        logger.warning("Ignoring webhook without a final payment state", extra={"order_id": event.order_id})
        return False
    payment = get_payment_by_order(db, event.order_id)
    if not payment:
        logger.warning("Webhook for unknown payment", extra={"order_id": event.order_id})
        return False
    if event.succeeded:
        payment_events.on_payment_succeeded(
            db, payment.id, provider_payment_id=event.provider_payment_id, amount=event.amount
        )
    else:
        payment_events.on_payment_failed(
            db, payment.id, reason=event.reason or PAYMENT_FAILED_REASON
        )
    return True


def expire_stale_payments(db: Session, now: datetime | None = None) -> int:
    """Fail online payments nobody completed within the expiry window."""
    settings = get_settings()
    cutoff = (now or utc_now()) - timedelta(minutes=settings.payment_expiration_minutes)
    stale_ids = list(
        db.scalars(
            select(models.Payment.id).where(
                models.Payment.status == models.PaymentStatus.pending,
                models.Payment.method.not_in(list(models.OFFLINE_PAYMENT_METHODS)),
                models.Payment.created_at < cutoff,
            )
        )
    )
    db.commit()
    for payment_id in stale_ids:
        payment_events.on_payment_failed(db, payment_id, reason=PAYMENT_EXPIRED_REASON)
    return len(stale_ids)
