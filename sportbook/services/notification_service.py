from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable

import httpx
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..config import get_settings
from ..db import models
from ..db.models.booking_event import BookingEventType

logger = logging.getLogger(__name__)


def booking_payload(booking: models.Booking) -> dict:
    return {
        "booking_id": booking.id,
        "user_id": booking.user_id,
        "resource_id": booking.resource_id,
        "sub_resource_id": booking.sub_resource_id,
        "date": booking.date.isoformat(),
        "start_time": booking.start_time,
        "end_time": booking.end_time,
        "status": booking.status.value,
        "payment_status": booking.payment_status.value,
        "total_price": booking.total_price,
    }


def record_event(
    db: Session,
    event_type: BookingEventType,
    booking: models.Booking,
    **extra,
) -> models.BookingEvent:
    """Queue an event in the caller's transaction."""
    payload = booking_payload(booking)
    payload.update(extra)
    event = models.BookingEvent(
        event_type=event_type.value, booking_id=booking.id, payload=payload, attempts=0
    )
    db.add(event)
    db.flush()
    return event


def send_event(event: models.BookingEvent) -> bool:
    settings = get_settings()
    if not settings.notification_webhook_url:
        logger.debug("Notification webhook is not configured; event stays queued")
        return False
    try:
        with httpx.Client(timeout=10) as client:
            response = client.post(
                settings.notification_webhook_url,
                json={"id": event.id, "type": event.event_type, "data": event.payload},
            )
            response.raise_for_status()
    except httpx.HTTPError:
        logger.exception("Failed to deliver booking event", extra={"event_id": event.id})
        return False
    return True


def dispatch_events(db: Session, event_ids: Iterable[int] | None = None) -> int:
    """Deliver queued events and return how many went out.

    Best effort: failures stay queued for the scheduler.
    """
    query = select(models.BookingEvent).where(models.BookingEvent.dispatched_at.is_(None))
    if event_ids is not None:
        ids = list(event_ids)
        if not ids:
            return 0
        query = query.where(models.BookingEvent.id.in_(ids))
    delivered = 0
    try:
        for event in db.scalars(query.order_by(models.BookingEvent.id)).all():
            event.attempts = (event.attempts or 0) + 1
            if send_event(event):
                event.dispatched_at = datetime.now(timezone.utc)
                delivered += 1
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Event dispatch failed")
    return delivered
