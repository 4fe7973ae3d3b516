import logging
from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.errors import AccessDenied
from ..db import models
from ..db.session import atomic
from . import ledger_service
from .cancellation_service import cancel_by_system
from .notification_service import dispatch_events
from .resource_service import get_resource, select_court

logger = logging.getLogger(__name__)


def _owned_resource(db: Session, resource_id: int, actor_id: int) -> models.Resource:
    resource = get_resource(db, resource_id)
    if resource.owner_id != actor_id:
        raise AccessDenied("Only the resource owner can change its schedule")
    return resource


def _sub_resources(db: Session, resource: models.Resource, court_id: int | None) -> list[int]:
    if court_id:
        return [select_court(db, resource, court_id).id]
    courts = [court.id for court in resource.courts if court.is_active]
    return courts or [0]


def mark_holiday(
    db: Session,
    resource_id: int,
    day: date,
    *,
    actor_id: int,
    reason: str | None = None,
    court_id: int | None = None,
) -> list[models.Booking]:
    """Close a day and cancel everything booked on it with a full refund."""
    resource = _owned_resource(db, resource_id, actor_id)
    sub_ids = _sub_resources(db, resource, court_id)
    cancellation_reason = f"Holiday: {reason or 'closed'}"
    with atomic(db):
        for sub_id in sub_ids:
            ledger_service.mark_holiday(db, resource.id, sub_id, day, reason)
        bookings = list(
            db.scalars(
                select(models.Booking)
                .where(
                    models.Booking.resource_id == resource.id,
                    models.Booking.sub_resource_id.in_(sub_ids),
                    models.Booking.date == day,
                    models.Booking.status.in_(models.ACTIVE_BOOKING_STATUSES),
                )
                .order_by(models.Booking.id)
                .execution_options(populate_existing=True)
            )
        )
        event_ids = [
            cancel_by_system(
                db, booking, cancellation_reason, cancelled_by=str(actor_id), release=False
            ).id
            for booking in bookings
        ]
    logger.info(
        "Holiday marked",
        extra={"resource_id": resource.id, "date": day.isoformat(), "cancelled": len(bookings)},
    )
    dispatch_events(db, event_ids)
    return bookings


def clear_holiday(
    db: Session,
    resource_id: int,
    day: date,
    *,
    actor_id: int,
    court_id: int | None = None,
) -> None:
    resource = _owned_resource(db, resource_id, actor_id)
    sub_ids = _sub_resources(db, resource, court_id)
    with atomic(db):
        for sub_id in sub_ids:
            ledger_service.clear_holiday(db, resource.id, sub_id, day)
    logger.info("Holiday cleared", extra={"resource_id": resource.id, "date": day.isoformat()})
