"""Reservation engine: single, batch and owner-reserved bookings.

Every write path runs the ledger protocol, the booking rows and the payment
row inside one transaction. Lost optimistic races are retried from scratch
a bounded number of times.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, TypeVar

from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from ..config import get_settings
from ..core.clock import local_now
from ..core.constants import MAX_WEEKLY_RECURRING_WEEKS
from ..core.errors import (
    AccessDenied,
    BatchConflict,
    GuestEmailMissing,
    HolidayClosed,
    LedgerVersionConflict,
    ReservationConflict,
    SlotUnavailable,
    TransactionTimeout,
    ValidationFailed,
)
from ..db import models
from ..db.models.booking_event import BookingEventType
from ..db.session import atomic
from . import ledger_service, payment_service, pricing, wallet_service
from .conflicts import TimeWindow, has_conflict, windows_from_ledger
from .notification_service import dispatch_events, record_event
from .resource_service import get_resource_config
from .slot_calculator import ResourceConfig, price_window, validate_window
from .user_service import ensure_user, resolve_or_create_user

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class GuestContact:
    email: str | None
    name: str | None = None
    phone: str | None = None


@dataclass(slots=True)
class _Actor:
    user_id: int
    guest: GuestContact | None = None


def parse_window(start_time: str, end_time: str) -> TimeWindow:
    try:
        return TimeWindow.parse(start_time, end_time)
    except ValueError as exc:
        raise ValidationFailed(str(exc)) from exc


def initial_status(
    method: models.PaymentMethod, has_note: bool, booking_type: models.BookingType
) -> models.BookingStatus:
    if method.is_online or has_note or booking_type == models.BookingType.coach:
        return models.BookingStatus.pending
    return models.BookingStatus.confirmed


def run_with_retries(operation: Callable[[], T], **context) -> T:
    """Re-run ``operation`` after a lost optimistic race or snapshot conflict."""
    attempts = max(get_settings().reservation_max_retries, 1)
    last_error: Exception | None = None
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except (LedgerVersionConflict, TransactionTimeout) as exc:
            last_error = exc
        except DBAPIError as exc:
            if not ledger_service.is_serialization_failure(exc):
                raise
            last_error = exc
        logger.warning(
            "Reservation attempt failed, retrying",
            extra={**context, "attempt": attempt, "error": type(last_error).__name__},
        )
    if isinstance(last_error, TransactionTimeout):
        raise last_error
    raise ReservationConflict(
        "Slot was booked by another user. Please refresh and try again."
    ) from last_error


def _resolve_actor(db: Session, actor_id: int | None, guest: GuestContact | None) -> _Actor:
    if actor_id is not None:
        return _Actor(user_id=actor_id)
    if guest is None or not guest.email:
        raise GuestEmailMissing()
    user_id = resolve_or_create_user(db, guest.email, guest.name, guest.phone)
    return _Actor(user_id=user_id, guest=guest)


def _owner_user(db: Session, actor: _Actor) -> models.User:
    if actor.guest is not None:
        return ensure_user(db, actor.user_id, actor.guest.email, actor.guest.name, actor.guest.phone)
    user = db.get(models.User, actor.user_id)
    if not user:
        raise AccessDenied("Unknown user")
    return user


def _booking_type(resource: models.Resource) -> models.BookingType:
    if resource.kind == models.ResourceKind.coach:
        return models.BookingType.coach
    return models.BookingType.field


def _snapshot(config: ResourceConfig, day: date, window: TimeWindow, amount: int) -> dict:
    return {
        "date": day.isoformat(),
        "window": str(window),
        "base_price": config.base_price,
        "slot_duration": config.slot_duration,
        "amount": amount,
    }


def create_booking(
    db: Session,
    *,
    actor_id: int | None,
    resource_id: int,
    day: date,
    start_time: str,
    end_time: str,
    payment_method: models.PaymentMethod,
    court_id: int | None = None,
    note: str | None = None,
    guest: GuestContact | None = None,
    now: datetime | None = None,
) -> models.Booking:
    window = parse_window(start_time, end_time)
    resource, sub_resource_id, config = get_resource_config(db, resource_id, court_id)
    num_slots = validate_window(config, day, window, now=now or local_now())
    amount = price_window(config, day, window)
    prices = pricing.breakdown(amount)
    actor = _resolve_actor(db, actor_id, guest)
    note = (note or "").strip() or None
    booking_type = _booking_type(resource)

    def attempt() -> tuple[models.Booking, int]:
        with atomic(db):
            user = _owner_user(db, actor)
            ledger_service.reserve(db, resource.id, sub_resource_id, day, window)
            payment = payment_service.create_payment_record(
                db, user.id, prices.total_price, payment_method
            )
            booking = models.Booking(
                user_id=user.id,
                resource_id=resource.id,
                sub_resource_id=sub_resource_id,
                booking_type=booking_type,
                date=day,
                start_time=window.to_dict()["start"],
                end_time=window.to_dict()["end"],
                num_slots=num_slots,
                status=initial_status(payment_method, bool(note), booking_type),
                payment_status=models.BookingPaymentStatus.unpaid,
                approval_status=(
                    models.ApprovalStatus.pending if note else models.ApprovalStatus.none
                ),
                note=note,
                booking_amount=prices.booking_amount,
                platform_fee=prices.platform_fee,
                total_price=prices.total_price,
                pricing_snapshot=_snapshot(config, day, window, amount),
                payment_id=payment.id,
            )
            db.add(booking)
            db.flush()
            event = record_event(db, BookingEventType.created, booking)
            return booking, event.id

    booking, event_id = run_with_retries(
        attempt, resource_id=resource.id, date=day.isoformat()
    )
    logger.info(
        "Booking created",
        extra={"booking_id": booking.id, "resource_id": resource.id, "status": booking.status.value},
    )
    dispatch_events(db, [event_id])
    if payment_method.is_online:
        payment_service.start_checkout(db, booking.payment)
    return booking


def consecutive_dates(start: date, end: date) -> list[date]:
    if end < start:
        raise ValidationFailed("End date must not be before start date")
    days = (end - start).days + 1
    if days > get_settings().batch_max_days:
        raise ValidationFailed(f"Cannot book more than {get_settings().batch_max_days} days at once")
    return [start + timedelta(days=offset) for offset in range(days)]


def weekly_dates(start: date, weekdays: list[int], weeks: int) -> list[date]:
    """Dates on the given weekdays (0 = Monday) for ``weeks`` weeks from ``start``."""
    if not 1 <= weeks <= MAX_WEEKLY_RECURRING_WEEKS:
        raise ValidationFailed(f"Weeks must be between 1 and {MAX_WEEKLY_RECURRING_WEEKS}")
    selected = sorted(set(weekdays))
    if not selected or any(not 0 <= day <= 6 for day in selected):
        raise ValidationFailed("Choose at least one weekday between 0 and 6")
    end = start + timedelta(weeks=weeks) - timedelta(days=1)
    return [
        start + timedelta(days=offset)
        for offset in range((end - start).days + 1)
        if (start + timedelta(days=offset)).weekday() in selected
    ]


def find_batch_conflicts(
    db: Session, resource_id: int, sub_resource_id: int, dates: list[date], window: TimeWindow
) -> list[dict]:
    entries = ledger_service.get_entries(db, resource_id, sub_resource_id, min(dates), max(dates))
    conflicts = []
    for day in dates:
        entry = entries.get(day)
        if entry is None:
            continue
        if entry.is_holiday:
            conflicts.append({"date": day.isoformat(), "reason": f"holiday: {entry.holiday_reason or 'closed'}"})
        elif has_conflict(window, windows_from_ledger(entry.booked_windows)):
            conflicts.append({"date": day.isoformat(), "reason": "slot already booked"})
    return conflicts


def create_batch_booking(
    db: Session,
    *,
    actor_id: int | None,
    resource_id: int,
    dates: list[date],
    start_time: str,
    end_time: str,
    payment_method: models.PaymentMethod,
    court_id: int | None = None,
    note: str | None = None,
    guest: GuestContact | None = None,
    now: datetime | None = None,
) -> list[models.Booking]:
    """Book the same window on every date, or nothing at all."""
    if not dates:
        raise ValidationFailed("No dates to book")
    window = parse_window(start_time, end_time)
    resource, sub_resource_id, config = get_resource_config(db, resource_id, court_id)
    now = now or local_now()
    invalid = []
    day_prices = []
    num_slots = 0
    for day in dates:
        try:
            num_slots = validate_window(config, day, window, now=now)
        except ValidationFailed as exc:
            invalid.append({"date": day.isoformat(), "reason": str(exc)})
            continue
        day_prices.append(price_window(config, day, window))
    if invalid:
        raise ValidationFailed(
            "Some dates are not bookable: "
            + "; ".join(f"{item['date']} ({item['reason']})" for item in invalid)
        )
    conflicts = find_batch_conflicts(db, resource.id, sub_resource_id, dates, window)
    if conflicts:
        raise BatchConflict(conflicts)
    discounts = pricing.bulk_discounts(day_prices)
    per_day = [pricing.breakdown(price, discount) for price, discount in zip(day_prices, discounts)]
    total = sum(item.total_price for item in per_day)
    actor = _resolve_actor(db, actor_id, guest)
    note = (note or "").strip() or None
    booking_type = _booking_type(resource)
    group_id = str(uuid.uuid4())

    def attempt() -> tuple[list[models.Booking], list[int]]:
        with atomic(db):
            user = _owner_user(db, actor)
            payment = payment_service.create_payment_record(db, user.id, total, payment_method)
            bookings, event_ids = [], []
            for day, price, item in zip(dates, day_prices, per_day):
                try:
                    ledger_service.reserve(db, resource.id, sub_resource_id, day, window)
                except (HolidayClosed, SlotUnavailable) as exc:
                    raise BatchConflict([{"date": day.isoformat(), "reason": str(exc)}]) from exc
                booking = models.Booking(
                    user_id=user.id,
                    resource_id=resource.id,
                    sub_resource_id=sub_resource_id,
                    booking_type=booking_type,
                    date=day,
                    start_time=window.to_dict()["start"],
                    end_time=window.to_dict()["end"],
                    num_slots=num_slots,
                    status=initial_status(payment_method, bool(note), booking_type),
                    payment_status=models.BookingPaymentStatus.unpaid,
                    approval_status=(
                        models.ApprovalStatus.pending if note else models.ApprovalStatus.none
                    ),
                    note=note,
                    booking_amount=item.booking_amount,
                    platform_fee=item.platform_fee,
                    total_price=item.total_price,
                    discount_amount=item.discount_amount,
                    pricing_snapshot=_snapshot(config, day, window, price),
                    payment_id=payment.id,
                    recurring_group_id=group_id,
                )
                db.add(booking)
                db.flush()
                bookings.append(booking)
                event_ids.append(record_event(db, BookingEventType.created, booking).id)
            return bookings, event_ids

    bookings, event_ids = run_with_retries(
        attempt, resource_id=resource.id, recurring_group_id=group_id
    )
    logger.info(
        "Batch booking created",
        extra={"recurring_group_id": group_id, "resource_id": resource.id, "days": len(bookings)},
    )
    dispatch_events(db, event_ids)
    if payment_method.is_online:
        payment_service.start_checkout(db, bookings[0].payment)
    return bookings


def create_consecutive_booking(
    db: Session, *, start_date: date, end_date: date, **kwargs
) -> list[models.Booking]:
    return create_batch_booking(db, dates=consecutive_dates(start_date, end_date), **kwargs)


def create_weekly_booking(
    db: Session, *, start_date: date, weekdays: list[int], weeks: int, **kwargs
) -> list[models.Booking]:
    return create_batch_booking(db, dates=weekly_dates(start_date, weekdays, weeks), **kwargs)


def create_owner_reserved_booking(
    db: Session,
    *,
    owner_id: int,
    resource_id: int,
    day: date,
    start_time: str,
    end_time: str,
    court_id: int | None = None,
    note: str | None = None,
    now: datetime | None = None,
) -> models.Booking:
    """Owner blocks their own slot; the system fee comes out of their pending balance."""
    window = parse_window(start_time, end_time)
    resource, sub_resource_id, config = get_resource_config(db, resource_id, court_id)
    if resource.owner_id != owner_id:
        raise AccessDenied("Only the resource owner can reserve their own slots")
    num_slots = validate_window(config, day, window, now=now or local_now())
    amount = price_window(config, day, window)
    system_fee = pricing.platform_fee(amount)

    def attempt() -> tuple[models.Booking, int]:
        with atomic(db):
            ledger_service.reserve(db, resource.id, sub_resource_id, day, window)
            wallet_service.debit_pending(db, owner_id, system_fee)
            payment = payment_service.create_payment_record(
                db, owner_id, 0, models.PaymentMethod.cash
            )
            payment.status = models.PaymentStatus.succeeded
            booking = models.Booking(
                user_id=owner_id,
                resource_id=resource.id,
                sub_resource_id=sub_resource_id,
                booking_type=_booking_type(resource),
                date=day,
                start_time=window.to_dict()["start"],
                end_time=window.to_dict()["end"],
                num_slots=num_slots,
                status=models.BookingStatus.confirmed,
                payment_status=models.BookingPaymentStatus.paid,
                approval_status=models.ApprovalStatus.none,
                note=(note or "").strip() or None,
                booking_amount=0,
                platform_fee=0,
                total_price=0,
                pricing_snapshot=_snapshot(config, day, window, amount),
                payment_id=payment.id,
                is_owner_reserved=True,
                owner_fee_amount=system_fee,
            )
            db.add(booking)
            db.flush()
            event = record_event(db, BookingEventType.created, booking, system_fee=system_fee)
            return booking, event.id

    booking, event_id = run_with_retries(
        attempt, resource_id=resource.id, date=day.isoformat()
    )
    logger.info(
        "Owner reserved slot",
        extra={"booking_id": booking.id, "resource_id": resource.id, "system_fee": system_fee},
    )
    dispatch_events(db, [event_id])
    return booking
