from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...api import deps
from ...core.errors import BookingError, ValidationFailed
from ...db import models, schemas
from ...db.session import get_db
from ...services import booking_service, cancellation_service, status_service
from ...services.cancellation_policy import ActorRole

router = APIRouter(prefix="/bookings", tags=["bookings"])


def _payment_method(value: str) -> models.PaymentMethod:
    try:
        return models.PaymentMethod(value)
    except ValueError as exc:
        raise ValidationFailed(f"Unsupported payment method {value}") from exc


def _guest(payload: schemas.BookingCreate) -> booking_service.GuestContact | None:
    if payload.guest is None:
        return None
    return booking_service.GuestContact(
        email=payload.guest.email, name=payload.guest.name, phone=payload.guest.phone
    )


def _common(payload, user_id: int | None) -> dict:
    return {
        "actor_id": user_id,
        "resource_id": payload.resource_id,
        "court_id": payload.court_id,
        "start_time": payload.start_time,
        "end_time": payload.end_time,
        "payment_method": _payment_method(payload.payment_method),
        "note": payload.note,
        "guest": _guest(payload) if user_id is None else None,
    }


@router.post("", response_model=schemas.Booking, dependencies=[Depends(deps.enforce_booking_rate_limit)])
def create_booking(
    payload: schemas.BookingCreate,
    db: Session = Depends(get_db),
    user_id: int | None = Depends(deps.get_optional_user_id),
):
    try:
        return booking_service.create_booking(db, day=payload.date, **_common(payload, user_id))
    except BookingError as exc:
        raise deps.http_error(exc) from exc


@router.post(
    "/consecutive",
    response_model=list[schemas.Booking],
    dependencies=[Depends(deps.enforce_booking_rate_limit)],
)
def create_consecutive_booking(
    payload: schemas.ConsecutiveBookingCreate,
    db: Session = Depends(get_db),
    user_id: int | None = Depends(deps.get_optional_user_id),
):
    try:
        return booking_service.create_consecutive_booking(
            db,
            start_date=payload.start_date,
            end_date=payload.end_date,
            **_common(payload, user_id),
        )
    except BookingError as exc:
        raise deps.http_error(exc) from exc


@router.post(
    "/weekly",
    response_model=list[schemas.Booking],
    dependencies=[Depends(deps.enforce_booking_rate_limit)],
)
def create_weekly_booking(
    payload: schemas.WeeklyBookingCreate,
    db: Session = Depends(get_db),
    user_id: int | None = Depends(deps.get_optional_user_id),
):
    try:
        return booking_service.create_weekly_booking(
            db,
            start_date=payload.start_date,
            weekdays=payload.weekdays,
            weeks=payload.weeks,
            **_common(payload, user_id),
        )
    except BookingError as exc:
        raise deps.http_error(exc) from exc


@router.post("/owner-reserved", response_model=schemas.Booking)
def create_owner_reserved_booking(
    payload: schemas.OwnerReservedBookingCreate,
    db: Session = Depends(get_db),
    user_id: int = Depends(deps.get_current_user_id),
):
    try:
        return booking_service.create_owner_reserved_booking(
            db,
            owner_id=user_id,
            resource_id=payload.resource_id,
            court_id=payload.court_id,
            day=payload.date,
            start_time=payload.start_time,
            end_time=payload.end_time,
            note=payload.note,
        )
    except BookingError as exc:
        raise deps.http_error(exc) from exc


@router.get("/{booking_id}/cancellation-preview", response_model=schemas.CancellationPreview)
def cancellation_preview(
    booking_id: int,
    role: ActorRole | None = None,
    db: Session = Depends(get_db),
    user_id: int = Depends(deps.get_current_user_id),
):
    try:
        booking = cancellation_service.load_booking(db, booking_id)
        actual_role = cancellation_service.resolve_role(booking, user_id)
        if role is not None and role != actual_role:
            raise ValidationFailed(f"You cannot preview as {role.value}")
        preview = cancellation_service.build_quote(booking, actual_role)
    except BookingError as exc:
        raise deps.http_error(exc) from exc
    return {
        "role": preview.role.value,
        "hours_until_start": round(preview.hours_until_start, 2),
        "percentage": preview.percentage,
        "refund_amount": preview.refund_amount,
        "penalty_amount": preview.penalty_amount,
    }


@router.post("/{booking_id}/cancel", response_model=schemas.Booking)
def cancel_booking(
    booking_id: int,
    payload: schemas.BookingCancel,
    db: Session = Depends(get_db),
    user_id: int = Depends(deps.get_current_user_id),
):
    try:
        return cancellation_service.cancel_booking(db, booking_id, user_id, reason=payload.reason)
    except BookingError as exc:
        raise deps.http_error(exc) from exc


@router.post("/{booking_id}/accept", response_model=schemas.Booking)
def accept_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(deps.get_current_user_id),
):
    try:
        return status_service.accept_booking(db, booking_id, user_id)
    except BookingError as exc:
        raise deps.http_error(exc) from exc


@router.post("/{booking_id}/reject", response_model=schemas.Booking)
def reject_booking(
    booking_id: int,
    payload: schemas.BookingCancel,
    db: Session = Depends(get_db),
    user_id: int = Depends(deps.get_current_user_id),
):
    try:
        return status_service.reject_booking(db, booking_id, user_id, reason=payload.reason)
    except BookingError as exc:
        raise deps.http_error(exc) from exc


@router.post("/{booking_id}/check-in", response_model=schemas.Booking)
def check_in(
    booking_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(deps.get_current_user_id),
):
    try:
        return status_service.check_in(db, booking_id, user_id)
    except BookingError as exc:
        raise deps.http_error(exc) from exc


@router.post("/{booking_id}/complete", response_model=schemas.Booking)
def complete_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(deps.get_current_user_id),
):
    try:
        return status_service.complete(db, booking_id, user_id)
    except BookingError as exc:
        raise deps.http_error(exc) from exc
