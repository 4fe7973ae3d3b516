from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ...api import deps
from ...core.errors import BookingError
from ...db import schemas
from ...db.session import get_db
from ...services import schedule_service

router = APIRouter(prefix="/resources", tags=["resources"])


@router.post("/{resource_id}/holidays", response_model=list[schemas.Booking])
def mark_holiday(
    resource_id: int,
    payload: schemas.HolidayCreate,
    db: Session = Depends(get_db),
    user_id: int = Depends(deps.get_current_user_id),
):
    """Close the day; returns the bookings that were cancelled."""
    try:
        return schedule_service.mark_holiday(
            db,
            resource_id,
            payload.date,
            actor_id=user_id,
            reason=payload.reason,
            court_id=payload.court_id,
        )
    except BookingError as exc:
        raise deps.http_error(exc) from exc


@router.post("/{resource_id}/holidays/clear", status_code=status.HTTP_204_NO_CONTENT)
def clear_holiday(
    resource_id: int,
    payload: schemas.HolidayCreate,
    db: Session = Depends(get_db),
    user_id: int = Depends(deps.get_current_user_id),
):
    try:
        schedule_service.clear_holiday(
            db, resource_id, payload.date, actor_id=user_id, court_id=payload.court_id
        )
    except BookingError as exc:
        raise deps.http_error(exc) from exc
