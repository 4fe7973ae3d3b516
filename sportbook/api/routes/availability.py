import datetime as dt

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...api import deps
from ...core.errors import BookingError
from ...db import schemas
from ...db.session import get_db
from ...services import availability_service

router = APIRouter(prefix="/resources", tags=["availability"])


@router.get("/{resource_id}/availability", response_model=list[schemas.DayAvailability])
def get_availability(
    resource_id: int,
    start_date: dt.date,
    end_date: dt.date | None = None,
    court_id: int | None = None,
    db: Session = Depends(get_db),
):
    try:
        return availability_service.get_availability(
            db, resource_id, start_date, end_date or start_date, court_id=court_id
        )
    except BookingError as exc:
        raise deps.http_error(exc) from exc
