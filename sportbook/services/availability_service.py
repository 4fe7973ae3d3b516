from datetime import date, datetime, timedelta

from sqlalchemy.orm import Session

from ..config import get_settings
from ..core.clock import local_now
from ..core.errors import ValidationFailed
from .conflicts import format_time, has_conflict, windows_from_ledger
from .ledger_service import get_entries
from .resource_service import get_resource_config
from .slot_calculator import generate_slots


def get_availability(
    db: Session,
    resource_id: int,
    start_date: date,
    end_date: date,
    court_id: int | None = None,
    now: datetime | None = None,
) -> list[dict]:
    if end_date < start_date:
        raise ValidationFailed("End date must not be before start date")
    max_days = get_settings().availability_max_days
    if (end_date - start_date).days + 1 > max_days:
        raise ValidationFailed(f"Availability can be requested for at most {max_days} days")
    resource, sub_resource_id, config = get_resource_config(db, resource_id, court_id)
    entries = get_entries(db, resource.id, sub_resource_id, start_date, end_date)
    now = now or local_now()
    current_minute = now.hour * 60 + now.minute
    days = []
    day = start_date
    while day <= end_date:
        entry = entries.get(day)
        is_holiday = bool(entry and entry.is_holiday)
        booked = windows_from_ledger(entry.booked_windows) if entry else []
        slots = []
        for slot in generate_slots(config, day):
            past = day < now.date() or (day == now.date() and slot.start < current_minute)
            slots.append({
                "start": format_time(slot.start),
                "end": format_time(slot.end),
                "price": slot.price,
                "available": not (is_holiday or past or has_conflict(slot.window, booked)),
            })
        days.append({
            "date": day,
            "is_holiday": is_holiday,
            "holiday_reason": entry.holiday_reason if is_holiday else None,
            "sub_resource_id": sub_resource_id,
            "slots": slots,
        })
        day += timedelta(days=1)
    return days
