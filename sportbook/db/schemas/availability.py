import datetime as dt
from pydantic import BaseModel


class SlotAvailability(BaseModel):
    start: str
    end: str
    price: int
    available: bool


class DayAvailability(BaseModel):
    date: dt.date
    is_holiday: bool
    holiday_reason: str | None = None
    sub_resource_id: int
    slots: list[SlotAvailability]
