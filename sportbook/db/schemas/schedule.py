import datetime as dt
from pydantic import BaseModel


class HolidayCreate(BaseModel):
    date: dt.date
    reason: str | None = None
    court_id: int | None = None
