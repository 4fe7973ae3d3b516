import datetime as dt
from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Integer, JSON, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column
from ..session import Base


class ReservationLedger(Base):
    """Booked windows of one (resource, sub-resource, date).

    ``version`` grows on every mutation and fences concurrent writers.
    ``sub_resource_id`` is 0 for resources without courts.
    """

    __tablename__ = "reservation_ledgers"
    __table_args__ = (
        UniqueConstraint("resource_id", "sub_resource_id", "date", name="uq_ledger_resource_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    resource_id: Mapped[int] = mapped_column(ForeignKey("resources.id", ondelete="CASCADE"))
    sub_resource_id: Mapped[int] = mapped_column(Integer, default=0)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    booked_windows: Mapped[list] = mapped_column(JSON, default=list)
    is_holiday: Mapped[bool] = mapped_column(Boolean, default=False)
    holiday_reason: Mapped[str | None] = mapped_column(String(255))
    version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
