"""Versioned per-day reservation ledger.

Every mutation bumps ``version``. Appends and releases are conditional on the
version read earlier in the same transaction; a lost race shows up as an
update that matched no rows.
"""
import logging
from datetime import date

from sqlalchemy import func, select, update
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from ..core.errors import HolidayClosed, LedgerVersionConflict, SlotUnavailable
from ..db import models
from .conflicts import TimeWindow, has_conflict, windows_from_ledger

logger = logging.getLogger(__name__)

SERIALIZATION_FAILURE_CODES = {"40001", "40P01"}
RELEASE_ATTEMPTS = 3


def _dialect_insert(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise RuntimeError(f"Unsupported database dialect {dialect}")
    return insert


def is_serialization_failure(exc: DBAPIError) -> bool:
    return getattr(exc.orig, "pgcode", None) in SERIALIZATION_FAILURE_CODES


def upsert_entry(
    db: Session,
    resource_id: int,
    sub_resource_id: int,
    day: date,
    **changes,
) -> models.ReservationLedger:
    """Find-or-create the ledger entry and bump its version in one statement."""
    insert = _dialect_insert(db)
    values = {
        "resource_id": resource_id,
        "sub_resource_id": sub_resource_id,
        "date": day,
        "booked_windows": [],
        "is_holiday": False,
        "version": 1,
    }
    values.update(changes)
    stmt = (
        insert(models.ReservationLedger)
        .values(**values)
        .on_conflict_do_update(
            index_elements=["resource_id", "sub_resource_id", "date"],
            set_={
                **changes,
                "version": models.ReservationLedger.version + 1,
                "updated_at": func.now(),
            },
        )
        .returning(models.ReservationLedger)
    )
    return db.scalars(stmt, execution_options={"populate_existing": True}).one()


def get_entry(
    db: Session, resource_id: int, sub_resource_id: int, day: date
) -> models.ReservationLedger | None:
    return db.scalars(
        select(models.ReservationLedger)
        .where(
            models.ReservationLedger.resource_id == resource_id,
            models.ReservationLedger.sub_resource_id == sub_resource_id,
            models.ReservationLedger.date == day,
        )
        .execution_options(populate_existing=True)
    ).one_or_none()


def get_entries(
    db: Session, resource_id: int, sub_resource_id: int, start: date, end: date
) -> dict[date, models.ReservationLedger]:
    rows = db.scalars(
        select(models.ReservationLedger)
        .where(
            models.ReservationLedger.resource_id == resource_id,
            models.ReservationLedger.sub_resource_id == sub_resource_id,
            models.ReservationLedger.date >= start,
            models.ReservationLedger.date <= end,
        )
        .execution_options(populate_existing=True)
    )
    return {row.date: row for row in rows}


def _write_windows(
    db: Session, entry_id: int, expected_version: int, windows: list[dict]
) -> bool:
    result = db.execute(
        update(models.ReservationLedger)
        .where(
            models.ReservationLedger.id == entry_id,
            models.ReservationLedger.version == expected_version,
        )
        .values(
            booked_windows=windows,
            version=models.ReservationLedger.version + 1,
            updated_at=func.now(),
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def append_window(
    db: Session,
    entry_id: int,
    expected_version: int,
    booked_windows: list[dict],
    window: TimeWindow,
) -> bool:
    windows = sorted([*booked_windows, window.to_dict()], key=lambda item: item["start"])
    return _write_windows(db, entry_id, expected_version, windows)


def reserve(
    db: Session,
    resource_id: int,
    sub_resource_id: int,
    day: date,
    window: TimeWindow,
) -> int:
    """Hold ``window`` on the ledger and return the resulting version.

    Must run inside the caller's transaction.
    """
    entry = upsert_entry(db, resource_id, sub_resource_id, day)
    if entry.is_holiday:
        raise HolidayClosed(entry.holiday_reason)
    if has_conflict(window, windows_from_ledger(entry.booked_windows)):
        raise SlotUnavailable()
    if not append_window(db, entry.id, entry.version, entry.booked_windows or [], window):
        logger.warning(
            "Ledger version moved during reservation",
            extra={"resource_id": resource_id, "date": day.isoformat(), "version": entry.version},
        )
        raise LedgerVersionConflict()
    return entry.version + 1


def release(
    db: Session,
    resource_id: int,
    sub_resource_id: int,
    day: date,
    window: TimeWindow,
) -> bool:
    """Remove ``window`` from the ledger. Returns False if it was not held."""
    target = window.to_dict()
    for _ in range(RELEASE_ATTEMPTS):
        entry = get_entry(db, resource_id, sub_resource_id, day)
        if entry is None or target not in (entry.booked_windows or []):
            return False
        remaining = [item for item in entry.booked_windows if item != target]
        if _write_windows(db, entry.id, entry.version, remaining):
            return True
    raise LedgerVersionConflict()


def mark_holiday(
    db: Session, resource_id: int, sub_resource_id: int, day: date, reason: str | None
) -> models.ReservationLedger:
    return upsert_entry(
        db,
        resource_id,
        sub_resource_id,
        day,
        is_holiday=True,
        holiday_reason=reason,
        booked_windows=[],
    )


def clear_holiday(
    db: Session, resource_id: int, sub_resource_id: int, day: date
) -> models.ReservationLedger:
    return upsert_entry(
        db, resource_id, sub_resource_id, day, is_holiday=False, holiday_reason=None
    )
