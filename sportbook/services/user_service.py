import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.errors import GuestEmailMissing
from ..db import models

logger = logging.getLogger(__name__)


def _normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def resolve_or_create_user(
    db: Session, email: str | None, name: str | None = None, phone: str | None = None
) -> int:
    """Return the id of the user owning ``email``, creating a guest profile if needed.

    Runs in its own short transaction, before the booking transaction opens.
    """
    email = _normalize_email(email)
    if not email:
        raise GuestEmailMissing()
    existing = db.scalar(select(models.User.id).where(models.User.email == email))
    if existing:
        return existing
    user = models.User(email=email, full_name=name, phone=phone, is_guest=True)
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # another request created the same guest first
        db.rollback()
        return db.scalar(select(models.User.id).where(models.User.email == email))
    logger.info("Guest user created", extra={"user_id": user.id})
    return user.id


def ensure_user(
    db: Session, user_id: int, email: str, name: str | None = None, phone: str | None = None
) -> models.User:
    """Re-check inside the booking transaction that the resolved user exists."""
    user = db.get(models.User, user_id)
    if user:
        return user
    user = db.scalar(select(models.User).where(models.User.email == _normalize_email(email)))
    if user:
        return user
    logger.warning("Resolved guest disappeared, recreating", extra={"user_id": user_id})
    user = models.User(email=_normalize_email(email), full_name=name, phone=phone, is_guest=True)
    db.add(user)
    db.flush()
    return user
