import logging

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..core.errors import ValidationFailed
from ..db import models

logger = logging.getLogger(__name__)


def get_or_create_wallet(db: Session, user_id: int) -> models.Wallet:
    wallet = db.scalar(select(models.Wallet).where(models.Wallet.user_id == user_id))
    if wallet:
        return wallet
    wallet = models.Wallet(
        user_id=user_id, pending_balance=0, available_balance=0, refund_balance=0
    )
    db.add(wallet)
    db.flush()
    return wallet


def _adjust(db: Session, user_id: int, **deltas: int) -> None:
    wallet = get_or_create_wallet(db, user_id)
    db.execute(
        update(models.Wallet)
        .where(models.Wallet.id == wallet.id)
        .values({
            getattr(models.Wallet, column): getattr(models.Wallet, column) + delta
            for column, delta in deltas.items()
        })
        .execution_options(synchronize_session=False)
    )
    db.refresh(wallet)


def credit_pending(db: Session, user_id: int, amount: int) -> None:
    if amount <= 0:
        return
    _adjust(db, user_id, pending_balance=amount)
    logger.info("Pending balance credited", extra={"user_id": user_id, "amount": amount})


def credit_refund_balance(db: Session, user_id: int, amount: int) -> None:
    if amount <= 0:
        return
    _adjust(db, user_id, refund_balance=amount)
    logger.info("Refund balance credited", extra={"user_id": user_id, "amount": amount})


def debit_pending(db: Session, user_id: int, amount: int) -> None:
    if amount <= 0:
        return
    wallet = get_or_create_wallet(db, user_id)
    result = db.execute(
        update(models.Wallet)
        .where(models.Wallet.id == wallet.id, models.Wallet.pending_balance >= amount)
        .values(pending_balance=models.Wallet.pending_balance - amount)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ValidationFailed("Insufficient pending balance to cover the system fee")
    db.refresh(wallet)
    logger.info("Pending balance debited", extra={"user_id": user_id, "amount": amount})


def unlock_pending(db: Session, user_id: int, amount: int) -> int:
    """Move up to ``amount`` from pending to available; returns what moved."""
    if amount <= 0:
        return 0
    wallet = get_or_create_wallet(db, user_id)
    for _ in range(3):
        db.refresh(wallet)
        unlock = min(wallet.pending_balance, amount)
        if unlock <= 0:
            logger.warning("Nothing pending to unlock", extra={"user_id": user_id, "amount": amount})
            return 0
        if unlock < amount:
            logger.warning(
                "Pending balance lower than unlock amount",
                extra={"user_id": user_id, "pending": wallet.pending_balance, "amount": amount},
            )
        result = db.execute(
            update(models.Wallet)
            .where(models.Wallet.id == wallet.id, models.Wallet.pending_balance >= unlock)
            .values(
                pending_balance=models.Wallet.pending_balance - unlock,
                available_balance=models.Wallet.available_balance + unlock,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            db.refresh(wallet)
            logger.info("Pending balance unlocked", extra={"user_id": user_id, "amount": unlock})
            return unlock
    raise ValidationFailed("Pending balance changed while unlocking, please retry")


def reclaim_pending(db: Session, user_id: int, amount: int) -> int:
    """Take back up to ``amount`` of not yet unlocked revenue; returns what was taken."""
    if amount <= 0:
        return 0
    wallet = get_or_create_wallet(db, user_id)
    for _ in range(3):
        db.refresh(wallet)
        reclaim = min(wallet.pending_balance, amount)
        if reclaim <= 0:
            return 0
        result = db.execute(
            update(models.Wallet)
            .where(models.Wallet.id == wallet.id, models.Wallet.pending_balance >= reclaim)
            .values(pending_balance=models.Wallet.pending_balance - reclaim)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            db.refresh(wallet)
            logger.info("Pending balance reclaimed", extra={"user_id": user_id, "amount": reclaim})
            return reclaim
    raise ValidationFailed("Pending balance changed while reclaiming, please retry")
