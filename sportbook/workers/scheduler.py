import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from ..core.rate_limit import SlidingWindowRateLimiter
from ..db.session import SessionLocal
from ..services import notification_service, payment_service

logger = logging.getLogger(__name__)


def expire_unpaid_bookings() -> None:
    try:
        with SessionLocal() as db:
            expired = payment_service.expire_stale_payments(db)
        if expired:
            logger.info("Expired unpaid payments", extra={"count": expired})
    except Exception:
        logger.exception("Payment expiry job failed")


def dispatch_pending_events() -> None:
    try:
        with SessionLocal() as db:
            delivered = notification_service.dispatch_events(db)
        if delivered:
            logger.info("Delivered queued booking events", extra={"count": delivered})
    except Exception:
        logger.exception("Event dispatch job failed")


def sweep_rate_limiter(limiter: SlidingWindowRateLimiter) -> None:
    removed = limiter.sweep()
    if removed:
        logger.debug("Rate limiter sweep", extra={"removed": removed})


def get_scheduler(limiter: SlidingWindowRateLimiter) -> AsyncIOScheduler:
    scheduler = AsyncIOScheduler()
    scheduler.add_job(expire_unpaid_bookings, "interval", minutes=1)
    scheduler.add_job(dispatch_pending_events, "interval", minutes=1)
    scheduler.add_job(sweep_rate_limiter, "interval", minutes=1, args=[limiter])
    return scheduler
