import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...db import schemas
from ...db.session import get_db
from ...services import payment_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/webhook", response_model=schemas.PaymentWebhookResult)
def payments_webhook(payload: dict, db: Session = Depends(get_db)):
    try:
        processed = payment_service.handle_webhook(db, payload)
    except Exception:
        db.rollback()
        logger.exception("Payment webhook processing failed")
        processed = False
    return {"received": True, "processed": processed}
