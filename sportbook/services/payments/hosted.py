import logging
from typing import Any

import httpx

from .gateway import BasePaymentGateway, PaymentEvent

logger = logging.getLogger(__name__)

SUCCESS_STATUSES = {"PAID", "SUCCEEDED"}
FAILURE_STATUSES = {"CANCELLED", "FAILED", "EXPIRED"}


class HostedCheckoutGateway(BasePaymentGateway):
    """Gateway exposing a hosted checkout page behind a JSON API."""

    def initiate_checkout(
        self,
        order_id: str,
        amount: int,
        currency: str,
        description: str,
        return_url: str,
        metadata: dict[str, Any],
    ) -> dict[str, Any]:
        logger.info("Creating hosted checkout", extra={"order_id": order_id, "amount": amount})
        with httpx.Client(timeout=10) as client:
            response = client.post(
                self.settings.payment_checkout_base_url,
                json={
                    "orderCode": order_id,
                    "amount": amount,
                    "currency": currency,
                    "description": description,
                    "returnUrl": return_url,
                    "metadata": metadata,
                },
            )
            response.raise_for_status()
            body = response.json().get("data") or {}
        return {
            "order_id": order_id,
            "checkout_url": body.get("checkoutUrl"),
            "provider_payment_id": body.get("paymentLinkId"),
        }

    def parse_webhook(self, data: dict[str, Any]) -> PaymentEvent:
        body = data.get("data") or {}
        status = str(body.get("status", "")).upper()
        succeeded = None
        if status in SUCCESS_STATUSES:
            succeeded = True
        elif status in FAILURE_STATUSES:
            succeeded = False
        return PaymentEvent(
            order_id=body.get("orderCode"),
            succeeded=succeeded,
            provider_payment_id=body.get("paymentLinkId"),
            amount=body.get("amount"),
            reason=body.get("desc"),
        )
