from __future__ import annotations

from typing import Any

from .gateway import BasePaymentGateway, PaymentEvent


class StubGateway(BasePaymentGateway):
    """Local gateway: hands out a fake checkout link and trusts webhook bodies as-is."""

    def initiate_checkout(
        self,
        order_id: str,
        amount: int,
        currency: str,
        description: str,
        return_url: str,
        metadata: dict[str, Any],
    ) -> dict[str, Any]:
        return {
            "order_id": order_id,
            "amount": amount,
            "currency": currency,
            "checkout_url": f"{self.settings.payment_checkout_base_url}/{order_id}",
            "provider_payment_id": f"stub-{order_id}",
        }

    def parse_webhook(self, data: dict[str, Any]) -> PaymentEvent:
        status = data.get("status", "succeeded")
        return PaymentEvent(
            order_id=data.get("order_id"),
            succeeded={"succeeded": True, "failed": False}.get(status),
            provider_payment_id=data.get("provider_payment_id"),
            amount=data.get("amount"),
            reason=data.get("reason"),
        )
