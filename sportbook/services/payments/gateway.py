from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any
from ...config import Settings


@dataclass(slots=True)
class PaymentEvent:
    """Gateway callback normalized to what the booking side needs."""

    order_id: str | None
    succeeded: bool | None
    provider_payment_id: str | None = None
    amount: int | None = None
    reason: str | None = None


class BasePaymentGateway(ABC):
    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    @abstractmethod
    def initiate_checkout(
        self,
        order_id: str,
        amount: int,
        currency: str,
        description: str,
        return_url: str,
        metadata: dict[str, Any],
    ) -> dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    def parse_webhook(self, data: dict[str, Any]) -> PaymentEvent:
        raise NotImplementedError


def get_gateway(settings: Settings) -> BasePaymentGateway:
    if settings.payment_provider == "stub":
        from .stub import StubGateway

        return StubGateway(settings)
    if settings.payment_provider == "hosted":
        from .hosted import HostedCheckoutGateway

        return HostedCheckoutGateway(settings)
    raise ValueError(f"Unsupported payment provider {settings.payment_provider}")
