from .gateway import BasePaymentGateway, PaymentEvent, get_gateway
from .stub import StubGateway
from .hosted import HostedCheckoutGateway

__all__ = [
    "BasePaymentGateway",
    "PaymentEvent",
    "get_gateway",
    "StubGateway",
    "HostedCheckoutGateway",
]
