from pydantic import BaseModel


class PaymentWebhookResult(BaseModel):
    received: bool = True
    processed: bool
