from . import (
    slot_calculator,
    ledger_service,
    availability_service,
    booking_service,
    cancellation_service,
    payment_events,
    payment_service,
    schedule_service,
    status_service,
    notification_service,
)

__all__ = [
    "slot_calculator",
    "ledger_service",
    "availability_service",
    "booking_service",
    "cancellation_service",
    "payment_events",
    "payment_service",
    "schedule_service",
    "status_service",
    "notification_service",
]
