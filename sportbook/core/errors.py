"""Error taxonomy shared by services and the HTTP layer."""


class BookingError(Exception):
    pass


class ValidationFailed(BookingError):
    pass


class GuestEmailMissing(ValidationFailed):
    def __init__(self) -> None:
        super().__init__("Email is required to book without an account")


class AccessDenied(BookingError):
    pass


class NotFound(BookingError):
    pass


class ResourceInactive(NotFound):
    pass


class ReservationConflict(BookingError):
    pass


class SlotUnavailable(ReservationConflict):
    def __init__(self, message: str = "Selected time slots are no longer available, please refresh") -> None:
        super().__init__(message)


class LedgerVersionConflict(ReservationConflict):
    """Another writer changed the ledger between read and conditional write."""

    def __init__(self) -> None:
        super().__init__("Slot was booked by another user. Please refresh and try again.")


class BatchConflict(ReservationConflict):
    def __init__(self, conflicts: list[dict]) -> None:
        self.conflicts = conflicts
        dates = ", ".join(str(item["date"]) for item in conflicts)
        super().__init__(f"Some dates are not available: {dates}")


class HolidayClosed(BookingError):
    def __init__(self, reason: str | None) -> None:
        self.reason = reason
        super().__init__(f"Cannot book on holiday: {reason or 'closed'}")


class StateConflict(BookingError):
    pass


class ExternalFailure(BookingError):
    pass


class TransactionTimeout(ExternalFailure):
    def __init__(self, elapsed: float) -> None:
        self.elapsed = elapsed
        super().__init__("Booking could not be completed in time, please try again")


__all__ = [
    "BookingError",
    "ValidationFailed",
    "GuestEmailMissing",
    "AccessDenied",
    "NotFound",
    "ResourceInactive",
    "ReservationConflict",
    "SlotUnavailable",
    "LedgerVersionConflict",
    "BatchConflict",
    "HolidayClosed",
    "StateConflict",
    "ExternalFailure",
    "TransactionTimeout",
]
