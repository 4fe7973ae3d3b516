"""Common application-wide constants."""

# Rules are evaluated by descending threshold; the first one whose threshold
# is <= hours until start applies.
DEFAULT_CANCELLATION_RULES = (
    # (hours_threshold, customer_refund_pct, owner_penalty_pct, provider_penalty_pct)
    (24, 100, 0, 0),
    (6, 50, 10, 10),
    (0, 0, 100, 100),
)

# (first booked-day ordinal of the tier, discount percent)
DEFAULT_BULK_DISCOUNT_TIERS = (
    (1, 0),
    (4, 5),
    (8, 10),
)

MAX_WEEKLY_RECURRING_WEEKS = 12

# Metadata for system-driven booking cancellations
PAYMENT_FAILED_REASON = "payment failed"
PAYMENT_EXPIRED_REASON = "payment expired"
CHECKOUT_FAILED_REASON = "checkout failed"
SYSTEM_ACTOR = "system"

NO_SUB_RESOURCE = 0


__all__ = [
    "DEFAULT_CANCELLATION_RULES",
    "DEFAULT_BULK_DISCOUNT_TIERS",
    "MAX_WEEKLY_RECURRING_WEEKS",
    "PAYMENT_FAILED_REASON",
    "PAYMENT_EXPIRED_REASON",
    "CHECKOUT_FAILED_REASON",
    "SYSTEM_ACTOR",
    "NO_SUB_RESOURCE",
]
