from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from ..config import get_settings
from ..core.constants import DEFAULT_BULK_DISCOUNT_TIERS


def _round(value: Decimal) -> int:
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def platform_fee(amount: int, percent: int | None = None) -> int:
    if percent is None:
        percent = get_settings().platform_fee_percent
    return _round(Decimal(amount) * Decimal(percent) / 100)


@dataclass(frozen=True, slots=True)
class PriceBreakdown:
    booking_amount: int
    platform_fee: int
    total_price: int
    discount_amount: int = 0


def breakdown(amount: int, discount: int = 0) -> PriceBreakdown:
    booking_amount = amount - discount
    fee = platform_fee(booking_amount)
    return PriceBreakdown(
        booking_amount=booking_amount,
        platform_fee=fee,
        total_price=booking_amount + fee,
        discount_amount=discount,
    )


def tier_percent(ordinal: int, tiers=DEFAULT_BULK_DISCOUNT_TIERS) -> int:
    percent = 0
    for first_day, tier_discount in sorted(tiers):
        if ordinal >= first_day:
            percent = tier_discount
    return percent


def bulk_discounts(day_prices: list[int], tiers=DEFAULT_BULK_DISCOUNT_TIERS) -> list[int]:
    """Per-day discount amounts, in the order of ``day_prices``.

    Days are ranked by price, most expensive first, so the deeper tiers land
    on the cheapest days.
    """
    ranked = sorted(range(len(day_prices)), key=lambda index: day_prices[index], reverse=True)
    discounts = [0] * len(day_prices)
    for ordinal, index in enumerate(ranked, start=1):
        percent = tier_percent(ordinal, tiers)
        discounts[index] = _round(Decimal(day_prices[index]) * percent / 100)
    return discounts
