from sportbook.services import pricing


def test_platform_fee_is_five_percent():
    assert pricing.platform_fee(300) == 15
    assert pricing.platform_fee(110) == 6


def test_breakdown_totals():
    result = pricing.breakdown(300)
    assert (result.booking_amount, result.platform_fee, result.total_price) == (300, 15, 315)


def test_bulk_discount_tiers_by_day_ordinal():
    discounts = pricing.bulk_discounts([100] * 9)
    assert discounts == [0, 0, 0, 5, 5, 5, 5, 10, 10]


def test_cheapest_days_get_deepest_discount():
    prices = [100, 100, 100, 200, 100]
    discounts = pricing.bulk_discounts(prices)
    # the 200 day ranks first and stays full price
    assert discounts[3] == 0
    assert sorted(discounts) == [0, 0, 0, 5, 5]
