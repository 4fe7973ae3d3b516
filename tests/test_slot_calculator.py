from datetime import date, datetime
from decimal import Decimal

import pytest

from sportbook.core.errors import ValidationFailed
from sportbook.services.conflicts import TimeWindow
from sportbook.services.slot_calculator import (
    ResourceConfig,
    generate_slots,
    multiplier_for,
    price_window,
    validate_window,
)

MONDAY = date(2030, 1, 7)
TUESDAY = date(2030, 1, 8)


def build_config(**overrides) -> ResourceConfig:
    values = dict(
        id=1,
        owner_id=1,
        kind="field",
        slot_duration=60,
        min_slots=1,
        max_slots=4,
        base_price=100,
        operating_hours=[{"day": "monday", "start": "08:00", "end": "22:00"}],
        price_rules=[{"day": "monday", "start": "18:00", "end": "20:00", "multiplier": 1.5}],
    )
    values.update(overrides)
    return ResourceConfig.from_dicts(**values)


def test_generate_slots_covers_operating_hours():
    slots = generate_slots(build_config(), MONDAY)
    assert len(slots) == 14
    assert (slots[0].start, slots[0].end) == (8 * 60, 9 * 60)
    assert slots[-1].end == 22 * 60
    assert [slot.price for slot in slots if slot.start in (18 * 60, 19 * 60)] == [150, 150]
    assert slots[0].price == 100


def test_closed_day_has_no_slots():
    assert generate_slots(build_config(), TUESDAY) == []


def test_evening_window_price_matches_rules():
    window = TimeWindow.parse("18:00", "20:00")
    assert price_window(build_config(), MONDAY, window) == 300


def test_highest_priority_rule_wins():
    config = build_config(
        price_rules=[
            {"day": "monday", "start": "08:00", "end": "22:00", "multiplier": 1.2, "priority": 1},
            {"day": "monday", "start": "18:00", "end": "20:00", "multiplier": 2, "priority": 5},
            {"day": "monday", "start": "18:00", "end": "20:00", "multiplier": 3, "priority": 5},
        ]
    )
    assert multiplier_for(config, MONDAY, 18 * 60) == Decimal("2")
    assert multiplier_for(config, MONDAY, 9 * 60) == Decimal("1.2")
    assert multiplier_for(config, TUESDAY, 9 * 60) == Decimal("1")


def test_validate_window_returns_slot_count():
    assert validate_window(build_config(), MONDAY, TimeWindow.parse("18:00", "20:00")) == 2


@pytest.mark.parametrize(
    "start,end,message",
    [
        ("07:00", "09:00", "outside operating hours"),
        ("21:00", "23:00", "outside operating hours"),
        ("18:30", "19:30", "align"),
        ("10:00", "10:00", "after start"),
        ("08:00", "13:00", "Maximum"),
    ],
)
def test_validate_window_rejects_bad_windows(start, end, message):
    with pytest.raises(ValidationFailed, match=message):
        validate_window(build_config(), MONDAY, TimeWindow.parse(start, end))


def test_validate_window_enforces_minimum():
    config = build_config(min_slots=2)
    with pytest.raises(ValidationFailed, match="Minimum"):
        validate_window(config, MONDAY, TimeWindow.parse("09:00", "10:00"))


def test_validate_window_rejects_past():
    now = datetime(2030, 1, 7, 12, 30)
    with pytest.raises(ValidationFailed, match="past"):
        validate_window(build_config(), MONDAY, TimeWindow.parse("12:00", "13:00"), now=now)
    assert validate_window(build_config(), MONDAY, TimeWindow.parse("13:00", "14:00"), now=now) == 1


def test_split_operating_hours_do_not_bridge_the_gap():
    config = build_config(
        operating_hours=[
            {"day": "monday", "start": "08:00", "end": "12:00"},
            {"day": "monday", "start": "14:00", "end": "18:00"},
        ]
    )
    assert len(generate_slots(config, MONDAY)) == 8
    with pytest.raises(ValidationFailed):
        validate_window(config, MONDAY, TimeWindow.parse("11:00", "15:00"))
