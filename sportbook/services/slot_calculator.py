"""Virtual slot generation and pricing for a single resource day.

Nothing here touches the database: a :class:`ResourceConfig` snapshot plus a
date is enough to list the bookable windows, price them and validate a
requested window.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any

from ..core.errors import ValidationFailed
from .conflicts import TimeWindow, format_time, parse_time

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


@dataclass(frozen=True, slots=True)
class OperatingRange:
    day: str
    start: int
    end: int


@dataclass(frozen=True, slots=True)
class PriceRule:
    day: str
    start: int
    end: int
    multiplier: Decimal
    priority: int = 0


@dataclass(frozen=True, slots=True)
class Slot:
    start: int
    end: int
    price: int

    @property
    def window(self) -> TimeWindow:
        return TimeWindow(self.start, self.end)


@dataclass(frozen=True, slots=True)
class ResourceConfig:
    id: int
    owner_id: int
    kind: str
    slot_duration: int
    min_slots: int
    max_slots: int
    base_price: int
    operating_hours: tuple[OperatingRange, ...] = field(default_factory=tuple)
    price_rules: tuple[PriceRule, ...] = field(default_factory=tuple)
    is_active: bool = True

    @classmethod
    def from_dicts(
        cls,
        *,
        operating_hours: list[dict[str, Any]],
        price_rules: list[dict[str, Any]],
        **kwargs: Any,
    ) -> "ResourceConfig":
        return cls(
            operating_hours=tuple(
                OperatingRange(
                    day=item["day"].lower(),
                    start=parse_time(item["start"]),
                    end=parse_time(item["end"]),
                )
                for item in operating_hours or []
            ),
            price_rules=tuple(
                PriceRule(
                    day=item["day"].lower(),
                    start=parse_time(item["start"]),
                    end=parse_time(item["end"]),
                    multiplier=Decimal(str(item.get("multiplier", 1))),
                    priority=int(item.get("priority", 0)),
                )
                for item in price_rules or []
            ),
            **kwargs,
        )


def day_name(day: date) -> str:
    return WEEKDAYS[day.weekday()]


def operating_ranges(config: ResourceConfig, day: date) -> list[OperatingRange]:
    name = day_name(day)
    return sorted(
        (item for item in config.operating_hours if item.day == name),
        key=lambda item: item.start,
    )


def multiplier_for(config: ResourceConfig, day: date, minute: int) -> Decimal:
    name = day_name(day)
    best: PriceRule | None = None
    for rule in config.price_rules:
        if rule.day != name or not rule.start <= minute < rule.end:
            continue
        # first rule wins among equal priorities
        if best is None or rule.priority > best.priority:
            best = rule
    return best.multiplier if best else Decimal(1)


def slot_price(config: ResourceConfig, day: date, minute: int) -> int:
    price = Decimal(config.base_price) * multiplier_for(config, day, minute)
    return int(price.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def generate_slots(config: ResourceConfig, day: date) -> list[Slot]:
    slots: list[Slot] = []
    step = config.slot_duration
    for item in operating_ranges(config, day):
        minute = item.start
        while minute + step <= item.end:
            slots.append(Slot(minute, minute + step, slot_price(config, day, minute)))
            minute += step
    return slots


def price_window(config: ResourceConfig, day: date, window: TimeWindow) -> int:
    return sum(
        slot_price(config, day, minute)
        for minute in range(window.start, window.end, config.slot_duration)
    )


def count_slots(config: ResourceConfig, window: TimeWindow) -> int:
    return window.duration // config.slot_duration


def validate_window(
    config: ResourceConfig,
    day: date,
    window: TimeWindow,
    now: datetime | None = None,
) -> int:
    """Check ``window`` against the resource rules and return its slot count."""
    if window.end <= window.start:
        raise ValidationFailed("End time must be after start time")
    ranges = operating_ranges(config, day)
    if not ranges:
        raise ValidationFailed(f"Resource is closed on {day_name(day)}")
    container = next(
        (item for item in ranges if item.start <= window.start and window.end <= item.end),
        None,
    )
    if container is None:
        raise ValidationFailed(
            f"Booking {window} is outside operating hours for {day_name(day)}"
        )
    step = config.slot_duration
    if (window.start - container.start) % step or window.duration % step:
        raise ValidationFailed(f"Booking must align to {step}-minute slots")
    num_slots = count_slots(config, window)
    if num_slots < config.min_slots:
        raise ValidationFailed(f"Minimum booking is {config.min_slots} slot(s)")
    if num_slots > config.max_slots:
        raise ValidationFailed(f"Maximum booking is {config.max_slots} slot(s)")
    if now is not None:
        today = now.date()
        if day < today or (day == today and window.start < now.hour * 60 + now.minute):
            raise ValidationFailed("Cannot book a time in the past")
    return num_slots
