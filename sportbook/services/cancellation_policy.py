"""Refund and penalty rules for cancelling a booking.

Pure functions: the caller supplies hours until start, the cancelling role
and the booking amounts. Nothing is read from or written to the database.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum as PyEnum
from typing import Iterable
from zoneinfo import ZoneInfo

from ..core.constants import DEFAULT_CANCELLATION_RULES
from .conflicts import parse_time


class ActorRole(str, PyEnum):
    customer = "customer"
    owner = "owner"
    provider = "provider"
    system = "system"


@dataclass(frozen=True, slots=True)
class CancellationRule:
    hours_threshold: float
    customer_refund_pct: int
    owner_penalty_pct: int
    provider_penalty_pct: int


@dataclass(frozen=True, slots=True)
class CancellationQuote:
    role: ActorRole
    hours_until_start: float
    percentage: int
    refund_amount: int
    penalty_amount: int
    rule: CancellationRule


DEFAULT_RULES = tuple(CancellationRule(*row) for row in DEFAULT_CANCELLATION_RULES)


def _percent_of(amount: int, percent: int) -> int:
    value = Decimal(amount) * Decimal(percent) / 100
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def select_rule(
    hours_until_start: float, rules: Iterable[CancellationRule] = DEFAULT_RULES
) -> CancellationRule:
    ordered = sorted(rules, key=lambda rule: rule.hours_threshold, reverse=True)
    if not ordered:
        raise ValueError("Cancellation rules table is empty")
    for rule in ordered:
        if rule.hours_threshold <= hours_until_start:
            return rule
    # already started: nothing matches, the lowest threshold is the strictest
    return ordered[-1]


def quote(
    role: ActorRole,
    hours_until_start: float,
    *,
    booking_amount: int,
    platform_fee: int,
    total_price: int,
    is_paid: bool,
    rules: Iterable[CancellationRule] = DEFAULT_RULES,
) -> CancellationQuote:
    rule = select_rule(hours_until_start, rules)
    refund = penalty = 0
    if role == ActorRole.customer:
        percentage = rule.customer_refund_pct
        # platform fee is never refunded
        if is_paid:
            refund = _percent_of(booking_amount, percentage)
    elif role in (ActorRole.owner, ActorRole.provider):
        percentage = (
            rule.owner_penalty_pct if role == ActorRole.owner else rule.provider_penalty_pct
        )
        penalty = _percent_of(booking_amount + platform_fee, percentage)
        if is_paid:
            refund = total_price
    else:
        percentage = 100
        if is_paid:
            refund = total_price
    return CancellationQuote(
        role=role,
        hours_until_start=hours_until_start,
        percentage=percentage,
        refund_amount=refund,
        penalty_amount=penalty,
        rule=rule,
    )


def starts_at(booking_date: date, start_time: str, tz: ZoneInfo) -> datetime:
    minutes = parse_time(start_time)
    return datetime.combine(booking_date, time(minutes // 60, minutes % 60), tzinfo=tz)


def hours_until_start(
    booking_date: date, start_time: str, now: datetime, tz: ZoneInfo
) -> float:
    delta = starts_at(booking_date, start_time, tz) - now.astimezone(tz)
    return delta.total_seconds() / 3600
