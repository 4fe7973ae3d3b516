from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable


def parse_time(value: str) -> int:
    """Convert ``HH:MM`` into minutes since midnight."""
    try:
        hours, minutes = value.split(":")
        total = int(hours) * 60 + int(minutes)
    except (AttributeError, ValueError) as exc:
        raise ValueError(f"Invalid time {value!r}, expected HH:MM") from exc
    if not 0 <= int(minutes) < 60 or not 0 <= total <= 24 * 60:
        raise ValueError(f"Invalid time {value!r}, expected HH:MM")
    return total


def format_time(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


@dataclass(frozen=True, slots=True)
class TimeWindow:
    start: int
    end: int

    @classmethod
    def parse(cls, start: str, end: str) -> "TimeWindow":
        return cls(parse_time(start), parse_time(end))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TimeWindow":
        return cls.parse(data["start"], data["end"])

    def to_dict(self) -> dict[str, str]:
        return {"start": format_time(self.start), "end": format_time(self.end)}

    @property
    def duration(self) -> int:
        return self.end - self.start

    def __str__(self) -> str:
        return f"{format_time(self.start)}-{format_time(self.end)}"


def overlaps(a: TimeWindow, b: TimeWindow) -> bool:
    # half-open: touching windows do not overlap
    return a.start < b.end and a.end > b.start


def has_conflict(candidate: TimeWindow, existing: Iterable[TimeWindow]) -> bool:
    return any(overlaps(candidate, window) for window in existing)


def windows_from_ledger(booked_windows: list[dict[str, Any]] | None) -> list[TimeWindow]:
    return [TimeWindow.from_dict(item) for item in booked_windows or []]
