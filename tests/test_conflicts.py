import pytest

from sportbook.services.conflicts import TimeWindow, has_conflict, overlaps, parse_time


def window(start, end):
    return TimeWindow.parse(start, end)


def test_overlapping_windows_conflict():
    assert overlaps(window("10:00", "12:00"), window("11:00", "13:00"))
    assert overlaps(window("10:00", "12:00"), window("10:30", "11:00"))


def test_touching_windows_do_not_conflict():
    assert not overlaps(window("10:00", "11:00"), window("11:00", "12:00"))
    assert not overlaps(window("11:00", "12:00"), window("10:00", "11:00"))


def test_has_conflict_scans_all_windows():
    booked = [window("08:00", "09:00"), window("12:00", "14:00")]
    assert has_conflict(window("13:00", "15:00"), booked)
    assert not has_conflict(window("09:00", "12:00"), booked)
    assert not has_conflict(window("09:00", "12:00"), [])


def test_window_round_trips_ledger_format():
    assert window("18:00", "20:00").to_dict() == {"start": "18:00", "end": "20:00"}
    assert str(window("08:30", "09:30")) == "08:30-09:30"


@pytest.mark.parametrize("value", ["25:00", "10:75", "noon", ""])
def test_parse_time_rejects_garbage(value):
    with pytest.raises(ValueError):
        parse_time(value)
