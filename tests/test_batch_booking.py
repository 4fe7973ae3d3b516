from datetime import date, timedelta

import pytest
from sqlalchemy import func, select

from sportbook.core.errors import BatchConflict, ValidationFailed
from sportbook.db import models
from sportbook.services import booking_service, ledger_service
from sportbook.services.conflicts import TimeWindow

from conftest import make_user


def book_days(db, user, resource, start, days, **kwargs):
    kwargs.setdefault("payment_method", models.PaymentMethod.cash)
    return booking_service.create_consecutive_booking(
        db,
        actor_id=user.id,
        resource_id=resource.id,
        start_date=start,
        end_date=start + timedelta(days=days - 1),
        start_time="08:00",
        end_time="09:00",
        **kwargs,
    )


def test_consecutive_days_share_group_and_payment(db_session, customer, field, monday):
    bookings = book_days(db_session, customer, field, monday, 5)
    assert len(bookings) == 5
    assert len({booking.recurring_group_id for booking in bookings}) == 1
    assert len({booking.payment_id for booking in bookings}) == 1
    assert [booking.date for booking in bookings] == [monday + timedelta(days=i) for i in range(5)]
    payment = bookings[0].payment
    assert payment.amount == sum(booking.total_price for booking in bookings)


def test_bulk_discount_applies_from_fourth_day(db_session, customer, field, monday):
    bookings = book_days(db_session, customer, field, monday, 5)
    discounts = sorted(booking.discount_amount for booking in bookings)
    assert discounts == [0, 0, 0, 5, 5]
    discounted = [booking for booking in bookings if booking.discount_amount]
    assert all(booking.booking_amount == 95 for booking in discounted)
    assert all(booking.platform_fee == 5 for booking in discounted)


def test_conflict_on_one_day_books_nothing(db_session, customer, field, monday):
    other = make_user(db_session, "rival@example.com")
    day_three = monday + timedelta(days=2)
    booking_service.create_booking(
        db_session,
        actor_id=other.id,
        resource_id=field.id,
        day=day_three,
        start_time="08:00",
        end_time="10:00",
        payment_method=models.PaymentMethod.cash,
    )
    with pytest.raises(BatchConflict) as exc_info:
        book_days(db_session, customer, field, monday, 5)
    assert exc_info.value.conflicts == [
        {"date": day_three.isoformat(), "reason": "slot already booked"}
    ]
    owned = db_session.scalar(
        select(func.count()).select_from(models.Booking).where(models.Booking.user_id == customer.id)
    )
    assert owned == 0
    assert ledger_service.get_entry(db_session, field.id, 0, monday) is None


def test_holiday_is_reported_as_conflict(db_session, customer, field, monday):
    ledger_service.mark_holiday(db_session, field.id, 0, monday + timedelta(days=1), "Maintenance")
    db_session.commit()
    with pytest.raises(BatchConflict) as exc_info:
        book_days(db_session, customer, field, monday, 3)
    assert exc_info.value.conflicts[0]["reason"] == "holiday: Maintenance"


def test_race_inside_batch_rolls_back_everything(db_session, customer, field, monday, monkeypatch):
    original = ledger_service.reserve

    def reserve_with_sneaky_rival(db, resource_id, sub_resource_id, day, window):
        if day == monday + timedelta(days=3):
            original(db, resource_id, sub_resource_id, day, TimeWindow.parse("08:00", "09:00"))
        return original(db, resource_id, sub_resource_id, day, window)

    monkeypatch.setattr(ledger_service, "reserve", reserve_with_sneaky_rival)
    with pytest.raises(BatchConflict) as exc_info:
        book_days(db_session, customer, field, monday, 5)
    assert exc_info.value.conflicts[0]["date"] == (monday + timedelta(days=3)).isoformat()
    assert db_session.scalar(select(func.count()).select_from(models.Booking)) == 0
    assert ledger_service.get_entry(db_session, field.id, 0, monday) is None


def test_weekly_dates():
    start = date(2030, 1, 7)
    dates = booking_service.weekly_dates(start, [0, 2], 3)
    assert dates == [start + timedelta(days=offset) for offset in (0, 2, 7, 9, 14, 16)]


def test_weekly_booking(db_session, customer, field, monday):
    bookings = booking_service.create_weekly_booking(
        db_session,
        actor_id=customer.id,
        resource_id=field.id,
        start_date=monday,
        weekdays=[0],
        weeks=4,
        start_time="18:00",
        end_time="19:00",
        payment_method=models.PaymentMethod.cash,
    )
    assert [booking.date for booking in bookings] == [monday + timedelta(weeks=i) for i in range(4)]
    assert sorted(booking.discount_amount for booking in bookings) == [0, 0, 0, 8]


@pytest.mark.parametrize("weeks", [0, 13])
def test_weekly_limits(weeks, monday):
    with pytest.raises(ValidationFailed):
        booking_service.weekly_dates(monday, [0], weeks)


def test_batch_length_is_limited(monday):
    with pytest.raises(ValidationFailed):
        booking_service.consecutive_dates(monday, monday + timedelta(days=31))
    assert len(booking_service.consecutive_dates(monday, monday + timedelta(days=30))) == 31
