from sqlalchemy import select

from sportbook.db import models
from sportbook.services import (
    booking_service,
    ledger_service,
    payment_events,
    payment_service,
    status_service,
)


def online_booking(db, user, resource, day, start="18:00", end="20:00", **kwargs):
    return booking_service.create_booking(
        db,
        actor_id=user.id,
        resource_id=resource.id,
        day=day,
        start_time=start,
        end_time=end,
        payment_method=models.PaymentMethod.payos,
        **kwargs,
    )


def owner_wallet(db, owner_id):
    wallet = db.scalar(select(models.Wallet).where(models.Wallet.user_id == owner_id))
    if wallet:
        db.refresh(wallet)
    return wallet


def test_success_confirms_and_marks_paid(db_session, customer, field, monday):
    booking = online_booking(db_session, customer, field, monday)
    claimed = payment_events.on_payment_succeeded(db_session, booking.payment_id)
    assert claimed == [booking.id]
    assert booking.status == models.BookingStatus.confirmed
    assert booking.payment_status == models.BookingPaymentStatus.paid
    assert booking.payment.status == models.PaymentStatus.succeeded


def test_duplicate_success_is_a_no_op(db_session, customer, field, owner, monday, sent_events):
    booking = online_booking(db_session, customer, field, monday)
    for _ in range(3):
        payment_events.on_payment_succeeded(db_session, booking.payment_id)
    assert booking.status == models.BookingStatus.confirmed
    assert booking.payment_status == models.BookingPaymentStatus.paid
    assert sent_events.count(("booking.confirmed", booking.id)) == 1
    assert owner_wallet(db_session, owner.id).pending_balance == 300


def test_later_duplicates_claim_nothing(db_session, customer, field, monday):
    booking = online_booking(db_session, customer, field, monday)
    payment_events.on_payment_succeeded(db_session, booking.payment_id)
    assert payment_events.on_payment_succeeded(db_session, booking.payment_id) == []


def test_coach_booking_stays_pending_after_payment(db_session, customer, coach, monday):
    booking = online_booking(db_session, customer, coach, monday, "09:00", "10:00")
    payment_events.on_payment_succeeded(db_session, booking.payment_id)
    assert booking.status == models.BookingStatus.pending
    assert booking.payment_status == models.BookingPaymentStatus.paid


def test_note_under_review_stays_pending_after_payment(db_session, customer, field, monday):
    booking = online_booking(db_session, customer, field, monday, note="Birthday party")
    payment_events.on_payment_succeeded(db_session, booking.payment_id)
    assert booking.status == models.BookingStatus.pending
    assert booking.payment_status == models.BookingPaymentStatus.paid


def test_failure_cancels_and_releases_slot(db_session, customer, field, monday, sent_events):
    booking = online_booking(db_session, customer, field, monday)
    cancelled = payment_events.on_payment_failed(db_session, booking.payment_id)
    assert cancelled == [booking.id]
    assert booking.status == models.BookingStatus.cancelled
    assert booking.cancellation_reason == "payment failed"
    assert booking.payment.status == models.PaymentStatus.failed
    assert ledger_service.get_entry(db_session, field.id, 0, monday).booked_windows == []
    assert ("booking.cancelled", booking.id) in sent_events
    rebooked = online_booking(db_session, customer, field, monday)
    assert rebooked.status == models.BookingStatus.pending


def test_failure_after_success_is_ignored(db_session, customer, field, monday):
    booking = online_booking(db_session, customer, field, monday)
    payment_events.on_payment_succeeded(db_session, booking.payment_id)
    assert payment_events.on_payment_failed(db_session, booking.payment_id) == []
    assert booking.status == models.BookingStatus.confirmed
    assert booking.payment.status == models.PaymentStatus.succeeded


def test_late_success_does_not_revive_cancelled_booking(db_session, customer, field, owner, monday):
    booking = online_booking(db_session, customer, field, monday)
    payment_events.on_payment_failed(db_session, booking.payment_id)
    assert payment_events.on_payment_succeeded(db_session, booking.payment_id) == []
    assert booking.status == models.BookingStatus.cancelled
    assert booking.payment_status == models.BookingPaymentStatus.unpaid
    assert booking.payment.status == models.PaymentStatus.succeeded
    assert owner_wallet(db_session, owner.id) is None


def test_failure_handler_never_raises(db_session, monkeypatch):
    def explode(*args, **kwargs):
        raise RuntimeError("database went away")

    monkeypatch.setattr(payment_events, "_load_payment", explode)
    assert payment_events.on_payment_failed(db_session, 1) == []


def test_unknown_payment_is_ignored(db_session):
    assert payment_events.on_payment_succeeded(db_session, 424242) == []
    assert payment_events.on_payment_failed(db_session, 424242) == []


def test_batch_payment_confirms_every_booking(db_session, customer, field, monday):
    bookings = booking_service.create_consecutive_booking(
        db_session,
        actor_id=customer.id,
        resource_id=field.id,
        start_date=monday,
        end_date=monday,
        start_time="08:00",
        end_time="10:00",
        payment_method=models.PaymentMethod.zalopay,
    )
    payment_events.on_payment_succeeded(db_session, bookings[0].payment_id)
    assert all(booking.status == models.BookingStatus.confirmed for booking in bookings)


def test_webhook_routes_stub_events(db_session, customer, field, monday):
    booking = online_booking(db_session, customer, field, monday)
    processed = payment_service.handle_webhook(
        db_session, {"order_id": booking.payment.order_id, "status": "succeeded"}
    )
    assert processed
    assert booking.status == models.BookingStatus.confirmed
    assert not payment_service.handle_webhook(db_session, {"order_id": "missing", "status": "failed"})
    assert not payment_service.handle_webhook(
        db_session, {"order_id": booking.payment.order_id, "status": "pending"}
    )


def test_underpaid_success_leaves_booking_pending(db_session, customer, field, owner, monday):
    booking = online_booking(db_session, customer, field, monday)
    assert payment_events.on_payment_succeeded(db_session, booking.payment_id, amount=100) == []
    assert booking.status == models.BookingStatus.pending
    assert booking.payment_status == models.BookingPaymentStatus.unpaid
    assert booking.payment.status == models.PaymentStatus.pending
    assert owner_wallet(db_session, owner.id) is None

    assert payment_events.on_payment_succeeded(db_session, booking.payment_id, amount=315) == [booking.id]
    assert booking.status == models.BookingStatus.confirmed


def test_coach_payment_does_not_credit_provider(db_session, customer, coach, monday):
    booking = online_booking(db_session, customer, coach, monday, "09:00", "10:00")
    assert payment_events.on_payment_succeeded(db_session, booking.payment_id) == [booking.id]
    assert owner_wallet(db_session, coach.owner_id) is None


def test_held_booking_announces_confirmation_on_accept(db_session, customer, coach, monday, sent_events):
    booking = online_booking(db_session, customer, coach, monday, "09:00", "10:00")
    payment_events.on_payment_succeeded(db_session, booking.payment_id)
    assert ("booking.confirmed", booking.id) not in sent_events

    status_service.accept_booking(db_session, booking.id, coach.owner_id)
    assert booking.status == models.BookingStatus.confirmed
    assert sent_events.count(("booking.confirmed", booking.id)) == 1


def test_check_in_unlocks_owner_revenue(db_session, customer, field, owner, monday):
    booking = online_booking(db_session, customer, field, monday)
    payment_events.on_payment_succeeded(db_session, booking.payment_id)
    status_service.check_in(db_session, booking.id, owner.id)
    wallet = owner_wallet(db_session, owner.id)
    assert (wallet.pending_balance, wallet.available_balance) == (0, 300)


def test_unlock_is_capped_at_pending_balance(db_session, customer, field, owner, monday):
    booking = online_booking(db_session, customer, field, monday)
    payment_events.on_payment_succeeded(db_session, booking.payment_id)
    wallet = owner_wallet(db_session, owner.id)
    wallet.pending_balance = 120
    db_session.commit()

    status_service.check_in(db_session, booking.id, owner.id)
    wallet = owner_wallet(db_session, owner.id)
    assert (wallet.pending_balance, wallet.available_balance) == (0, 120)
    assert booking.status == models.BookingStatus.checked_in


def test_cash_check_in_moves_no_money(db_session, customer, field, owner, monday):
    cash = booking_service.create_booking(
        db_session,
        actor_id=customer.id,
        resource_id=field.id,
        day=monday,
        start_time="08:00",
        end_time="09:00",
        payment_method=models.PaymentMethod.cash,
    )
    status_service.check_in(db_session, cash.id, owner.id)
    assert cash.status == models.BookingStatus.checked_in
    assert owner_wallet(db_session, owner.id) is None
