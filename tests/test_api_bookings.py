import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select

from sportbook.core.rate_limit import SlidingWindowRateLimiter
from sportbook.core.security import create_access_token
from sportbook.db import models
from sportbook.db.session import get_db
from sportbook.main import app

from conftest import make_user


@pytest.fixture()
def api_client(session_factory, monkeypatch):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    monkeypatch.setattr(app.state, "rate_limiter", SlidingWindowRateLimiter(100, 60), raising=False)
    # no context manager: startup would launch the scheduler
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


def auth(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}


def booking_body(resource, day, **overrides) -> dict:
    body = {
        "resource_id": resource.id,
        "date": day.isoformat(),
        "start_time": "18:00",
        "end_time": "20:00",
        "payment_method": "cash",
    }
    body.update(overrides)
    return body


def test_health(api_client):
    response = api_client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_create_booking_recomputes_price(api_client, customer, field, monday):
    response = api_client.post(
        "/api/v1/bookings",
        json=booking_body(field, monday, total_price=1),
        headers=auth(customer),
    )
    assert response.status_code == 200, response.text
    data = response.json()
    assert data["user_id"] == customer.id
    assert data["status"] == "confirmed"
    assert (data["booking_amount"], data["platform_fee"], data["total_price"]) == (300, 15, 315)


def test_double_booking_returns_conflict(api_client, customer, field, monday):
    first = api_client.post("/api/v1/bookings", json=booking_body(field, monday), headers=auth(customer))
    assert first.status_code == 200
    second = api_client.post(
        "/api/v1/bookings",
        json=booking_body(field, monday, start_time="19:00", end_time="20:00"),
        headers=auth(customer),
    )
    assert second.status_code == 409
    assert "no longer available" in second.json()["detail"]


def test_guest_booking_creates_guest_user(api_client, session_factory, field, monday):
    response = api_client.post(
        "/api/v1/bookings",
        json=booking_body(field, monday, guest={"email": "Walkin@Example.com", "name": "Walk In"}),
    )
    assert response.status_code == 200, response.text
    with session_factory() as db:
        user = db.scalar(select(models.User).where(models.User.email == "walkin@example.com"))
    assert user is not None and user.is_guest
    assert response.json()["user_id"] == user.id


def test_guest_without_email_is_rejected(api_client, field, monday):
    response = api_client.post("/api/v1/bookings", json=booking_body(field, monday))
    assert response.status_code == 400


def test_invalid_window_is_rejected(api_client, customer, field, monday):
    response = api_client.post(
        "/api/v1/bookings",
        json=booking_body(field, monday, start_time="21:00", end_time="23:00"),
        headers=auth(customer),
    )
    assert response.status_code == 400


def test_unknown_payment_method(api_client, customer, field, monday):
    response = api_client.post(
        "/api/v1/bookings",
        json=booking_body(field, monday, payment_method="barter"),
        headers=auth(customer),
    )
    assert response.status_code == 400


def test_online_booking_returns_checkout_then_webhook_confirms(api_client, customer, field, monday):
    response = api_client.post(
        "/api/v1/bookings",
        json=booking_body(field, monday, payment_method="payos"),
        headers=auth(customer),
    )
    data = response.json()
    assert data["status"] == "pending"
    order_id = data["checkout_url"].rsplit("/", 1)[-1]

    webhook = api_client.post("/api/v1/payments/webhook", json={"order_id": order_id, "status": "succeeded"})
    assert webhook.status_code == 200
    assert webhook.json() == {"received": True, "processed": True}

    again = api_client.post("/api/v1/payments/webhook", json={"order_id": "nope", "status": "succeeded"})
    assert again.status_code == 200
    assert again.json()["processed"] is False


def test_availability_marks_booked_slots(api_client, customer, field, monday):
    api_client.post("/api/v1/bookings", json=booking_body(field, monday), headers=auth(customer))
    response = api_client.get(
        f"/api/v1/resources/{field.id}/availability", params={"start_date": monday.isoformat()}
    )
    assert response.status_code == 200
    slots = {slot["start"]: slot for slot in response.json()[0]["slots"]}
    assert slots["18:00"]["available"] is False
    assert slots["17:00"]["available"] is True


def test_cancellation_preview_and_cancel(api_client, customer, field, monday):
    created = api_client.post(
        "/api/v1/bookings", json=booking_body(field, monday), headers=auth(customer)
    ).json()
    preview = api_client.get(
        f"/api/v1/bookings/{created['id']}/cancellation-preview", headers=auth(customer)
    )
    assert preview.status_code == 200
    assert preview.json()["role"] == "customer"
    assert preview.json()["percentage"] == 100

    cancelled = api_client.post(
        f"/api/v1/bookings/{created['id']}/cancel", json={"reason": "busy"}, headers=auth(customer)
    )
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"
    assert cancelled.json()["cancellation_reason"] == "busy"


def test_cancel_requires_authentication(api_client, customer, field, monday):
    created = api_client.post(
        "/api/v1/bookings", json=booking_body(field, monday), headers=auth(customer)
    ).json()
    response = api_client.post(f"/api/v1/bookings/{created['id']}/cancel", json={})
    assert response.status_code == 401


def test_stranger_cannot_cancel(api_client, db_session, customer, field, monday):
    stranger = make_user(db_session, "someone@example.com")
    created = api_client.post(
        "/api/v1/bookings", json=booking_body(field, monday), headers=auth(customer)
    ).json()
    response = api_client.post(
        f"/api/v1/bookings/{created['id']}/cancel", json={}, headers=auth(stranger)
    )
    assert response.status_code == 403


def test_owner_marks_holiday(api_client, owner, customer, field, monday):
    created = api_client.post(
        "/api/v1/bookings", json=booking_body(field, monday), headers=auth(customer)
    ).json()
    response = api_client.post(
        f"/api/v1/resources/{field.id}/holidays",
        json={"date": monday.isoformat(), "reason": "Maintenance"},
        headers=auth(owner),
    )
    assert response.status_code == 200
    assert [booking["id"] for booking in response.json()] == [created["id"]]

    blocked = api_client.post("/api/v1/bookings", json=booking_body(field, monday), headers=auth(customer))
    assert blocked.status_code == 409
    assert "Maintenance" in blocked.json()["detail"]


def test_weekly_conflict_lists_dates(api_client, customer, field, monday):
    api_client.post("/api/v1/bookings", json=booking_body(field, monday), headers=auth(customer))
    response = api_client.post(
        "/api/v1/bookings/weekly",
        json={
            "resource_id": field.id,
            "start_date": monday.isoformat(),
            "weekdays": [0],
            "weeks": 2,
            "start_time": "18:00",
            "end_time": "20:00",
        },
        headers=auth(customer),
    )
    assert response.status_code == 409
    conflicts = response.json()["detail"]["conflicts"]
    assert conflicts[0]["date"] == monday.isoformat()


def test_booking_rate_limit(api_client, monkeypatch, customer, field, monday):
    monkeypatch.setattr(app.state, "rate_limiter", SlidingWindowRateLimiter(1, 60))
    first = api_client.post("/api/v1/bookings", json=booking_body(field, monday), headers=auth(customer))
    assert first.status_code == 200
    second = api_client.post(
        "/api/v1/bookings",
        json=booking_body(field, monday, start_time="08:00", end_time="09:00"),
        headers=auth(customer),
    )
    assert second.status_code == 429


def test_bad_token_is_rejected(api_client, field, monday):
    response = api_client.post(
        "/api/v1/bookings",
        json=booking_body(field, monday),
        headers={"Authorization": "Bearer not-a-token"},
    )
    assert response.status_code == 401
