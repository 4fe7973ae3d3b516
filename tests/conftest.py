import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("PAYMENT_PROVIDER", "stub")

from datetime import date, timedelta

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from sportbook.db.session import Base
from sportbook.db import models
from sportbook.services import notification_service

WEEK = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


def build_test_engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture()
def session_factory():
    engine = build_test_engine()
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)
    yield factory
    engine.dispose()


@pytest.fixture()
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def sent_events(monkeypatch):
    sent = []

    def fake_send(event_row):
        sent.append((event_row.event_type, event_row.booking_id))
        return True

    monkeypatch.setattr(notification_service, "send_event", fake_send)
    return sent


def next_weekday(weekday: int, weeks_ahead: int = 2) -> date:
    """A date on ``weekday`` (0 = Monday) safely in the future."""
    start = date.today() + timedelta(weeks=weeks_ahead)
    return start + timedelta(days=(weekday - start.weekday()) % 7)


@pytest.fixture()
def monday() -> date:
    return next_weekday(0)


def make_user(db, email: str, role=models.UserRole.customer) -> models.User:
    user = models.User(email=email, full_name=email.split("@")[0], role=role)
    db.add(user)
    db.commit()
    return user


def make_resource(db, owner: models.User, **overrides) -> models.Resource:
    values = dict(
        owner_id=owner.id,
        kind=models.ResourceKind.field,
        name="Center Court",
        slot_duration=60,
        min_slots=1,
        max_slots=4,
        base_price=100,
        operating_hours=[{"day": day, "start": "08:00", "end": "22:00"} for day in WEEK],
        price_rules=[
            {"day": "monday", "start": "18:00", "end": "20:00", "multiplier": 1.5},
        ],
        is_active=True,
    )
    values.update(overrides)
    resource = models.Resource(**values)
    db.add(resource)
    db.commit()
    return resource


@pytest.fixture()
def owner(db_session) -> models.User:
    return make_user(db_session, "owner@example.com", models.UserRole.field_owner)


@pytest.fixture()
def customer(db_session) -> models.User:
    return make_user(db_session, "player@example.com")


@pytest.fixture()
def field(db_session, owner) -> models.Resource:
    return make_resource(db_session, owner)


@pytest.fixture()
def coach(db_session) -> models.Resource:
    provider = make_user(db_session, "coach@example.com", models.UserRole.coach)
    return make_resource(db_session, provider, kind=models.ResourceKind.coach, name="Coach Minh")
