"""Shared pytest fixtures for bonus engine tests."""

import os

os.environ["DATABASE_URL"] = "sqlite://"

from datetime import datetime  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from chatter_bonus.db import Base, get_db  # noqa: E402
from chatter_bonus.main import app  # noqa: E402
from chatter_bonus.services.rule_service import create_rule  # noqa: E402
from chatter_bonus.services.sync_service import ingest_earnings_event, record_shift, upsert_worker  # noqa: E402
from chatter_bonus.services.window_service import UTC  # noqa: E402

COMPANY = "acme"

TIERS = [
    {"min_amount_cents": 0, "bonus_cents": 0},
    {"min_amount_cents": 1000, "bonus_cents": 100},
    {"min_amount_cents": 5000, "bonus_cents": 600},
]


def utc(*args) -> datetime:
    """Aware UTC datetime shortcut."""
    return datetime(*args, tzinfo=UTC)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db):
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    try:
        yield TestClient(app, headers={"X-Company-Id": COMPANY})
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_rule(db):
    """Create and commit a rule; keyword arguments override the defaults."""

    def _make(**overrides):
        company_id = overrides.pop("company_id", COMPANY)
        config = {
            "metric": "earnings.amount_cents",
            "tiers": TIERS,
            "include_refunds": False,
            "shift_based": False,
            "award_once_per_window": True,
        }
        config.update(overrides.pop("config", {}))
        data = {
            "name": "Daily sales bonus",
            "window_type": "calendar_day",
            "timezone": "UTC",
            "currency": "EUR",
            "priority": 10,
            "active": True,
            "config": config,
        }
        data.update(overrides)
        rule = create_rule(db, company_id, data)
        db.commit()
        return rule

    return _make


@pytest.fixture
def worker(db):
    w = upsert_worker(db, COMPANY, "w-1", name="Alice")
    db.commit()
    return w


@pytest.fixture
def add_earning(db):
    """Insert one earnings event; event ids are generated when omitted."""
    counter = {"n": 0}

    def _add(worker_id, amount_cents, occurred_at, event_id=None, company_id=COMPANY):
        counter["n"] += 1
        row, _ = ingest_earnings_event(
            db,
            company_id,
            worker_id=worker_id,
            event_id=event_id or f"evt-{counter['n']}",
            amount_cents=amount_cents,
            occurred_at=occurred_at,
        )
        db.commit()
        return row

    return _add


@pytest.fixture
def add_shift(db):
    def _add(worker_id, external_id, start_at, end_at):
        shift = record_shift(db, COMPANY, worker_id, external_id=external_id, start_at=start_at, end_at=end_at)
        db.commit()
        return shift

    return _add
