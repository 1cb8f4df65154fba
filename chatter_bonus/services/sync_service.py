from datetime import datetime

from sqlalchemy.orm import Session

from chatter_bonus.models.earnings_event import EarningsEvent
from chatter_bonus.models.shift import Shift
from chatter_bonus.models.worker import Worker
from chatter_bonus.services.window_service import to_utc_naive


def get_worker(db: Session, company_id: str, worker_id: str):
    return (
        db.query(Worker)
        .filter(
            Worker.company_id == company_id,
            Worker.worker_id == worker_id,
        )
        .first()
    )


def upsert_worker(db: Session, company_id: str, worker_id: str, *, name: str | None = None, active: bool | None = None):
    worker = get_worker(db, company_id, worker_id)

    if not worker:
        worker = Worker(company_id=company_id, worker_id=worker_id, active=True)
        db.add(worker)

    if name:
        worker.name = name.strip()
    if active is not None:
        worker.active = bool(active)

    db.flush()
    return worker


def record_shift(
    db: Session,
    company_id: str,
    worker_id: str,
    *,
    external_id: str,
    start_at: datetime,
    end_at: datetime,
):
    if to_utc_naive(end_at) <= to_utc_naive(start_at):
        raise ValueError("Shift end must be after its start")

    shift = (
        db.query(Shift)
        .filter(Shift.company_id == company_id)
        .filter(Shift.external_id == external_id)
        .first()
    )
    if not shift:
        shift = Shift(company_id=company_id, external_id=external_id, worker_id=worker_id)
        db.add(shift)

    # shift edits from the scheduling backend replace the stored span
    shift.worker_id = worker_id
    shift.start_at = to_utc_naive(start_at)
    shift.end_at = to_utc_naive(end_at)

    db.flush()
    return shift


def ingest_earnings_event(
    db: Session,
    company_id: str,
    *,
    worker_id: str,
    event_id: str,
    amount_cents: int,
    occurred_at: datetime,
    type: str = "sale",
):
    """
    Store an earnings event idempotently.

    Events are immutable: a repeated eventId returns the stored row untouched.
    """
    existing = (
        db.query(EarningsEvent)
        .filter(EarningsEvent.company_id == company_id)
        .filter(EarningsEvent.event_id == event_id)
        .first()
    )
    if existing:
        return existing, False

    event = EarningsEvent(
        company_id=company_id,
        worker_id=worker_id,
        event_id=event_id,
        amount_cents=int(amount_cents),
        occurred_at=to_utc_naive(occurred_at),
        type=type or "sale",
    )
    db.add(event)
    db.flush()
    return event, True
