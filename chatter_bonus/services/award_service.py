from datetime import datetime
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from chatter_bonus.errors import ConcurrentProgressConflict
from chatter_bonus.models.bonus_award import BonusAward
from chatter_bonus.services.window_service import to_utc_naive


def window_dedup_key(rule_id: UUID, worker_id: str, window_start: datetime, window_end: datetime) -> str:
    return (
        f"{rule_id}:{worker_id}:"
        f"{to_utc_naive(window_start).isoformat()}:{to_utc_naive(window_end).isoformat()}"
    )


def _window_query(db: Session, rule_id: UUID, worker_id: str, window_start: datetime, window_end: datetime):
    return (
        db.query(BonusAward)
        .filter(BonusAward.rule_id == rule_id)
        .filter(BonusAward.worker_id == worker_id)
        .filter(BonusAward.window_start == to_utc_naive(window_start))
        .filter(BonusAward.window_end == to_utc_naive(window_end))
    )


def awards_in_window(db: Session, *, rule_id: UUID, worker_id: str, window_start: datetime, window_end: datetime):
    """Return (count, total cents) already awarded for one (rule, worker, window)."""
    q = _window_query(db, rule_id, worker_id, window_start, window_end)
    count, total = q.with_entities(
        func.count(BonusAward.id), func.coalesce(func.sum(BonusAward.bonus_amount_cents), 0)
    ).one()
    return int(count or 0), int(total or 0)


def create_award(
    db: Session,
    *,
    company_id: str,
    rule_id: UUID,
    worker_id: str,
    window_start: datetime,
    window_end: datetime,
    steps_awarded: int,
    bonus_amount_cents: int,
    currency: str,
    awarded_at: datetime,
    reason: str,
    payload: dict,
    once_per_window: bool,
) -> BonusAward:
    award = BonusAward(
        company_id=company_id,
        rule_id=rule_id,
        worker_id=worker_id,
        window_start=to_utc_naive(window_start),
        window_end=to_utc_naive(window_end),
        steps_awarded=int(steps_awarded),
        bonus_amount_cents=int(bonus_amount_cents),
        currency=currency,
        awarded_at=to_utc_naive(awarded_at),
        reason=reason,
        payload=payload,
        dedup_key=(window_dedup_key(rule_id, worker_id, window_start, window_end) if once_per_window else None),
    )
    db.add(award)
    try:
        db.flush()
    except IntegrityError as e:
        raise ConcurrentProgressConflict(
            "Award for this window was recorded concurrently",
            rule_id=str(rule_id),
            worker_id=worker_id,
        ) from e
    return award


def _apply_award_filters(
    q,
    *,
    company_id: str,
    worker_id: str | None,
    rule_id: UUID | None,
    date_from: datetime | None,
    date_to: datetime | None,
    min_amount_cents: int | None,
    max_amount_cents: int | None,
):
    q = q.filter(BonusAward.company_id == company_id)
    if worker_id:
        q = q.filter(BonusAward.worker_id == worker_id)
    if rule_id:
        q = q.filter(BonusAward.rule_id == rule_id)
    if date_from is not None:
        q = q.filter(BonusAward.awarded_at >= to_utc_naive(date_from))
    if date_to is not None:
        q = q.filter(BonusAward.awarded_at < to_utc_naive(date_to))
    if min_amount_cents is not None:
        q = q.filter(BonusAward.bonus_amount_cents >= min_amount_cents)
    if max_amount_cents is not None:
        q = q.filter(BonusAward.bonus_amount_cents <= max_amount_cents)
    return q


def list_awards(
    db: Session,
    *,
    company_id: str,
    worker_id: str | None = None,
    rule_id: UUID | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    min_amount_cents: int | None = None,
    max_amount_cents: int | None = None,
    limit: int = 20,
    offset: int = 0,
) -> dict:
    filters = dict(
        company_id=company_id,
        worker_id=worker_id,
        rule_id=rule_id,
        date_from=date_from,
        date_to=date_to,
        min_amount_cents=min_amount_cents,
        max_amount_cents=max_amount_cents,
    )

    limit = max(1, min(limit, 200))
    offset = max(0, offset)

    rows = (
        _apply_award_filters(db.query(BonusAward), **filters)
        .options(joinedload(BonusAward.rule), joinedload(BonusAward.worker))
        .order_by(BonusAward.awarded_at.desc(), BonusAward.id.asc())
        .offset(offset)
        .limit(limit)
        .all()
    )

    filtered_count, filtered_amount = (
        _apply_award_filters(
            db.query(func.count(BonusAward.id), func.coalesce(func.sum(BonusAward.bonus_amount_cents), 0)),
            **filters,
        ).one()
    )

    return {
        "rows": rows,
        "totalCount": int(filtered_count or 0),
        "totals": {
            "page": {
                "count": len(rows),
                "amountCents": sum(int(r.bonus_amount_cents) for r in rows),
            },
            "filtered": {
                "count": int(filtered_count or 0),
                "amountCents": int(filtered_amount or 0),
            },
        },
    }


def get_award(db: Session, *, company_id: str, award_id: UUID):
    return (
        db.query(BonusAward)
        .filter(BonusAward.id == award_id)
        .filter(BonusAward.company_id == company_id)
        .first()
    )
