import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from chatter_bonus.errors import ConcurrentProgressConflict
from chatter_bonus.models.bonus_progress import BonusProgress
from chatter_bonus.services.window_service import to_utc_naive


logger = logging.getLogger(__name__)


def _key_query(db: Session, rule_id: UUID, worker_id: str, window_start: datetime, window_end: datetime):
    return (
        db.query(BonusProgress)
        .filter(BonusProgress.rule_id == rule_id)
        .filter(BonusProgress.worker_id == worker_id)
        .filter(BonusProgress.window_start == to_utc_naive(window_start))
        .filter(BonusProgress.window_end == to_utc_naive(window_end))
    )


def get_progress(
    db: Session,
    *,
    rule_id: UUID,
    worker_id: str,
    window_start: datetime,
    window_end: datetime,
    for_update: bool = False,
):
    q = _key_query(db, rule_id, worker_id, window_start, window_end)
    if for_update:
        q = q.with_for_update()
    return q.first()


def record_progress(
    db: Session,
    *,
    company_id: str,
    rule_id: UUID,
    worker_id: str,
    window_start: datetime,
    window_end: datetime,
    steps: int,
    computed_at: datetime,
    expected_version: int | None = None,
):
    """
    Upsert the progress row of one (rule, worker, window).

    Steps only move forward: a lower value leaves the row unchanged. The
    update is conditional on the row version (and on the stored steps), so a
    concurrent writer makes it raise ConcurrentProgressConflict instead of
    silently regressing. Nothing is committed here.
    """
    steps = int(steps)
    computed_at = to_utc_naive(computed_at)

    current = get_progress(
        db,
        rule_id=rule_id,
        worker_id=worker_id,
        window_start=window_start,
        window_end=window_end,
    )

    if current is None:
        if expected_version is not None:
            raise ConcurrentProgressConflict(
                "Progress row disappeared during evaluation",
                rule_id=str(rule_id),
                worker_id=worker_id,
            )
        progress = BonusProgress(
            company_id=company_id,
            rule_id=rule_id,
            worker_id=worker_id,
            window_start=to_utc_naive(window_start),
            window_end=to_utc_naive(window_end),
            last_observed_steps=max(steps, 0),
            last_computed_at=computed_at,
            version=1,
        )
        db.add(progress)
        try:
            db.flush()
        except IntegrityError as e:
            raise ConcurrentProgressConflict(
                "Progress row was created concurrently",
                rule_id=str(rule_id),
                worker_id=worker_id,
            ) from e
        return progress

    if expected_version is not None and current.version != expected_version:
        raise ConcurrentProgressConflict(
            "Progress row changed during evaluation",
            rule_id=str(rule_id),
            worker_id=worker_id,
            expected_version=expected_version,
            actual_version=current.version,
        )

    if steps < current.last_observed_steps:
        logger.info(
            "ignoring progress regression",
            extra={
                "rule_id": str(rule_id),
                "worker_id": worker_id,
                "stored_steps": current.last_observed_steps,
                "requested_steps": steps,
            },
        )
        return current

    version = current.version
    updated = (
        db.query(BonusProgress)
        .filter(BonusProgress.id == current.id)
        .filter(BonusProgress.version == version)
        .filter(BonusProgress.last_observed_steps <= steps)
        .update(
            {
                BonusProgress.last_observed_steps: steps,
                BonusProgress.last_computed_at: computed_at,
                BonusProgress.version: version + 1,
            },
            synchronize_session=False,
        )
    )
    if updated != 1:
        raise ConcurrentProgressConflict(
            "Conditional progress update lost a race",
            rule_id=str(rule_id),
            worker_id=worker_id,
        )

    db.expire(current)
    return current


def list_progress(
    db: Session,
    *,
    company_id: str,
    worker_id: str | None = None,
    rule_id: UUID | None = None,
    limit: int = 200,
):
    q = (
        db.query(BonusProgress)
        .options(joinedload(BonusProgress.rule), joinedload(BonusProgress.worker))
        .filter(BonusProgress.company_id == company_id)
    )
    if worker_id:
        q = q.filter(BonusProgress.worker_id == worker_id)
    if rule_id:
        q = q.filter(BonusProgress.rule_id == rule_id)

    limit = max(1, min(limit, 500))

    return (
        q.order_by(BonusProgress.window_start.desc(), BonusProgress.last_computed_at.desc())
        .limit(limit)
        .all()
    )
