from datetime import datetime

from sqlalchemy import func
from sqlalchemy.orm import Session

from chatter_bonus.errors import InvalidRuleConfiguration
from chatter_bonus.models.earnings_event import EarningsEvent
from chatter_bonus.models.worker import Worker
from chatter_bonus.services.window_service import to_utc_naive


# metric identifier -> column summed over the window
SUPPORTED_METRICS = {
    "earnings.amount_cents": EarningsEvent.amount_cents,
}


def qualifying_total(total_cents: int) -> int:
    # a rule never owes a negative bonus
    return max(int(total_cents or 0), 0)


def aggregate_metric(
    db: Session,
    *,
    company_id: str,
    worker_id: str,
    metric: str,
    window_start: datetime,
    window_end: datetime,
    include_refunds: bool,
) -> int:
    column = SUPPORTED_METRICS.get(metric)
    if column is None:
        raise InvalidRuleConfiguration(f"Unsupported metric: {metric}", field="metric")

    q = (
        db.query(func.coalesce(func.sum(column), 0))
        .filter(EarningsEvent.company_id == company_id)
        .filter(EarningsEvent.worker_id == worker_id)
        .filter(EarningsEvent.occurred_at >= to_utc_naive(window_start))
        .filter(EarningsEvent.occurred_at < to_utc_naive(window_end))
    )
    if not include_refunds:
        q = q.filter(column >= 0)

    return int(q.scalar() or 0)


def list_active_workers_with_activity(
    db: Session,
    *,
    company_id: str,
    window_start: datetime,
    window_end: datetime,
) -> list[str]:
    rows = (
        db.query(EarningsEvent.worker_id)
        .join(
            Worker,
            (Worker.company_id == EarningsEvent.company_id) & (Worker.worker_id == EarningsEvent.worker_id),
        )
        .filter(EarningsEvent.company_id == company_id)
        .filter(Worker.active.is_(True))
        .filter(EarningsEvent.occurred_at >= to_utc_naive(window_start))
        .filter(EarningsEvent.occurred_at < to_utc_naive(window_end))
        .distinct()
        .order_by(EarningsEvent.worker_id.asc())
        .all()
    )
    return [r[0] for r in rows]
