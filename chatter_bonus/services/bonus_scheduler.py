from __future__ import annotations

import logging
import os
import time
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from croniter import croniter

from sqlalchemy.orm import Session

from chatter_bonus.config import (
    ENGINE_IDLE_SLEEP_SECONDS,
    ENGINE_LOOKBACK_SECONDS,
    ENGINE_MAX_SLEEP_SECONDS,
    ENGINE_SCHEDULE,
    ENGINE_SCHEDULE_TIMEZONE,
)
from chatter_bonus.db import SessionLocal
from chatter_bonus.services.rule_engine import RunResult, run_engine
from chatter_bonus.services.rule_service import list_companies_with_active_rules
from chatter_bonus.services.window_service import UTC, as_utc_aware


logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def compute_next_run_at(*, base_utc: datetime, cron_expr: str, timezone: str = "UTC") -> datetime:
    """Next cron tick strictly after ``base_utc``, evaluated in ``timezone`` and returned in UTC."""
    if not cron_expr:
        raise ValueError("cron expression is required")
    tz = ZoneInfo(timezone)

    base_local = as_utc_aware(base_utc).astimezone(tz)
    it = croniter(cron_expr, base_local)
    next_local: datetime = it.get_next(datetime)
    return as_utc_aware(next_local)


def run_tick(db: Session, *, now: datetime, lookback_seconds: int = ENGINE_LOOKBACK_SECONDS) -> list[RunResult]:
    """
    Run the engine for every company with active rules.

    Each company is evaluated at ``now`` and once more at ``now - lookback``
    so the window that just closed gets a final pass; runs are idempotent, so
    the second pass is a no-op when nothing changed.
    """
    results = []
    reference_instants = [now]
    if lookback_seconds > 0:
        reference_instants.insert(0, now - timedelta(seconds=int(lookback_seconds)))

    for company_id in list_companies_with_active_rules(db):
        for as_of in reference_instants:
            result = run_engine(db, company_id=company_id, as_of=as_of)
            results.append(result)
            logger.info(
                "scheduled bonus run",
                extra={
                    "company_id": company_id,
                    "as_of": as_of.isoformat(),
                    "summary": result.summary,
                },
            )
    return results


def run_scheduler_loop(
    *,
    worker_name: str | None = None,
    cron_expr: str = ENGINE_SCHEDULE,
    timezone: str = ENGINE_SCHEDULE_TIMEZONE,
    idle_sleep_seconds: int = ENGINE_IDLE_SLEEP_SECONDS,
    max_sleep_seconds: int = ENGINE_MAX_SLEEP_SECONDS,
):
    if worker_name is None:
        worker_name = os.getenv("BONUS_ENGINE_WORKER_ID") or os.getenv("HOSTNAME") or "worker"

    logger.info(
        "bonus scheduler started",
        extra={
            "worker_name": worker_name,
            "cron": cron_expr,
            "timezone": timezone,
            "idle_sleep_seconds": idle_sleep_seconds,
            "max_sleep_seconds": max_sleep_seconds,
        },
    )

    next_run_at = compute_next_run_at(base_utc=_utcnow(), cron_expr=cron_expr, timezone=timezone)

    while True:
        now = _utcnow()
        if now < next_run_at:
            delta = (next_run_at - now).total_seconds()
            sleep_for = min(max_sleep_seconds, max(1, int(delta))) if delta > 0 else idle_sleep_seconds
            logger.debug(
                "bonus scheduler sleeping",
                extra={"sleep_for_seconds": sleep_for, "next_run_at": next_run_at.isoformat()},
            )
            time.sleep(sleep_for)
            continue

        db = SessionLocal()
        try:
            run_tick(db, now=now)
        except Exception:
            # Keep moving next_run_at forward to avoid a tight retry loop.
            logger.exception("bonus scheduler tick failed", extra={"worker_name": worker_name})
        finally:
            db.close()

        next_run_at = compute_next_run_at(base_utc=now, cron_expr=cron_expr, timezone=timezone)


def main():
    logging.basicConfig(level=os.getenv("LOG_LEVEL") or "INFO")
    run_scheduler_loop()


if __name__ == "__main__":
    main()
