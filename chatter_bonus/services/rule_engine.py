from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from chatter_bonus.config import RUN_MAX_ATTEMPTS, RUN_RETRY_BACKOFF_SECONDS
from chatter_bonus.errors import (
    BonusEngineError,
    ConcurrentProgressConflict,
    InvalidRuleConfiguration,
    PersistenceFailure,
    RuleInactive,
    RuleNotFound,
    WorkerNotFound,
)
from chatter_bonus.models.bonus_rule import BonusRule
from chatter_bonus.models.worker import Worker
from chatter_bonus.services.award_service import awards_in_window, create_award
from chatter_bonus.services.metric_service import (
    aggregate_metric,
    list_active_workers_with_activity,
    qualifying_total,
)
from chatter_bonus.services.progress_service import get_progress, record_progress
from chatter_bonus.services.rule_service import get_rule, list_active_rules
from chatter_bonus.services.tier_service import bonus_for_steps, resolve_tier, tiers_from_config
from chatter_bonus.services.window_service import (
    UTC,
    as_utc_aware,
    compute_window,
    make_shift_lookup,
)


logger = logging.getLogger(__name__)


class EvaluationState(str, Enum):
    IDLE = "IDLE"
    WINDOW_RESOLVED = "WINDOW_RESOLVED"
    AGGREGATED = "AGGREGATED"
    TIER_RESOLVED = "TIER_RESOLVED"
    DECIDED = "DECIDED"
    AWARD_EMITTED = "AWARD_EMITTED"
    NO_AWARD = "NO_AWARD"


@dataclass
class PreviewResult:
    rule_id: UUID
    rule_name: str
    rule_active: bool
    company_id: str
    worker_id: str

    as_of: datetime
    timezone: str
    window_start: datetime
    window_end: datetime
    window_reason: str = "calendar"

    raw_total_cents: int = 0
    total_cents: int = 0
    tier: dict | None = None
    steps_now: int = 0
    last_observed_steps: int = 0
    delta: int = 0

    entitled_bonus_cents: int = 0
    awarded_in_window_cents: int = 0
    already_awarded: bool = False
    expected_award_cents: int = 0
    steps_to_award: int = 0
    currency: str = "EUR"

    state: str = EvaluationState.IDLE.value
    reason: str = ""

    progress_version: int | None = None
    award_id: UUID | None = None


@dataclass
class WorkerRunStats:
    worker_id: str
    evaluated: int = 0
    awards_created: int = 0
    awarded_cents: int = 0


@dataclass
class RunFailure:
    rule_id: UUID | None
    worker_id: str | None
    code: str
    message: str


@dataclass
class RunResult:
    company_id: str
    as_of: datetime

    rules_evaluated: int = 0
    rules_skipped: int = 0
    pairs_evaluated: int = 0
    awards_created: int = 0
    total_awarded_cents: int = 0

    failures: list[RunFailure] = field(default_factory=list)
    interrupted: bool = False
    summary: str = ""

    worker_stats: dict[str, WorkerRunStats] = field(default_factory=dict)

    @property
    def workers(self) -> list[WorkerRunStats]:
        return list(self.worker_stats.values())

    def _stats(self, worker_id: str) -> WorkerRunStats:
        if worker_id not in self.worker_stats:
            self.worker_stats[worker_id] = WorkerRunStats(worker_id=worker_id)
        return self.worker_stats[worker_id]

    def record(self, evaluation: PreviewResult):
        self.pairs_evaluated += 1
        stats = self._stats(evaluation.worker_id)
        stats.evaluated += 1
        if evaluation.state == EvaluationState.AWARD_EMITTED.value:
            self.awards_created += 1
            self.total_awarded_cents += evaluation.expected_award_cents
            stats.awards_created += 1
            stats.awarded_cents += evaluation.expected_award_cents

    def fail(self, error: BonusEngineError, *, rule_id: UUID | None, worker_id: str | None):
        self.failures.append(
            RunFailure(rule_id=rule_id, worker_id=worker_id, code=error.code, message=error.message)
        )
        if worker_id is not None:
            self._stats(worker_id).evaluated += 1


def _utcnow() -> datetime:
    return datetime.now(UTC)


def format_cents(cents: int, currency: str) -> str:
    sign = "-" if cents < 0 else ""
    whole, frac = divmod(abs(int(cents)), 100)
    return f"{sign}{whole}.{frac:02d} {currency}"


def _require_worker(db: Session, company_id: str, worker_id: str) -> Worker:
    worker = (
        db.query(Worker)
        .filter(Worker.company_id == company_id)
        .filter(Worker.worker_id == worker_id)
        .first()
    )
    if not worker:
        raise WorkerNotFound("Worker not found", worker_id=worker_id)
    return worker


def _describe(result: PreviewResult, *, once_per_window: bool, lowest_min: int | None) -> str:
    def money(cents):
        return format_cents(cents, result.currency)

    if result.tier is None:
        if lowest_min is None:
            text = "Rule has no tiers."
        else:
            text = f"Total {money(result.total_cents)} is below the lowest tier ({money(lowest_min)})."
    elif result.steps_now == 0:
        text = f"Total {money(result.total_cents)} has not reached a paying tier."
    elif result.delta <= 0:
        text = f"No new tier since the last award (step {result.last_observed_steps})."
    elif once_per_window and result.already_awarded:
        text = "Already awarded once in this window."
    elif result.expected_award_cents <= 0:
        text = (
            f"Tier {result.tier['tierIndex']} reached but nothing left to award "
            f"({money(result.awarded_in_window_cents)} already awarded)."
        )
    else:
        text = (
            f"Total {money(result.total_cents)} reached tier {result.tier['tierIndex']} "
            f"(min {money(result.tier['minAmountCents'])}); award {money(result.expected_award_cents)}."
        )

    if result.window_reason == "no_shift_found":
        text += " No shift found; used the calendar day."
    elif result.window_reason == "shift_lookup_failed":
        text += " Shift lookup failed; used the calendar day."

    if not result.rule_active:
        text = "Rule is inactive (preview only). " + text
    return text


def _evaluate(
    db: Session,
    rule: BonusRule,
    worker_id: str,
    as_of: datetime,
    *,
    for_update: bool = False,
) -> PreviewResult:
    config = rule.config or {}
    shift_based = bool(config.get("shift_based"))
    once_per_window = bool(config.get("award_once_per_window", True))

    shift_lookup = None
    if shift_based:
        shift_lookup = make_shift_lookup(db, company_id=rule.company_id, worker_id=worker_id)

    window = compute_window(rule.window_type, as_of, rule.timezone, shift_based, shift_lookup)
    result = PreviewResult(
        rule_id=rule.id,
        rule_name=rule.name,
        rule_active=bool(rule.active),
        company_id=rule.company_id,
        worker_id=worker_id,
        as_of=as_of,
        timezone=rule.timezone,
        window_start=window.start,
        window_end=window.end,
        window_reason=window.reason,
        currency=rule.currency,
        state=EvaluationState.WINDOW_RESOLVED.value,
    )

    result.raw_total_cents = aggregate_metric(
        db,
        company_id=rule.company_id,
        worker_id=worker_id,
        metric=config.get("metric") or "earnings.amount_cents",
        window_start=window.start,
        window_end=window.end,
        include_refunds=bool(config.get("include_refunds")),
    )
    result.total_cents = qualifying_total(result.raw_total_cents)
    result.state = EvaluationState.AGGREGATED.value

    tiers = tiers_from_config(config)
    resolved = resolve_tier(result.total_cents, tiers)
    if resolved is not None:
        result.tier = resolved.as_dict()
        result.steps_now = resolved.steps
        result.entitled_bonus_cents = bonus_for_steps(resolved.steps, tiers)
    result.state = EvaluationState.TIER_RESOLVED.value

    progress = get_progress(
        db,
        rule_id=rule.id,
        worker_id=worker_id,
        window_start=window.start,
        window_end=window.end,
        for_update=for_update,
    )
    if progress is not None:
        result.last_observed_steps = int(progress.last_observed_steps or 0)
        result.progress_version = progress.version
    result.delta = result.steps_now - result.last_observed_steps

    award_count, awarded_cents = awards_in_window(
        db, rule_id=rule.id, worker_id=worker_id, window_start=window.start, window_end=window.end
    )
    result.already_awarded = award_count > 0
    result.awarded_in_window_cents = awarded_cents

    if result.delta <= 0:
        expected = 0
    elif once_per_window:
        expected = result.entitled_bonus_cents if not result.already_awarded else 0
    else:
        # Incremental: pay the difference between the tier now and what this window already got.
        expected = max(result.entitled_bonus_cents - awarded_cents, 0)

    result.expected_award_cents = expected
    if expected > 0:
        result.steps_to_award = result.steps_now if once_per_window else result.delta
    result.state = EvaluationState.DECIDED.value

    lowest_min = min((t.min_amount_cents for t in tiers), default=None)
    result.reason = _describe(result, once_per_window=once_per_window, lowest_min=lowest_min)
    return result


def _candidate_workers(db: Session, rule: BonusRule, as_of: datetime) -> list[str]:
    window = compute_window(rule.window_type, as_of, rule.timezone)
    start, end = window.start, window.end
    if (rule.config or {}).get("shift_based"):
        # shifts may start before local midnight or run past it
        start, end = start - timedelta(days=1), end + timedelta(days=1)
    return list_active_workers_with_activity(db, company_id=rule.company_id, window_start=start, window_end=end)


def preview_rule(
    db: Session,
    *,
    company_id: str,
    rule_id: UUID,
    worker_id: str,
    as_of: datetime | None = None,
) -> PreviewResult:
    """Evaluate one rule for one worker without writing anything."""
    as_of = as_utc_aware(as_of or _utcnow())
    rule = get_rule(db, company_id, rule_id)
    _require_worker(db, company_id, worker_id)
    return _evaluate(db, rule, worker_id, as_of)


def preview_rule_for_workers(
    db: Session,
    *,
    company_id: str,
    rule_id: UUID,
    as_of: datetime | None = None,
) -> list[PreviewResult]:
    as_of = as_utc_aware(as_of or _utcnow())
    rule = get_rule(db, company_id, rule_id)
    return [_evaluate(db, rule, worker_id, as_of) for worker_id in _candidate_workers(db, rule, as_of)]


def _award_pair(db: Session, rule: BonusRule, worker_id: str, as_of: datetime) -> PreviewResult:
    evaluation = _evaluate(db, rule, worker_id, as_of, for_update=True)
    config = rule.config or {}
    once_per_window = bool(config.get("award_once_per_window", True))
    now = _utcnow()

    skip = (
        evaluation.expected_award_cents <= 0
        or evaluation.delta <= 0
        or (once_per_window and evaluation.already_awarded)
    )
    if skip:
        if evaluation.progress_version is None:
            # first evaluation of this window opens its progress row
            record_progress(
                db,
                company_id=rule.company_id,
                rule_id=rule.id,
                worker_id=worker_id,
                window_start=evaluation.window_start,
                window_end=evaluation.window_end,
                steps=0,
                computed_at=now,
            )
        evaluation.state = EvaluationState.NO_AWARD.value
        return evaluation

    award = create_award(
        db,
        company_id=rule.company_id,
        rule_id=rule.id,
        worker_id=worker_id,
        window_start=evaluation.window_start,
        window_end=evaluation.window_end,
        steps_awarded=evaluation.steps_to_award,
        bonus_amount_cents=evaluation.expected_award_cents,
        currency=rule.currency,
        awarded_at=now,
        reason=evaluation.reason,
        payload={
            "ruleName": rule.name,
            "windowType": rule.window_type,
            "windowReason": evaluation.window_reason,
            "timezone": rule.timezone,
            "asOf": evaluation.as_of.isoformat(),
            "tier": evaluation.tier,
            "config": config,
            "totalCents": evaluation.total_cents,
            "rawTotalCents": evaluation.raw_total_cents,
            "previousSteps": evaluation.last_observed_steps,
        },
        once_per_window=once_per_window,
    )
    record_progress(
        db,
        company_id=rule.company_id,
        rule_id=rule.id,
        worker_id=worker_id,
        window_start=evaluation.window_start,
        window_end=evaluation.window_end,
        steps=evaluation.steps_now,
        computed_at=now,
        expected_version=evaluation.progress_version,
    )

    evaluation.award_id = award.id
    evaluation.state = EvaluationState.AWARD_EMITTED.value
    return evaluation


def _run_pair(
    db: Session,
    rule: BonusRule,
    worker_id: str,
    as_of: datetime,
    *,
    max_attempts: int,
    backoff_seconds: float,
) -> PreviewResult:
    """
    Evaluate and award one (rule, worker) pair in its own transaction.

    The award and the progress update are committed together. Lost races are
    retried with exponential backoff; storage errors become PersistenceFailure.
    """
    rule_id = rule.id
    last_conflict = None

    for attempt in range(1, max(1, max_attempts) + 1):
        try:
            evaluation = _award_pair(db, rule, worker_id, as_of)
            db.commit()
            return evaluation
        except (ConcurrentProgressConflict, IntegrityError) as e:
            db.rollback()
            last_conflict = e
            logger.info(
                "bonus progress conflict; retrying",
                extra={"rule_id": str(rule_id), "worker_id": worker_id, "attempt": attempt},
            )
            if attempt < max_attempts:
                time.sleep(backoff_seconds * (2 ** (attempt - 1)))
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(
                "bonus pair persistence failure",
                extra={"rule_id": str(rule_id), "worker_id": worker_id},
            )
            raise PersistenceFailure(str(e), rule_id=str(rule_id), worker_id=worker_id) from e
        except ValueError as e:
            db.rollback()
            raise InvalidRuleConfiguration(str(e), rule_id=str(rule_id), worker_id=worker_id) from e
        except BonusEngineError:
            db.rollback()
            raise

    raise ConcurrentProgressConflict(
        f"Gave up after {max_attempts} conflicting attempts",
        rule_id=str(rule_id),
        worker_id=worker_id,
    ) from last_conflict


def run_engine(
    db: Session,
    *,
    company_id: str,
    rule_id: UUID | None = None,
    worker_id: str | None = None,
    as_of: datetime | None = None,
    should_stop: Callable[[], bool] | None = None,
    max_attempts: int = RUN_MAX_ATTEMPTS,
    backoff_seconds: float = RUN_RETRY_BACKOFF_SECONDS,
) -> RunResult:
    """
    Evaluate active rules and record awards.

    Without ``rule_id`` every active rule of the company runs in priority
    order; without ``worker_id`` each rule visits the active workers with
    earnings in its window. Each pair commits on its own, so a failure is
    reported in the result and never undoes other pairs. ``should_stop`` is
    polled between workers.
    """
    as_of = as_utc_aware(as_of or _utcnow())
    result = RunResult(company_id=company_id, as_of=as_of)

    rules: list[BonusRule] = []
    if rule_id is not None:
        try:
            rules = [get_rule(db, company_id, rule_id, require_active=True)]
        except RuleInactive:
            result.rules_skipped += 1
        except RuleNotFound as e:
            result.fail(e, rule_id=rule_id, worker_id=worker_id)
    else:
        rules = list_active_rules(db, company_id)

    if worker_id is not None and rules:
        try:
            _require_worker(db, company_id, worker_id)
        except WorkerNotFound as e:
            result.fail(e, rule_id=rule_id, worker_id=worker_id)
            rules = []

    logger.info(
        "bonus run started",
        extra={
            "company_id": company_id,
            "rule_id": (str(rule_id) if rule_id else None),
            "worker_id": worker_id,
            "as_of": as_of.isoformat(),
            "rules": len(rules),
        },
    )

    for rule in rules:
        if result.interrupted:
            break
        current_rule_id = rule.id
        result.rules_evaluated += 1

        try:
            workers = [worker_id] if worker_id is not None else _candidate_workers(db, rule, as_of)
        except BonusEngineError as e:
            logger.warning(
                "bonus rule failed",
                extra={"rule_id": str(current_rule_id), "code": e.code, "error": e.message},
            )
            result.fail(e, rule_id=current_rule_id, worker_id=None)
            continue

        for wid in workers:
            if should_stop is not None and should_stop():
                result.interrupted = True
                break
            try:
                evaluation = _run_pair(
                    db,
                    rule,
                    wid,
                    as_of,
                    max_attempts=max_attempts,
                    backoff_seconds=backoff_seconds,
                )
            except BonusEngineError as e:
                logger.warning(
                    "bonus pair failed",
                    extra={"rule_id": str(current_rule_id), "worker_id": wid, "code": e.code, "error": e.message},
                )
                result.fail(e, rule_id=current_rule_id, worker_id=wid)
                continue

            result.record(evaluation)
            if evaluation.award_id is not None:
                logger.info(
                    "bonus awarded",
                    extra={
                        "award_id": str(evaluation.award_id),
                        "rule_id": str(current_rule_id),
                        "worker_id": wid,
                        "amount_cents": evaluation.expected_award_cents,
                        "steps": evaluation.steps_to_award,
                    },
                )

    result.summary = (
        f"{result.rules_evaluated} rules evaluated, {result.awards_created} awards issued, "
        f"{len(result.failures)} failures"
    )
    if result.interrupted:
        result.summary += " (interrupted)"

    logger.info(
        "bonus run finished",
        extra={
            "company_id": company_id,
            "rules_evaluated": result.rules_evaluated,
            "awards_created": result.awards_created,
            "total_awarded_cents": result.total_awarded_cents,
            "failures": len(result.failures),
            "interrupted": result.interrupted,
        },
    )
    return result
