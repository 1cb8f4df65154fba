from uuid import UUID

from sqlalchemy import asc
from sqlalchemy.orm import Session

from chatter_bonus.config import DEFAULT_CURRENCY, DEFAULT_METRIC, DEFAULT_TIMEZONE, SUPPORTED_CURRENCIES
from chatter_bonus.errors import (
    InvalidRuleConfiguration,
    InvalidTierConfiguration,
    RuleInactive,
    RuleLocked,
    RuleNotFound,
    WindowResolutionFailure,
)
from chatter_bonus.models.bonus_award import BonusAward
from chatter_bonus.models.bonus_rule import BonusRule
from chatter_bonus.services.metric_service import SUPPORTED_METRICS
from chatter_bonus.services.window_service import WINDOW_TYPES, get_zone


def normalize_config(config: dict | None, window_type: str) -> dict:
    """Validate a rule config and return its canonical stored form."""
    config = config or {}

    metric = config.get("metric") or DEFAULT_METRIC
    if metric not in SUPPORTED_METRICS:
        raise InvalidRuleConfiguration(f"Unsupported metric: {metric}", field="metric")

    raw_tiers = config.get("tiers") or []
    if not raw_tiers:
        raise InvalidTierConfiguration("At least one tier is required", field="tiers")

    tiers = []
    seen = set()
    for i, t in enumerate(raw_tiers):
        try:
            min_amount = int(t["min_amount_cents"])
            bonus = int(t["bonus_cents"])
        except (KeyError, TypeError, ValueError):
            raise InvalidTierConfiguration(f"Tier {i} must define integer min_amount_cents and bonus_cents", field="tiers")
        if min_amount < 0 or bonus < 0:
            raise InvalidTierConfiguration(f"Tier {i} amounts must be >= 0", field="tiers")
        if min_amount in seen:
            raise InvalidTierConfiguration(f"Duplicate tier minimum: {min_amount}", field="tiers")
        seen.add(min_amount)
        tiers.append({"min_amount_cents": min_amount, "bonus_cents": bonus})

    tiers.sort(key=lambda x: x["min_amount_cents"])

    return {
        "metric": metric,
        "tiers": tiers,
        "include_refunds": bool(config.get("include_refunds", False)),
        "shift_based": bool(config.get("shift_based")) if window_type == "calendar_day" else False,
        "award_once_per_window": bool(config.get("award_once_per_window", True)),
    }


def _validate_rule_fields(*, window_type: str, currency: str, timezone: str, scope: str, rule_type: str):
    if window_type not in WINDOW_TYPES:
        raise InvalidRuleConfiguration(f"Unsupported window_type: {window_type}", field="window_type")
    if currency not in SUPPORTED_CURRENCIES:
        raise InvalidRuleConfiguration(f"Unsupported currency: {currency}", field="currency")
    if scope != "worker":
        raise InvalidRuleConfiguration("scope must be 'worker'", field="scope")
    if rule_type != "threshold_payout":
        raise InvalidRuleConfiguration("rule_type must be 'threshold_payout'", field="rule_type")
    try:
        get_zone(timezone)
    except WindowResolutionFailure as e:
        raise InvalidRuleConfiguration(e.message, field="timezone") from e


def get_rule(db: Session, company_id: str, rule_id: UUID, *, require_active: bool = False) -> BonusRule:
    rule = (
        db.query(BonusRule)
        .filter(BonusRule.id == rule_id)
        .filter(BonusRule.company_id == company_id)
        .first()
    )
    if not rule:
        raise RuleNotFound("Bonus rule not found", rule_id=str(rule_id))
    if require_active and not rule.active:
        raise RuleInactive("Bonus rule is inactive", rule_id=str(rule_id))
    return rule


def list_rules(
    db: Session,
    company_id: str,
    *,
    search: str | None = None,
    active: bool | None = None,
    limit: int = 100,
    offset: int = 0,
):
    q = db.query(BonusRule).filter(BonusRule.company_id == company_id)
    if search:
        q = q.filter(BonusRule.name.ilike(f"%{search.strip()}%"))
    if active is not None:
        q = q.filter(BonusRule.active.is_(active))

    limit = max(1, min(limit, 200))
    offset = max(0, offset)

    return q.order_by(asc(BonusRule.priority), asc(BonusRule.name)).offset(offset).limit(limit).all()


def list_active_rules(db: Session, company_id: str):
    return (
        db.query(BonusRule)
        .filter(BonusRule.company_id == company_id)
        .filter(BonusRule.active.is_(True))
        .order_by(asc(BonusRule.priority), asc(BonusRule.id))
        .all()
    )


def list_companies_with_active_rules(db: Session) -> list[str]:
    rows = (
        db.query(BonusRule.company_id)
        .filter(BonusRule.active.is_(True))
        .distinct()
        .order_by(BonusRule.company_id.asc())
        .all()
    )
    return [r[0] for r in rows]


def rule_has_awards(db: Session, rule_id: UUID) -> bool:
    return db.query(BonusAward.id).filter(BonusAward.rule_id == rule_id).first() is not None


def create_rule(db: Session, company_id: str, data: dict) -> BonusRule:
    window_type = data.get("window_type") or "calendar_day"
    currency = (data.get("currency") or DEFAULT_CURRENCY).upper()
    timezone = data.get("timezone") or DEFAULT_TIMEZONE

    name = (data.get("name") or "").strip()
    if not name:
        raise InvalidRuleConfiguration("name is required", field="name")

    _validate_rule_fields(
        window_type=window_type,
        currency=currency,
        timezone=timezone,
        scope=data.get("scope") or "worker",
        rule_type=data.get("rule_type") or "threshold_payout",
    )

    rule = BonusRule(
        company_id=company_id,
        name=name,
        scope="worker",
        window_type=window_type,
        rule_type="threshold_payout",
        priority=int(data.get("priority") or 0),
        active=bool(data.get("active", True)),
        currency=currency,
        timezone=timezone,
        config=normalize_config(data.get("config"), window_type),
    )
    db.add(rule)
    db.flush()
    return rule


def update_rule(db: Session, company_id: str, rule_id: UUID, data: dict) -> BonusRule:
    rule = get_rule(db, company_id, rule_id)

    window_type = data.get("window_type") or rule.window_type
    currency = (data.get("currency") or rule.currency).upper()
    timezone = data.get("timezone") or rule.timezone

    _validate_rule_fields(
        window_type=window_type,
        currency=currency,
        timezone=timezone,
        scope=rule.scope,
        rule_type=rule.rule_type,
    )

    if data.get("config") is not None:
        config = normalize_config(data["config"], window_type)
    elif window_type != rule.window_type:
        config = normalize_config(rule.config, window_type)
    else:
        config = rule.config

    if rule_has_awards(db, rule.id):
        # Past awards carry their own snapshot; only future-facing fields may move.
        old_shape = {k: v for k, v in (rule.config or {}).items() if k != "tiers"}
        new_shape = {k: v for k, v in config.items() if k != "tiers"}
        changed = []
        if window_type != rule.window_type:
            changed.append("window_type")
        if currency != rule.currency:
            changed.append("currency")
        if timezone != rule.timezone:
            changed.append("timezone")
        if old_shape != new_shape:
            changed.append("config")
        if changed:
            raise RuleLocked(
                "Rule already has awards; only name, active, priority and tiers can change",
                rule_id=str(rule.id),
                fields=changed,
            )

    if "name" in data and data["name"] is not None:
        name = data["name"].strip()
        if not name:
            raise InvalidRuleConfiguration("name is required", field="name")
        rule.name = name
    if data.get("priority") is not None:
        rule.priority = int(data["priority"])
    if data.get("active") is not None:
        rule.active = bool(data["active"])

    rule.window_type = window_type
    rule.currency = currency
    rule.timezone = timezone
    rule.config = config

    db.flush()
    return rule


def set_rule_active(db: Session, company_id: str, rule_id: UUID, active: bool) -> BonusRule:
    rule = get_rule(db, company_id, rule_id)
    rule.active = bool(active)
    db.flush()
    return rule


def clone_rule(db: Session, company_id: str, rule_id: UUID) -> BonusRule:
    source = get_rule(db, company_id, rule_id)
    clone = BonusRule(
        company_id=company_id,
        name=f"{source.name} (copy)",
        scope=source.scope,
        window_type=source.window_type,
        rule_type=source.rule_type,
        priority=source.priority,
        active=False,
        currency=source.currency,
        timezone=source.timezone,
        config=dict(source.config or {}),
    )
    db.add(clone)
    db.flush()
    return clone
