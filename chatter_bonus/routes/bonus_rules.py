from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from chatter_bonus.config import DEFAULT_CURRENCY, DEFAULT_TIMEZONE, SUPPORTED_CURRENCIES
from chatter_bonus.db import get_db
from chatter_bonus.deps.company import get_active_company
from chatter_bonus.schemas.bonus_rule import (
    BonusRuleActiveUpdate,
    BonusRuleCreate,
    BonusRuleOut,
    BonusRuleUpdate,
)
from chatter_bonus.schemas.evaluation import BatchPreviewOut, PreviewOut, PreviewRequest
from chatter_bonus.services import rule_service
from chatter_bonus.services.rule_engine import preview_rule, preview_rule_for_workers
from chatter_bonus.services.window_service import UTC, as_utc_aware


router = APIRouter(prefix="/admin/bonus-rules", tags=["admin-bonus-rules"])


def _check_company(payload_company: str | None, active_company: str):
    if payload_company is not None and payload_company != active_company:
        raise HTTPException(status_code=400, detail="payload.companyId does not match active company context")


@router.get("/ui-catalog")
def get_bonus_rules_ui_catalog():
    return {
        "jsonSchema": BonusRuleCreate.model_json_schema(),
        "windowTypes": [
            {"type": "calendar_day", "title": "Calendar day", "description": "Totals for a calendar day (or shift-based if enabled)."},
            {"type": "calendar_week", "title": "Calendar week", "description": "Totals for the calendar week (Monday to Sunday)."},
            {"type": "calendar_month", "title": "Calendar month", "description": "Totals for the calendar month."},
        ],
        "currencies": list(SUPPORTED_CURRENCIES),
        "defaults": {
            "currency": DEFAULT_CURRENCY,
            "timezone": DEFAULT_TIMEZONE,
            "priority": 10,
            "config": {
                "metric": "earnings.amount_cents",
                "tiers": [{"min_amount_cents": 0, "bonus_cents": 0}],
                "include_refunds": False,
                "shift_based": True,
                "award_once_per_window": True,
            },
        },
        "notes": [
            "shift_based only applies to calendar_day windows.",
            "Tier minimums must be unique; amounts are in cents.",
        ],
    }


@router.get("", response_model=list[BonusRuleOut])
def list_bonus_rules(
    active_company: str = Depends(get_active_company),
    search: str | None = None,
    active: bool | None = None,
    limit: int = 100,
    offset: int = 0,
    db: Session = Depends(get_db),
):
    return rule_service.list_rules(db, active_company, search=search, active=active, limit=limit, offset=offset)


@router.post("", response_model=BonusRuleOut)
def create_bonus_rule(
    payload: BonusRuleCreate,
    active_company: str = Depends(get_active_company),
    db: Session = Depends(get_db),
):
    _check_company(payload.company_id, active_company)
    rule = rule_service.create_rule(db, active_company, payload.model_dump())
    db.commit()
    db.refresh(rule)
    return rule


@router.get("/{rule_id}", response_model=BonusRuleOut)
def get_bonus_rule(
    rule_id: UUID,
    active_company: str = Depends(get_active_company),
    db: Session = Depends(get_db),
):
    return rule_service.get_rule(db, active_company, rule_id)


@router.patch("/{rule_id}", response_model=BonusRuleOut)
def update_bonus_rule(
    rule_id: UUID,
    payload: BonusRuleUpdate,
    active_company: str = Depends(get_active_company),
    db: Session = Depends(get_db),
):
    _check_company(payload.company_id, active_company)
    data = payload.model_dump(exclude_unset=True)
    data.pop("company_id", None)
    rule = rule_service.update_rule(db, active_company, rule_id, data)
    db.commit()
    db.refresh(rule)
    return rule


@router.post("/{rule_id}/active", response_model=BonusRuleOut)
def set_bonus_rule_active(
    rule_id: UUID,
    payload: BonusRuleActiveUpdate,
    active_company: str = Depends(get_active_company),
    db: Session = Depends(get_db),
):
    rule = rule_service.set_rule_active(db, active_company, rule_id, payload.active)
    db.commit()
    db.refresh(rule)
    return rule


@router.post("/{rule_id}/clone", response_model=BonusRuleOut)
def clone_bonus_rule(
    rule_id: UUID,
    active_company: str = Depends(get_active_company),
    db: Session = Depends(get_db),
):
    rule = rule_service.clone_rule(db, active_company, rule_id)
    db.commit()
    db.refresh(rule)
    return rule


@router.post("/{rule_id}/preview", response_model=PreviewOut | BatchPreviewOut)
def preview_bonus_rule(
    rule_id: UUID,
    payload: PreviewRequest,
    active_company: str = Depends(get_active_company),
    db: Session = Depends(get_db),
):
    as_of = as_utc_aware(payload.as_of or datetime.now(UTC))

    if payload.worker_id:
        result = preview_rule(
            db,
            company_id=active_company,
            rule_id=rule_id,
            worker_id=payload.worker_id,
            as_of=as_of,
        )
        return PreviewOut.model_validate(result)

    results = preview_rule_for_workers(db, company_id=active_company, rule_id=rule_id, as_of=as_of)
    previews = [PreviewOut.model_validate(r) for r in results]
    return BatchPreviewOut(
        rule_id=rule_id,
        as_of=as_of,
        results=previews,
        expected_total_cents=sum(p.expected_award_cents for p in previews),
    )
