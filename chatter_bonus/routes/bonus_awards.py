from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from chatter_bonus.db import get_db
from chatter_bonus.deps.company import get_active_company
from chatter_bonus.schemas.bonus_award import BonusAwardListOut, BonusAwardOut
from chatter_bonus.services.award_service import get_award, list_awards


router = APIRouter(prefix="/admin/bonus-awards", tags=["admin-bonus-awards"])


@router.get("", response_model=BonusAwardListOut)
def list_bonus_awards(
    active_company: str = Depends(get_active_company),
    workerId: str | None = None,
    ruleId: UUID | None = None,
    date_from: datetime | None = Query(default=None, alias="from"),
    date_to: datetime | None = Query(default=None, alias="to"),
    minAmountCents: int | None = None,
    maxAmountCents: int | None = None,
    limit: int = 20,
    offset: int = 0,
    db: Session = Depends(get_db),
):
    if minAmountCents is not None and maxAmountCents is not None and minAmountCents > maxAmountCents:
        raise HTTPException(status_code=400, detail="minAmountCents must be <= maxAmountCents")

    return list_awards(
        db,
        company_id=active_company,
        worker_id=workerId,
        rule_id=ruleId,
        date_from=date_from,
        date_to=date_to,
        min_amount_cents=minAmountCents,
        max_amount_cents=maxAmountCents,
        limit=limit,
        offset=offset,
    )


@router.get("/{award_id}", response_model=BonusAwardOut)
def get_bonus_award(
    award_id: UUID,
    active_company: str = Depends(get_active_company),
    db: Session = Depends(get_db),
):
    obj = get_award(db, company_id=active_company, award_id=award_id)
    if not obj:
        raise HTTPException(status_code=404, detail="Bonus award not found")
    return obj
