from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from chatter_bonus.db import get_db
from chatter_bonus.deps.company import get_active_company
from chatter_bonus.schemas.bonus_progress import BonusProgressOut
from chatter_bonus.services.progress_service import list_progress


router = APIRouter(prefix="/admin/bonus-progress", tags=["admin-bonus-progress"])


@router.get("", response_model=list[BonusProgressOut])
def list_bonus_progress(
    active_company: str = Depends(get_active_company),
    workerId: str | None = None,
    ruleId: UUID | None = None,
    limit: int = 200,
    db: Session = Depends(get_db),
):
    return list_progress(db, company_id=active_company, worker_id=workerId, rule_id=ruleId, limit=limit)
