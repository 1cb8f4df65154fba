from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from chatter_bonus.db import get_db
from chatter_bonus.deps.company import get_active_company
from chatter_bonus.schemas.evaluation import RunOut, RunRequest
from chatter_bonus.services.rule_engine import run_engine


router = APIRouter(prefix="/admin/bonus-engine", tags=["admin-bonus-engine"])


@router.post("/run", response_model=RunOut)
def run_bonus_engine(
    payload: RunRequest,
    active_company: str = Depends(get_active_company),
    db: Session = Depends(get_db),
):
    result = run_engine(
        db,
        company_id=active_company,
        rule_id=payload.rule_id,
        worker_id=payload.worker_id,
        as_of=payload.as_of,
    )
    return RunOut.model_validate(result)
