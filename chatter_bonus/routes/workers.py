from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from chatter_bonus.db import get_db
from chatter_bonus.deps.company import get_active_company
from chatter_bonus.schemas.sync import ShiftCreate, ShiftOut, WorkerOut, WorkerUpsert
from chatter_bonus.services.sync_service import get_worker, record_shift, upsert_worker


router = APIRouter(prefix="/workers", tags=["workers"])


@router.post("/upsert", response_model=WorkerOut)
def upsert_worker_route(
    payload: WorkerUpsert,
    active_company: str = Depends(get_active_company),
    db: Session = Depends(get_db),
):
    worker = upsert_worker(db, active_company, payload.workerId, name=payload.name, active=payload.active)
    db.commit()
    db.refresh(worker)
    return worker


@router.get("/{worker_id}", response_model=WorkerOut)
def get_worker_route(
    worker_id: str,
    active_company: str = Depends(get_active_company),
    db: Session = Depends(get_db),
):
    worker = get_worker(db, active_company, worker_id)
    if not worker:
        raise HTTPException(status_code=404, detail="Worker not found")
    return worker


@router.post("/{worker_id}/shifts", response_model=ShiftOut)
def record_worker_shift(
    worker_id: str,
    payload: ShiftCreate,
    active_company: str = Depends(get_active_company),
    db: Session = Depends(get_db),
):
    if not get_worker(db, active_company, worker_id):
        raise HTTPException(status_code=404, detail="Worker not found")
    try:
        shift = record_shift(
            db,
            active_company,
            worker_id,
            external_id=payload.externalId,
            start_at=payload.startAt,
            end_at=payload.endAt,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    db.commit()
    db.refresh(shift)
    return shift
