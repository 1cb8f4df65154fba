from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from chatter_bonus.db import get_db
from chatter_bonus.deps.company import get_active_company
from chatter_bonus.schemas.sync import EarningsEventCreate
from chatter_bonus.services.sync_service import get_worker, ingest_earnings_event


router = APIRouter(prefix="/earnings", tags=["earnings"])


@router.post("")
def ingest_earnings(
    event: EarningsEventCreate,
    active_company: str = Depends(get_active_company),
    db: Session = Depends(get_db),
):
    if not get_worker(db, active_company, event.workerId):
        raise HTTPException(status_code=404, detail="Worker not found. Use /workers/upsert before sending earnings.")

    row, created = ingest_earnings_event(
        db,
        active_company,
        worker_id=event.workerId,
        event_id=event.eventId,
        amount_cents=event.amountCents,
        occurred_at=event.occurredAt,
        type=event.type,
    )
    db.commit()
    return {
        "earningsEventId": str(row.id),
        "eventId": row.event_id,
        "created": created,
    }
