from datetime import datetime
from typing import Any, Dict, Optional

from uuid import UUID

from pydantic import BaseModel


class BonusAwardOut(BaseModel):
    id: UUID

    company_id: str
    rule_id: UUID
    worker_id: str

    rule_name: Optional[str] = None
    worker_name: Optional[str] = None

    window_start: datetime
    window_end: datetime

    steps_awarded: int
    bonus_amount_cents: int
    currency: str

    reason: Optional[str] = None
    payload: Optional[Dict[str, Any]] = None

    awarded_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AwardTotalsOut(BaseModel):
    count: int
    amountCents: int


class AwardListTotalsOut(BaseModel):
    page: AwardTotalsOut
    filtered: AwardTotalsOut


class BonusAwardListOut(BaseModel):
    rows: list[BonusAwardOut]
    totalCount: int
    totals: AwardListTotalsOut
