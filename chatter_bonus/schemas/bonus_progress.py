from datetime import datetime
from typing import Optional

from uuid import UUID

from pydantic import BaseModel


class BonusProgressOut(BaseModel):
    id: UUID

    company_id: str
    rule_id: UUID
    worker_id: str

    rule_name: Optional[str] = None
    worker_name: Optional[str] = None

    window_start: datetime
    window_end: datetime

    last_observed_steps: int
    last_computed_at: datetime

    class Config:
        from_attributes = True
