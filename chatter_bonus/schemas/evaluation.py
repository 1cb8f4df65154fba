from datetime import datetime
from typing import Any, Dict, Optional

from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field


class PreviewRequest(BaseModel):
    worker_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("worker_id", "workerId"))
    as_of: Optional[datetime] = Field(default=None, validation_alias=AliasChoices("as_of", "asOf"))


class RunRequest(BaseModel):
    rule_id: Optional[UUID] = Field(default=None, validation_alias=AliasChoices("rule_id", "ruleId"))
    worker_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("worker_id", "workerId"))
    as_of: Optional[datetime] = Field(default=None, validation_alias=AliasChoices("as_of", "asOf"))


class PreviewOut(BaseModel):
    rule_id: UUID
    rule_name: str
    rule_active: bool
    company_id: str
    worker_id: str

    as_of: datetime
    timezone: str
    window_start: datetime
    window_end: datetime
    window_reason: str

    raw_total_cents: int
    total_cents: int
    tier: Optional[Dict[str, Any]] = None
    steps_now: int
    last_observed_steps: int
    delta: int

    entitled_bonus_cents: int
    awarded_in_window_cents: int
    already_awarded: bool
    expected_award_cents: int
    steps_to_award: int
    currency: str

    state: str
    reason: str

    class Config:
        from_attributes = True


class BatchPreviewOut(BaseModel):
    rule_id: UUID
    as_of: datetime
    results: list[PreviewOut]
    expected_total_cents: int


class RunFailureOut(BaseModel):
    rule_id: Optional[UUID] = None
    worker_id: Optional[str] = None
    code: str
    message: str

    class Config:
        from_attributes = True


class WorkerRunOut(BaseModel):
    worker_id: str
    evaluated: int
    awards_created: int
    awarded_cents: int

    class Config:
        from_attributes = True


class RunOut(BaseModel):
    company_id: str
    as_of: datetime

    rules_evaluated: int
    rules_skipped: int
    pairs_evaluated: int
    awards_created: int
    total_awarded_cents: int

    workers: list[WorkerRunOut]
    failures: list[RunFailureOut]
    interrupted: bool
    summary: str

    class Config:
        from_attributes = True
