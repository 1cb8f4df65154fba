from datetime import datetime
from typing import Optional

from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field


class WorkerUpsert(BaseModel):
    workerId: str = Field(validation_alias=AliasChoices("workerId", "worker_id", "chatterId"))

    name: Optional[str] = Field(default=None, validation_alias=AliasChoices("name", "fullName", "full_name"))
    active: Optional[bool] = Field(default=None, validation_alias=AliasChoices("active", "isActive"))


class WorkerOut(BaseModel):
    id: UUID
    company_id: str
    worker_id: str

    name: Optional[str] = None
    active: bool

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ShiftCreate(BaseModel):
    externalId: str = Field(validation_alias=AliasChoices("externalId", "external_id", "shiftId", "id"))

    startAt: datetime = Field(validation_alias=AliasChoices("startAt", "start_at", "startTime", "start"))
    endAt: datetime = Field(validation_alias=AliasChoices("endAt", "end_at", "endTime", "end"))


class ShiftOut(BaseModel):
    id: UUID
    company_id: str
    worker_id: str
    external_id: str

    start_at: datetime
    end_at: datetime

    class Config:
        from_attributes = True


class EarningsEventCreate(BaseModel):
    workerId: str = Field(validation_alias=AliasChoices("workerId", "worker_id", "chatterId"))
    eventId: str = Field(validation_alias=AliasChoices("eventId", "event_id", "id"))

    amountCents: int = Field(validation_alias=AliasChoices("amountCents", "amount_cents"))
    occurredAt: datetime = Field(validation_alias=AliasChoices("occurredAt", "occurred_at", "date"))
    type: Optional[str] = "sale"
