import uuid

from sqlalchemy import Column, Index, String, TIMESTAMP, UniqueConstraint, Uuid
from sqlalchemy.sql import func

from chatter_bonus.db import Base


class Shift(Base):
    __tablename__ = "shifts"

    __table_args__ = (
        UniqueConstraint("company_id", "external_id", name="uq_shifts_company_external_id"),
        Index("ix_shifts_company_worker_start", "company_id", "worker_id", "start_at"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    company_id = Column(String(50), nullable=False)
    worker_id = Column(String(100), nullable=False)
    external_id = Column(String(150), nullable=False)

    start_at = Column(TIMESTAMP, nullable=False)
    end_at = Column(TIMESTAMP, nullable=False)

    created_at = Column(TIMESTAMP, server_default=func.now())
