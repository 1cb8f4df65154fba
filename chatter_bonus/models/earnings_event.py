import uuid

from sqlalchemy import BigInteger, Column, Index, String, TIMESTAMP, UniqueConstraint, Uuid
from sqlalchemy.sql import func

from chatter_bonus.db import Base


class EarningsEvent(Base):
    __tablename__ = "earnings_events"

    __table_args__ = (
        UniqueConstraint("company_id", "event_id", name="uq_earnings_events_company_event_id"),
        Index("ix_earnings_events_company_worker_occurred", "company_id", "worker_id", "occurred_at"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    company_id = Column(String(50), nullable=False)
    worker_id = Column(String(100), nullable=False)
    event_id = Column(String(150), nullable=False)

    amount_cents = Column(BigInteger, nullable=False)  # negative = refund
    occurred_at = Column(TIMESTAMP, nullable=False)
    type = Column(String(30), nullable=False, default="sale")

    created_at = Column(TIMESTAMP, server_default=func.now())
