import uuid

from sqlalchemy import BigInteger, Column, ForeignKey, Index, Integer, JSON, String, TIMESTAMP, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from chatter_bonus.db import Base


class BonusAward(Base):
    __tablename__ = "bonus_awards"

    __table_args__ = (
        Index("ix_bonus_awards_rule_worker_window", "rule_id", "worker_id", "window_start", "window_end"),
        Index("ix_bonus_awards_company_awarded_at", "company_id", "awarded_at"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    company_id = Column(String(50), nullable=False)
    rule_id = Column(Uuid(as_uuid=True), ForeignKey("bonus_rules.id"), nullable=False)
    worker_id = Column(String(100), nullable=False)

    window_start = Column(TIMESTAMP, nullable=False)
    window_end = Column(TIMESTAMP, nullable=False)

    steps_awarded = Column(Integer, nullable=False)
    bonus_amount_cents = Column(BigInteger, nullable=False)
    currency = Column(String(3), nullable=False)

    reason = Column(String(500), nullable=True)
    payload = Column(JSON, nullable=True)

    # Only set for once-per-window rules; the unique index rejects a second award
    dedup_key = Column(String(300), nullable=True, unique=True)

    awarded_at = Column(TIMESTAMP, nullable=False, server_default=func.now())

    rule = relationship("BonusRule")
    worker = relationship(
        "Worker",
        primaryjoin="and_(foreign(BonusAward.company_id) == Worker.company_id, "
        "foreign(BonusAward.worker_id) == Worker.worker_id)",
        viewonly=True,
    )

    @property
    def rule_name(self):
        return self.rule.name if self.rule is not None else None

    @property
    def worker_name(self):
        return self.worker.name if self.worker is not None else None
