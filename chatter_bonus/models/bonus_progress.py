import uuid

from sqlalchemy import Column, ForeignKey, Integer, String, TIMESTAMP, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from chatter_bonus.db import Base


class BonusProgress(Base):
    __tablename__ = "bonus_progress"

    __table_args__ = (
        UniqueConstraint(
            "rule_id", "worker_id", "window_start", "window_end", name="uq_bonus_progress_rule_worker_window"
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    company_id = Column(String(50), nullable=False)
    rule_id = Column(Uuid(as_uuid=True), ForeignKey("bonus_rules.id"), nullable=False)
    worker_id = Column(String(100), nullable=False)

    window_start = Column(TIMESTAMP, nullable=False)
    window_end = Column(TIMESTAMP, nullable=False)

    last_observed_steps = Column(Integer, nullable=False, default=0)
    last_computed_at = Column(TIMESTAMP, nullable=False)

    # bumped on every write; conditional updates compare against it
    version = Column(Integer, nullable=False, default=1)

    rule = relationship("BonusRule")
    worker = relationship(
        "Worker",
        primaryjoin="and_(foreign(BonusProgress.company_id) == Worker.company_id, "
        "foreign(BonusProgress.worker_id) == Worker.worker_id)",
        viewonly=True,
    )

    @property
    def rule_name(self):
        return self.rule.name if self.rule is not None else None

    @property
    def worker_name(self):
        return self.worker.name if self.worker is not None else None
