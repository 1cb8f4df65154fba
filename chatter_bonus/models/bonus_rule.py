import uuid

from sqlalchemy import Boolean, Column, Integer, JSON, String, TIMESTAMP, Uuid
from sqlalchemy.sql import func

from chatter_bonus.db import Base


class BonusRule(Base):
    __tablename__ = "bonus_rules"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    company_id = Column(String(50), nullable=False, index=True)

    name = Column(String(200), nullable=False)

    scope = Column(String(20), nullable=False, default="worker")
    window_type = Column(String(30), nullable=False)  # calendar_day / calendar_week / calendar_month
    rule_type = Column(String(30), nullable=False, default="threshold_payout")

    priority = Column(Integer, nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=True)

    currency = Column(String(3), nullable=False, default="EUR")
    timezone = Column(String(64), nullable=False, default="Europe/Amsterdam")

    # metric / tiers / include_refunds / shift_based / award_once_per_window
    config = Column(JSON, nullable=False, default=dict)

    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())
