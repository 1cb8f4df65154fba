import uuid

from sqlalchemy import Boolean, Column, String, TIMESTAMP, UniqueConstraint, Uuid
from sqlalchemy.sql import func

from chatter_bonus.db import Base


class Worker(Base):
    __tablename__ = "workers"

    __table_args__ = (UniqueConstraint("company_id", "worker_id", name="uq_workers_company_worker"),)

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    company_id = Column(String(50), nullable=False)
    worker_id = Column(String(100), nullable=False)

    name = Column(String(200))
    active = Column(Boolean, nullable=False, default=True)

    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())
