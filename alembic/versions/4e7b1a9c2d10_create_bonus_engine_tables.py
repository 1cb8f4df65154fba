"""create bonus engine tables

Revision ID: 4e7b1a9c2d10
Revises: 
Create Date: 2026-03-02

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "4e7b1a9c2d10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not inspector.has_table("workers"):
        op.create_table(
            "workers",
            sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
            sa.Column("company_id", sa.String(length=50), nullable=False),
            sa.Column("worker_id", sa.String(length=100), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=True),
            sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.text("now()"), nullable=True),
            sa.Column("updated_at", sa.TIMESTAMP(), server_default=sa.text("now()"), nullable=True),
            sa.UniqueConstraint("company_id", "worker_id", name="uq_workers_company_worker"),
        )

    if not inspector.has_table("shifts"):
        op.create_table(
            "shifts",
            sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
            sa.Column("company_id", sa.String(length=50), nullable=False),
            sa.Column("worker_id", sa.String(length=100), nullable=False),
            sa.Column("external_id", sa.String(length=150), nullable=False),
            sa.Column("start_at", sa.TIMESTAMP(), nullable=False),
            sa.Column("end_at", sa.TIMESTAMP(), nullable=False),
            sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.text("now()"), nullable=True),
            sa.UniqueConstraint("company_id", "external_id", name="uq_shifts_company_external_id"),
        )
        op.create_index("ix_shifts_company_worker_start", "shifts", ["company_id", "worker_id", "start_at"])

    if not inspector.has_table("earnings_events"):
        op.create_table(
            "earnings_events",
            sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
            sa.Column("company_id", sa.String(length=50), nullable=False),
            sa.Column("worker_id", sa.String(length=100), nullable=False),
            sa.Column("event_id", sa.String(length=150), nullable=False),
            sa.Column("amount_cents", sa.BigInteger(), nullable=False),
            sa.Column("occurred_at", sa.TIMESTAMP(), nullable=False),
            sa.Column("type", sa.String(length=30), nullable=False, server_default="sale"),
            sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.text("now()"), nullable=True),
            sa.UniqueConstraint("company_id", "event_id", name="uq_earnings_events_company_event_id"),
        )
        op.create_index(
            "ix_earnings_events_company_worker_occurred",
            "earnings_events",
            ["company_id", "worker_id", "occurred_at"],
        )

    if not inspector.has_table("bonus_rules"):
        op.create_table(
            "bonus_rules",
            sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
            sa.Column("company_id", sa.String(length=50), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("scope", sa.String(length=20), nullable=False, server_default="worker"),
            sa.Column("window_type", sa.String(length=30), nullable=False),
            sa.Column("rule_type", sa.String(length=30), nullable=False, server_default="threshold_payout"),
            sa.Column("priority", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("currency", sa.String(length=3), nullable=False, server_default="EUR"),
            sa.Column("timezone", sa.String(length=64), nullable=False, server_default="Europe/Amsterdam"),
            sa.Column("config", sa.JSON(), nullable=False),
            sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.text("now()"), nullable=True),
            sa.Column("updated_at", sa.TIMESTAMP(), server_default=sa.text("now()"), nullable=True),
        )
        op.create_index("ix_bonus_rules_company_id", "bonus_rules", ["company_id"])


def downgrade() -> None:
    """Downgrade schema."""
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if inspector.has_table("bonus_rules"):
        op.drop_index("ix_bonus_rules_company_id", table_name="bonus_rules")
        op.drop_table("bonus_rules")
    if inspector.has_table("earnings_events"):
        op.drop_index("ix_earnings_events_company_worker_occurred", table_name="earnings_events")
        op.drop_table("earnings_events")
    if inspector.has_table("shifts"):
        op.drop_index("ix_shifts_company_worker_start", table_name="shifts")
        op.drop_table("shifts")
    if inspector.has_table("workers"):
        op.drop_table("workers")
