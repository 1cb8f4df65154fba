"""bonus progress and awards

Revision ID: b83d5f0e6a21
Revises: 4e7b1a9c2d10
Create Date: 2026-03-04

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "b83d5f0e6a21"
down_revision: Union[str, Sequence[str], None] = "4e7b1a9c2d10"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    bind = op.get_bind()
    insp = sa.inspect(bind)

    if not insp.has_table("bonus_progress"):
        op.create_table(
            "bonus_progress",
            sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
            sa.Column("company_id", sa.String(length=50), nullable=False),
            sa.Column("rule_id", sa.Uuid(), sa.ForeignKey("bonus_rules.id"), nullable=False),
            sa.Column("worker_id", sa.String(length=100), nullable=False),
            sa.Column("window_start", sa.TIMESTAMP(), nullable=False),
            sa.Column("window_end", sa.TIMESTAMP(), nullable=False),
            sa.Column("last_observed_steps", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("last_computed_at", sa.TIMESTAMP(), nullable=False),
            sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
            sa.UniqueConstraint(
                "rule_id", "worker_id", "window_start", "window_end", name="uq_bonus_progress_rule_worker_window"
            ),
            sa.CheckConstraint("last_observed_steps >= 0", name="ck_bonus_progress_steps_non_negative"),
        )

    if not insp.has_table("bonus_awards"):
        op.create_table(
            "bonus_awards",
            sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
            sa.Column("company_id", sa.String(length=50), nullable=False),
            sa.Column("rule_id", sa.Uuid(), sa.ForeignKey("bonus_rules.id"), nullable=False),
            sa.Column("worker_id", sa.String(length=100), nullable=False),
            sa.Column("window_start", sa.TIMESTAMP(), nullable=False),
            sa.Column("window_end", sa.TIMESTAMP(), nullable=False),
            sa.Column("steps_awarded", sa.Integer(), nullable=False),
            sa.Column("bonus_amount_cents", sa.BigInteger(), nullable=False),
            sa.Column("currency", sa.String(length=3), nullable=False),
            sa.Column("reason", sa.String(length=500), nullable=True),
            sa.Column("payload", sa.JSON(), nullable=True),
            sa.Column("dedup_key", sa.String(length=300), nullable=True, unique=True),
            sa.Column("awarded_at", sa.TIMESTAMP(), server_default=sa.text("now()"), nullable=False),
            sa.CheckConstraint("bonus_amount_cents > 0", name="ck_bonus_awards_amount_positive"),
        )

    existing_indexes = {ix["name"] for ix in insp.get_indexes("bonus_awards")} if insp.has_table("bonus_awards") else set()
    if "ix_bonus_awards_rule_worker_window" not in existing_indexes:
        op.create_index(
            "ix_bonus_awards_rule_worker_window",
            "bonus_awards",
            ["rule_id", "worker_id", "window_start", "window_end"],
        )
    if "ix_bonus_awards_company_awarded_at" not in existing_indexes:
        op.create_index("ix_bonus_awards_company_awarded_at", "bonus_awards", ["company_id", "awarded_at"])


def downgrade() -> None:
    bind = op.get_bind()
    insp = sa.inspect(bind)

    if insp.has_table("bonus_awards"):
        existing_indexes = {ix["name"] for ix in insp.get_indexes("bonus_awards")}
        if "ix_bonus_awards_company_awarded_at" in existing_indexes:
            op.drop_index("ix_bonus_awards_company_awarded_at", table_name="bonus_awards")
        if "ix_bonus_awards_rule_worker_window" in existing_indexes:
            op.drop_index("ix_bonus_awards_rule_worker_window", table_name="bonus_awards")
        op.drop_table("bonus_awards")

    if insp.has_table("bonus_progress"):
        op.drop_table("bonus_progress")
