"""automation_status singleton and check_history

Revision ID: 001
Revises:
Create Date: (run alembic upgrade head)

- automation_status: exactly one row (id = 1); monitored number, cached document URL, schedule, run lease.
- check_history: append-only, one row per check.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "automation_status",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column("is_running", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("search_number", sa.String(64), nullable=False),
        sa.Column("cached_document_url", sa.Text(), nullable=True),
        sa.Column("cached_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_check_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("next_check_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_result_json", sa.Text(), nullable=True),
        sa.Column("lease_owner", sa.String(64), nullable=True),
        sa.Column("lease_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("id = 1", name="ck_automation_status_singleton"),
    )
    op.create_index("ix_automation_status_updated_at", "automation_status", ["updated_at"])
    op.create_table(
        "check_history",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("document_url", sa.Text(), nullable=True),
        sa.Column("search_number", sa.String(64), nullable=False),
        sa.Column("found", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("match_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("email_sent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("contexts_json", sa.Text(), nullable=True),
        sa.Column("source", sa.String(16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_check_history_source", "check_history", ["source"])
    op.create_index("ix_check_history_created_at", "check_history", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_check_history_created_at", table_name="check_history")
    op.drop_index("ix_check_history_source", table_name="check_history")
    op.drop_table("check_history")
    op.drop_index("ix_automation_status_updated_at", table_name="automation_status")
    op.drop_table("automation_status")
