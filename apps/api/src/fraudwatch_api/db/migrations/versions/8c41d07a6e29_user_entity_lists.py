"""user_entity_lists

Revision ID: 8c41d07a6e29
Revises: 5f2a9c7e1b04
Create Date: 2026-10-19 10:12:44.208391

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "8c41d07a6e29"
down_revision: str | Sequence[str] | None = "5f2a9c7e1b04"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Add per-user blocked and safe lists."""
    op.create_table(
        "user_entity_lists",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "user_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("list_name", sa.String(10), nullable=False),
        sa.Column("entity", sa.String(255), nullable=False),
        sa.Column("entity_type", sa.String(10), nullable=False),
        sa.Column("added_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "user_id", "entity", "entity_type", name="uq_entity_list_user_entity"
        ),
    )
    op.create_index("ix_entity_lists_list_name", "user_entity_lists", ["list_name"])

    # My-reports lookups
    op.create_index(
        "ix_fraud_reports_reporter_timestamp",
        "fraud_reports",
        ["reporter_id", "timestamp"],
    )


def downgrade() -> None:
    """Drop the lists and the reporter index."""
    op.drop_index("ix_fraud_reports_reporter_timestamp", table_name="fraud_reports")
    op.drop_table("user_entity_lists")
