"""initial_schema

Revision ID: 5f2a9c7e1b04
Revises:
Create Date: 2026-10-12 09:41:18.512733

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "5f2a9c7e1b04"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create initial database schema."""
    # Users table
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("name", sa.String(255)),
        sa.Column("phone", sa.String(20)),
        # Timestamps
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            onupdate=sa.func.now(),
        ),
    )
    op.create_index("ix_users_email", "users", ["email"])

    # Protection registrations (one row per user and channel)
    op.create_table(
        "protection_registrations",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "user_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("alert_type", sa.String(20), nullable=False),
        sa.Column("registered_entity", sa.String(255), default=""),
        sa.Column("enabled", sa.Boolean, default=False),
        sa.Column("alert_mode", sa.String(20), default="popup"),
        sa.Column("activated_at", sa.DateTime(timezone=True)),
        sa.UniqueConstraint("user_id", "alert_type", name="uq_protection_user_type"),
    )
    op.create_index(
        "ix_protection_lookup",
        "protection_registrations",
        ["alert_type", "registered_entity", "enabled"],
    )

    # Community fraud reports
    op.create_table(
        "fraud_reports",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("target_entity", sa.String(255), nullable=False),
        sa.Column("entity_type", sa.String(10), nullable=False),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("description", sa.Text, default=""),
        sa.Column("reporter_id", sa.String(36)),
        sa.Column("is_active", sa.Boolean, default=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_fraud_reports_target_timestamp",
        "fraud_reports",
        ["target_entity", "timestamp"],
    )
    op.create_index("ix_fraud_reports_category", "fraud_reports", ["category"])

    # Pending alerts
    op.create_table(
        "pending_alerts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "user_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("alert_type", sa.String(20), nullable=False),
        sa.Column("from_entity", sa.String(255), nullable=False),
        sa.Column("risk_level", sa.String(20), nullable=False),
        sa.Column("risk_score", sa.Integer, default=0),
        sa.Column("category", sa.String(50), default="Unknown"),
        sa.Column("message", sa.Text, default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("seq", sa.Integer, default=0),
    )
    op.create_index("ix_pending_alerts_user_seq", "pending_alerts", ["user_id", "seq"])

    # Alert history
    op.create_table(
        "alert_history",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "user_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("alert_id", sa.String(36), nullable=False),
        sa.Column("alert_type", sa.String(20), nullable=False),
        sa.Column("from_entity", sa.String(255), nullable=False),
        sa.Column("risk_level", sa.String(20), nullable=False),
        sa.Column("risk_score", sa.Integer, default=0),
        sa.Column("action", sa.String(20), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_alert_history_user_id", "alert_history", ["user_id", "id"])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("alert_history")
    op.drop_table("pending_alerts")
    op.drop_table("fraud_reports")
    op.drop_table("protection_registrations")
    op.drop_table("users")
