"""SQLAlchemy models for users, protection registrations, reports and alerts."""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from fraudwatch_api.db.database import Base

# =============================================================================
# User Model
# =============================================================================


class User(Base):
    """User account fields the core reads (contact details for routing)."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str | None] = mapped_column(String(255))
    phone: Mapped[str | None] = mapped_column(String(20))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (Index("ix_users_email", "email"),)


class ProtectionRegistration(Base):
    """An entity a user has registered for protection on one channel."""

    __tablename__ = "protection_registrations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    alert_type: Mapped[str] = mapped_column(String(20), nullable=False)  # call/sms/email/upi
    registered_entity: Mapped[str] = mapped_column(String(255), default="")
    enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    alert_mode: Mapped[str] = mapped_column(String(20), default="popup")
    activated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        UniqueConstraint("user_id", "alert_type", name="uq_protection_user_type"),
        Index(
            "ix_protection_lookup", "alert_type", "registered_entity", "enabled"
        ),
    )


class EntityListRow(Base):
    """An entity on a user's blocked or safe list."""

    __tablename__ = "user_entity_lists"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    list_name: Mapped[str] = mapped_column(String(10), nullable=False)  # blocked/safe
    entity: Mapped[str] = mapped_column(String(255), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(10), nullable=False)
    added_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "user_id", "entity", "entity_type", name="uq_entity_list_user_entity"
        ),
        Index("ix_entity_lists_list_name", "list_name"),
    )


# =============================================================================
# Fraud Reports
# =============================================================================


class FraudReport(Base):
    """A community fraud report against a normalized entity."""

    __tablename__ = "fraud_reports"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    target_entity: Mapped[str] = mapped_column(String(255), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(10), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    reporter_id: Mapped[str | None] = mapped_column(String(36))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_fraud_reports_target_timestamp", "target_entity", "timestamp"),
        Index("ix_fraud_reports_category", "category"),
        Index("ix_fraud_reports_reporter_timestamp", "reporter_id", "timestamp"),
    )


# =============================================================================
# Alerts
# =============================================================================


class PendingAlertRow(Base):
    """An alert waiting for the user to act on it."""

    __tablename__ = "pending_alerts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    alert_type: Mapped[str] = mapped_column(String(20), nullable=False)
    from_entity: Mapped[str] = mapped_column(String(255), nullable=False)
    risk_level: Mapped[str] = mapped_column(String(20), nullable=False)
    risk_score: Mapped[int] = mapped_column(Integer, default=0)
    category: Mapped[str] = mapped_column(String(50), default="Unknown")
    message: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    # Insertion order, used for oldest-first eviction
    seq: Mapped[int] = mapped_column(Integer, default=0)

    __table_args__ = (Index("ix_pending_alerts_user_seq", "user_id", "seq"),)


class AlertHistoryRow(Base):
    """An acknowledged alert and the user's action."""

    __tablename__ = "alert_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    alert_id: Mapped[str] = mapped_column(String(36), nullable=False)
    alert_type: Mapped[str] = mapped_column(String(20), nullable=False)
    from_entity: Mapped[str] = mapped_column(String(255), nullable=False)
    risk_level: Mapped[str] = mapped_column(String(20), nullable=False)
    risk_score: Mapped[int] = mapped_column(Integer, default=0)
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("ix_alert_history_user_id", "user_id", "id"),)
