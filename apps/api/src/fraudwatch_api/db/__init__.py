"""Database module."""

from fraudwatch_api.db.database import Base, create_engine, create_session_factory, init_db
from fraudwatch_api.db.models import (
    AlertHistoryRow,
    EntityListRow,
    FraudReport,
    PendingAlertRow,
    ProtectionRegistration,
    User,
)

__all__ = [
    "AlertHistoryRow",
    "Base",
    "EntityListRow",
    "FraudReport",
    "PendingAlertRow",
    "ProtectionRegistration",
    "User",
    "create_engine",
    "create_session_factory",
    "init_db",
]
