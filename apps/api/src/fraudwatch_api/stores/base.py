"""Storage collaborator contracts.

The core only needs a handful of queries from the report store and the
user-profile store. Implementations must raise TransientStoreError when the
backing store is unreachable.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

from fraudwatch_shared.schemas import (
    AlertHistoryEntry,
    AlertType,
    FraudReportRecord,
    PendingAlert,
    ReportStats,
    UserProfile,
)


class ReportStore(ABC):
    """Queryable store of community fraud reports."""

    @abstractmethod
    async def find_active_reports(
        self, entity: str, since: datetime
    ) -> list[FraudReportRecord]:
        """Active reports for a normalized entity filed at or after ``since``."""

    @abstractmethod
    async def add_report(self, report: FraudReportRecord) -> FraudReportRecord:
        """Persist a new report."""

    @abstractmethod
    async def search_reports(
        self, fragment: str, limit: int = 20
    ) -> list[FraudReportRecord]:
        """Case-insensitive substring search over report targets, newest first."""

    @abstractmethod
    async def list_reports_by_reporter(
        self, reporter_id: str, offset: int = 0, limit: int = 10
    ) -> list[FraudReportRecord]:
        """Reports filed by one user, newest first."""

    @abstractmethod
    async def count_reports_by_reporter(self, reporter_id: str) -> int: ...

    @abstractmethod
    async def report_stats(self, since: datetime, top: int = 5) -> ReportStats:
        """Active report totals and the ``top`` most reported categories."""


class UserProfileStore(ABC):
    """Store of user profiles, pending alerts and alert history."""

    @abstractmethod
    async def get_user(self, user_id: str) -> UserProfile | None: ...

    @abstractmethod
    async def save_user(self, user: UserProfile) -> UserProfile: ...

    @abstractmethod
    async def append_pending_alert(
        self, user_id: str, alert: PendingAlert, cap: int
    ) -> None:
        """Append an alert, evicting the oldest beyond ``cap``."""

    @abstractmethod
    async def list_pending_alerts(self, user_id: str) -> list[PendingAlert]:
        """Unacknowledged alerts, oldest first."""

    @abstractmethod
    async def pop_pending_alert(
        self, user_id: str, alert_id: str
    ) -> PendingAlert | None:
        """Remove and return a pending alert, or None if unknown."""

    @abstractmethod
    async def append_alert_history(
        self, user_id: str, entry: AlertHistoryEntry, cap: int
    ) -> None:
        """Append a history entry, evicting the oldest beyond ``cap``."""

    @abstractmethod
    async def list_alert_history(
        self, user_id: str, limit: int
    ) -> list[AlertHistoryEntry]:
        """Most recent history entries, newest first."""

    @abstractmethod
    async def find_protected_users(
        self, entity: str, alert_type: AlertType
    ) -> list[UserProfile]:
        """Users protecting a normalized entity for the given alert type."""

    @abstractmethod
    async def count_users(self) -> int: ...

    @abstractmethod
    async def count_blocked_entities(self) -> int:
        """Blocked-list entries summed over every user."""


@dataclass
class StorageProvider:
    """A report store and user store selected together at startup."""

    name: str
    reports: ReportStore
    users: UserProfileStore

    async def close(self) -> None:
        """Release backend resources. Nothing to do for in-process stores."""
        return None
