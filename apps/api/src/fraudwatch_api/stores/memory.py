"""In-process storage provider.

Holds everything in dictionaries. Not durable and not shared between
processes; used for development, tests, and as the fallback when no
database is reachable at startup.
"""

import re
from collections import Counter
from datetime import datetime

from fraudwatch_shared.schemas import (
    AlertHistoryEntry,
    AlertType,
    CategoryCount,
    FraudReportRecord,
    PendingAlert,
    ReportStats,
    UserProfile,
)

from fraudwatch_api.security.normalizer import escape_for_search
from fraudwatch_api.stores.base import ReportStore, StorageProvider, UserProfileStore


class InMemoryReportStore(ReportStore):
    """Report store backed by a list."""

    def __init__(self, reports: list[FraudReportRecord] | None = None):
        self._reports: list[FraudReportRecord] = list(reports or [])

    async def find_active_reports(
        self, entity: str, since: datetime
    ) -> list[FraudReportRecord]:
        return [
            r
            for r in self._reports
            if r.target_entity == entity and r.is_active and r.timestamp >= since
        ]

    async def add_report(self, report: FraudReportRecord) -> FraudReportRecord:
        self._reports.append(report)
        return report

    async def search_reports(
        self, fragment: str, limit: int = 20
    ) -> list[FraudReportRecord]:
        pattern = re.compile(escape_for_search(fragment), re.IGNORECASE)
        matches = [r for r in self._reports if pattern.search(r.target_entity)]
        matches.sort(key=lambda r: r.timestamp, reverse=True)
        return matches[:limit]

    def _by_reporter(self, reporter_id: str) -> list[FraudReportRecord]:
        return [r for r in self._reports if r.reporter_id == reporter_id]

    async def list_reports_by_reporter(
        self, reporter_id: str, offset: int = 0, limit: int = 10
    ) -> list[FraudReportRecord]:
        reports = sorted(
            self._by_reporter(reporter_id), key=lambda r: r.timestamp, reverse=True
        )
        return reports[offset : offset + limit]

    async def count_reports_by_reporter(self, reporter_id: str) -> int:
        return len(self._by_reporter(reporter_id))

    async def report_stats(self, since: datetime, top: int = 5) -> ReportStats:
        active = [r for r in self._reports if r.is_active]
        counts = Counter(r.category for r in active)
        # Most reported first, ties broken alphabetically
        ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        return ReportStats(
            total_reports=len(active),
            recent_reports=sum(1 for r in active if r.timestamp >= since),
            top_categories=[
                CategoryCount(category=category, count=count)
                for category, count in ranked[:top]
            ],
        )

    def __len__(self) -> int:
        return len(self._reports)


class InMemoryUserStore(UserProfileStore):
    """User store backed by dictionaries keyed by user id."""

    def __init__(self):
        self._users: dict[str, UserProfile] = {}
        self._pending: dict[str, list[PendingAlert]] = {}
        self._history: dict[str, list[AlertHistoryEntry]] = {}

    async def get_user(self, user_id: str) -> UserProfile | None:
        return self._users.get(user_id)

    async def save_user(self, user: UserProfile) -> UserProfile:
        self._users[user.id] = user
        return user

    async def append_pending_alert(
        self, user_id: str, alert: PendingAlert, cap: int
    ) -> None:
        alerts = self._pending.setdefault(user_id, [])
        alerts.append(alert)
        if len(alerts) > cap:
            del alerts[:-cap]

    async def list_pending_alerts(self, user_id: str) -> list[PendingAlert]:
        return [a for a in self._pending.get(user_id, []) if not a.acknowledged]

    async def pop_pending_alert(
        self, user_id: str, alert_id: str
    ) -> PendingAlert | None:
        alerts = self._pending.get(user_id, [])
        for index, alert in enumerate(alerts):
            if alert.id == alert_id:
                return alerts.pop(index)
        return None

    async def append_alert_history(
        self, user_id: str, entry: AlertHistoryEntry, cap: int
    ) -> None:
        history = self._history.setdefault(user_id, [])
        history.append(entry)
        if len(history) > cap:
            del history[:-cap]

    async def list_alert_history(
        self, user_id: str, limit: int
    ) -> list[AlertHistoryEntry]:
        history = self._history.get(user_id, [])
        return list(reversed(history[-limit:])) if limit > 0 else []

    async def find_protected_users(
        self, entity: str, alert_type: AlertType
    ) -> list[UserProfile]:
        users = []
        for user in self._users.values():
            setting = user.protection.for_alert_type(alert_type)
            if setting and setting.enabled and setting.registered_entity == entity:
                users.append(user)
        return users

    async def count_users(self) -> int:
        return len(self._users)

    async def count_blocked_entities(self) -> int:
        return sum(len(user.blocked_entities) for user in self._users.values())


def memory_storage_provider() -> StorageProvider:
    """Create a fresh in-process provider."""
    return StorageProvider(
        name="memory",
        reports=InMemoryReportStore(),
        users=InMemoryUserStore(),
    )
