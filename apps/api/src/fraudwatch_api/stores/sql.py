"""SQL storage provider (async SQLAlchemy).

Works against PostgreSQL (asyncpg) in production and SQLite (aiosqlite) in
development and tests. Driver and connection failures surface as
TransientStoreError so callers can degrade instead of crashing.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fraudwatch_shared.schemas import (
    AlertHistoryEntry,
    AlertType,
    CategoryCount,
    EntityListEntry,
    FraudReportRecord,
    PendingAlert,
    ProtectionSetting,
    ProtectionSettings,
    ReportStats,
    UserProfile,
)
from sqlalchemy import delete, func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from fraudwatch_api.db.database import create_session_factory, init_db
from fraudwatch_api.db.models import (
    AlertHistoryRow,
    EntityListRow,
    FraudReport,
    PendingAlertRow,
    ProtectionRegistration,
    User,
)
from fraudwatch_api.errors import TransientStoreError
from fraudwatch_api.stores.base import ReportStore, StorageProvider, UserProfileStore

logger = logging.getLogger("fraudwatch-storage")

PROTECTED_CHANNELS = ("call", "sms", "email", "upi")
BLOCKED_LIST = "blocked"
SAFE_LIST = "safe"


def _aware(value: datetime | None) -> datetime | None:
    """SQLite drops tzinfo; everything stored is UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _like_pattern(fragment: str) -> str:
    # Escape LIKE wildcards so the fragment matches literally
    escaped = fragment.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped.lower()}%"


class _SessionMixin:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        """Session committed on success, with driver errors translated."""
        try:
            async with self._session_factory() as session:
                try:
                    yield session
                    await session.commit()
                except Exception:
                    await session.rollback()
                    raise
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Database error: {e!r}")
            raise TransientStoreError(f"Database unavailable: {e.__class__.__name__}") from e


# =============================================================================
# Reports
# =============================================================================


def _report_from_row(row: FraudReport) -> FraudReportRecord:
    return FraudReportRecord(
        id=row.id,
        target_entity=row.target_entity,
        entity_type=row.entity_type,
        category=row.category,
        description=row.description or "",
        reporter_id=row.reporter_id,
        timestamp=_aware(row.timestamp),
        is_active=row.is_active,
    )


class SqlReportStore(_SessionMixin, ReportStore):
    """Fraud reports in the ``fraud_reports`` table."""

    async def find_active_reports(
        self, entity: str, since: datetime
    ) -> list[FraudReportRecord]:
        async with self._session() as session:
            result = await session.execute(
                select(FraudReport)
                .where(FraudReport.target_entity == entity)
                .where(FraudReport.is_active.is_(True))
                .where(FraudReport.timestamp >= since)
            )
            return [_report_from_row(row) for row in result.scalars()]

    async def add_report(self, report: FraudReportRecord) -> FraudReportRecord:
        async with self._session() as session:
            session.add(
                FraudReport(
                    id=report.id,
                    target_entity=report.target_entity,
                    entity_type=report.entity_type.value,
                    category=report.category,
                    description=report.description,
                    reporter_id=report.reporter_id,
                    is_active=report.is_active,
                    timestamp=report.timestamp,
                )
            )
        return report

    async def search_reports(
        self, fragment: str, limit: int = 20
    ) -> list[FraudReportRecord]:
        async with self._session() as session:
            result = await session.execute(
                select(FraudReport)
                .where(
                    func.lower(FraudReport.target_entity).like(
                        _like_pattern(fragment), escape="\\"
                    )
                )
                .order_by(FraudReport.timestamp.desc())
                .limit(limit)
            )
            return [_report_from_row(row) for row in result.scalars()]

    async def list_reports_by_reporter(
        self, reporter_id: str, offset: int = 0, limit: int = 10
    ) -> list[FraudReportRecord]:
        async with self._session() as session:
            result = await session.execute(
                select(FraudReport)
                .where(FraudReport.reporter_id == reporter_id)
                .order_by(FraudReport.timestamp.desc())
                .offset(offset)
                .limit(limit)
            )
            return [_report_from_row(row) for row in result.scalars()]

    async def count_reports_by_reporter(self, reporter_id: str) -> int:
        async with self._session() as session:
            result = await session.execute(
                select(func.count(FraudReport.id)).where(
                    FraudReport.reporter_id == reporter_id
                )
            )
            return result.scalar() or 0

    async def report_stats(self, since: datetime, top: int = 5) -> ReportStats:
        active = FraudReport.is_active.is_(True)
        async with self._session() as session:
            total_result = await session.execute(
                select(func.count(FraudReport.id)).where(active)
            )
            recent_result = await session.execute(
                select(func.count(FraudReport.id))
                .where(active)
                .where(FraudReport.timestamp >= since)
            )
            count = func.count(FraudReport.id)
            category_result = await session.execute(
                select(FraudReport.category, count)
                .where(active)
                .group_by(FraudReport.category)
                .order_by(count.desc(), FraudReport.category)
                .limit(top)
            )
            return ReportStats(
                total_reports=total_result.scalar() or 0,
                recent_reports=recent_result.scalar() or 0,
                top_categories=[
                    CategoryCount(category=category, count=n)
                    for category, n in category_result.all()
                ],
            )


# =============================================================================
# Users and Alerts
# =============================================================================


def _alert_from_row(row: PendingAlertRow) -> PendingAlert:
    return PendingAlert(
        id=row.id,
        alert_type=row.alert_type,
        from_entity=row.from_entity,
        risk_level=row.risk_level,
        risk_score=row.risk_score,
        category=row.category,
        message=row.message or "",
        created_at=_aware(row.created_at),
    )


def _history_from_row(row: AlertHistoryRow) -> AlertHistoryEntry:
    return AlertHistoryEntry(
        alert_id=row.alert_id,
        alert_type=row.alert_type,
        from_entity=row.from_entity,
        risk_level=row.risk_level,
        risk_score=row.risk_score,
        action=row.action,
        timestamp=_aware(row.timestamp),
    )


class SqlUserStore(_SessionMixin, UserProfileStore):
    """Users, protection registrations and alert lists."""

    async def _load_profile(self, session: AsyncSession, user: User) -> UserProfile:
        result = await session.execute(
            select(ProtectionRegistration).where(
                ProtectionRegistration.user_id == user.id
            )
        )
        protection = ProtectionSettings()
        for reg in result.scalars():
            setattr(
                protection,
                reg.alert_type,
                ProtectionSetting(
                    enabled=reg.enabled,
                    registered_entity=reg.registered_entity,
                    alert_mode=reg.alert_mode,
                    activated_at=_aware(reg.activated_at),
                ),
            )

        lists_result = await session.execute(
            select(EntityListRow)
            .where(EntityListRow.user_id == user.id)
            .order_by(EntityListRow.id)
        )
        blocked: list[EntityListEntry] = []
        safe: list[EntityListEntry] = []
        for row in lists_result.scalars():
            entry = EntityListEntry(
                entity=row.entity,
                entity_type=row.entity_type,
                added_at=_aware(row.added_at),
            )
            (blocked if row.list_name == BLOCKED_LIST else safe).append(entry)

        return UserProfile(
            id=user.id,
            email=user.email,
            name=user.name,
            phone=user.phone,
            protection=protection,
            created_at=_aware(user.created_at),
            blocked_entities=blocked,
            safe_entities=safe,
        )

    async def get_user(self, user_id: str) -> UserProfile | None:
        async with self._session() as session:
            user = await session.get(User, user_id)
            if user is None:
                return None
            return await self._load_profile(session, user)

    async def save_user(self, user: UserProfile) -> UserProfile:
        async with self._session() as session:
            row = await session.get(User, user.id)
            if row is None:
                row = User(id=user.id, created_at=user.created_at)
                session.add(row)
            row.email = user.email
            row.name = user.name
            row.phone = user.phone

            await session.execute(
                delete(ProtectionRegistration).where(
                    ProtectionRegistration.user_id == user.id
                )
            )
            for channel in PROTECTED_CHANNELS:
                setting: ProtectionSetting = getattr(user.protection, channel)
                session.add(
                    ProtectionRegistration(
                        user_id=user.id,
                        alert_type=channel,
                        registered_entity=setting.registered_entity,
                        enabled=setting.enabled,
                        alert_mode=setting.alert_mode.value,
                        activated_at=setting.activated_at,
                    )
                )

            await session.execute(
                delete(EntityListRow).where(EntityListRow.user_id == user.id)
            )
            for list_name, entries in (
                (BLOCKED_LIST, user.blocked_entities),
                (SAFE_LIST, user.safe_entities),
            ):
                for entry in entries:
                    session.add(
                        EntityListRow(
                            user_id=user.id,
                            list_name=list_name,
                            entity=entry.entity,
                            entity_type=entry.entity_type.value,
                            added_at=entry.added_at,
                        )
                    )
        return user

    async def append_pending_alert(
        self, user_id: str, alert: PendingAlert, cap: int
    ) -> None:
        async with self._session() as session:
            last_seq = await session.scalar(
                select(func.max(PendingAlertRow.seq)).where(
                    PendingAlertRow.user_id == user_id
                )
            )
            session.add(
                PendingAlertRow(
                    id=alert.id,
                    user_id=user_id,
                    alert_type=alert.alert_type.value,
                    from_entity=alert.from_entity,
                    risk_level=alert.risk_level.value,
                    risk_score=alert.risk_score,
                    category=alert.category,
                    message=alert.message,
                    created_at=alert.created_at,
                    seq=(last_seq or 0) + 1,
                )
            )
            await session.flush()

            # Evict the oldest beyond the cap
            keep = (
                select(PendingAlertRow.id)
                .where(PendingAlertRow.user_id == user_id)
                .order_by(PendingAlertRow.seq.desc())
                .limit(cap)
            )
            await session.execute(
                delete(PendingAlertRow)
                .where(PendingAlertRow.user_id == user_id)
                .where(PendingAlertRow.id.not_in(keep.scalar_subquery()))
                .execution_options(synchronize_session=False)
            )

    async def list_pending_alerts(self, user_id: str) -> list[PendingAlert]:
        async with self._session() as session:
            result = await session.execute(
                select(PendingAlertRow)
                .where(PendingAlertRow.user_id == user_id)
                .order_by(PendingAlertRow.seq)
            )
            return [_alert_from_row(row) for row in result.scalars()]

    async def pop_pending_alert(
        self, user_id: str, alert_id: str
    ) -> PendingAlert | None:
        async with self._session() as session:
            row = await session.get(PendingAlertRow, alert_id)
            if row is None or row.user_id != user_id:
                return None
            alert = _alert_from_row(row)
            await session.delete(row)
            return alert

    async def append_alert_history(
        self, user_id: str, entry: AlertHistoryEntry, cap: int
    ) -> None:
        async with self._session() as session:
            session.add(
                AlertHistoryRow(
                    user_id=user_id,
                    alert_id=entry.alert_id,
                    alert_type=entry.alert_type.value,
                    from_entity=entry.from_entity,
                    risk_level=entry.risk_level.value,
                    risk_score=entry.risk_score,
                    action=entry.action.value,
                    timestamp=entry.timestamp,
                )
            )
            await session.flush()

            keep = (
                select(AlertHistoryRow.id)
                .where(AlertHistoryRow.user_id == user_id)
                .order_by(AlertHistoryRow.id.desc())
                .limit(cap)
            )
            await session.execute(
                delete(AlertHistoryRow)
                .where(AlertHistoryRow.user_id == user_id)
                .where(AlertHistoryRow.id.not_in(keep.scalar_subquery()))
                .execution_options(synchronize_session=False)
            )

    async def list_alert_history(
        self, user_id: str, limit: int
    ) -> list[AlertHistoryEntry]:
        if limit <= 0:
            return []
        async with self._session() as session:
            result = await session.execute(
                select(AlertHistoryRow)
                .where(AlertHistoryRow.user_id == user_id)
                .order_by(AlertHistoryRow.id.desc())
                .limit(limit)
            )
            return [_history_from_row(row) for row in result.scalars()]

    async def find_protected_users(
        self, entity: str, alert_type: AlertType
    ) -> list[UserProfile]:
        if alert_type.value not in PROTECTED_CHANNELS:
            return []
        async with self._session() as session:
            result = await session.execute(
                select(User)
                .join(ProtectionRegistration, ProtectionRegistration.user_id == User.id)
                .where(ProtectionRegistration.alert_type == alert_type.value)
                .where(ProtectionRegistration.registered_entity == entity)
                .where(ProtectionRegistration.enabled.is_(True))
            )
            users = list(result.scalars())
            return [await self._load_profile(session, user) for user in users]

    async def count_users(self) -> int:
        async with self._session() as session:
            result = await session.execute(select(func.count(User.id)))
            return result.scalar() or 0

    async def count_blocked_entities(self) -> int:
        async with self._session() as session:
            result = await session.execute(
                select(func.count(EntityListRow.id)).where(
                    EntityListRow.list_name == BLOCKED_LIST
                )
            )
            return result.scalar() or 0


# =============================================================================
# Provider
# =============================================================================


class SqlStorageProvider(StorageProvider):
    """Report and user stores sharing one engine."""

    def __init__(self, engine: AsyncEngine):
        session_factory = create_session_factory(engine)
        super().__init__(
            name="sql",
            reports=SqlReportStore(session_factory),
            users=SqlUserStore(session_factory),
        )
        self.engine = engine

    async def ping(self) -> None:
        """Round-trip a trivial query.

        Raises:
            TransientStoreError: If the database cannot be reached.
        """
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            raise TransientStoreError(f"Database unavailable: {e!r}") from e

    async def create_tables(self) -> None:
        try:
            await init_db(self.engine)
        except (SQLAlchemyError, OSError) as e:
            raise TransientStoreError(f"Could not create tables: {e!r}") from e

    async def close(self) -> None:
        await self.engine.dispose()
