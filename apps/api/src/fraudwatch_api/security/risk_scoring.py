"""Crowd intelligence risk scoring.

Scores an entity from the community reports filed against it in a trailing
window. Each active report adds a point, and reports in the weighted
categories (Phishing, Identity Theft) add two more.
"""

import asyncio
import logging
from collections import Counter
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from fraudwatch_shared.schemas import (
    WEIGHTED_CATEGORIES,
    EntityType,
    FraudReportRecord,
    RiskLevel,
    RiskResult,
    utcnow,
)

from fraudwatch_api.errors import TransientStoreError
from fraudwatch_api.security.normalizer import detect_entity_type, normalize_entity
from fraudwatch_api.stores.base import ReportStore

if TYPE_CHECKING:
    from fraudwatch_api.realtime.dispatcher import AlertDispatcher

logger = logging.getLogger("fraudwatch-risk")

# Points per report
BASE_REPORT_POINTS = 1
WEIGHTED_CATEGORY_BONUS = 2

# Banding: 0 safe, 1..5 suspicious, above 5 high risk
SUSPICIOUS_MAX_SCORE = 5

RISK_COLORS: dict[RiskLevel, str] = {
    RiskLevel.SAFE: "green",
    RiskLevel.SUSPICIOUS: "yellow",
    RiskLevel.HIGH_RISK: "red",
}

RISK_MESSAGES: dict[RiskLevel, str] = {
    RiskLevel.SAFE: "Authoritative data indicates no current threat vectors.",
    RiskLevel.SUSPICIOUS: "Trace activity detected. Monitoring protocols active.",
    RiskLevel.HIGH_RISK: "CRITICAL THREAT: Investigative protocols triggered.",
}


def score_reports(reports: list[FraudReportRecord]) -> int:
    """Sum report points over active reports."""
    total = 0
    for report in reports:
        if not report.is_active:
            continue
        total += BASE_REPORT_POINTS
        if report.category in WEIGHTED_CATEGORIES:
            total += WEIGHTED_CATEGORY_BONUS
    return total


def risk_level_for(score: int) -> RiskLevel:
    """Band an entity score."""
    if score <= 0:
        return RiskLevel.SAFE
    if score <= SUSPICIOUS_MAX_SCORE:
        return RiskLevel.SUSPICIOUS
    return RiskLevel.HIGH_RISK


def primary_category(reports: list[FraudReportRecord]) -> str | None:
    """Most frequently reported category, first seen wins ties."""
    counts = Counter(r.category for r in reports if r.is_active)
    if not counts:
        return None
    return counts.most_common(1)[0][0]


class RiskScoringEngine:
    """Checks entities against the report store and escalates high risk."""

    def __init__(
        self,
        reports: ReportStore,
        dispatcher: "AlertDispatcher | None" = None,
        window_days: int = 30,
        clock: Callable[[], datetime] | None = None,
    ):
        """Initialize the engine.

        Args:
            reports: Store of community fraud reports.
            dispatcher: Receives threat alerts for high-risk checks made on
                behalf of a known user. Alerts are skipped when None.
            window_days: Trailing window of reports considered.
            clock: Returns the current aware UTC time.
        """
        self.reports = reports
        self.dispatcher = dispatcher
        self.window = timedelta(days=window_days)
        self._clock = clock or utcnow
        self._alert_tasks: set[asyncio.Task] = set()

    def score(self, entity: str, reports: list[FraudReportRecord]) -> RiskResult:
        """Score an entity from an already fetched list of reports.

        Args:
            entity: Normalized entity key.
            reports: Reports filed against the entity in the window.

        Returns:
            RiskResult with the score, band and matched report count.
        """
        active = [r for r in reports if r.is_active]
        score = score_reports(active)
        level = risk_level_for(score)
        return RiskResult(
            target_entity=entity,
            score=score,
            risk_level=level,
            risk_color=RISK_COLORS[level],
            risk_message=RISK_MESSAGES[level],
            total_reports=len(active),
            primary_category=primary_category(active),
            checked_at=self._clock(),
        )

    async def check(
        self,
        raw_entity: str,
        user_id: str | None = None,
        entity_type: EntityType | None = None,
    ) -> RiskResult:
        """Normalize an entity, fetch its recent reports and score them.

        A report store outage does not fail the check: the entity is scored
        as having no reports and the result is flagged as degraded.

        When ``user_id`` is given and the entity is high risk, a threat alert
        is raised for that user in the background.

        ``entity_type`` is echoed on the result. It is detected from the
        entity when the caller does not say.

        Raises:
            ValidationError: If the entity is empty.
        """
        entity = normalize_entity(raw_entity)
        since = self._clock() - self.window

        degraded = False
        try:
            reports = await self.reports.find_active_reports(entity, since)
        except TransientStoreError as e:
            logger.warning(f"Report store unavailable, scoring {entity} as unreported: {e}")
            reports = []
            degraded = True

        result = self.score(entity, reports)
        result.entity_type = entity_type or detect_entity_type(entity)
        if degraded:
            result.degraded = True

        logger.info(
            f"Risk check {entity}: score={result.score} level={result.risk_level.value}"
        )

        if user_id and result.risk_level == RiskLevel.HIGH_RISK:
            self._schedule_threat_alert(user_id, result)

        return result

    def _schedule_threat_alert(self, user_id: str, result: RiskResult) -> None:
        if self.dispatcher is None:
            return
        task = asyncio.create_task(self.dispatcher.raise_threat_alert(user_id, result))
        self._alert_tasks.add(task)
        task.add_done_callback(self._on_alert_done)

    def _on_alert_done(self, task: asyncio.Task) -> None:
        self._alert_tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Threat alert failed: {error!r}")

    async def drain(self) -> None:
        """Wait for in-flight threat alerts to finish."""
        if self._alert_tasks:
            await asyncio.gather(*list(self._alert_tasks), return_exceptions=True)
