"""Tests for crowd intelligence risk scoring."""

import asyncio
from datetime import timedelta

import pytest
from fraudwatch_shared.schemas import EntityType, FraudReportRecord, RiskLevel, RiskResult

from fraudwatch_api.errors import TransientStoreError, ValidationError
from fraudwatch_api.security.risk_scoring import (
    RiskScoringEngine,
    risk_level_for,
    score_reports,
)
from fraudwatch_api.stores.memory import InMemoryReportStore


def make_reports(entity: str, categories: list[str], when=None) -> list[FraudReportRecord]:
    kwargs = {"timestamp": when} if when else {}
    return [
        FraudReportRecord(target_entity=entity, category=category, **kwargs)
        for category in categories
    ]


class RecordingDispatcher:
    """Stands in for AlertDispatcher and records threat alerts."""

    def __init__(self, fail: bool = False):
        self.calls: list[tuple[str, RiskResult]] = []
        self.fail = fail

    async def raise_threat_alert(self, user_id: str, risk: RiskResult):
        self.calls.append((user_id, risk))
        if self.fail:
            raise RuntimeError("push backend down")


class FailingReportStore(InMemoryReportStore):
    async def find_active_reports(self, entity, since):
        raise TransientStoreError("connection refused")


# =============================================================================
# Pure Scoring
# =============================================================================


class TestScore:
    """Tests for score() and the entity bands."""

    def setup_method(self):
        self.engine = RiskScoringEngine(InMemoryReportStore())

    def test_no_reports_is_safe(self):
        result = self.engine.score("9876543210", [])
        assert result.score == 0
        assert result.risk_level == RiskLevel.SAFE
        assert result.total_reports == 0
        assert result.risk_color == "green"

    def test_three_phishing_reports_high_risk(self):
        result = self.engine.score("x", make_reports("x", ["Phishing"] * 3))
        assert result.score == 9
        assert result.risk_level == RiskLevel.HIGH_RISK
        assert result.total_reports == 3
        assert result.primary_category == "Phishing"

    def test_five_generic_reports_suspicious(self):
        result = self.engine.score("x", make_reports("x", ["Spam"] * 5))
        assert result.score == 5
        assert result.risk_level == RiskLevel.SUSPICIOUS
        assert result.risk_color == "yellow"

    def test_sixth_report_tips_to_high_risk(self):
        result = self.engine.score("x", make_reports("x", ["Spam"] * 5 + ["Other"]))
        assert result.score == 6
        assert result.risk_level == RiskLevel.HIGH_RISK

    def test_identity_theft_weighted(self):
        assert score_reports(make_reports("x", ["Identity Theft"])) == 3

    def test_inactive_reports_ignored(self):
        reports = make_reports("x", ["Phishing", "Spam"])
        reports[0].is_active = False
        result = self.engine.score("x", reports)
        assert result.score == 1
        assert result.total_reports == 1

    @pytest.mark.parametrize(
        "score,level",
        [
            (0, RiskLevel.SAFE),
            (1, RiskLevel.SUSPICIOUS),
            (5, RiskLevel.SUSPICIOUS),
            (6, RiskLevel.HIGH_RISK),
            (40, RiskLevel.HIGH_RISK),
        ],
    )
    def test_bands(self, score, level):
        assert risk_level_for(score) == level

    def test_result_carries_schema_version(self):
        assert self.engine.score("x", []).schema_version == "2.0.0"


# =============================================================================
# Check (store lookup, degradation, threat alerts)
# =============================================================================


class TestCheck:
    """Tests for check()."""

    async def test_normalizes_before_lookup(self, clock):
        store = InMemoryReportStore(make_reports("9876543210", ["Spam"], when=clock()))
        engine = RiskScoringEngine(store, clock=clock)

        result = await engine.check(" +91 98765-43210 ")

        assert result.target_entity == "9876543210"
        assert result.total_reports == 1

    async def test_window_excludes_old_reports(self, clock):
        old = make_reports("x@y.com", ["Phishing"], when=clock() - timedelta(days=31))
        recent = make_reports("x@y.com", ["Spam"], when=clock() - timedelta(days=29))
        engine = RiskScoringEngine(InMemoryReportStore(old + recent), clock=clock)

        result = await engine.check("X@Y.com")

        assert result.score == 1
        assert result.total_reports == 1

    async def test_store_outage_degrades(self):
        engine = RiskScoringEngine(FailingReportStore())

        result = await engine.check("9876543210")

        assert result.degraded is True
        assert result.score == 0
        assert result.risk_level == RiskLevel.SAFE

    async def test_empty_entity_rejected(self):
        engine = RiskScoringEngine(InMemoryReportStore())
        with pytest.raises(ValidationError):
            await engine.check("   ")

    async def test_entity_type_detected(self):
        engine = RiskScoringEngine(InMemoryReportStore())

        assert (await engine.check("+91 98765 43210")).entity_type == EntityType.PHONE
        assert (await engine.check("Alice@Example.com")).entity_type == EntityType.EMAIL

    async def test_entity_type_from_caller_wins(self):
        engine = RiskScoringEngine(InMemoryReportStore())
        result = await engine.check("9876543210", entity_type=EntityType.UPI)
        assert result.entity_type == EntityType.UPI

    async def test_high_risk_with_user_raises_threat_alert(self, clock):
        dispatcher = RecordingDispatcher()
        store = InMemoryReportStore(make_reports("scam", ["Phishing"] * 2, when=clock()))
        engine = RiskScoringEngine(store, dispatcher=dispatcher, clock=clock)

        result = await engine.check("scam", user_id="user-1")
        await engine.drain()

        assert result.risk_level == RiskLevel.HIGH_RISK
        assert len(dispatcher.calls) == 1
        assert dispatcher.calls[0][0] == "user-1"
        assert dispatcher.calls[0][1].target_entity == "scam"

    async def test_no_alert_without_user(self, clock):
        dispatcher = RecordingDispatcher()
        store = InMemoryReportStore(make_reports("scam", ["Phishing"] * 2, when=clock()))
        engine = RiskScoringEngine(store, dispatcher=dispatcher, clock=clock)

        await engine.check("scam")
        await engine.drain()

        assert dispatcher.calls == []

    async def test_no_alert_below_high_risk(self, clock):
        dispatcher = RecordingDispatcher()
        store = InMemoryReportStore(make_reports("meh", ["Spam"], when=clock()))
        engine = RiskScoringEngine(store, dispatcher=dispatcher, clock=clock)

        await engine.check("meh", user_id="user-1")
        await engine.drain()

        assert dispatcher.calls == []

    async def test_alert_failure_does_not_fail_check(self, clock):
        dispatcher = RecordingDispatcher(fail=True)
        store = InMemoryReportStore(make_reports("scam", ["Phishing"] * 2, when=clock()))
        engine = RiskScoringEngine(store, dispatcher=dispatcher, clock=clock)

        result = await engine.check("scam", user_id="user-1")
        await engine.drain()

        assert result.risk_level == RiskLevel.HIGH_RISK
        assert len(dispatcher.calls) == 1

    async def test_concurrent_checks_may_both_alert(self, clock):
        """No lock is held across the lookup, so both checks alert."""
        dispatcher = RecordingDispatcher()
        store = InMemoryReportStore(make_reports("scam", ["Phishing"] * 2, when=clock()))
        engine = RiskScoringEngine(store, dispatcher=dispatcher, clock=clock)

        results = await asyncio.gather(
            engine.check("scam", user_id="user-1"),
            engine.check("scam", user_id="user-1"),
        )
        await engine.drain()

        assert all(r.risk_level == RiskLevel.HIGH_RISK for r in results)
        assert len(dispatcher.calls) == 2
