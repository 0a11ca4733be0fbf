"""Entity normalization, crowd risk scoring and content analysis."""

from fraudwatch_api.security.content_analysis import ContentFraudAnalyzer
from fraudwatch_api.security.normalizer import (
    detect_entity_type,
    escape_for_search,
    normalize_entity,
)
from fraudwatch_api.security.risk_scoring import RiskScoringEngine, risk_level_for

__all__ = [
    "ContentFraudAnalyzer",
    "RiskScoringEngine",
    "detect_entity_type",
    "escape_for_search",
    "normalize_entity",
    "risk_level_for",
]
