"""Keyword-based fraud analysis of free-text content (SMS, email, chat).

Banding here is separate from the entity score bands: content
has a LOW tier and higher thresholds for suspicious and high risk.
"""

import re

from fraudwatch_shared.schemas import (
    RISK_SEVERITY,
    CombinedRisk,
    ContentFinding,
    ContentRiskLevel,
    ContentRiskResult,
    ContentType,
    RiskResult,
)

# =============================================================================
# Keyword Dictionaries
# =============================================================================

FRAUD_KEYWORDS: dict[str, list[str]] = {
    "urgency": [
        "urgent", "immediately", "now", "asap", "hurry", "quickly", "fast",
        "limited time", "act now", "don't delay", "last chance",
        "expires today", "deadline", "24 hours", "within hours",
    ],
    "financial": [
        "bank account", "credit card", "debit card", "atm", "pin", "cvv",
        "otp", "transfer", "transaction", "payment", "loan", "emi", "upi",
        "neft", "rtgs", "blocked", "suspended", "verify account",
        "update kyc", "kyc expired", "prize", "lottery", "jackpot", "won",
        "winner", "reward", "cash prize", "refund", "cashback", "bonus",
    ],
    "threats": [
        "account blocked", "account suspended", "will be blocked",
        "will be suspended", "legal action", "police", "arrest",
        "case filed", "complaint", "court", "fine", "penalty", "closure",
        "terminate", "deactivate", "seized",
    ],
    "impersonation": [
        "customer care", "customer support", "helpline", "helpdesk", "rbi",
        "reserve bank", "income tax", "it department", "government", "sbi",
        "hdfc", "icici", "axis", "bank manager", "bank officer", "amazon",
        "flipkart", "paytm", "phonepe", "gpay", "google pay",
    ],
    "action_requests": [
        "click here", "click link", "tap here", "click below", "visit",
        "call this number", "call us", "dial", "contact immediately",
        "share otp", "share pin", "provide details", "verify yourself",
        "confirm identity", "update details", "fill form", "download app",
        "install", "remote access", "anydesk", "teamviewer",
    ],
    "suspicious_patterns": [
        "dear customer", "dear user", "dear valued", "respected sir",
        "confidential", "do not share", "keep secret", "free gift",
        "free offer", "get free", "100% free", "guaranteed", "no risk",
        "risk free",
    ],
}

CATEGORY_WEIGHTS: dict[str, int] = {
    "urgency": 1,
    "financial": 2,
    "threats": 3,
    "impersonation": 3,
    "action_requests": 2,
    "suspicious_patterns": 1,
}

SUSPICIOUS_URL_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"bit\.ly",
        r"tinyurl",
        r"goo\.gl",
        r"ow\.ly",
        r"t\.co",
        r"shorturl",
        r"tiny\.cc",
        r"is\.gd",
        r"v\.gd",
        r"https?://\d+\.\d+\.\d+\.\d+",
    )
]

SUSPICIOUS_URL_SCORE = 3
EXCESSIVE_CAPS_SCORE = 2
CAPS_RATIO_THRESHOLD = 0.5
CAPS_MIN_LENGTH = 20

# Content banding: 0 safe, 1-5 low, 6-10 suspicious, above 10 high risk
LOW_MAX_SCORE = 5
SUSPICIOUS_MAX_SCORE = 10

CONTENT_MESSAGES: dict[ContentRiskLevel, str] = {
    ContentRiskLevel.SAFE: "No suspicious patterns detected in content.",
    ContentRiskLevel.LOW: "Some potentially suspicious patterns detected. Be cautious.",
    ContentRiskLevel.SUSPICIOUS: "Multiple fraud indicators found. Exercise caution!",
    ContentRiskLevel.HIGH_RISK: "HIGH RISK - Multiple fraud patterns detected! Likely a scam.",
}

COMBINED_MESSAGES: dict[ContentRiskLevel, str] = {
    ContentRiskLevel.HIGH_RISK: "HIGH RISK - This message contains multiple fraud indicators!",
    ContentRiskLevel.SUSPICIOUS: "CAUTION - Suspicious patterns detected. Be careful!",
    ContentRiskLevel.LOW: "Low risk - Some patterns detected, but proceed with caution.",
    ContentRiskLevel.SAFE: "Content appears safe.",
}


def content_level_for(score: int) -> ContentRiskLevel:
    """Band a content score."""
    if score <= 0:
        return ContentRiskLevel.SAFE
    if score <= LOW_MAX_SCORE:
        return ContentRiskLevel.LOW
    if score <= SUSPICIOUS_MAX_SCORE:
        return ContentRiskLevel.SUSPICIOUS
    return ContentRiskLevel.HIGH_RISK


class ContentFraudAnalyzer:
    """Scores text against weighted fraud keyword dictionaries."""

    def __init__(
        self,
        keywords: dict[str, list[str]] | None = None,
        weights: dict[str, int] | None = None,
    ):
        self.keywords = FRAUD_KEYWORDS if keywords is None else keywords
        self.weights = CATEGORY_WEIGHTS if weights is None else weights

    def analyze(
        self, content: str, content_type: ContentType = ContentType.MESSAGE
    ) -> ContentRiskResult:
        """Score a piece of content.

        Keywords match as case-insensitive substrings. Each category adds
        ``matches * weight``. Shortened or raw-IP links add a flat 3 and
        shouting (more than half the characters uppercase, over 20
        characters) adds 2.

        Args:
            content: Text to analyze. Empty or non-string content is safe.
            content_type: Where the text came from. Carried on the result.

        Returns:
            ContentRiskResult with score, band and per-category findings.
        """
        if not isinstance(content, str) or not content:
            return self._result(0, [], content_type)

        lowered = content.lower()
        findings: list[ContentFinding] = []
        total = 0

        for category, keywords in self.keywords.items():
            matched = [kw for kw in keywords if kw in lowered]
            if matched:
                category_score = len(matched) * self.weights.get(category, 1)
                total += category_score
                findings.append(
                    ContentFinding(
                        category=category,
                        matched_keywords=matched,
                        score=category_score,
                    )
                )

        if any(p.search(content) for p in SUSPICIOUS_URL_PATTERNS):
            total += SUSPICIOUS_URL_SCORE
            findings.append(
                ContentFinding(
                    category="suspicious_url",
                    matched_keywords=["shortened/suspicious URL detected"],
                    score=SUSPICIOUS_URL_SCORE,
                )
            )

        uppercase = sum(1 for ch in content if ch.isupper())
        if len(content) > CAPS_MIN_LENGTH and uppercase / len(content) > CAPS_RATIO_THRESHOLD:
            total += EXCESSIVE_CAPS_SCORE
            findings.append(
                ContentFinding(
                    category="excessive_caps",
                    matched_keywords=["Excessive use of capital letters"],
                    score=EXCESSIVE_CAPS_SCORE,
                )
            )

        return self._result(total, findings, content_type)

    @staticmethod
    def _result(
        score: int, findings: list[ContentFinding], content_type: ContentType
    ) -> ContentRiskResult:
        level = content_level_for(score)
        return ContentRiskResult(
            content_type=content_type,
            is_suspicious=score > 0,
            score=score,
            risk_level=level,
            risk_message=CONTENT_MESSAGES[level],
            findings=findings,
        )

    @staticmethod
    def combine(
        content: ContentRiskResult, entity_risk: RiskResult | None = None
    ) -> CombinedRisk:
        """Merge a content result with the sender's entity result.

        Scores add; the more severe of the two levels wins.
        """
        score = content.score
        level = content.risk_level
        if entity_risk is not None:
            score += entity_risk.score
            entity_level = ContentRiskLevel(entity_risk.risk_level.value)
            if RISK_SEVERITY[entity_level.value] > RISK_SEVERITY[level.value]:
                level = entity_level
        return CombinedRisk(score=score, risk_level=level, message=COMBINED_MESSAGES[level])
