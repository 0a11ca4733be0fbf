"""Pydantic schemas shared by the FraudWatch service components.

Everything that crosses a component boundary lives here: report records
consumed by the risk engine, risk results, content findings, one-time code
records, pending alerts, protection settings and notification envelopes.
"""

from datetime import datetime, timedelta, timezone
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field

# =============================================================================
# Constants
# =============================================================================

# Version of the payload shape pushed to clients
SCHEMA_VERSION: str = "2.0.0"


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid4().hex


# =============================================================================
# Enums
# =============================================================================


class EntityType(str, Enum):
    """Kinds of identifiers the community can report."""

    PHONE = "phone"
    EMAIL = "email"
    UPI = "upi"


class ReportCategory(str, Enum):
    """Fraud report categories."""

    PHISHING = "Phishing"
    IDENTITY_THEFT = "Identity Theft"
    FINANCIAL_FRAUD = "Financial Fraud"
    SPAM = "Spam"
    HARASSMENT = "Harassment"
    FAKE_LOTTERY = "Fake Lottery"
    INVESTMENT_SCAM = "Investment Scam"
    ROMANCE_SCAM = "Romance Scam"
    TECH_SUPPORT_SCAM = "Tech Support Scam"
    OTHER = "Other"


# Categories that carry extra weight in the crowd intelligence score
WEIGHTED_CATEGORIES: frozenset[str] = frozenset(
    {ReportCategory.PHISHING.value, ReportCategory.IDENTITY_THEFT.value}
)


class RiskLevel(str, Enum):
    """Entity risk bands produced by the crowd intelligence score."""

    SAFE = "safe"
    SUSPICIOUS = "suspicious"
    HIGH_RISK = "high_risk"


class ContentRiskLevel(str, Enum):
    """Content risk bands. Has a LOW tier the entity bands do not."""

    SAFE = "safe"
    LOW = "low"
    SUSPICIOUS = "suspicious"
    HIGH_RISK = "high_risk"


# Shared ordering across both scales, used when combining levels
RISK_SEVERITY: dict[str, int] = {
    "safe": 0,
    "low": 1,
    "suspicious": 2,
    "high_risk": 3,
}


class ContentType(str, Enum):
    """Kinds of free-text content submitted for analysis."""

    SMS = "sms"
    EMAIL = "email"
    MESSAGE = "message"


class AlertType(str, Enum):
    """What kind of interaction raised an alert."""

    CALL = "call"
    SMS = "sms"
    EMAIL = "email"
    UPI = "upi"
    THREAT_ALERT = "threat_alert"


class AlertAction(str, Enum):
    """What the user did about an alert."""

    BLOCKED = "blocked"
    ALLOWED = "allowed"
    REPORTED = "reported"
    DISMISSED = "dismissed"


class AlertMode(str, Enum):
    """How a protection setting surfaces alerts on the client."""

    POPUP = "popup"
    SILENT = "silent"
    BLOCK = "block"


class NotificationPriority(str, Enum):
    """Notification priority, drives secondary channel selection."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"


# =============================================================================
# Reports and Risk Results
# =============================================================================


class FraudReportRecord(BaseModel):
    """A community fraud report as seen by the risk engine (read-only)."""

    id: str = Field(default_factory=_new_id)
    target_entity: str  # Normalized entity key
    entity_type: EntityType = EntityType.PHONE
    category: str
    description: str = ""
    reporter_id: str | None = None
    timestamp: datetime = Field(default_factory=utcnow)
    is_active: bool = True


class CategoryCount(BaseModel):
    category: str
    count: int


class ReportStats(BaseModel):
    """Report totals across the whole community."""

    total_reports: int = 0  # Active reports
    recent_reports: int = 0  # Active reports inside the scoring window
    top_categories: list[CategoryCount] = Field(default_factory=list)


class RiskResult(BaseModel):
    """Crowd intelligence verdict for a single entity. Never persisted."""

    schema_version: str = SCHEMA_VERSION
    target_entity: str
    entity_type: EntityType | None = None
    score: int
    risk_level: RiskLevel
    risk_color: str
    risk_message: str
    total_reports: int
    primary_category: str | None = None
    degraded: bool = False  # True when the report store could not be read
    checked_at: datetime = Field(default_factory=utcnow)


class ContentFinding(BaseModel):
    """One category of fraud indicators found in a piece of content."""

    category: str
    matched_keywords: list[str]
    score: int


class ContentRiskResult(BaseModel):
    """Result of scoring free-text content against the keyword dictionaries."""

    is_suspicious: bool
    content_type: ContentType = ContentType.MESSAGE
    score: int
    risk_level: ContentRiskLevel
    risk_message: str = ""
    findings: list[ContentFinding] = Field(default_factory=list)
    analyzed_at: datetime = Field(default_factory=utcnow)


class CombinedRisk(BaseModel):
    """Content score merged with the sender's entity score."""

    score: int
    risk_level: ContentRiskLevel
    message: str


# =============================================================================
# One-Time Codes
# =============================================================================


class OTCRecord(BaseModel):
    """A one-time code held for an (identifier, purpose) key.

    Mutated only by verification (attempts, verified flag). Removed on
    expiry, max attempts, invalidation, or shortly after a successful verify.
    """

    identifier: str
    purpose: str
    code: str
    created_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime
    attempts: int = 0
    verified: bool = False
    verified_at: datetime | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check whether the code is past its expiry."""
        return (now or utcnow()) > self.expires_at

    def seconds_until_expiry(self, now: datetime | None = None) -> float:
        """Seconds remaining until expiry. Negative if already expired."""
        return (self.expires_at - (now or utcnow())).total_seconds()

    def cooldown_remaining(self, cooldown: timedelta, now: datetime | None = None) -> float:
        """Seconds left before a new code may be issued for this key."""
        elapsed = (now or utcnow()) - self.created_at
        return (cooldown - elapsed).total_seconds()


# =============================================================================
# Alerts
# =============================================================================


class PendingAlert(BaseModel):
    """A live warning queued for a user until they act on it."""

    id: str = Field(default_factory=_new_id)
    alert_type: AlertType
    from_entity: str
    risk_level: RiskLevel
    risk_score: int
    category: str = "Unknown"
    message: str = ""
    created_at: datetime = Field(default_factory=utcnow)
    acknowledged: bool = False
    acknowledged_at: datetime | None = None


class AlertHistoryEntry(BaseModel):
    """What happened to an acknowledged alert."""

    alert_id: str
    alert_type: AlertType
    from_entity: str
    risk_level: RiskLevel
    risk_score: int
    action: AlertAction
    timestamp: datetime = Field(default_factory=utcnow)


# =============================================================================
# Users and Protection Settings
# =============================================================================


class ProtectionSetting(BaseModel):
    """Protection for one channel (calls, SMS, email or UPI)."""

    enabled: bool = False
    registered_entity: str = ""  # Normalized phone/email/UPI handle
    alert_mode: AlertMode = AlertMode.POPUP
    activated_at: datetime | None = None


class ProtectionSettings(BaseModel):
    """All protection settings for a user, keyed by alert type."""

    call: ProtectionSetting = Field(default_factory=ProtectionSetting)
    sms: ProtectionSetting = Field(default_factory=ProtectionSetting)
    email: ProtectionSetting = Field(default_factory=ProtectionSetting)
    upi: ProtectionSetting = Field(default_factory=ProtectionSetting)

    def for_alert_type(self, alert_type: AlertType) -> ProtectionSetting | None:
        """Setting that guards the given alert type, if any."""
        return getattr(self, alert_type.value, None)


class EntityListEntry(BaseModel):
    """An entity on a user's blocked or safe list."""

    entity: str  # Normalized entity key
    entity_type: EntityType
    added_at: datetime = Field(default_factory=utcnow)

    def matches(self, entity: str, entity_type: EntityType) -> bool:
        return self.entity == entity and self.entity_type == entity_type


class UserProfile(BaseModel):
    """The slice of a user account the core needs."""

    id: str = Field(default_factory=_new_id)
    email: str
    name: str | None = None
    phone: str | None = None
    protection: ProtectionSettings = Field(default_factory=ProtectionSettings)
    created_at: datetime = Field(default_factory=utcnow)
    blocked_entities: list[EntityListEntry] = Field(default_factory=list)
    safe_entities: list[EntityListEntry] = Field(default_factory=list)

    def is_blocked(self, entity: str, entity_type: EntityType) -> bool:
        return any(e.matches(entity, entity_type) for e in self.blocked_entities)

    def is_marked_safe(self, entity: str, entity_type: EntityType) -> bool:
        return any(e.matches(entity, entity_type) for e in self.safe_entities)

    def block(self, entity: str, entity_type: EntityType) -> EntityListEntry:
        """Put an entity on the blocked list, taking it off the safe list."""
        entry = EntityListEntry(entity=entity, entity_type=entity_type)
        self.blocked_entities.append(entry)
        self.safe_entities = [
            e for e in self.safe_entities if not e.matches(entity, entity_type)
        ]
        return entry

    def mark_safe(self, entity: str, entity_type: EntityType) -> EntityListEntry:
        """Put an entity on the safe list, taking it off the blocked list."""
        entry = EntityListEntry(entity=entity, entity_type=entity_type)
        self.safe_entities.append(entry)
        self.blocked_entities = [
            e for e in self.blocked_entities if not e.matches(entity, entity_type)
        ]
        return entry


# =============================================================================
# Notifications
# =============================================================================


class NotificationContent(BaseModel):
    """Human-facing content of a notification."""

    title: str
    body: str
    action_url: str | None = None
    metadata: dict = Field(default_factory=dict)


class NotificationChannels(BaseModel):
    """Which delivery channels a notification was routed to."""

    websocket: bool = True
    sms: bool = False
    email: bool = False


class NotificationEnvelope(BaseModel):
    """Unified notification payload, identical across delivery channels."""

    id: str = Field(default_factory=lambda: f"notif_{uuid4().hex[:16]}")
    schema_version: str = SCHEMA_VERSION
    type: str
    priority: NotificationPriority
    timestamp: datetime = Field(default_factory=utcnow)
    payload: NotificationContent
    channels: NotificationChannels
