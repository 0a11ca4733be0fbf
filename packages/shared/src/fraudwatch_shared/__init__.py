"""Shared schemas and delivery channels for FraudWatch."""

from fraudwatch_shared.email import (
    EmailConfig,
    EmailSender,
)
from fraudwatch_shared.schemas import (
    RISK_SEVERITY,
    SCHEMA_VERSION,
    WEIGHTED_CATEGORIES,
    AlertAction,
    AlertHistoryEntry,
    AlertMode,
    AlertType,
    CategoryCount,
    CombinedRisk,
    ContentFinding,
    ContentRiskLevel,
    ContentRiskResult,
    ContentType,
    EntityListEntry,
    EntityType,
    FraudReportRecord,
    NotificationChannels,
    NotificationContent,
    NotificationEnvelope,
    NotificationPriority,
    OTCRecord,
    PendingAlert,
    ProtectionSetting,
    ProtectionSettings,
    ReportCategory,
    ReportStats,
    RiskLevel,
    RiskResult,
    UserProfile,
)
from fraudwatch_shared.sms import SmsConfig, SmsSender

__all__ = [
    "RISK_SEVERITY",
    "SCHEMA_VERSION",
    "WEIGHTED_CATEGORIES",
    "AlertAction",
    "AlertHistoryEntry",
    "AlertMode",
    "AlertType",
    "CategoryCount",
    "CombinedRisk",
    "ContentFinding",
    "ContentRiskLevel",
    "ContentRiskResult",
    "ContentType",
    "EmailConfig",
    "EmailSender",
    "EntityListEntry",
    "EntityType",
    "FraudReportRecord",
    "NotificationChannels",
    "NotificationContent",
    "NotificationEnvelope",
    "NotificationPriority",
    "OTCRecord",
    "PendingAlert",
    "ProtectionSetting",
    "ProtectionSettings",
    "ReportCategory",
    "ReportStats",
    "RiskLevel",
    "RiskResult",
    "SmsConfig",
    "SmsSender",
    "UserProfile",
]
