"""
Schemas module initialization.
"""

from schemas.facts import ScrapedFacts, FACT_FIELDS, MONEY_FIELDS, TEXT_FIELDS
from schemas.alerts import (
    Alert,
    AlertCategory,
    AlertDraft,
    AlertSeverity,
    AlertStatus,
    AlertType,
    Change,
    ChangeType,
    NotificationType,
    NOTIFICATION_TYPE_BY_ALERT_TYPE,
)
from schemas.preferences import AlertPreference, CATEGORY_TOGGLES
from schemas.sources import SourceConfig, SourcesFile

__all__ = [
    "ScrapedFacts",
    "FACT_FIELDS",
    "MONEY_FIELDS",
    "TEXT_FIELDS",
    "Alert",
    "AlertCategory",
    "AlertDraft",
    "AlertSeverity",
    "AlertStatus",
    "AlertType",
    "Change",
    "ChangeType",
    "NotificationType",
    "NOTIFICATION_TYPE_BY_ALERT_TYPE",
    "AlertPreference",
    "CATEGORY_TOGGLES",
    "SourceConfig",
    "SourcesFile",
]
