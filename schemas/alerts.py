"""Alert taxonomy and transient change/alert schemas."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class AlertSeverity(str, Enum):
    """Five-level ordinal severity. Declaration order is the ordering."""

    INFO = "INFO"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def at_least(self, minimum: Optional["AlertSeverity"]) -> bool:
        """True when this severity meets ``minimum`` (None accepts everything)."""
        if minimum is None:
            return True
        return self.rank >= AlertSeverity(minimum).rank


_SEVERITY_RANK: dict[AlertSeverity, int] = {
    severity: index for index, severity in enumerate(AlertSeverity, start=1)
}


class AlertStatus(str, Enum):
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    ARCHIVED = "ARCHIVED"


class AlertType(str, Enum):
    FEE_CHANGE = "FEE_CHANGE"
    REQUIREMENT_CHANGE = "REQUIREMENT_CHANGE"
    DEADLINE = "DEADLINE"
    POLICY_UPDATE = "POLICY_UPDATE"
    PROCESS_CHANGE = "PROCESS_CHANGE"
    CONTACT_CHANGE = "CONTACT_CHANGE"
    SYSTEM = "SYSTEM"


class AlertCategory(str, Enum):
    FEES = "FEES"
    COMPLIANCE = "COMPLIANCE"
    GENERAL = "GENERAL"


class ChangeType(str, Enum):
    """Kind of change detected on a source.

    Upstream producers may extend this taxonomy; ``coerce`` maps anything
    unrecognised to OTHER instead of failing.
    """

    FEE_INCREASE = "FEE_INCREASE"
    FEE_DECREASE = "FEE_DECREASE"
    REQUIREMENT_ADDED = "REQUIREMENT_ADDED"
    REQUIREMENT_REMOVED = "REQUIREMENT_REMOVED"
    DEADLINE_CHANGE = "DEADLINE_CHANGE"
    PROCESS_UPDATE = "PROCESS_UPDATE"
    CONTACT_UPDATE = "CONTACT_UPDATE"
    OTHER = "OTHER"

    @classmethod
    def coerce(cls, value: Any) -> "ChangeType":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).upper())
        except ValueError:
            return cls.OTHER


class NotificationType(str, Enum):
    """Type tag shown on in-app notifications."""

    FEE_CHANGE = "FEE_CHANGE"
    REQUIREMENT_CHANGE = "REQUIREMENT_CHANGE"
    DEADLINE_APPROACHING = "DEADLINE_APPROACHING"
    POLICY_UPDATE = "POLICY_UPDATE"
    SYSTEM = "SYSTEM"


NOTIFICATION_TYPE_BY_ALERT_TYPE: dict[AlertType, NotificationType] = {
    AlertType.FEE_CHANGE: NotificationType.FEE_CHANGE,
    AlertType.REQUIREMENT_CHANGE: NotificationType.REQUIREMENT_CHANGE,
    AlertType.DEADLINE: NotificationType.DEADLINE_APPROACHING,
    AlertType.POLICY_UPDATE: NotificationType.POLICY_UPDATE,
    AlertType.PROCESS_CHANGE: NotificationType.SYSTEM,
    AlertType.CONTACT_CHANGE: NotificationType.SYSTEM,
    AlertType.SYSTEM: NotificationType.SYSTEM,
}


@dataclass(frozen=True)
class Change:
    """One field's before/after value on a source. Transient, never persisted."""

    field: str
    label: str
    old_value: Any
    new_value: Any
    change_type: ChangeType


class AlertDraft(BaseModel):
    """Classifier output, ready to be persisted as an alert."""

    model_config = ConfigDict(frozen=True)

    title: str
    description: str
    alert_type: AlertType
    category: AlertCategory
    severity: AlertSeverity
    priority: int = Field(..., ge=1, le=5)


class Alert(BaseModel):
    """Read model of a persisted alert."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    source_id: Optional[str] = None
    source_name: Optional[str] = None
    alert_type: AlertType
    category: AlertCategory
    title: str
    description: str
    effective_date: datetime
    expiry_date: Optional[datetime] = None
    severity: AlertSeverity
    priority: int
    status: AlertStatus
    source_url: Optional[str] = None
    view_count: int = 0
    created_at: datetime
