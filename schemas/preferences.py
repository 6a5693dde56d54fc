"""Per-user alert delivery preferences.

The persisted row stores the source filter as a JSON list; this schema is the
single place it is validated and turned into a typed set. An empty set means
"every source".
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from schemas.alerts import AlertSeverity, AlertType

# Alert types a user can switch off. Types missing here are always delivered.
CATEGORY_TOGGLES: dict[AlertType, str] = {
    AlertType.FEE_CHANGE: "fee_change_alerts",
    AlertType.REQUIREMENT_CHANGE: "requirement_alerts",
    AlertType.DEADLINE: "deadline_alerts",
    AlertType.POLICY_UPDATE: "policy_change_alerts",
    AlertType.SYSTEM: "system_alerts",
}


class AlertPreference(BaseModel):
    """Typed view of one user's alert_preferences row."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    user_id: str

    # Channels
    email_enabled: bool = True
    in_app_enabled: bool = True

    # Categories
    fee_change_alerts: bool = True
    requirement_alerts: bool = True
    deadline_alerts: bool = True
    policy_change_alerts: bool = True
    system_alerts: bool = True

    # Cadence
    immediate_alerts: bool = True
    daily_digest: bool = False
    min_severity: Optional[AlertSeverity] = None

    source_filter: frozenset[str] = frozenset()

    @field_validator("source_filter", mode="before")
    @classmethod
    def parse_source_filter(cls, v: Any) -> frozenset[str]:
        """Accept None or an iterable of ids; reject anything else."""
        if v is None:
            return frozenset()
        if isinstance(v, (str, bytes, dict)):
            raise ValueError("source_filter must be a list of source ids")
        try:
            items = list(v)
        except TypeError:
            raise ValueError("source_filter must be a list of source ids")

        ids = set()
        for item in items:
            if isinstance(item, bool) or not isinstance(item, (str, int)):
                raise ValueError(f"Invalid source id in source_filter: {item!r}")
            text = str(item).strip()
            if text:
                ids.add(text)
        return frozenset(ids)

    def accepts_source(self, source_id: Optional[str]) -> bool:
        if not self.source_filter:
            return True
        return source_id is not None and source_id in self.source_filter

    def accepts_type(self, alert_type: AlertType) -> bool:
        toggle = CATEGORY_TOGGLES.get(AlertType(alert_type))
        if toggle is None:
            return True
        return getattr(self, toggle)

    def matches(self, alert_type: AlertType, source_id: Optional[str]) -> bool:
        """Whether an alert of this type/source is of interest to the user."""
        return self.accepts_source(source_id) and self.accepts_type(alert_type)

    def wants_immediate_email(self, severity: AlertSeverity) -> bool:
        return (
            self.email_enabled
            and self.immediate_alerts
            and AlertSeverity(severity).at_least(self.min_severity)
        )

    def filter_as_list(self) -> list[str]:
        """Stable JSON-friendly form for persistence."""
        return sorted(self.source_filter)
