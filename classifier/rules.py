"""Deterministic alert classification.

Every detected change is mapped to an alert through a fixed rule table keyed
by ChangeType. Severity and priority come straight from the table and are
never recomputed later; title and description are templated from the changed
field and its old/new values.

Priority is the static per-type constant in this table.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from schemas.alerts import (
    AlertCategory,
    AlertDraft,
    AlertSeverity,
    AlertType,
    Change,
    ChangeType,
)
from schemas.facts import MONEY_FIELDS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AlertRule:
    alert_type: AlertType
    category: AlertCategory
    severity: AlertSeverity
    priority: int
    title: str
    description: str


RULES: dict[ChangeType, AlertRule] = {
    ChangeType.FEE_INCREASE: AlertRule(
        AlertType.FEE_CHANGE, AlertCategory.FEES, AlertSeverity.HIGH, 4,
        title="{label} Fee Increased",
        description="{label} fee has increased from {old} to {new}. This may affect renewal costs.",
    ),
    ChangeType.FEE_DECREASE: AlertRule(
        AlertType.FEE_CHANGE, AlertCategory.FEES, AlertSeverity.LOW, 2,
        title="{label} Fee Decreased",
        description="{label} fee has decreased from {old} to {new}. Savings available on renewals.",
    ),
    ChangeType.REQUIREMENT_ADDED: AlertRule(
        AlertType.REQUIREMENT_CHANGE, AlertCategory.COMPLIANCE, AlertSeverity.CRITICAL, 5,
        title="New Requirement Added: {label}",
        description="A new compliance requirement has been added: {new}. Action may be required for existing properties.",
    ),
    ChangeType.REQUIREMENT_REMOVED: AlertRule(
        AlertType.REQUIREMENT_CHANGE, AlertCategory.COMPLIANCE, AlertSeverity.LOW, 2,
        title="Requirement Removed: {label}",
        description="{label} is no longer required: {old}. This simplifies compliance.",
    ),
    ChangeType.DEADLINE_CHANGE: AlertRule(
        AlertType.DEADLINE, AlertCategory.COMPLIANCE, AlertSeverity.HIGH, 4,
        title="Deadline Changed for {label}",
        description="{label} deadline has changed from {old} to {new}. Review your submission timelines.",
    ),
    ChangeType.PROCESS_UPDATE: AlertRule(
        AlertType.PROCESS_CHANGE, AlertCategory.GENERAL, AlertSeverity.MEDIUM, 3,
        title="Process Update: {label}",
        description="The process for {label} has been updated. Previous: {old}. New: {new}.",
    ),
    ChangeType.CONTACT_UPDATE: AlertRule(
        AlertType.CONTACT_CHANGE, AlertCategory.GENERAL, AlertSeverity.INFO, 1,
        title="Contact Information Updated: {label}",
        description="{label} has been updated from {old} to {new}.",
    ),
    ChangeType.OTHER: AlertRule(
        AlertType.POLICY_UPDATE, AlertCategory.COMPLIANCE, AlertSeverity.MEDIUM, 3,
        title="Policy Update: {label}",
        description="Policy has been updated for {label}. Review the changes to ensure compliance.",
    ),
}

# Fail at import rather than let a new ChangeType fall through silently
_unmapped = set(ChangeType) - set(RULES)
if _unmapped:
    raise RuntimeError(f"No alert rule for change types: {sorted(t.value for t in _unmapped)}")


def rule_for(change_type: Any) -> AlertRule:
    """Rule for a change type; unknown values use the OTHER rule."""
    coerced = ChangeType.coerce(change_type)
    if coerced is ChangeType.OTHER and change_type != ChangeType.OTHER:
        logger.warning(f"Unrecognised change type {change_type!r}, classifying as OTHER")
    return RULES[coerced]


def format_value(field_name: str, value: Any) -> str:
    """Human-readable value for alert text."""
    if value is None or value == "":
        return "not set"
    if field_name in MONEY_FIELDS:
        amount = float(value)
        return f"£{amount:,.0f}" if amount.is_integer() else f"£{amount:,.2f}"
    if field_name == "processing_time_days":
        return f"{int(value)} days"
    return str(value)


def classify(change: Change, source_name: Optional[str] = None) -> AlertDraft:
    """
    Turn a detected change into an alert draft.

    Args:
        change: Field-level change from the diff engine
        source_name: Display name of the source, prefixed to the description

    Returns:
        AlertDraft with severity and priority from the rule table
    """
    rule = rule_for(change.change_type)
    values = {
        "label": change.label,
        "old": format_value(change.field, change.old_value),
        "new": format_value(change.field, change.new_value),
    }

    description = rule.description.format(**values)
    if source_name:
        description = f"{source_name}: {description}"

    return AlertDraft(
        title=rule.title.format(**values),
        description=description,
        alert_type=rule.alert_type,
        category=rule.category,
        severity=rule.severity,
        priority=rule.priority,
    )
