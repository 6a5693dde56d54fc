"""
Diff engine for tracking changes in source facts.

Compares freshly scraped facts with the last known values for a source.
Rules:
- A change is reported only when both old and new values are present and differ
- A field missing from the new scrape is "unchanged", never an overwrite with null
- Numbers compare by exact value; text compares case-sensitively after trimming
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, List

from schemas.alerts import Change, ChangeType
from schemas.facts import FACT_FIELDS, MONEY_FIELDS, TEXT_FIELDS, ScrapedFacts
from utils.timeutils import utcnow

logger = logging.getLogger(__name__)

FIELD_LABELS: dict[str, str] = {
    "registration_fee": "Registration",
    "renewal_fee": "Renewal",
    "hmo_fee": "HMO",
    "processing_time_days": "Processing Time",
    "contact_email": "Contact Email",
    "contact_phone": "Contact Phone",
}


@dataclass
class SourceDiff:
    """Changes detected for one source in one scrape."""
    source_id: str
    source_name: str
    changes: List[Change]
    timestamp: datetime = field(default_factory=utcnow)
    summary: str = ""


class ChangeComparator:
    """
    Compare stored and scraped facts to identify field-level changes.
    """

    @staticmethod
    def compare(stored: Optional[ScrapedFacts], scraped: ScrapedFacts) -> List[Change]:
        """
        Compare stored facts with a new scrape.

        Args:
            stored: Last known facts for the source (None if never scraped)
            scraped: Facts from the current scrape

        Returns:
            Changes in FACT_FIELDS order (empty if nothing differs)
        """
        if stored is None:
            return []

        changes: List[Change] = []
        for name in FACT_FIELDS:
            old_val = ChangeComparator._normalize(name, getattr(stored, name))
            new_val = ChangeComparator._normalize(name, getattr(scraped, name))

            if old_val is None or new_val is None or old_val == new_val:
                continue

            changes.append(Change(
                field=name,
                label=FIELD_LABELS[name],
                old_value=old_val,
                new_value=new_val,
                change_type=ChangeComparator._determine_change_type(name, old_val, new_val),
            ))
        return changes

    @staticmethod
    def _normalize(field_name: str, value: Any) -> Any:
        if value is None:
            return None
        if field_name in TEXT_FIELDS:
            value = str(value).strip()
            return value or None
        if field_name in MONEY_FIELDS:
            return float(value)
        return int(value)

    @staticmethod
    def _determine_change_type(field_name: str, old_val: Any, new_val: Any) -> ChangeType:
        if field_name in MONEY_FIELDS:
            return ChangeType.FEE_INCREASE if new_val > old_val else ChangeType.FEE_DECREASE
        if field_name == "processing_time_days":
            return ChangeType.PROCESS_UPDATE
        if field_name in TEXT_FIELDS:
            return ChangeType.CONTACT_UPDATE
        return ChangeType.OTHER


def detect_changes(stored: Optional[ScrapedFacts], scraped: ScrapedFacts) -> List[Change]:
    """Convenience wrapper around ChangeComparator.compare."""
    return ChangeComparator.compare(stored, scraped)


def merge_facts(stored: Optional[ScrapedFacts], scraped: ScrapedFacts) -> ScrapedFacts:
    """
    Facts to persist after a scrape.

    Present values from the scrape win; absent ones keep the stored value, so a
    partial scrape never erases what was known.
    """
    if stored is None:
        return scraped

    update = {
        name: value
        for name, value in scraped.values().items()
        if value is not None
    }
    update["checked_at"] = scraped.checked_at
    if scraped.source_url:
        update["source_url"] = scraped.source_url
    return stored.model_copy(update=update)


def diff_and_log(
    source_id: str,
    source_name: str,
    stored: Optional[ScrapedFacts],
    scraped: ScrapedFacts
) -> SourceDiff:
    """
    Compare facts and log changes.

    Args:
        source_id: Source identifier
        source_name: Display name (for logs)
        stored: Previous facts
        scraped: Current facts

    Returns:
        SourceDiff result
    """
    changes = detect_changes(stored, scraped)

    if changes:
        summary = "; ".join(
            f"{c.label}: {c.old_value} → {c.new_value}" for c in changes
        )
        logger.warning(f"Changes detected for {source_name}: {summary}")
    else:
        summary = "No changes"
        logger.info(f"No changes for {source_name}")

    return SourceDiff(
        source_id=source_id,
        source_name=source_name,
        changes=changes,
        summary=summary,
    )
