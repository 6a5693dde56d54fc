"""Structured facts extracted from a source page.

Every field is independently optional: failing to find one fact never
invalidates the others, and an instance with every field unset is a valid
"no signal" result rather than an error.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from utils.timeutils import utcnow

# Tracked fields in the order changes are reported
FACT_FIELDS: tuple[str, ...] = (
    "registration_fee",
    "renewal_fee",
    "hmo_fee",
    "processing_time_days",
    "contact_email",
    "contact_phone",
)

MONEY_FIELDS: frozenset[str] = frozenset({"registration_fee", "renewal_fee", "hmo_fee"})
TEXT_FIELDS: frozenset[str] = frozenset({"contact_email", "contact_phone"})


class ScrapedFacts(BaseModel):
    """Facts pulled from one source page (or the last known values for a source)."""

    model_config = ConfigDict(frozen=True)

    registration_fee: Optional[float] = None
    renewal_fee: Optional[float] = None
    hmo_fee: Optional[float] = None
    processing_time_days: Optional[int] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None

    source_url: Optional[str] = None
    checked_at: datetime = Field(default_factory=utcnow)

    @field_validator("contact_email", "contact_phone")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        """Treat whitespace-only strings as absent."""
        if v is None:
            return None
        v = v.strip()
        return v or None

    def values(self) -> dict[str, object]:
        """Tracked fields only, including unset ones."""
        return {name: getattr(self, name) for name in FACT_FIELDS}

    def fields_found(self) -> list[str]:
        return [name for name in FACT_FIELDS if getattr(self, name) is not None]

    def is_empty(self) -> bool:
        return not self.fields_found()
