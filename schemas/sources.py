"""Source list loaded from the sources YAML file."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from schemas.facts import FACT_FIELDS


class SourceConfig(BaseModel):
    """One monitored authority as declared in config."""

    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1)
    url: Optional[str] = None
    priority: bool = False
    # Known facts used as the baseline for a brand-new source
    facts: dict[str, float | int | str] = Field(default_factory=dict)

    @field_validator("url")
    @classmethod
    def blank_url_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @field_validator("facts")
    @classmethod
    def known_fact_fields(cls, v: dict) -> dict:
        unknown = set(v) - set(FACT_FIELDS)
        if unknown:
            raise ValueError(f"Unknown fact fields: {sorted(unknown)}")
        return v


class SourcesFile(BaseModel):
    sources: list[SourceConfig] = Field(default_factory=list)
