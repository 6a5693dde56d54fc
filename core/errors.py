"""Error codes for the monitoring pipeline.

Each error has:
- code: Unique identifier
- message: Technical description (for logs)
- retry_allowed: Whether the next scheduled run may succeed
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class ErrorDefinition:
    """Definition of a single error type."""

    code: str
    message: str
    retry_allowed: bool


ERROR_CATALOG: dict[str, ErrorDefinition] = {
    "EXTRACT_001": ErrorDefinition(
        code="EXTRACT_001",
        message="Page load timed out",
        retry_allowed=True,
    ),
    "EXTRACT_002": ErrorDefinition(
        code="EXTRACT_002",
        message="Navigation failed or was blocked",
        retry_allowed=True,
    ),
    "EXTRACT_003": ErrorDefinition(
        code="EXTRACT_003",
        message="Rendered page could not be parsed",
        retry_allowed=True,
    ),
    "EXTRACT_004": ErrorDefinition(
        code="EXTRACT_004",
        message="Source has no URL configured",
        retry_allowed=False,
    ),
    "SWEEP_001": ErrorDefinition(
        code="SWEEP_001",
        message="Scraped facts could not be applied to the source",
        retry_allowed=True,
    ),
    "DELIVERY_001": ErrorDefinition(
        code="DELIVERY_001",
        message="Email provider rejected or failed to send the message",
        retry_allowed=True,
    ),
    "DELIVERY_002": ErrorDefinition(
        code="DELIVERY_002",
        message="Email provider is not configured",
        retry_allowed=False,
    ),
    "DB_001": ErrorDefinition(
        code="DB_001",
        message="Persistence layer is unreachable",
        retry_allowed=True,
    ),
    "ALERT_001": ErrorDefinition(
        code="ALERT_001",
        message="Alert not found",
        retry_allowed=False,
    ),
    "ALERT_002": ErrorDefinition(
        code="ALERT_002",
        message="Alert status transition is not allowed",
        retry_allowed=False,
    ),
    "PREF_001": ErrorDefinition(
        code="PREF_001",
        message="Alert preference failed validation",
        retry_allowed=False,
    ),
}

DEFAULT_ERROR = ErrorDefinition(
    code="UNKNOWN",
    message="Unexpected error",
    retry_allowed=True,
)


def get_error(code: str) -> ErrorDefinition:
    """Look up an error definition, falling back to a generic entry."""
    return ERROR_CATALOG.get(code, DEFAULT_ERROR)
