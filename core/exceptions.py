"""Custom exception classes for the monitoring pipeline.

Each exception carries an error_code from the catalog in errors.py plus a
details dict for logging. Source-level and recipient-level errors are caught
by the jobs and aggregated into batch summaries; only PersistenceUnavailable
is allowed to abort a job run.
"""

from typing import Any

from core.errors import get_error


class RegwatchError(Exception):
    """Base exception for all pipeline errors.

    Attributes:
        error_code: Code from the error catalog (e.g., "EXTRACT_001")
        details: Additional context about the error (for logging)
    """

    default_code = "UNKNOWN"

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.error_code = error_code or self.default_code
        self.details = details or {}
        self.message = message or get_error(self.error_code).message
        super().__init__(self.message)

    @property
    def retry_allowed(self) -> bool:
        return get_error(self.error_code).retry_allowed

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


class ExtractionFailure(RegwatchError):
    """Raised when a source page cannot be loaded or rendered.

    Common causes:
    - Navigation timeout (EXTRACT_001)
    - Anti-bot block or network error (EXTRACT_002)
    - Empty or unparseable document (EXTRACT_003)

    Retried on the next scheduled sweep, never within the same run.
    """

    default_code = "EXTRACT_002"


class DeliveryFailure(RegwatchError):
    """Raised by a Mailer when a message could not be sent."""

    default_code = "DELIVERY_001"


class PersistenceUnavailable(RegwatchError):
    """Raised when the database cannot be reached. Fatal to a job run."""

    default_code = "DB_001"


class AlertNotFoundError(RegwatchError):
    default_code = "ALERT_001"


class InvalidTransitionError(RegwatchError):
    default_code = "ALERT_002"


class PreferenceValidationError(RegwatchError):
    default_code = "PREF_001"
