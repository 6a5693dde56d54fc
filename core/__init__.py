"""
Core module initialization.
"""

from core.config import Settings, get_settings
from core.exceptions import (
    RegwatchError,
    ExtractionFailure,
    DeliveryFailure,
    PersistenceUnavailable,
    AlertNotFoundError,
    InvalidTransitionError,
    PreferenceValidationError,
)

__all__ = [
    "Settings",
    "get_settings",
    "RegwatchError",
    "ExtractionFailure",
    "DeliveryFailure",
    "PersistenceUnavailable",
    "AlertNotFoundError",
    "InvalidTransitionError",
    "PreferenceValidationError",
]
