"""
Lifecycle module initialization.
"""

from lifecycle.manager import (
    ALLOWED_TRANSITIONS,
    archive_alert,
    can_transition,
    default_expiry,
    expire_alerts,
    set_status,
)

__all__ = [
    "ALLOWED_TRANSITIONS",
    "archive_alert",
    "can_transition",
    "default_expiry",
    "expire_alerts",
    "set_status",
]
