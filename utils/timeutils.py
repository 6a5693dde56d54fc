"""
Clock helpers.

All persisted timestamps are naive UTC so they compare cleanly with values
read back from SQLite and PostgreSQL alike.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current UTC time as a naive datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
