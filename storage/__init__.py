"""
Storage module initialization.
"""

from storage.models import (
    AcknowledgementRecord,
    AlertPreferenceRecord,
    AlertRecord,
    Base,
    DatabaseManager,
    EmailLog,
    ExtractionLog,
    NotificationRecord,
    SourceRecord,
    UserRecord,
)
from storage.repository import (
    AcknowledgementRepository,
    AlertRepository,
    EmailLogRepository,
    ExtractionLogRepository,
    NotificationRepository,
    PreferenceRepository,
    SourceRepository,
    UserRepository,
)

__all__ = [
    "AcknowledgementRecord",
    "AlertPreferenceRecord",
    "AlertRecord",
    "Base",
    "DatabaseManager",
    "EmailLog",
    "ExtractionLog",
    "NotificationRecord",
    "SourceRecord",
    "UserRecord",
    "AcknowledgementRepository",
    "AlertRepository",
    "EmailLogRepository",
    "ExtractionLogRepository",
    "NotificationRepository",
    "PreferenceRepository",
    "SourceRepository",
    "UserRepository",
]
