"""
Daily digest job.

One email per subscribed user listing the ACTIVE alerts of the trailing
window they have not acknowledged. Users with nothing to report get no email.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from core.config import Settings, get_settings
from monitoring.metrics import MetricsCollector
from notifications.mailer import Mailer, OutgoingEmail, build_mailer, send_concurrently
from notifications.templates import digest_subject, render_digest_email
from storage.models import DatabaseManager
from storage.repository import AlertRepository, EmailLogRepository, PreferenceRepository
from utils.timeutils import utcnow

logger = logging.getLogger(__name__)


@dataclass
class DigestResult:
    users_considered: int = 0
    users_without_email: int = 0
    emails_sent: int = 0
    emails_failed: int = 0
    alerts_included: int = 0
    failures: List[Dict[str, Any]] = field(default_factory=list)


class DigestAggregator:
    """
    Build and send daily digests.
    """

    def __init__(
        self,
        db: DatabaseManager,
        mailer: Optional[Mailer] = None,
        settings: Optional[Settings] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.mailer = mailer or build_mailer(self.settings)
        self.metrics = metrics or MetricsCollector()

        self.alerts = AlertRepository(db)
        self.preferences = PreferenceRepository(db)
        self.email_logs = EmailLogRepository(db)

    def run(self, now: Optional[datetime] = None, window_hours: Optional[int] = None) -> DigestResult:
        """
        Send one digest to every daily_digest user with qualifying alerts.

        Args:
            now: End of the window (defaults to the current UTC time)
            window_hours: Window length (defaults to DIGEST_WINDOW_HOURS)

        Returns:
            DigestResult
        """
        now = now or utcnow()
        if window_hours is None:
            window_hours = self.settings.DIGEST_WINDOW_HOURS
        since = now - timedelta(hours=window_hours)

        result = DigestResult()
        outgoing: List[OutgoingEmail] = []

        for user, preference in self.preferences.list_with_users(digest_only=True):
            result.users_considered += 1
            if not user.email:
                result.users_without_email += 1
                continue

            alerts = self.alerts.list_for_digest(user.id, since, preference.source_filter)
            if not alerts:
                logger.debug(f"No digest for user {user.id}: nothing new")
                continue

            result.alerts_included += len(alerts)
            outgoing.append(OutgoingEmail(
                user_id=user.id,
                to=user.email,
                subject=digest_subject(len(alerts)),
                html=render_digest_email(alerts, user.name, self.settings.APP_URL, window_hours, now),
            ))

        for message, error in send_concurrently(self.mailer, outgoing, self.settings.EMAIL_MAX_WORKERS):
            self.email_logs.record(
                user_id=message.user_id,
                recipient=message.to,
                subject=message.subject,
                kind="digest",
                success=error is None,
                error_message=error,
            )
            self.metrics.log_delivery("email", error is None, kind="digest")
            if error is None:
                result.emails_sent += 1
            else:
                result.emails_failed += 1
                result.failures.append({"user_id": message.user_id, "recipient": message.to, "error": error})

        logger.info(
            f"Digest run ({window_hours}h window): {result.users_considered} subscribers, "
            f"{result.emails_sent} sent, {result.emails_failed} failed"
        )
        return result
