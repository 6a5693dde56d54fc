"""
Notification dispatch for newly created alerts.

For one alert:
1. Load every preference row and keep the users whose source filter and
   category toggles match the alert.
2. Create the in-app notification (idempotent per user/alert).
3. Send an immediate email when the user's channel, cadence and minimum
   severity allow it, unless one was already sent successfully.

Re-running dispatch for the same alert is safe: existing notifications and
successful emails are skipped. An alert is stamped dispatched_at only after
every step above has finished, so an interrupted dispatch is picked up again
by the next scrape sweep.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from core.config import Settings, get_settings
from lifecycle import default_expiry
from monitoring.metrics import MetricsCollector
from notifications.mailer import Mailer, OutgoingEmail, build_mailer, send_concurrently
from notifications.templates import alert_subject, render_alert_email
from schemas.alerts import Alert, AlertDraft
from storage.models import DatabaseManager
from storage.repository import (
    AlertRepository,
    EmailLogRepository,
    NotificationRepository,
    PreferenceRepository,
)
from utils.timeutils import utcnow

logger = logging.getLogger(__name__)


@dataclass
class DispatchResult:
    """Delivery outcome for one alert."""
    alert_id: str
    matched_users: int = 0
    notifications_created: int = 0
    emails_sent: int = 0
    emails_failed: int = 0
    emails_skipped: int = 0
    failures: List[Dict[str, Any]] = field(default_factory=list)


class NotificationDispatcher:
    """
    Deliver alerts to interested users.
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
        self.notifications = NotificationRepository(db)
        self.email_logs = EmailLogRepository(db)

    def dispatch(self, alert_id: str) -> DispatchResult:
        """
        Deliver one persisted alert.

        Args:
            alert_id: Alert to deliver

        Returns:
            DispatchResult with per-channel counts

        Raises:
            AlertNotFoundError: If the alert does not exist
        """
        alert = self.alerts.require(alert_id)
        result = DispatchResult(alert_id=alert.id)
        outgoing: List[OutgoingEmail] = []

        for user, preference in self.preferences.list_with_users():
            if not preference.matches(alert.alert_type, alert.source_id):
                continue
            result.matched_users += 1

            if preference.in_app_enabled:
                if self.notifications.create_for_alert(user.id, alert):
                    result.notifications_created += 1
                    self.metrics.log_delivery("in_app", True)

            if not preference.wants_immediate_email(alert.severity):
                continue
            if not user.email:
                logger.debug(f"User {user.id} has no email address; in-app only")
                continue
            if self.email_logs.has_sent(user.id, alert.id, kind="immediate"):
                result.emails_skipped += 1
                continue

            outgoing.append(OutgoingEmail(
                user_id=user.id,
                to=user.email,
                subject=alert_subject(alert),
                html=render_alert_email(alert, user.name, self.settings.APP_URL),
                alert_id=alert.id,
            ))

        for message, error in send_concurrently(self.mailer, outgoing, self.settings.EMAIL_MAX_WORKERS):
            self.email_logs.record(
                user_id=message.user_id,
                recipient=message.to,
                subject=message.subject,
                kind="immediate",
                success=error is None,
                alert_id=message.alert_id,
                error_message=error,
            )
            self.metrics.log_delivery("email", error is None)
            if error is None:
                result.emails_sent += 1
            else:
                result.emails_failed += 1
                result.failures.append({"user_id": message.user_id, "recipient": message.to, "error": error})

        self.alerts.mark_dispatched(alert.id)
        logger.info(
            f"Dispatched alert {alert.id} ({alert.severity.value}): "
            f"{result.matched_users} matched, {result.notifications_created} notifications, "
            f"{result.emails_sent} emails sent, {result.emails_failed} failed, "
            f"{result.emails_skipped} already sent"
        )
        return result

    def publish_alert(
        self,
        draft: AlertDraft,
        source_id: Optional[str] = None,
        source_url: Optional[str] = None,
        effective_date: Optional[datetime] = None,
        expiry_date: Optional[datetime] = None,
    ) -> Tuple[Alert, DispatchResult]:
        """
        Persist an alert and dispatch it immediately.

        Used for manually published alerts, including system-wide ones
        (source_id None), which reach only users without a source filter.
        """
        now = utcnow()
        alert = self.alerts.create(
            draft,
            source_id=source_id,
            source_url=source_url,
            effective_date=effective_date or now,
            expiry_date=expiry_date if expiry_date is not None else default_expiry(now, self.settings),
        )
        return alert, self.dispatch(alert.id)
