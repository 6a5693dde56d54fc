"""
Unit tests for notification dispatch.
"""

from datetime import timedelta

import pytest

from core.exceptions import AlertNotFoundError
from notifications import NotificationDispatcher
from schemas.alerts import AlertSeverity, AlertType
from storage import AlertRepository, EmailLogRepository, NotificationRepository

from tests.helpers import FakeMailer, fee_draft


@pytest.fixture
def dispatcher(db, mailer, settings):
    return NotificationDispatcher(db, mailer=mailer, settings=settings)


class TestSelection:
    """Test which users receive an alert."""

    def test_matching_users_get_notifications(self, db, dispatcher, make_user, make_source, make_alert):
        make_source()
        make_user("all-sources")
        make_user("edinburgh-only", source_filter=["edinburgh"])
        make_user("glasgow-only", source_filter=["glasgow"])
        make_user("no-fees", fee_change_alerts=False)
        alert = make_alert()

        result = dispatcher.dispatch(alert.id)

        assert result.matched_users == 2
        assert result.notifications_created == 2
        repo = NotificationRepository(db)
        assert len(repo.list_for_user("all-sources")) == 1
        assert len(repo.list_for_user("edinburgh-only")) == 1
        assert repo.list_for_user("glasgow-only") == []
        assert repo.list_for_user("no-fees") == []

    def test_in_app_disabled(self, db, dispatcher, mailer, make_user, make_source, make_alert):
        make_source()
        make_user("u1", email="u1@example.com", in_app_enabled=False)
        alert = make_alert()

        result = dispatcher.dispatch(alert.id)

        assert result.notifications_created == 0
        assert NotificationRepository(db).list_for_user("u1") == []
        assert mailer.recipients() == ["u1@example.com"]

    def test_system_alert_skips_filtered_users(self, db, dispatcher, make_user):
        make_user("everyone")
        make_user("filtered", source_filter=["edinburgh"])

        alert, result = dispatcher.publish_alert(
            fee_draft(alert_type=AlertType.SYSTEM, severity=AlertSeverity.INFO, priority=1, title="Maintenance"),
        )

        assert alert.source_id is None
        assert alert.expiry_date is not None
        assert result.matched_users == 1
        assert NotificationRepository(db).list_for_user("filtered") == []

    def test_missing_alert(self, dispatcher):
        with pytest.raises(AlertNotFoundError):
            dispatcher.dispatch("missing")


class TestImmediateEmail:
    """Test the immediate email gate."""

    def test_min_severity_gate(self, dispatcher, mailer, make_user, make_source, make_alert):
        make_source()
        make_user("high", email="high@example.com", min_severity="HIGH")
        make_user("any", email="any@example.com")
        make_user("critical", email="critical@example.com", min_severity="CRITICAL")

        dispatcher.dispatch(make_alert(severity=AlertSeverity.HIGH).id)

        assert mailer.recipients() == ["any@example.com", "high@example.com"]

    def test_medium_alert_not_emailed_to_high_minimum(self, dispatcher, mailer, make_user, make_source, make_alert):
        make_source()
        make_user("high", email="high@example.com", min_severity="HIGH")

        result = dispatcher.dispatch(make_alert(severity=AlertSeverity.MEDIUM, priority=3).id)

        assert mailer.sent == []
        assert result.notifications_created == 1

    def test_flags_required(self, dispatcher, mailer, make_user, make_source, make_alert):
        make_source()
        make_user("no-email", email_enabled=False)
        make_user("digest-only", immediate_alerts=False, daily_digest=True)
        make_user("no-address", email=None)

        result = dispatcher.dispatch(make_alert().id)

        assert mailer.sent == []
        assert result.notifications_created == 3

    def test_subject_and_body(self, dispatcher, mailer, make_user, make_source, make_alert):
        make_source()
        make_user("u1", name="Morag <script>")

        dispatcher.dispatch(make_alert().id)

        message = mailer.sent[0]
        assert message["subject"] == "[HIGH] Registration Fee Increased"
        assert "City of Edinburgh Council" in message["html"]
        assert "Morag &lt;script&gt;" in message["html"]


class TestIdempotenceAndIsolation:
    def test_dispatch_twice(self, db, dispatcher, mailer, make_user, make_source, make_alert):
        """Test a re-run creates no new notifications and sends no new emails."""
        make_source()
        make_user("u1")
        make_user("u2")
        alert = make_alert()

        first = dispatcher.dispatch(alert.id)
        second = dispatcher.dispatch(alert.id)

        assert first.notifications_created == 2
        assert first.emails_sent == 2
        assert second.notifications_created == 0
        assert second.emails_sent == 0
        assert second.emails_skipped == 2
        assert len(mailer.sent) == 2
        assert len(NotificationRepository(db).list_for_user("u1")) == 1

    def test_one_failure_does_not_block_others(self, db, settings, make_user, make_source, make_alert):
        make_source()
        make_user("bad", email="bad@example.com")
        make_user("good", email="good@example.com")
        mailer = FakeMailer(fail_for={"bad@example.com"})
        dispatcher = NotificationDispatcher(db, mailer=mailer, settings=settings)
        alert = make_alert()

        result = dispatcher.dispatch(alert.id)

        assert result.emails_sent == 1
        assert result.emails_failed == 1
        assert result.failures[0]["user_id"] == "bad"
        assert result.notifications_created == 2
        assert mailer.recipients() == ["good@example.com"]

        logs = EmailLogRepository(db)
        assert not logs.has_sent("bad", alert.id)
        assert logs.list_for_user("bad")[0].status == "failed"

    def test_failed_email_retried_on_rerun(self, db, settings, make_user, make_source, make_alert):
        make_source()
        make_user("u1", email="u1@example.com")
        alert = make_alert()

        NotificationDispatcher(db, mailer=FakeMailer(fail_for={"u1@example.com"}), settings=settings).dispatch(alert.id)
        retry_mailer = FakeMailer()
        result = NotificationDispatcher(db, mailer=retry_mailer, settings=settings).dispatch(alert.id)

        assert result.emails_sent == 1
        assert result.notifications_created == 0
        assert retry_mailer.recipients() == ["u1@example.com"]

    def test_unexpected_mailer_error_is_contained(self, db, settings, make_user, make_source, make_alert):
        class BrokenMailer:
            def send(self, to, subject, html):
                raise RuntimeError("socket closed")

        make_source()
        make_user("u1")
        dispatcher = NotificationDispatcher(db, mailer=BrokenMailer(), settings=settings)

        result = dispatcher.dispatch(make_alert().id)

        assert result.emails_failed == 1
        assert "RuntimeError" in result.failures[0]["error"]

    def test_completed_dispatch_is_stamped(self, db, dispatcher, make_user, make_source, make_alert):
        """Test only alerts whose dispatch finished drop out of the undispatched list."""
        make_source()
        make_user("u1")
        delivered = make_alert()
        pending = make_alert(age=timedelta(hours=1))
        alerts = AlertRepository(db)

        assert alerts.list_undispatched() == [pending.id, delivered.id]

        dispatcher.dispatch(delivered.id)

        assert alerts.list_undispatched() == [pending.id]
