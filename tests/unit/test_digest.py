"""
Unit tests for the daily digest.
"""

from datetime import timedelta

import pytest

from notifications import DigestAggregator
from schemas.alerts import AlertSeverity
from storage import AcknowledgementRepository, EmailLogRepository

from tests.helpers import FakeMailer


@pytest.fixture
def aggregator(db, mailer, settings):
    return DigestAggregator(db, mailer=mailer, settings=settings)


class TestDigest:
    def test_one_email_listing_all_alerts(self, aggregator, mailer, make_user, make_source, make_alert):
        make_source()
        make_user("u1", name="Ailsa", daily_digest=True)
        low = make_alert(severity=AlertSeverity.LOW, priority=2, title="Renewal Fee Decreased", age=timedelta(hours=1))
        high = make_alert(title="Registration Fee Increased", age=timedelta(hours=3))

        result = aggregator.run()

        assert result.emails_sent == 1
        assert result.alerts_included == 2
        message = mailer.sent[0]
        assert message["subject"] == "Daily Digest: 2 New Alerts"
        assert "Hello Ailsa" in message["html"]
        # Higher priority first even though it is older
        assert message["html"].index(high.title) < message["html"].index(low.title)

    def test_single_alert_subject(self, aggregator, mailer, make_user, make_source, make_alert):
        make_source()
        make_user("u1", daily_digest=True)
        make_alert()

        aggregator.run()

        assert mailer.sent[0]["subject"] == "Daily Digest: 1 New Alert"

    def test_silence_when_nothing_qualifies(self, aggregator, mailer, make_user, make_source, make_alert):
        """Test no email (not an empty digest) for users without alerts."""
        make_source()
        make_user("u1", daily_digest=True)
        make_alert(age=timedelta(hours=48))

        result = aggregator.run()

        assert result.users_considered == 1
        assert result.emails_sent == 0
        assert mailer.sent == []

    def test_acknowledged_alert_excluded(self, db, aggregator, mailer, make_user, make_source, make_alert):
        make_source()
        make_user("u1", daily_digest=True)
        make_user("u2", daily_digest=True)
        alert = make_alert()
        AcknowledgementRepository(db).acknowledge("u1", alert.id)

        aggregator.run()

        assert mailer.recipients() == ["u2@example.com"]

    def test_only_digest_subscribers(self, aggregator, mailer, make_user, make_source, make_alert):
        make_source()
        make_user("immediate-only")
        make_alert()

        result = aggregator.run()

        assert result.users_considered == 0
        assert mailer.sent == []

    def test_source_filter(self, aggregator, mailer, make_user, make_source, make_alert):
        make_source("edinburgh")
        make_source("glasgow", "Glasgow City Council")
        make_user("u1", daily_digest=True, source_filter=["glasgow"])
        make_alert(source_id="edinburgh")

        aggregator.run()

        assert mailer.sent == []

    def test_window_override(self, aggregator, mailer, make_user, make_source, make_alert):
        make_source()
        make_user("u1", daily_digest=True)
        make_alert(age=timedelta(hours=30))

        assert aggregator.run(window_hours=24).emails_sent == 0
        assert aggregator.run(window_hours=48).emails_sent == 1

    def test_failure_isolated_and_logged(self, db, settings, make_user, make_source, make_alert):
        make_source()
        make_user("bad", email="bad@example.com", daily_digest=True)
        make_user("good", email="good@example.com", daily_digest=True)
        make_user("no-address", email=None, daily_digest=True)
        make_alert()
        mailer = FakeMailer(fail_for={"bad@example.com"})

        result = DigestAggregator(db, mailer=mailer, settings=settings).run()

        assert result.emails_sent == 1
        assert result.emails_failed == 1
        assert result.users_without_email == 1
        assert mailer.recipients() == ["good@example.com"]
        log = EmailLogRepository(db).list_for_user("bad")[0]
        assert (log.kind, log.status) == ("digest", "failed")
