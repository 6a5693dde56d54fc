"""
Unit tests for alert lifecycle transitions and expiry.
"""

from datetime import timedelta

import pytest

from core.exceptions import AlertNotFoundError, InvalidTransitionError
from lifecycle import archive_alert, can_transition, default_expiry, expire_alerts, set_status
from schemas.alerts import AlertStatus
from storage import AlertRepository, NotificationRepository
from utils.timeutils import utcnow

from tests.helpers import fee_draft


class TestTransitions:
    @pytest.mark.parametrize("current, target, allowed", [
        (AlertStatus.ACTIVE, AlertStatus.EXPIRED, True),
        (AlertStatus.ACTIVE, AlertStatus.ARCHIVED, True),
        (AlertStatus.EXPIRED, AlertStatus.ARCHIVED, True),
        (AlertStatus.EXPIRED, AlertStatus.ACTIVE, False),
        (AlertStatus.ARCHIVED, AlertStatus.ACTIVE, False),
        (AlertStatus.ARCHIVED, AlertStatus.EXPIRED, False),
    ])
    def test_table(self, current, target, allowed):
        assert can_transition(current, target) is allowed

    def test_archive_is_terminal(self, db, make_source, make_alert):
        make_source()
        alert = make_alert()

        assert archive_alert(db, alert.id) == AlertStatus.ARCHIVED
        with pytest.raises(InvalidTransitionError):
            set_status(db, alert.id, AlertStatus.ACTIVE)
        assert AlertRepository(db).get(alert.id).status == AlertStatus.ARCHIVED

    def test_missing_alert(self, db):
        with pytest.raises(AlertNotFoundError):
            archive_alert(db, "missing")

    def test_default_expiry(self, settings):
        now = utcnow()

        assert default_expiry(now, settings) == now + timedelta(days=90)
        assert default_expiry(now, settings.model_copy(update={"ALERT_EXPIRY_DAYS": 0})) is None


class TestExpirySweep:
    def _alert(self, db, expiry_date):
        return AlertRepository(db).create(fee_draft(), source_id="edinburgh", expiry_date=expiry_date)

    def test_expires_only_past_due_active_alerts(self, db, make_source):
        make_source()
        now = utcnow()
        past = self._alert(db, now - timedelta(days=1))
        future = self._alert(db, now + timedelta(days=1))
        never = self._alert(db, None)
        archived = self._alert(db, now - timedelta(days=1))
        archive_alert(db, archived.id)

        assert expire_alerts(db, now=now) == 1

        repo = AlertRepository(db)
        assert repo.get(past.id).status == AlertStatus.EXPIRED
        assert repo.get(future.id).status == AlertStatus.ACTIVE
        assert repo.get(never.id).status == AlertStatus.ACTIVE
        assert repo.get(archived.id).status == AlertStatus.ARCHIVED

    def test_second_sweep_is_noop(self, db, make_source):
        make_source()
        now = utcnow()
        self._alert(db, now - timedelta(hours=1))

        assert expire_alerts(db, now=now) == 1
        assert expire_alerts(db, now=now) == 0

    def test_no_side_effects(self, db, make_source, make_user):
        make_source()
        make_user("u1")
        now = utcnow()
        self._alert(db, now - timedelta(hours=1))

        expire_alerts(db, now=now)

        assert NotificationRepository(db).list_for_user("u1") == []

    def test_expired_can_be_archived(self, db, make_source):
        make_source()
        now = utcnow()
        alert = self._alert(db, now - timedelta(hours=1))
        expire_alerts(db, now=now)

        assert archive_alert(db, alert.id) == AlertStatus.ARCHIVED
