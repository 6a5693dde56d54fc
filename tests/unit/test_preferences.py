"""
Unit tests for preference matching and severity ordering.
"""

import pytest
from pydantic import ValidationError

from schemas.alerts import AlertSeverity, AlertType
from schemas.preferences import AlertPreference


class TestSeverityOrdering:
    def test_declared_order(self):
        ranks = [s.rank for s in (
            AlertSeverity.INFO, AlertSeverity.LOW, AlertSeverity.MEDIUM, AlertSeverity.HIGH, AlertSeverity.CRITICAL,
        )]

        assert ranks == sorted(ranks)
        assert len(set(ranks)) == 5

    @pytest.mark.parametrize("severity, expected", [
        (AlertSeverity.INFO, False),
        (AlertSeverity.LOW, False),
        (AlertSeverity.MEDIUM, False),
        (AlertSeverity.HIGH, True),
        (AlertSeverity.CRITICAL, True),
    ])
    def test_minimum_high(self, severity, expected):
        assert severity.at_least(AlertSeverity.HIGH) is expected

    def test_no_minimum_accepts_everything(self):
        assert all(s.at_least(None) for s in AlertSeverity)


class TestSourceFilter:
    """Test source filter validation and empty-means-all semantics."""

    def test_empty_means_all(self):
        pref = AlertPreference(user_id="u1")

        assert pref.accepts_source("edinburgh")
        assert pref.accepts_source(None)

    def test_none_is_empty(self):
        assert AlertPreference(user_id="u1", source_filter=None).source_filter == frozenset()

    def test_filter_restricts_sources(self):
        pref = AlertPreference(user_id="u1", source_filter=["edinburgh", " glasgow ", ""])

        assert pref.source_filter == frozenset({"edinburgh", "glasgow"})
        assert pref.accepts_source("glasgow")
        assert not pref.accepts_source("fife")

    def test_filter_excludes_system_alerts(self):
        pref = AlertPreference(user_id="u1", source_filter=["edinburgh"])

        assert not pref.accepts_source(None)

    @pytest.mark.parametrize("bad", ["edinburgh", {"id": "edinburgh"}, [None], [True], 42])
    def test_malformed_filter_rejected(self, bad):
        with pytest.raises(ValidationError):
            AlertPreference(user_id="u1", source_filter=bad)

    def test_filter_as_list_is_sorted(self):
        pref = AlertPreference(user_id="u1", source_filter=["glasgow", "edinburgh"])

        assert pref.filter_as_list() == ["edinburgh", "glasgow"]


class TestMatching:
    """Test category toggles and the immediate email gate."""

    def test_category_toggle(self):
        pref = AlertPreference(user_id="u1", fee_change_alerts=False)

        assert not pref.matches(AlertType.FEE_CHANGE, "edinburgh")
        assert pref.matches(AlertType.DEADLINE, "edinburgh")

    def test_untoggled_types_always_match(self):
        pref = AlertPreference(
            user_id="u1",
            fee_change_alerts=False,
            requirement_alerts=False,
            deadline_alerts=False,
            policy_change_alerts=False,
            system_alerts=False,
        )

        assert pref.matches(AlertType.PROCESS_CHANGE, "edinburgh")
        assert pref.matches(AlertType.CONTACT_CHANGE, "edinburgh")

    def test_immediate_email_gate(self):
        pref = AlertPreference(user_id="u1", min_severity=AlertSeverity.HIGH)

        assert pref.wants_immediate_email(AlertSeverity.CRITICAL)
        assert not pref.wants_immediate_email(AlertSeverity.MEDIUM)

    def test_immediate_email_needs_both_flags(self):
        assert not AlertPreference(user_id="u1", email_enabled=False).wants_immediate_email(AlertSeverity.CRITICAL)
        assert not AlertPreference(user_id="u1", immediate_alerts=False).wants_immediate_email(AlertSeverity.CRITICAL)
