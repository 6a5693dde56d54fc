"""
Unit tests for run metrics and operator alerts.
"""

from unittest.mock import patch

import requests

from monitoring import MetricsCollector, OperatorAlertHandler


class TestMetricsCollector:
    def test_success_rate(self):
        metrics = MetricsCollector()
        metrics.log_extraction("edinburgh", True, fields_found=4)
        metrics.log_extraction("glasgow", False, error_code="EXTRACT_001")

        assert metrics.get_success_rate() == 0.5
        assert metrics.get_success_rate("edinburgh") == 1.0

    def test_empty_rate_is_healthy(self):
        assert MetricsCollector().get_success_rate() == 1.0
        assert MetricsCollector().check_success_rate() is None

    def test_check_success_rate_below_threshold(self):
        metrics = MetricsCollector()
        metrics.log_extraction("edinburgh", True)
        metrics.log_extraction("glasgow", False)

        alert = metrics.check_success_rate(threshold=0.9)

        assert alert["severity"] == "critical"
        assert alert["success_rate"] == 0.5
        assert metrics.alerts == [alert]

    def test_summary(self):
        metrics = MetricsCollector()
        metrics.log_extraction("edinburgh", True)
        metrics.log_delivery("email", True)
        metrics.log_delivery("email", False, kind="digest")

        summary = metrics.get_metrics_summary()

        assert summary["total_extractions"] == 1
        assert summary["emails_sent"] == 1
        assert summary["emails_failed"] == 1


class TestOperatorAlertHandler:
    @patch("monitoring.operator.requests.post")
    def test_critical_posts_to_slack(self, mock_post):
        handler = OperatorAlertHandler(slack_webhook="https://hooks.slack.example/T000")

        sent = handler.send_alert("Low success rate", "50% below 90%", severity="critical", details={"failed": 4})

        assert sent is True
        payload = mock_post.call_args.kwargs["json"]
        attachment = payload["attachments"][0]
        assert attachment["title"] == "Low success rate"
        assert {"title": "failed", "value": "4", "short": True} in attachment["fields"]

    @patch("monitoring.operator.requests.post")
    def test_warning_only_logged(self, mock_post):
        handler = OperatorAlertHandler(slack_webhook="https://hooks.slack.example/T000")

        assert handler.send_alert("Sources failed", "2 of 8", severity="warning") is False
        mock_post.assert_not_called()

    @patch("monitoring.operator.requests.post")
    def test_no_webhook(self, mock_post):
        handler = OperatorAlertHandler(slack_webhook="")

        assert handler.send_alert("Down", "db", severity="critical") is False
        mock_post.assert_not_called()

    @patch("monitoring.operator.requests.post", side_effect=requests.ConnectionError("offline"))
    def test_slack_failure_is_not_raised(self, mock_post):
        handler = OperatorAlertHandler(slack_webhook="https://hooks.slack.example/T000")

        assert handler.send_alert("Down", "db", severity="critical") is False
