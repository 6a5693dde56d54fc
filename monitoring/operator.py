"""
Operator alerting (Slack webhook).

These are alerts about the pipeline itself (sweep failures, low extraction
success rate), not the regulatory alerts sent to users.
"""

import logging
from typing import Any, Dict, Optional

import requests

from core.config import get_settings

logger = logging.getLogger(__name__)

SEVERITY_COLORS = {
    "critical": "#FF0000",
    "warning": "#FFA500",
    "info": "#0000FF",
}


class OperatorAlertHandler:
    """
    Send operator alerts via configured channels.

    Every alert is logged; critical ones are also posted to Slack when a
    webhook is configured.
    """

    def __init__(self, slack_webhook: Optional[str] = None, timeout: float = 5.0):
        self.slack_webhook = slack_webhook if slack_webhook is not None else get_settings().SLACK_WEBHOOK_URL
        self.timeout = timeout

    def send_alert(
        self,
        title: str,
        message: str,
        severity: str = "info",
        details: Optional[Dict[str, Any]] = None
    ) -> bool:
        """
        Send alert via configured channels.

        Args:
            title: Alert title
            message: Alert message
            severity: 'critical', 'warning', 'info'
            details: Additional details

        Returns:
            True if the alert was posted to Slack
        """
        logger.log(
            logging.CRITICAL if severity == "critical" else logging.WARNING,
            f"[{severity.upper()}] {title}: {message}"
        )

        if severity == "critical" and self.slack_webhook:
            return self._send_slack_alert(title, message, severity, details)
        return False

    def _send_slack_alert(
        self,
        title: str,
        message: str,
        severity: str,
        details: Optional[Dict[str, Any]]
    ) -> bool:
        """Send alert to Slack. Failures are logged, never raised."""
        payload = {
            "attachments": [
                {
                    "color": SEVERITY_COLORS.get(severity, "#808080"),
                    "title": title,
                    "text": message,
                    "fields": [
                        {"title": "Severity", "value": severity, "short": True}
                    ]
                }
            ]
        }

        for key, value in (details or {}).items():
            payload["attachments"][0]["fields"].append({
                "title": key,
                "value": str(value),
                "short": True
            })

        try:
            response = requests.post(self.slack_webhook, json=payload, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Failed to send Slack alert: {e}")
            return False

        logger.debug("Slack alert sent")
        return True
