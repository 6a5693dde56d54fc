"""
Test doubles and builders shared by unit and integration tests.
"""

import threading
from typing import Dict, List, Optional

from core.exceptions import DeliveryFailure, ExtractionFailure
from schemas.alerts import AlertCategory, AlertDraft, AlertSeverity, AlertType
from schemas.facts import ScrapedFacts


class FakeMailer:
    """Captures sent messages; raises DeliveryFailure for chosen recipients."""

    def __init__(self, fail_for: Optional[set] = None):
        self.fail_for = set(fail_for or ())
        self.sent: List[Dict[str, str]] = []
        self._lock = threading.Lock()

    def send(self, to: str, subject: str, html: str) -> None:
        if to in self.fail_for:
            raise DeliveryFailure(f"Mailbox unavailable: {to}")
        with self._lock:
            self.sent.append({"to": to, "subject": subject, "html": html})

    def recipients(self) -> List[str]:
        return sorted(m["to"] for m in self.sent)


class FakeExtractor:
    """Returns canned facts per URL, or raises the exception configured for it."""

    def __init__(self, results: Optional[dict] = None):
        self.results = results or {}
        self.calls: List[str] = []
        self._lock = threading.Lock()

    def extract(self, url: str) -> ScrapedFacts:
        with self._lock:
            self.calls.append(url)
        result = self.results.get(url)
        if isinstance(result, Exception):
            raise result
        if result is None:
            raise ExtractionFailure(f"No canned result for {url}", error_code="EXTRACT_002")
        return result.model_copy(update={"source_url": url})


def fee_draft(
    severity: AlertSeverity = AlertSeverity.HIGH,
    priority: int = 4,
    alert_type: AlertType = AlertType.FEE_CHANGE,
    title: str = "Registration Fee Increased",
) -> AlertDraft:
    return AlertDraft(
        title=title,
        description="Registration fee has increased from £77 to £88.",
        alert_type=alert_type,
        category=AlertCategory.FEES,
        severity=severity,
        priority=priority,
    )
