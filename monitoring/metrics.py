"""
Metrics collection and monitoring.
"""

import logging
import threading
from collections import defaultdict
from datetime import timedelta
from typing import Any, Dict, Optional

from utils.timeutils import utcnow

logger = logging.getLogger(__name__)


class MetricsCollector:
    """
    Collects and tracks in-process metrics for one job run.

    Delivery outcomes are recorded from email worker threads, so writes are
    serialised with a lock.
    """

    def __init__(self):
        self.metrics = defaultdict(list)
        self.alerts = []
        self._lock = threading.Lock()

    def log_extraction(
        self,
        source_id: str,
        success: bool,
        fields_found: int = 0,
        load_time_ms: float = 0.0,
        error_code: Optional[str] = None,
    ) -> None:
        """
        Log extraction result.

        Args:
            source_id: Source identifier
            success: Whether extraction succeeded
            fields_found: Number of tracked fields found
            load_time_ms: Extraction wall time
            error_code: Catalog code if failed
        """
        metric = {
            "timestamp": utcnow(),
            "source_id": source_id,
            "success": success,
            "fields_found": fields_found,
            "load_time_ms": load_time_ms,
            "error_code": error_code,
        }

        with self._lock:
            self.metrics[f"{source_id}:extraction"].append(metric)

        logger.debug(f"Logged extraction: {source_id} - {'✓' if success else '✗'}")

    def log_delivery(self, channel: str, success: bool, kind: str = "immediate") -> None:
        """
        Log a delivery attempt.

        Args:
            channel: 'email' or 'in_app'
            success: Whether it was delivered
            kind: 'immediate' or 'digest'
        """
        metric = {
            "timestamp": utcnow(),
            "channel": channel,
            "kind": kind,
            "success": success,
        }
        with self._lock:
            self.metrics[f"{channel}:delivery"].append(metric)

    def get_success_rate(self, source_id: Optional[str] = None, hours: int = 24) -> float:
        """
        Get extraction success rate.

        Args:
            source_id: Optional source filter
            hours: Time window

        Returns:
            Success rate (0-1)
        """
        cutoff = utcnow() - timedelta(hours=hours)

        extractions = []
        with self._lock:
            for key, values in self.metrics.items():
                if not key.endswith(":extraction"):
                    continue
                if source_id and key != f"{source_id}:extraction":
                    continue

                extractions.extend([v for v in values if v["timestamp"] >= cutoff])

        if not extractions:
            return 1.0

        successes = sum(1 for e in extractions if e["success"])
        return successes / len(extractions)

    def get_delivery_counts(self, channel: str = "email") -> Dict[str, int]:
        with self._lock:
            deliveries = list(self.metrics.get(f"{channel}:delivery", []))
        sent = sum(1 for d in deliveries if d["success"])
        return {"sent": sent, "failed": len(deliveries) - sent}

    def check_success_rate(
        self,
        threshold: float = 0.9,
        hours: int = 24,
        source_id: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Check if extraction success rate is below threshold.

        Args:
            threshold: Alert threshold (default 90%)
            hours: Time window
            source_id: Optional source filter

        Returns:
            Alert dict if below threshold, None otherwise
        """
        rate = self.get_success_rate(source_id, hours)

        if rate < threshold:
            scope = source_id or "All sources"
            alert = {
                "type": "extraction_failure_rate",
                "severity": "critical",
                "source_id": source_id,
                "success_rate": rate,
                "threshold": threshold,
                "message": f"{scope} success rate {rate:.1%} below threshold {threshold:.1%}",
            }
            self.alerts.append(alert)
            logger.critical(alert["message"])
            return alert

        return None

    def get_metrics_summary(self) -> Dict[str, Any]:
        """Get summary of all metrics."""
        with self._lock:
            total_extractions = sum(
                len(v) for k, v in self.metrics.items() if k.endswith(":extraction")
            )
        email = self.get_delivery_counts("email")
        return {
            "total_extractions": total_extractions,
            "success_rate": self.get_success_rate(),
            "emails_sent": email["sent"],
            "emails_failed": email["failed"],
            "active_alerts": len(self.alerts),
        }
