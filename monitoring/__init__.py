"""
Monitoring module initialization.
"""

from monitoring.metrics import MetricsCollector
from monitoring.operator import OperatorAlertHandler

__all__ = ["MetricsCollector", "OperatorAlertHandler"]
