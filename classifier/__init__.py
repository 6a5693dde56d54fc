"""
Classifier module initialization.
"""

from classifier.rules import AlertRule, RULES, classify, rule_for, format_value

__all__ = ["AlertRule", "RULES", "classify", "rule_for", "format_value"]
