"""
Diff engine module initialization.
"""

from diff_engine.comparer import (
    ChangeComparator,
    SourceDiff,
    FIELD_LABELS,
    detect_changes,
    merge_facts,
    diff_and_log,
)

__all__ = ["ChangeComparator", "SourceDiff", "FIELD_LABELS", "detect_changes", "merge_facts", "diff_and_log"]
