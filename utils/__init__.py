"""
Utils module initialization.
"""

from utils.logger import setup_logging
from utils.html_cleaner import strip_invisible, collapse_whitespace, sanitize_for_db, html_to_text
from utils.timeutils import utcnow

__all__ = [
    "setup_logging",
    "strip_invisible",
    "collapse_whitespace",
    "sanitize_for_db",
    "html_to_text",
    "utcnow",
]
