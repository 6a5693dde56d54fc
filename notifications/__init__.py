"""
Notifications module initialization.
"""

from notifications.mailer import (
    LogMailer,
    Mailer,
    OutgoingEmail,
    ResendMailer,
    SmtpMailer,
    build_mailer,
    send_concurrently,
)
from notifications.dispatcher import DispatchResult, NotificationDispatcher
from notifications.digest import DigestAggregator, DigestResult

__all__ = [
    "LogMailer",
    "Mailer",
    "OutgoingEmail",
    "ResendMailer",
    "SmtpMailer",
    "build_mailer",
    "send_concurrently",
    "DispatchResult",
    "NotificationDispatcher",
    "DigestAggregator",
    "DigestResult",
]
