"""
Email delivery backends.

The dispatcher and digest job only depend on the Mailer protocol; the concrete
backend is picked from settings (EMAIL_PROVIDER).
"""

import logging
import smtplib
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Iterator, Optional, Protocol, Sequence, Tuple

import requests

from core.config import Settings, get_settings
from core.exceptions import DeliveryFailure
from utils.html_cleaner import html_to_text

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


class Mailer(Protocol):
    """Send one HTML email. Raises DeliveryFailure on any provider error."""

    def send(self, to: str, subject: str, html: str) -> None:
        ...


class SmtpMailer:
    """Sends email through an SMTP relay."""

    def __init__(
        self,
        host: str,
        port: int,
        from_address: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = True,
        timeout: float = 30.0,
    ):
        self.host = host
        self.port = port
        self.from_address = from_address
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def send(self, to: str, subject: str, html: str) -> None:
        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = self.from_address
        message["To"] = to
        message.set_content(html_to_text(html))
        message.add_alternative(html, subtype="html")

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls()
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            raise DeliveryFailure(
                f"SMTP send to {to} failed: {e}",
                details={"recipient": to, "host": self.host},
            ) from e


class ResendMailer:
    """Sends email through the Resend HTTP API."""

    def __init__(self, api_key: str, from_address: str, timeout: float = 30.0, session=None):
        self.api_key = api_key
        self.from_address = from_address
        self.timeout = timeout
        self.session = session or requests.Session()

    def send(self, to: str, subject: str, html: str) -> None:
        payload = {
            "from": self.from_address,
            "to": [to],
            "subject": subject,
            "html": html,
        }
        try:
            response = self.session.post(
                RESEND_API_URL,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise DeliveryFailure(
                f"Resend send to {to} failed: {e}",
                details={"recipient": to},
            ) from e

        logger.debug(f"Resend accepted message to {to}: {response.text[:200]}")


class LogMailer:
    """Dry-run backend: logs the message instead of sending it."""

    def send(self, to: str, subject: str, html: str) -> None:
        logger.info(f"[Email preview] To: {to} | Subject: {subject} | {len(html)} bytes")


def build_mailer(settings: Optional[Settings] = None) -> Mailer:
    """
    Create the configured mailer.

    Raises:
        DeliveryFailure: If the chosen provider is missing its configuration
    """
    settings = settings or get_settings()
    provider = settings.EMAIL_PROVIDER

    if provider == "smtp":
        if not settings.SMTP_HOST:
            raise DeliveryFailure("SMTP_HOST is not set", error_code="DELIVERY_002")
        return SmtpMailer(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            from_address=settings.EMAIL_FROM,
            username=settings.SMTP_USERNAME,
            password=settings.SMTP_PASSWORD,
            use_tls=settings.SMTP_USE_TLS,
            timeout=settings.EMAIL_TIMEOUT_SECONDS,
        )

    if provider == "resend":
        if not settings.RESEND_API_KEY:
            raise DeliveryFailure("RESEND_API_KEY is not set", error_code="DELIVERY_002")
        return ResendMailer(
            api_key=settings.RESEND_API_KEY,
            from_address=settings.EMAIL_FROM,
            timeout=settings.EMAIL_TIMEOUT_SECONDS,
        )

    logger.warning("EMAIL_PROVIDER is 'log'; emails will be logged, not sent")
    return LogMailer()


@dataclass(frozen=True)
class OutgoingEmail:
    user_id: str
    to: str
    subject: str
    html: str
    alert_id: Optional[str] = None


def send_concurrently(
    mailer: Mailer,
    messages: Sequence[OutgoingEmail],
    max_workers: int = 5,
) -> Iterator[Tuple[OutgoingEmail, Optional[str]]]:
    """
    Send messages on a bounded worker pool.

    Yields (message, error) on the calling thread as sends complete; error is
    None on success. One recipient's failure never stops the others.
    """
    if not messages:
        return

    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(messages)))) as executor:
        futures = {
            executor.submit(_send_one, mailer, message): message
            for message in messages
        }
        for future in as_completed(futures):
            yield futures[future], future.result()


def _send_one(mailer: Mailer, message: OutgoingEmail) -> Optional[str]:
    try:
        mailer.send(message.to, message.subject, message.html)
    except DeliveryFailure as e:
        logger.error(f"Email to {message.to} failed: {e}")
        return str(e)
    except Exception as e:
        # Third-party mailers may raise anything; the batch must carry on
        logger.error(f"Email to {message.to} failed unexpectedly: {e}", exc_info=True)
        return f"{type(e).__name__}: {e}"
    return None
