"""
HTML email templates for immediate alerts and daily digests.

All interpolated values are escaped; alert text originates from scraped pages.
"""

from datetime import datetime
from html import escape
from typing import Optional, Sequence

from schemas.alerts import Alert, AlertSeverity

SEVERITY_COLORS: dict[AlertSeverity, str] = {
    AlertSeverity.INFO: "#3b82f6",
    AlertSeverity.LOW: "#10b981",
    AlertSeverity.MEDIUM: "#f59e0b",
    AlertSeverity.HIGH: "#ef4444",
    AlertSeverity.CRITICAL: "#dc2626",
}

_STYLE = """
    body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; }
    .container { max-width: 600px; margin: 0 auto; padding: 20px; }
    .header { color: white; padding: 20px; border-radius: 8px 8px 0 0; }
    .content { background: #f9fafb; padding: 20px; border: 1px solid #e5e7eb; border-top: none; }
    .footer { background: #f3f4f6; padding: 15px; border-radius: 0 0 8px 8px; text-align: center; font-size: 12px; color: #6b7280; }
    .badge { display: inline-block; padding: 4px 12px; border-radius: 12px; font-size: 12px; font-weight: 600; }
    .button { display: inline-block; padding: 12px 24px; background: #3b82f6; color: white; text-decoration: none; border-radius: 6px; margin-top: 15px; }
    .alert-item { padding: 15px; margin: 10px 0; background: #fff; border-left: 4px solid #3b82f6; border-radius: 4px; }
"""


def _page(header_color: str, heading: str, body: str, footer: str, app_url: str) -> str:
    return f"""<!DOCTYPE html>
<html>
  <head>
    <meta charset="utf-8">
    <style>{_STYLE}</style>
  </head>
  <body>
    <div class="container">
      <div class="header" style="background: {header_color};">
        <h1 style="margin: 0; font-size: 24px;">{heading}</h1>
      </div>
      <div class="content">
{body}
      </div>
      <div class="footer">
        <p>{footer}</p>
        <p><a href="{escape(app_url)}/dashboard/settings" style="color: #3b82f6;">Manage notification preferences</a></p>
      </div>
    </div>
  </body>
</html>
"""


def _greeting(name: Optional[str]) -> str:
    return f"<p>Hello {escape(name or 'there')},</p>"


def _date(value: datetime) -> str:
    return value.strftime("%d/%m/%Y")


def alert_subject(alert: Alert) -> str:
    return f"[{alert.severity.value}] {alert.title}"


def render_alert_email(alert: Alert, user_name: Optional[str], app_url: str) -> str:
    """Immediate notification for a single alert."""
    color = SEVERITY_COLORS[alert.severity]
    parts = [
        _greeting(user_name),
        f'<h2 style="color: #1f2937; margin-top: 0;">{escape(alert.title)}</h2>',
    ]
    if alert.source_name:
        parts.append(f'<p style="font-weight: 600;">{escape(alert.source_name)}</p>')
    parts.append(f'<p style="color: #6b7280; font-size: 14px;">Effective Date: {_date(alert.effective_date)}</p>')
    parts.append(
        '<div style="margin: 20px 0;">'
        f'<span class="badge" style="background: {color}; color: white;">{alert.severity.value}</span> '
        f'<span class="badge" style="background: #e5e7eb; color: #374151;">{alert.category.value}</span>'
        "</div>"
    )
    parts.append(f"<p>{escape(alert.description)}</p>")
    if alert.source_url:
        parts.append(f'<p><a href="{escape(alert.source_url)}" style="color: #3b82f6;">View Official Source</a></p>')
    parts.append(f'<a href="{escape(app_url)}/dashboard/alerts" class="button">View in Dashboard</a>')

    return _page(
        header_color=color,
        heading="New Regulatory Alert",
        body="\n".join(parts),
        footer="You're receiving this because you have alert notifications enabled.",
        app_url=app_url,
    )


def digest_subject(count: int) -> str:
    return f"Daily Digest: {count} New Alert{'s' if count != 1 else ''}"


def render_digest_email(
    alerts: Sequence[Alert],
    user_name: Optional[str],
    app_url: str,
    window_hours: int,
    now: datetime,
) -> str:
    """One email enumerating every alert, in the order given."""
    count = len(alerts)
    parts = [
        _greeting(user_name),
        f"<p>You have <strong>{count}</strong> new alert{'s' if count != 1 else ''} "
        f"from the past {window_hours} hours:</p>",
    ]
    for alert in alerts:
        source = (
            f'<span class="badge" style="background: #dbeafe; color: #1e40af;">{escape(alert.source_name)}</span>'
            if alert.source_name else ""
        )
        parts.append(
            f'<div class="alert-item" style="border-left-color: {SEVERITY_COLORS[alert.severity]};">'
            f'<div><span class="badge" style="background: #e5e7eb; color: #374151;">{alert.severity.value}</span> {source}</div>'
            f'<h3 style="margin: 10px 0 5px 0; font-size: 16px;">{escape(alert.title)}</h3>'
            f'<p style="margin: 5px 0; color: #6b7280; font-size: 14px;">{escape(alert.description)}</p>'
            f'<p style="margin: 5px 0 0 0; color: #9ca3af; font-size: 12px;">Effective: {_date(alert.effective_date)}</p>'
            "</div>"
        )
    parts.append(f'<a href="{escape(app_url)}/dashboard/alerts" class="button">View All Alerts</a>')

    return _page(
        header_color="#1f2937",
        heading=f"Your Daily Alert Digest ({now.strftime('%A %d %B %Y')})",
        body="\n".join(parts),
        footer="This is your daily digest of regulatory alerts.",
        app_url=app_url,
    )
