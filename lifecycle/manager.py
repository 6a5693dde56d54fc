"""
Alert status lifecycle.

    ACTIVE  -> EXPIRED   automatic, once expiry_date has passed (sweep)
    ACTIVE  -> ARCHIVED  explicit
    EXPIRED -> ARCHIVED  explicit

ARCHIVED is terminal. Expiry is a plain bulk update: it triggers no
notifications and touches no other table.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from core.config import Settings, get_settings
from core.exceptions import AlertNotFoundError, InvalidTransitionError
from schemas.alerts import AlertStatus
from storage.models import AlertRecord, DatabaseManager
from utils.timeutils import utcnow

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[AlertStatus, frozenset[AlertStatus]] = {
    AlertStatus.ACTIVE: frozenset({AlertStatus.EXPIRED, AlertStatus.ARCHIVED}),
    AlertStatus.EXPIRED: frozenset({AlertStatus.ARCHIVED}),
    AlertStatus.ARCHIVED: frozenset(),
}


def can_transition(current: AlertStatus, target: AlertStatus) -> bool:
    return AlertStatus(target) in ALLOWED_TRANSITIONS[AlertStatus(current)]


def default_expiry(created_at: datetime, settings: Optional[Settings] = None) -> Optional[datetime]:
    """Expiry date for a new alert, or None when ALERT_EXPIRY_DAYS is 0."""
    days = (settings or get_settings()).ALERT_EXPIRY_DAYS
    if days <= 0:
        return None
    return created_at + timedelta(days=days)


def expire_alerts(db: DatabaseManager, now: Optional[datetime] = None) -> int:
    """
    Move every ACTIVE alert whose expiry date has passed to EXPIRED.

    Args:
        db: Database manager
        now: Reference time (defaults to the current UTC time)

    Returns:
        Number of alerts expired
    """
    now = now or utcnow()
    session = db.get_session()
    try:
        count = session.query(AlertRecord).filter(
            AlertRecord.status == AlertStatus.ACTIVE.value,
            AlertRecord.expiry_date.isnot(None),
            AlertRecord.expiry_date < now,
        ).update(
            {
                AlertRecord.status: AlertStatus.EXPIRED.value,
                AlertRecord.updated_at: now,
            },
            synchronize_session=False,
        )
        session.commit()
    finally:
        session.close()

    if count:
        logger.info(f"Expired {count} alert(s)")
    else:
        logger.debug("No alerts past expiry")
    return count


def set_status(db: DatabaseManager, alert_id: str, target: AlertStatus) -> AlertStatus:
    """
    Apply an explicit status transition.

    Raises:
        AlertNotFoundError: If the alert does not exist
        InvalidTransitionError: If the transition is not allowed
    """
    target = AlertStatus(target)
    session = db.get_session()
    try:
        record = session.get(AlertRecord, alert_id)
        if record is None:
            raise AlertNotFoundError(f"Alert {alert_id} not found", details={"alert_id": alert_id})

        current = AlertStatus(record.status)
        if not can_transition(current, target):
            raise InvalidTransitionError(
                f"Cannot move alert {alert_id} from {current.value} to {target.value}",
                details={"alert_id": alert_id, "from": current.value, "to": target.value},
            )

        record.status = target.value
        record.updated_at = utcnow()
        session.commit()
    finally:
        session.close()

    logger.info(f"Alert {alert_id}: {current.value} -> {target.value}")
    return target


def archive_alert(db: DatabaseManager, alert_id: str) -> AlertStatus:
    return set_status(db, alert_id, AlertStatus.ARCHIVED)
