"""
Repository pattern for data persistence.

Each repository opens a short-lived session per call and returns either
detached ORM rows (plain attribute access only) or pydantic read models.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from core.exceptions import AlertNotFoundError, PreferenceValidationError
from schemas.alerts import (
    NOTIFICATION_TYPE_BY_ALERT_TYPE,
    Alert,
    AlertDraft,
    AlertStatus,
    AlertType,
)
from schemas.facts import FACT_FIELDS, ScrapedFacts
from schemas.preferences import AlertPreference
from storage.models import (
    AcknowledgementRecord,
    AlertPreferenceRecord,
    AlertRecord,
    DatabaseManager,
    EmailLog,
    ExtractionLog,
    NotificationRecord,
    SourceRecord,
    UserRecord,
)
from utils.html_cleaner import sanitize_for_db
from utils.timeutils import utcnow

logger = logging.getLogger(__name__)


def _to_alert(record: AlertRecord, source_name: Optional[str]) -> Alert:
    alert = Alert.model_validate(record)
    return alert.model_copy(update={"source_name": source_name})


def _to_preference(record: AlertPreferenceRecord) -> AlertPreference:
    return AlertPreference.model_validate(record)


class UserRepository:
    """
    Repository for users. Creating a user also creates its default preferences.
    """

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    def create_user(
        self,
        user_id: str,
        email: Optional[str] = None,
        name: Optional[str] = None,
        preferences: Optional[Dict[str, Any]] = None,
    ) -> UserRecord:
        """
        Create a user with signup-default alert preferences.

        Args:
            user_id: User identifier
            email: Delivery address (None means in-app only)
            name: Display name used in email greetings
            preferences: Overrides for the default preference values

        Returns:
            New UserRecord

        Raises:
            PreferenceValidationError: If the preference overrides are invalid
        """
        preference = _validated_preference(user_id, preferences or {})

        session = self.db.get_session()
        try:
            user = UserRecord(id=user_id, email=email, name=name)
            session.add(user)
            session.add(_preference_record(preference))
            session.commit()

            logger.info(f"Created user {user_id}")
            return user
        finally:
            session.close()

    def get(self, user_id: str) -> Optional[UserRecord]:
        session = self.db.get_session()
        try:
            return session.get(UserRecord, user_id)
        finally:
            session.close()


class SourceRepository:
    """
    Repository for monitored sources and their last known facts.
    """

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    def upsert_source(
        self,
        source_id: str,
        name: str,
        url: Optional[str] = None,
        priority: bool = False,
        facts: Optional[Dict[str, Any]] = None,
    ) -> SourceRecord:
        """
        Create a source or update its name/url/priority.

        Known facts are only written when the source is new, so re-seeding
        never overwrites values learned from scraping.
        """
        session = self.db.get_session()
        try:
            source = session.get(SourceRecord, source_id)
            if source is None:
                source = SourceRecord(id=source_id, name=name, url=url, priority=priority)
                for key, value in (facts or {}).items():
                    if key in FACT_FIELDS:
                        setattr(source, key, value)
                session.add(source)
                logger.info(f"Created source {source_id} ({name})")
            else:
                source.name = name
                source.url = url
                source.priority = priority

            session.commit()
            return source
        finally:
            session.close()

    def get(self, source_id: str) -> Optional[SourceRecord]:
        session = self.db.get_session()
        try:
            return session.get(SourceRecord, source_id)
        finally:
            session.close()

    def list_sources(self, source_id: Optional[str] = None) -> List[SourceRecord]:
        """
        Sources to scrape, priority sources first.

        Args:
            source_id: Restrict to a single source (manual re-scrape)
        """
        session = self.db.get_session()
        try:
            query = session.query(SourceRecord)
            if source_id is not None:
                query = query.filter(SourceRecord.id == source_id)
            return query.order_by(SourceRecord.priority.desc(), SourceRecord.name).all()
        finally:
            session.close()

    def update_facts(self, source_id: str, facts: ScrapedFacts) -> None:
        """
        Persist merged facts and stamp last_scraped.

        Absent (None) values are never written over stored ones.
        """
        session = self.db.get_session()
        try:
            source = session.get(SourceRecord, source_id)
            if source is None:
                raise ValueError(f"Unknown source: {source_id}")

            for name, value in facts.values().items():
                if value is not None:
                    setattr(source, name, value)
            source.last_scraped = facts.checked_at
            session.commit()
        finally:
            session.close()


class AlertRepository:
    """
    Repository for alerts. Alerts are never deleted.
    """

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    def create(
        self,
        draft: AlertDraft,
        source_id: Optional[str] = None,
        source_url: Optional[str] = None,
        effective_date: Optional[datetime] = None,
        expiry_date: Optional[datetime] = None,
    ) -> Alert:
        """
        Persist a classified alert as ACTIVE.

        Args:
            draft: Classifier output
            source_id: Originating source (None for system-wide alerts)
            source_url: Page the change was found on
            effective_date: When the change applies (defaults to now)
            expiry_date: When the alert should expire (None never expires)

        Returns:
            Alert read model
        """
        now = utcnow()
        session = self.db.get_session()
        try:
            record = AlertRecord(
                source_id=source_id,
                alert_type=draft.alert_type.value,
                category=draft.category.value,
                title=sanitize_for_db(draft.title),
                description=sanitize_for_db(draft.description),
                effective_date=effective_date or now,
                expiry_date=expiry_date,
                severity=draft.severity.value,
                priority=draft.priority,
                status=AlertStatus.ACTIVE.value,
                source_url=source_url,
                view_count=0,
                created_at=now,
                updated_at=now,
            )
            session.add(record)
            session.commit()

            source_name = None
            if source_id is not None:
                source = session.get(SourceRecord, source_id)
                source_name = source.name if source else None

            logger.info(f"Created alert {record.id}: {record.title} ({record.severity})")
            return _to_alert(record, source_name)
        finally:
            session.close()

    def get(self, alert_id: str) -> Optional[Alert]:
        session = self.db.get_session()
        try:
            row = session.query(AlertRecord, SourceRecord.name).outerjoin(
                SourceRecord, AlertRecord.source_id == SourceRecord.id
            ).filter(AlertRecord.id == alert_id).first()
            if row is None:
                return None
            return _to_alert(*row)
        finally:
            session.close()

    def require(self, alert_id: str) -> Alert:
        """Like get(), but raises AlertNotFoundError."""
        alert = self.get(alert_id)
        if alert is None:
            raise AlertNotFoundError(f"Alert {alert_id} not found", details={"alert_id": alert_id})
        return alert

    def list_for_digest(
        self,
        user_id: str,
        since: datetime,
        source_filter: frozenset = frozenset(),
    ) -> List[Alert]:
        """
        ACTIVE alerts created since a cutoff that the user has not acknowledged.

        Args:
            user_id: Digest recipient
            since: Start of the trailing window (inclusive)
            source_filter: Restrict to these sources (empty means all)

        Returns:
            Alerts ordered by priority desc, then newest first
        """
        session = self.db.get_session()
        try:
            acknowledged = session.query(AcknowledgementRecord.id).filter(
                AcknowledgementRecord.alert_id == AlertRecord.id,
                AcknowledgementRecord.user_id == user_id,
            ).exists()

            query = session.query(AlertRecord, SourceRecord.name).outerjoin(
                SourceRecord, AlertRecord.source_id == SourceRecord.id
            ).filter(
                AlertRecord.status == AlertStatus.ACTIVE.value,
                AlertRecord.created_at >= since,
                ~acknowledged,
            )
            if source_filter:
                query = query.filter(AlertRecord.source_id.in_(sorted(source_filter)))

            rows = query.order_by(
                AlertRecord.priority.desc(),
                AlertRecord.created_at.desc(),
            ).all()
            return [_to_alert(record, name) for record, name in rows]
        finally:
            session.close()

    def count_unread(self, user_id: str) -> int:
        """ACTIVE alerts the user has not acknowledged."""
        session = self.db.get_session()
        try:
            acknowledged = session.query(AcknowledgementRecord.id).filter(
                AcknowledgementRecord.alert_id == AlertRecord.id,
                AcknowledgementRecord.user_id == user_id,
            ).exists()
            return session.query(func.count(AlertRecord.id)).filter(
                AlertRecord.status == AlertStatus.ACTIVE.value,
                ~acknowledged,
            ).scalar()
        finally:
            session.close()

    def mark_dispatched(self, alert_id: str) -> None:
        session = self.db.get_session()
        try:
            session.query(AlertRecord).filter(AlertRecord.id == alert_id).update(
                {AlertRecord.dispatched_at: utcnow()},
                synchronize_session=False,
            )
            session.commit()
        finally:
            session.close()

    def list_undispatched(self) -> List[str]:
        """Ids of ACTIVE alerts whose dispatch never completed, oldest first."""
        session = self.db.get_session()
        try:
            rows = session.query(AlertRecord.id).filter(
                AlertRecord.status == AlertStatus.ACTIVE.value,
                AlertRecord.dispatched_at.is_(None),
            ).order_by(AlertRecord.created_at).all()
            return [alert_id for (alert_id,) in rows]
        finally:
            session.close()


class PreferenceRepository:
    """
    Repository for per-user alert preferences.

    source_filter is validated here, on the way in and on the way out.
    """

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    def get(self, user_id: str) -> Optional[AlertPreference]:
        session = self.db.get_session()
        try:
            record = session.query(AlertPreferenceRecord).filter(
                AlertPreferenceRecord.user_id == user_id
            ).first()
            return _to_preference(record) if record else None
        finally:
            session.close()

    def list_with_users(self, digest_only: bool = False) -> List[Tuple[UserRecord, AlertPreference]]:
        """
        Every preference row with its user.

        Rows whose stored source filter no longer validates are skipped and
        logged rather than failing the whole batch.

        Args:
            digest_only: Only users with daily_digest enabled
        """
        session = self.db.get_session()
        try:
            query = session.query(UserRecord, AlertPreferenceRecord).join(
                AlertPreferenceRecord, AlertPreferenceRecord.user_id == UserRecord.id
            )
            if digest_only:
                query = query.filter(AlertPreferenceRecord.daily_digest.is_(True))

            result = []
            for user, record in query.order_by(UserRecord.id).all():
                try:
                    result.append((user, _to_preference(record)))
                except ValidationError as e:
                    logger.error(f"Skipping invalid preferences for user {user.id}: {e}")
            return result
        finally:
            session.close()

    def update(self, user_id: str, **changes: Any) -> AlertPreference:
        """
        Apply a partial preference update.

        Raises:
            PreferenceValidationError: If the resulting preferences are invalid
        """
        session = self.db.get_session()
        try:
            record = session.query(AlertPreferenceRecord).filter(
                AlertPreferenceRecord.user_id == user_id
            ).first()
            if record is None:
                raise PreferenceValidationError(
                    f"No preferences for user {user_id}",
                    details={"user_id": user_id},
                )

            current = _to_preference(record).model_dump()
            current.update(changes)
            preference = _validated_preference(user_id, current)

            for key, value in _preference_columns(preference).items():
                setattr(record, key, value)
            session.commit()

            logger.info(f"Updated preferences for user {user_id}: {sorted(changes)}")
            return preference
        finally:
            session.close()


def _validated_preference(user_id: str, values: Dict[str, Any]) -> AlertPreference:
    unknown = set(values) - set(AlertPreference.model_fields)
    if unknown:
        raise PreferenceValidationError(
            f"Unknown preference fields: {sorted(unknown)}",
            details={"user_id": user_id},
        )
    try:
        return AlertPreference(**{**values, "user_id": user_id})
    except ValidationError as e:
        raise PreferenceValidationError(
            f"Invalid preferences for user {user_id}: {e.errors()[0]['msg']}",
            details={"user_id": user_id, "errors": e.errors()},
        ) from e


def _preference_columns(preference: AlertPreference) -> Dict[str, Any]:
    columns = preference.model_dump(exclude={"user_id", "source_filter", "min_severity"})
    columns["min_severity"] = preference.min_severity.value if preference.min_severity else None
    columns["source_filter"] = preference.filter_as_list()
    return columns


def _preference_record(preference: AlertPreference) -> AlertPreferenceRecord:
    return AlertPreferenceRecord(user_id=preference.user_id, **_preference_columns(preference))


class NotificationRepository:
    """
    Repository for in-app notifications.
    """

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    def create_for_alert(self, user_id: str, alert: Alert) -> bool:
        """
        Create the user's notification for an alert unless it already exists.

        Returns:
            True if a row was created, False if one was already there
        """
        session = self.db.get_session()
        try:
            exists = session.query(NotificationRecord.id).filter(
                NotificationRecord.user_id == user_id,
                NotificationRecord.alert_id == alert.id,
            ).first()
            if exists:
                return False

            session.add(NotificationRecord(
                user_id=user_id,
                alert_id=alert.id,
                title=alert.title,
                message=alert.description,
                type=NOTIFICATION_TYPE_BY_ALERT_TYPE[AlertType(alert.alert_type)].value,
                meta={
                    "alertId": alert.id,
                    "sourceId": alert.source_id,
                    "severity": alert.severity.value,
                    "category": alert.category.value,
                },
                read=False,
            ))
            try:
                session.commit()
            except IntegrityError:
                # Concurrent dispatch won the race on the unique constraint
                session.rollback()
                logger.debug(f"Notification for {user_id}/{alert.id} already exists")
                return False
            return True
        finally:
            session.close()

    def list_for_user(
        self,
        user_id: str,
        unread_only: bool = False,
        limit: int = 50,
    ) -> List[NotificationRecord]:
        session = self.db.get_session()
        try:
            query = session.query(NotificationRecord).filter(NotificationRecord.user_id == user_id)
            if unread_only:
                query = query.filter(NotificationRecord.read.is_(False))
            return query.order_by(
                NotificationRecord.created_at.desc(),
                NotificationRecord.id.desc(),
            ).limit(limit).all()
        finally:
            session.close()

    def count_unread(self, user_id: str) -> int:
        session = self.db.get_session()
        try:
            return session.query(NotificationRecord).filter(
                NotificationRecord.user_id == user_id,
                NotificationRecord.read.is_(False),
            ).count()
        finally:
            session.close()

    def mark_read(self, notification_id: int, user_id: str) -> bool:
        """Mark one of the user's notifications read. False if not found."""
        session = self.db.get_session()
        try:
            updated = session.query(NotificationRecord).filter(
                NotificationRecord.id == notification_id,
                NotificationRecord.user_id == user_id,
            ).update({NotificationRecord.read: True}, synchronize_session=False)
            session.commit()
            return updated > 0
        finally:
            session.close()

    def mark_all_read(self, user_id: str) -> int:
        session = self.db.get_session()
        try:
            updated = session.query(NotificationRecord).filter(
                NotificationRecord.user_id == user_id,
                NotificationRecord.read.is_(False),
            ).update({NotificationRecord.read: True}, synchronize_session=False)
            session.commit()
            return updated
        finally:
            session.close()

    def delete(self, notification_id: int, user_id: str) -> bool:
        session = self.db.get_session()
        try:
            deleted = session.query(NotificationRecord).filter(
                NotificationRecord.id == notification_id,
                NotificationRecord.user_id == user_id,
            ).delete(synchronize_session=False)
            session.commit()
            return deleted > 0
        finally:
            session.close()

    def delete_all_read(self, user_id: str) -> int:
        session = self.db.get_session()
        try:
            deleted = session.query(NotificationRecord).filter(
                NotificationRecord.user_id == user_id,
                NotificationRecord.read.is_(True),
            ).delete(synchronize_session=False)
            session.commit()
            return deleted
        finally:
            session.close()


class AcknowledgementRepository:
    """
    Repository for alert acknowledgements (seen / dismissed markers).
    """

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    def acknowledge(self, user_id: str, alert_id: str, dismissed: bool = False) -> AcknowledgementRecord:
        """
        Record that a user has seen an alert, and bump its view count.

        The acknowledgement row is upserted: acknowledging twice keeps one row,
        refreshing its timestamp. Every call counts as a view.

        Raises:
            AlertNotFoundError: If the alert does not exist
        """
        now = utcnow()
        session = self.db.get_session()
        try:
            alert = session.get(AlertRecord, alert_id)
            if alert is None:
                raise AlertNotFoundError(f"Alert {alert_id} not found", details={"alert_id": alert_id})

            ack = session.query(AcknowledgementRecord).filter(
                AcknowledgementRecord.user_id == user_id,
                AcknowledgementRecord.alert_id == alert_id,
            ).first()
            if ack is None:
                ack = AcknowledgementRecord(user_id=user_id, alert_id=alert_id)
                session.add(ack)
            ack.acknowledged_at = now
            if dismissed:
                ack.dismissed_at = now

            alert.view_count = AlertRecord.view_count + 1
            session.commit()
            return ack
        finally:
            session.close()

    def is_acknowledged(self, user_id: str, alert_id: str) -> bool:
        session = self.db.get_session()
        try:
            return session.query(AcknowledgementRecord.id).filter(
                AcknowledgementRecord.user_id == user_id,
                AcknowledgementRecord.alert_id == alert_id,
            ).first() is not None
        finally:
            session.close()


class EmailLogRepository:
    """
    Repository for the email history.
    """

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    def record(
        self,
        user_id: str,
        recipient: str,
        subject: str,
        kind: str,
        success: bool,
        alert_id: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> None:
        session = self.db.get_session()
        try:
            session.add(EmailLog(
                user_id=user_id,
                alert_id=alert_id,
                kind=kind,
                recipient=recipient,
                subject=subject,
                status="sent" if success else "failed",
                error_message=None if success else error_message,
            ))
            session.commit()
        finally:
            session.close()

    def has_sent(self, user_id: str, alert_id: str, kind: str = "immediate") -> bool:
        """Whether a successful email of this kind already went out for the alert."""
        session = self.db.get_session()
        try:
            return session.query(EmailLog.id).filter(
                EmailLog.user_id == user_id,
                EmailLog.alert_id == alert_id,
                EmailLog.kind == kind,
                EmailLog.status == "sent",
            ).first() is not None
        finally:
            session.close()

    def list_for_user(self, user_id: str, limit: int = 50) -> List[EmailLog]:
        session = self.db.get_session()
        try:
            return session.query(EmailLog).filter(
                EmailLog.user_id == user_id
            ).order_by(EmailLog.created_at.desc(), EmailLog.id.desc()).limit(limit).all()
        finally:
            session.close()


class ExtractionLogRepository:
    """
    Repository for extraction logs.
    """

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    def log_extraction(
        self,
        source_id: str,
        url: Optional[str],
        success: bool,
        load_time_ms: float = 0.0,
        fields_found: int = 0,
        changes_detected: int = 0,
        error_code: Optional[str] = None,
        error_message: str = "",
    ) -> None:
        """
        Log an extraction attempt.

        Args:
            source_id: Source identifier
            url: Scraped URL
            success: Whether extraction succeeded
            load_time_ms: Extraction wall time
            fields_found: Number of tracked fields found
            changes_detected: Number of changes against stored facts
            error_code: Catalog code if failed
            error_message: Error message if failed
        """
        session = self.db.get_session()
        try:
            log = ExtractionLog(
                source_id=source_id,
                url=url,
                success=1 if success else 0,
                load_time_ms=load_time_ms,
                fields_found=fields_found if success else None,
                changes_detected=changes_detected if success else None,
                error_code=error_code if not success else None,
                error_message=error_message if not success else None,
            )

            session.add(log)
            session.commit()

        finally:
            session.close()

    def get_success_rate(self, source_id: Optional[str] = None, hours: int = 24) -> float:
        """
        Get recent extraction success rate.

        Args:
            source_id: Filter by source (None for all sources)
            hours: Look back N hours

        Returns:
            Success rate (0-1)
        """
        session = self.db.get_session()
        try:
            cutoff = utcnow() - timedelta(hours=hours)

            query = session.query(ExtractionLog).filter(ExtractionLog.created_at >= cutoff)
            if source_id is not None:
                query = query.filter(ExtractionLog.source_id == source_id)

            total = query.count()
            if total == 0:
                return 1.0

            successes = query.filter(ExtractionLog.success == 1).count()
            return successes / total

        finally:
            session.close()

    def recent_failures(self, limit: int = 20) -> List[ExtractionLog]:
        session = self.db.get_session()
        try:
            return session.query(ExtractionLog).filter(
                ExtractionLog.success == 0
            ).order_by(ExtractionLog.created_at.desc(), ExtractionLog.id.desc()).limit(limit).all()
        finally:
            session.close()
