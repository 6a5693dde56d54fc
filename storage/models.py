"""
Database models and persistence layer.

Using SQLAlchemy for ORM; SQLite locally, PostgreSQL in production.
Alerts and sources are never deleted (audit trail); notifications are.
"""

import logging
import uuid
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    text,
)
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import declarative_base, relationship, sessionmaker

from core.config import get_settings
from core.exceptions import PersistenceUnavailable
from schemas.facts import ScrapedFacts
from utils.timeutils import utcnow

logger = logging.getLogger(__name__)

Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


class UserRecord(Base):
    """
    Minimal user row: only what delivery needs (address and greeting name).
    """
    __tablename__ = "users"

    id = Column(String(64), primary_key=True, default=_uuid)
    email = Column(String(320), nullable=True)
    name = Column(String(255), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    preference = relationship(
        "AlertPreferenceRecord",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<UserRecord {self.id}>"


class SourceRecord(Base):
    """
    An authority being monitored, with its last known facts.
    """
    __tablename__ = "sources"

    id = Column(String(100), primary_key=True)
    name = Column(String(255), nullable=False)
    url = Column(String(2048), nullable=True)
    priority = Column(Boolean, nullable=False, default=False)

    # Last known facts
    registration_fee = Column(Float, nullable=True)
    renewal_fee = Column(Float, nullable=True)
    hmo_fee = Column(Float, nullable=True)
    processing_time_days = Column(Integer, nullable=True)
    contact_email = Column(String(320), nullable=True)
    contact_phone = Column(String(64), nullable=True)

    last_scraped = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_facts(self) -> ScrapedFacts:
        """Stored facts in the same shape the extractor produces."""
        return ScrapedFacts(
            registration_fee=self.registration_fee,
            renewal_fee=self.renewal_fee,
            hmo_fee=self.hmo_fee,
            processing_time_days=self.processing_time_days,
            contact_email=self.contact_email,
            contact_phone=self.contact_phone,
            source_url=self.url,
            checked_at=self.last_scraped or self.created_at or utcnow(),
        )

    def __repr__(self):
        return f"<SourceRecord {self.id} {self.name}>"


class AlertRecord(Base):
    """
    Durable, classified alert. Severity and priority are fixed at creation.
    """
    __tablename__ = "alerts"
    __table_args__ = (
        Index("idx_alert_status_created", "status", "created_at"),
        CheckConstraint("priority BETWEEN 1 AND 5", name="ck_alert_priority"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    source_id = Column(String(100), ForeignKey("sources.id"), nullable=True, index=True)

    alert_type = Column(String(32), nullable=False)
    category = Column(String(32), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)

    effective_date = Column(DateTime, nullable=False)
    expiry_date = Column(DateTime, nullable=True)

    severity = Column(String(16), nullable=False)
    priority = Column(Integer, nullable=False)
    status = Column(String(16), nullable=False, default="ACTIVE")

    source_url = Column(String(2048), nullable=True)
    view_count = Column(Integer, nullable=False, default=0)
    # Set once dispatch has run to completion; NULL rows are re-dispatched
    dispatched_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    source = relationship("SourceRecord")

    def __repr__(self):
        return f"<AlertRecord {self.id} {self.severity} {self.status}>"


class AlertPreferenceRecord(Base):
    """
    One row per user. source_filter is a JSON list; empty means all sources.
    """
    __tablename__ = "alert_preferences"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), ForeignKey("users.id"), nullable=False, unique=True)

    email_enabled = Column(Boolean, nullable=False, default=True)
    in_app_enabled = Column(Boolean, nullable=False, default=True)

    fee_change_alerts = Column(Boolean, nullable=False, default=True)
    requirement_alerts = Column(Boolean, nullable=False, default=True)
    deadline_alerts = Column(Boolean, nullable=False, default=True)
    policy_change_alerts = Column(Boolean, nullable=False, default=True)
    system_alerts = Column(Boolean, nullable=False, default=True)

    immediate_alerts = Column(Boolean, nullable=False, default=True)
    daily_digest = Column(Boolean, nullable=False, default=False)
    min_severity = Column(String(16), nullable=True)

    source_filter = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    user = relationship("UserRecord", back_populates="preference")


class NotificationRecord(Base):
    """
    In-app, per-user projection of an alert. At most one per (user, alert).
    """
    __tablename__ = "notifications"
    __table_args__ = (
        UniqueConstraint("user_id", "alert_id", name="uq_notification_user_alert"),
        Index("idx_notification_user_read", "user_id", "read"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), ForeignKey("users.id"), nullable=False, index=True)
    alert_id = Column(String(36), ForeignKey("alerts.id"), nullable=True)

    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(32), nullable=False)
    meta = Column("metadata", JSON, nullable=True)
    read = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f"<NotificationRecord {self.id} user={self.user_id} alert={self.alert_id}>"


class AcknowledgementRecord(Base):
    """
    A user has seen (and possibly dismissed) an alert.
    """
    __tablename__ = "alert_acknowledgements"
    __table_args__ = (
        UniqueConstraint("user_id", "alert_id", name="uq_ack_user_alert"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), ForeignKey("users.id"), nullable=False, index=True)
    alert_id = Column(String(36), ForeignKey("alerts.id"), nullable=False, index=True)
    acknowledged_at = Column(DateTime, nullable=False, default=utcnow)
    dismissed_at = Column(DateTime, nullable=True)


class EmailLog(Base):
    """
    Every email attempt (immediate or digest), successful or not.
    """
    __tablename__ = "email_logs"
    __table_args__ = (Index("idx_email_user_alert_kind", "user_id", "alert_id", "kind"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), ForeignKey("users.id"), nullable=False)
    alert_id = Column(String(36), ForeignKey("alerts.id"), nullable=True)
    kind = Column(String(16), nullable=False)  # 'immediate', 'digest'
    recipient = Column(String(320), nullable=False)
    subject = Column(String(255), nullable=False)
    status = Column(String(16), nullable=False)  # 'sent', 'failed'
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    def __repr__(self):
        return f"<EmailLog {self.kind} {self.status} to {self.recipient}>"


class ExtractionLog(Base):
    """
    Log of all extraction attempts for monitoring.
    """
    __tablename__ = "extraction_logs"
    __table_args__ = (Index("idx_source_timestamp", "source_id", "created_at"),)

    id = Column(Integer, primary_key=True, autoincrement=True)

    source_id = Column(String(100), nullable=False, index=True)
    url = Column(String(2048), nullable=True)

    success = Column(Integer, nullable=False)  # 1=success, 0=failure
    error_code = Column(String(32), nullable=True)
    error_message = Column(Text, nullable=True)

    load_time_ms = Column(Float, nullable=True)
    fields_found = Column(Integer, nullable=True)
    changes_detected = Column(Integer, nullable=True)

    created_at = Column(DateTime, nullable=False, index=True, default=utcnow)

    def __repr__(self):
        status = "✓" if self.success else "✗"
        return f"<ExtractionLog {status} {self.source_id} at {self.created_at}>"


class DatabaseManager:
    """
    Manages database connections and sessions.
    """

    def __init__(self, database_url: Optional[str] = None):
        """
        Initialize database manager.

        Args:
            database_url: Connection string (defaults to settings.DATABASE_URL)
        """
        self.database_url = database_url or get_settings().DATABASE_URL

        engine_kwargs = {}
        if self.database_url.startswith("sqlite"):
            # Sessions are opened on the coordinating thread of a job, which
            # need not be the thread that created the engine.
            engine_kwargs["connect_args"] = {"check_same_thread": False}

        self.engine = create_engine(self.database_url, echo=False, **engine_kwargs)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

        logger.info(f"Initialized database at {self.engine.url.render_as_string(hide_password=True)}")

    def create_all(self) -> None:
        """Create all tables."""
        Base.metadata.create_all(self.engine)
        logger.info("Database tables created")

    def get_session(self):
        """Get new database session."""
        return self.SessionLocal()

    def ping(self) -> None:
        """
        Check the database is reachable.

        Raises:
            PersistenceUnavailable: If a connection cannot be opened
        """
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except OperationalError as e:
            raise PersistenceUnavailable(
                f"Cannot reach database: {e.orig}",
                details={"url": self.engine.url.render_as_string(hide_password=True)},
            ) from e

    def dispose(self) -> None:
        self.engine.dispose()
