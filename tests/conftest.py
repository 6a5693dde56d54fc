from datetime import timedelta
from typing import Optional

import pytest

from core.config import Settings
from storage import (
    AlertRecord,
    AlertRepository,
    DatabaseManager,
    SourceRepository,
    UserRepository,
)

from tests.helpers import FakeMailer, fee_draft


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings isolated from any local .env file."""
    return Settings(
        _env_file=None,
        DATABASE_URL=f"sqlite:///{tmp_path / 'test.db'}",
        EMAIL_PROVIDER="log",
        EMAIL_MAX_WORKERS=3,
        SCRAPE_MAX_WORKERS=2,
        APP_URL="https://app.example.com",
        SLACK_WEBHOOK_URL=None,
        ALERT_EXPIRY_DAYS=90,
        SUCCESS_RATE_THRESHOLD=0.9,
    )


@pytest.fixture
def db(settings) -> DatabaseManager:
    """File-backed SQLite database with all tables, one per test."""
    manager = DatabaseManager(settings.DATABASE_URL)
    manager.create_all()
    yield manager
    manager.dispose()


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def make_user(db):
    """Create a user (with signup-default preferences plus overrides)."""
    repo = UserRepository(db)
    counter = {"n": 0}

    def _make(user_id: Optional[str] = None, email: Optional[str] = "", name: str = "Test Landlord", **preferences):
        counter["n"] += 1
        user_id = user_id or f"user-{counter['n']}"
        if email == "":
            email = f"{user_id}@example.com"
        return repo.create_user(user_id, email=email, name=name, preferences=preferences)

    return _make


@pytest.fixture
def make_source(db):
    repo = SourceRepository(db)

    def _make(
        source_id: str = "edinburgh",
        name: str = "City of Edinburgh Council",
        url: Optional[str] = "https://council.example/edinburgh",
        priority: bool = False,
        **facts,
    ):
        if url == "https://council.example/edinburgh" and source_id != "edinburgh":
            url = f"https://council.example/{source_id}"
        return repo.upsert_source(source_id, name, url=url, priority=priority, facts=facts)

    return _make


@pytest.fixture
def make_alert(db):
    """Persist an alert; `age` backdates its creation time."""
    repo = AlertRepository(db)

    def _make(source_id: Optional[str] = "edinburgh", age: Optional[timedelta] = None, **draft_kwargs):
        alert = repo.create(fee_draft(**draft_kwargs), source_id=source_id)
        if age is not None:
            session = db.get_session()
            try:
                record = session.get(AlertRecord, alert.id)
                record.created_at = record.created_at - age
                session.commit()
            finally:
                session.close()
            alert = repo.get(alert.id)
        return alert

    return _make
