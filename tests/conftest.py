import os
from datetime import datetime

import pytest

# Tests run against an in-memory SQLite database; keep the scheduler off.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("ENABLE_SWEEP_SCHEDULER", "false")
os.environ.setdefault("CRON_SECRET", "")

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.database import Base
from app.models import Company, AttendantStatus, ChatAssignment
from app.models.attendant_status import AttendantStatusType
from app.models.chat_assignment import ChatAssignmentStatus


NOW = datetime(2026, 10, 19, 12, 0, 0)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_company(db):
    def _make(company_id: int, strategy: str = "least_loaded", is_active: bool = True):
        company = Company(id=company_id, name=f"Company {company_id}", distribution_strategy=strategy, is_active=is_active)
        db.add(company)
        db.commit()
        return company
    return _make


@pytest.fixture
def make_attendant(db):
    def _make(user_id: int, company_id: int, status: str = AttendantStatusType.AVAILABLE.value,
              active_chats: int = 0, max_chats: int = 3, last_activity_at: datetime = NOW,
              last_assigned_at: datetime = None):
        attendant = AttendantStatus(
            user_id=user_id,
            company_id=company_id,
            status=status,
            active_chats=active_chats,
            max_chats=max_chats,
            last_activity_at=last_activity_at,
            last_assigned_at=last_assigned_at,
        )
        db.add(attendant)
        db.commit()
        return attendant
    return _make


@pytest.fixture
def make_assignment(db):
    def _make(chat_id: str, company_id: int, status: str = ChatAssignmentStatus.UNASSIGNED.value,
              assigned_to: int = None, assigned_at: datetime = None,
              last_customer_message_at: datetime = NOW, last_attendant_message_at: datetime = None,
              window_expires_at: datetime = None):
        from app.services import chat_window_service

        if window_expires_at is None and last_customer_message_at is not None:
            window_expires_at = chat_window_service.window_expiry(last_customer_message_at)
        assignment = ChatAssignment(
            chat_id=chat_id,
            company_id=company_id,
            status=status,
            assigned_to=assigned_to,
            assigned_at=assigned_at,
            last_customer_message_at=last_customer_message_at,
            last_attendant_message_at=last_attendant_message_at,
            last_activity_at=last_customer_message_at or NOW,
            window_expires_at=window_expires_at,
        )
        db.add(assignment)
        db.commit()
        return assignment
    return _make
