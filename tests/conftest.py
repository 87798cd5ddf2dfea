"""
Shared fixtures: an isolated in-memory SQLite database per test, a
controllable clock, a seeded user directory, and both store backends.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SUPABASE_URL", "https://example.supabase.co")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-secret")

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.database import Base
from app.models import requisition as requisition_models  # noqa: F401
from app.models.user import User
from app.schemas.requisition import RequisitionDraft
from app.services.approval_engine import ApprovalEngine
from app.services.requisition_store import InMemoryRequisitionStore, SqlRequisitionStore
from app.services.requisitions import RequisitionService
from app.services.users import UserDirectory


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)

    def set(self, now: datetime) -> None:
        self.now = now


SEED_USERS = [
    ("1", "John Doe", "john@example.com", True),
    ("2", "Jane Smith", "jane@example.com", True),
    ("3", "Bob Johnson", "bob@example.com", True),
    ("4", "Alice Williams", "alice@example.com", True),
    ("5", "Charlie Brown", "charlie@example.com", False),
]


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def directory(session_factory):
    db = session_factory()
    db.add_all([User(id=i, name=n, email=e, active=a) for i, n, e, a in SEED_USERS])
    db.commit()
    db.close()
    return UserDirectory(session_factory)


@pytest.fixture(params=["memory", "sql"])
def store(request, session_factory, clock):
    if request.param == "memory":
        return InMemoryRequisitionStore(clock=clock)
    return SqlRequisitionStore(session_factory, clock=clock)


@pytest.fixture
def engine(store, clock):
    return ApprovalEngine(store, clock=clock)


@pytest.fixture
def service(store, directory):
    return RequisitionService(store, directory)


@pytest.fixture
def make_draft():
    """Build a RequisitionDraft with complete submission fields."""
    def _make(**overrides) -> RequisitionDraft:
        data = {
            "subject": "Office chairs",
            "summary": "Ten ergonomic chairs for the new floor",
            "tin_number": "TIN-1001",
            "bin_nid": "BIN-2002",
            "created_by": "1",
            "assigned_approvers": ["2", "3"],
            "status": "Pending",
        }
        data.update(overrides)
        return RequisitionDraft(**data)
    return _make


@pytest.fixture
def pending(store, make_draft):
    """A Pending requisition by user 1, routed to 2 then 3."""
    return store.create(make_draft())
