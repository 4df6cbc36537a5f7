import os
import sys
from datetime import datetime, timezone
from io import BytesIO
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from openpyxl import Workbook  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import main  # noqa: E402
from app.auth.models import Profile, UserRole  # noqa: E402
from app.common.db import Base, get_db  # noqa: E402
from app.common.guard import clear_in_flight  # noqa: E402
from app.common.security import create_access_token, get_password_hash  # noqa: E402
from app.registrants.models import Registrant  # noqa: E402
from app.registrants.store import RecordStore, StoreError, WRITABLE_FIELDS  # noqa: E402

TEST_PASSWORD = "camp-password"


class FakeStore(RecordStore):
    """In-memory RecordStore; `fail_with` makes every write fail like the database would."""

    def __init__(self):
        self.records: List[Registrant] = []
        self.upsert_calls: List[Sequence[Mapping[str, Any]]] = []
        self.fail_with: Optional[str] = None
        self.invoke_result: Any = 0
        self._next_id = 1

    def _new(self, values: Mapping[str, Any]) -> Registrant:
        registrant = Registrant(
            id=self._next_id,
            created_at=datetime.now(timezone.utc),
            assigned_group=values.get("assigned_group"),
            **{key: values[key] for key in WRITABLE_FIELDS if key in values},
        )
        self._next_id += 1
        self.records.append(registrant)
        return registrant

    def insert(self, record):
        if self.fail_with:
            raise StoreError(self.fail_with)
        return self._new(record)

    def select(self, filters=None, order=()):
        return [r for r in self.records if self._matches(r, filters or {})]

    def count(self, filters=None):
        if self.fail_with:
            raise StoreError(self.fail_with)
        return len(self.select(filters))

    def upsert(self, records, conflict_columns=()):
        self.upsert_calls.append(list(records))
        if self.fail_with:
            raise StoreError(self.fail_with)
        affected = 0
        for values in records:
            match = None
            if conflict_columns:
                for existing in self.records:
                    if all(getattr(existing, c) == values[c] for c in conflict_columns):
                        match = existing
                        break
            if match is None:
                self._new(values)
            else:
                for key in WRITABLE_FIELDS:
                    setattr(match, key, values[key])
            affected += 1
        return affected

    def invoke(self, operation, *args):
        if self.fail_with:
            raise StoreError(self.fail_with)
        return self.invoke_result

    @staticmethod
    def _matches(record, filters):
        for lookup, value in filters.items():
            field, _, op = lookup.partition("__")
            current = getattr(record, field)
            if op == "gte" and not (current is not None and current >= value):
                return False
            if op == "isnull" and (current is None) != bool(value):
                return False
            if op == "" and current != value:
                return False
        return True


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def make_workbook():
    """Build .xlsx bytes from a list of rows (first row is the header)."""
    def _make(rows, extra_sheets=()):
        wb = Workbook()
        ws = wb.active
        for row in rows:
            ws.append(list(row))
        for title in extra_sheets:
            wb.create_sheet(title)
        stream = BytesIO()
        wb.save(stream)
        return stream.getvalue()

    return _make


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    main.app.dependency_overrides[get_db] = override_get_db
    clear_in_flight()
    with TestClient(main.app) as test_client:
        yield test_client
    main.app.dependency_overrides.clear()


def _create_profile(session, email: str, role: UserRole, is_active: bool = True) -> Profile:
    profile = Profile(
        email=email,
        full_name=email.split("@")[0].title(),
        role=role,
        hashed_password=get_password_hash(TEST_PASSWORD),
        is_active=is_active,
    )
    session.add(profile)
    session.commit()
    return profile


def _headers(profile: Profile) -> dict:
    token = create_access_token(str(profile.id), extra={"role": profile.role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_profile(db_session):
    return _create_profile(db_session, "admin@familycamp.org", UserRole.ADMIN)


@pytest.fixture
def member_profile(db_session):
    return _create_profile(db_session, "member@familycamp.org", UserRole.MEMBER)


@pytest.fixture
def admin_headers(admin_profile):
    return _headers(admin_profile)


@pytest.fixture
def member_headers(member_profile):
    return _headers(member_profile)
