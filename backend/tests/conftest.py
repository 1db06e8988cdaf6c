"""Pytest fixtures — file-backed SQLite database for fast, isolated tests."""
import os
import shutil

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("MIRROR_ENABLED", "false")
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from rsvp_app.database import Base, get_db
from rsvp_app.dependencies import get_mirror
from rsvp_app.main import app
from rsvp_app.security import create_access_token, hash_password
from rsvp_app.services.mirror import AttendanceMirror

# Import all models so they register with Base.metadata
from rsvp_app.models.user import User, UserRole       # noqa: F401
from rsvp_app.models.event import Event               # noqa: F401
from rsvp_app.models.rsvp import RSVP, GuestRSVP      # noqa: F401

SQLITE_URL = "sqlite:///./test.db"


class RecordingMirror:
    """Stands in for AttendanceMirror in API tests and records dispatches."""

    def __init__(self):
        self.calls = []

    def schedule_workspace(self, event_id, title):
        self.calls.append(("workspace", event_id, title))

    def schedule_refresh(self, event_id, title):
        self.calls.append(("refresh", event_id, title))

    def refreshed(self, event_id):
        return [c for c in self.calls if c[0] == "refresh" and c[1] == event_id]


@pytest.fixture(scope="function")
def db_engine():
    """Create a fresh SQLite engine for each test."""
    engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})

    # WAL for concurrent readers, foreign keys for referential checks
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db(session_factory):
    """Yield a database session, closed after the test."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def recording_mirror():
    return RecordingMirror()


def _make_client(session_factory, mirror):
    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_mirror] = lambda: mirror
    return TestClient(app)


@pytest.fixture(scope="function")
def client(session_factory, recording_mirror):
    """FastAPI TestClient on the test database, with a recording mirror."""
    with _make_client(session_factory, recording_mirror) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def mirror(session_factory, tmp_path):
    """A real AttendanceMirror writing to a throwaway git repository."""
    if shutil.which("git") is None:
        pytest.skip("git executable not available")
    m = AttendanceMirror(repo_path=str(tmp_path / "mirror"), session_factory=session_factory, timeout=20)
    yield m
    m.shutdown()


@pytest.fixture(scope="function")
def mirror_client(session_factory, mirror):
    """TestClient whose RSVP writes go through a real mirror."""
    with _make_client(session_factory, mirror) as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user)}"}


def register_user(client: TestClient, username: str = "alice", password: str = "secret123") -> dict:
    """Helper — POST /api/auth/register, returns {"user", "headers"}."""
    resp = client.post("/api/auth/register", json={
        "username": username,
        "email": f"{username}@example.com",
        "password": password,
    })
    assert resp.status_code == 201, resp.text
    data = resp.json()
    return {"user": data["user"], "headers": {"Authorization": f"Bearer {data['access_token']}"}}


def create_admin(db, username: str = "root") -> dict:
    """Helper — insert an administrator directly, returns {"user", "headers"}."""
    admin = User(
        username=username,
        email=f"{username}@example.com",
        password_hash=hash_password("adminpass"),
        role=UserRole.admin,
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    return {"user": {"id": admin.id, "username": admin.username}, "headers": auth_headers(admin)}


def create_test_event(client: TestClient, headers: dict, title: str = "Launch",
                      event_date: str = "2025-06-01T18:00:00", **fields) -> dict:
    """Helper — POST /api/events and return response JSON."""
    resp = client.post("/api/events", json={"title": title, "event_date": event_date, **fields}, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()
