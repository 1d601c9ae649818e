"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of devpulse.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

from datetime import UTC, date, datetime  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from devpulse.config import DevPulseConfig  # noqa: E402
from devpulse.database.engine import get_session  # noqa: E402
from devpulse.database.models import Base, CommitEvent, Member  # noqa: E402

# 2024-03-15 12:00 KST, a Friday
FIXED_NOW = datetime(2024, 3, 15, 3, 0, tzinfo=UTC)
TODAY = date(2024, 3, 15)


def fixed_clock() -> datetime:
    return FIXED_NOW


def kst(year: int, month: int, day: int, hour: int = 12, minute: int = 0, second: int = 0) -> datetime:
    """A Seoul wall-clock time, returned as the equivalent UTC instant."""
    from zoneinfo import ZoneInfo

    local = datetime(year, month, day, hour, minute, second, tzinfo=ZoneInfo("Asia/Seoul"))
    return local.astimezone(UTC)


@pytest.fixture
def db_engine() -> Engine:
    """In-memory SQLite engine with all DevPulse tables.

    Uses StaticPool so every thread shares the one in-memory database.
    Aggregation tests therefore run with ``max_workers=1``.
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a session that rolls back after each test."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


@pytest.fixture
def config() -> DevPulseConfig:
    return DevPulseConfig(max_workers=1)


def add_member(engine: Engine, member_id: str = "m1", email: str | None = None, active: bool = True) -> None:
    with get_session(engine) as session:
        session.add(Member(
            id=member_id,
            name=member_id.upper(),
            email=email or f"{member_id}@example.com",
            active=active,
        ))


_sha_counter = 0


def add_commit(
    engine: Engine,
    committed_at: datetime | None,
    member_id: str = "m1",
    *,
    sha: str | None = None,
    repository: str = "team/api",
    message: str = "feat: work",
    additions: int = 10,
    deletions: int = 2,
    files_changed: int = 1,
    email: str | None = None,
) -> str:
    """Append one commit to the journal, authored by *member_id*'s email."""
    global _sha_counter
    _sha_counter += 1
    sha = sha or f"{_sha_counter:040x}"
    with get_session(engine) as session:
        session.add(CommitEvent(
            sha=sha,
            repository=repository,
            author_email=email or f"{member_id}@example.com",
            committed_at=committed_at,
            additions=additions,
            deletions=deletions,
            files_changed=files_changed,
            message=message,
        ))
    return sha


@pytest.fixture
def admin_token():
    """Generate a valid admin JWT for use in API integration tests."""
    return make_admin_token()


def make_admin_token(sub: str = "99999", username: str = "FixtureAdmin", is_admin: bool = True) -> str:
    """Create a JWT.  Usable as both a fixture and a factory function."""
    import jwt

    from devpulse.api.deps import JWT_ALGORITHM, JWT_SECRET

    return jwt.encode(
        {"sub": sub, "username": username, "is_admin": is_admin},
        JWT_SECRET,
        algorithm=JWT_ALGORITHM,
    )
