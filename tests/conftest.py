# tests/conftest.py

"""Pytest configuration and fixtures."""

from datetime import timedelta
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from skillboard.db.models import (
    Base,
    League,
    LeagueParticipant,
    Submission,
    User,
    utcnow,
)
from skillboard.db.session import get_db
from skillboard.main import app
from skillboard.services.snapshot_service import (
    SnapshotAggregator,
    get_snapshot_aggregator,
)
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)


@pytest.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """A fresh SQLite database per test.

    A file database (rather than :memory:) lets the snapshot job open its
    own sessions and see what the test committed.
    """
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def aggregator(session_factory: async_sessionmaker[AsyncSession]) -> SnapshotAggregator:
    return SnapshotAggregator(
        session_factory, subjects=["math", "science", "english"], top_n=100
    )


@pytest.fixture
async def async_client(
    session_factory: async_sessionmaker[AsyncSession],
    aggregator: SnapshotAggregator,
) -> AsyncGenerator[AsyncClient, None]:
    """Fixture to provide an async test client for the API."""

    # One session per request, like the real dependency
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_snapshot_aggregator] = lambda: aggregator

    transport = ASGITransport(app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# =============================================================================
# Data helpers
# =============================================================================


@pytest.fixture
def make_user(db_session: AsyncSession):
    async def _make(username: str) -> User:
        user = User(username=username, email=f"{username}@example.com")
        db_session.add(user)
        await db_session.commit()
        return user

    return _make


@pytest.fixture
def make_league(db_session: AsyncSession):
    """Creates an active league unless start/end are overridden."""

    async def _make(**overrides) -> League:
        now = utcnow()
        data = {
            "name": "Weekly Math",
            "subject": "math",
            "start_at": now - timedelta(days=1),
            "end_at": now + timedelta(days=6),
            "scoring_method": "accuracy_then_time",
            "max_submissions": 3,
            "max_participants": 1000,
        }
        data.update(overrides)
        league = League(**data)
        db_session.add(league)
        await db_session.commit()
        return league

    return _make


@pytest.fixture
def enroll(db_session: AsyncSession):
    """Puts a user on a roster with a given best score and submission count."""

    async def _enroll(
        league: League,
        user: User,
        points: float = 0.0,
        accuracy: float = 0.0,
        time_seconds: float = 0.0,
        submissions: int = 0,
    ) -> LeagueParticipant:
        now = utcnow()
        participant = LeagueParticipant(
            league_id=league.id,
            user_id=user.id,
            joined_at=now,
            best_points=points,
            best_accuracy=accuracy,
            best_time_seconds=time_seconds,
            best_submitted_at=now if submissions else None,
            last_submission_at=now if submissions else None,
            submissions=[
                Submission(
                    accuracy=accuracy,
                    time_seconds=time_seconds,
                    points=points,
                    submitted_at=now,
                )
                for _ in range(submissions)
            ],
        )
        db_session.add(participant)
        await db_session.commit()
        return participant

    return _enroll
