# tests/test_concurrent_operations.py

"""Tests for overlapping joins and submissions.

Each coroutine uses its own session, the way concurrent requests do, so
these exercise the per-league and per-participant serialization.
"""

import asyncio

import pytest
from skillboard.exceptions import LeagueFullError, SubmissionLimitExceededError
from skillboard.schemas.league import ScoreSubmit
from skillboard.services import league_service


@pytest.mark.asyncio
async def test_simultaneous_submissions_respect_the_cap(
    session_factory, db_session, make_user, make_league
):
    """Five submissions racing against a cap of 3: exactly three land."""
    # 1. ARRANGE
    user = await make_user("ada")
    league = await make_league(max_submissions=3, scoring_method="points_only")
    await league_service.join_league(db_session, league.id, user.id)

    async def attempt(points: int):
        async with session_factory() as db:
            score = ScoreSubmit(
                user_id=user.id, accuracy=80, time_seconds=30, points=points
            )
            return await league_service.submit_score(db, league.id, score)

    # 2. ACT
    results = await asyncio.gather(
        *(attempt(points) for points in (10, 20, 30, 40, 50)),
        return_exceptions=True,
    )

    # 3. ASSERT
    accepted = [r for r in results if not isinstance(r, Exception)]
    rejected = [r for r in results if isinstance(r, Exception)]
    assert len(accepted) == 3
    assert all(isinstance(r, SubmissionLimitExceededError) for r in rejected)

    reloaded = await league_service.load_league(db_session, league.id)
    participant = reloaded.find_participant(user.id)
    assert participant.submission_count == 3
    assert participant.best_points == max(s.points for s in participant.submissions)


@pytest.mark.asyncio
async def test_simultaneous_joins_respect_capacity(
    session_factory, make_user, make_league
):
    league = await make_league(max_participants=2)
    users = [await make_user(f"user{i}") for i in range(4)]

    async def attempt(user_id: int):
        async with session_factory() as db:
            return await league_service.join_league(db, league.id, user_id)

    results = await asyncio.gather(
        *(attempt(user.id) for user in users), return_exceptions=True
    )

    joined = [r for r in results if not isinstance(r, Exception)]
    assert len(joined) == 2
    assert sum(isinstance(r, LeagueFullError) for r in results) == 2
