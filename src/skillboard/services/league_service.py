# src/skillboard/services/league_service.py

"""Business logic for leagues: joining, score submissions and live standings."""

from __future__ import annotations

import asyncio
import logging
import weakref
from datetime import datetime
from typing import Hashable

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.sql.elements import ColumnElement

from skillboard.db import models
from skillboard.exceptions import (
    AlreadyJoinedError,
    InvalidLeagueWindowError,
    LeagueClosedError,
    LeagueFullError,
    LeagueNotActiveError,
    LeagueNotFoundError,
    LeagueNotJoinableError,
    ParticipantNotFoundError,
    SubmissionLimitExceededError,
    UserNotFoundError,
)
from skillboard.schemas import league as league_schema
from skillboard.schemas.common import LeagueStatus
from skillboard.schemas.leaderboard import LeagueLeaderboardEntry
from skillboard.scoring import ranker
from skillboard.scoring.comparator import Score, ScoreLike, is_better

logger = logging.getLogger(__name__)

JOINABLE_STATUSES = (models.STATUS_UPCOMING, models.STATUS_ACTIVE)

# In-process serialization of read-check-write sequences. Entries disappear
# once no coroutine holds a reference to the lock.
_locks: "weakref.WeakValueDictionary[Hashable, asyncio.Lock]" = (
    weakref.WeakValueDictionary()
)


def _lock_for(key: Hashable) -> asyncio.Lock:
    lock = _locks.get(key)
    if lock is None:
        lock = asyncio.Lock()
        _locks[key] = lock
    return lock


def status_clause(status: LeagueStatus, now: datetime) -> ColumnElement[bool]:
    """SQL filter equivalent to ``League.status_at(now) == status``."""
    League = models.League
    open_league = League.closed_status.is_(None)

    if status is LeagueStatus.CANCELLED:
        return League.closed_status == models.STATUS_CANCELLED
    if status is LeagueStatus.COMPLETED:
        return or_(
            League.closed_status == models.STATUS_COMPLETED,
            and_(open_league, League.end_at <= now),
        )
    if status is LeagueStatus.ACTIVE:
        return and_(open_league, League.start_at <= now, League.end_at > now)
    return and_(open_league, League.start_at > now)


async def load_league(db: AsyncSession, league_id: int) -> models.League:
    """Fetch a league with its roster, submissions and users loaded.

    Raises:
        LeagueNotFoundError: If the league_id doesn't exist
    """
    query = (
        select(models.League)
        .where(models.League.id == league_id)
        .options(
            selectinload(models.League.participants).selectinload(
                models.LeagueParticipant.submissions
            ),
            selectinload(models.League.participants).selectinload(
                models.LeagueParticipant.user
            ),
        )
        .execution_options(populate_existing=True)
    )
    result = await db.execute(query)
    league = result.scalar_one_or_none()
    if league is None:
        raise LeagueNotFoundError(league_id)
    return league


async def create_league(
    db: AsyncSession, league_in: league_schema.LeagueCreate
) -> models.League:
    """Create a league. Raises InvalidLeagueWindowError if end <= start."""
    if league_in.end_at <= league_in.start_at:
        raise InvalidLeagueWindowError()

    data = league_in.model_dump()
    data["scoring_method"] = league_in.scoring_method.value
    data["skill_level"] = league_in.skill_level.value
    league = models.League(**data)
    db.add(league)
    await db.commit()

    logger.info(
        "League created",
        extra={"league_id": league.id, "scoring_method": league.scoring_method},
    )
    return await load_league(db, league.id)


async def cancel_league(db: AsyncSession, league_id: int) -> models.League:
    league = await load_league(db, league_id)
    status = league.status
    if status not in JOINABLE_STATUSES:
        raise LeagueClosedError(league_id, status)

    league.closed_status = models.STATUS_CANCELLED
    await db.commit()
    logger.info("League cancelled", extra={"league_id": league_id})
    return league


# ===============================================
# == Submission ledger
# ===============================================


def best_score(participant: models.LeagueParticipant) -> Score:
    return Score(
        accuracy=participant.best_accuracy,
        time_seconds=participant.best_time_seconds,
        points=participant.best_points,
    )


def record_submission(
    league: models.League,
    participant: models.LeagueParticipant,
    score: ScoreLike,
    game_data: dict | None = None,
    now: datetime | None = None,
) -> models.Submission:
    """Append a score to the participant's history and refresh their best.

    Checks run before anything is touched, so a rejected attempt leaves the
    history and best submission exactly as they were.

    Raises:
        SubmissionLimitExceededError: If max_submissions is already used up
        LeagueNotActiveError: If the league is not active at ``now``
    """
    now = now or models.utcnow()

    if participant.submission_count >= league.max_submissions:
        raise SubmissionLimitExceededError(
            league.id, participant.user_id, league.max_submissions
        )

    status = league.status_at(now)
    if status != models.STATUS_ACTIVE:
        raise LeagueNotActiveError(league.id, status)

    submission = models.Submission(
        accuracy=score.accuracy,
        time_seconds=score.time_seconds,
        points=score.points,
        submitted_at=now,
        game_data=game_data,
    )
    participant.submissions.append(submission)
    participant.last_submission_at = now

    # A zero-point best is the join-time placeholder: always replaced.
    if not participant.has_score or is_better(
        submission, best_score(participant), league.scoring_method
    ):
        participant.best_accuracy = submission.accuracy
        participant.best_time_seconds = submission.time_seconds
        participant.best_points = submission.points
        participant.best_submitted_at = now

    return submission


async def join_league(
    db: AsyncSession, league_id: int, user_id: int, now: datetime | None = None
) -> models.LeagueParticipant:
    """
    Adds a user to a league roster.

    Raises:
        LeagueNotFoundError: If the league_id doesn't exist
        UserNotFoundError: If the user_id doesn't exist
        AlreadyJoinedError: If the user is already on the roster
        LeagueFullError: If the roster has reached max_participants
        LeagueNotJoinableError: If the league is not upcoming or active
    """
    now = now or models.utcnow()

    async with _lock_for(("league", league_id)):
        try:
            league = await load_league(db, league_id)

            if await db.get(models.User, user_id) is None:
                raise UserNotFoundError(user_id)

            if league.find_participant(user_id) is not None:
                raise AlreadyJoinedError(league_id, user_id)

            if league.participant_count >= league.max_participants:
                raise LeagueFullError(league_id, league.max_participants)

            status = league.status_at(now)
            if status not in JOINABLE_STATUSES:
                raise LeagueNotJoinableError(league_id, status)

            participant = models.LeagueParticipant(
                league_id=league_id,
                user_id=user_id,
                joined_at=now,
                submissions=[],
            )
            db.add(participant)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    logger.info(
        "User joined league",
        extra={
            "league_id": league_id,
            "user_id": user_id,
            "participant_count": league.participant_count + 1,
        },
    )
    return participant


async def submit_score(
    db: AsyncSession,
    league_id: int,
    score_in: league_schema.ScoreSubmit,
    now: datetime | None = None,
) -> tuple[models.Submission, models.League]:
    """
    Records a score for a participant and commits it.

    Submissions for the same participant are serialized in-process; the
    participant's version column catches writers in other processes.

    Returns:
        The stored submission and the freshly loaded league.

    Raises:
        LeagueNotFoundError: If the league_id doesn't exist
        ParticipantNotFoundError: If the user never joined the league
        SubmissionLimitExceededError: If max_submissions is already used up
        LeagueNotActiveError: If the league is not active
    """
    user_id = score_in.user_id

    async with _lock_for(("participant", league_id, user_id)):
        try:
            league = await load_league(db, league_id)
            participant = league.find_participant(user_id)
            if participant is None:
                raise ParticipantNotFoundError(league_id, user_id)

            game_data = (
                score_in.game_data.model_dump(exclude_none=True)
                if score_in.game_data is not None
                else None
            )
            submission = record_submission(
                league, participant, score_in, game_data=game_data, now=now
            )
            participant.user.update_stats(submission)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    logger.info(
        "Score submitted",
        extra={
            "league_id": league_id,
            "user_id": user_id,
            "submission_id": submission.id,
            "submission_count": participant.submission_count,
        },
    )
    return submission, league


# ===============================================
# == Live standings
# ===============================================


def _improvement_rate(participant: models.LeagueParticipant) -> float | None:
    submissions = participant.submissions
    if len(submissions) < 2 or submissions[0].points == 0:
        return None
    first = submissions[0].points
    return round((participant.best_points - first) / first * 100, 1)


def build_leaderboard(league: models.League) -> list[LeagueLeaderboardEntry]:
    """Rank the roster under the league's scoring method.

    Participants without a qualifying score are left out entirely.
    """
    leaderboard = []
    for entry in ranker.rank(league.participants, league.scoring_method):
        participant = entry.participant
        remaining = league.max_submissions - participant.submission_count
        leaderboard.append(
            LeagueLeaderboardEntry(
                rank=entry.rank,
                user_id=participant.user_id,
                username=participant.user.username,
                accuracy=participant.best_accuracy,
                time_seconds=participant.best_time_seconds,
                points=participant.best_points,
                submitted_at=participant.best_submitted_at,
                submissions=participant.submission_count,
                joined_at=participant.joined_at,
                submissions_remaining=max(remaining, 0),
                improvement_rate=_improvement_rate(participant),
            )
        )
    return leaderboard
