# src/skillboard/db/models.py

"""Database models for the SkillBoard application."""

from __future__ import annotations

import math
from datetime import date, datetime, timezone
from typing import Any, List, TypedDict

from sqlalchemy import (
    JSON,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
    select,
)
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import (
    Mapped,
    declarative_base,
    mapped_column,
    relationship,
)
from sqlalchemy.types import TypeDecorator

Base = declarative_base()

# League lifecycle values
STATUS_UPCOMING = "upcoming"
STATUS_ACTIVE = "active"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Stores naive UTC and always hands back aware UTC datetimes.

    SQLite drops tzinfo on the way out, which would make comparisons with
    ``utcnow()`` raise.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Any) -> Any:
        if value is None:
            return None
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    def process_result_value(self, value: datetime | None, dialect: Any) -> Any:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


# ===============================================
# Type Definitions for JSON Fields
# ===============================================


class PerformerRecord(TypedDict, total=False):
    """One entry of ``LeaderboardSnapshot.top_performers``.

    ``subject_ranks`` is only present on global-scope snapshots.
    """

    rank: int
    user_id: int
    username: str
    email: str
    total_points: float
    accuracy: float
    total_submissions: int
    average_time: float
    last_active: str
    subject_ranks: dict[str, int]


# ===============================================
# Mixins for Common Columns
# ===============================================


class TimestampMixin:
    """Mixin providing created_at and updated_at timestamp columns."""

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, default=None, onupdate=utcnow, nullable=True
    )


# ===============================================
# Users
# ===============================================


class User(Base, TimestampMixin):
    """A learner with running totals over every accepted submission."""

    __tablename__ = "users"
    id: Mapped[int] = mapped_column(primary_key=True)
    username: Mapped[str] = mapped_column(String, unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String, nullable=False)

    # Stats across all leagues
    games_played: Mapped[int] = mapped_column(default=0, nullable=False)
    total_points: Mapped[float] = mapped_column(default=0.0, nullable=False)
    average_accuracy: Mapped[float] = mapped_column(default=0.0, nullable=False)
    average_time: Mapped[float] = mapped_column(default=0.0, nullable=False)
    best_score: Mapped[float] = mapped_column(default=0.0, nullable=False)

    participations: Mapped[List["LeagueParticipant"]] = relationship(
        back_populates="user"
    )

    def update_stats(self, submission: "Submission") -> None:
        """Fold one accepted submission into the running totals."""
        self.games_played += 1
        self.total_points += submission.points
        games = self.games_played
        self.average_accuracy += (submission.accuracy - self.average_accuracy) / games
        self.average_time += (submission.time_seconds - self.average_time) / games
        if submission.points > self.best_score:
            self.best_score = submission.points


# ===============================================
# Leagues
# ===============================================


class League(Base, TimestampMixin):
    """A time-boxed competition with its own scoring rules and roster.

    ``closed_status`` only holds an explicit ``cancelled`` or ``completed``;
    everything else is derived from the time window by ``status_at``.
    """

    __tablename__ = "leagues"
    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(String, default="", nullable=False)

    # Scope tag for subject leaderboards, e.g. 'math'. None = general league.
    subject: Mapped[str | None] = mapped_column(String, nullable=True, index=True)

    start_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    end_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    max_participants: Mapped[int] = mapped_column(default=1000, nullable=False)

    # Rules
    scoring_method: Mapped[str] = mapped_column(
        String, default="accuracy_then_time", nullable=False
    )
    max_submissions: Mapped[int] = mapped_column(default=3, nullable=False)
    skill_level: Mapped[str] = mapped_column(
        String, default="intermediate", nullable=False
    )

    is_public: Mapped[bool] = mapped_column(default=True, nullable=False)
    closed_status: Mapped[str | None] = mapped_column(String, nullable=True)

    # Ex: [{"rank": 1, "description": "Gold", "credits": 500, "badge": "gold"}]
    prizes: Mapped[list] = mapped_column(JSON, default=lambda: [])

    participants: Mapped[List["LeagueParticipant"]] = relationship(
        back_populates="league",
        cascade="all, delete-orphan",
        order_by="LeagueParticipant.id",
    )

    __table_args__ = (Index("ix_leagues_window", "start_at", "end_at"),)

    def status_at(self, now: datetime | None = None) -> str:
        """Lifecycle status at ``now`` (defaults to the current time)."""
        if self.closed_status in (STATUS_CANCELLED, STATUS_COMPLETED):
            return self.closed_status
        now = now or utcnow()
        if now < self.start_at:
            return STATUS_UPCOMING
        if now < self.end_at:
            return STATUS_ACTIVE
        return STATUS_COMPLETED

    @property
    def status(self) -> str:
        return self.status_at()

    @property
    def participant_count(self) -> int:
        return len(self.participants)

    @property
    def spots_remaining(self) -> int:
        return self.max_participants - len(self.participants)

    @property
    def duration_in_days(self) -> int:
        seconds = abs((self.end_at - self.start_at).total_seconds())
        return math.ceil(seconds / 86400)

    def find_participant(self, user_id: int) -> "LeagueParticipant | None":
        for participant in self.participants:
            if participant.user_id == user_id:
                return participant
        return None


class LeagueParticipant(Base):
    """A user's entry in a league, with the cached best submission.

    The ``version`` column enables optimistic locking: a stale concurrent
    update raises ``StaleDataError`` instead of silently overwriting.
    """

    __tablename__ = "league_participants"
    id: Mapped[int] = mapped_column(primary_key=True)
    league_id: Mapped[int] = mapped_column(
        ForeignKey("leagues.id"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"), nullable=False, index=True
    )
    joined_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, nullable=False
    )

    # Best submission so far. All zero until the first submission lands.
    best_accuracy: Mapped[float] = mapped_column(default=0.0, nullable=False)
    best_time_seconds: Mapped[float] = mapped_column(default=0.0, nullable=False)
    best_points: Mapped[float] = mapped_column(default=0.0, nullable=False)
    best_submitted_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True
    )

    last_submission_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True
    )
    version: Mapped[int] = mapped_column(nullable=False)

    league: Mapped["League"] = relationship(back_populates="participants")
    user: Mapped["User"] = relationship(back_populates="participations")
    submissions: Mapped[List["Submission"]] = relationship(
        back_populates="participant",
        cascade="all, delete-orphan",
        order_by="Submission.id",
    )

    __table_args__ = (
        UniqueConstraint("league_id", "user_id", name="_league_user_uc"),
    )
    __mapper_args__ = {"version_id_col": version}

    @property
    def submission_count(self) -> int:
        return len(self.submissions)

    @property
    def has_score(self) -> bool:
        """A zero-point best submission means no qualifying score yet."""
        return self.best_points > 0


class Submission(Base):
    """One recorded score. Never updated after insert."""

    __tablename__ = "submissions"
    id: Mapped[int] = mapped_column(primary_key=True)
    participant_id: Mapped[int] = mapped_column(
        ForeignKey("league_participants.id"), nullable=False, index=True
    )
    accuracy: Mapped[float] = mapped_column(nullable=False)
    time_seconds: Mapped[float] = mapped_column(nullable=False)
    points: Mapped[float] = mapped_column(nullable=False)
    submitted_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, nullable=False
    )

    # Ex: {'questions_answered': 20, 'correct_answers': 18, 'game_mode': 'blitz'}
    game_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    participant: Mapped["LeagueParticipant"] = relationship(
        back_populates="submissions"
    )


# ===============================================
# Snapshots
# ===============================================


class LeaderboardSnapshot(Base, TimestampMixin):
    """Point-in-time standings for one scope on one day.

    Written only by the snapshot job; one row per (snapshot_date, scope).
    """

    __tablename__ = "leaderboard_snapshots"
    id: Mapped[int] = mapped_column(primary_key=True)
    snapshot_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    scope: Mapped[str] = mapped_column(String, nullable=False, index=True)

    total_users: Mapped[int] = mapped_column(default=0, nullable=False)
    average_accuracy: Mapped[float] = mapped_column(default=0.0, nullable=False)
    average_points: Mapped[float] = mapped_column(default=0.0, nullable=False)
    total_submissions: Mapped[int] = mapped_column(default=0, nullable=False)

    # List of PerformerRecord dicts, ordered by rank
    top_performers: Mapped[list] = mapped_column(JSON, default=lambda: [])

    __table_args__ = (
        UniqueConstraint("snapshot_date", "scope", name="_snapshot_date_scope_uc"),
    )

    @classmethod
    async def find_for_day(
        cls, db: AsyncSession, snapshot_date: date, scope: str
    ) -> "LeaderboardSnapshot | None":
        query = select(cls).where(
            cls.snapshot_date == snapshot_date, cls.scope == scope
        )
        result = await db.execute(query)
        return result.scalar_one_or_none()

    @classmethod
    async def latest(
        cls, db: AsyncSession, scope: str, since: date | None = None
    ) -> "LeaderboardSnapshot | None":
        query = select(cls).where(cls.scope == scope)
        if since is not None:
            query = query.where(cls.snapshot_date >= since)
        query = query.order_by(cls.snapshot_date.desc()).limit(1)
        result = await db.execute(query)
        return result.scalar_one_or_none()
