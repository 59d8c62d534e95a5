# src/skillboard/schemas/leaderboard.py

"""Leaderboard, snapshot and snapshot-job schemas."""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from .common import Timeframe
from .league import SubmissionRead
from .pagination import PaginatedResponse


class LeagueLeaderboardEntry(BaseModel):
    """Single entry in a live league leaderboard.

    Attributes:
        rank: Position in the full leaderboard (1-indexed, no gaps)
        accuracy, time_seconds, points: Fields of the best submission
        submissions: Number of submissions made so far
        improvement_rate: Percent change of best points over the first
            submission, only when there is more than one submission
    """

    rank: int = Field(..., ge=1)
    user_id: int
    username: str
    accuracy: float
    time_seconds: float
    points: float
    submitted_at: datetime | None = None
    submissions: int = Field(..., ge=0)
    joined_at: datetime
    submissions_remaining: int = Field(..., ge=0)
    improvement_rate: float | None = None


class SubmissionResult(BaseModel):
    """Response for a recorded submission."""

    submission: SubmissionRead
    your_rank: int | None = None
    leaderboard: list[LeagueLeaderboardEntry] = Field(default_factory=list)


# ===============================================
# == Snapshot reads
# ===============================================


class PerformerRead(BaseModel):
    """One aggregated performer in a scope leaderboard."""

    rank: int = Field(..., ge=1)
    user_id: int
    username: str
    email: str
    total_points: float = Field(..., ge=0)
    accuracy: float = Field(..., ge=0, le=100)
    total_submissions: int = Field(..., ge=0)
    average_time: float = Field(..., ge=0)
    last_active: datetime
    subject_ranks: dict[str, int] | None = None


class SnapshotTrendPoint(BaseModel):
    """Aggregate stats of one stored snapshot."""

    snapshot_date: date
    total_users: int
    average_accuracy: float
    average_points: float
    total_submissions: int

    model_config = ConfigDict(from_attributes=True)


class ScopeLeaderboard(BaseModel):
    """Scope leaderboard read from a snapshot, or aggregated live."""

    scope: str
    timeframe: Timeframe
    source: str = Field(..., description="'snapshot' or 'live'")
    total_users: int
    average_accuracy: float
    average_points: float
    total_submissions: int
    performers: PaginatedResponse[PerformerRead]
    last_updated: datetime | date
    trend: list[SnapshotTrendPoint] = Field(default_factory=list)


class SpotlightBadge(BaseModel):
    name: str
    icon: str
    color: str


class SpotlightEntry(PerformerRead):
    spotlight_type: str
    badge: SpotlightBadge


class Spotlight(BaseModel):
    spotlight_users: list[SpotlightEntry]
    total_featured: int
    last_updated: datetime | date


class RankHistoryPoint(BaseModel):
    snapshot_date: date
    rank: int
    points: float
    accuracy: float


class RankHistory(BaseModel):
    user_id: int
    scope: str
    history: list[RankHistoryPoint]
    total_snapshots: int


class ScopeStats(BaseModel):
    """Headline numbers of the latest snapshot of a scope."""

    total_users: int
    average_accuracy: float
    average_points: float
    total_submissions: int
    last_updated: date


class LeaderboardStats(BaseModel):
    scopes: dict[str, ScopeStats | None]


# ===============================================
# == Snapshot job
# ===============================================


class ScopeOutcomeRead(BaseModel):
    scope: str
    action: str = Field(..., description="'created', 'updated' or 'failed'")
    total_users: int = 0
    error: str | None = None

    model_config = ConfigDict(from_attributes=True)


class SnapshotRunRead(BaseModel):
    """Summary of one snapshot run."""

    trigger: str
    skipped: bool
    snapshot_date: date
    started_at: datetime
    finished_at: datetime | None = None
    duration_ms: float | None = None
    scopes: list[ScopeOutcomeRead] = Field(default_factory=list)
    purged: int = 0
    purge_error: str | None = None

    model_config = ConfigDict(from_attributes=True)


class JobStatusRead(BaseModel):
    initialized: bool
    running: bool
    scheduled: bool
    next_run_at: datetime | None = None
    last_run: SnapshotRunRead | None = None

    model_config = ConfigDict(from_attributes=True)


class ScopeSnapshotStats(BaseModel):
    total_snapshots: int
    latest_date: date
    oldest_date: date
    average_users: float
    average_accuracy: float


class SnapshotStatus(BaseModel):
    job: JobStatusRead
    snapshots: dict[str, ScopeSnapshotStats]
