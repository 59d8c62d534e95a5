# src/skillboard/schemas/__init__.py

"""Pydantic schemas for API validation and serialization."""

from .common import LeagueStatus, ScoringMethod, SkillLevel, Timeframe
from .leaderboard import (
    JobStatusRead,
    LeaderboardStats,
    LeagueLeaderboardEntry,
    PerformerRead,
    RankHistory,
    RankHistoryPoint,
    ScopeLeaderboard,
    ScopeOutcomeRead,
    ScopeSnapshotStats,
    ScopeStats,
    SnapshotRunRead,
    SnapshotStatus,
    SnapshotTrendPoint,
    Spotlight,
    SpotlightBadge,
    SpotlightEntry,
    SubmissionResult,
)
from .league import (
    GameData,
    JoinRequest,
    LeagueBase,
    LeagueCreate,
    LeagueRead,
    ParticipantRead,
    Prize,
    ScoreBase,
    ScoreSubmit,
    SubmissionRead,
)
from .pagination import LeagueSortField, PaginatedResponse, SortOrder
from .user import UserBase, UserCreate, UserRead

__all__ = [
    # Enums
    "LeagueStatus",
    "ScoringMethod",
    "SkillLevel",
    "Timeframe",
    # Leagues
    "GameData",
    "JoinRequest",
    "LeagueBase",
    "LeagueCreate",
    "LeagueRead",
    "ParticipantRead",
    "Prize",
    "ScoreBase",
    "ScoreSubmit",
    "SubmissionRead",
    # Leaderboards
    "JobStatusRead",
    "LeaderboardStats",
    "LeagueLeaderboardEntry",
    "PerformerRead",
    "RankHistory",
    "RankHistoryPoint",
    "ScopeLeaderboard",
    "ScopeOutcomeRead",
    "ScopeSnapshotStats",
    "ScopeStats",
    "SnapshotRunRead",
    "SnapshotStatus",
    "SnapshotTrendPoint",
    "Spotlight",
    "SpotlightBadge",
    "SpotlightEntry",
    "SubmissionResult",
    # Pagination
    "LeagueSortField",
    "PaginatedResponse",
    "SortOrder",
    # Users
    "UserBase",
    "UserCreate",
    "UserRead",
]
