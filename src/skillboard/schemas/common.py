# src/skillboard/schemas/common.py

"""Closed enums shared by the models, services and API."""

from enum import Enum


class ScoringMethod(str, Enum):
    """Which score fields take priority when comparing or ranking."""

    ACCURACY_THEN_TIME = "accuracy_then_time"
    TIME_THEN_ACCURACY = "time_then_accuracy"
    POINTS_ONLY = "points_only"


class LeagueStatus(str, Enum):
    UPCOMING = "upcoming"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class SkillLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"


class Timeframe(str, Enum):
    """Leaderboard read windows. Weekly/monthly come from stored snapshots."""

    CURRENT = "current"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @property
    def days(self) -> int | None:
        return {"weekly": 7, "monthly": 30}.get(self.value)
