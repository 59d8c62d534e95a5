# src/skillboard/schemas/league.py

"""Pydantic schemas for leagues, participants and score submissions."""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .common import LeagueStatus, ScoringMethod, SkillLevel

# ===============================================
# == Scores
# ===============================================


class GameData(BaseModel):
    """Optional context about the game that produced a score.

    Examples:
        {"questions_answered": 20, "correct_answers": 18}
        {"game_mode": "blitz", "difficulty": "hard", "streak": 7}
    """

    questions_answered: int | None = Field(default=None, ge=0)
    correct_answers: int | None = Field(default=None, ge=0)
    game_mode: str | None = None
    difficulty: str | None = None

    # Game-specific extras are kept as-is
    model_config = ConfigDict(extra="allow")


class ScoreBase(BaseModel):
    """The three fields every scoring method reads."""

    accuracy: float = Field(..., ge=0, le=100, description="Accuracy percentage")
    time_seconds: float = Field(..., ge=0, description="Elapsed time, lower is better")
    points: float = Field(..., ge=0, description="Points earned")


class ScoreSubmit(ScoreBase):
    """Payload for ``POST /leagues/{id}/submissions``."""

    user_id: int
    game_data: GameData | None = None


class SubmissionRead(ScoreBase):
    id: int
    submitted_at: datetime
    game_data: dict | None = None

    model_config = ConfigDict(from_attributes=True)


# ===============================================
# == Leagues
# ===============================================


class Prize(BaseModel):
    """A reward handed to whoever finishes at ``rank``."""

    rank: int = Field(..., ge=1)
    description: str = Field(..., min_length=1, max_length=200)
    credits: int = Field(0, ge=0)
    badge: str | None = None


class LeagueBase(BaseModel):
    """Shared properties for a league."""

    name: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    subject: str | None = Field(
        default=None, description="Subject tag used for subject leaderboards"
    )
    start_at: datetime
    end_at: datetime
    max_participants: int = Field(1000, ge=1)
    scoring_method: ScoringMethod = ScoringMethod.ACCURACY_THEN_TIME
    max_submissions: int = Field(3, ge=1)
    skill_level: SkillLevel = SkillLevel.INTERMEDIATE
    is_public: bool = True
    prizes: list[Prize] = Field(default_factory=list)

    @field_validator("start_at", "end_at")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        """Naive datetimes are read as UTC."""
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class LeagueCreate(LeagueBase):
    """Properties to receive via API on create."""

    @field_validator("subject")
    @classmethod
    def normalize_subject(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip().lower()
        return value or None


class LeagueRead(LeagueBase):
    """League with its derived lifecycle status and roster counters."""

    id: int
    status: LeagueStatus
    participant_count: int
    spots_remaining: int
    duration_in_days: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ===============================================
# == Participants
# ===============================================


class JoinRequest(BaseModel):
    user_id: int


class ParticipantRead(BaseModel):
    """A roster entry with the cached best submission."""

    id: int
    league_id: int
    user_id: int
    joined_at: datetime
    submission_count: int
    best_accuracy: float
    best_time_seconds: float
    best_points: float
    best_submitted_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)
