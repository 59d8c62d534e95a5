# src/skillboard/exceptions.py

"""Custom exception hierarchy for SkillBoard.

Each branch of the hierarchy maps to one HTTP status in ``main.py``:

1. ResourceNotFoundError -> 404
2. ValidationError -> 422
3. LeagueRuleError -> 409 (join and submission rules)
4. SnapshotError -> raised and mostly handled inside the snapshot job
"""

from __future__ import annotations


class SkillBoardError(Exception):
    """Base exception for all SkillBoard errors.

    Attributes:
        message: Human-readable error description
        details: Optional dict with additional context for logging/debugging
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


# =============================================================================
# Resource Not Found Errors (HTTP 404)
# =============================================================================


class ResourceNotFoundError(SkillBoardError):
    """Base class for resource not found errors."""

    pass


class LeagueNotFoundError(ResourceNotFoundError):
    """Raised when a league ID does not exist."""

    def __init__(self, league_id: int) -> None:
        super().__init__(
            message=f"League with ID {league_id} not found",
            details={"league_id": league_id},
        )


class UserNotFoundError(ResourceNotFoundError):
    """Raised when a user ID does not exist."""

    def __init__(self, user_id: int) -> None:
        super().__init__(
            message=f"User with ID {user_id} not found",
            details={"user_id": user_id},
        )


class ParticipantNotFoundError(ResourceNotFoundError):
    """Raised when a user submits to a league they never joined."""

    def __init__(self, league_id: int, user_id: int) -> None:
        super().__init__(
            message=f"User {user_id} is not a participant of league {league_id}",
            details={"league_id": league_id, "user_id": user_id},
        )


# =============================================================================
# Validation Errors (HTTP 422)
# =============================================================================


class ValidationError(SkillBoardError):
    """Base class for validation errors."""

    pass


class InvalidScopeError(ValidationError):
    """Raised when a leaderboard scope is neither global nor a known subject."""

    def __init__(self, scope: str, allowed: list[str]) -> None:
        super().__init__(
            message=f"Unknown leaderboard scope '{scope}'",
            details={"scope": scope, "allowed": allowed},
        )


class InvalidLeagueWindowError(ValidationError):
    """Raised when a league ends before (or exactly when) it starts."""

    def __init__(self) -> None:
        super().__init__(message="League end_at must be after start_at")


# =============================================================================
# League Rule Errors (HTTP 409)
# =============================================================================


class LeagueRuleError(SkillBoardError):
    """Base class for join and submission rule violations."""

    pass


class AlreadyJoinedError(LeagueRuleError):
    """Raised when a user joins a league twice."""

    def __init__(self, league_id: int, user_id: int) -> None:
        super().__init__(
            message=f"User {user_id} already joined league {league_id}",
            details={"league_id": league_id, "user_id": user_id},
        )


class LeagueFullError(LeagueRuleError):
    """Raised when the league roster has reached max_participants."""

    def __init__(self, league_id: int, capacity: int) -> None:
        super().__init__(
            message=f"League {league_id} is full ({capacity} participants)",
            details={"league_id": league_id, "capacity": capacity},
        )


class LeagueNotJoinableError(LeagueRuleError):
    """Raised when joining a league that is neither upcoming nor active."""

    def __init__(self, league_id: int, status: str) -> None:
        super().__init__(
            message=f"Cannot join league {league_id} while it is {status}",
            details={"league_id": league_id, "status": status},
        )


class SubmissionLimitExceededError(LeagueRuleError):
    """Raised when a participant has used all of their submissions."""

    def __init__(self, league_id: int, user_id: int, limit: int) -> None:
        super().__init__(
            message=f"Maximum submissions reached ({limit})",
            details={"league_id": league_id, "user_id": user_id, "limit": limit},
        )


class LeagueNotActiveError(LeagueRuleError):
    """Raised when submitting a score to a league that is not active."""

    def __init__(self, league_id: int, status: str) -> None:
        super().__init__(
            message=f"League {league_id} is not active (status: {status})",
            details={"league_id": league_id, "status": status},
        )


class LeagueClosedError(LeagueRuleError):
    """Raised when cancelling a league that is already cancelled or completed."""

    def __init__(self, league_id: int, status: str) -> None:
        super().__init__(
            message=f"League {league_id} is already {status}",
            details={"league_id": league_id, "status": status},
        )


# =============================================================================
# Snapshot Errors
# =============================================================================


class SnapshotError(SkillBoardError):
    """Base class for snapshot job errors."""

    pass


class ScopeAggregationError(SnapshotError):
    """Raised when building the snapshot for a single scope fails.

    The snapshot job catches this per scope and keeps going.
    """

    def __init__(self, scope: str, reason: str) -> None:
        super().__init__(
            message=f"Aggregation failed for scope '{scope}': {reason}",
            details={"scope": scope, "reason": reason},
        )


class NoSnapshotAvailableError(SnapshotError):
    """Raised when no snapshot exists for a scope and timeframe."""

    def __init__(self, scope: str, timeframe: str) -> None:
        super().__init__(
            message=f"No snapshot available for scope '{scope}' ({timeframe})",
            details={"scope": scope, "timeframe": timeframe},
        )


class SnapshotJobBusyError(SnapshotError):
    """Raised when a manual snapshot run is requested during another run."""

    def __init__(self) -> None:
        super().__init__(message="Snapshot job is already running")
