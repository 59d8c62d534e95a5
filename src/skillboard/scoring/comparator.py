# src/skillboard/scoring/comparator.py

"""Pairwise score comparison under a league's scoring method."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from skillboard.schemas.common import ScoringMethod


class ScoreLike(Protocol):
    accuracy: float
    time_seconds: float
    points: float


@dataclass(frozen=True)
class Score:
    """The comparable part of a submission."""

    accuracy: float = 0.0
    time_seconds: float = 0.0
    points: float = 0.0


def resolve_method(method: ScoringMethod | str | None) -> ScoringMethod:
    """Map a stored method name to the enum; unknown names score by points."""
    if isinstance(method, ScoringMethod):
        return method
    try:
        return ScoringMethod(method)
    except ValueError:
        return ScoringMethod.POINTS_ONLY


def is_better(
    candidate: ScoreLike,
    current_best: ScoreLike,
    method: ScoringMethod | str | None,
) -> bool:
    """True if ``candidate`` strictly beats ``current_best``.

    A score that ties on every compared field is not an improvement, so
    ``is_better(a, b, m)`` and ``is_better(b, a, m)`` are never both true.
    """
    method = resolve_method(method)

    if method is ScoringMethod.ACCURACY_THEN_TIME:
        if candidate.accuracy != current_best.accuracy:
            return candidate.accuracy > current_best.accuracy
        return candidate.time_seconds < current_best.time_seconds

    if method is ScoringMethod.TIME_THEN_ACCURACY:
        if candidate.time_seconds != current_best.time_seconds:
            return candidate.time_seconds < current_best.time_seconds
        return candidate.accuracy > current_best.accuracy

    return candidate.points > current_best.points
