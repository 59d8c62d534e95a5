# src/skillboard/scoring/ranker.py

"""Live league ranking.

Turns participants' best submissions into a dense, gap-free ranking. The
sort key is picked once per call from the scoring method and mirrors
``comparator.is_better`` as a total order.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, Iterable, Protocol, TypeVar

from skillboard.schemas.common import ScoringMethod

from skillboard.scoring.comparator import resolve_method


class RankableParticipant(Protocol):
    best_accuracy: float
    best_time_seconds: float
    best_points: float


P = TypeVar("P", bound=RankableParticipant)

SortKey = Callable[[RankableParticipant], tuple]


@dataclass
class RankedEntry(Generic[P]):
    rank: int
    participant: P


def _accuracy_then_time(p: RankableParticipant) -> tuple:
    return (-p.best_accuracy, p.best_time_seconds)


def _time_then_accuracy(p: RankableParticipant) -> tuple:
    return (p.best_time_seconds, -p.best_accuracy)


def _points_only(p: RankableParticipant) -> tuple:
    return (-p.best_points,)


_SORT_KEYS: dict[ScoringMethod, SortKey] = {
    ScoringMethod.ACCURACY_THEN_TIME: _accuracy_then_time,
    ScoringMethod.TIME_THEN_ACCURACY: _time_then_accuracy,
    ScoringMethod.POINTS_ONLY: _points_only,
}


def sort_key_for(method: ScoringMethod | str | None) -> SortKey:
    return _SORT_KEYS[resolve_method(method)]


def rank(
    participants: Iterable[P], method: ScoringMethod | str | None
) -> list[RankedEntry[P]]:
    """Rank participants that have a qualifying (non-zero points) score.

    ``participants`` must be in join order. Python's sort is stable, so
    exact ties keep that order and still get distinct ranks.
    """
    key = sort_key_for(method)
    qualifying = [p for p in participants if p.best_points > 0]
    qualifying.sort(key=key)
    return [
        RankedEntry(rank=position, participant=p)
        for position, p in enumerate(qualifying, start=1)
    ]
