# src/skillboard/services/leaderboard_service.py

"""Read side of scope leaderboards: snapshots first, live aggregation second."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Callable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from skillboard import config
from skillboard.db import models
from skillboard.exceptions import InvalidScopeError, NoSnapshotAvailableError
from skillboard.schemas.common import Timeframe
from skillboard.schemas.leaderboard import (
    PerformerRead,
    RankHistory,
    RankHistoryPoint,
    ScopeLeaderboard,
    ScopeStats,
    SnapshotTrendPoint,
    Spotlight,
    SpotlightBadge,
    SpotlightEntry,
)
from skillboard.schemas.pagination import PaginatedResponse
from skillboard.services import snapshot_service

logger = logging.getLogger(__name__)

SPOTLIGHT_BADGES: dict[str, SpotlightBadge] = {
    "highest_points": SpotlightBadge(name="Points Leader", icon="👑", color="gold"),
    "best_accuracy": SpotlightBadge(name="Accuracy Master", icon="🎯", color="blue"),
    "most_active": SpotlightBadge(name="Most Active", icon="🔥", color="red"),
    "fastest_solver": SpotlightBadge(name="Speed Demon", icon="⚡", color="yellow"),
    "rising_star": SpotlightBadge(name="Rising Star", icon="⭐", color="purple"),
}
DEFAULT_BADGE = SpotlightBadge(name="Featured", icon="🏆", color="green")

# Rising stars: inside the top 10 with fewer than this many submissions
RISING_STAR_MAX_SUBMISSIONS = 20

Picker = Callable[[list[dict]], "dict | None"]


def _first(records: list[dict], key: Callable[[dict], Any]) -> dict | None:
    return min(records, key=key) if records else None


SPOTLIGHT_CRITERIA: list[tuple[str, Picker]] = [
    ("highest_points", lambda rs: rs[0] if rs else None),
    ("best_accuracy", lambda rs: _first(rs, lambda r: -r["accuracy"])),
    ("most_active", lambda rs: _first(rs, lambda r: -r["total_submissions"])),
    ("fastest_solver", lambda rs: _first(rs, lambda r: r["average_time"])),
    (
        "rising_star",
        lambda rs: next(
            (
                r
                for r in rs
                if r["rank"] <= 10
                and r["total_submissions"] < RISING_STAR_MAX_SUBMISSIONS
            ),
            None,
        ),
    ),
]


def validate_scope(scope: str) -> str:
    scope = scope.strip().lower()
    allowed = config.all_scopes()
    if scope not in allowed:
        raise InvalidScopeError(scope, allowed)
    return scope


async def _snapshots_since(
    db: AsyncSession, scope: str, days: int
) -> list[models.LeaderboardSnapshot]:
    since = models.utcnow().date() - timedelta(days=days)
    Snapshot = models.LeaderboardSnapshot
    result = await db.execute(
        select(Snapshot)
        .where(Snapshot.scope == scope, Snapshot.snapshot_date >= since)
        .order_by(Snapshot.snapshot_date.desc())
    )
    return list(result.scalars().all())


async def find_snapshot(
    db: AsyncSession, scope: str, timeframe: Timeframe
) -> tuple[models.LeaderboardSnapshot, list[models.LeaderboardSnapshot]]:
    """Latest snapshot for the timeframe plus the snapshots of its window.

    Raises:
        NoSnapshotAvailableError: If nothing was stored for the window
    """
    if timeframe.days is None:
        latest = await models.LeaderboardSnapshot.latest(db, scope)
        window = [latest] if latest is not None else []
    else:
        window = await _snapshots_since(db, scope, timeframe.days)
        latest = window[0] if window else None

    if latest is None:
        raise NoSnapshotAvailableError(scope, timeframe.value)
    return latest, window


async def get_scope_leaderboard(
    db: AsyncSession, scope: str, timeframe: Timeframe, skip: int, limit: int
) -> ScopeLeaderboard:
    """Scope standings from the stored snapshot, or aggregated live."""
    scope = validate_scope(scope)

    try:
        snapshot, window = await find_snapshot(db, scope, timeframe)
    except NoSnapshotAvailableError as e:
        logger.info("Falling back to live aggregation: %s", e.message, extra=e.details)
        aggregate = await snapshot_service.aggregate_scope(db, scope)
        performers = [PerformerRead(**r) for r in aggregate.top_performers]
        return ScopeLeaderboard(
            scope=scope,
            timeframe=timeframe,
            source="live",
            total_users=aggregate.total_users,
            average_accuracy=aggregate.average_accuracy,
            average_points=aggregate.average_points,
            total_submissions=aggregate.total_submissions,
            performers=PaginatedResponse[PerformerRead].from_slice(
                performers, skip, limit
            ),
            last_updated=models.utcnow(),
        )

    performers = [PerformerRead(**r) for r in snapshot.top_performers]
    trend = (
        [SnapshotTrendPoint.model_validate(s) for s in window]
        if timeframe.days is not None
        else []
    )
    return ScopeLeaderboard(
        scope=scope,
        timeframe=timeframe,
        source="snapshot",
        total_users=snapshot.total_users,
        average_accuracy=snapshot.average_accuracy,
        average_points=snapshot.average_points,
        total_submissions=snapshot.total_submissions,
        performers=PaginatedResponse[PerformerRead].from_slice(performers, skip, limit),
        last_updated=snapshot.snapshot_date,
        trend=trend,
    )


def pick_spotlight(records: list[dict], count: int) -> list[SpotlightEntry]:
    """One featured performer per criterion, never the same user twice."""
    featured: list[SpotlightEntry] = []
    used: set[int] = set()
    for spotlight_type, pick in SPOTLIGHT_CRITERIA[:count]:
        record = pick(records)
        if record is None or record["user_id"] in used:
            continue
        used.add(record["user_id"])
        featured.append(
            SpotlightEntry(
                **record,
                spotlight_type=spotlight_type,
                badge=SPOTLIGHT_BADGES.get(spotlight_type, DEFAULT_BADGE),
            )
        )
    return featured


async def get_spotlight(db: AsyncSession, count: int) -> Spotlight:
    snapshot = await models.LeaderboardSnapshot.latest(db, config.GLOBAL_SCOPE)
    if snapshot is not None:
        records = snapshot.top_performers
        last_updated = snapshot.snapshot_date
    else:
        aggregate = await snapshot_service.aggregate_scope(db, config.GLOBAL_SCOPE)
        records = aggregate.top_performers
        last_updated = models.utcnow()

    featured = pick_spotlight(records, count)
    return Spotlight(
        spotlight_users=featured,
        total_featured=len(featured),
        last_updated=last_updated,
    )


async def get_rank_history(
    db: AsyncSession, user_id: int, scope: str, days: int
) -> RankHistory:
    """Where the user stood in each stored snapshot of the window."""
    scope = validate_scope(scope)
    history = []
    for snapshot in await _snapshots_since(db, scope, days):
        record = next(
            (r for r in snapshot.top_performers if r["user_id"] == user_id), None
        )
        if record is None:
            continue
        history.append(
            RankHistoryPoint(
                snapshot_date=snapshot.snapshot_date,
                rank=record["rank"],
                points=record["total_points"],
                accuracy=record["accuracy"],
            )
        )
    return RankHistory(
        user_id=user_id, scope=scope, history=history, total_snapshots=len(history)
    )


async def get_latest_stats(db: AsyncSession) -> dict[str, ScopeStats | None]:
    stats: dict[str, ScopeStats | None] = {}
    for scope in config.all_scopes():
        snapshot = await models.LeaderboardSnapshot.latest(db, scope)
        stats[scope] = (
            ScopeStats(
                total_users=snapshot.total_users,
                average_accuracy=snapshot.average_accuracy,
                average_points=snapshot.average_points,
                total_submissions=snapshot.total_submissions,
                last_updated=snapshot.snapshot_date,
            )
            if snapshot is not None
            else None
        )
    return stats
