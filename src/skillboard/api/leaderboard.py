# src/skillboard/api/leaderboard.py

"""API endpoints for scope leaderboards and the daily snapshot job."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from skillboard import config
from skillboard.db.session import get_db
from skillboard.exceptions import SnapshotJobBusyError
from skillboard.schemas.common import Timeframe
from skillboard.schemas.leaderboard import (
    JobStatusRead,
    LeaderboardStats,
    RankHistory,
    ScopeLeaderboard,
    ScopeSnapshotStats,
    SnapshotRunRead,
    SnapshotStatus,
    Spotlight,
)
from skillboard.services import leaderboard_service, snapshot_service
from skillboard.services.snapshot_service import (
    SnapshotAggregator,
    get_snapshot_aggregator,
)

router = APIRouter(prefix="/leaderboard", tags=["Leaderboard"])


@router.get("/", response_model=ScopeLeaderboard)
async def get_scope_leaderboard(
    scope: str = Query(config.GLOBAL_SCOPE, description="global or a subject"),
    timeframe: Timeframe = Query(Timeframe.CURRENT, description="Snapshot window"),
    skip: int = Query(0, ge=0, description="Records to skip"),
    limit: int = Query(50, ge=1, le=100, description="Max records to return"),
    db: AsyncSession = Depends(get_db),
) -> ScopeLeaderboard:
    """
    Top performers of a scope.

    - **current**: The latest stored snapshot
    - **weekly** / **monthly**: The latest snapshot of the last 7 / 30 days,
      with the daily trend of aggregate stats over that window

    When no snapshot exists yet the standings are aggregated live and
    ``source`` is ``live``.

    Raises:
        422 Unprocessable Entity: Unknown scope.
    """
    return await leaderboard_service.get_scope_leaderboard(
        db, scope, timeframe, skip, limit
    )


@router.get("/spotlight", response_model=Spotlight)
async def get_spotlight(
    count: int = Query(5, ge=1, le=10, description="Max featured performers"),
    db: AsyncSession = Depends(get_db),
) -> Spotlight:
    """Featured performers of the latest global snapshot, one per criterion."""
    return await leaderboard_service.get_spotlight(db, count)


@router.get("/users/{user_id}/history", response_model=RankHistory)
async def get_rank_history(
    user_id: int,
    scope: str = Query(config.GLOBAL_SCOPE, description="global or a subject"),
    days: int = Query(30, ge=1, le=90, description="Days of history"),
    db: AsyncSession = Depends(get_db),
) -> RankHistory:
    """Rank, points and accuracy of a user in each stored snapshot."""
    return await leaderboard_service.get_rank_history(db, user_id, scope, days)


@router.get("/stats", response_model=LeaderboardStats)
async def get_leaderboard_stats(
    db: AsyncSession = Depends(get_db),
) -> LeaderboardStats:
    return LeaderboardStats(scopes=await leaderboard_service.get_latest_stats(db))


# ===============================================
# == Snapshot job administration
# ===============================================


@router.get("/snapshots/status", response_model=SnapshotStatus)
async def get_snapshot_status(
    db: AsyncSession = Depends(get_db),
    aggregator: SnapshotAggregator = Depends(get_snapshot_aggregator),
) -> SnapshotStatus:
    """State of the snapshot job and statistics of the stored snapshots."""
    stats = await snapshot_service.snapshot_stats(db)
    return SnapshotStatus(
        job=JobStatusRead.model_validate(aggregator.job_status(), from_attributes=True),
        snapshots={
            scope: ScopeSnapshotStats(**values) for scope, values in stats.items()
        },
    )


@router.post("/snapshots/run", response_model=SnapshotRunRead)
async def run_snapshot_job(
    aggregator: SnapshotAggregator = Depends(get_snapshot_aggregator),
) -> SnapshotRunRead:
    """
    Run the snapshot job now.

    Scopes that fail are reported in the result with action ``failed``;
    the other scopes are still written.

    Raises:
        409 Conflict: If a run is already in progress.
    """
    run = await aggregator.run(trigger="manual")
    if run.skipped:
        raise SnapshotJobBusyError()
    return SnapshotRunRead.model_validate(run)
