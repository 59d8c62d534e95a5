# src/skillboard/services/snapshot_service.py

"""Daily leaderboard snapshots.

The aggregation is a fixed pipeline run once per scope:

1. filter: participants of active leagues in the scope (one SQL query)
2. group: fold each user's rows across leagues into a ``Standing``
3. derive: mean accuracy and mean time over the user's leagues
4. sort: total points desc, mean accuracy desc, mean time asc
5. limit: keep the top N and number them from 1

The global scope also records each performer's rank in every subject.
Only ``SnapshotAggregator`` writes to ``leaderboard_snapshots``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Iterable

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from skillboard import config
from skillboard.db import models
from skillboard.db.session import AsyncSessionLocal
from skillboard.exceptions import ScopeAggregationError
from skillboard.schemas.common import LeagueStatus
from skillboard.services.league_service import status_clause

if TYPE_CHECKING:
    from skillboard.services.scheduler import SnapshotScheduler

logger = logging.getLogger(__name__)


class JobState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


# ===============================================
# == Pipeline data
# ===============================================


@dataclass(frozen=True)
class ParticipantFacts:
    """One roster row of an active league, as read for aggregation."""

    user_id: int
    username: str
    email: str
    best_points: float
    best_accuracy: float
    best_time_seconds: float
    submission_count: int
    joined_at: datetime
    last_submission_at: datetime | None = None


@dataclass
class Standing:
    """A user's totals across every league in a scope."""

    user_id: int
    username: str
    email: str
    total_points: float = 0.0
    total_submissions: int = 0
    accuracy_sum: float = 0.0
    time_sum: float = 0.0
    league_count: int = 0
    last_active: datetime | None = None

    @property
    def average_accuracy(self) -> float:
        return self.accuracy_sum / self.league_count if self.league_count else 0.0

    @property
    def average_time(self) -> float:
        return self.time_sum / self.league_count if self.league_count else 0.0

    def add(self, facts: ParticipantFacts) -> None:
        self.total_points += facts.best_points
        self.total_submissions += facts.submission_count
        self.accuracy_sum += facts.best_accuracy
        self.time_sum += facts.best_time_seconds
        self.league_count += 1

        # Users who never submitted count as active from the day they joined
        active_at = facts.last_submission_at or facts.joined_at
        if self.last_active is None or active_at > self.last_active:
            self.last_active = active_at


@dataclass
class ScopeAggregate:
    scope: str
    top_performers: list[models.PerformerRecord]
    total_users: int
    average_accuracy: float
    average_points: float
    total_submissions: int


@dataclass
class ScopeOutcome:
    scope: str
    action: str
    total_users: int = 0
    error: str | None = None


@dataclass
class SnapshotRun:
    """What one invocation of the job did, scope by scope."""

    trigger: str
    skipped: bool
    snapshot_date: date
    started_at: datetime
    finished_at: datetime | None = None
    duration_ms: float | None = None
    scopes: list[ScopeOutcome] = field(default_factory=list)
    purged: int = 0
    purge_error: str | None = None

    @property
    def failed_scopes(self) -> list[str]:
        return [o.scope for o in self.scopes if o.action == "failed"]


# ===============================================
# == Pipeline steps
# ===============================================


def group_by_user(rows: Iterable[ParticipantFacts]) -> list[Standing]:
    """Fold roster rows into one standing per user, in first-seen order."""
    standings: dict[int, Standing] = {}
    for facts in rows:
        standing = standings.get(facts.user_id)
        if standing is None:
            standing = Standing(
                user_id=facts.user_id, username=facts.username, email=facts.email
            )
            standings[facts.user_id] = standing
        standing.add(facts)
    return list(standings.values())


def _standing_key(standing: Standing) -> tuple:
    return (-standing.total_points, -standing.average_accuracy, standing.average_time)


def order_standings(standings: list[Standing], top_n: int) -> list[Standing]:
    """Scope-wide ordering, independent of any league's scoring method."""
    return sorted(standings, key=_standing_key)[:top_n]


def to_performer_records(
    ranked: list[Standing],
    subject_ranks: dict[str, dict[int, int]] | None = None,
) -> list[models.PerformerRecord]:
    records: list[models.PerformerRecord] = []
    for position, standing in enumerate(ranked, start=1):
        record: models.PerformerRecord = {
            "rank": position,
            "user_id": standing.user_id,
            "username": standing.username,
            "email": standing.email,
            "total_points": round(standing.total_points, 2),
            "accuracy": round(standing.average_accuracy, 2),
            "total_submissions": standing.total_submissions,
            "average_time": round(standing.average_time, 2),
            "last_active": (standing.last_active or models.utcnow()).isoformat(),
        }
        if subject_ranks is not None:
            record["subject_ranks"] = {
                subject: ranks[standing.user_id]
                for subject, ranks in subject_ranks.items()
                if standing.user_id in ranks
            }
        records.append(record)
    return records


def summarize(scope: str, records: list[models.PerformerRecord]) -> ScopeAggregate:
    """Aggregate statistics over the produced top-N list."""
    count = len(records)
    return ScopeAggregate(
        scope=scope,
        top_performers=records,
        total_users=count,
        average_accuracy=(
            round(sum(r["accuracy"] for r in records) / count, 2) if count else 0.0
        ),
        average_points=(
            round(sum(r["total_points"] for r in records) / count, 2) if count else 0.0
        ),
        total_submissions=sum(r["total_submissions"] for r in records),
    )


async def fetch_scope_rows(
    db: AsyncSession, scope: str, now: datetime
) -> list[ParticipantFacts]:
    """Roster rows of every active league in ``scope``, in join order."""
    submission_counts = (
        select(
            models.Submission.participant_id,
            func.count(models.Submission.id).label("submission_count"),
        )
        .group_by(models.Submission.participant_id)
        .subquery()
    )
    query = (
        select(
            models.LeagueParticipant.user_id,
            models.User.username,
            models.User.email,
            models.LeagueParticipant.best_points,
            models.LeagueParticipant.best_accuracy,
            models.LeagueParticipant.best_time_seconds,
            func.coalesce(submission_counts.c.submission_count, 0).label(
                "submission_count"
            ),
            models.LeagueParticipant.joined_at,
            models.LeagueParticipant.last_submission_at,
        )
        .join(models.League, models.League.id == models.LeagueParticipant.league_id)
        .join(models.User, models.User.id == models.LeagueParticipant.user_id)
        .outerjoin(
            submission_counts,
            submission_counts.c.participant_id == models.LeagueParticipant.id,
        )
        .where(status_clause(LeagueStatus.ACTIVE, now))
        .order_by(models.LeagueParticipant.id)
    )
    if scope != config.GLOBAL_SCOPE:
        query = query.where(models.League.subject == scope)

    result = await db.execute(query)
    return [ParticipantFacts(**row._asdict()) for row in result.all()]


async def rank_scope(
    db: AsyncSession,
    scope: str,
    now: datetime,
    top_n: int,
    cache: dict[str, list[Standing]] | None = None,
) -> list[Standing]:
    """Steps 1-5 for one scope, memoized per run through ``cache``."""
    if cache is not None and scope in cache:
        return cache[scope]
    rows = await fetch_scope_rows(db, scope, now)
    ranked = order_standings(group_by_user(rows), top_n)
    if cache is not None:
        cache[scope] = ranked
    return ranked


async def aggregate_scope(
    db: AsyncSession,
    scope: str,
    now: datetime | None = None,
    subjects: list[str] | None = None,
    top_n: int | None = None,
    cache: dict[str, list[Standing]] | None = None,
) -> ScopeAggregate:
    """Build the full snapshot payload for one scope without persisting it."""
    now = now or models.utcnow()
    subjects = config.SNAPSHOT_SUBJECTS if subjects is None else subjects
    top_n = top_n or config.SNAPSHOT_TOP_N
    cache = {} if cache is None else cache

    ranked = await rank_scope(db, scope, now, top_n, cache)

    subject_ranks: dict[str, dict[int, int]] | None = None
    if scope == config.GLOBAL_SCOPE:
        subject_ranks = {}
        for subject in subjects:
            try:
                subject_ranked = await rank_scope(db, subject, now, top_n, cache)
            except Exception:
                logger.error(
                    "Could not rank subject %s for global snapshot",
                    subject,
                    exc_info=True,
                )
                continue
            subject_ranks[subject] = {
                standing.user_id: position
                for position, standing in enumerate(subject_ranked, start=1)
            }

    return summarize(scope, to_performer_records(ranked, subject_ranks))


async def upsert_snapshot(
    db: AsyncSession, snapshot_date: date, aggregate: ScopeAggregate
) -> str:
    """Write the aggregate for (snapshot_date, scope). Returns the action."""
    snapshot = await models.LeaderboardSnapshot.find_for_day(
        db, snapshot_date, aggregate.scope
    )
    action = "updated"
    if snapshot is None:
        snapshot = models.LeaderboardSnapshot(
            snapshot_date=snapshot_date, scope=aggregate.scope
        )
        db.add(snapshot)
        action = "created"

    snapshot.total_users = aggregate.total_users
    snapshot.average_accuracy = aggregate.average_accuracy
    snapshot.average_points = aggregate.average_points
    snapshot.total_submissions = aggregate.total_submissions
    snapshot.top_performers = aggregate.top_performers

    await db.commit()
    return action


async def purge_snapshots(db: AsyncSession, today: date, retention_days: int) -> int:
    """Delete snapshots dated before ``today - retention_days``."""
    cutoff = today - timedelta(days=retention_days)
    result = await db.execute(
        delete(models.LeaderboardSnapshot).where(
            models.LeaderboardSnapshot.snapshot_date < cutoff
        )
    )
    await db.commit()
    return result.rowcount or 0


async def snapshot_stats(db: AsyncSession) -> dict[str, dict]:
    """Per-scope counts, date range and averages of stored snapshots."""
    Snapshot = models.LeaderboardSnapshot
    query = select(
        Snapshot.scope,
        func.count(Snapshot.id),
        func.max(Snapshot.snapshot_date),
        func.min(Snapshot.snapshot_date),
        func.avg(Snapshot.total_users),
        func.avg(Snapshot.average_accuracy),
    ).group_by(Snapshot.scope)
    result = await db.execute(query)

    stats = {}
    for scope, count, latest, oldest, avg_users, avg_accuracy in result.all():
        stats[scope] = {
            "total_snapshots": count,
            "latest_date": latest,
            "oldest_date": oldest,
            "average_users": round(avg_users or 0, 2),
            "average_accuracy": round(avg_accuracy or 0, 2),
        }
    return stats


# ===============================================
# == Job
# ===============================================


class SnapshotAggregator:
    """Runs the snapshot pipeline for every scope, one run at a time.

    A trigger that arrives while a run is in progress gets a ``skipped``
    result back immediately; it is never queued.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        subjects: list[str] | None = None,
        top_n: int | None = None,
        retention_days: int | None = None,
    ) -> None:
        self._session_factory = session_factory
        self.subjects = list(config.SNAPSHOT_SUBJECTS if subjects is None else subjects)
        self.top_n = top_n or config.SNAPSHOT_TOP_N
        self.retention_days = retention_days or config.SNAPSHOT_RETENTION_DAYS

        self._lock = asyncio.Lock()
        self.state = JobState.IDLE
        self.last_run: SnapshotRun | None = None
        self.scheduler: "SnapshotScheduler | None" = None

    @property
    def scopes(self) -> list[str]:
        return [config.GLOBAL_SCOPE, *self.subjects]

    @property
    def is_running(self) -> bool:
        return self.state is JobState.RUNNING

    async def run(
        self, trigger: str = "manual", now: datetime | None = None
    ) -> SnapshotRun:
        now = now or models.utcnow()

        if self._lock.locked():
            logger.warning(
                "Snapshot run skipped, another run is in progress",
                extra={"trigger": trigger},
            )
            return SnapshotRun(
                trigger=trigger,
                skipped=True,
                snapshot_date=now.date(),
                started_at=now,
            )

        async with self._lock:
            self.state = JobState.RUNNING
            try:
                run = await self._execute(trigger, now)
            finally:
                self.state = JobState.IDLE

        self.last_run = run
        return run

    async def _execute(self, trigger: str, now: datetime) -> SnapshotRun:
        started = time.perf_counter()
        today = now.date()
        run = SnapshotRun(
            trigger=trigger, skipped=False, snapshot_date=today, started_at=now
        )
        logger.info(
            "Snapshot run started",
            extra={"trigger": trigger, "snapshot_date": today.isoformat()},
        )

        cache: dict[str, list[Standing]] = {}
        for scope in self.scopes:
            run.scopes.append(await self._process_scope(scope, today, now, cache))

        try:
            async with self._session_factory() as db:
                run.purged = await purge_snapshots(db, today, self.retention_days)
            if run.purged:
                logger.info(
                    "Purged %d snapshots older than %d days",
                    run.purged,
                    self.retention_days,
                )
        except Exception as e:
            logger.error("Snapshot purge failed: %s", e, exc_info=True)
            run.purge_error = str(e)

        run.finished_at = models.utcnow()
        run.duration_ms = round((time.perf_counter() - started) * 1000, 2)
        logger.info(
            "Snapshot run finished: %s",
            ", ".join(f"{o.scope}: {o.action}" for o in run.scopes),
            extra={
                "trigger": trigger,
                "duration_ms": run.duration_ms,
                "failed_scopes": run.failed_scopes,
            },
        )
        return run

    async def _process_scope(
        self,
        scope: str,
        today: date,
        now: datetime,
        cache: dict[str, list[Standing]],
    ) -> ScopeOutcome:
        try:
            async with self._session_factory() as db:
                aggregate = await self._aggregate(db, scope, now, cache)
                action = await upsert_snapshot(db, today, aggregate)
        except Exception as e:
            error = (
                e
                if isinstance(e, ScopeAggregationError)
                else ScopeAggregationError(scope, str(e))
            )
            logger.error(error.message, extra=error.details, exc_info=True)
            return ScopeOutcome(scope=scope, action="failed", error=error.message)

        logger.info(
            "Snapshot %s for scope %s",
            action,
            scope,
            extra={"scope": scope, "total_users": aggregate.total_users},
        )
        return ScopeOutcome(
            scope=scope, action=action, total_users=aggregate.total_users
        )

    async def _aggregate(
        self,
        db: AsyncSession,
        scope: str,
        now: datetime,
        cache: dict[str, list[Standing]],
    ) -> ScopeAggregate:
        return await aggregate_scope(
            db, scope, now=now, subjects=self.subjects, top_n=self.top_n, cache=cache
        )

    def job_status(self) -> dict:
        scheduler = self.scheduler
        return {
            "initialized": scheduler is not None,
            "running": self.is_running,
            "scheduled": scheduler is not None and scheduler.is_running,
            "next_run_at": scheduler.next_run_at if scheduler else None,
            "last_run": self.last_run,
        }


# Process-wide job used by the scheduler and the admin endpoints
snapshot_aggregator = SnapshotAggregator(AsyncSessionLocal)


def get_snapshot_aggregator() -> SnapshotAggregator:
    """FastAPI dependency returning the process-wide aggregator."""
    return snapshot_aggregator
