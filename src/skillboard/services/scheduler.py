# src/skillboard/services/scheduler.py

"""Daily wall-clock trigger for the snapshot job."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from skillboard.db.models import utcnow
from skillboard.services.snapshot_service import SnapshotAggregator

logger = logging.getLogger(__name__)


def next_run_after(now: datetime, hour: int, minute: int = 0) -> datetime:
    """Next UTC datetime at hour:minute strictly after ``now``."""
    now = now.astimezone(timezone.utc)
    candidate = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


class SnapshotScheduler:
    """Sleeps until the configured time each day, then runs the aggregator.

    The aggregator's own lock decides whether a run happens; a trigger that
    lands during a manual run is skipped by it.
    """

    def __init__(self, aggregator: SnapshotAggregator, hour: int, minute: int = 0):
        self._aggregator = aggregator
        self._hour = hour
        self._minute = minute
        self._task: Optional[asyncio.Task] = None
        self.next_run_at: Optional[datetime] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ------------------------------------------------------------------
    # LIFECYCLE
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self.is_running:
            return
        self._aggregator.scheduler = self
        self._task = asyncio.create_task(self._loop())
        logger.info(
            "Daily snapshot job scheduled at %02d:%02d UTC", self._hour, self._minute
        )

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self.next_run_at = None
        logger.info("Daily snapshot job stopped")

    # ------------------------------------------------------------------
    # INTERNAL
    # ------------------------------------------------------------------

    async def _loop(self) -> None:
        while True:
            now = utcnow()
            self.next_run_at = next_run_after(now, self._hour, self._minute)
            await asyncio.sleep((self.next_run_at - now).total_seconds())
            await self._fire()

    async def _fire(self) -> None:
        try:
            run = await self._aggregator.run(trigger="scheduled")
        except Exception:
            logger.exception("Scheduled snapshot run crashed")
            return
        if run.failed_scopes:
            logger.warning(
                "Scheduled snapshot run finished with failed scopes",
                extra={"failed_scopes": run.failed_scopes},
            )
