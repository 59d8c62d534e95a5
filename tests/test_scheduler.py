# tests/test_scheduler.py

"""Tests for the daily snapshot trigger."""

import asyncio
from datetime import date, datetime, timedelta, timezone

import pytest
from skillboard.services.scheduler import SnapshotScheduler, next_run_after
from skillboard.services.snapshot_service import SnapshotRun


class FakeAggregator:
    """Records runs instead of aggregating."""

    def __init__(self, error: Exception | None = None):
        self.scheduler = None
        self.triggers: list[str] = []
        self._error = error

    async def run(self, trigger: str = "manual", now=None) -> SnapshotRun:
        self.triggers.append(trigger)
        if self._error is not None:
            raise self._error
        return SnapshotRun(
            trigger=trigger,
            skipped=False,
            snapshot_date=date(2026, 5, 1),
            started_at=datetime(2026, 5, 1, 2, tzinfo=timezone.utc),
        )


@pytest.mark.parametrize(
    "now, expected",
    [
        # Before today's slot
        (datetime(2026, 5, 1, 1, 30), datetime(2026, 5, 1, 2, 0)),
        # Exactly at the slot: next day
        (datetime(2026, 5, 1, 2, 0), datetime(2026, 5, 2, 2, 0)),
        # After the slot, across a month boundary
        (datetime(2026, 5, 31, 23, 0), datetime(2026, 6, 1, 2, 0)),
    ],
)
def test_next_run_after(now, expected):
    now = now.replace(tzinfo=timezone.utc)

    assert next_run_after(now, hour=2) == expected.replace(tzinfo=timezone.utc)


def test_next_run_after_converts_to_utc():
    plus_two = timezone(timedelta(hours=2))
    now = datetime(2026, 5, 1, 3, 30, tzinfo=plus_two)  # 01:30 UTC

    assert next_run_after(now, hour=2, minute=15) == datetime(
        2026, 5, 1, 2, 15, tzinfo=timezone.utc
    )


@pytest.mark.asyncio
async def test_start_and_stop():
    aggregator = FakeAggregator()
    scheduler = SnapshotScheduler(aggregator, hour=2)

    await scheduler.start()
    await asyncio.sleep(0)

    assert scheduler.is_running
    assert aggregator.scheduler is scheduler
    assert scheduler.next_run_at is not None

    await scheduler.stop()

    assert not scheduler.is_running
    assert scheduler.next_run_at is None
    assert aggregator.triggers == []


@pytest.mark.asyncio
async def test_fire_runs_a_scheduled_job():
    aggregator = FakeAggregator()
    scheduler = SnapshotScheduler(aggregator, hour=2)

    await scheduler._fire()

    assert aggregator.triggers == ["scheduled"]


@pytest.mark.asyncio
async def test_fire_survives_a_crashing_run():
    """The loop must keep going after a failed run."""
    aggregator = FakeAggregator(error=RuntimeError("database is gone"))
    scheduler = SnapshotScheduler(aggregator, hour=2)

    await scheduler._fire()

    assert aggregator.triggers == ["scheduled"]
