"""Tests for maintenance job tracking and the feed prune job."""

from collections.abc import Generator
from unittest.mock import AsyncMock, patch

import pytest

from homequest.core import scheduler
from homequest.core.scheduler_tracker import (
    CONSECUTIVE_FAILURE_THRESHOLD,
    JobTracker,
    job_tracker,
    retry_job_with_backoff,
)


@pytest.fixture(autouse=True)
def fresh_tracker() -> Generator[None, None, None]:
    """Reset the process-wide tracker and skip real backoff delays."""
    job_tracker.reset()
    with patch("homequest.core.scheduler_tracker.asyncio.sleep", new_callable=AsyncMock):
        yield
    job_tracker.reset()


@pytest.mark.unit
async def test_success_resets_consecutive_failures() -> None:
    tracker = JobTracker()

    await tracker.record_job_start("feed_prune")
    assert (await tracker.get_job_status("feed_prune"))["currently_running"] is True
    await tracker.record_job_failure("feed_prune", "first")
    await tracker.record_job_failure("feed_prune", "second")
    await tracker.record_job_success("feed_prune")

    status = await tracker.get_job_status("feed_prune")
    assert status["consecutive_failures"] == 0
    assert status["failure_count"] == 2
    assert status["success_count"] == 1
    assert status["last_error"] == "second"
    assert status["currently_running"] is False


@pytest.mark.unit
async def test_unknown_job_has_empty_status() -> None:
    status = await JobTracker().get_job_status("never_ran")

    assert status["success_count"] == 0
    assert status["last_success"] is None


@pytest.mark.unit
async def test_dead_letter_queue_keeps_latest_hundred() -> None:
    tracker = JobTracker()
    for index in range(120):
        await tracker.add_to_dead_letter_queue(f"job_{index}", "error", "context")

    queue = tracker.get_dead_letter_queue()
    assert len(queue) == 100
    assert queue[0]["job_name"] == "job_20"


@pytest.mark.unit
async def test_retry_succeeds_after_transient_failure() -> None:
    job = AsyncMock(side_effect=[RuntimeError("locked"), None])

    assert await retry_job_with_backoff(job, "feed_prune", max_retries=3) is True

    assert job.call_count == 2
    status = await job_tracker.get_job_status("feed_prune")
    assert status["success_count"] == 1
    assert status["failure_count"] == 0


@pytest.mark.unit
async def test_repeated_failures_reach_dead_letter_queue() -> None:
    job = AsyncMock(side_effect=RuntimeError("disk full"))

    for _ in range(CONSECUTIVE_FAILURE_THRESHOLD):
        assert await retry_job_with_backoff(job, "feed_prune", max_retries=2) is False

    assert job.call_count == CONSECUTIVE_FAILURE_THRESHOLD * 2
    status = await job_tracker.get_job_status("feed_prune")
    assert status["consecutive_failures"] == CONSECUTIVE_FAILURE_THRESHOLD
    queue = job_tracker.get_dead_letter_queue()
    assert len(queue) == 1
    assert queue[0]["error"] == "disk full"


@pytest.mark.unit
async def test_feed_prune_job_records_success(store) -> None:
    await store.create("households/h1", {"householdId": "h1", "members": []})

    await scheduler.run_feed_prune_job(store)

    status = await job_tracker.get_job_status(scheduler.FEED_PRUNE_JOB)
    assert status["success_count"] == 1


@pytest.mark.unit
async def test_start_scheduler_registers_daily_prune(store, monkeypatch) -> None:
    monkeypatch.setattr(scheduler, "scheduler", scheduler.AsyncIOScheduler(timezone="UTC"))

    scheduler.start_scheduler(store)
    try:
        job = scheduler.scheduler.get_job(scheduler.FEED_PRUNE_JOB)
        assert job is not None
        assert job.args == (store,)
        assert str(job.trigger.fields[5]) == str(scheduler.settings.feed_prune_hour)
    finally:
        scheduler.scheduler.shutdown(wait=False)
