"""Job execution tracking for scheduled maintenance jobs."""

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any


logger = logging.getLogger(__name__)

CONSECUTIVE_FAILURE_THRESHOLD = 3


class JobTracker:
    """Track job execution history and health status in process memory."""

    def __init__(self) -> None:
        self._jobs: dict[str, dict[str, Any]] = {}
        self._dead_letter_queue: deque[tuple[str, str, str]] = deque(maxlen=100)

    def _job(self, job_name: str) -> dict[str, Any]:
        return self._jobs.setdefault(job_name, {})

    async def record_job_start(self, job_name: str) -> None:
        self._job(job_name)["current_run"] = datetime.now(UTC).isoformat()

    async def record_job_success(self, job_name: str) -> None:
        job = self._job(job_name)
        job["last_success"] = datetime.now(UTC).isoformat()
        job["consecutive_failures"] = 0
        job["success_count"] = job.get("success_count", 0) + 1
        job.pop("current_run", None)

    async def record_job_failure(self, job_name: str, error: str) -> int:
        """Record a failed run.

        Returns:
            Number of consecutive failures including this one
        """
        job = self._job(job_name)
        job["last_failure"] = datetime.now(UTC).isoformat()
        job["last_error"] = error[:500]
        job["consecutive_failures"] = job.get("consecutive_failures", 0) + 1
        job["failure_count"] = job.get("failure_count", 0) + 1
        job.pop("current_run", None)
        return job["consecutive_failures"]

    async def get_job_status(self, job_name: str) -> dict[str, Any]:
        job = self._jobs.get(job_name, {})
        return {
            "job_name": job_name,
            "last_success": job.get("last_success"),
            "last_failure": job.get("last_failure"),
            "last_error": job.get("last_error"),
            "consecutive_failures": job.get("consecutive_failures", 0),
            "success_count": job.get("success_count", 0),
            "failure_count": job.get("failure_count", 0),
            "currently_running": "current_run" in job,
            "current_run_started": job.get("current_run"),
        }

    async def add_to_dead_letter_queue(self, job_name: str, error: str, context: str) -> None:
        self._dead_letter_queue.append((job_name, error, context))
        logger.error(
            "Job added to dead letter queue",
            extra={"job_name": job_name, "error": error, "context": context},
        )

    def get_dead_letter_queue(self) -> list[dict[str, str]]:
        return [
            {"job_name": job_name, "error": error, "context": context}
            for job_name, error, context in self._dead_letter_queue
        ]

    def reset(self) -> None:
        self._jobs.clear()
        self._dead_letter_queue.clear()


# Global job tracker instance
job_tracker = JobTracker()


async def retry_job_with_backoff(
    job_func: Callable[[], Awaitable[Any]],
    job_name: str,
    max_retries: int = 3,
    base_delay: float = 2.0,
) -> bool:
    """Run a maintenance job, retrying with exponential backoff.

    Failures never escape: they are recorded on the tracker, and a job that
    fails CONSECUTIVE_FAILURE_THRESHOLD runs in a row lands in the dead letter
    queue reported by /health/scheduler.

    Returns:
        True if one of the attempts succeeded
    """
    await job_tracker.record_job_start(job_name)

    last_error = "Unknown error"
    for attempt in range(1, max_retries + 1):
        try:
            await job_func()
        except Exception as e:
            last_error = str(e) or type(e).__name__
            logger.warning(
                "Maintenance job attempt failed",
                extra={"job_name": job_name, "attempt": attempt, "max_retries": max_retries, "error": last_error},
            )
            if attempt < max_retries:
                await asyncio.sleep(base_delay ** (attempt - 1))
            continue

        await job_tracker.record_job_success(job_name)
        logger.info("Maintenance job succeeded", extra={"job_name": job_name, "attempt": attempt})
        return True

    consecutive_failures = await job_tracker.record_job_failure(
        job_name, f"Failed after {max_retries} attempts: {last_error}"
    )
    logger.error(
        "Maintenance job gave up",
        extra={"job_name": job_name, "error": last_error, "consecutive_failures": consecutive_failures},
    )
    if consecutive_failures >= CONSECUTIVE_FAILURE_THRESHOLD:
        await job_tracker.add_to_dead_letter_queue(
            job_name=job_name,
            error=last_error,
            context=f"Failed {consecutive_failures} consecutive times",
        )
    return False
