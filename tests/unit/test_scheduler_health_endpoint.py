"""Tests for the health check endpoints."""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from homequest.main import create_app


DEAD_LETTER = {"job_name": "feed_prune", "error": "disk full", "context": "Failed 3 consecutive times"}


def _job_status(consecutive_failures: int = 0) -> dict:
    return {
        "job_name": "feed_prune",
        "last_success": "2026-01-01T03:00:00Z",
        "last_failure": "2026-01-02T03:00:00Z" if consecutive_failures else None,
        "last_error": "database is locked" if consecutive_failures else None,
        "consecutive_failures": consecutive_failures,
        "success_count": 10,
        "failure_count": consecutive_failures,
        "currently_running": False,
        "current_run_started": None,
    }


@pytest.fixture
def client() -> TestClient:
    """Client without the lifespan; the health routes need no store."""
    return TestClient(create_app(enable_scheduler=False))


@pytest.mark.unit
def test_health_endpoint_returns_healthy(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


@pytest.mark.unit
@pytest.mark.parametrize(
    ("failures", "dead_letters", "expected_status", "expected_code"),
    [
        (0, [], "healthy", 200),
        (1, [], "degraded", 503),
        (3, [DEAD_LETTER], "critical", 503),
    ],
)
def test_scheduler_health(
    client: TestClient, failures: int, dead_letters: list, expected_status: str, expected_code: int
) -> None:
    with patch("homequest.main.job_tracker") as mock_tracker:
        mock_tracker.get_job_status = AsyncMock(return_value=_job_status(failures))
        mock_tracker.get_dead_letter_queue = lambda: dead_letters

        response = client.get("/health/scheduler")

    assert response.status_code == expected_code
    data = response.json()
    assert data["status"] == expected_status
    assert set(data["jobs"]) == {"feed_prune"}
    assert data["dead_letter_queue_size"] == len(dead_letters)
