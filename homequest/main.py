"""homequest - household quest economy backend."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from homequest.core.config import settings
from homequest.core.db_client import DocumentStore
from homequest.core.errors import HomeQuestError, status_code_for, to_error_response
from homequest.core.logging import configure_logfire, instrument_fastapi
from homequest.core.scheduler import SCHEDULED_JOB_NAMES, start_scheduler, stop_scheduler
from homequest.core.scheduler_tracker import job_tracker
from homequest.interface.api_router import router as api_router
from homequest.interface.push_sender import PushSender
from homequest.services.economy_service import register_economy_triggers


logger = logging.getLogger(__name__)


async def homequest_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    """Render caller-facing errors as {code, message, suggestion, severity}."""
    if not isinstance(exc, HomeQuestError):
        logger.error("unhandled_request_error", extra={"error": str(exc), "error_type": type(exc).__name__})
    return JSONResponse(
        content=to_error_response(exc).model_dump(mode="json"),
        status_code=status_code_for(exc),
    )


def validate_startup_configuration() -> None:
    """Fail fast when a credential the app cannot run without is missing."""
    settings.require_credential("secret_key", "Auth token signing")
    logger.info("startup_validation", extra={"stage": "credentials", "status": "ok"})


def create_app(
    *,
    db_path: str | None = None,
    sender: PushSender | None = None,
    enable_scheduler: bool = True,
) -> FastAPI:
    """Build the application; the store and jobs live for the duration of the lifespan."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # Configure logging first so startup logs are captured
        configure_logfire()
        validate_startup_configuration()

        store = DocumentStore(db_path=db_path)
        await store.connect()
        register_economy_triggers(store, sender=sender)
        app.state.store = store
        logger.info("Document store ready")

        if enable_scheduler:
            start_scheduler(store)
        yield
        if enable_scheduler:
            stop_scheduler()
        await store.changes.drain()
        await store.close()

    app = FastAPI(
        title="homequest",
        description="Household quest economy backend",
        version="0.1.0",
        lifespan=lifespan,
    )

    instrument_fastapi(app)

    app.add_exception_handler(HomeQuestError, homequest_error_handler)
    app.add_exception_handler(Exception, homequest_error_handler)
    app.include_router(api_router)

    @app.get("/health")
    async def health_check() -> JSONResponse:
        """Health check endpoint."""
        return JSONResponse(content={"status": "healthy"}, status_code=200)

    @app.get("/health/scheduler")
    async def scheduler_health_check() -> JSONResponse:
        """Scheduler health check endpoint with job statuses."""
        job_statuses = {job_name: await job_tracker.get_job_status(job_name) for job_name in SCHEDULED_JOB_NAMES}
        dlq = job_tracker.get_dead_letter_queue()

        has_failures = any(status["consecutive_failures"] > 0 for status in job_statuses.values())
        overall_status = "degraded" if has_failures else "healthy"
        if dlq:
            overall_status = "critical"

        return JSONResponse(
            content={
                "status": overall_status,
                "jobs": job_statuses,
                "dead_letter_queue_size": len(dlq),
                "dead_letter_queue": dlq,
            },
            status_code=200 if overall_status == "healthy" else 503,
        )

    return app


app = create_app()
