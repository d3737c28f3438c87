"""
Worker process entry point.
Runs the job worker pool and the scheduled jobs, and exposes health endpoints.
"""
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
import os
import time
from contextlib import asynccontextmanager
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sources_jobs import __version__
from sources_jobs.utils import setup_logging, get_logger
from sources_jobs import database
from sources_jobs.config import QUEUE_SETTINGS
from sources_jobs.database import Base, engine
from sources_jobs.health import RedisHealthChecker
from sources_jobs.jobs.base import JobContext
from sources_jobs.models.schemas import DetailedHealth
from sources_jobs.jobs.runner import JobRunner
from sources_jobs.jobs.scheduler import Scheduler
from sources_jobs.jobs.worker import JobWorker, create_dispatcher
from sources_jobs.services.events import RedisStreamEventSender
from sources_jobs.services.provisioning import ProvisioningClient

# Setup logging before creating the app
setup_logging(
    log_level=os.getenv("LOG_LEVEL", "INFO"),
    log_file=os.getenv("LOG_FILE", "logs/sources_jobs.log"),
    enable_console=True
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Builds the dispatcher once and starts the worker pool, scheduler and health checker.
    """
    logger.info("Worker startup initiated")
    worker = None
    scheduler = None
    health_checker = None
    try:
        Base.metadata.create_all(bind=engine)

        dispatcher = create_dispatcher()
        context = JobContext(
            dispatcher=dispatcher,
            session_factory=database.get_session_factory(),
            event_sender=RedisStreamEventSender(),
            provisioning_client=ProvisioningClient(),
        )
        runner = JobRunner(context)
        worker = JobWorker(dispatcher.local_queue, runner, durable_queue=dispatcher.durable_queue)
        worker.start()
        scheduler = Scheduler(runner)
        scheduler.start()

        if QUEUE_SETTINGS.get("use_redis", False):
            # reports 500 until Redis answers a ping
            health_checker = RedisHealthChecker()
            health_checker.start()

        # expose for the health endpoints and for in-process producers
        app.state.dispatcher = dispatcher  # type: ignore[attr-defined]
        app.state.runner = runner  # type: ignore[attr-defined]
        app.state.health_checker = health_checker  # type: ignore[attr-defined]
        logger.info("Worker startup completed", queue_mode=dispatcher.mode)
        yield
    except Exception as e:  # pragma: no cover
        logger.error("Worker startup failed", error=str(e), exc_info=True)
        raise
    finally:
        logger.info("Worker shutdown initiated")
        if scheduler:
            scheduler.stop()
        if worker:
            worker.stop()
        if health_checker:
            health_checker.stop()
        logger.info("Worker shutdown completed")


app = FastAPI(
    title="Sources API Jobs",
    description="Background job worker for the sources API: teardown of Superkey resources and create-event reconciliation.",
    version=__version__,
    lifespan=lifespan,
)


@app.get("/health", tags=["health"], summary="Basic health check", response_class=PlainTextResponse)
async def health_check(request: Request):
    """Liveness probe. Fails once the last successful Redis ping went stale."""
    checker = getattr(request.app.state, "health_checker", None)
    if checker is not None and not checker.is_healthy():
        logger.warning("Health check failed, redis ping is stale", last_success=checker.last_success)
        return PlainTextResponse("Redis ping is stale", status_code=500)
    return PlainTextResponse("OK")


@app.get("/health/detailed", tags=["health"], summary="Detailed health check", response_model=DetailedHealth)
async def detailed_health_check(request: Request):
    """Queue snapshot, recent job failures and database reachability."""
    health_status = {
        "status": "healthy",
        "service": "sources-jobs",
        "version": __version__,
        "timestamp": time.time(),
        "checks": {}
    }

    session = None
    try:
        session = database.get_session_factory()()
        session.execute(text("SELECT 1"))
        health_status["checks"]["database"] = "healthy"
    except SQLAlchemyError as e:
        health_status["checks"]["database"] = f"unhealthy: {str(e)}"
        health_status["status"] = "degraded"
    finally:
        if session is not None:
            session.close()

    checker = getattr(request.app.state, "health_checker", None)
    if checker is not None:
        healthy = checker.is_healthy()
        health_status["checks"]["redis"] = "healthy" if healthy else "stale"
        if not healthy:
            health_status["status"] = "degraded"

    dispatcher = getattr(request.app.state, "dispatcher", None)
    if dispatcher is not None:
        health_status["checks"]["queue"] = dispatcher.snapshot()

    runner = getattr(request.app.state, "runner", None)
    if runner is not None:
        health_status["recent_failures"] = runner.recent_failures()

    return DetailedHealth(**health_status)


if __name__ == "__main__":
    import uvicorn

    logger.info("Starting worker server")

    uvicorn.run(
        "sources_jobs.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        log_level="info",
        access_log=True
    )
