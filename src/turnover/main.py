"""Turnover main application."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from turnover import __version__
from turnover.api import router
from turnover.api.deps import validate_auth_config
from turnover.config import settings
from turnover.db.base import close_db, init_db
from turnover.middleware.trace import trace_id_middleware
from turnover.monitor.timeline_monitor import TimelineMonitor
from turnover.tasks.checkout import run_checkout_sweep
from turnover.tasks.sweep import PeriodicSweep
from turnover.tasks.timeouts import run_timeout_sweep

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("turnover")


def build_sweeps() -> list[PeriodicSweep]:
    return [
        PeriodicSweep(
            "checkout",
            run_checkout_sweep,
            settings.checkout_sweep_interval_seconds,
        ),
        PeriodicSweep(
            "timeouts",
            run_timeout_sweep,
            settings.timeout_sweep_interval_seconds,
        ),
    ]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting turnover engine...")
    logger.info(f"Environment: {settings.env.value}")

    # Validate authentication configuration (fail fast if insecure)
    validate_auth_config()

    await init_db()
    logger.info("Database initialized")

    monitor = TimelineMonitor()
    await monitor.start()
    app.state.monitor = monitor

    sweeps = build_sweeps() if settings.sweeps_enabled else []
    for sweep in sweeps:
        sweep.start()
    if sweeps:
        logger.info("Started sweeps: %s", ", ".join(s.name for s in sweeps))
    else:
        logger.info("Background sweeps disabled")

    yield

    logger.info("Shutting down turnover engine...")
    for sweep in sweeps:
        await sweep.stop()
    await monitor.close()
    app.state.monitor = None
    await close_db()
    logger.info("Shutdown complete")


app = FastAPI(
    title="Turnover",
    description="Villa property-turnover workflow engine",
    version=__version__,
    lifespan=lifespan,
)

app.middleware("http")(trace_id_middleware)

# Explicit allowlist, no wildcards with credentials
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allowed_methods,
    allow_headers=settings.cors_allowed_headers,
)

app.include_router(router)


def main():
    """Entry point for the application."""
    uvicorn.run(
        "turnover.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
