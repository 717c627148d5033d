"""
Notification service entry point.

Architecture:
- One Python process, one asyncio event loop
- Two peers running concurrently:
  1. FastAPI (HTTP server receiving triggers from the frontend/backend)
  2. APScheduler (fires notification runs when they are due)

The lifespan builds the database engine, the stores and the email transport
once and hands them to the workflow; nothing below reaches for globals.

Run with: python main.py [--no-scheduler] [--port PORT]
"""

import logging
import os
import sys
from contextlib import asynccontextmanager
from pathlib import Path

# Set up import paths before any local imports
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from dotenv import load_dotenv

# Load .env.local first (if exists), then .env as fallback
# .env.local is gitignored and used for local dev overrides
load_dotenv(project_root / ".env.local")  # Local overrides (gitignored)
load_dotenv()  # Fallback to .env

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config import (
    check_required_env_vars,
    get_allowed_origins,
    get_api_port,
    is_scheduler_disabled,
)
from core.database import close_engine, get_engine, is_configured
from core.notifications.channels.email import SendGridTransport
from core.notifications.scheduler import (
    init_scheduler,
    resume_unfinished_runs,
    schedule_run,
    shutdown_scheduler,
)
from core.notifications.store import EventStore, RunStore
from core.notifications.workflow import NotificationWorkflow
from web_api.routes.email import router as email_router
from web_api.routes.notifications import router as notifications_router

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

if os.environ.get("SENTRY_DSN"):
    sentry_sdk.init(
        dsn=os.environ["SENTRY_DSN"],
        environment=os.environ.get("RAILWAY_ENVIRONMENT", "development"),
        traces_sample_rate=0.0,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI lifespan context manager.

    Wires the notification workflow, starts the scheduler and re-arms any
    runs left unfinished by a previous process.
    """
    ok, warnings = check_required_env_vars()
    for warning in warnings:
        logger.warning(warning)
    if not ok:
        raise RuntimeError("Missing required environment variables")

    app.state.run_store = None

    if not is_configured():
        logger.warning("DATABASE_URL not set, notification triggers are disabled")
    else:
        engine = get_engine()
        run_store = RunStore(engine)
        app.state.run_store = run_store

        if is_scheduler_disabled():
            logger.info("Notification scheduler disabled (--no-scheduler)")
        else:
            workflow = NotificationWorkflow(
                events=EventStore(engine),
                runs=run_store,
                transport=SendGridTransport.from_env(),
                rearm=schedule_run,
            )
            init_scheduler(workflow)
            result = await resume_unfinished_runs(run_store)
            logger.info(f"Startup recovery sweep: {result}")

    yield  # FastAPI runs here, scheduler runs alongside it

    logger.info("Shutting down notification service...")
    shutdown_scheduler()
    await close_engine()  # Close database connections


# Create FastAPI app with lifespan
app = FastAPI(
    title="Event Notification Service",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(notifications_router)
app.include_router(email_router)


@app.get("/")
async def root():
    return {"status": "ok"}


@app.get("/health")
async def health():
    """Health check endpoint with detailed status."""
    from core.notifications import scheduler

    return {
        "status": "healthy",
        "database_configured": is_configured(),
        "scheduler_running": scheduler._scheduler is not None,
    }


if __name__ == "__main__":
    import argparse
    import uvicorn

    parser = argparse.ArgumentParser(description="Event Notification Service")
    parser.add_argument(
        "--no-scheduler",
        action="store_true",
        help="Accept triggers without executing runs (useful for multiple dev servers)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=get_api_port(),
        help="Port to run the server on (default: API_PORT or 3001)",
    )
    args = parser.parse_args()

    # Set env var so it persists across uvicorn reloads
    if args.no_scheduler:
        os.environ["DISABLE_SCHEDULER"] = "true"

    # Pass app object directly (not string) to avoid module reimport issues
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=args.port,
    )
