"""
APScheduler-based job scheduler for notification runs.

Jobs are persisted to PostgreSQL so they survive restarts.

Jobs are lightweight - they store only the run_id. Everything else (event
snapshot, payload, step log) lives on the notification_runs row and is read
fresh when the job fires.
"""

import logging
import random
from datetime import datetime, timedelta, timezone

from apscheduler.jobstores.sqlalchemy import SQLAlchemyJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from core.database import get_sync_database_url, is_configured

logger = logging.getLogger(__name__)


_scheduler: AsyncIOScheduler | None = None
_workflow = None


JOB_DEFAULTS = {
    "coalesce": True,  # Combine missed runs into one
    "max_instances": 1,
    "misfire_grace_time": None,  # A late notification is still sent
}


# =============================================================================
# Scheduler initialization and shutdown
# =============================================================================


def _get_database_url() -> str:
    """Get sync database URL for APScheduler (it uses sync SQLAlchemy)."""
    if not is_configured():
        return ""
    database_url = get_sync_database_url()

    # Add connection timeout to prevent hanging when DB is unavailable
    if "?" not in database_url:
        database_url += "?connect_timeout=5"
    elif "connect_timeout" not in database_url:
        database_url += "&connect_timeout=5"

    return database_url


def init_scheduler(
    workflow, skip_if_db_unavailable: bool = True
) -> AsyncIOScheduler | None:
    """
    Initialize and start the APScheduler.

    Call this during app startup (in FastAPI lifespan).

    Args:
        workflow: NotificationWorkflow that executes runs when their job fires
        skip_if_db_unavailable: If True, fall back to an in-memory scheduler when
                                the DB is unreachable instead of failing startup.
    """
    global _scheduler, _workflow

    _workflow = workflow

    if _scheduler is not None:
        return _scheduler

    database_url = _get_database_url()

    jobstores = {}
    if database_url:
        jobstores["default"] = SQLAlchemyJobStore(
            url=database_url,
            tablename="apscheduler_jobs",
        )

    _scheduler = AsyncIOScheduler(jobstores=jobstores, job_defaults=JOB_DEFAULTS)

    try:
        _scheduler.start()
        logger.info("Notification scheduler started")
    except Exception as e:
        if skip_if_db_unavailable and "timeout" in str(e).lower():
            # Runs are still recovered from notification_runs on next startup
            logger.warning(
                "Could not connect to database for scheduler: timeout expired. "
                "Running in memory-only mode (jobs won't persist)"
            )
            _scheduler = AsyncIOScheduler(jobstores={}, job_defaults=JOB_DEFAULTS)
            _scheduler.start()
            logger.info("Notification scheduler started (memory-only)")
        else:
            _scheduler = None
            raise

    return _scheduler


def shutdown_scheduler() -> None:
    """
    Shutdown the scheduler gracefully.

    Call this during app shutdown.
    """
    global _scheduler, _workflow
    if _scheduler:
        _scheduler.shutdown(wait=True)
        _scheduler = None
        logger.info("Notification scheduler stopped")
    _workflow = None


# =============================================================================
# Job scheduling
# =============================================================================


def job_id_for(run_id: int) -> str:
    return f"notification_run_{run_id}"


def schedule_run(run_id: int, run_at: datetime) -> bool:
    """
    Arm (or re-arm) the job that executes a run.

    A run_at in the past fires on the scheduler's next wakeup.

    Returns:
        True if a job was scheduled
    """
    if not _scheduler:
        logger.warning(f"Scheduler not initialized, cannot schedule run {run_id}")
        return False

    _scheduler.add_job(
        _execute_run,
        trigger="date",
        run_date=run_at,
        id=job_id_for(run_id),
        replace_existing=True,
        kwargs={"run_id": run_id},
    )
    logger.info(f"Scheduled notification run {run_id} at {run_at}")
    return True


def has_job(run_id: int) -> bool:
    if not _scheduler:
        return False
    return _scheduler.get_job(job_id_for(run_id)) is not None


# =============================================================================
# Job execution
# =============================================================================


async def _execute_run(run_id: int, attempt: int = 0) -> None:
    """
    Execute a notification run. This is the job function called by APScheduler.

    The workflow is idempotent, so on failure the whole run is simply
    scheduled again; finished steps are skipped on the next attempt.
    """
    import sentry_sdk

    if _workflow is None:
        logger.error(f"No workflow configured, cannot execute run {run_id}")
        return

    try:
        await _workflow.execute(run_id)
    except Exception as e:
        logger.error(f"Notification run {run_id} failed (attempt {attempt}): {e}")
        sentry_sdk.capture_exception(e)
        try:
            await _workflow.runs.record_failure(run_id, f"{type(e).__name__}: {e}")
        except Exception as record_error:
            logger.warning(
                f"Could not record failure for run {run_id}: {record_error}"
            )
        schedule_run_retry(run_id, attempt)


# =============================================================================
# Retries
# =============================================================================


MAX_RUN_RETRY_ATTEMPTS = 12  # ~6 hours with exponential backoff (caps at 30min)


def get_retry_delay(attempt: int, include_jitter: bool = True) -> float:
    """
    Calculate retry delay using exponential backoff with cap.

    Args:
        attempt: Zero-based attempt number (0 = first retry)
        include_jitter: Add random jitter to prevent thundering herd

    Returns:
        Delay in seconds (1, 2, 4, 8, 16, 32, 64, 128, 256, 512, 1024, 1800, 1800...)
    """
    base_delay = min(2**attempt, 1800)
    if include_jitter:
        jitter = random.uniform(0, min(base_delay * 0.1, 60))
        return base_delay + jitter
    return float(base_delay)


def schedule_run_retry(run_id: int, attempt: int) -> bool:
    """
    Schedule the next attempt of a failed run.

    Returns:
        True if a retry was scheduled, False if retries are exhausted or the
        scheduler is not running
    """
    import sentry_sdk

    if attempt + 1 > MAX_RUN_RETRY_ATTEMPTS:
        logger.error(
            f"Notification run {run_id} exceeded max retries ({MAX_RUN_RETRY_ATTEMPTS}), giving up"
        )
        sentry_sdk.capture_message(
            f"Notification run permanently failed after {MAX_RUN_RETRY_ATTEMPTS} attempts: run {run_id}"
        )
        return False

    if not _scheduler:
        logger.warning(f"Scheduler not available, cannot retry run {run_id}")
        return False

    delay = get_retry_delay(attempt)
    run_at = datetime.now(timezone.utc) + timedelta(seconds=delay)

    _scheduler.add_job(
        _execute_run,
        trigger="date",
        run_date=run_at,
        id=job_id_for(run_id),
        replace_existing=True,  # Don't stack retries
        kwargs={"run_id": run_id, "attempt": attempt + 1},
    )
    logger.info(
        f"Scheduled retry of run {run_id} in {delay:.1f}s (attempt {attempt + 1})"
    )
    return True


# =============================================================================
# Startup recovery
# =============================================================================


async def resume_unfinished_runs(run_store) -> dict:
    """
    Re-arm every non-terminal run that has no job.

    Covers runs whose job was lost (memory-only scheduler, a crash between
    creating the run and adding the job). Runs that already have a job keep
    it. Idempotent.

    Returns:
        Dict with resumed/unchanged counts, or error key on failure
    """
    if not _scheduler:
        logger.warning("Scheduler not initialized, skipping run recovery")
        return {"resumed": 0, "unchanged": 0}

    try:
        runs = await run_store.list_unfinished()
    except Exception as e:
        logger.error(f"Could not list unfinished runs: {e}")
        return {"error": str(e), "resumed": 0, "unchanged": 0}

    resumed = 0
    unchanged = 0
    for run in runs:
        if has_job(run.run_id):
            unchanged += 1
            continue
        schedule_run(run.run_id, run.scheduled_for)
        resumed += 1

    if resumed:
        logger.info(f"Resumed {resumed} unfinished notification run(s)")
    return {"resumed": resumed, "unchanged": unchanged}
