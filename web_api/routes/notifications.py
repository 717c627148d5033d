"""
Notification trigger routes.

Endpoints:
- POST /api/notifications/triggers - Accept a tagged trigger, create its runs
- GET /api/notifications/runs/{run_id} - Inspect a run's status and counts
"""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Request
from pydantic import ValidationError

from core.notifications.scheduler import schedule_run
from core.notifications.triggers import accept_trigger, parse_trigger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


def get_run_store(request: Request):
    """The RunStore built at startup; 503 when the database isn't configured."""
    run_store = getattr(request.app.state, "run_store", None)
    if run_store is None:
        raise HTTPException(503, "Notification store not available")
    return run_store


@router.post("/triggers", status_code=202)
async def post_trigger(
    payload: dict[str, Any] = Body(...),
    run_store=Depends(get_run_store),
) -> dict[str, Any]:
    """
    Accept a trigger. Answers before any run executes.

    Body: JSON object tagged by `name` (registration.created, reminder.24hr,
    reminder.custom, broadcast, attendance.request).
    """
    try:
        trigger = parse_trigger(payload)
    except ValidationError as e:
        raise HTTPException(
            422, e.errors(include_url=False, include_context=False, include_input=False)
        )

    run_ids = await accept_trigger(trigger, run_store, schedule=schedule_run)
    logger.info(f"Accepted trigger {trigger.name}: runs {run_ids}")
    return {"accepted": True, "name": trigger.name, "run_ids": run_ids}


@router.get("/runs/{run_id}")
async def get_run_status(
    run_id: int,
    run_store=Depends(get_run_store),
) -> dict[str, Any]:
    run = await run_store.get_run(run_id)
    if not run:
        raise HTTPException(404, "Notification run not found")
    return run.summary()
