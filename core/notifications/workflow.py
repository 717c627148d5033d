"""
Notification workflow engine.

Drives one NotificationRun through

    pending -> waiting -> resolving -> sending -> completed
                                   \\-> skipped_disabled / skipped_empty

The long wait before `resolving` is not spent here: the scheduler only calls
`execute()` once `scheduled_for` has arrived. Everything `execute()` does is
recorded in the run's step log, so calling it again after a crash picks up
where the last attempt stopped instead of redoing finished work.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Awaitable, Callable

from core.enums import RunStatus, TriggerKind
from core.notifications.batcher import (
    BATCH_PAUSE_SECONDS,
    BATCH_SIZE,
    BatchOutcome,
    dispatch_batch,
    make_batches,
    run_batches,
)
from core.notifications.context import build_message_context
from core.notifications.dispatcher import DispatchResult, dispatch
from core.notifications.errors import GatingDisabled
from core.notifications.recipients import (
    Recipient,
    eligible_recipients,
    resolve_recipients,
)
from core.notifications.runs import (
    PINNED_KINDS,
    STEP_FETCH_RECIPIENTS,
    STEP_READ_EVENT_FLAGS,
    NotificationRun,
    batch_step_id,
    check_transition,
)
from core.notifications.templates import RenderedMessage, render_or_default
from core.notifications.timing import utc_now

logger = logging.getLogger(__name__)


# A job firing this much before scheduled_for is re-armed instead of sent
EARLY_FIRE_TOLERANCE = timedelta(seconds=5)


class NotificationWorkflow:
    """
    Executes notification runs.

    Args:
        events: Event store (`list_registered_recipients`, `get_event_flags`)
        runs: Run store (see core.notifications.store.RunStore)
        transport: Email transport (`send(to_email, subject, html) -> message_id`)
        renderer: `(kind, data) -> RenderedMessage`; must not raise
        rearm: `(run_id, run_at)` callback used when a run fires too early
        sleep: Awaitable sleep, used for the pause between batches
        clock: Returns the current aware UTC datetime
    """

    def __init__(
        self,
        events,
        runs,
        transport,
        renderer: Callable[[str, dict], RenderedMessage] = render_or_default,
        rearm: Callable[[int, datetime], object] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] = utc_now,
        batch_size: int = BATCH_SIZE,
        batch_pause: float = BATCH_PAUSE_SECONDS,
    ):
        self.events = events
        self.runs = runs
        self.transport = transport
        self.renderer = renderer
        self.rearm = rearm
        self.sleep = sleep
        self.clock = clock
        self.batch_size = batch_size
        self.batch_pause = batch_pause

    # -------------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------------

    async def execute(self, run_id: int) -> NotificationRun | None:
        """
        Run (or resume) a notification run up to a terminal state.

        Returns:
            The run as it ended up, or None if it does not exist
        """
        run = await self.runs.get_run(run_id)
        if run is None:
            logger.warning(f"Notification run {run_id} not found, skipping")
            return None

        if run.is_finished:
            logger.info(f"Run {run_id} already {run.status.value}, nothing to do")
            return run

        if run.scheduled_for - self.clock() > EARLY_FIRE_TOLERANCE:
            logger.info(
                f"Run {run_id} fired before {run.scheduled_for.isoformat()}, re-arming"
            )
            if self.rearm:
                self.rearm(run.run_id, run.scheduled_for)
            return run

        await self._advance(run, RunStatus.waiting)
        await self._advance(run, RunStatus.resolving)

        recipients = await self._resolve(run)
        if recipients is None:
            return run

        await self._advance(run, RunStatus.sending)
        await self._send(run, recipients)
        return run

    # -------------------------------------------------------------------------
    # State and step bookkeeping
    # -------------------------------------------------------------------------

    async def _advance(self, run: NotificationRun, status: RunStatus, **values) -> None:
        # A resumed run re-enters its current state; earlier ones are skipped
        if not run.is_finished and run.status.rank > status.rank:
            return
        if not check_transition(run.status, status):
            return
        await self.runs.set_status(run.run_id, status, **values)
        logger.info(f"Run {run.run_id}: {run.status.value} -> {status.value}")
        run.status = status

    async def _finish(self, run: NotificationRun, status: RunStatus, **values) -> None:
        await self._advance(run, status, completed_at=self.clock(), **values)

    async def _step(self, run: NotificationRun, step_id: str, compute):
        """
        Return the recorded result of `step_id`, or compute and record it.
        """
        if run.has_step(step_id):
            logger.info(f"Run {run.run_id}: step {step_id} already done, reusing result")
            return run.completed_steps[step_id]

        result = await compute()
        await self.runs.record_step(run.run_id, step_id, result)
        run.completed_steps[step_id] = result
        return result

    # -------------------------------------------------------------------------
    # Resolving
    # -------------------------------------------------------------------------

    async def _resolve(self, run: NotificationRun) -> list[Recipient] | None:
        """
        Apply organizer gating and work out the audience.

        Returns:
            Recipients to send to, or None if the run was ended as skipped
        """
        if run.trigger_kind == TriggerKind.reminder_24h:
            flags = await self._step(
                run, STEP_READ_EVENT_FLAGS, lambda: self._read_event_flags(run)
            )
            if not flags.get("found", True):
                logger.info(f"Event {run.event_id} no longer exists, skipping run {run.run_id}")
                await self._finish(run, RunStatus.skipped_empty)
                return None
            if not flags.get("send_24h_reminder"):
                logger.info(
                    f"{GatingDisabled(run.event_id, 'send_24h_reminder')}; "
                    f"skipping run {run.run_id}"
                )
                await self._finish(run, RunStatus.skipped_disabled)
                return None

        recipient_dicts = await self._step(
            run, STEP_FETCH_RECIPIENTS, lambda: self._fetch_recipients(run)
        )
        recipients = [Recipient.from_dict(d) for d in recipient_dicts]

        if not recipients:
            logger.info(
                f"No active registrants for run {run.run_id} "
                f"({run.trigger_kind.value}, event {run.event_id})"
            )
            await self._finish(run, RunStatus.skipped_empty)
            return None

        return recipients

    async def _read_event_flags(self, run: NotificationRun) -> dict:
        """Current organizer flags; falls back to the snapshot if the store is unreachable."""
        snapshot = run.event_snapshot
        try:
            flags = await self.events.get_event_flags(run.event_id)
        except Exception as e:
            logger.warning(
                f"Could not read flags for event {run.event_id}, using snapshot: {e}"
            )
            return {
                "found": True,
                "send_24h_reminder": bool(snapshot.get("send_24h_reminder", True)),
                "confirmation_email_hours": snapshot.get("confirmation_email_hours", 0),
                "source": "snapshot",
            }

        if flags is None:
            return {"found": False}
        return {
            "found": True,
            "send_24h_reminder": bool(flags.get("send_24h_reminder")),
            "confirmation_email_hours": flags.get("confirmation_email_hours") or 0,
            "source": "store",
        }

    async def _fetch_recipients(self, run: NotificationRun) -> list[dict]:
        payload = run.payload

        if run.trigger_kind in PINNED_KINDS or (
            run.trigger_kind == TriggerKind.reminder_24h
            and payload.get("pin_recipients")
        ):
            recipients = eligible_recipients(self._pinned(run))
        else:
            recipients = await resolve_recipients(
                self.events, run.event_id, sleep=self.sleep
            )

        if run.trigger_kind == TriggerKind.attendance_request:
            recipients = _still_registered(payload.get("registrant") or {}, recipients)

        return [r.to_dict() for r in recipients]

    @staticmethod
    def _pinned(run: NotificationRun) -> list[dict]:
        if run.trigger_kind == TriggerKind.registration_confirmed:
            registrant = run.payload.get("registrant")
            return [registrant] if registrant else []
        return list(run.payload.get("registrants") or [])

    # -------------------------------------------------------------------------
    # Sending
    # -------------------------------------------------------------------------

    async def _send(self, run: NotificationRun, recipients: list[Recipient]) -> None:
        batches = make_batches(recipients, self.batch_size)

        async def process(index: int, batch) -> BatchOutcome:
            step_id = batch_step_id(index)
            if run.has_step(step_id):
                recorded = run.completed_steps[step_id]
                return BatchOutcome(
                    index=index,
                    results=[DispatchResult.from_dict(r) for r in recorded],
                    replayed=True,
                )

            results = await dispatch_batch(
                batch, lambda recipient: self._dispatch_one(run, recipient)
            )
            result_dicts = [r.to_dict() for r in results]
            await self._log_deliveries(run, step_id, result_dicts)
            await self._step(run, step_id, _constant(result_dicts))
            return BatchOutcome(index=index, results=results)

        outcomes = await run_batches(
            batches, process, pause=self.batch_pause, sleep=self.sleep
        )

        sent = sum(o.sent for o in outcomes)
        failed = sum(o.failed for o in outcomes)
        await self._finish(
            run, RunStatus.completed, sent_count=sent, failed_count=failed
        )
        run.sent_count = sent
        run.failed_count = failed
        logger.info(
            f"Run {run.run_id} ({run.trigger_kind.value}) completed: "
            f"{sent} sent, {failed} failed across {len(batches)} batch(es)"
        )

    async def _dispatch_one(
        self, run: NotificationRun, recipient: Recipient
    ) -> DispatchResult:
        data = build_message_context(run, recipient)
        message = self.renderer(run.trigger_kind.value, data)
        return await dispatch(self.transport, recipient, message)

    async def _log_deliveries(
        self, run: NotificationRun, step_id: str, results: list[dict]
    ) -> None:
        try:
            await self.runs.log_deliveries(run, step_id, results)
        except Exception as e:
            # The audit log must not block sending
            logger.warning(f"Failed to write delivery log for run {run.run_id}: {e}")


def _constant(value):
    async def compute():
        return value

    return compute


def _still_registered(registrant: dict, current: list[Recipient]) -> list[Recipient]:
    """Narrow the current audience to one registrant, if they are still in it."""
    wanted = Recipient.from_dict(registrant)
    for recipient in current:
        if wanted.registration_id and recipient.registration_id == wanted.registration_id:
            return [recipient]
        if recipient.email.lower() == wanted.email.lower() and wanted.email:
            return [recipient]
    return []
