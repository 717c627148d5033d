"""Tests for trigger validation and run creation."""

from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from pydantic import ValidationError

from core.enums import RegistrationStatus, RunStatus, TriggerKind
from core.notifications.runs import STEP_COMPUTE_SEND_TIME
from core.notifications.tests.fakes import EVENT_SNAPSHOT, NOW, FakeRunStore, make_registrants
from core.notifications.triggers import (
    Broadcast,
    RegistrationCreated,
    accept_trigger,
    parse_trigger,
)


def _snapshot(**overrides):
    snapshot = dict(EVENT_SNAPSHOT)
    snapshot.update(overrides)
    return snapshot


REGISTRANT = {"id": "reg-1", "full_name": "Ada", "email": "ada@example.com"}


class TestParseTrigger:
    def test_dispatches_on_name(self):
        trigger = parse_trigger(
            {
                "name": "broadcast",
                "event_id": 12,
                "subject": "Hello",
                "html_body": "<p>Hi</p>",
                "registrants": [REGISTRANT],
            }
        )
        assert isinstance(trigger, Broadcast)
        assert trigger.event_id == "12"
        assert trigger.registrants[0].id == "reg-1"

    def test_unknown_name_rejected(self):
        with pytest.raises(ValidationError):
            parse_trigger({"name": "reminder.weekly", "event_snapshot": _snapshot()})

    def test_missing_required_field_rejected(self):
        with pytest.raises(ValidationError):
            parse_trigger({"name": "registration.created", "event_snapshot": _snapshot()})

    def test_lenient_confirmation_hours(self):
        trigger = parse_trigger(
            {
                "name": "registration.created",
                "event_snapshot": _snapshot(confirmation_email_hours="lots"),
                "registrant": REGISTRANT,
            }
        )
        assert isinstance(trigger, RegistrationCreated)
        assert trigger.event_snapshot.confirmation_email_hours == 0

    def test_registrant_accepts_registration_id_key(self):
        trigger = parse_trigger(
            {
                "name": "attendance.request",
                "event_snapshot": _snapshot(),
                "registrant": {"registration_id": "reg-5", "email": "x@example.com"},
            }
        )
        assert trigger.registrant.id == "reg-5"

    def test_registrant_status_is_normalised(self):
        trigger = parse_trigger(
            {
                "name": "broadcast",
                "event_id": "evt-1",
                "subject": "Hello",
                "html_body": "<p>Hi</p>",
                "registrants": [dict(REGISTRANT, status="Registered")],
            }
        )
        assert trigger.registrants[0].status == RegistrationStatus.registered
        assert trigger.registrants[0].to_recipient_dict()["status"] == "registered"

    def test_unknown_registrant_status_rejected(self):
        with pytest.raises(ValidationError):
            parse_trigger(
                {
                    "name": "broadcast",
                    "event_id": "evt-1",
                    "subject": "Hello",
                    "html_body": "<p>Hi</p>",
                    "registrants": [dict(REGISTRANT, status="waitlisted")],
                }
            )


class TestAcceptTrigger:
    @pytest.mark.asyncio
    async def test_custom_reminder_48h_before(self):
        runs = FakeRunStore()
        schedule = MagicMock()
        trigger = parse_trigger(
            {
                "name": "reminder.custom",
                "event_snapshot": _snapshot(),
                "custom_message": "Bring a laptop",
                "hours_before": 48,
            }
        )

        with patch.dict("os.environ", {"EVENT_TIMEZONE": "UTC"}):
            run_ids = await accept_trigger(trigger, runs, schedule=schedule, now=NOW)

        expected = datetime(2026, 2, 19, 10, 0, tzinfo=timezone.utc)
        run = runs.runs[run_ids[0]]
        assert run.trigger_kind == TriggerKind.reminder_custom
        assert run.scheduled_for == expected
        assert run.status == RunStatus.waiting
        assert run.payload == {"custom_message": "Bring a laptop", "hours_before": 48.0}
        assert run.completed_steps == {STEP_COMPUTE_SEND_TIME: expected.isoformat()}
        schedule.assert_called_once_with(run_ids[0], expected)

    @pytest.mark.asyncio
    async def test_zero_hours_fires_immediately(self):
        runs = FakeRunStore()
        schedule = MagicMock()
        trigger = parse_trigger(
            {
                "name": "reminder.custom",
                "event_snapshot": _snapshot(),
                "custom_message": "Now!",
                "hours_before": 0,
            }
        )

        run_ids = await accept_trigger(trigger, runs, schedule=schedule, now=NOW)

        assert runs.runs[run_ids[0]].scheduled_for == NOW
        schedule.assert_called_once_with(run_ids[0], NOW)

    @pytest.mark.asyncio
    async def test_run_is_waiting_before_job_is_armed(self):
        runs = FakeRunStore()
        seen = []

        def schedule(run_id, run_at):
            seen.append(runs.runs[run_id].status)

        trigger = parse_trigger(
            {"name": "reminder.24hr", "event_snapshot": _snapshot(), "registrants": []}
        )
        await accept_trigger(trigger, runs, schedule=schedule, now=NOW)

        assert seen == [RunStatus.waiting]

    @pytest.mark.asyncio
    async def test_registration_without_confirmation_hours_creates_one_run(self):
        runs = FakeRunStore()
        trigger = parse_trigger(
            {
                "name": "registration.created",
                "event_snapshot": _snapshot(),
                "registrant": REGISTRANT,
                "origin_url": "https://events.example.com",
            }
        )

        run_ids = await accept_trigger(trigger, runs, schedule=MagicMock(), now=NOW)

        assert len(run_ids) == 1
        run = runs.runs[run_ids[0]]
        assert run.trigger_kind == TriggerKind.registration_confirmed
        assert run.scheduled_for == NOW
        assert run.payload["registrant"]["registration_id"] == "reg-1"
        assert run.payload["origin_url"] == "https://events.example.com"

    @pytest.mark.asyncio
    async def test_registration_with_confirmation_hours_adds_attendance_request(self):
        runs = FakeRunStore()
        trigger = parse_trigger(
            {
                "name": "registration.created",
                "event_snapshot": _snapshot(confirmation_email_hours=12),
                "registrant": REGISTRANT,
            }
        )

        with patch.dict("os.environ", {"EVENT_TIMEZONE": "UTC"}):
            run_ids = await accept_trigger(trigger, runs, schedule=MagicMock(), now=NOW)

        kinds = [runs.runs[i].trigger_kind for i in run_ids]
        assert kinds == [TriggerKind.registration_confirmed, TriggerKind.attendance_request]
        attendance = runs.runs[run_ids[1]]
        assert attendance.scheduled_for == datetime(2026, 2, 20, 22, 0, tzinfo=timezone.utc)
        assert attendance.payload["hours_before"] == 12

    @pytest.mark.asyncio
    async def test_explicit_attendance_request_with_zero_hours_is_immediate(self):
        runs = FakeRunStore()
        trigger = parse_trigger(
            {
                "name": "attendance.request",
                "event_snapshot": _snapshot(),
                "registrant": REGISTRANT,
            }
        )

        run_ids = await accept_trigger(trigger, runs, schedule=MagicMock(), now=NOW)

        assert runs.runs[run_ids[0]].trigger_kind == TriggerKind.attendance_request
        assert runs.runs[run_ids[0]].scheduled_for == NOW

    @pytest.mark.asyncio
    async def test_24h_reminder_records_pin_setting(self):
        runs = FakeRunStore()
        trigger = parse_trigger(
            {
                "name": "reminder.24hr",
                "event_snapshot": _snapshot(),
                "registrants": make_registrants(2),
            }
        )

        with patch.dict(
            "os.environ", {"EVENT_TIMEZONE": "UTC", "PIN_24H_REMINDER_RECIPIENTS": "true"}
        ):
            run_ids = await accept_trigger(trigger, runs, schedule=MagicMock(), now=NOW)

        run = runs.runs[run_ids[0]]
        assert run.scheduled_for == datetime(2026, 2, 20, 10, 0, tzinfo=timezone.utc)
        assert run.payload["pin_recipients"] is True
        assert len(run.payload["registrants"]) == 2

    @pytest.mark.asyncio
    async def test_broadcast_is_immediate_with_pinned_registrants(self):
        runs = FakeRunStore()
        trigger = parse_trigger(
            {
                "name": "broadcast",
                "event_id": "evt-1",
                "event_title": "Spring Meetup",
                "subject": "Venue change",
                "html_body": "<p>Room 2</p>",
                "registrants": make_registrants(3),
            }
        )

        run_ids = await accept_trigger(trigger, runs, schedule=MagicMock(), now=NOW)

        run = runs.runs[run_ids[0]]
        assert run.trigger_kind == TriggerKind.broadcast
        assert run.scheduled_for == NOW
        assert run.event_snapshot == {"id": "evt-1", "title": "Spring Meetup"}
        assert [r["email"] for r in run.payload["registrants"]] == [
            "user0@example.com",
            "user1@example.com",
            "user2@example.com",
        ]

    @pytest.mark.asyncio
    async def test_malformed_event_time_fires_immediately(self):
        runs = FakeRunStore()
        trigger = parse_trigger(
            {
                "name": "reminder.custom",
                "event_snapshot": _snapshot(start_date="someday"),
                "hours_before": 5,
            }
        )

        run_ids = await accept_trigger(trigger, runs, schedule=MagicMock(), now=NOW)

        assert runs.runs[run_ids[0]].scheduled_for == NOW
