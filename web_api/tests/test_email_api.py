"""Tests for the frontend-compatible email endpoints."""

from unittest.mock import patch

from fastapi.testclient import TestClient

from core.enums import TriggerKind
from core.notifications.tests.fakes import EVENT_SNAPSHOT, make_registrants
from main import app

client = TestClient(app)


class TestConfirm:
    def test_queues_confirmation_only(self, run_store, scheduled):
        response = client.post(
            "/api/email/confirm",
            json={
                "registrantName": "Ada",
                "registrantEmail": "ada@example.com",
                "eventDetails": dict(EVENT_SNAPSHOT, confirmation_email_hours=6),
                "registrationId": "reg-1",
            },
        )

        assert response.status_code == 202
        assert response.json()["success"] is True
        assert [r.trigger_kind for r in run_store.runs.values()] == [
            TriggerKind.registration_confirmed
        ]
        assert run_store.runs[1].payload["registrant"] == {
            "registration_id": "reg-1",
            "full_name": "Ada",
            "email": "ada@example.com",
            "status": "registered",
        }


class TestSendUpdate:
    def test_queues_broadcast(self, run_store, scheduled):
        response = client.post(
            "/api/email/send-update",
            json={
                "eventId": "evt-1",
                "eventTitle": "Spring Meetup",
                "subject": "Venue change",
                "htmlBody": "<p>Room 2</p>",
                "registrants": [
                    {"id": r["registration_id"], "full_name": r["full_name"], "email": r["email"]}
                    for r in make_registrants(3)
                ],
            },
        )

        assert response.status_code == 202
        run = run_store.runs[response.json()["run_ids"][0]]
        assert run.trigger_kind == TriggerKind.broadcast
        assert run.payload["subject"] == "Venue change"
        assert len(run.payload["registrants"]) == 3

    def test_registrant_without_email_is_422(self, run_store, scheduled):
        response = client.post(
            "/api/email/send-update",
            json={
                "eventId": "evt-1",
                "subject": "s",
                "htmlBody": "b",
                "registrants": [{"id": "reg-1"}],
            },
        )

        assert response.status_code == 422


class TestScheduleAttendanceRequest:
    def test_always_schedules(self, run_store, scheduled):
        response = client.post(
            "/api/email/schedule-attendance-request",
            json={
                "eventData": EVENT_SNAPSHOT,
                "registrant": {"id": "reg-1", "full_name": "Ada", "email": "ada@example.com"},
                "frontendUrl": "https://events.example.com",
            },
        )

        assert response.status_code == 202
        run = run_store.runs[response.json()["run_ids"][0]]
        assert run.trigger_kind == TriggerKind.attendance_request
        assert run.payload["origin_url"] == "https://events.example.com"


class TestScheduleReminders:
    def test_custom_and_24h(self, run_store, scheduled):
        response = client.post(
            "/api/email/schedule-reminders",
            json={"eventData": EVENT_SNAPSHOT, "customMessage": "See you", "timeBefore": 3},
        )

        assert response.status_code == 202
        kinds = [run_store.runs[i].trigger_kind for i in response.json()["run_ids"]]
        assert kinds == [TriggerKind.reminder_custom, TriggerKind.reminder_24h]

    def test_custom_needs_message_and_offset(self, run_store, scheduled):
        response = client.post(
            "/api/email/schedule-reminders",
            json={"eventData": EVENT_SNAPSHOT, "customMessage": "See you"},
        )

        kinds = [run_store.runs[i].trigger_kind for i in response.json()["run_ids"]]
        assert kinds == [TriggerKind.reminder_24h]

    def test_24h_disabled(self, run_store, scheduled):
        response = client.post(
            "/api/email/schedule-reminders",
            json={"eventData": dict(EVENT_SNAPSHOT, send_24h_reminder=False)},
        )

        assert response.status_code == 202
        assert response.json()["run_ids"] == []
        scheduled.assert_not_called()


class TestAttendanceConfirm:
    def test_redirects_to_frontend(self):
        with patch.dict("os.environ", {"FRONTEND_URL": "https://app.example.com"}):
            response = client.get(
                "/api/email/attendance/confirm",
                params={"id": "reg-1", "status": "confirmed"},
                follow_redirects=False,
            )

        assert response.status_code == 302
        assert response.headers["location"] == (
            "https://app.example.com/attendance-confirmed?id=reg-1&status=confirmed"
        )


class TestWebhook:
    def test_acknowledges(self):
        response = client.post("/api/email/webhook", json=[{"event": "open"}])
        assert response.status_code == 200
