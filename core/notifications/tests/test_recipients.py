"""Tests for recipient resolution."""

import logging

import pytest

from core.enums import RegistrationStatus
from core.notifications.recipients import (
    Recipient,
    eligible_recipients,
    resolve_recipients,
)
from core.notifications.tests.fakes import FakeEventStore, RecordingSleep, make_registrants


class TestRecipient:
    def test_from_payload_registrant_uses_id_key(self):
        recipient = Recipient.from_dict(
            {"id": 42, "full_name": " Ada ", "email": "ada@example.com"}
        )
        assert recipient.registration_id == "42"
        assert recipient.full_name == "Ada"
        assert recipient.status == RegistrationStatus.registered

    def test_round_trips_through_step_log(self):
        recipient = Recipient("reg-1", "Ada", "ada@example.com")
        assert Recipient.from_dict(recipient.to_dict()) == recipient

    def test_cancelled_is_not_eligible(self):
        recipient = Recipient("reg-1", "Ada", "ada@example.com", RegistrationStatus.cancelled)
        assert not recipient.is_eligible

    def test_status_is_case_insensitive(self):
        recipient = Recipient.from_dict({"id": "1", "email": "a@example.com", "status": "Registered"})
        assert recipient.status == RegistrationStatus.registered
        assert recipient.is_eligible

    def test_unknown_status_is_not_eligible(self):
        recipient = Recipient.from_dict({"id": "1", "email": "a@example.com", "status": "waitlisted"})
        assert recipient.status is None
        assert not recipient.is_eligible


class TestEligibleRecipients:
    def test_drops_cancelled_and_blank_emails(self):
        candidates = [
            {"id": "1", "email": "a@example.com", "status": "registered"},
            {"id": "2", "email": "b@example.com", "status": "cancelled"},
            {"id": "3", "email": "", "status": "registered"},
        ]
        assert [r.registration_id for r in eligible_recipients(candidates)] == ["1"]

    def test_dedupes_case_insensitively_keeping_first(self):
        candidates = [
            {"id": "1", "email": "Ada@Example.com"},
            {"id": "2", "email": "ada@example.com"},
            {"id": "3", "email": "bob@example.com"},
        ]
        assert [r.registration_id for r in eligible_recipients(candidates)] == ["1", "3"]


class TestResolveRecipients:
    @pytest.mark.asyncio
    async def test_returns_registered_in_store_order(self):
        rows = make_registrants(3)
        rows[1]["status"] = "cancelled"
        store = FakeEventStore(recipients=rows)

        recipients = await resolve_recipients(store, "evt-1")

        assert [r.email for r in recipients] == ["user0@example.com", "user2@example.com"]

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        store = FakeEventStore(recipients=make_registrants(2), fail_times=2)
        sleep = RecordingSleep()

        recipients = await resolve_recipients(store, "evt-1", sleep=sleep)

        assert len(recipients) == 2
        assert store.recipient_calls == 3
        assert sleep.calls == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_gives_up_with_empty_list_after_budget(self, caplog):
        store = FakeEventStore(recipients=make_registrants(2), fail_times=10)
        sleep = RecordingSleep()

        with caplog.at_level(logging.ERROR):
            recipients = await resolve_recipients(store, "evt-1", sleep=sleep)

        assert recipients == []
        assert store.recipient_calls == 3
        assert len(sleep.calls) == 2
        assert any("Could not resolve recipients" in r.message for r in caplog.records)

    @pytest.mark.asyncio
    async def test_missing_event_id_returns_empty_without_query(self):
        store = FakeEventStore(recipients=make_registrants(2))

        assert await resolve_recipients(store, None) == []
        assert store.recipient_calls == 0
