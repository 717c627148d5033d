"""Tests for send-time resolution."""

from datetime import datetime, timedelta, timezone

import pytest

from core.notifications.errors import InvalidEventTime
from core.notifications.timing import (
    coerce_hours,
    compute_scheduled_for,
    parse_event_start,
    resolve_send_time,
)

NOW = datetime(2026, 2, 18, 9, 0, tzinfo=timezone.utc)


class TestParseEventStart:
    def test_iso_date_and_time(self):
        start = parse_event_start("2026-02-21", "10:00", tz_name="UTC")
        assert start == datetime(2026, 2, 21, 10, 0, tzinfo=timezone.utc)

    def test_time_with_seconds(self):
        start = parse_event_start("2026-02-21", "10:00:30", tz_name="UTC")
        assert start == datetime(2026, 2, 21, 10, 0, 30, tzinfo=timezone.utc)

    def test_twelve_hour_clock_fallback(self):
        start = parse_event_start("2026-02-21", "10:00 PM", tz_name="UTC")
        assert start == datetime(2026, 2, 21, 22, 0, tzinfo=timezone.utc)

    def test_day_first_date_fallback(self):
        start = parse_event_start("21/02/2026", "10:00", tz_name="UTC")
        assert start == datetime(2026, 2, 21, 10, 0, tzinfo=timezone.utc)

    def test_interprets_local_time_in_event_timezone(self):
        start = parse_event_start("2026-07-01", "10:00", tz_name="Europe/London")
        # BST is UTC+1
        assert start == datetime(2026, 7, 1, 9, 0, tzinfo=timezone.utc)

    def test_unknown_timezone_falls_back_to_utc(self):
        start = parse_event_start("2026-02-21", "10:00", tz_name="Mars/Olympus")
        assert start == datetime(2026, 2, 21, 10, 0, tzinfo=timezone.utc)

    @pytest.mark.parametrize(
        "start_date,start_time",
        [("not-a-date", "10:00"), ("2026-02-21", "noon-ish"), (None, "10:00"), ("", "")],
    )
    def test_unparseable_raises(self, start_date, start_time):
        with pytest.raises(InvalidEventTime):
            parse_event_start(start_date, start_time, tz_name="UTC")


class TestCoerceHours:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (48, 48.0),
            ("2.5", 2.5),
            (0, 0.0),
            (-3, 0.0),
            (None, 0.0),
            ("soon", 0.0),
            (float("nan"), 0.0),
            (float("inf"), 0.0),
            (True, 0.0),
        ],
    )
    def test_values(self, value, expected):
        assert coerce_hours(value) == expected


class TestComputeScheduledFor:
    def test_48_hours_before_event(self):
        scheduled = compute_scheduled_for(
            "2026-02-21", "10:00", 48, now=NOW, tz_name="UTC"
        )
        assert scheduled == datetime(2026, 2, 19, 10, 0, tzinfo=timezone.utc)

    def test_exactly_start_minus_offset(self):
        send_at = resolve_send_time("2026-02-21", "10:00", 1.5, tz_name="UTC")
        start = parse_event_start("2026-02-21", "10:00", tz_name="UTC")
        assert start - send_at == timedelta(hours=1.5)

    def test_zero_hours_fires_now(self):
        assert compute_scheduled_for("2026-02-21", "10:00", 0, now=NOW) == NOW

    def test_negative_hours_fires_now(self):
        assert compute_scheduled_for("2026-02-21", "10:00", -5, now=NOW) == NOW

    def test_non_numeric_hours_fires_now(self):
        assert compute_scheduled_for("2026-02-21", "10:00", "abc", now=NOW) == NOW

    def test_past_instant_fires_now(self):
        # Event is 2 days away, offset of 72h lands in the past
        assert compute_scheduled_for(
            "2026-02-20", "09:00", 72, now=NOW, tz_name="UTC"
        ) == NOW

    def test_malformed_time_fires_now_and_logs(self, caplog):
        import logging

        with caplog.at_level(logging.WARNING):
            scheduled = compute_scheduled_for("garbage", "10:00", 24, now=NOW)

        assert scheduled == NOW
        assert any("sending immediately" in r.message for r in caplog.records)
