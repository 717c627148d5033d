"""Shared fixtures for notification tests."""

import pytest

from core.notifications.tests.fakes import FakeRunStore, FakeTransport, RecordingSleep


@pytest.fixture
def run_store():
    return FakeRunStore()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def sleep():
    return RecordingSleep()
