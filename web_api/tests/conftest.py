# web_api/tests/conftest.py
"""Pytest fixtures for web API tests.

Routes read the RunStore from app.state (normally set by the lifespan);
these fixtures install an in-memory one and stub out job arming.
"""

import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

# Ensure we import from root main.py
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from core.notifications.tests.fakes import FakeRunStore
from main import app


@pytest.fixture
def run_store():
    store = FakeRunStore()
    app.state.run_store = store
    yield store
    app.state.run_store = None


@pytest.fixture
def scheduled():
    """Replace job arming in both routers; returns the shared mock."""
    mock_schedule = MagicMock(return_value=True)
    with patch("web_api.routes.notifications.schedule_run", mock_schedule):
        with patch("web_api.routes.email.schedule_run", mock_schedule):
            yield mock_schedule
