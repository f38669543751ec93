"""
Shared pytest fixtures for FuelSense tests.

No test touches the network: the provider is replaced by FakeMarineClient,
or requests sessions are mocked, and retry sleeps are no-ops.
"""

import pytest

from fuelsense.config import Settings
from fuelsense.metrics import FetchMetrics
from tests.helpers import FIXED_NOW, FakeMarineClient


@pytest.fixture
def settings():
    """Settings with defaults, isolated from any local .env."""
    return Settings(_env_file=None, forecast_max_workers=4)


@pytest.fixture
def metrics():
    return FetchMetrics()


@pytest.fixture
def fixed_now():
    return FIXED_NOW


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def fake_client():
    return FakeMarineClient()


@pytest.fixture
def no_sleep():
    """Sleep replacement recording requested backoff waits."""
    waits = []

    def _sleep(seconds):
        waits.append(seconds)

    _sleep.waits = waits
    return _sleep


@pytest.fixture
def api_client(settings, fake_client, metrics):
    """TestClient over an app wired to the fake provider, with lifespan run."""
    from fastapi.testclient import TestClient

    from api.main import create_app
    from api.state import PipelineState

    state = PipelineState(settings=settings, client=fake_client, metrics=metrics, clock=lambda: FIXED_NOW)
    with TestClient(create_app(settings, state=state)) as client:
        yield client
