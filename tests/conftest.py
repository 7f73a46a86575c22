"""Shared fixtures for the proxy tests."""

import pytest
from fastapi.testclient import TestClient

from serenity.app.core.config import Settings
from serenity.app.main import create_app

UPSTREAM_URL = "https://upstream.test/v1"
SECRET = "test-secret"
AUTH_HEADERS = {"x-app-secret": SECRET}


class FakeClock:
    """Manually advanced time source for the rate limiter."""

    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        openai_api_key="sk-test",
        openai_base_url=UPSTREAM_URL,
        app_shared_secret=SECRET,
        rate_limit_requests_per_window=3,
        rate_limit_window_seconds=60,
    )


@pytest.fixture
def client(settings: Settings):
    """TestClient with the lifespan running (HTTP client, limiter, relay)."""
    app = create_app(settings)
    with TestClient(app) as test_client:
        yield test_client
