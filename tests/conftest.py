"""Shared pytest fixtures."""

from __future__ import annotations

import os

# Force settings to use test-safe defaults before any import
os.environ.setdefault("PVE_API_KEY", "")
os.environ.setdefault("PVE_CATALOG_PATH", "")
os.environ.setdefault("PVE_LOG_LEVEL", "WARNING")

import pytest
from httpx import ASGITransport, AsyncClient

from pvedash.config import Settings
from pvedash.services.cache import TTLCache
from tests.mock_executor import MockRemoteExecutor


class FakeClock:
    """Manually advanced monotonic clock for cache tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def settings(tmp_path):
    return Settings(
        pve_ssh_options=[],
        pve_api_key="",
        pve_catalog_path="",
        pve_scripts_dir=str(tmp_path / "scripts"),
        pve_pass_deadline_seconds=5.0,
        pve_enrichment_timeout_seconds=1.0,
        pve_command_timeout_seconds=2.0,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(settings, clock):
    return TTLCache(settings.cache_durations(), max_entries=64, clock=clock)


@pytest.fixture
def mock_executor(settings):
    """Provide a fresh MockRemoteExecutor."""
    return MockRemoteExecutor(settings)


@pytest.fixture
def services(settings, mock_executor, cache):
    from pvedash.dependencies import build_services

    return build_services(settings, executor=mock_executor, cache=cache)


@pytest.fixture
async def client(services):
    """Async test client with the mock executor injected."""
    from pvedash.main import create_app

    app = create_app(services=services)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
