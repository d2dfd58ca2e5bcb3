"""Test fixtures — a fresh app and broker per test, with short timeouts.

Learn: The broker lives on app.state and is created by create_app(),
so every test gets an isolated in-memory registry just by building a
new app. Deadlines are shrunk to fractions of a second so timeout
paths run fast.

ASGITransport does not run the lifespan, so the background sweeper is
not started here; tests call broker.sweep_orphans() directly.
"""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from chatrelay.config import Settings
from chatrelay.main import create_app
from chatrelay.services.broker import RelayBroker

WORKER_ID = "ext1"
API_KEY = "abc"


@pytest.fixture()
def test_settings() -> Settings:
    return Settings(
        request_timeout_seconds=0.5,
        progress_log_interval_seconds=0.1,
        liveness_threshold_seconds=120.0,
        result_ttl_seconds=1.0,
        sweep_interval_seconds=0.05,
    )


@pytest.fixture()
def app(test_settings):
    return create_app(test_settings)


@pytest.fixture()
def broker(app) -> RelayBroker:
    return app.state.broker


@pytest_asyncio.fixture()
async def client(app):
    """HTTP client wired straight into the app — no network."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture()
async def registered(client):
    """Register the default worker and return its credential."""
    r = await client.post("/register", json={"extensionId": WORKER_ID, "apiKey": API_KEY})
    assert r.status_code == 200
    return API_KEY
