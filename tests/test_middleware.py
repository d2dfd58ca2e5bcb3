"""Tests for request ID middleware."""

import pytest

from chatrelay.middleware.request_id import _redact_path


@pytest.mark.asyncio
async def test_request_id_generated(client):
    """Each request gets a unique X-Request-ID header."""
    r1 = await client.get("/health")
    r2 = await client.get("/health")
    assert "X-Request-ID" in r1.headers
    assert "X-Request-ID" in r2.headers
    assert r1.headers["X-Request-ID"] != r2.headers["X-Request-ID"]


@pytest.mark.asyncio
async def test_request_id_propagated(client):
    """Incoming X-Request-ID is propagated through the response."""
    custom_id = "test-trace-12345"
    r = await client.get("/health", headers={"X-Request-ID": custom_id})
    assert r.headers["X-Request-ID"] == custom_id


@pytest.mark.asyncio
async def test_request_id_on_error_responses(client):
    r = await client.get("/poll/unknown")
    assert r.status_code == 404
    assert "X-Request-ID" in r.headers


@pytest.mark.parametrize(
    "path,expected",
    [
        ("/poll/abcdefghijklmnop", "/poll/abcdefgh..."),
        ("/response/abcdefghijklmnop/123", "/response/abcdefgh.../123"),
        ("/api/status/abcdefghijklmnop", "/api/status/abcdefgh..."),
        ("/api/query", "/api/query"),
        ("/health", "/health"),
    ],
)
def test_credentials_redacted_in_access_log(path, expected):
    assert _redact_path(path) == expected
