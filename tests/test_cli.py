"""CLI tests — click commands against a mocked relay.

Learn: The commands build their HTTP client through _client(), so the
tests swap in an httpx.MockTransport and assert on what the command
printed and how it exited. No server, no network.
"""

import json

import httpx
import pytest
from click.testing import CliRunner

from chatrelay import __version__
from chatrelay.cli import main as cli


def _mock_relay(monkeypatch, handler):
    """Route every CLI request through `handler` and record them."""
    seen = []

    def recording(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    def fake_client(url=None, timeout=30.0):
        return httpx.AsyncClient(
            transport=httpx.MockTransport(recording), base_url="http://test"
        )

    monkeypatch.setattr(cli, "_client", fake_client)
    return seen


@pytest.fixture()
def runner():
    return CliRunner()


def test_version(runner):
    result = runner.invoke(cli.main, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_keygen(runner):
    result = runner.invoke(cli.main, ["keygen"])
    assert result.exit_code == 0
    key = result.output.strip()
    assert len(key) == 64
    int(key, 16)


# ═══════════════════════════════════════════════════════════
# query
# ═══════════════════════════════════════════════════════════


def test_query_prints_answer(runner, monkeypatch):
    seen = _mock_relay(
        monkeypatch,
        lambda req: httpx.Response(200, json={"requestId": "r1", "response": "Tuesday", "error": None}),
    )

    result = runner.invoke(cli.main, ["query", "abc", "what day is it?", "-n"])

    assert result.exit_code == 0
    assert result.output.strip() == "Tuesday"
    assert seen[0].url.path == "/api/query"
    assert json.loads(seen[0].content) == {
        "apiKey": "abc",
        "message": "what day is it?",
        "newConversation": True,
    }


def test_query_json_output(runner, monkeypatch):
    payload = {"requestId": "r1", "response": "ok", "error": None, "completedAt": 1.0}
    _mock_relay(monkeypatch, lambda req: httpx.Response(200, json=payload))

    result = runner.invoke(cli.main, ["query", "abc", "hi", "--json"])

    assert result.exit_code == 0
    assert json.loads(result.output) == payload


def test_query_worker_error_exits_nonzero(runner, monkeypatch):
    _mock_relay(
        monkeypatch,
        lambda req: httpx.Response(200, json={"requestId": "r1", "response": None, "error": "tab closed"}),
    )

    result = runner.invoke(cli.main, ["query", "abc", "hi"])

    assert result.exit_code == 1
    assert "tab closed" in result.output


def test_query_relay_error_exits_nonzero(runner, monkeypatch):
    _mock_relay(monkeypatch, lambda req: httpx.Response(404, json={"error": "Extension not found"}))

    result = runner.invoke(cli.main, ["query", "nope", "hi"])

    assert result.exit_code == 1
    assert "404 Extension not found" in result.output


def test_query_relay_unreachable(runner, monkeypatch):
    def refuse(req):
        raise httpx.ConnectError("connection refused", request=req)

    _mock_relay(monkeypatch, refuse)

    result = runner.invoke(cli.main, ["query", "abc", "hi"])

    assert result.exit_code == 1
    assert "relay unreachable" in result.output


# ═══════════════════════════════════════════════════════════
# status / health
# ═══════════════════════════════════════════════════════════


def test_health(runner, monkeypatch):
    body = {"status": "ok", "version": __version__, "uptime": 3.0,
            "activeWorkerCount": 1, "timestamp": 10.0}
    seen = _mock_relay(monkeypatch, lambda req: httpx.Response(200, json=body))

    result = runner.invoke(cli.main, ["health"])

    assert result.exit_code == 0
    assert json.loads(result.output) == body
    assert seen[0].url.path == "/health"


def test_status_unknown_worker(runner, monkeypatch):
    seen = _mock_relay(
        monkeypatch,
        lambda req: httpx.Response(404, json={"active": False, "error": "Extension not found"}),
    )

    result = runner.invoke(cli.main, ["status", "abc"])

    assert result.exit_code == 1
    assert json.loads(result.output)["active"] is False
    assert seen[0].url.path == "/api/status/abc"


# ═══════════════════════════════════════════════════════════
# worker
# ═══════════════════════════════════════════════════════════


def test_worker_requires_handler(runner):
    result = runner.invoke(cli.main, ["worker", "--credential", "abc"])
    assert result.exit_code == 1
    assert "--echo" in result.output


def test_api_url_strips_trailing_slash(monkeypatch):
    monkeypatch.delenv("CHATRELAY_API_URL", raising=False)
    assert cli._api_url("http://relay:3000/") == "http://relay:3000"
    assert cli._api_url() == cli.DEFAULT_API_URL
