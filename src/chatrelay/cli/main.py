"""chatrelay CLI — run the relay, query it, or stand in for the extension.

Usage:
    chatrelay serve --port 3000                 # Run the relay server
    chatrelay keygen                            # Print a fresh API key
    chatrelay query KEY "what day is it?"       # Send a query, wait for the answer
    chatrelay status KEY                        # Is the worker for KEY alive?
    chatrelay health                            # Relay uptime + worker count
    chatrelay worker --credential KEY --echo    # Headless echo worker
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys
from typing import Optional

import click
import httpx

from chatrelay import __version__

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:3000"


def _api_url(url: Optional[str] = None) -> str:
    return (url or os.environ.get("CHATRELAY_API_URL", DEFAULT_API_URL)).rstrip("/")


def _client(url: Optional[str] = None, timeout: float = 30.0) -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the relay."""
    return httpx.AsyncClient(base_url=_api_url(url), timeout=timeout)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from synchronous Click handler.

    Handles nested event loops (e.g. when invoked via Click CliRunner
    inside an existing async context like tests) by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str)


def _fail(message: str) -> None:
    click.secho(f"Error: {message}", fg="red", err=True)
    sys.exit(1)


def _error_text(r: httpx.Response) -> str:
    try:
        return r.json().get("error") or r.text
    except ValueError:
        return r.text


url_option = click.option(
    "--url",
    envvar="CHATRELAY_API_URL",
    default=DEFAULT_API_URL,
    show_default=True,
    help="Relay base URL",
)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="chatrelay")
def main():
    """chatrelay — bridge HTTP queries to a browser chat session."""


# ---------------------------------------------------------------------------
# chatrelay serve
# ---------------------------------------------------------------------------


@main.command()
@click.option("--host", default=None, help="Bind address (default: CHATRELAY_HOST)")
@click.option("--port", type=int, default=None, help="Port (default: CHATRELAY_PORT)")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the relay server with uvicorn."""
    import uvicorn

    from chatrelay.config import settings

    uvicorn.run(
        "chatrelay.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


# ---------------------------------------------------------------------------
# chatrelay keygen
# ---------------------------------------------------------------------------


@main.command()
def keygen():
    """Print a fresh random API key for a worker."""
    from chatrelay.worker import generate_credential

    click.echo(generate_credential())


# ---------------------------------------------------------------------------
# chatrelay query
# ---------------------------------------------------------------------------


@main.command()
@click.argument("credential")
@click.argument("message")
@click.option("--new-conversation", "-n", is_flag=True, help="Start a fresh chat first")
@click.option("--timeout", type=float, default=200.0, show_default=True,
              help="Client-side HTTP timeout in seconds")
@click.option("--json", "as_json", is_flag=True, help="Print the raw JSON result")
@url_option
def query(credential: str, message: str, new_conversation: bool, timeout: float,
          as_json: bool, url: str):
    """Send MESSAGE to the worker behind CREDENTIAL and print the answer."""
    _run(_query_impl(credential, message, new_conversation, timeout, as_json, url))


async def _query_impl(credential: str, message: str, new_conversation: bool,
                      timeout: float, as_json: bool, url: str):
    async with _client(url, timeout=timeout) as c:
        try:
            r = await c.post("/api/query", json={
                "apiKey": credential,
                "message": message,
                "newConversation": new_conversation,
            })
        except httpx.HTTPError as e:
            _fail(f"relay unreachable at {_api_url(url)}: {e}")

        if r.status_code != 200:
            _fail(f"{r.status_code} {_error_text(r)}")

        data = r.json()
        if as_json:
            click.echo(_pretty_json(data))
        elif data.get("error"):
            _fail(f"worker reported: {data['error']}")
        else:
            click.echo(data.get("response", ""))

        if data.get("error"):
            sys.exit(1)


# ---------------------------------------------------------------------------
# chatrelay status / health
# ---------------------------------------------------------------------------


@main.command()
@click.argument("credential")
@url_option
def status(credential: str, url: str):
    """Show liveness of the worker behind CREDENTIAL."""
    _run(_get_json(f"/api/status/{credential}", url))


@main.command()
@url_option
def health(url: str):
    """Show relay health."""
    _run(_get_json("/health", url))


async def _get_json(path: str, url: str):
    async with _client(url) as c:
        try:
            r = await c.get(path)
        except httpx.HTTPError as e:
            _fail(f"relay unreachable at {_api_url(url)}: {e}")
        click.echo(_pretty_json(r.json()))
        if r.status_code != 200:
            sys.exit(1)


# ---------------------------------------------------------------------------
# chatrelay worker
# ---------------------------------------------------------------------------


@main.command()
@click.option("--credential", "-k", envvar="CHATRELAY_CREDENTIAL",
              help="API key to register (generated if omitted)")
@click.option("--identity", default="chatrelay-worker", show_default=True)
@click.option("--interval", type=float, default=6.0, show_default=True,
              help="Seconds between polls when idle")
@click.option("--echo", is_flag=True, help="Answer every query with its own text")
@url_option
def worker(credential: Optional[str], identity: str, interval: float, echo: bool, url: str):
    """Run a headless worker that polls the relay for queries."""
    from chatrelay.config import settings
    from chatrelay.logs import configure_logging
    from chatrelay.worker import WorkerClient, echo_handler, generate_credential

    if not echo:
        _fail("no handler selected, pass --echo (browser work needs the extension)")

    configure_logging(settings.log_level, json_output=settings.log_json)
    key = credential or generate_credential()
    if not credential:
        click.secho(f"Generated API key: {key}", fg="yellow")

    async def _worker_impl():
        async with WorkerClient(_api_url(url), key, identity=identity,
                                poll_interval=interval) as w:
            await w.run(echo_handler)

    try:
        _run(_worker_impl())
    except KeyboardInterrupt:
        click.echo("Worker stopped.")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    main()
