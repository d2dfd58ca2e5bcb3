"""
Shared helpers for chatrelay examples.

Handles the health check and worker registration so each example can
focus on its specific workflow.
"""

import os
import secrets
import sys

import httpx

BASE = os.environ.get("CHATRELAY_API_URL", "http://localhost:3000").rstrip("/")


def check_relay() -> dict:
    """Verify the relay is reachable and healthy."""
    try:
        resp = httpx.get(f"{BASE}/health", timeout=5)
    except httpx.ConnectError:
        print(f"ERROR: Relay not reachable at {BASE}")
        print("Start it with:  chatrelay serve --port 3000")
        sys.exit(1)

    if resp.status_code != 200:
        print(f"ERROR: Health check returned {resp.status_code}")
        sys.exit(1)

    health = resp.json()
    print("Relay health:")
    print(f"  Version: {health['version']}")
    print(f"  Uptime:  {health['uptime']:.0f}s")
    print(f"  Workers: {health['activeWorkerCount']}")
    return health


def register_worker(client: httpx.Client, identity: str = "example-worker") -> str:
    """Register a fresh worker credential and return it."""
    api_key = secrets.token_hex(32)
    resp = client.post("/register", json={"extensionId": identity, "apiKey": api_key})
    if resp.status_code != 200:
        print(f"ERROR: Registration failed: {resp.status_code} {resp.text}")
        sys.exit(1)
    print(f"  Worker:  {identity} ({api_key[:8]}...)")
    return api_key


def create_client(timeout: float = 200) -> httpx.Client:
    """Check the relay and return an httpx Client pointed at it."""
    check_relay()
    return httpx.Client(base_url=BASE, timeout=timeout)
