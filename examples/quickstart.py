#!/usr/bin/env python3
"""
chatrelay Quickstart — one query, start to finish.

Registers a worker → sends a query → plays the worker (poll, answer)
→ prints the answer the caller received.
Run with: python examples/quickstart.py

Requires: pip install httpx
Relay must be running: http://localhost:3000
"""

import sys
import time
from concurrent.futures import ThreadPoolExecutor

from _common import create_client, register_worker


def play_worker(client, api_key: str, attempts: int = 20) -> dict:
    """Poll until the query shows up, then answer it."""
    for _ in range(attempts):
        resp = client.get(f"/poll/{api_key}")
        assert resp.status_code == 200, f"Poll failed: {resp.text}"
        work = resp.json()
        if work.get("requestId"):
            answer = f"You asked: {work['message']!r}"
            resp = client.post(
                f"/response/{api_key}/{work['requestId']}",
                json={"response": answer, "error": None},
            )
            assert resp.status_code == 200, f"Post failed: {resp.text}"
            return work
        time.sleep(0.2)
    print("ERROR: the query never reached the worker queue")
    sys.exit(1)


def main():
    client = create_client()

    # ── Register ──────────────────────────────────────────────────
    print("\n1. Registering worker...")
    api_key = register_worker(client, identity="quickstart")

    resp = client.get(f"/api/status/{api_key}")
    print(f"   Active: {resp.json()['active']}")

    # ── Query (blocks until answered, so run it on a thread) ──────
    print("\n2. Sending query...")
    with ThreadPoolExecutor(max_workers=1) as pool:
        pending = pool.submit(
            client.post,
            "/api/query",
            json={"apiKey": api_key, "message": "What is a relay?", "newConversation": True},
        )

        # ── Worker side ───────────────────────────────────────────
        print("\n3. Worker polling...")
        work = play_worker(client, api_key)
        print(f"   Got request {work['requestId']} (newConversation={work['newConversation']})")

        resp = pending.result()

    assert resp.status_code == 200, f"Query failed: {resp.text}"
    result = resp.json()

    # ── Done ──────────────────────────────────────────────────────
    print(f"\n✓ Caller received: {result['response']}")


if __name__ == "__main__":
    main()
