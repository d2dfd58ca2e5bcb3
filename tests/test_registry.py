"""Registry tests — registration, lookup, liveness, eviction."""

import pytest

from chatrelay.services.errors import InvalidRequestError, WorkerNotFoundError
from chatrelay.services.registry import Registry, Result, WorkItem, is_live


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_register_creates_session():
    clock = FakeClock()
    reg = Registry(clock=clock)

    session = reg.register("ext1", "abc")

    assert session.identity == "ext1"
    assert session.credential == "abc"
    assert session.last_seen == clock.now
    assert session.registered_at == clock.now
    assert session.pending_count == 0
    assert len(reg) == 1
    assert "abc" in reg


def test_reregister_preserves_queue_and_results():
    clock = FakeClock()
    reg = Registry(clock=clock)
    session = reg.register("ext1", "abc")
    session.pending["r1"] = WorkItem(request_id="r1", message="hi")
    session.results["r0"] = Result(request_id="r0", response="hello")

    clock.now += 30
    again = reg.register("ext1-renamed", "abc")

    assert again is session
    assert again.identity == "ext1-renamed"
    assert again.last_seen == clock.now
    assert again.registered_at == clock.now - 30
    assert list(again.pending) == ["r1"]
    assert again.results["r0"].response == "hello"
    assert len(reg) == 1


@pytest.mark.parametrize("identity,credential", [("", "abc"), ("ext1", ""), ("", "")])
def test_register_requires_both_fields(identity, credential):
    reg = Registry()
    with pytest.raises(InvalidRequestError):
        reg.register(identity, credential)
    assert len(reg) == 0


def test_lookup_unknown_raises():
    with pytest.raises(WorkerNotFoundError):
        Registry().lookup("nope")


def test_touch_updates_last_seen():
    clock = FakeClock()
    reg = Registry(clock=clock)
    reg.register("ext1", "abc")

    clock.now += 90
    session = reg.touch("abc")

    assert session.last_seen == clock.now


def test_touch_unknown_raises():
    with pytest.raises(WorkerNotFoundError):
        Registry().touch("nope")


def test_is_live_threshold_is_exclusive():
    clock = FakeClock()
    session = Registry(clock=clock).register("ext1", "abc")

    assert is_live(session, clock.now + 119.9, 120)
    assert not is_live(session, clock.now + 120, 120)


def test_evict_removes_session():
    reg = Registry()
    reg.register("ext1", "abc")

    evicted = reg.evict("abc")

    assert evicted is not None and evicted.credential == "abc"
    assert "abc" not in reg
    assert reg.evict("abc") is None


def test_iteration_is_a_snapshot():
    reg = Registry()
    reg.register("a", "k1")
    reg.register("b", "k2")

    for session in reg:
        reg.evict(session.credential)

    assert len(reg) == 0
