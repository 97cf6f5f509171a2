"""Tests for the verified/purged listener registry."""

from types import SimpleNamespace

import pytest

from verifystate.datatypes.verification_datatypes import VerificationTier
from verifystate.verification.events import VerificationEvents


@pytest.fixture
def events() -> VerificationEvents:
    return VerificationEvents()


@pytest.fixture
def member():
    return SimpleNamespace(id=1, guild=SimpleNamespace(id=2))


@pytest.mark.asyncio
async def test_listeners_run_in_subscription_order(events, member):
    calls = []
    events.on_verified(lambda m, t: calls.append(("first", t)))
    events.on_verified(lambda m, t: calls.append(("second", t)))

    await events.emit_verified(member, VerificationTier.HIGH)

    assert calls == [("first", VerificationTier.HIGH), ("second", VerificationTier.HIGH)]


@pytest.mark.asyncio
async def test_async_listeners_are_awaited(events, member):
    calls = []

    async def listener(m):
        calls.append(m)

    events.on_purged(listener)
    await events.emit_purged(member)

    assert calls == [member]


@pytest.mark.asyncio
async def test_failing_listener_does_not_stop_the_rest(events, member):
    calls = []

    def broken(m, t):
        raise RuntimeError("listener bug")

    async def broken_async(m, t):
        raise RuntimeError("async listener bug")

    events.on_verified(broken)
    events.on_verified(broken_async)
    events.on_verified(lambda m, t: calls.append(t))

    await events.emit_verified(member, VerificationTier.LOW)

    assert calls == [VerificationTier.LOW]


@pytest.mark.asyncio
async def test_unsubscribe_removes_listener(events, member):
    calls = []
    unsubscribe = events.on_purged(lambda m: calls.append(m))

    unsubscribe()
    unsubscribe()
    await events.emit_purged(member)

    assert calls == []
    assert events.listener_count("purged") == 0


@pytest.mark.asyncio
async def test_listener_unsubscribing_during_emit_still_runs_others(events, member):
    calls = []
    holder = {}

    def once(m, t):
        calls.append("once")
        holder["unsubscribe"]()

    holder["unsubscribe"] = events.on_verified(once)
    events.on_verified(lambda m, t: calls.append("always"))

    await events.emit_verified(member, VerificationTier.MEDIUM)
    await events.emit_verified(member, VerificationTier.MEDIUM)

    assert calls == ["once", "always", "always"]


def test_event_kinds_are_independent(events):
    events.on_verified(lambda m, t: None)

    assert events.listener_count("verified") == 1
    assert events.listener_count("purged") == 0
    assert events.remove_purged_listener(lambda m: None) is False


def test_unknown_event_kind(events):
    with pytest.raises(ValueError):
        events.listener_count("joined")  # type: ignore[arg-type]
