from __future__ import annotations

import asyncio

import pytest

from domain.errors import WaitTimeoutError
from domain.services import EventChannel, poll_until, wait_for_event
from test.mocks import InMemoryLogger


# -- EventChannel ----------------------------------------------------------------


def test_publish_reaches_every_subscriber() -> None:
    channel: EventChannel[int] = EventChannel("numbers", InMemoryLogger())
    a: list[int] = []
    b: list[int] = []
    channel.subscribe(a.append)
    channel.subscribe(b.append)

    channel.publish(7)

    assert a == [7] and b == [7]


def test_failing_subscriber_is_isolated_and_logged() -> None:
    logger = InMemoryLogger()
    channel: EventChannel[str] = EventChannel("words", logger)
    received: list[str] = []

    def _broken(_event: str) -> None:
        raise ValueError("boom")

    channel.subscribe(_broken)
    channel.subscribe(received.append)
    channel.publish("hello")

    assert received == ["hello"]
    level, message, fields = logger.events[0]
    assert (level, message) == ("error", "event_subscriber_failed")
    assert fields["channel"] == "words"
    assert fields["error"] == "boom"


def test_unsubscribe_stops_delivery_and_is_idempotent() -> None:
    channel: EventChannel[int] = EventChannel("n", InMemoryLogger())
    seen: list[int] = []
    unsubscribe = channel.subscribe(seen.append)

    unsubscribe()
    unsubscribe()
    channel.publish(1)

    assert seen == []
    assert channel.subscriber_count == 0


def test_subscriber_may_unsubscribe_during_publish() -> None:
    channel: EventChannel[int] = EventChannel("n", InMemoryLogger())
    seen: list[int] = []
    handles: list = []

    def _once(event: int) -> None:
        seen.append(event)
        handles[0]()

    handles.append(channel.subscribe(_once))
    channel.publish(1)
    channel.publish(2)

    assert seen == [1]


# -- poll_until ---------------------------------------------------------------------


def test_poll_until_returns_first_truthy_value() -> None:
    calls = {"n": 0}

    async def _check() -> str | None:
        calls["n"] += 1
        return "ready" if calls["n"] >= 3 else None

    result = asyncio.run(poll_until(_check, interval=0.001, timeout=1.0))
    assert result == "ready"
    assert calls["n"] == 3


def test_poll_until_times_out_with_description() -> None:
    async def _never() -> bool:
        return False

    with pytest.raises(WaitTimeoutError, match="the thing"):
        asyncio.run(poll_until(_never, interval=0.001, timeout=0.01, what="the thing"))


# -- wait_for_event --------------------------------------------------------------------


def test_wait_for_event_resolves_on_matching_event_and_unsubscribes() -> None:
    channel: EventChannel[int] = EventChannel("n", InMemoryLogger())

    async def _run() -> int:
        waiter = asyncio.ensure_future(
            wait_for_event(channel.subscribe, lambda e: e > 5, timeout=1.0)
        )
        await asyncio.sleep(0)
        channel.publish(3)
        channel.publish(9)
        channel.publish(12)
        return await waiter

    assert asyncio.run(_run()) == 9
    assert channel.subscriber_count == 0


def test_wait_for_event_timeout_releases_listener() -> None:
    channel: EventChannel[int] = EventChannel("n", InMemoryLogger())

    with pytest.raises(WaitTimeoutError):
        asyncio.run(wait_for_event(channel.subscribe, lambda e: True, timeout=0.01))
    assert channel.subscriber_count == 0
