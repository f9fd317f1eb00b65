"""
Single-resolution waits.

Every wait races a success signal against a deadline. Whichever fires first
wins and both the listener and the timer are released before returning.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

from domain.errors import WaitTimeoutError
from domain.ports import Unsubscribe

T = TypeVar("T")


async def poll_until(
    check: Callable[[], Awaitable[T | None]],
    *,
    interval: float,
    timeout: float,
    what: str = "condition",
) -> T:
    """Call ``check`` every ``interval`` seconds until it returns a value."""

    async def _loop() -> T:
        while True:
            result = await check()
            if result is not None and result is not False:
                return result
            await asyncio.sleep(interval)

    try:
        return await asyncio.wait_for(_loop(), timeout=timeout)
    except asyncio.TimeoutError:
        raise WaitTimeoutError(what, timeout) from None


async def wait_for_event(
    subscribe: Callable[[Callable[[T], None]], Unsubscribe],
    predicate: Callable[[T], bool],
    *,
    timeout: float,
    what: str = "event",
) -> T:
    """Resolve with the first event accepted by ``predicate``."""
    loop = asyncio.get_running_loop()
    future: asyncio.Future[T] = loop.create_future()

    def _listener(event: T) -> None:
        if not future.done() and predicate(event):
            future.set_result(event)

    unsubscribe = subscribe(_listener)
    try:
        return await asyncio.wait_for(future, timeout=timeout)
    except asyncio.TimeoutError:
        raise WaitTimeoutError(what, timeout) from None
    finally:
        unsubscribe()
