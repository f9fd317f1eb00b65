from __future__ import annotations

from typing import Callable, Generic, TypeVar

from domain.ports import LoggerPort, Unsubscribe

T = TypeVar("T")


class EventChannel(Generic[T]):
    """
    Typed publish/subscribe fan-out.

    Each subscriber is invoked in isolation: an exception raised by one
    callback is logged and the remaining subscribers still receive the event.
    """

    def __init__(self, name: str, logger: LoggerPort) -> None:
        self._name = name
        self._logger = logger
        self._subscribers: list[Callable[[T], None]] = []

    def subscribe(self, callback: Callable[[T], None]) -> Unsubscribe:
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def publish(self, event: T) -> None:
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception as exc:
                self._logger.error(
                    "event_subscriber_failed",
                    channel=self._name,
                    event=repr(event),
                    error=str(exc),
                )

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def clear(self) -> None:
        self._subscribers.clear()
