from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from domain import ClockPort, IdGeneratorPort, LoggerPort
from domain.models import RunContext
from domain.ports import DebugArtifactStorePort

LogEvent = tuple[str, str, dict[str, Any]]


class FixedClock:
    """Clock that only moves when a test advances it."""

    def __init__(self, now_value: datetime) -> None:
        self._now = now_value

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: float) -> None:
        self._now += timedelta(seconds=seconds)


class SequentialIdGenerator:
    """Ids share one counter so their creation order is visible in tests."""

    def __init__(self) -> None:
        self._counter = 0

    def _next(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}-{self._counter}"

    def new_run_id(self) -> str:
        return self._next("run")

    def new_session_id(self) -> str:
        return self._next("session")

    def new_challenge_id(self) -> str:
        return self._next("captcha")


class InMemoryLogger:
    def __init__(self) -> None:
        self.events: list[LogEvent] = []

    def _record(self, level: str, message: str, fields: dict[str, Any]) -> None:
        self.events.append((level, message, fields))

    def info(self, message: str, **fields: Any) -> None:
        self._record("info", message, fields)

    def warning(self, message: str, **fields: Any) -> None:
        self._record("warning", message, fields)

    def error(self, message: str, **fields: Any) -> None:
        self._record("error", message, fields)

    def messages(self, level: str | None = None) -> list[str]:
        return [m for lvl, m, _ in self.events if level is None or lvl == level]

    def fields_for(self, message: str) -> list[dict[str, Any]]:
        """Fields of every event logged under ``message``, oldest first."""
        return [fields for _, m, fields in self.events if m == message]


class InMemoryDebugArtifactStore:
    """Keeps screenshots in memory, keyed by run and step."""

    def __init__(self) -> None:
        self.saved: list[tuple[str, str, bytes]] = []
        self.started: list[str] = []

    def ensure_run_directory(self, run_context: RunContext) -> str:
        self.started.append(run_context.run_id)
        return run_context.log_directory or f"memory://{run_context.run_id}"

    def save_screenshot(self, run_context: RunContext, step_name: str, image_bytes: bytes) -> str:
        self.saved.append((run_context.run_id, step_name, image_bytes))
        step = sum(1 for run_id, _, _ in self.saved if run_id == run_context.run_id)
        return f"memory://{run_context.run_id}/{step:02d}_{step_name}"


_clock_check: ClockPort = FixedClock(datetime(2025, 1, 1))
_id_check: IdGeneratorPort = SequentialIdGenerator()
_logger_check: LoggerPort = InMemoryLogger()
_debug_store_check: DebugArtifactStorePort = InMemoryDebugArtifactStore()
