from __future__ import annotations

from abc import abstractmethod
from datetime import datetime
from typing import Any, Awaitable, Callable, Protocol, Sequence, runtime_checkable

from domain.models import (
    AppConfig,
    ChallengeInfo,
    ChallengeSession,
    FillReport,
    FormContext,
    JobPostingRef,
    RunContext,
    SolveOutcome,
    SolverCredential,
    TabEvent,
    TabInfo,
    TokenInjection,
)
from domain.page import PageSnapshot

TabEventListener = Callable[[TabEvent], Awaitable[None]]
Unsubscribe = Callable[[], None]


@runtime_checkable
class PageHostPort(Protocol):
    """
    The page runtime the automation core operates against.

    ``snapshot`` must not mutate the page; ``inject_token`` is the only
    writing operation and is used after a challenge was solved remotely.
    """

    async def current_url(self) -> str:
        ...

    async def snapshot(self) -> PageSnapshot:
        ...

    async def inject_token(self, injection: TokenInjection) -> bool:
        ...

    async def show_overlay(self, title: str, message: str, duration_seconds: float) -> None:
        ...

    async def take_screenshot(self, step_name: str) -> bytes:
        ...


@runtime_checkable
class TabHostPort(Protocol):
    """Browser-wide tab lifecycle: lookups, focus, close and event feed."""

    async def get_tab(self, tab_id: int) -> TabInfo | None:
        ...

    async def close_tab(self, tab_id: int) -> None:
        ...

    async def activate_tab(self, tab_id: int) -> None:
        ...

    async def focus_window(self, window_id: int) -> None:
        ...

    def subscribe(self, listener: TabEventListener) -> Unsubscribe:
        ...


@runtime_checkable
class ChallengeSolverPort(Protocol):
    """A configured paid solving backend."""

    @property
    def backend_name(self) -> str:
        ...

    async def solve(self, challenge: ChallengeInfo) -> SolveOutcome:
        ...

    async def balance(self) -> float:
        ...


@runtime_checkable
class NotifierPort(Protocol):
    """Best-effort user notification (console, Telegram, OS popup)."""

    async def notify(self, title: str, message: str) -> None:
        ...


@runtime_checkable
class FormFillerPort(Protocol):
    """External collaborator that enters profile data into discovered fields."""

    async def fill(self, context: FormContext, job: JobPostingRef) -> FillReport:
        ...


@runtime_checkable
class ChallengeSessionRepositoryPort(Protocol):
    """Per-domain cache of sites whose challenge was already cleared."""

    @abstractmethod
    def get(self, domain: str) -> ChallengeSession | None:
        ...

    @abstractmethod
    def save(self, session: ChallengeSession) -> None:
        ...

    @abstractmethod
    def delete(self, domain: str) -> None:
        ...

    @abstractmethod
    def list_all(self) -> Sequence[ChallengeSession]:
        ...

    @abstractmethod
    def prune_expired(self, now: datetime) -> int:
        ...

    @abstractmethod
    def clear(self) -> None:
        ...


@runtime_checkable
class SolverCredentialRepositoryPort(Protocol):
    """Store solving-backend API keys keyed by backend name."""

    @abstractmethod
    def upsert(self, credential: SolverCredential) -> None:
        ...

    @abstractmethod
    def get(self, backend: str) -> SolverCredential | None:
        ...

    @abstractmethod
    def list_all(self) -> Sequence[SolverCredential]:
        ...

    @abstractmethod
    def delete(self, backend: str) -> None:
        ...


@runtime_checkable
class ConfigProviderPort(Protocol):
    """Read-only access to validated application configuration."""

    def get_config(self) -> AppConfig:
        ...

    def validate(self) -> list[str]:
        ...


@runtime_checkable
class DebugArtifactStorePort(Protocol):
    """Where per-step debug screenshots end up."""

    def ensure_run_directory(self, run_context: RunContext) -> str:
        ...

    def save_screenshot(
        self,
        run_context: RunContext,
        step_name: str,
        image_bytes: bytes,
    ) -> str:
        ...


@runtime_checkable
class ClockPort(Protocol):
    """Time source for deterministic and easily testable code."""

    def now(self) -> datetime:
        ...


@runtime_checkable
class IdGeneratorPort(Protocol):
    """Generation of stable identifiers for runs, sessions and challenges."""

    def new_run_id(self) -> str:
        ...

    def new_session_id(self) -> str:
        ...

    def new_challenge_id(self) -> str:
        ...


@runtime_checkable
class LoggerPort(Protocol):
    """Structured, testable logging abstraction."""

    def info(self, message: str, **fields: Any) -> None:
        ...

    def warning(self, message: str, **fields: Any) -> None:
        ...

    def error(self, message: str, **fields: Any) -> None:
        ...


__all__ = [
    "TabEventListener",
    "Unsubscribe",
    "PageHostPort",
    "TabHostPort",
    "ChallengeSolverPort",
    "NotifierPort",
    "FormFillerPort",
    "ChallengeSessionRepositoryPort",
    "SolverCredentialRepositoryPort",
    "ConfigProviderPort",
    "DebugArtifactStorePort",
    "ClockPort",
    "IdGeneratorPort",
    "LoggerPort",
]
