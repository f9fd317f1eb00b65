from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Sequence

from domain.models import SOLVER_BACKENDS, AppConfig, SolverBackend, SolverCredential
from domain.ports import (
    ChallengeSessionRepositoryPort,
    ChallengeSolverPort,
    ClockPort,
    LoggerPort,
    SolverCredentialRepositoryPort,
)


@dataclass(frozen=True)
class SolverKeyView:
    backend: str
    api_key_masked: str
    source: str
    updated_at: datetime | None = None


@dataclass(frozen=True)
class ChallengeSessionView:
    domain: str
    challenge_type: str
    solved_at: datetime
    expires_at: datetime
    valid: bool


class AdminFacade:
    """
    UI-facing facade for the CLI: cached challenge sessions and solver keys.
    """

    def __init__(
        self,
        *,
        session_repo: ChallengeSessionRepositoryPort,
        credential_repo: SolverCredentialRepositoryPort,
        clock: ClockPort,
        logger: LoggerPort,
        config: AppConfig | None = None,
        solver_factory: Callable[[SolverBackend], ChallengeSolverPort] | None = None,
    ) -> None:
        self._session_repo = session_repo
        self._credential_repo = credential_repo
        self._clock = clock
        self._logger = logger
        self._config = config or AppConfig()
        self._solver_factory = solver_factory

    # -- challenge sessions -------------------------------------------------

    def list_sessions(self) -> Sequence[ChallengeSessionView]:
        now = self._clock.now()
        return [
            ChallengeSessionView(
                domain=s.domain,
                challenge_type=s.challenge_type.value,
                solved_at=s.solved_at,
                expires_at=s.expires_at,
                valid=s.is_valid(now),
            )
            for s in self._session_repo.list_all()
        ]

    def clear_sessions(self) -> int:
        count = len(self._session_repo.list_all())
        self._session_repo.clear()
        self._logger.info("challenge_sessions_cleared", count=count)
        return count

    # -- solver keys ----------------------------------------------------------

    def set_solver_key(
        self,
        backend: str,
        api_key: str,
        *,
        timeout_seconds: float = 120.0,
        poll_interval_seconds: float = 5.0,
    ) -> SolverKeyView:
        if backend not in SOLVER_BACKENDS:
            raise ValueError(
                f"Unknown solver backend {backend!r}; expected one of {', '.join(SOLVER_BACKENDS)}"
            )
        if not api_key.strip():
            raise ValueError("API key must not be empty")
        credential = SolverCredential(
            backend=backend,
            api_key=api_key.strip(),
            updated_at=self._clock.now(),
            timeout_seconds=timeout_seconds,
            poll_interval_seconds=poll_interval_seconds,
        )
        self._credential_repo.upsert(credential)
        self._logger.info("solver_key_stored", backend=backend)
        return SolverKeyView(
            backend=backend,
            api_key_masked=self._mask_secret(credential.api_key),
            source="database",
            updated_at=credential.updated_at,
        )

    def remove_solver_key(self, backend: str) -> None:
        self._credential_repo.delete(backend)
        self._logger.info("solver_key_removed", backend=backend)

    def list_solver_keys(self) -> Sequence[SolverKeyView]:
        views: dict[str, SolverKeyView] = {}
        for cred in self._credential_repo.list_all():
            views[cred.backend] = SolverKeyView(
                backend=cred.backend,
                api_key_masked=self._mask_secret(cred.api_key),
                source="database",
                updated_at=cred.updated_at,
            )
        # config.json wins over stored keys
        for name, backend in self._config.solvers.items():
            views[name] = SolverKeyView(
                backend=name,
                api_key_masked=self._mask_secret(backend.api_key),
                source="config",
            )
        return [views[name] for name in sorted(views)]

    async def solver_balance(self, backend: str) -> float:
        configured = self._config.solvers.get(backend)
        if configured is None:
            stored = self._credential_repo.get(backend)
            if stored is None:
                raise ValueError(f"No API key stored for {backend}")
            configured = stored.to_backend()
        if self._solver_factory is None:
            raise ValueError("No solver client available")
        return await self._solver_factory(configured).balance()

    @staticmethod
    def _mask_secret(value: str) -> str:
        if not value:
            return ""
        if len(value) <= 3:
            return "*" * len(value)
        return value[0] + ("*" * (len(value) - 2)) + value[-1]
