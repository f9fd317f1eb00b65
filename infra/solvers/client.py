from __future__ import annotations

import asyncio

from domain.models import ChallengeInfo, SolveOutcome, SolverBackend
from domain.ports import LoggerPort
from . import backends
from .backends import Sleep
from .http import JsonHttpClient, UrllibJsonClient


class PaidSolverClient:
    """``ChallengeSolverPort`` over one configured backend."""

    def __init__(
        self,
        backend: SolverBackend,
        logger: LoggerPort,
        *,
        http: JsonHttpClient | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._backend = backend
        self._logger = logger
        self._http = http or UrllibJsonClient()
        self._sleep = sleep

    @property
    def backend_name(self) -> str:
        return self._backend.name

    async def solve(self, challenge: ChallengeInfo) -> SolveOutcome:
        self._logger.info(
            "solver_task_submitted",
            backend=self.backend_name,
            challenge_type=challenge.type.value,
            page_url=challenge.page_url,
        )
        outcome = await backends.solve(challenge, self._backend, self._http, sleep=self._sleep)
        if outcome.success:
            self._logger.info(
                "solver_task_solved",
                backend=self.backend_name,
                task_id=outcome.task_id,
                elapsed_seconds=round(outcome.elapsed_seconds, 2),
            )
        else:
            self._logger.warning(
                "solver_task_failed",
                backend=self.backend_name,
                task_id=outcome.task_id,
                error=outcome.error,
            )
        return outcome

    async def balance(self) -> float:
        return await backends.balance(self._backend, self._http)
