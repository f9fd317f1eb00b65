from __future__ import annotations

from typing import Any, Awaitable, Callable, Iterable, Mapping

from domain import ChallengeSolverPort, FormFillerPort, NotifierPort
from domain.models import ChallengeInfo, FillReport, FormContext, JobPostingRef, SolveOutcome


class ScriptedSolver:
    """Solver that hands out pre-programmed outcomes in order."""

    def __init__(
        self,
        outcomes: Iterable[SolveOutcome] = (),
        *,
        backend_name: str = "2captcha",
        balance: float = 3.5,
    ) -> None:
        self._outcomes = list(outcomes)
        self._backend_name = backend_name
        self._balance = balance
        self.calls: list[ChallengeInfo] = []

    @property
    def backend_name(self) -> str:
        return self._backend_name

    async def solve(self, challenge: ChallengeInfo) -> SolveOutcome:
        self.calls.append(challenge)
        if not self._outcomes:
            return SolveOutcome(success=False, error="no scripted outcome")
        return self._outcomes.pop(0)

    async def balance(self) -> float:
        return self._balance


class RecordingNotifier:
    def __init__(self, *, error: Exception | None = None) -> None:
        self.messages: list[tuple[str, str]] = []
        self._error = error

    async def notify(self, title: str, message: str) -> None:
        if self._error is not None:
            raise self._error
        self.messages.append((title, message))


class RecordingFormFiller:
    """Returns a fixed report; ``on_fill`` lets a test act while filling runs."""

    def __init__(
        self,
        report: FillReport | None = None,
        *,
        on_fill: Callable[[FormContext, JobPostingRef], Awaitable[None]] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.report = report or FillReport()
        self.on_fill = on_fill
        self.error = error
        self.contexts: list[FormContext] = []

    async def fill(self, context: FormContext, job: JobPostingRef) -> FillReport:
        self.contexts.append(context)
        if self.on_fill is not None:
            await self.on_fill(context, job)
        if self.error is not None:
            raise self.error
        return self.report


class FakeJsonHttp:
    """``JsonHttpClient`` replaying queued JSON replies per HTTP method."""

    def __init__(
        self,
        *,
        get_replies: Iterable[Any] = (),
        post_replies: Iterable[Any] = (),
    ) -> None:
        self.get_replies = list(get_replies)
        self.post_replies = list(post_replies)
        self.gets: list[tuple[str, dict[str, str]]] = []
        self.posts: list[tuple[str, dict[str, Any]]] = []

    async def get_json(self, url: str, params: Mapping[str, str]) -> Any:
        self.gets.append((url, dict(params)))
        reply = self.get_replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def post_json(self, url: str, payload: Mapping[str, Any]) -> Any:
        self.posts.append((url, dict(payload)))
        reply = self.post_replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


async def no_sleep(_seconds: float) -> None:
    return None


_solver_check: ChallengeSolverPort = ScriptedSolver()
_notifier_check: NotifierPort = RecordingNotifier()
_filler_check: FormFillerPort = RecordingFormFiller()
