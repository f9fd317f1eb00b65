"""Shared fixtures and context for BDD step definitions."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Iterator, TypeVar

import pytest

from app import build_automation_context
from domain.models import (
    AppConfig,
    AttemptOutcome,
    CaptchaSettings,
    ChallengeInfo,
    FormContext,
    ResolutionOutcome,
    ResolverEventType,
    TabCoordinatorSettings,
    TabSession,
)
from domain.services import AutomationContext
from test.mocks import (
    FakePageHost,
    FakeTabHost,
    FixedClock,
    InMemoryChallengeSessionRepository,
    InMemoryLogger,
    InMemorySolverCredentialRepository,
    RecordingFormFiller,
    SequentialIdGenerator,
)

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)

T = TypeVar("T")


def _captcha_settings() -> CaptchaSettings:
    return CaptchaSettings(human_poll_interval_seconds=0.001, human_max_wait_seconds=1.0)


def _tab_settings() -> TabCoordinatorSettings:
    return TabCoordinatorSettings(poll_interval_seconds=0.001)


@dataclass
class FlowContext:
    """
    Holds mutable state shared across BDD steps.

    Steps run on one event loop owned by the context so that tab listeners
    and timers created in a ``When`` step are still alive in the next one.
    """

    html: str = "<form></form>"
    url: str = "https://jobs.example.com/apply"
    captcha: CaptchaSettings = field(default_factory=_captcha_settings)
    tab_settings: TabCoordinatorSettings = field(default_factory=_tab_settings)
    tabs: FakeTabHost = field(default_factory=FakeTabHost)
    session_repo: InMemoryChallengeSessionRepository = field(
        default_factory=InMemoryChallengeSessionRepository,
    )
    filler: RecordingFormFiller = field(default_factory=RecordingFormFiller)
    logger: InMemoryLogger = field(default_factory=InMemoryLogger)
    loop: asyncio.AbstractEventLoop = field(default_factory=asyncio.new_event_loop)
    page: FakePageHost | None = None
    automation: AutomationContext | None = None
    form: FormContext | None = None
    challenge: ChallengeInfo | None = None
    resolution: ResolutionOutcome | None = None
    session: TabSession | None = None
    attempt: AttemptOutcome | None = None
    resolver_events: list[ResolverEventType] = field(default_factory=list)

    def build(self) -> AutomationContext:
        """Wire the services on first use; ``Given`` steps configure before this."""
        if self.automation is None:
            self.page = FakePageHost(self.html, url=self.url)
            self.automation = build_automation_context(
                AppConfig(captcha=self.captcha, tabs=self.tab_settings),
                page=self.page,
                tabs=self.tabs,
                filler=self.filler,
                session_repo=self.session_repo,
                credential_repo=InMemorySolverCredentialRepository(),
                clock=FixedClock(NOW),
                id_generator=SequentialIdGenerator(),
                logger=self.logger,
            )
            self.automation.resolver.events.subscribe(
                lambda event: self.resolver_events.append(event.type)
            )
            self.automation.start()
        return self.automation

    def run(self, awaitable: Awaitable[T]) -> T:
        return self.loop.run_until_complete(awaitable)

    def close(self) -> None:
        if self.automation is not None:
            self.run(self.automation.shutdown())
        self.loop.close()


@pytest.fixture()
def ctx() -> Iterator[FlowContext]:
    context = FlowContext()
    yield context
    context.close()


def settle(flow: FlowContext, rounds: int = 5) -> None:
    """Let callbacks scheduled by tab events run."""

    async def _yield() -> Any:
        for _ in range(rounds):
            await asyncio.sleep(0)

    flow.run(_yield())
