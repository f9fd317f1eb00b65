from __future__ import annotations

import asyncio
from datetime import datetime, timezone

from app import ReportOnlyFormFiller, build_automation_context, resolve_solver_backend
from domain.models import (
    AntiCaptchaBackend,
    AppConfig,
    CaptchaSettings,
    JobPostingRef,
    SolverBackend,
    SolverCredential,
    TwoCaptchaBackend,
)
from domain.services import FieldDiscoveryEngine
from test.mocks import (
    FakePageHost,
    FakeTabHost,
    FixedClock,
    InMemoryChallengeSessionRepository,
    InMemoryLogger,
    InMemorySolverCredentialRepository,
    RecordingFormFiller,
    ScriptedSolver,
    SequentialIdGenerator,
)

_NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def _credentials(*backends: str) -> InMemorySolverCredentialRepository:
    repo = InMemorySolverCredentialRepository()
    for name in backends:
        repo.upsert(SolverCredential(backend=name, api_key=f"{name}-db", updated_at=_NOW))
    return repo


# -- resolve_solver_backend -----------------------------------------------------------


def test_no_solver_named_means_no_backend() -> None:
    assert resolve_solver_backend(AppConfig(), _credentials("2captcha")) is None


def test_configured_backend_wins_over_stored_key() -> None:
    config = AppConfig(
        captcha=CaptchaSettings(solver="2captcha"),
        solvers={"2captcha": TwoCaptchaBackend(api_key="from-config")},
    )
    assert resolve_solver_backend(config, _credentials("2captcha")) == TwoCaptchaBackend(
        api_key="from-config"
    )


def test_stored_key_is_used_when_not_configured() -> None:
    config = AppConfig(captcha=CaptchaSettings(solver="anti-captcha"))
    assert resolve_solver_backend(config, _credentials("anti-captcha")) == AntiCaptchaBackend(
        api_key="anti-captcha-db"
    )


def test_named_solver_without_any_key() -> None:
    config = AppConfig(captcha=CaptchaSettings(solver="capsolver"))
    assert resolve_solver_backend(config, _credentials()) is None


# -- build_automation_context ----------------------------------------------------------


def _build(config: AppConfig, credentials: InMemorySolverCredentialRepository, solver_factory=None):
    logger = InMemoryLogger()
    context = build_automation_context(
        config,
        page=FakePageHost("<input name='email'>"),
        tabs=FakeTabHost(),
        filler=RecordingFormFiller(),
        session_repo=InMemoryChallengeSessionRepository(),
        credential_repo=credentials,
        clock=FixedClock(_NOW),
        id_generator=SequentialIdGenerator(),
        logger=logger,
        solver_factory=solver_factory,
    )
    return context, logger


def test_solver_factory_receives_resolved_backend() -> None:
    seen: list[SolverBackend] = []

    def _factory(backend: SolverBackend) -> ScriptedSolver:
        seen.append(backend)
        return ScriptedSolver()

    config = AppConfig(captcha=CaptchaSettings(auto_solve=True, solver="2captcha"))
    context, logger = _build(config, _credentials("2captcha"), _factory)

    assert seen == [TwoCaptchaBackend(api_key="2captcha-db")]
    assert "challenge_solver_unavailable" not in logger.messages("warning")
    assert context.router is not None


def test_auto_solve_without_key_is_logged() -> None:
    config = AppConfig(captcha=CaptchaSettings(auto_solve=True, solver="capsolver"))
    _, logger = _build(config, _credentials(), lambda backend: ScriptedSolver())
    assert "challenge_solver_unavailable" in logger.messages("warning")


def test_context_start_and_shutdown() -> None:
    context, logger = _build(AppConfig(), _credentials())

    async def _run() -> None:
        context.start()
        watch = context.track(context.detector.watch(lambda challenge: None, interval=0.01))
        assert watch.running is True
        await context.shutdown()
        await asyncio.sleep(0)
        assert watch.running is False
        assert context.watches == []

    asyncio.run(_run())
    assert logger.messages("info")[-1] == "automation_context_shutdown"


# -- ReportOnlyFormFiller --------------------------------------------------------------


def test_report_only_filler_lists_empty_required_fields() -> None:
    page = FakePageHost(
        '<label for="fn">First name</label><input id="fn" name="first_name" required>'
        '<label for="em">Email</label><input id="em" name="email" required value="a@b.co">'
        '<label for="cl">Cover letter</label><textarea id="cl" name="cover"></textarea>'
    )
    logger = InMemoryLogger()

    async def _run():
        context = await FieldDiscoveryEngine(page=page, logger=logger).discover()
        job = JobPostingRef(company_name="Acme", job_title="Engineer", job_url=page.url)
        return await ReportOnlyFormFiller(logger).fill(context, job)

    report = asyncio.run(_run())

    assert report.filled == ()
    assert report.unfilled_required == ("First name",)
    classified = logger.fields_for("field_classified")
    assert [f["field_type"] for f in classified][:2] == ["first_name", "email"]
