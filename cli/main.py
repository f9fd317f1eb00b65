from __future__ import annotations

import argparse
import asyncio
from datetime import timezone
from typing import Sequence

from app import AdminFacade, ReportOnlyFormFiller, build_automation_context
from app.bootstrap import SolverFactory
from domain.models import (
    AppConfig,
    AttemptOutcome,
    AttemptStatus,
    JobPostingRef,
    RunContext,
    SolverBackend,
)
from domain.services import FieldDiscoveryEngine, ObstacleDetector, infer_field_type
from infra.browser import PlaywrightBrowserSession
from infra.config import FileSystemConfigProvider
from infra.logs import FileSystemDebugArtifactStore
from infra.notify import build_notifier
from infra.persistence import SQLiteChallengeSessionRepository, SQLiteSolverCredentialRepository
from infra.runtime import StructuredLogger, SystemClock, UuidIdGenerator
from infra.solvers import PaidSolverClient


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="applyflow")
    parser.add_argument("--config-dir", default="./config", help="Path to config folder")
    parser.add_argument("--db-path", default=None, help="Overrides db_path from config.json")
    sub = parser.add_subparsers(dest="command", required=True)

    run_p = sub.add_parser("run", help="Run one automation attempt against a job URL")
    run_p.add_argument("job_url")
    run_p.add_argument("--company", required=True)
    run_p.add_argument("--title", required=True)
    run_p.add_argument("--debug", action="store_true")
    run_p.add_argument("--debug-artifacts-dir", default="logs")
    run_p.add_argument("--headless", action="store_true", default=True)
    run_p.add_argument("--no-headless", dest="headless", action="store_false")

    detect_p = sub.add_parser("detect", help="Print discovered fields and challenges for a URL")
    detect_p.add_argument("url")
    detect_p.add_argument("--headless", action="store_true", default=True)
    detect_p.add_argument("--no-headless", dest="headless", action="store_false")

    sessions_p = sub.add_parser("sessions", help="Cached challenge sessions")
    sessions_p.add_argument("action", choices=["list", "clear"])

    solver_p = sub.add_parser("solver", help="Paid solver API keys")
    solver_sub = solver_p.add_subparsers(dest="solver_action", required=True)
    set_p = solver_sub.add_parser("set-key")
    set_p.add_argument("backend")
    set_p.add_argument("api_key")
    set_p.add_argument("--timeout", type=float, default=120.0)
    set_p.add_argument("--poll-interval", type=float, default=5.0)
    solver_sub.add_parser("list")
    balance_p = solver_sub.add_parser("balance")
    balance_p.add_argument("backend")
    remove_p = solver_sub.add_parser("remove")
    remove_p.add_argument("backend")

    validate_p = sub.add_parser("validate", help="Validate config.json")
    validate_p.add_argument(
        "--skip-connectivity",
        action="store_true",
        help="Skip the Telegram connectivity check",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    config_provider = FileSystemConfigProvider(args.config_dir)

    if args.command == "validate":
        return _handle_validate(args, config_provider)

    errors = config_provider.validate()
    if errors:
        _print_errors(errors)
        return 1

    config = config_provider.get_config()
    db_path = args.db_path or config.db_path
    logger = StructuredLogger()
    clock = SystemClock()

    with SQLiteChallengeSessionRepository(db_path) as session_repo, \
            SQLiteSolverCredentialRepository(db_path) as credential_repo:

        def _solver_factory(backend: SolverBackend) -> PaidSolverClient:
            return PaidSolverClient(backend, logger)

        facade = AdminFacade(
            session_repo=session_repo,
            credential_repo=credential_repo,
            clock=clock,
            logger=logger,
            config=config,
            solver_factory=_solver_factory,
        )

        if args.command == "sessions":
            return _handle_sessions(args, facade)
        if args.command == "solver":
            return _handle_solver(args, facade)
        if args.command == "detect":
            return asyncio.run(_detect(args, config, logger))
        if args.command == "run":
            return asyncio.run(
                _run(args, config, session_repo, credential_repo, logger, clock, _solver_factory)
            )

    raise SystemExit(f"Unsupported command: {args.command}")


def _print_errors(errors: Sequence[str]) -> None:
    print("Config validation failed:")
    for err in errors:
        print(f"  - {err}")


def _handle_validate(args: argparse.Namespace, config_provider: FileSystemConfigProvider) -> int:
    errors = config_provider.validate()
    if errors:
        _print_errors(errors)
        return 1
    config = config_provider.get_config()
    print(f"Config OK: solver={config.captcha.solver or '-'} auto_solve={config.captcha.auto_solve}")
    print(f"Notifications: {config.notifications.channel}")
    print(f"Debug mode: {'ON' if config.debug_mode else 'OFF'}")
    if args.skip_connectivity:
        print("Skipping connectivity checks (--skip-connectivity)")
        return 0
    result = asyncio.run(config_provider.validate_connectivity())
    if not result.ok:
        print("Connectivity check failed:")
        for err in result.errors:
            print(f"  - {err}")
        return 1
    if result.bot_username:
        print(f"Telegram bot: @{result.bot_username}")
    return 0


def _handle_sessions(args: argparse.Namespace, facade: AdminFacade) -> int:
    if args.action == "clear":
        print(f"cleared {facade.clear_sessions()} session(s)")
        return 0
    for view in facade.list_sessions():
        expires = view.expires_at.astimezone(timezone.utc).isoformat()
        state = "valid" if view.valid else "expired"
        print(f"{view.domain} | {view.challenge_type} | {expires} | {state}")
    return 0


def _handle_solver(args: argparse.Namespace, facade: AdminFacade) -> int:
    try:
        if args.solver_action == "set-key":
            view = facade.set_solver_key(
                args.backend,
                args.api_key,
                timeout_seconds=args.timeout,
                poll_interval_seconds=args.poll_interval,
            )
            print(f"stored {view.backend} key {view.api_key_masked}")
        elif args.solver_action == "list":
            for view in facade.list_solver_keys():
                print(f"{view.backend} | {view.api_key_masked} | {view.source}")
        elif args.solver_action == "balance":
            amount = asyncio.run(facade.solver_balance(args.backend))
            print(f"{args.backend} balance: {amount:.2f}")
        elif args.solver_action == "remove":
            facade.remove_solver_key(args.backend)
            print(f"removed {args.backend} key")
    except ValueError as exc:
        print(f"error: {exc}")
        return 1
    return 0


async def _detect(args: argparse.Namespace, config: AppConfig, logger: StructuredLogger) -> int:
    async with PlaywrightBrowserSession(logger, headless=args.headless) as browser:
        await browser.goto(args.url)
        discovery = FieldDiscoveryEngine(
            page=browser.page_host,
            logger=logger,
            widget_signatures=config.custom_widget_signatures,
        )
        detector = ObstacleDetector(
            page=browser.page_host,
            clock=SystemClock(),
            id_generator=UuidIdGenerator(),
            logger=logger,
        )
        context = await discovery.discover()
        print(context.describe())
        for descriptor in context.fillable_fields:
            match = infer_field_type(descriptor)
            print(f"  {descriptor.key}: {match.field_type.value} ({match.confidence:.2f})")
        challenges = await detector.detect()
        if not challenges:
            print("No challenges detected.")
        for challenge in challenges:
            print(f"Challenge: {challenge.type.value} site_key={challenge.site_key or '-'}")
    return 0


async def _run(
    args: argparse.Namespace,
    config: AppConfig,
    session_repo: SQLiteChallengeSessionRepository,
    credential_repo: SQLiteSolverCredentialRepository,
    logger: StructuredLogger,
    clock: SystemClock,
    solver_factory: SolverFactory,
) -> int:
    ids = UuidIdGenerator()
    is_debug = args.debug or config.debug_mode
    artifact_store = FileSystemDebugArtifactStore(base_dir=args.debug_artifacts_dir)
    run_context = RunContext(run_id=ids.new_run_id(), is_debug=is_debug)

    async with PlaywrightBrowserSession(logger, headless=args.headless) as browser:
        context = build_automation_context(
            config,
            page=browser.page_host,
            tabs=browser.tab_host,
            filler=ReportOnlyFormFiller(logger),
            session_repo=session_repo,
            credential_repo=credential_repo,
            clock=clock,
            id_generator=ids,
            logger=logger,
            solver_factory=solver_factory,
            notifier=build_notifier(config.notifications),
            artifact_store=artifact_store if is_debug else None,
        )
        context.start()
        try:
            await browser.goto(args.job_url)
            outcome = await context.orchestrator.run_attempt(
                JobPostingRef(company_name=args.company, job_title=args.title, job_url=args.job_url),
                browser.origin_tab_id,
                run_context,
            )
        finally:
            await context.shutdown()

    if is_debug:
        artifact_store.save_outcome(run_context, _outcome_summary(outcome))
    print(f"result={outcome.status.value} reason={outcome.reason or '-'}")
    return 0 if outcome.status is AttemptStatus.PASSED else 2


def _outcome_summary(outcome: AttemptOutcome) -> dict[str, object]:
    return {
        "run_id": outcome.run_id,
        "job_url": outcome.job.job_url,
        "status": outcome.status.value,
        "reason": outcome.reason,
        "fields_discovered": outcome.fields_discovered,
        "unfilled_required": list(outcome.fill_report.unfilled_required)
        if outcome.fill_report
        else [],
        "challenge_method": outcome.challenge.method.value if outcome.challenge else None,
        "tab_session_state": outcome.tab_session_state.value
        if outcome.tab_session_state
        else None,
    }


if __name__ == "__main__":
    raise SystemExit(main())
