from __future__ import annotations

from typing import Callable

from domain.models import AppConfig, SolverBackend
from domain.ports import (
    ChallengeSessionRepositoryPort,
    ChallengeSolverPort,
    ClockPort,
    DebugArtifactStorePort,
    FormFillerPort,
    IdGeneratorPort,
    LoggerPort,
    NotifierPort,
    PageHostPort,
    SolverCredentialRepositoryPort,
    TabHostPort,
)
from domain.services import (
    AutomationContext,
    AutomationOrchestrator,
    ChallengeSessionCache,
    DebugRunManager,
    FieldDiscoveryEngine,
    ObstacleDetector,
    ObstacleResolver,
    TabMessageRouter,
    TabSessionCoordinator,
)

SolverFactory = Callable[[SolverBackend], ChallengeSolverPort]


def resolve_solver_backend(
    config: AppConfig,
    credential_repo: SolverCredentialRepositoryPort,
) -> SolverBackend | None:
    """The backend named by ``captcha.solver``; config.json keys win over stored ones."""
    name = config.captcha.solver
    if not name:
        return None
    configured = config.solvers.get(name)
    if configured is not None:
        return configured
    stored = credential_repo.get(name)
    return stored.to_backend() if stored is not None else None


def build_automation_context(
    config: AppConfig,
    *,
    page: PageHostPort,
    tabs: TabHostPort,
    filler: FormFillerPort,
    session_repo: ChallengeSessionRepositoryPort,
    credential_repo: SolverCredentialRepositoryPort,
    clock: ClockPort,
    id_generator: IdGeneratorPort,
    logger: LoggerPort,
    solver_factory: SolverFactory | None = None,
    notifier: NotifierPort | None = None,
    artifact_store: DebugArtifactStorePort | None = None,
) -> AutomationContext:
    backend = resolve_solver_backend(config, credential_repo)
    solver = solver_factory(backend) if backend is not None and solver_factory else None
    if config.captcha.auto_solve and solver is None:
        logger.warning("challenge_solver_unavailable", backend=config.captcha.solver)

    discovery = FieldDiscoveryEngine(
        page=page,
        logger=logger,
        widget_signatures=config.custom_widget_signatures,
    )
    detector = ObstacleDetector(page=page, clock=clock, id_generator=id_generator, logger=logger)
    session_cache = ChallengeSessionCache(
        repo=session_repo,
        clock=clock,
        logger=logger,
        duration_hours=config.captcha.session_duration_hours,
        enabled=config.captcha.session_persistence,
    )
    resolver = ObstacleResolver(
        page=page,
        detector=detector,
        session_cache=session_cache,
        clock=clock,
        logger=logger,
        settings=config.captcha,
        solver=solver,
        notifier=notifier,
    )
    coordinator = TabSessionCoordinator(
        tabs=tabs,
        clock=clock,
        id_generator=id_generator,
        logger=logger,
        settings=config.tabs,
    )
    debug_manager = (
        DebugRunManager(artifact_store, page, logger) if artifact_store is not None else None
    )
    orchestrator = AutomationOrchestrator(
        discovery=discovery,
        resolver=resolver,
        coordinator=coordinator,
        filler=filler,
        id_generator=id_generator,
        logger=logger,
        debug_manager=debug_manager,
    )
    return AutomationContext(
        clock=clock,
        id_generator=id_generator,
        logger=logger,
        discovery=discovery,
        detector=detector,
        session_cache=session_cache,
        resolver=resolver,
        coordinator=coordinator,
        router=TabMessageRouter(coordinator, logger),
        orchestrator=orchestrator,
    )
