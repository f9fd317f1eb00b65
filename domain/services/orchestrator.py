from __future__ import annotations

from domain.errors import WaitTimeoutError
from domain.models import (
    AttemptOutcome,
    AttemptStatus,
    FillReport,
    FormContext,
    JobPostingRef,
    ResolutionOutcome,
    RunContext,
    TabPurpose,
    TabSession,
    TabSessionEvent,
    TabSessionState,
    TabSessionEventType,
)
from domain.ports import FormFillerPort, IdGeneratorPort, LoggerPort
from domain.services.debug import DebugRunManager
from domain.services.discovery import FieldDiscoveryEngine
from domain.services.resolver import ObstacleResolver
from domain.services.tabs import TabSessionCoordinator
from domain.services.waiting import wait_for_event


class AutomationOrchestrator:
    """Runs one application attempt from field discovery to final verdict."""

    def __init__(
        self,
        *,
        discovery: FieldDiscoveryEngine,
        resolver: ObstacleResolver,
        coordinator: TabSessionCoordinator,
        filler: FormFillerPort,
        id_generator: IdGeneratorPort,
        logger: LoggerPort,
        debug_manager: DebugRunManager | None = None,
    ) -> None:
        self._discovery = discovery
        self._resolver = resolver
        self._coordinator = coordinator
        self._filler = filler
        self._id_generator = id_generator
        self._logger = logger
        self._debug_manager = debug_manager

    async def run_attempt(
        self,
        job: JobPostingRef,
        origin_tab_id: int,
        run_context: RunContext | None = None,
    ) -> AttemptOutcome:
        run_context = run_context or RunContext(run_id=self._id_generator.new_run_id())
        if self._debug_manager is not None:
            self._debug_manager.start(run_context)
        self._logger.info(
            "automation_attempt_started",
            run_id=run_context.run_id,
            job_url=job.job_url,
            origin_tab_id=origin_tab_id,
        )

        session: TabSession | None = None
        context: FormContext | None = None
        report: FillReport | None = None
        obstacle: ResolutionOutcome | None = None

        def _outcome(status: AttemptStatus, reason: str | None = None) -> AttemptOutcome:
            outcome = AttemptOutcome(
                job=job,
                status=status,
                reason=reason,
                fields_discovered=len(context.fillable_fields) if context else 0,
                fill_report=report,
                challenge=obstacle,
                tab_session_state=session.state if session else None,
                run_id=run_context.run_id,
            )
            self._logger.info(
                "automation_attempt_finished",
                run_id=run_context.run_id,
                status=status.value,
                reason=reason,
            )
            return outcome

        try:
            context = await self._discovery.discover()
            await self._capture(run_context, "fields_discovered")
            if not context.fillable_fields:
                return _outcome(AttemptStatus.FAILED, "No form fields found on the page")

            purpose = (
                TabPurpose.EXTERNAL_FORM
                if self._coordinator.might_open_external_tabs(job.job_url)
                else TabPurpose.UNKNOWN
            )
            session = await self._coordinator.start_session(origin_tab_id, purpose)

            report = await self._filler.fill(context, job)
            await self._capture(run_context, "form_filled")

            obstacle = await self._resolver.handle()
            await self._capture(run_context, "obstacle_handled")

            await self._settle_session(session)
            if session.state is not TabSessionState.COMPLETED:
                return _outcome(
                    AttemptStatus.FAILED,
                    session.failure_reason or f"Tab session ended {session.state.value}",
                )
            if not obstacle.success:
                return _outcome(
                    AttemptStatus.PARTIAL,
                    obstacle.error or "Challenge could not be cleared; manual review needed",
                )
            if report.unfilled_required:
                return _outcome(
                    AttemptStatus.PARTIAL,
                    "Required fields left unfilled: " + ", ".join(report.unfilled_required),
                )
            return _outcome(AttemptStatus.PASSED)
        except Exception as exc:
            self._logger.error(
                "automation_attempt_failed",
                run_id=run_context.run_id,
                job_url=job.job_url,
                error=str(exc),
            )
            if session is not None and session.is_live:
                self._coordinator.fail_session(session.id, str(exc))
            return _outcome(AttemptStatus.FAILED, str(exc))

    async def _settle_session(self, session: TabSession) -> None:
        if not session.is_live:
            return
        if not session.child_tabs:
            await self._coordinator.complete_session(session.id, refocus=False)
            return

        def _settled(event: TabSessionEvent) -> bool:
            if event.session_id != session.id:
                return False
            if event.state.is_terminal:
                return True
            # identity-provider sessions complete themselves when their popup closes
            return (
                event.type is TabSessionEventType.TAB_CLOSED
                and not session.child_tabs
                and session.purpose is not TabPurpose.OAUTH
            )

        try:
            await wait_for_event(
                self._coordinator.events.subscribe,
                _settled,
                timeout=session.timeout_seconds,
                what=f"session {session.id} to finish",
            )
        except WaitTimeoutError as exc:
            self._coordinator.fail_session(session.id, str(exc))
            return
        if session.is_live:
            self._logger.info("tab_session_children_closed", session_id=session.id)
            await self._coordinator.complete_session(session.id)

    async def _capture(self, run_context: RunContext, step_name: str) -> None:
        if self._debug_manager is None:
            return
        await self._debug_manager.capture_step(run_context, step_name)
