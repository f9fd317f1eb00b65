from __future__ import annotations

from domain.errors import WaitTimeoutError
from domain.models import (
    CaptchaSettings,
    ChallengeInfo,
    ChallengeStatus,
    ChallengeType,
    ResolutionMethod,
    ResolutionOutcome,
    ResolverEvent,
    ResolverEventType,
    SolveOutcome,
    TokenInjection,
)
from domain.ports import (
    ChallengeSolverPort,
    ClockPort,
    LoggerPort,
    NotifierPort,
    PageHostPort,
)
from domain.services.classifier import is_visible
from domain.services.detector import ObstacleDetector
from domain.services.events import EventChannel
from domain.services.session_cache import ChallengeSessionCache, domain_of
from domain.services.signatures import TURNSTILE_SUCCESS_SELECTOR, signature_for
from domain.services.waiting import poll_until

AUTO_SOLVABLE_TYPES = frozenset(
    {
        ChallengeType.RECAPTCHA_V2,
        ChallengeType.RECAPTCHA_V3,
        ChallengeType.HCAPTCHA,
        ChallengeType.TURNSTILE,
        ChallengeType.FUNCAPTCHA,
    }
)


class ObstacleResolver:
    """
    Clears a detected challenge by paid solving or by waiting for a human.

    Every path ends in a ``ResolutionOutcome``; nothing here raises into the
    orchestrator. Successful resolutions are remembered per domain so a
    revisit within the validity window skips the challenge entirely.
    """

    def __init__(
        self,
        *,
        page: PageHostPort,
        detector: ObstacleDetector,
        session_cache: ChallengeSessionCache,
        clock: ClockPort,
        logger: LoggerPort,
        settings: CaptchaSettings | None = None,
        solver: ChallengeSolverPort | None = None,
        notifier: NotifierPort | None = None,
    ) -> None:
        self._page = page
        self._detector = detector
        self._cache = session_cache
        self._clock = clock
        self._logger = logger
        self._settings = settings or CaptchaSettings()
        self._solver = solver
        self._notifier = notifier
        self.events: EventChannel[ResolverEvent] = EventChannel("resolver", logger)

    @property
    def solver(self) -> ChallengeSolverPort | None:
        return self._solver

    def set_solver(self, solver: ChallengeSolverPort | None) -> None:
        self._solver = solver
        self._logger.info(
            "challenge_solver_configured",
            backend=solver.backend_name if solver is not None else None,
        )

    async def balance(self) -> float | None:
        if self._solver is None:
            return None
        return await self._solver.balance()

    def clear_sessions(self) -> None:
        self._cache.clear()

    async def handle(self) -> ResolutionOutcome:
        """Detect and resolve whatever blocks the active page, if anything."""
        if not self._settings.enabled:
            return ResolutionOutcome(success=True, method=ResolutionMethod.NONE)
        url = await self._page.current_url()
        domain = domain_of(url)
        if self._cache.has_valid_session(domain):
            self._logger.info("challenge_session_reused", domain=domain)
            return ResolutionOutcome(success=True, method=ResolutionMethod.CACHED_SESSION)

        challenge = await self._detector.primary()
        if challenge is None:
            return ResolutionOutcome(success=True, method=ResolutionMethod.NONE)
        return await self.resolve(challenge)

    async def resolve(self, challenge: ChallengeInfo) -> ResolutionOutcome:
        domain = domain_of(challenge.page_url)
        self._publish(ResolverEventType.DETECTED, challenge)
        try:
            if self._cache.has_valid_session(domain):
                challenge.transition(ChallengeStatus.SOLVED, at=self._clock.now())
                self._publish(ResolverEventType.SOLVED, challenge, "cached session")
                return ResolutionOutcome(
                    success=True,
                    method=ResolutionMethod.CACHED_SESSION,
                    challenge=challenge,
                )
            if self._can_auto_solve(challenge):
                return await self._solve_automatically(challenge, domain)
            if self._settings.pause_on_detection:
                return await self._wait_for_human(challenge, domain)
            return self._fail(
                challenge,
                ResolutionMethod.NONE,
                "No solver configured and pausing for a human is disabled",
            )
        except Exception as exc:
            self._logger.error(
                "challenge_resolution_failed",
                challenge_id=challenge.id,
                challenge_type=challenge.type.value,
                error=str(exc),
            )
            return self._abort(challenge, str(exc))

    # -- automatic solving ----------------------------------------------------

    def _can_auto_solve(self, challenge: ChallengeInfo) -> bool:
        return (
            self._settings.auto_solve
            and self._solver is not None
            and challenge.type in AUTO_SOLVABLE_TYPES
        )

    async def _solve_automatically(
        self,
        challenge: ChallengeInfo,
        domain: str,
    ) -> ResolutionOutcome:
        solver = self._solver
        if solver is None:
            return self._fail(challenge, ResolutionMethod.AUTO_SOLVE, "No solver configured")
        challenge.transition(ChallengeStatus.SOLVING)
        self._publish(ResolverEventType.SOLVING, challenge, solver.backend_name)

        outcome: SolveOutcome = await solver.solve(challenge)
        if not outcome.success or not outcome.token:
            return self._fail(
                challenge,
                ResolutionMethod.AUTO_SOLVE,
                outcome.error or "Solver returned no token",
            )

        injected = await self._page.inject_token(
            TokenInjection(
                challenge_type=challenge.type,
                token=outcome.token,
                element_path=challenge.element_path,
            )
        )
        if not injected:
            return self._fail(challenge, ResolutionMethod.AUTO_SOLVE, "Token injection failed")

        challenge.transition(ChallengeStatus.SOLVED, at=self._clock.now(), token=outcome.token)
        self._cache.store(domain, challenge.type)
        self._logger.info(
            "challenge_solved",
            challenge_type=challenge.type.value,
            method=ResolutionMethod.AUTO_SOLVE.value,
            elapsed_seconds=outcome.elapsed_seconds,
        )
        self._publish(ResolverEventType.SOLVED, challenge)
        return ResolutionOutcome(
            success=True,
            method=ResolutionMethod.AUTO_SOLVE,
            challenge=challenge,
        )

    # -- human hand-off -------------------------------------------------------

    async def _wait_for_human(
        self,
        challenge: ChallengeInfo,
        domain: str,
    ) -> ResolutionOutcome:
        challenge.transition(ChallengeStatus.WAITING_FOR_HUMAN)
        self._publish(ResolverEventType.WAITING_USER, challenge)
        if self._settings.notify_user:
            await self._notify_user(challenge, domain)

        try:
            await poll_until(
                lambda: self._is_solved(challenge),
                interval=self._settings.human_poll_interval_seconds,
                timeout=self._settings.human_max_wait_seconds,
                what=f"{challenge.type.value} to be solved",
            )
        except WaitTimeoutError as exc:
            challenge.transition(ChallengeStatus.EXPIRED, reason=str(exc))
            self._logger.warning(
                "challenge_human_wait_expired",
                challenge_type=challenge.type.value,
                timeout_seconds=exc.timeout_seconds,
            )
            self._publish(ResolverEventType.TIMEOUT, challenge, str(exc))
            return ResolutionOutcome(
                success=False,
                method=ResolutionMethod.HUMAN,
                challenge=challenge,
                error=str(exc),
            )

        challenge.transition(ChallengeStatus.SOLVED, at=self._clock.now())
        self._cache.store(domain, challenge.type)
        self._logger.info(
            "challenge_solved",
            challenge_type=challenge.type.value,
            method=ResolutionMethod.HUMAN.value,
        )
        self._publish(ResolverEventType.SOLVED, challenge)
        return ResolutionOutcome(success=True, method=ResolutionMethod.HUMAN, challenge=challenge)

    async def _notify_user(self, challenge: ChallengeInfo, domain: str) -> None:
        title = "CAPTCHA detected"
        message = (
            f"A {challenge.type.value} challenge on {domain or challenge.page_url} "
            "needs to be solved manually. Automation resumes once it is cleared."
        )
        if self._notifier is not None:
            try:
                await self._notifier.notify(title, message)
            except Exception as exc:
                self._logger.warning("challenge_notification_failed", error=str(exc))
        try:
            await self._page.show_overlay(title, message, self._settings.human_max_wait_seconds)
        except Exception as exc:
            self._logger.warning("challenge_overlay_failed", error=str(exc))

    async def _is_solved(self, challenge: ChallengeInfo) -> bool:
        snapshot = await self._page.snapshot()
        signature = signature_for(challenge.type)
        if signature is not None:
            if signature.response_field:
                field = signature.response_field
                for element in snapshot.select(f'[name="{field}"], [id="{field}"]'):
                    layout = snapshot.layout.get(element.node_index)
                    if layout is not None and layout.value.strip():
                        return True
            if signature.global_response and snapshot.global_responses.get(
                signature.global_response
            ):
                return True
        if challenge.type is ChallengeType.TURNSTILE:
            if snapshot.select_one(TURNSTILE_SUCCESS_SELECTOR) is not None:
                return True
        if challenge.element_path:
            element = snapshot.select_one(challenge.element_path)
            if element is None:
                return True
            layout = snapshot.layout.get(element.node_index)
            if layout is not None and not is_visible(
                layout, snapshot.viewport_width, snapshot.viewport_height
            ):
                return True
        return False

    # -- helpers --------------------------------------------------------------

    def _fail(
        self,
        challenge: ChallengeInfo,
        method: ResolutionMethod,
        reason: str,
    ) -> ResolutionOutcome:
        challenge.transition(ChallengeStatus.FAILED, reason=reason)
        self._logger.warning(
            "challenge_resolution_failed",
            challenge_id=challenge.id,
            challenge_type=challenge.type.value,
            error=reason,
        )
        self._publish(ResolverEventType.FAILED, challenge, reason)
        return ResolutionOutcome(success=False, method=method, challenge=challenge, error=reason)

    def _abort(self, challenge: ChallengeInfo, reason: str) -> ResolutionOutcome:
        method = ResolutionMethod.NONE
        if challenge.status is ChallengeStatus.WAITING_FOR_HUMAN:
            challenge.transition(ChallengeStatus.EXPIRED, reason=reason)
            method = ResolutionMethod.HUMAN
        elif not challenge.status.is_terminal:
            if challenge.status is ChallengeStatus.SOLVING:
                method = ResolutionMethod.AUTO_SOLVE
            challenge.transition(ChallengeStatus.FAILED, reason=reason)
        self._publish(ResolverEventType.FAILED, challenge, reason)
        return ResolutionOutcome(success=False, method=method, challenge=challenge, error=reason)

    def _publish(
        self,
        event_type: ResolverEventType,
        challenge: ChallengeInfo,
        message: str | None = None,
    ) -> None:
        self.events.publish(
            ResolverEvent(
                type=event_type,
                challenge_id=challenge.id,
                challenge_type=challenge.type,
                message=message,
            )
        )
