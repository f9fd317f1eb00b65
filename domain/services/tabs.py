from __future__ import annotations

import asyncio
import re
from dataclasses import replace
from typing import Any, Sequence

from domain.errors import TabNotFoundError, WaitTimeoutError
from domain.models import (
    AtsSystem,
    OAuthFlowResult,
    OAuthProvider,
    TabCoordinatorSettings,
    TabEvent,
    TabEventKind,
    TabInfo,
    TabPurpose,
    TabSession,
    TabSessionEvent,
    TabSessionEventType,
    TabSessionState,
    TabStatus,
)
from domain.ports import ClockPort, IdGeneratorPort, LoggerPort, TabHostPort, Unsubscribe
from domain.services.events import EventChannel
from domain.services.signatures import (
    ATS_SYSTEMS,
    GENERIC_OAUTH_FAILURE_PATTERNS,
    GENERIC_OAUTH_SUCCESS_PATTERNS,
    JOB_BOARD_PATTERNS,
    OAUTH_PROVIDERS,
)
from domain.services.waiting import wait_for_event


def _matches_any(patterns: Sequence[str], url: str) -> bool:
    return any(re.search(p, url, re.IGNORECASE) for p in patterns)


class TabSessionCoordinator:
    """
    Tracks auxiliary tabs opened during an automation attempt.

    One instance serves the whole runtime. Sessions are keyed by their own
    tab ids; the only shared structures are the session index and the
    tab-to-session map, which are mutated without awaiting in between.
    """

    def __init__(
        self,
        *,
        tabs: TabHostPort,
        clock: ClockPort,
        id_generator: IdGeneratorPort,
        logger: LoggerPort,
        settings: TabCoordinatorSettings | None = None,
        providers: Sequence[OAuthProvider] = OAUTH_PROVIDERS,
        ats_systems: Sequence[AtsSystem] = ATS_SYSTEMS,
    ) -> None:
        self._tabs = tabs
        self._clock = clock
        self._id_generator = id_generator
        self._logger = logger
        self._settings = settings or TabCoordinatorSettings()
        self._providers = tuple(providers)
        self._ats_systems = tuple(ats_systems)
        self._sessions: dict[str, TabSession] = {}
        self._tab_to_session: dict[int, str] = {}
        self._timeout_tasks: dict[str, asyncio.Task[None]] = {}
        self._evictions: dict[str, asyncio.TimerHandle] = {}
        self._unsubscribe: Unsubscribe | None = None
        self.events: EventChannel[TabSessionEvent] = EventChannel("tab-sessions", logger)
        self._tab_events: EventChannel[TabEvent] = EventChannel("tab-events", logger)

    @property
    def settings(self) -> TabCoordinatorSettings:
        return self._settings

    # -- lifecycle ---------------------------------------------------------------

    @property
    def is_listening(self) -> bool:
        return self._unsubscribe is not None

    def start_listening(self) -> None:
        if self._unsubscribe is not None:
            return
        self._unsubscribe = self._tabs.subscribe(self._on_tab_event)
        self._logger.info("tab_coordinator_listening")

    def stop_listening(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        for task in self._timeout_tasks.values():
            task.cancel()
        self._timeout_tasks.clear()
        for handle in self._evictions.values():
            handle.cancel()
        self._evictions.clear()

    async def shutdown(self) -> None:
        pending = list(self._timeout_tasks.values())
        self.stop_listening()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self.events.clear()
        self._tab_events.clear()

    # -- queries ------------------------------------------------------------------

    def get_session(self, session_id: str) -> TabSession | None:
        return self._sessions.get(session_id)

    def get_session_for_tab(self, tab_id: int) -> TabSession | None:
        session_id = self._tab_to_session.get(tab_id)
        if session_id is None:
            return None
        return self._sessions.get(session_id)

    def live_sessions(self) -> list[TabSession]:
        return [s for s in self._sessions.values() if s.is_live]

    def tab_mapping(self) -> dict[int, str]:
        return dict(self._tab_to_session)

    def detect_oauth_provider(self, url: str) -> OAuthProvider | None:
        for provider in self._providers:
            if _matches_any(provider.url_patterns, url):
                return provider
        return None

    def detect_ats(self, url: str) -> AtsSystem | None:
        for system in self._ats_systems:
            if _matches_any(system.patterns, url):
                return system
        return None

    def might_open_external_tabs(self, url: str) -> bool:
        if self.detect_ats(url) is not None:
            return True
        return _matches_any(JOB_BOARD_PATTERNS, url)

    # -- session control ----------------------------------------------------------

    async def start_session(
        self,
        origin_tab_id: int,
        purpose: TabPurpose = TabPurpose.UNKNOWN,
    ) -> TabSession:
        origin = await self._tabs.get_tab(origin_tab_id)
        if origin is None:
            raise TabNotFoundError(origin_tab_id)

        existing = self.get_session_for_tab(origin_tab_id)
        if existing is not None and existing.is_live:
            if existing.origin_tab_id != origin_tab_id:
                # the adopted child must survive the old session's cleanup
                existing.remove_child(origin_tab_id)
                del self._tab_to_session[origin_tab_id]
            await self.cancel_session(existing.id, reason="Superseded by a new session")

        timeout = (
            self._settings.oauth_timeout_seconds
            if purpose is TabPurpose.OAUTH
            else self._settings.default_timeout_seconds
        )
        session = TabSession(
            id=self._id_generator.new_session_id(),
            origin_tab=origin,
            purpose=purpose,
            started_at=self._clock.now(),
            timeout_seconds=timeout,
            auto_close=self._settings.auto_close_on_success,
            auto_return=self._settings.return_to_origin,
        )
        self._sessions[session.id] = session
        self._tab_to_session[origin_tab_id] = session.id
        self._timeout_tasks[session.id] = asyncio.create_task(self._watch_timeout(session.id))

        self._logger.info(
            "tab_session_started",
            session_id=session.id,
            origin_tab_id=origin_tab_id,
            purpose=purpose.value,
            timeout_seconds=timeout,
        )
        self._emit(TabSessionEventType.SESSION_STARTED, session)
        return session

    async def complete_session(
        self,
        session_id: str,
        *,
        refocus: bool = True,
    ) -> TabSession | None:
        session = self._live(session_id)
        if session is None:
            return None
        session.transition(TabSessionState.COMPLETED, at=self._clock.now())
        self._finish(session)
        self._logger.info(
            "tab_session_completed",
            session_id=session.id,
            child_tabs=len(session.child_tabs),
        )
        self._emit(TabSessionEventType.SESSION_COMPLETED, session)

        if session.auto_close:
            await self._close_children(session)
        if session.auto_return and refocus:
            await self._return_to_origin(session)
        return session

    def fail_session(self, session_id: str, reason: str) -> TabSession | None:
        session = self._live(session_id)
        if session is None:
            return None
        session.transition(TabSessionState.FAILED, at=self._clock.now(), reason=reason)
        self._finish(session)
        self._logger.warning("tab_session_failed", session_id=session.id, reason=reason)
        self._emit(TabSessionEventType.SESSION_FAILED, session, reason=reason)
        return session

    async def cancel_session(self, session_id: str, reason: str = "Cancelled") -> TabSession | None:
        session = self._live(session_id)
        if session is None:
            return None
        session.transition(TabSessionState.CANCELLED, at=self._clock.now(), reason=reason)
        self._finish(session)
        self._logger.info("tab_session_cancelled", session_id=session.id, reason=reason)
        self._emit(TabSessionEventType.SESSION_CANCELLED, session, reason=reason)
        await self._close_children(session)
        return session

    # -- waits --------------------------------------------------------------------

    async def wait_for_navigation(
        self,
        tab_id: int,
        *,
        url_pattern: str | None = None,
        timeout: float | None = None,
    ) -> TabInfo:
        def _accept(event: TabEvent) -> bool:
            if event.kind is not TabEventKind.UPDATED or event.tab_id != tab_id:
                return False
            if event.tab is None or event.tab.status is not TabStatus.COMPLETE:
                return False
            return url_pattern is None or re.search(url_pattern, event.tab.url) is not None

        event = await wait_for_event(
            self._tab_events.subscribe,
            _accept,
            timeout=timeout or self._settings.default_timeout_seconds,
            what=f"navigation of tab {tab_id}",
        )
        assert event.tab is not None
        return event.tab

    async def wait_for_new_tab(self, opener_tab_id: int, *, timeout: float | None = None) -> TabInfo:
        event = await wait_for_event(
            self._tab_events.subscribe,
            lambda e: e.kind is TabEventKind.CREATED
            and e.tab is not None
            and e.tab.opener_tab_id == opener_tab_id,
            timeout=timeout or self._settings.new_tab_timeout_seconds,
            what=f"a tab opened from tab {opener_tab_id}",
        )
        assert event.tab is not None
        return event.tab

    async def wait_for_tab_close(self, tab_id: int, *, timeout: float | None = None) -> None:
        waiter = asyncio.ensure_future(
            wait_for_event(
                self._tab_events.subscribe,
                lambda e: e.kind is TabEventKind.REMOVED and e.tab_id == tab_id,
                timeout=timeout or self._settings.default_timeout_seconds,
                what=f"tab {tab_id} to close",
            )
        )
        await asyncio.sleep(0)
        if await self._tabs.get_tab(tab_id) is None:
            waiter.cancel()
            await asyncio.gather(waiter, return_exceptions=True)
            return
        await waiter

    async def wait_for_session(self, session_id: str, *, timeout: float | None = None) -> TabSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise KeyError(session_id)
        if session.state.is_terminal:
            return session
        await wait_for_event(
            self.events.subscribe,
            lambda e: e.session_id == session_id and e.state.is_terminal,
            timeout=timeout or session.timeout_seconds,
            what=f"session {session_id} to finish",
        )
        return session

    async def handle_oauth_flow(self, origin_tab_id: int) -> OAuthFlowResult:
        """Start an identity-provider session and wait until it resolves."""
        session = await self.start_session(origin_tab_id, TabPurpose.OAUTH)
        provider: OAuthProvider | None = None
        try:
            popup = await self.wait_for_new_tab(origin_tab_id)
            provider = self.detect_oauth_provider(popup.url)
            timeout = provider.timeout_seconds if provider else self._settings.oauth_timeout_seconds
            await self.wait_for_session(session.id, timeout=timeout)
        except WaitTimeoutError as exc:
            self.fail_session(session.id, str(exc))
            return OAuthFlowResult(
                success=False,
                session_id=session.id,
                provider=provider.name if provider else None,
                error=str(exc),
            )
        success = session.state is TabSessionState.COMPLETED
        return OAuthFlowResult(
            success=success,
            session_id=session.id,
            provider=session.provider or (provider.name if provider else None),
            error=None if success else session.failure_reason,
        )

    # -- tab events -----------------------------------------------------------------

    async def _on_tab_event(self, event: TabEvent) -> None:
        try:
            if event.kind is TabEventKind.CREATED and event.tab is not None:
                await self._handle_created(event.tab)
            elif event.kind is TabEventKind.UPDATED and event.tab is not None:
                await self._handle_updated(event.tab)
            elif event.kind is TabEventKind.REMOVED:
                await self._handle_removed(event.tab_id)
            elif event.kind is TabEventKind.ACTIVATED:
                self._handle_activated(event.tab_id, event.window_id)
        except Exception as exc:
            self._logger.error(
                "tab_event_handling_failed",
                kind=event.kind.value,
                tab_id=event.tab_id,
                error=str(exc),
            )
        finally:
            self._tab_events.publish(event)

    async def _handle_created(self, tab: TabInfo) -> None:
        if tab.opener_tab_id is None:
            return
        session = self.get_session_for_tab(tab.opener_tab_id)
        if session is None or not session.is_live:
            return

        session.child_tabs.append(tab)
        self._tab_to_session[tab.tab_id] = session.id
        if len(session.child_tabs) > self._settings.max_child_tabs:
            self._logger.warning(
                "tab_session_child_limit_exceeded",
                session_id=session.id,
                child_tabs=len(session.child_tabs),
                limit=self._settings.max_child_tabs,
            )
        self._logger.info(
            "tab_session_child_opened",
            session_id=session.id,
            tab_id=tab.tab_id,
            url=tab.url,
        )
        self._emit(TabSessionEventType.TAB_OPENED, session, tab_id=tab.tab_id, url=tab.url)
        self._upgrade_if_identity_flow(session, tab.url)
        await self._evaluate_identity_flow(session, tab.url)

    async def _handle_updated(self, tab: TabInfo) -> None:
        session = self.get_session_for_tab(tab.tab_id)
        if session is None or not session.is_live:
            return
        if tab.tab_id == session.origin_tab_id:
            previous = session.origin_tab
        else:
            previous = session.child(tab.tab_id)
        session.refresh_tab(tab)
        if previous is not None and previous.url != tab.url:
            self._emit(TabSessionEventType.TAB_NAVIGATED, session, tab_id=tab.tab_id, url=tab.url)
        if tab.tab_id == session.origin_tab_id:
            return
        self._upgrade_if_identity_flow(session, tab.url)
        await self._evaluate_identity_flow(session, tab.url)

    async def _handle_removed(self, tab_id: int) -> None:
        session = self.get_session_for_tab(tab_id)
        if session is None or not session.is_live:
            return
        if tab_id == session.origin_tab_id:
            self.fail_session(session.id, "Origin tab was closed")
            return

        session.remove_child(tab_id)
        self._tab_to_session.pop(tab_id, None)
        self._emit(TabSessionEventType.TAB_CLOSED, session, tab_id=tab_id)
        if session.purpose is TabPurpose.OAUTH and not session.child_tabs:
            # Providers commonly close their popup themselves once consent is given.
            self._emit(
                TabSessionEventType.OAUTH_SUCCESS,
                session,
                provider=session.provider,
                implicit=True,
            )
            await self.complete_session(session.id)

    def _handle_activated(self, tab_id: int, window_id: int | None) -> None:
        for session in self.live_sessions():
            tab_ids = session.tab_ids()
            if tab_id not in tab_ids:
                continue
            for tab in [session.origin_tab] + list(session.child_tabs):
                if window_id is not None and tab.window_id != window_id:
                    continue
                session.refresh_tab(replace(tab, active=tab.tab_id == tab_id))

    # -- identity flows -------------------------------------------------------------

    def _upgrade_if_identity_flow(self, session: TabSession, url: str) -> None:
        if session.provider is not None:
            return
        provider = self.detect_oauth_provider(url)
        if provider is None:
            return
        session.provider = provider.name
        session.purpose = TabPurpose.OAUTH
        if session.state is TabSessionState.ACTIVE:
            session.transition(TabSessionState.WAITING)
        self._logger.info(
            "tab_session_oauth_detected",
            session_id=session.id,
            provider=provider.name,
        )
        self._emit(TabSessionEventType.OAUTH_DETECTED, session, provider=provider.name)

    async def _evaluate_identity_flow(self, session: TabSession, url: str) -> None:
        if session.purpose is not TabPurpose.OAUTH or not session.is_live:
            return
        verdict = self._oauth_verdict(url, session.provider)
        if verdict is True:
            self._emit(TabSessionEventType.OAUTH_SUCCESS, session, provider=session.provider, url=url)
            await self.complete_session(session.id)
        elif verdict is False:
            self._emit(TabSessionEventType.OAUTH_FAILED, session, provider=session.provider, url=url)
            self.fail_session(session.id, "OAuth access denied")

    def _oauth_verdict(self, url: str, provider_name: str | None) -> bool | None:
        """True on success, False on failure, None while still in progress."""
        if not url:
            return None
        provider = next((p for p in self._providers if p.name == provider_name), None)
        if provider is not None and _matches_any(provider.failure_patterns, url):
            return False
        if _matches_any(GENERIC_OAUTH_FAILURE_PATTERNS, url):
            return False
        # Still on the provider's own sign-in pages.
        if provider is not None and _matches_any(provider.url_patterns, url):
            return None
        if provider is not None and _matches_any(provider.success_patterns, url):
            return True
        if _matches_any(GENERIC_OAUTH_SUCCESS_PATTERNS, url):
            return True
        return None

    # -- internals -------------------------------------------------------------------

    def _live(self, session_id: str) -> TabSession | None:
        session = self._sessions.get(session_id)
        if session is None or not session.is_live:
            return None
        return session

    def _finish(self, session: TabSession) -> None:
        for tab_id in session.tab_ids():
            if self._tab_to_session.get(tab_id) == session.id:
                del self._tab_to_session[tab_id]
        task = self._timeout_tasks.pop(session.id, None)
        if task is not None and task is not asyncio.current_task():
            task.cancel()
        loop = asyncio.get_running_loop()
        self._evictions[session.id] = loop.call_later(
            self._settings.retention_seconds, self._evict, session.id
        )

    def _evict(self, session_id: str) -> None:
        self._evictions.pop(session_id, None)
        session = self._sessions.pop(session_id, None)
        if session is not None:
            self._logger.info("tab_session_evicted", session_id=session_id)

    async def _watch_timeout(self, session_id: str) -> None:
        while True:
            await asyncio.sleep(self._settings.poll_interval_seconds)
            session = self._live(session_id)
            if session is None:
                return
            elapsed = (self._clock.now() - session.started_at).total_seconds()
            if elapsed < session.timeout_seconds:
                continue
            reason = f"Session timed out after {session.timeout_seconds:g}s"
            session.transition(TabSessionState.FAILED, at=self._clock.now(), reason=reason)
            self._finish(session)
            self._logger.warning("tab_session_timeout", session_id=session_id, reason=reason)
            self._emit(TabSessionEventType.SESSION_TIMEOUT, session, reason=reason)
            return

    async def _close_children(self, session: TabSession) -> None:
        for child in list(session.child_tabs):
            try:
                await self._tabs.close_tab(child.tab_id)
            except Exception as exc:
                self._logger.warning(
                    "tab_close_failed",
                    session_id=session.id,
                    tab_id=child.tab_id,
                    error=str(exc),
                )

    async def _return_to_origin(self, session: TabSession) -> None:
        try:
            await self._tabs.activate_tab(session.origin_tab_id)
            await self._tabs.focus_window(session.origin_tab.window_id)
        except Exception as exc:
            self._logger.warning(
                "tab_return_to_origin_failed",
                session_id=session.id,
                tab_id=session.origin_tab_id,
                error=str(exc),
            )

    def _emit(self, event_type: TabSessionEventType, session: TabSession, **data: Any) -> None:
        self.events.publish(
            TabSessionEvent(
                type=event_type,
                session_id=session.id,
                state=session.state,
                data=data,
            )
        )
