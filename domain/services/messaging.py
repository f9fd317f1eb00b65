from __future__ import annotations

from typing import Any, Awaitable, Callable, Mapping

from domain.errors import AutomationError
from domain.models import TabPurpose, TabSession
from domain.ports import LoggerPort
from domain.services.tabs import TabSessionCoordinator

_Handler = Callable[[Mapping[str, Any], "int | None"], Awaitable[dict[str, Any]]]


def session_to_payload(session: TabSession) -> dict[str, Any]:
    return {
        "id": session.id,
        "state": session.state.value,
        "purpose": session.purpose.value,
        "originTabId": session.origin_tab_id,
        "childTabIds": [t.tab_id for t in session.child_tabs],
        "startedAt": session.started_at.isoformat(),
        "completedAt": session.completed_at.isoformat() if session.completed_at else None,
        "provider": session.provider,
        "failureReason": session.failure_reason,
    }


class TabMessageRouter:
    """Answers tab-session requests arriving from page scripts.

    Every request gets a reply; failures are reported as ``{"error": ...}``
    rather than raised back to the sender.
    """

    def __init__(self, coordinator: TabSessionCoordinator, logger: LoggerPort) -> None:
        self._coordinator = coordinator
        self._logger = logger
        self._handlers: dict[str, _Handler] = {
            "TAB_SESSION_START": self._start,
            "TAB_SESSION_COMPLETE": self._complete,
            "TAB_SESSION_FAIL": self._fail,
            "TAB_PENDING_OPEN": self._pending_open,
            "TAB_GET_SESSION": self._get_session,
            "TAB_HANDLE_OAUTH": self._handle_oauth,
        }

    async def handle(
        self,
        message: Mapping[str, Any],
        sender_tab_id: int | None = None,
    ) -> dict[str, Any]:
        kind = message.get("type")
        handler = self._handlers.get(str(kind))
        if handler is None:
            return {"error": f"Unknown message type: {kind}"}
        try:
            return await handler(message, sender_tab_id)
        except (AutomationError, KeyError, ValueError) as exc:
            self._logger.warning("tab_message_failed", type=kind, error=str(exc))
            return {"error": str(exc)}

    async def _start(self, message: Mapping[str, Any], sender: int | None) -> dict[str, Any]:
        tab_id = _tab_id(message, sender)
        if tab_id is None:
            return {"error": "No tab ID"}
        purpose = TabPurpose(message.get("purpose") or TabPurpose.UNKNOWN.value)
        session = await self._coordinator.start_session(tab_id, purpose)
        return {"sessionId": session.id}

    async def _complete(self, message: Mapping[str, Any], sender: int | None) -> dict[str, Any]:
        await self._coordinator.complete_session(str(message["sessionId"]))
        return {"success": True}

    async def _fail(self, message: Mapping[str, Any], sender: int | None) -> dict[str, Any]:
        reason = str(message.get("reason") or "Failed by page request")
        self._coordinator.fail_session(str(message["sessionId"]), reason)
        return {"success": True}

    async def _pending_open(self, message: Mapping[str, Any], sender: int | None) -> dict[str, Any]:
        if sender is None:
            return {"error": "No tab ID"}
        if self._coordinator.get_session_for_tab(sender) is None:
            purpose = TabPurpose(message.get("purpose") or TabPurpose.UNKNOWN.value)
            await self._coordinator.start_session(sender, purpose)
        return {"success": True}

    async def _get_session(self, message: Mapping[str, Any], sender: int | None) -> dict[str, Any]:
        tab_id = _tab_id(message, sender)
        if tab_id is None:
            return {"error": "No tab ID"}
        session = self._coordinator.get_session_for_tab(tab_id)
        return {"session": session_to_payload(session) if session is not None else None}

    async def _handle_oauth(self, message: Mapping[str, Any], sender: int | None) -> dict[str, Any]:
        tab_id = _tab_id(message, sender)
        if tab_id is None:
            return {"error": "No tab ID"}
        result = await self._coordinator.handle_oauth_flow(tab_id)
        return {
            "success": result.success,
            "sessionId": result.session_id,
            "provider": result.provider,
            "error": result.error,
        }


def _tab_id(message: Mapping[str, Any], sender: int | None) -> int | None:
    if sender is not None:
        return sender
    raw = message.get("tabId")
    return int(raw) if raw is not None else None
