from __future__ import annotations


class AutomationError(RuntimeError):
    """Base class for errors raised by the automation core."""


class ElementClassificationError(AutomationError):
    """Raised when a page element cannot be read (e.g. detached mid-scan)."""

    def __init__(self, message: str, *, node_index: int | None = None) -> None:
        super().__init__(message)
        self.node_index = node_index


class TabNotFoundError(AutomationError):
    def __init__(self, tab_id: int) -> None:
        super().__init__(f"Origin tab {tab_id} not found")
        self.tab_id = tab_id


class InvalidTransitionError(AutomationError):
    """Raised when a state machine is asked to leave a terminal state."""

    def __init__(self, entity: str, current: str, requested: str) -> None:
        super().__init__(f"{entity} cannot move from {current} to {requested}")
        self.current = current
        self.requested = requested


class SolverBackendError(AutomationError):
    """Terminal error reported by a paid solving backend."""

    def __init__(self, backend: str, code: str, description: str | None = None) -> None:
        text = f"{backend}: {code}"
        if description:
            text = f"{text} ({description})"
        super().__init__(text)
        self.backend = backend
        self.code = code


class WaitTimeoutError(AutomationError):
    """A bounded wait elapsed before its condition was met."""

    def __init__(self, what: str, timeout_seconds: float) -> None:
        super().__init__(f"Timed out after {timeout_seconds:g}s waiting for {what}")
        self.timeout_seconds = timeout_seconds


__all__ = [
    "AutomationError",
    "ElementClassificationError",
    "TabNotFoundError",
    "InvalidTransitionError",
    "SolverBackendError",
    "WaitTimeoutError",
]
