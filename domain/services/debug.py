from __future__ import annotations

from domain.models import RunContext
from domain.ports import DebugArtifactStorePort, LoggerPort, PageHostPort


class DebugRunManager:
    """Captures a page screenshot after each orchestrator step of a debug run."""

    def __init__(
        self,
        artifact_store: DebugArtifactStorePort,
        page: PageHostPort,
        logger: LoggerPort,
    ) -> None:
        self._artifact_store = artifact_store
        self._page = page
        self._logger = logger

    def start(self, run_context: RunContext) -> str | None:
        if not run_context.is_debug:
            return None
        return self._artifact_store.ensure_run_directory(run_context)

    async def capture_step(self, run_context: RunContext, step_name: str) -> str | None:
        if not run_context.is_debug:
            return None
        try:
            screenshot = await self._page.take_screenshot(step_name)
        except Exception as exc:
            self._logger.warning(
                "debug_screenshot_failed",
                run_id=run_context.run_id,
                step=step_name,
                error=str(exc),
            )
            return None
        return self._artifact_store.save_screenshot(run_context, step_name, screenshot)
