from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Mapping

from domain.models import RunContext


class FileSystemDebugArtifactStore:
    """Writes step screenshots and an outcome summary under <base>/run_<id>/."""

    def __init__(self, base_dir: str = "logs") -> None:
        self._base_dir = Path(base_dir)
        self._steps: dict[str, int] = {}

    def ensure_run_directory(self, run_context: RunContext) -> str:
        run_dir = self._run_dir(run_context)
        run_dir.mkdir(parents=True, exist_ok=True)
        return str(run_dir)

    def save_screenshot(
        self,
        run_context: RunContext,
        step_name: str,
        image_bytes: bytes,
    ) -> str:
        run_dir = Path(self.ensure_run_directory(run_context))
        step = self._steps.get(run_context.run_id, 0) + 1
        self._steps[run_context.run_id] = step
        path = run_dir / f"{step:02d}_{self._slug(step_name)}.png"
        path.write_bytes(image_bytes)
        return str(path)

    def save_outcome(self, run_context: RunContext, outcome: Mapping[str, object]) -> str:
        run_dir = Path(self.ensure_run_directory(run_context))
        path = run_dir / "outcome.json"
        path.write_text(json.dumps(dict(outcome), indent=2, sort_keys=True, default=str))
        return str(path)

    def _run_dir(self, run_context: RunContext) -> Path:
        if run_context.log_directory:
            return Path(run_context.log_directory)
        return self._base_dir / f"run_{run_context.run_id}"

    @staticmethod
    def _slug(step_name: str) -> str:
        return re.sub(r"[^A-Za-z0-9]+", "-", step_name).strip("-").lower() or "step"
