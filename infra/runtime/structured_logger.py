from __future__ import annotations

import json
import sys
from datetime import datetime, timezone
from typing import Any, TextIO


class StructuredLogger:
    """One JSON object per line; field values that are not JSON types are stringified."""

    def __init__(self, stream: TextIO | None = None, *, component: str | None = None) -> None:
        self._stream = stream
        self._component = component

    def info(self, message: str, **fields: Any) -> None:
        self._emit("info", message, fields)

    def warning(self, message: str, **fields: Any) -> None:
        self._emit("warning", message, fields)

    def error(self, message: str, **fields: Any) -> None:
        self._emit("error", message, fields)

    def _emit(self, level: str, message: str, fields: dict[str, Any]) -> None:
        payload: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": level,
            "message": message,
            "fields": fields,
        }
        if self._component is not None:
            payload["component"] = self._component
        print(json.dumps(payload, sort_keys=True, default=str), file=self._stream or sys.stdout)
