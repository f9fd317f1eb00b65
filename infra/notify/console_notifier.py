from __future__ import annotations

import sys
from typing import TextIO


class ConsoleNotifier:
    """stdout implementation of NotifierPort."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    async def notify(self, title: str, message: str) -> None:
        out = self._stream or sys.stdout
        print(f"[{title}] {message}", file=out, flush=True)
