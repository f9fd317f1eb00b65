from __future__ import annotations

import asyncio
import json
import urllib.parse
import urllib.request
from dataclasses import dataclass
from typing import Any


class TelegramApiError(RuntimeError):
    pass


@dataclass(frozen=True)
class TelegramBotConfig:
    bot_token: str
    chat_id: str
    request_timeout_seconds: int = 30


class TelegramNotifier:
    """
    Telegram-backed implementation of NotifierPort.

    Uses plain HTTP Bot API calls; only ``sendMessage`` is needed to tell
    the user that a page is waiting for them.
    """

    def __init__(self, config: TelegramBotConfig) -> None:
        self._config = config

    async def notify(self, title: str, message: str) -> None:
        await self._post(
            "sendMessage",
            {"chat_id": self._config.chat_id, "text": f"{title}\n{message}"},
        )

    async def _post(self, method: str, params: dict[str, str]) -> Any:
        return await asyncio.to_thread(self._sync_post, method, params)

    def _sync_post(self, method: str, params: dict[str, str]) -> Any:
        base = f"https://api.telegram.org/bot{self._config.bot_token}/{method}"
        body = urllib.parse.urlencode(params).encode("utf-8")
        req = urllib.request.Request(base, data=body, method="POST")
        with urllib.request.urlopen(req, timeout=self._config.request_timeout_seconds) as resp:  # nosec B310
            payload = json.loads(resp.read().decode("utf-8"))
        if not payload.get("ok", False):
            raise TelegramApiError(str(payload))
        return payload.get("result")
