from __future__ import annotations

from typing import Any

from domain.models import TokenInjection
from domain.page import NODE_ATTRIBUTE, PageSnapshot
from domain.services.signatures import signature_for
from .page_scripts import INJECT_TOKEN_SCRIPT, OVERLAY_SCRIPT, SNAPSHOT_SCRIPT


class PlaywrightPageHost:
    """
    ``PageHostPort`` over one Playwright page.

    The page object is typed as ``Any`` so the domain never imports
    Playwright; any ``playwright.async_api.Page`` works.
    """

    def __init__(self, page: Any) -> None:
        self._page = page

    @property
    def page(self) -> Any:
        return self._page

    def bind(self, page: Any) -> None:
        """Point the host at another page, e.g. after a popup took focus."""
        self._page = page

    async def current_url(self) -> str:
        return str(self._page.url)

    async def snapshot(self) -> PageSnapshot:
        payload = await self._page.evaluate(SNAPSHOT_SCRIPT, NODE_ATTRIBUTE)
        return PageSnapshot.from_payload(payload)

    async def inject_token(self, injection: TokenInjection) -> bool:
        signature = signature_for(injection.challenge_type)
        if signature is None or not signature.response_field:
            return False
        result = await self._page.evaluate(
            INJECT_TOKEN_SCRIPT,
            {
                "token": injection.token,
                "responseField": signature.response_field,
                "elementPath": injection.element_path,
            },
        )
        return bool(result)

    async def show_overlay(self, title: str, message: str, duration_seconds: float) -> None:
        await self._page.evaluate(
            OVERLAY_SCRIPT,
            {"title": title, "message": message, "durationMs": int(duration_seconds * 1000)},
        )

    async def take_screenshot(self, step_name: str) -> bytes:
        return await self._page.screenshot(full_page=True)
