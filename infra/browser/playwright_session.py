from __future__ import annotations

from typing import Any

from domain.ports import LoggerPort
from .playwright_page_host import PlaywrightPageHost
from .playwright_tab_host import PlaywrightTabHost


class PlaywrightBrowserSession:
    """
    Owns one Chromium instance with a single context and its first page.

    Requires ``playwright`` to be installed and browsers set up via
    ``playwright install chromium``. Call ``close()`` when finished.
    """

    def __init__(self, logger: LoggerPort, *, headless: bool = True) -> None:
        self._logger = logger
        self._headless = headless
        self._playwright: Any = None
        self._browser: Any = None
        self._context: Any = None
        self._page: Any = None
        self._page_host: PlaywrightPageHost | None = None
        self._tab_host: PlaywrightTabHost | None = None

    async def launch(self) -> None:
        from playwright.async_api import async_playwright

        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(headless=self._headless)
        self._context = await self._browser.new_context()
        self._page = await self._context.new_page()
        self._tab_host = PlaywrightTabHost(self._context, self._logger)
        self._page_host = PlaywrightPageHost(self._page)

    async def close(self) -> None:
        if self._context:
            await self._context.close()
        if self._browser:
            await self._browser.close()
        if self._playwright:
            await self._playwright.stop()

    async def __aenter__(self) -> "PlaywrightBrowserSession":
        await self.launch()
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> None:
        await self.close()

    @property
    def page_host(self) -> PlaywrightPageHost:
        if self._page_host is None:
            raise RuntimeError("Browser not launched. Call launch() first.")
        return self._page_host

    @property
    def tab_host(self) -> PlaywrightTabHost:
        if self._tab_host is None:
            raise RuntimeError("Browser not launched. Call launch() first.")
        return self._tab_host

    @property
    def origin_tab_id(self) -> int:
        return self.tab_host.tab_id_of(self._page)

    async def goto(self, url: str) -> None:
        if self._page is None:
            raise RuntimeError("Browser not launched. Call launch() first.")
        await self._page.goto(url, wait_until="domcontentloaded")
        try:
            await self._page.wait_for_load_state("networkidle", timeout=15_000)
        except Exception as exc:
            # Pages with long-polling never go idle; the DOM is usable regardless.
            self._logger.warning("page_network_not_idle", url=url, error=str(exc))
