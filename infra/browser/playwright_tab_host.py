from __future__ import annotations

import asyncio
import itertools
from typing import Any

from domain.models import TabEvent, TabEventKind, TabInfo, TabStatus
from domain.ports import LoggerPort, TabEventListener, Unsubscribe


class PlaywrightTabHost:
    """
    ``TabHostPort`` over a Playwright browser context.

    Pages get small integer ids in order of appearance. Playwright reports
    no focus changes, so ``activated`` events are emitted only for tabs this
    host brings to the front itself. A context is a single window.
    """

    WINDOW_ID = 1

    def __init__(self, context: Any, logger: LoggerPort) -> None:
        self._context = context
        self._logger = logger
        self._ids = itertools.count(1)
        self._pages: dict[int, Any] = {}
        self._page_ids: dict[int, int] = {}
        self._openers: dict[int, int | None] = {}
        self._active: int | None = None
        self._listeners: list[TabEventListener] = []
        self._pending: set[asyncio.Task[None]] = set()
        for page in context.pages:
            self._register(page, opener_id=None)
        context.on("page", self._on_new_page)

    def tab_id_of(self, page: Any) -> int:
        tab_id = self._page_ids.get(id(page))
        if tab_id is None:
            tab_id = self._register(page, opener_id=None)
        return tab_id

    def page_of(self, tab_id: int) -> Any | None:
        return self._pages.get(tab_id)

    async def get_tab(self, tab_id: int) -> TabInfo | None:
        page = self._pages.get(tab_id)
        if page is None or page.is_closed():
            return None
        return await self._tab_info(tab_id, page, TabStatus.COMPLETE)

    async def close_tab(self, tab_id: int) -> None:
        page = self._pages.get(tab_id)
        if page is not None and not page.is_closed():
            await page.close()

    async def activate_tab(self, tab_id: int) -> None:
        page = self._pages.get(tab_id)
        if page is None or page.is_closed():
            return
        await page.bring_to_front()
        self._active = tab_id
        await self._dispatch(
            TabEvent(kind=TabEventKind.ACTIVATED, tab_id=tab_id, window_id=self.WINDOW_ID)
        )

    async def focus_window(self, window_id: int) -> None:
        # One context, one window; bringing the page to front already focused it.
        return None

    def subscribe(self, listener: TabEventListener) -> Unsubscribe:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def drain(self) -> None:
        """Wait until every queued event was delivered."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # -- playwright callbacks -------------------------------------------------

    def _register(self, page: Any, opener_id: int | None) -> int:
        tab_id = next(self._ids)
        self._pages[tab_id] = page
        self._page_ids[id(page)] = tab_id
        self._openers[tab_id] = opener_id
        page.on("framenavigated", lambda frame: self._on_navigated(tab_id, page, frame))
        page.on("load", lambda _: self._schedule(self._emit_updated(tab_id, page, TabStatus.COMPLETE)))
        page.on("close", lambda _: self._on_closed(tab_id))
        return tab_id

    def _on_new_page(self, page: Any) -> None:
        self._schedule(self._announce(page))

    async def _announce(self, page: Any) -> None:
        opener = await page.opener()
        opener_id = self._page_ids.get(id(opener)) if opener is not None else None
        tab_id = self._register(page, opener_id)
        info = await self._tab_info(tab_id, page, TabStatus.LOADING)
        await self._dispatch(TabEvent(kind=TabEventKind.CREATED, tab_id=tab_id, tab=info))

    def _on_navigated(self, tab_id: int, page: Any, frame: Any) -> None:
        if frame is not page.main_frame:
            return
        self._schedule(self._emit_updated(tab_id, page, TabStatus.LOADING))

    def _on_closed(self, tab_id: int) -> None:
        page = self._pages.pop(tab_id, None)
        if page is not None:
            self._page_ids.pop(id(page), None)
        self._schedule(
            self._dispatch(
                TabEvent(kind=TabEventKind.REMOVED, tab_id=tab_id, window_id=self.WINDOW_ID)
            )
        )

    async def _emit_updated(self, tab_id: int, page: Any, status: TabStatus) -> None:
        if page.is_closed():
            return
        info = await self._tab_info(tab_id, page, status)
        await self._dispatch(TabEvent(kind=TabEventKind.UPDATED, tab_id=tab_id, tab=info))

    # -- helpers --------------------------------------------------------------

    async def _tab_info(self, tab_id: int, page: Any, status: TabStatus) -> TabInfo:
        try:
            title = await page.title()
        except Exception as exc:
            self._logger.warning("tab_title_unavailable", tab_id=tab_id, error=str(exc))
            title = ""
        return TabInfo(
            tab_id=tab_id,
            url=str(page.url),
            title=title,
            window_id=self.WINDOW_ID,
            active=self._active == tab_id,
            status=status,
            opener_tab_id=self._openers.get(tab_id),
        )

    def _schedule(self, coro: Any) -> None:
        task = asyncio.ensure_future(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _dispatch(self, event: TabEvent) -> None:
        for listener in list(self._listeners):
            try:
                await listener(event)
            except Exception as exc:
                self._logger.error(
                    "tab_listener_failed",
                    kind=event.kind.value,
                    tab_id=event.tab_id,
                    error=str(exc),
                )
