from __future__ import annotations

import re
from typing import Any, Callable, Iterable, Mapping

from bs4 import BeautifulSoup, Tag

from domain import PageHostPort
from domain.models import TokenInjection
from domain.page import NODE_ATTRIBUTE, PageSnapshot

_DEFAULT_WIDTH = 200.0
_DEFAULT_HEIGHT = 24.0
_PX = re.compile(r"^(-?\d+(?:\.\d+)?)px$")


def _parse_style(raw: Any) -> dict[str, str]:
    style: dict[str, str] = {}
    for part in str(raw or "").split(";"):
        if ":" not in part:
            continue
        key, value = part.split(":", 1)
        style[key.strip().lower()] = value.strip().lower()
    return style


def _px(value: str | None, default: float) -> float:
    if value is None:
        return default
    match = _PX.match(value)
    return float(match.group(1)) if match else default


def _display_none(tag: Tag) -> bool:
    if tag.has_attr("hidden"):
        return True
    if tag.name == "input" and str(tag.get("type", "")).lower() == "hidden":
        return True
    return _parse_style(tag.get("style")).get("display") == "none"


def _current_value(tag: Tag) -> str:
    if tag.name == "input":
        return str(tag.get("value") or "")
    if tag.name == "textarea":
        return tag.get_text()
    if tag.name == "select":
        options = tag.find_all("option")
        chosen = next((o for o in options if o.has_attr("selected")), None)
        chosen = chosen or (options[0] if options else None)
        if chosen is None:
            return ""
        return str(chosen.get("value") if chosen.has_attr("value") else chosen.get_text())
    return ""


class FakePageHost:
    """
    ``PageHostPort`` over a static HTML string.

    Layout is derived from inline styles the way a browser would report it
    for the properties the core reads: ``display:none`` (and the ``hidden``
    attribute) collapses an element and its descendants, ``visibility`` is
    inherited, ``opacity``/``pointer-events``/``position``/``top``/``left``/
    ``width``/``height`` are taken from the element's own style.
    """

    def __init__(
        self,
        html: str,
        *,
        url: str = "https://jobs.example.com/apply",
        title: str = "Apply",
        capabilities: Iterable[str] = (),
        responses: Mapping[str, str] | None = None,
        viewport: tuple[float, float] = (1280.0, 720.0),
    ) -> None:
        self.html = html
        self.url = url
        self.title = title
        self.capabilities = set(capabilities)
        self.responses = dict(responses or {})
        self.viewport = viewport
        self.inject_result = True
        self.screenshot_error: Exception | None = None
        self.injections: list[TokenInjection] = []
        self.overlays: list[tuple[str, str, float]] = []
        self.screenshots: list[str] = []
        self.snapshot_count = 0
        self._pending: list[tuple[int, Callable[["FakePageHost"], None]]] = []

    # -- test controls -----------------------------------------------------------

    def set_html(self, html: str) -> None:
        self.html = html

    def after_snapshots(self, count: int, mutate: Callable[["FakePageHost"], None]) -> None:
        """Apply ``mutate`` once ``count`` snapshots have been taken."""
        self._pending.append((count, mutate))

    # -- PageHostPort --------------------------------------------------------------

    async def current_url(self) -> str:
        return self.url

    async def snapshot(self) -> PageSnapshot:
        due = [item for item in self._pending if item[0] <= self.snapshot_count]
        for item in due:
            self._pending.remove(item)
            item[1](self)
        self.snapshot_count += 1
        return PageSnapshot.from_payload(self.payload())

    async def inject_token(self, injection: TokenInjection) -> bool:
        self.injections.append(injection)
        return self.inject_result

    async def show_overlay(self, title: str, message: str, duration_seconds: float) -> None:
        self.overlays.append((title, message, duration_seconds))

    async def take_screenshot(self, step_name: str) -> bytes:
        if self.screenshot_error is not None:
            raise self.screenshot_error
        self.screenshots.append(step_name)
        return b"png:" + step_name.encode("utf-8")

    # -- payload -------------------------------------------------------------------

    def payload(self) -> dict[str, Any]:
        markup = self.html if "<body" in self.html else f"<html><body>{self.html}</body></html>"
        soup = BeautifulSoup(markup, "html.parser")
        layout: dict[str, dict[str, Any]] = {}
        for index, tag in enumerate(soup.find_all(True)):
            tag[NODE_ATTRIBUTE] = str(index)
            layout[str(index)] = self._layout_of(tag, index)
        width, height = self.viewport
        return {
            "url": self.url,
            "title": self.title,
            "viewport": {"width": width, "height": height},
            "html": str(soup),
            "capabilities": sorted(self.capabilities),
            "responses": dict(self.responses),
            "layout": layout,
        }

    @staticmethod
    def _layout_of(tag: Tag, index: int) -> dict[str, Any]:
        style = _parse_style(tag.get("style"))
        ancestors = [p for p in tag.parents if isinstance(p, Tag) and p.name != "[document]"]
        collapsed = _display_none(tag)
        hidden_by_parent = any(_display_none(p) for p in ancestors)

        visibility = style.get("visibility")
        if visibility is None:
            for parent in ancestors:
                inherited = _parse_style(parent.get("style")).get("visibility")
                if inherited is not None:
                    visibility = inherited
                    break

        zero = collapsed or hidden_by_parent
        return {
            "x": _px(style.get("left"), 0.0),
            "y": _px(style.get("top"), index * _DEFAULT_HEIGHT),
            "width": 0.0 if zero else _px(style.get("width"), _DEFAULT_WIDTH),
            "height": 0.0 if zero else _px(style.get("height"), _DEFAULT_HEIGHT),
            "display": "none" if collapsed else style.get("display", "block"),
            "visibility": visibility or "visible",
            "opacity": float(style.get("opacity", "1")),
            "pointer_events": style.get("pointer-events", "auto"),
            "position": style.get("position", "static"),
            "has_offset_parent": not zero,
            "disabled": tag.has_attr("disabled"),
            "read_only": tag.has_attr("readonly"),
            "required": tag.has_attr("required"),
            "value": _current_value(tag),
            "has_click_handler": tag.has_attr("onclick"),
        }


_page_host_check: PageHostPort = FakePageHost("<form></form>")
