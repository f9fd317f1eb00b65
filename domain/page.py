"""
Read-only model of a serialised page.

The page host clones the live document, tags every element with a
``data-af-node`` index in document order and ships the clone together with
a per-node layout table. Everything the core needs (CSS queries, ancestor
walks, document order, stable locators) is answered from that snapshot, so
scanning never touches the live page.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterator, Mapping

import soupsieve
from bs4 import BeautifulSoup, Tag

from domain.errors import ElementClassificationError
from domain.models import ElementLayout

NODE_ATTRIBUTE = "data-af-node"

_WHITESPACE = re.compile(r"\s+")
_SIMPLE_IDENT = re.compile(r"^[A-Za-z][A-Za-z0-9_-]*$")


def collapse_text(value: str | None) -> str:
    if not value:
        return ""
    return _WHITESPACE.sub(" ", value).strip()


@dataclass(frozen=True)
class PageSnapshot:
    url: str
    title: str
    soup: BeautifulSoup
    layout: Mapping[int, ElementLayout]
    viewport_width: float = 1280.0
    viewport_height: float = 720.0
    capabilities: frozenset[str] = frozenset()
    global_responses: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "layout", MappingProxyType(dict(self.layout)))
        object.__setattr__(
            self, "global_responses", MappingProxyType(dict(self.global_responses))
        )

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "PageSnapshot":
        """Build a snapshot from the host's JSON-compatible payload."""
        viewport = payload.get("viewport") or {}
        layout = {
            int(index): ElementLayout.from_mapping(record)
            for index, record in (payload.get("layout") or {}).items()
        }
        responses = {
            str(k): str(v)
            for k, v in (payload.get("responses") or {}).items()
            if v
        }
        return cls(
            url=str(payload.get("url", "")),
            title=str(payload.get("title", "")),
            soup=BeautifulSoup(str(payload.get("html", "")), "html.parser"),
            layout=layout,
            viewport_width=float(viewport.get("width", 1280)),
            viewport_height=float(viewport.get("height", 720)),
            capabilities=frozenset(payload.get("capabilities") or ()),
            global_responses=responses,
        )

    # -- queries ------------------------------------------------------------

    def select(self, selector: str, root: Tag | None = None) -> list["PageElement"]:
        scope = root if root is not None else self.soup
        return [PageElement(self, tag) for tag in soupsieve.select(selector, scope)]

    def select_one(self, selector: str, root: Tag | None = None) -> "PageElement | None":
        scope = root if root is not None else self.soup
        tag = soupsieve.select_one(selector, scope)
        return PageElement(self, tag) if tag is not None else None

    def by_id(self, element_id: str) -> "PageElement | None":
        tag = self.soup.find(attrs={"id": element_id})
        return PageElement(self, tag) if isinstance(tag, Tag) else None

    def script_sources(self) -> list[str]:
        return [str(tag.get("src")) for tag in self.soup.find_all("script", src=True)]

    def inline_scripts(self) -> list[str]:
        return [
            tag.get_text()
            for tag in self.soup.find_all("script")
            if not tag.get("src") and tag.get_text().strip()
        ]

    def frame_sources(self) -> list[tuple["PageElement", str]]:
        return [
            (PageElement(self, tag), str(tag.get("src")))
            for tag in self.soup.find_all("iframe", src=True)
        ]


class PageElement:
    """One node of a ``PageSnapshot`` plus traversal helpers."""

    __slots__ = ("snapshot", "tag")

    def __init__(self, snapshot: PageSnapshot, tag: Tag) -> None:
        self.snapshot = snapshot
        self.tag = tag

    def __eq__(self, other: object) -> bool:
        return isinstance(other, PageElement) and other.tag is self.tag

    def __hash__(self) -> int:
        return id(self.tag)

    def __repr__(self) -> str:
        return f"PageElement(<{self.tag_name}> #{self.node_index})"

    # -- identity -----------------------------------------------------------

    @property
    def tag_name(self) -> str:
        return self.tag.name.lower()

    @property
    def node_index(self) -> int:
        raw = self.tag.get(NODE_ATTRIBUTE)
        try:
            return int(str(raw))
        except (TypeError, ValueError):
            return -1

    @property
    def element_id(self) -> str | None:
        return self.attr("id")

    @property
    def name(self) -> str | None:
        return self.attr("name")

    @property
    def input_type(self) -> str | None:
        if self.tag_name != "input":
            return self.attr("type")
        return (self.attr("type") or "text").lower()

    @property
    def classes(self) -> list[str]:
        value = self.tag.get("class") or []
        if isinstance(value, str):
            return value.split()
        return list(value)

    def attr(self, name: str) -> str | None:
        value = self.tag.get(name)
        if value is None:
            return None
        if isinstance(value, list):
            value = " ".join(value)
        value = str(value).strip()
        return value or None

    def has_attr(self, name: str) -> bool:
        return self.tag.has_attr(name)

    def data_attributes(self) -> dict[str, str]:
        return {
            key: " ".join(value) if isinstance(value, list) else str(value)
            for key, value in self.tag.attrs.items()
            if key.startswith("data-") and key != NODE_ATTRIBUTE
        }

    @property
    def text(self) -> str:
        return collapse_text(self.tag.get_text(" "))

    @property
    def layout(self) -> ElementLayout:
        record = self.snapshot.layout.get(self.node_index)
        if record is None:
            raise ElementClassificationError(
                f"No layout recorded for <{self.tag_name}>",
                node_index=self.node_index,
            )
        return record

    # -- traversal ----------------------------------------------------------

    def matches(self, selector: str) -> bool:
        return soupsieve.match(selector, self.tag)

    def closest(self, selector: str) -> "PageElement | None":
        tag = soupsieve.closest(selector, self.tag)
        return PageElement(self.snapshot, tag) if tag is not None else None

    def parent(self) -> "PageElement | None":
        parent = self.tag.parent
        if isinstance(parent, Tag) and parent.name != "[document]":
            return PageElement(self.snapshot, parent)
        return None

    def ancestors(self) -> Iterator["PageElement"]:
        current = self.parent()
        while current is not None:
            yield current
            current = current.parent()

    def closest_ancestor(self, selector: str) -> "PageElement | None":
        for ancestor in self.ancestors():
            if ancestor.matches(selector):
                return ancestor
        return None

    def preceding_siblings(self) -> Iterator["PageElement"]:
        """Element siblings before this one, nearest first."""
        for sibling in self.tag.find_previous_siblings():
            if isinstance(sibling, Tag):
                yield PageElement(self.snapshot, sibling)

    def select(self, selector: str) -> list["PageElement"]:
        return self.snapshot.select(selector, root=self.tag)

    def select_one(self, selector: str) -> "PageElement | None":
        return self.snapshot.select_one(selector, root=self.tag)

    def contains(self, other: "PageElement") -> bool:
        return any(parent is self.tag for parent in other.tag.parents)

    def precedes(self, other: "PageElement") -> bool:
        return self.node_index < other.node_index

    # -- locators -----------------------------------------------------------

    @property
    def css_path(self) -> str:
        """A selector that addresses this node in the live page."""
        element_id = self.element_id
        if element_id and _SIMPLE_IDENT.match(element_id):
            if len(self.snapshot.soup.find_all(attrs={"id": element_id})) == 1:
                return f"#{element_id}"
        parts: list[str] = []
        tag: Tag | None = self.tag
        while isinstance(tag, Tag) and tag.name not in ("[document]", "html"):
            same = [
                s for s in tag.find_previous_siblings(tag.name) if isinstance(s, Tag)
            ]
            parts.append(f"{tag.name}:nth-of-type({len(same) + 1})")
            parent = tag.parent
            if isinstance(parent, Tag) and parent.name == "body":
                parts.append("body")
                break
            tag = parent if isinstance(parent, Tag) else None
        return " > ".join(reversed(parts))


__all__ = ["NODE_ATTRIBUTE", "PageSnapshot", "PageElement", "collapse_text"]
