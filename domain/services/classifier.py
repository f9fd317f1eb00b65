from __future__ import annotations

from domain.models import (
    ElementLayout,
    FieldDescriptor,
    FieldKind,
    LabelCandidate,
    LabelSource,
)
from domain.page import PageElement, collapse_text
from domain.services.signatures import (
    BUTTON_INPUT_TYPES,
    DISABLED_ANCESTOR_SELECTOR,
    HEADING_SELECTOR,
    LABEL_CONTAINER_SELECTORS,
    REQUIRED_CONTAINER_SELECTOR,
)

_MAX_LABEL_LENGTH = 200
_MAX_SIBLING_SPAN_LENGTH = 100
_HEADING_SEARCH_DEPTH = 10
_LABEL_IN_CONTAINER = 'label, .label, [class*="label"]'


def is_visible(layout: ElementLayout, viewport_width: float, viewport_height: float) -> bool:
    if layout.display == "none":
        return False
    if layout.visibility == "hidden":
        return False
    if layout.opacity == 0:
        return False
    if layout.width == 0 and layout.height == 0:
        return False
    if layout.bottom < 0 or layout.right < 0:
        return False
    if layout.top > viewport_height and layout.left > viewport_width:
        return False
    if not layout.has_offset_parent and layout.position != "fixed":
        return False
    return True


def is_disabled(element: PageElement, layout: ElementLayout) -> bool:
    if layout.disabled:
        return True
    if element.attr("aria-disabled") == "true":
        return True
    if "disabled" in element.classes:
        return True
    return element.closest(DISABLED_ANCESTOR_SELECTOR) is not None


def is_required(element: PageElement, layout: ElementLayout) -> bool:
    if layout.required or element.has_attr("required"):
        return True
    if element.attr("aria-required") == "true":
        return True
    container = element.closest_ancestor(REQUIRED_CONTAINER_SELECTOR)
    if container is not None:
        text = container.text.lower()
        if "*" in text or "required" in text:
            return True
    return False


def field_kind(element: PageElement) -> FieldKind:
    tag = element.tag_name
    if tag == "button":
        return FieldKind.BUTTON
    if tag == "input":
        if element.input_type in BUTTON_INPUT_TYPES:
            return FieldKind.BUTTON
        return FieldKind.INPUT
    if tag == "select":
        return FieldKind.SELECT
    if tag == "textarea":
        return FieldKind.TEXTAREA
    return FieldKind.CUSTOM


class ElementClassifier:
    """Computes visibility, interactivity, flags and ranked labels for one element."""

    def classify(self, element: PageElement) -> FieldDescriptor:
        layout = element.layout
        snapshot = element.snapshot
        visible = is_visible(layout, snapshot.viewport_width, snapshot.viewport_height)
        disabled = is_disabled(element, layout)
        interactive = (
            layout.pointer_events != "none" and not disabled and not layout.read_only
        )
        return FieldDescriptor(
            kind=field_kind(element),
            tag=element.tag_name,
            input_type=element.input_type,
            element_id=element.element_id,
            name=element.name,
            labels=self.rank_labels(element),
            layout=layout,
            visible=visible,
            interactive=interactive,
            disabled=disabled,
            required=is_required(element, layout),
            css_path=element.css_path,
            node_index=element.node_index,
            role=element.attr("role"),
            value=layout.value,
            data_attributes=element.data_attributes(),
        )

    def rank_labels(self, element: PageElement) -> tuple[LabelCandidate, ...]:
        tiers = (
            (LabelSource.ACCESSIBLE_NAME, self._accessible_name),
            (LabelSource.LABEL_FOR, self._bound_label),
            (LabelSource.PLACEHOLDER, self._placeholder),
            (LabelSource.DESCRIBED_BY, self._described_by),
            (LabelSource.SIBLING, self._sibling_label),
            (LabelSource.CONTAINER, self._container_label),
            (LabelSource.SECTION_HEADING, self._section_heading),
        )
        ranked: list[LabelCandidate] = []
        for source, extract in tiers:
            for text in extract(element):
                text = collapse_text(text)
                if text and len(text) < _MAX_LABEL_LENGTH:
                    ranked.append(LabelCandidate(source=source, text=text))
                    break
        return tuple(ranked)

    # -- label tiers ---------------------------------------------------------

    @staticmethod
    def _accessible_name(element: PageElement) -> list[str]:
        found = [element.attr("aria-label") or ""]
        found.append(_text_of_ids(element, element.attr("aria-labelledby")))
        if field_kind(element) is FieldKind.BUTTON:
            if element.tag_name == "input":
                found.append(element.attr("value") or element.attr("alt") or "")
            else:
                found.append(element.text)
        return found

    @staticmethod
    def _bound_label(element: PageElement) -> list[str]:
        element_id = element.element_id
        if not element_id:
            return []
        return [
            label.text
            for label in element.snapshot.select("label[for]")
            if label.attr("for") == element_id
        ]

    @staticmethod
    def _placeholder(element: PageElement) -> list[str]:
        return [element.attr("placeholder") or ""]

    @staticmethod
    def _described_by(element: PageElement) -> list[str]:
        return [_text_of_ids(element, element.attr("aria-describedby"))]

    @staticmethod
    def _sibling_label(element: PageElement) -> list[str]:
        for sibling in element.preceding_siblings():
            text = sibling.text
            if not text:
                continue
            if sibling.tag_name == "label" or any("label" in c for c in sibling.classes):
                return [text]
            if sibling.tag_name == "span" and len(text) < _MAX_SIBLING_SPAN_LENGTH:
                return [text]
        return []

    @staticmethod
    def _container_label(element: PageElement) -> list[str]:
        found: list[str] = []
        parent_label = element.closest_ancestor("label")
        if parent_label is not None:
            own = element.text
            text = parent_label.text
            if own:
                text = text.replace(own, "")
            found.append(text)
        for selector in LABEL_CONTAINER_SELECTORS:
            container = element.closest_ancestor(selector)
            if container is None:
                continue
            label = container.select_one(_LABEL_IN_CONTAINER)
            if label is not None and not label.contains(element) and label != element:
                found.append(label.text)
        return found

    @staticmethod
    def _section_heading(element: PageElement) -> list[str]:
        for depth, ancestor in enumerate(element.ancestors()):
            if depth >= _HEADING_SEARCH_DEPTH:
                break
            preceding = [
                heading
                for heading in ancestor.select(HEADING_SELECTOR)
                if heading.precedes(element)
            ]
            if preceding:
                return [preceding[-1].text]
        return []


def _text_of_ids(element: PageElement, ids: str | None) -> str:
    if not ids:
        return ""
    parts = []
    for ref in ids.split():
        target = element.snapshot.by_id(ref)
        if target is not None:
            parts.append(target.text)
    return " ".join(parts)
