from __future__ import annotations

from dataclasses import replace
from typing import Mapping, Sequence

from soupsieve import SelectorSyntaxError

from domain.errors import ElementClassificationError
from domain.models import FieldDescriptor, FieldKind, FormContext, FormSection
from domain.page import NODE_ATTRIBUTE, PageElement, PageSnapshot
from domain.ports import LoggerPort, PageHostPort
from domain.services.classifier import ElementClassifier, is_visible
from domain.services.signatures import (
    CUSTOM_WIDGET_SIGNATURES,
    EXCLUDED_INPUT_TYPES,
    FIELD_DATA_INDICATORS,
    FORM_KEYWORDS,
    INTERACTIVE_ROLES,
    NATIVE_FIELD_SELECTOR,
    NATIVE_FIELD_TAGS,
    SECTION_SELECTOR,
    SECTION_TITLE_SELECTOR,
)

_ACTUAL_INPUT_SELECTORS = (
    'input:not([type="hidden"])',
    "select",
    "textarea",
    '[contenteditable="true"]',
)


def is_plausibly_interactive(element: PageElement) -> bool:
    """Cheap gate applied to custom-widget candidates before classification."""
    layout = element.snapshot.layout.get(element.node_index)
    if layout is not None and layout.has_click_handler:
        return True
    if element.has_attr("tabindex"):
        return True
    if element.attr("contenteditable") == "true":
        return True
    if element.attr("role") in INTERACTIVE_ROLES:
        return True
    return any(
        indicator in name.lower()
        for name in element.data_attributes()
        for indicator in FIELD_DATA_INDICATORS
    )


def find_actual_input(element: PageElement) -> PageElement | None:
    """The native control nested in a custom widget, or the widget itself."""
    for selector in _ACTUAL_INPUT_SELECTORS:
        found = element.select_one(selector)
        if found is not None:
            return found
    if element.tag_name in ("input", "select", "textarea"):
        return element
    if element.attr("contenteditable") == "true":
        return element
    return None


class FieldDiscoveryEngine:
    """
    Locates and labels interactive elements on the active page.

    Discovery is read-only: it works on a snapshot and never writes to the
    page, so calling it repeatedly on an unchanged page yields the same
    fields.
    """

    def __init__(
        self,
        *,
        page: PageHostPort,
        logger: LoggerPort,
        classifier: ElementClassifier | None = None,
        widget_signatures: Mapping[str, Sequence[str]] | None = None,
    ) -> None:
        self._page = page
        self._logger = logger
        self._classifier = classifier or ElementClassifier()
        signatures = dict(CUSTOM_WIDGET_SIGNATURES)
        for family, selectors in (widget_signatures or {}).items():
            signatures[family] = tuple(signatures.get(family, ())) + tuple(selectors)
        self._widget_signatures = signatures

    async def discover(self) -> FormContext:
        snapshot = await self._page.snapshot()
        return self.analyze(snapshot)

    def analyze(self, snapshot: PageSnapshot) -> FormContext:
        inputs: list[FieldDescriptor] = []
        selects: list[FieldDescriptor] = []
        textareas: list[FieldDescriptor] = []
        buttons: list[FieldDescriptor] = []
        captured: set[int] = set()

        for element in snapshot.select(NATIVE_FIELD_SELECTOR):
            is_button = element.tag_name == "button" or (
                element.tag_name == "input" and element.input_type in ("submit", "button")
            )
            if not is_button and element.input_type in EXCLUDED_INPUT_TYPES:
                continue
            descriptor = self._classify(element)
            if descriptor is None:
                continue
            captured.add(descriptor.node_index)
            if descriptor.kind is FieldKind.BUTTON:
                if descriptor.visible:
                    buttons.append(descriptor)
                continue
            if not (descriptor.visible and descriptor.interactive):
                continue
            if descriptor.kind is FieldKind.SELECT:
                selects.append(descriptor)
            elif descriptor.kind is FieldKind.TEXTAREA:
                textareas.append(descriptor)
            else:
                inputs.append(descriptor)

        custom_widgets = self._discover_custom_widgets(snapshot, captured)
        all_fields = sorted(
            inputs + selects + textareas + custom_widgets + buttons,
            key=lambda f: f.node_index,
        )
        form = self._select_primary_form(snapshot)
        return FormContext(
            page_url=snapshot.url,
            page_title=snapshot.title,
            form_path=form.css_path if form is not None else None,
            all_fields=tuple(all_fields),
            inputs=tuple(inputs),
            selects=tuple(selects),
            textareas=tuple(textareas),
            buttons=tuple(buttons),
            custom_widgets=tuple(custom_widgets),
            sections=tuple(self._group_sections(snapshot, all_fields)),
        )

    # -- steps -----------------------------------------------------------------

    def _classify(self, element: PageElement) -> FieldDescriptor | None:
        try:
            return self._classifier.classify(element)
        except ElementClassificationError as exc:
            self._logger.warning(
                "field_classification_skipped",
                tag=element.tag_name,
                node_index=exc.node_index,
                error=str(exc),
            )
            return None

    def _discover_custom_widgets(
        self,
        snapshot: PageSnapshot,
        captured: set[int],
    ) -> list[FieldDescriptor]:
        widgets: list[FieldDescriptor] = []
        for family, selectors in self._widget_signatures.items():
            for selector in selectors:
                try:
                    candidates = snapshot.select(selector)
                except SelectorSyntaxError as exc:
                    self._logger.warning(
                        "widget_signature_invalid",
                        family=family,
                        selector=selector,
                        error=str(exc),
                    )
                    continue
                for element in candidates:
                    if element.tag_name in NATIVE_FIELD_TAGS:
                        continue
                    if element.node_index in captured:
                        continue
                    if not is_plausibly_interactive(element):
                        continue
                    captured.add(element.node_index)
                    descriptor = self._classify(element)
                    if descriptor is None:
                        continue
                    if not (descriptor.visible and descriptor.interactive):
                        continue
                    target = find_actual_input(element)
                    widgets.append(
                        replace(descriptor, target_path=target.css_path if target else None)
                    )
        return widgets

    @staticmethod
    def _select_primary_form(snapshot: PageSnapshot) -> PageElement | None:
        forms = snapshot.select("form")
        if not forms:
            return None
        if len(forms) == 1:
            return forms[0]

        best: PageElement | None = None
        best_score = 0
        for form in forms:
            score = 0
            text = form.text.lower()
            for keyword in FORM_KEYWORDS:
                if keyword in text:
                    score += 10
            score += 2 * len(form.select("input, select, textarea"))
            layout = snapshot.layout.get(form.node_index)
            if layout is not None and is_visible(
                layout, snapshot.viewport_width, snapshot.viewport_height
            ):
                score += 20
            if score > best_score:
                best_score = score
                best = form
        return best

    @staticmethod
    def _group_sections(
        snapshot: PageSnapshot,
        fields: Sequence[FieldDescriptor],
    ) -> list[FormSection]:
        groups: dict[int, tuple[PageElement, list[FieldDescriptor]]] = {}
        ungrouped: list[FieldDescriptor] = []
        by_index = {
            element.node_index: element
            for element in snapshot.select(f"[{NODE_ATTRIBUTE}]")
        }
        for descriptor in fields:
            element = by_index.get(descriptor.node_index)
            ancestor = element.closest_ancestor(SECTION_SELECTOR) if element else None
            if ancestor is None:
                ungrouped.append(descriptor)
                continue
            entry = groups.setdefault(ancestor.node_index, (ancestor, []))
            entry[1].append(descriptor)

        sections: list[FormSection] = []
        for ancestor, members in groups.values():
            title_el = ancestor.select_one(SECTION_TITLE_SELECTOR)
            title = (title_el.text if title_el else "") or ancestor.attr("aria-label") or "Section"
            sections.append(
                FormSection(title=title, fields=tuple(members), container_path=ancestor.css_path)
            )
        if ungrouped:
            sections.append(FormSection(title="General", fields=tuple(ungrouped)))
        return sections
