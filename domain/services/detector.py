from __future__ import annotations

import asyncio
import re
from typing import Callable, Sequence
from urllib.parse import parse_qs, urlparse

from domain.models import ChallengeInfo, ChallengeType
from domain.page import PageElement, PageSnapshot
from domain.ports import ClockPort, IdGeneratorPort, LoggerPort, PageHostPort
from domain.services.signatures import (
    CHALLENGE_PRIORITY,
    CHALLENGE_SIGNATURES,
    IMAGE_CAPTCHA_SELECTORS,
    INLINE_SITE_KEY_PATTERNS,
    TEXT_CAPTCHA_SELECTORS,
    ChallengeSignature,
)

_RENDER_PARAM = re.compile(r"[?&]render=([^&]+)")


def pick_primary(challenges: Sequence[ChallengeInfo]) -> ChallengeInfo | None:
    for challenge_type in CHALLENGE_PRIORITY:
        for challenge in challenges:
            if challenge.type is challenge_type:
                return challenge
    return challenges[0] if challenges else None


class ChallengeWatch:
    """Handle for a running detection watcher."""

    def __init__(self, task: asyncio.Task[None]) -> None:
        self._task = task

    @property
    def running(self) -> bool:
        return not self._task.done()

    def stop(self) -> None:
        self._task.cancel()


class ObstacleDetector:
    """Recognises challenge systems present on the active page."""

    def __init__(
        self,
        *,
        page: PageHostPort,
        clock: ClockPort,
        id_generator: IdGeneratorPort,
        logger: LoggerPort,
        signatures: Sequence[ChallengeSignature] = CHALLENGE_SIGNATURES,
    ) -> None:
        self._page = page
        self._clock = clock
        self._id_generator = id_generator
        self._logger = logger
        self._signatures = tuple(signatures)

    async def detect(self) -> list[ChallengeInfo]:
        return self.scan(await self._page.snapshot())

    async def primary(self) -> ChallengeInfo | None:
        return pick_primary(await self.detect())

    def scan(self, snapshot: PageSnapshot) -> list[ChallengeInfo]:
        found: list[ChallengeInfo] = []
        anchors: list[PageElement] = []
        for signature in self._signatures:
            hit = self._match_family(snapshot, signature)
            if hit is None:
                continue
            challenge, anchor = hit
            found.append(challenge)
            if anchor is not None:
                anchors.append(anchor)

        for challenge_type, selectors in (
            (ChallengeType.TEXT, TEXT_CAPTCHA_SELECTORS),
            (ChallengeType.IMAGE, IMAGE_CAPTCHA_SELECTORS),
        ):
            element = self._find_generic(snapshot, selectors, anchors)
            if element is not None:
                found.append(self._new_challenge(snapshot, challenge_type, element=element))

        for challenge in found:
            self._logger.info(
                "challenge_detected",
                challenge_type=challenge.type.value,
                site_key=challenge.site_key,
                page_url=challenge.page_url,
            )
        return found

    def watch(
        self,
        callback: Callable[[ChallengeInfo], None],
        *,
        interval: float = 1.0,
    ) -> ChallengeWatch:
        """Re-run detection as content streams in; each type is reported once."""
        seen: set[ChallengeType] = set()

        async def _loop() -> None:
            while True:
                try:
                    challenges = await self.detect()
                except Exception as exc:
                    self._logger.warning("challenge_watch_scan_failed", error=str(exc))
                    challenges = []
                for challenge in challenges:
                    if challenge.type in seen:
                        continue
                    seen.add(challenge.type)
                    try:
                        callback(challenge)
                    except Exception as exc:
                        self._logger.error(
                            "challenge_watch_callback_failed",
                            challenge_type=challenge.type.value,
                            error=str(exc),
                        )
                await asyncio.sleep(interval)

        return ChallengeWatch(asyncio.create_task(_loop()))

    # -- family matching ------------------------------------------------------

    def _match_family(
        self,
        snapshot: PageSnapshot,
        signature: ChallengeSignature,
    ) -> tuple[ChallengeInfo, PageElement | None] | None:
        marker = self._first_marker(snapshot, signature)
        frame, frame_url = self._first_frame(snapshot, signature)
        script = self._first_script(snapshot, signature)
        has_global = (
            signature.global_capability is not None
            and signature.global_capability in snapshot.capabilities
        )
        if marker is None and frame is None and not has_global:
            if script is not None:
                self._logger.info(
                    "challenge_script_without_marker",
                    challenge_type=signature.type.value,
                    script=script,
                )
            return None

        site_key = None
        if marker is not None:
            site_key = self._site_key_from_marker(marker, signature)
        if site_key is None and frame_url is not None:
            site_key = self._site_key_from_url(frame_url, signature.frame_site_key_params)
        if site_key is None and script is not None:
            match = _RENDER_PARAM.search(script)
            if match and match.group(1) != "explicit":
                site_key = match.group(1)
        if site_key is None and (script is not None or has_global):
            site_key = self._site_key_from_inline(snapshot)

        anchor = marker or frame
        challenge = self._new_challenge(
            snapshot,
            signature.type,
            element=anchor,
            site_key=site_key,
            frame_url=frame_url,
        )
        return challenge, anchor

    @staticmethod
    def _first_marker(
        snapshot: PageSnapshot,
        signature: ChallengeSignature,
    ) -> PageElement | None:
        for selector in signature.marker_selectors:
            element = snapshot.select_one(selector)
            if element is not None:
                return element
        return None

    @staticmethod
    def _first_frame(
        snapshot: PageSnapshot,
        signature: ChallengeSignature,
    ) -> tuple[PageElement | None, str | None]:
        if not signature.frame_patterns:
            return None, None
        for element, src in snapshot.frame_sources():
            if any(re.search(p, src, re.IGNORECASE) for p in signature.frame_exclude_patterns):
                continue
            if any(re.search(p, src, re.IGNORECASE) for p in signature.frame_patterns):
                return element, src
        return None, None

    @staticmethod
    def _first_script(snapshot: PageSnapshot, signature: ChallengeSignature) -> str | None:
        for src in snapshot.script_sources():
            if any(re.search(p, src, re.IGNORECASE) for p in signature.script_patterns):
                return src
        return None

    @staticmethod
    def _site_key_from_marker(
        marker: PageElement,
        signature: ChallengeSignature,
    ) -> str | None:
        for attribute in signature.site_key_attributes:
            value = marker.attr(attribute)
            if value:
                return value
        nested = marker.select_one(", ".join(f"[{a}]" for a in signature.site_key_attributes))
        if nested is not None:
            for attribute in signature.site_key_attributes:
                value = nested.attr(attribute)
                if value:
                    return value
        return None

    @staticmethod
    def _site_key_from_url(url: str, params: Sequence[str]) -> str | None:
        query = parse_qs(urlparse(url).query)
        for param in params:
            values = query.get(param)
            if values and values[0]:
                return values[0]
        return None

    @staticmethod
    def _site_key_from_inline(snapshot: PageSnapshot) -> str | None:
        for body in snapshot.inline_scripts():
            for pattern in INLINE_SITE_KEY_PATTERNS:
                match = re.search(pattern, body, re.IGNORECASE)
                if match:
                    return match.group(1)
        return None

    @staticmethod
    def _find_generic(
        snapshot: PageSnapshot,
        selectors: Sequence[str],
        anchors: Sequence[PageElement],
    ) -> PageElement | None:
        for selector in selectors:
            for element in snapshot.select(selector):
                if element.tag_name == "input" and element.input_type == "hidden":
                    continue
                if any(
                    a == element or a.contains(element) or element.contains(a)
                    for a in anchors
                ):
                    continue
                return element
        return None

    def _new_challenge(
        self,
        snapshot: PageSnapshot,
        challenge_type: ChallengeType,
        *,
        element: PageElement | None = None,
        site_key: str | None = None,
        frame_url: str | None = None,
    ) -> ChallengeInfo:
        return ChallengeInfo(
            id=self._id_generator.new_challenge_id(),
            type=challenge_type,
            page_url=snapshot.url,
            detected_at=self._clock.now(),
            site_key=site_key,
            element_path=element.css_path if element is not None else None,
            frame_url=frame_url,
        )
