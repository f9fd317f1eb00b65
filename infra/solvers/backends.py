"""
Wire protocols of the supported paid solving services.

``solve`` is the single dispatch point: it picks the protocol from the
backend's type, runs submit-then-poll and folds every failure into a
``SolveOutcome`` instead of raising.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable, Mapping

from domain.errors import SolverBackendError
from domain.models import (
    AntiCaptchaBackend,
    CapSolverBackend,
    ChallengeInfo,
    ChallengeType,
    SolveOutcome,
    SolverBackend,
    TwoCaptchaBackend,
)
from .http import JsonHttpClient

TWO_CAPTCHA_URL = "https://2captcha.com"
ANTI_CAPTCHA_URL = "https://api.anti-captcha.com"
CAPSOLVER_URL = "https://api.capsolver.com"

NOT_READY = "CAPCHA_NOT_READY"
V3_MIN_SCORE = 0.3
V3_ACTION = "submit"

Sleep = Callable[[float], Awaitable[None]]

_TASK_TYPES: Mapping[str, Mapping[ChallengeType, str]] = {
    AntiCaptchaBackend.name: {
        ChallengeType.RECAPTCHA_V2: "RecaptchaV2TaskProxyless",
        ChallengeType.RECAPTCHA_V3: "RecaptchaV3TaskProxyless",
        ChallengeType.HCAPTCHA: "HCaptchaTaskProxyless",
        ChallengeType.TURNSTILE: "TurnstileTaskProxyless",
        ChallengeType.FUNCAPTCHA: "FunCaptchaTaskProxyless",
    },
    CapSolverBackend.name: {
        ChallengeType.RECAPTCHA_V2: "ReCaptchaV2TaskProxyLess",
        ChallengeType.RECAPTCHA_V3: "ReCaptchaV3TaskProxyLess",
        ChallengeType.HCAPTCHA: "HCaptchaTaskProxyLess",
        ChallengeType.TURNSTILE: "AntiTurnstileTaskProxyLess",
        ChallengeType.FUNCAPTCHA: "FunCaptchaTaskProxyLess",
    },
}


async def solve(
    challenge: ChallengeInfo,
    backend: SolverBackend,
    http: JsonHttpClient,
    *,
    sleep: Sleep = asyncio.sleep,
) -> SolveOutcome:
    started = time.monotonic()
    task_id: str | None = None
    try:
        if not challenge.site_key:
            raise SolverBackendError(backend.name, "NO_SITE_KEY", "challenge has no site key")
        if isinstance(backend, TwoCaptchaBackend):
            task_id = await _two_captcha_submit(challenge, backend, http)
            token = await _two_captcha_poll(task_id, backend, http, sleep)
        elif isinstance(backend, (AntiCaptchaBackend, CapSolverBackend)):
            task_id = await _task_api_submit(challenge, backend, http)
            token = await _task_api_poll(task_id, backend, http, sleep)
        else:
            raise TypeError(f"Unsupported solver backend: {backend!r}")
    except SolverBackendError as exc:
        return SolveOutcome(success=False, error=str(exc), task_id=task_id)
    except (OSError, ValueError, KeyError) as exc:
        return SolveOutcome(
            success=False,
            error=f"{backend.name}: request failed ({exc})",
            task_id=task_id,
        )
    return SolveOutcome(
        success=True,
        token=token,
        task_id=task_id,
        elapsed_seconds=time.monotonic() - started,
    )


async def balance(backend: SolverBackend, http: JsonHttpClient) -> float:
    if isinstance(backend, TwoCaptchaBackend):
        data = await http.get_json(
            f"{TWO_CAPTCHA_URL}/res.php",
            {"key": backend.api_key, "action": "getbalance", "json": "1"},
        )
        if data.get("status") != 1:
            raise SolverBackendError(backend.name, str(data.get("request")))
        return float(data.get("request") or 0)
    data = await http.post_json(f"{_task_api_url(backend)}/getBalance", {"clientKey": backend.api_key})
    _raise_for_error(backend, data)
    return float(data.get("balance") or 0)


def _max_polls(backend: SolverBackend) -> int:
    return max(1, int(backend.timeout_seconds // backend.poll_interval_seconds))


# -- 2captcha -----------------------------------------------------------------


async def _two_captcha_submit(
    challenge: ChallengeInfo,
    backend: TwoCaptchaBackend,
    http: JsonHttpClient,
) -> str:
    params: dict[str, str] = {
        "key": backend.api_key,
        "pageurl": challenge.page_url,
        "json": "1",
    }
    if challenge.type is ChallengeType.RECAPTCHA_V2:
        params.update(method="userrecaptcha", googlekey=challenge.site_key or "")
    elif challenge.type is ChallengeType.RECAPTCHA_V3:
        params.update(
            method="userrecaptcha",
            googlekey=challenge.site_key or "",
            version="v3",
            action=V3_ACTION,
            min_score=str(V3_MIN_SCORE),
        )
    elif challenge.type is ChallengeType.HCAPTCHA:
        params.update(method="hcaptcha", sitekey=challenge.site_key or "")
    elif challenge.type is ChallengeType.TURNSTILE:
        params.update(method="turnstile", sitekey=challenge.site_key or "")
    elif challenge.type is ChallengeType.FUNCAPTCHA:
        params.update(method="funcaptcha", publickey=challenge.site_key or "")
    else:
        raise SolverBackendError(backend.name, "UNSUPPORTED_TYPE", challenge.type.value)
    if backend.soft_id:
        params["soft_id"] = backend.soft_id

    data = await http.get_json(f"{TWO_CAPTCHA_URL}/in.php", params)
    if data.get("status") != 1:
        raise SolverBackendError(backend.name, str(data.get("request")), data.get("error_text"))
    return str(data["request"])


async def _two_captcha_poll(
    task_id: str,
    backend: TwoCaptchaBackend,
    http: JsonHttpClient,
    sleep: Sleep,
) -> str:
    params = {"key": backend.api_key, "action": "get", "id": task_id, "json": "1"}
    for _ in range(_max_polls(backend)):
        await sleep(backend.poll_interval_seconds)
        data = await http.get_json(f"{TWO_CAPTCHA_URL}/res.php", params)
        if data.get("status") == 1:
            return str(data["request"])
        if data.get("request") != NOT_READY:
            raise SolverBackendError(backend.name, str(data.get("request")), data.get("error_text"))
    raise SolverBackendError(backend.name, "TIMEOUT", f"no answer after {backend.timeout_seconds:g}s")


# -- createTask / getTaskResult services ----------------------------------------


def _task_api_url(backend: AntiCaptchaBackend | CapSolverBackend) -> str:
    return CAPSOLVER_URL if isinstance(backend, CapSolverBackend) else ANTI_CAPTCHA_URL


def _build_task(
    challenge: ChallengeInfo,
    backend: AntiCaptchaBackend | CapSolverBackend,
) -> dict[str, Any]:
    task_type = _TASK_TYPES[backend.name].get(challenge.type)
    if task_type is None:
        raise SolverBackendError(backend.name, "UNSUPPORTED_TYPE", challenge.type.value)
    task: dict[str, Any] = {"type": task_type, "websiteURL": challenge.page_url}
    if challenge.type is ChallengeType.FUNCAPTCHA:
        task["websitePublicKey"] = challenge.site_key
    else:
        task["websiteKey"] = challenge.site_key
    if challenge.type is ChallengeType.RECAPTCHA_V3:
        task["minScore"] = V3_MIN_SCORE
        task["pageAction"] = V3_ACTION
    return task


async def _task_api_submit(
    challenge: ChallengeInfo,
    backend: AntiCaptchaBackend | CapSolverBackend,
    http: JsonHttpClient,
) -> str:
    payload: dict[str, Any] = {
        "clientKey": backend.api_key,
        "task": _build_task(challenge, backend),
    }
    if isinstance(backend, CapSolverBackend) and backend.app_id:
        payload["appId"] = backend.app_id
    data = await http.post_json(f"{_task_api_url(backend)}/createTask", payload)
    _raise_for_error(backend, data)
    return str(data["taskId"])


async def _task_api_poll(
    task_id: str,
    backend: AntiCaptchaBackend | CapSolverBackend,
    http: JsonHttpClient,
    sleep: Sleep,
) -> str:
    payload = {"clientKey": backend.api_key, "taskId": task_id}
    for _ in range(_max_polls(backend)):
        await sleep(backend.poll_interval_seconds)
        data = await http.post_json(f"{_task_api_url(backend)}/getTaskResult", payload)
        _raise_for_error(backend, data)
        if data.get("status") == "ready":
            solution = data.get("solution") or {}
            token = solution.get("gRecaptchaResponse") or solution.get("token")
            if not token:
                raise SolverBackendError(backend.name, "EMPTY_SOLUTION")
            return str(token)
    raise SolverBackendError(backend.name, "TIMEOUT", f"no answer after {backend.timeout_seconds:g}s")


def _raise_for_error(backend: SolverBackend, data: Mapping[str, Any]) -> None:
    if data.get("errorId", 0) != 0:
        raise SolverBackendError(
            backend.name,
            str(data.get("errorCode") or "ERROR"),
            data.get("errorDescription"),
        )
