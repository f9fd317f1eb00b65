from __future__ import annotations

import asyncio
import json
import re
import urllib.error
import urllib.request
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import soupsieve

from domain.models import (
    SOLVER_BACKENDS,
    AppConfig,
    CaptchaSettings,
    NotificationSettings,
    SolverBackend,
    TabCoordinatorSettings,
    build_solver_backend,
)


@dataclass(frozen=True)
class ConnectivityResult:
    """Outcome of validate_connectivity(): errors plus bot info on success."""

    errors: list[str]
    bot_username: str | None = None

    @property
    def ok(self) -> bool:
        return len(self.errors) == 0


_PLACEHOLDER_PATTERN = re.compile(r"^YOUR_", re.IGNORECASE)
_NOTIFICATION_CHANNELS = ("console", "telegram")

_CAPTCHA_FLAGS = (
    "enabled",
    "auto_solve",
    "pause_on_detection",
    "notify_user",
    "session_persistence",
)
_CAPTCHA_NUMBERS = (
    "session_duration_hours",
    "human_max_wait_seconds",
    "human_poll_interval_seconds",
    "watch_interval_seconds",
)
_TAB_FLAGS = ("auto_close_on_success", "return_to_origin")
_TAB_NUMBERS = (
    "default_timeout_seconds",
    "oauth_timeout_seconds",
    "poll_interval_seconds",
    "max_child_tabs",
    "retention_seconds",
    "new_tab_timeout_seconds",
)
_SOLVER_NUMBERS = ("timeout_seconds", "poll_interval_seconds")


class FileSystemConfigProvider:
    """Reads config.json from a config directory.

    Every public method re-reads from disk so that edits
    to the JSON file take effect without restarting the app.
    A missing file means defaults everywhere.
    """

    def __init__(self, config_dir: str) -> None:
        self._config_dir = Path(config_dir)

    @property
    def config_path(self) -> Path:
        return self._config_dir / "config.json"

    def validate(self) -> list[str]:
        errors: list[str] = []
        path = self.config_path
        if not path.is_file():
            return errors
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            return [f"Cannot read {path}: {exc}"]
        if not isinstance(data, dict):
            return [f"{path.name} must contain a JSON object"]

        captcha = self._section(data, "captcha", errors)
        tabs = self._section(data, "tabs", errors)
        notifications = self._section(data, "notifications", errors)
        solvers = self._section(data, "solvers", errors)
        widgets = self._section(data, "custom_widget_signatures", errors)

        if captcha is not None:
            errors.extend(self._validate_captcha(captcha))
        if tabs is not None:
            errors.extend(self._check_types("tabs", tabs, _TAB_FLAGS, _TAB_NUMBERS))
        if notifications is not None:
            errors.extend(self._validate_notifications(notifications))
        if solvers is not None:
            errors.extend(self._validate_solvers(solvers))
        if widgets is not None:
            errors.extend(self._validate_widget_signatures(widgets))

        debug_mode = data.get("debug_mode")
        if debug_mode is not None and not isinstance(debug_mode, bool):
            errors.append("debug_mode must be a boolean (true/false), not a string.")
        db_path = data.get("db_path")
        if db_path is not None and (not isinstance(db_path, str) or not db_path.strip()):
            errors.append("db_path must be a non-empty string.")
        return errors

    def get_config(self) -> AppConfig:
        data = self._read_json()
        captcha = dict(data.get("captcha") or {})
        tabs = dict(data.get("tabs") or {})
        notifications = dict(data.get("notifications") or {})
        solvers: dict[str, SolverBackend] = {
            name: build_solver_backend(name, **options)
            for name, options in (data.get("solvers") or {}).items()
        }
        if "max_child_tabs" in tabs:
            tabs["max_child_tabs"] = int(tabs["max_child_tabs"])
        return AppConfig(
            captcha=CaptchaSettings(**captcha),
            tabs=TabCoordinatorSettings(**tabs),
            notifications=NotificationSettings(**notifications),
            solvers=solvers,
            custom_widget_signatures=data.get("custom_widget_signatures") or {},
            db_path=str(data.get("db_path") or "applyflow.db"),
            debug_mode=bool(data.get("debug_mode", False)),
        )

    async def validate_connectivity(self) -> ConnectivityResult:
        """Verify the Telegram bot token when Telegram notifications are on."""
        config = self.get_config()
        if config.notifications.channel != "telegram":
            return ConnectivityResult(errors=[])
        bot_username, tg_err = await asyncio.to_thread(
            self._check_telegram, config.notifications.bot_token or "",
        )
        return ConnectivityResult(
            errors=[tg_err] if tg_err else [],
            bot_username=bot_username,
        )

    @staticmethod
    def _check_telegram(bot_token: str) -> tuple[str | None, str | None]:
        url = f"https://api.telegram.org/bot{bot_token}/getMe"
        try:
            req = urllib.request.Request(url, method="GET")
            with urllib.request.urlopen(req, timeout=15) as resp:
                payload = json.loads(resp.read().decode("utf-8"))
            if payload.get("ok"):
                return payload.get("result", {}).get("username", "unknown"), None
            return None, f"Telegram bot_token rejected: {payload}"
        except urllib.error.HTTPError as exc:
            return None, f"Telegram bot_token is invalid: {exc.code} {exc.reason}."
        except (urllib.error.URLError, OSError, ValueError) as exc:
            return None, f"Telegram connectivity failed: {exc}"

    # -- validation helpers -------------------------------------------------

    @staticmethod
    def _section(data: dict, key: str, errors: list[str]) -> dict | None:
        value = data.get(key)
        if value is None:
            return None
        if not isinstance(value, dict):
            errors.append(f"{key} must be an object.")
            return None
        return value

    @staticmethod
    def _check_types(
        section: str,
        data: dict,
        flags: tuple[str, ...],
        numbers: tuple[str, ...],
    ) -> list[str]:
        errors: list[str] = []
        known = set(flags) | set(numbers)
        for key in sorted(set(data) - known):
            errors.append(f"{section}.{key} is not a recognised setting.")
        for key in flags:
            if key in data and not isinstance(data[key], bool):
                errors.append(f"{section}.{key} must be a boolean (true/false).")
        for key in numbers:
            if key not in data:
                continue
            value = data[key]
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                errors.append(f"{section}.{key} must be a positive number.")
        return errors

    def _validate_captcha(self, captcha: dict) -> list[str]:
        errors = self._check_types(
            "captcha",
            {k: v for k, v in captcha.items() if k != "solver"},
            _CAPTCHA_FLAGS,
            _CAPTCHA_NUMBERS,
        )
        solver = captcha.get("solver")
        if solver is not None and solver not in SOLVER_BACKENDS:
            errors.append(
                f"captcha.solver '{solver}' is unknown; expected one of "
                f"{', '.join(SOLVER_BACKENDS)}."
            )
        if captcha.get("auto_solve") is True and not solver:
            errors.append("captcha.auto_solve requires captcha.solver to be set.")
        return errors

    @staticmethod
    def _validate_notifications(notifications: dict) -> list[str]:
        errors: list[str] = []
        channel = notifications.get("channel", "console")
        if channel not in _NOTIFICATION_CHANNELS:
            errors.append(
                f"notifications.channel must be one of {', '.join(_NOTIFICATION_CHANNELS)}."
            )
        if channel == "telegram":
            bot_token = str(notifications.get("bot_token") or "")
            if not bot_token or _PLACEHOLDER_PATTERN.search(bot_token):
                errors.append(
                    "notifications.bot_token is a placeholder. Get a real token from @BotFather."
                )
            chat_id = str(notifications.get("chat_id") or "")
            if not chat_id.lstrip("-").isdigit():
                errors.append("notifications.chat_id must be numeric.")
        return errors

    def _validate_solvers(self, solvers: dict) -> list[str]:
        errors: list[str] = []
        for name, options in solvers.items():
            if name not in SOLVER_BACKENDS:
                errors.append(f"solvers.{name} is not a supported backend.")
                continue
            if not isinstance(options, dict):
                errors.append(f"solvers.{name} must be an object.")
                continue
            api_key = str(options.get("api_key") or "")
            if not api_key or _PLACEHOLDER_PATTERN.search(api_key):
                errors.append(f"solvers.{name}.api_key is missing or a placeholder.")
            numbers = {k: v for k, v in options.items() if k in _SOLVER_NUMBERS}
            errors.extend(self._check_types(f"solvers.{name}", numbers, (), _SOLVER_NUMBERS))
        return errors

    @staticmethod
    def _validate_widget_signatures(widgets: dict) -> list[str]:
        errors: list[str] = []
        for family, selectors in widgets.items():
            if not isinstance(selectors, list) or not all(isinstance(s, str) for s in selectors):
                errors.append(f"custom_widget_signatures.{family} must be a list of selectors.")
                continue
            for selector in selectors:
                try:
                    soupsieve.compile(selector)
                except soupsieve.SelectorSyntaxError as exc:
                    errors.append(
                        f"custom_widget_signatures.{family}: invalid selector '{selector}' ({exc})."
                    )
        return errors

    # -- internal helpers ---------------------------------------------------

    def _read_json(self) -> dict[str, Any]:
        path = self.config_path
        if not path.is_file():
            return {}
        return json.loads(path.read_text(encoding="utf-8"))
