from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from domain.models import AppConfig, CapSolverBackend, TwoCaptchaBackend
from domain.ports import ConfigProviderPort
from infra.config import FileSystemConfigProvider


def _write_config(base: Path, data: dict) -> None:
    (base / "config.json").write_text(json.dumps(data))


def _valid_config() -> dict:
    return {
        "captcha": {
            "auto_solve": True,
            "solver": "2captcha",
            "session_duration_hours": 12,
        },
        "tabs": {"oauth_timeout_seconds": 90, "max_child_tabs": 3},
        "notifications": {"channel": "telegram", "bot_token": "tok-123", "chat_id": "-100999"},
        "solvers": {
            "2captcha": {"api_key": "abc123", "timeout_seconds": 60},
            "capsolver": {"api_key": "CAP-1"},
        },
        "custom_widget_signatures": {"dropdown": [".acme-select"]},
        "debug_mode": True,
    }


def _setup_valid(tmp_path: Path) -> FileSystemConfigProvider:
    _write_config(tmp_path, _valid_config())
    return FileSystemConfigProvider(str(tmp_path))


def test_provider_satisfies_port(tmp_path: Path) -> None:
    assert isinstance(FileSystemConfigProvider(str(tmp_path)), ConfigProviderPort)


# -- validate() tests ------------------------------------------------------


def test_validate_passes_with_complete_config(tmp_path: Path) -> None:
    provider = _setup_valid(tmp_path)
    assert provider.validate() == []


def test_validate_accepts_missing_config_json(tmp_path: Path) -> None:
    assert FileSystemConfigProvider(str(tmp_path)).validate() == []


def test_validate_reports_unreadable_json(tmp_path: Path) -> None:
    (tmp_path / "config.json").write_text("{not json")
    errors = FileSystemConfigProvider(str(tmp_path)).validate()
    assert len(errors) == 1
    assert errors[0].startswith("Cannot read")


def test_validate_rejects_non_object_root(tmp_path: Path) -> None:
    (tmp_path / "config.json").write_text("[1, 2]")
    assert FileSystemConfigProvider(str(tmp_path)).validate() == [
        "config.json must contain a JSON object"
    ]


def test_validate_rejects_non_object_section(tmp_path: Path) -> None:
    _write_config(tmp_path, {"captcha": "yes"})
    assert "captcha must be an object." in FileSystemConfigProvider(str(tmp_path)).validate()


def test_validate_reports_unknown_solver(tmp_path: Path) -> None:
    _write_config(tmp_path, {"captcha": {"solver": "deathbycaptcha"}})
    errors = FileSystemConfigProvider(str(tmp_path)).validate()
    assert any("captcha.solver 'deathbycaptcha' is unknown" in e for e in errors)


def test_validate_requires_solver_for_auto_solve(tmp_path: Path) -> None:
    _write_config(tmp_path, {"captcha": {"auto_solve": True}})
    errors = FileSystemConfigProvider(str(tmp_path)).validate()
    assert "captcha.auto_solve requires captcha.solver to be set." in errors


@pytest.mark.parametrize(
    ("section", "data", "expected"),
    [
        ("captcha", {"enabled": "true"}, "captcha.enabled must be a boolean (true/false)."),
        ("captcha", {"session_duration_hours": 0}, "captcha.session_duration_hours must be a positive number."),
        ("tabs", {"max_child_tabs": True}, "tabs.max_child_tabs must be a positive number."),
        ("tabs", {"poll_interval_seconds": "1"}, "tabs.poll_interval_seconds must be a positive number."),
        ("tabs", {"auto_close": True}, "tabs.auto_close is not a recognised setting."),
    ],
)
def test_validate_checks_setting_types(tmp_path: Path, section: str, data: dict, expected: str) -> None:
    _write_config(tmp_path, {section: data})
    assert expected in FileSystemConfigProvider(str(tmp_path)).validate()


def test_validate_reports_placeholder_bot_token(tmp_path: Path) -> None:
    _write_config(
        tmp_path,
        {"notifications": {"channel": "telegram", "bot_token": "YOUR_BOT_TOKEN", "chat_id": "12"}},
    )
    errors = FileSystemConfigProvider(str(tmp_path)).validate()
    assert any("bot_token is a placeholder" in e for e in errors)


def test_validate_reports_non_numeric_chat_id(tmp_path: Path) -> None:
    _write_config(
        tmp_path,
        {"notifications": {"channel": "telegram", "bot_token": "123:abc", "chat_id": "@me"}},
    )
    assert "notifications.chat_id must be numeric." in FileSystemConfigProvider(str(tmp_path)).validate()


def test_validate_reports_unknown_channel(tmp_path: Path) -> None:
    _write_config(tmp_path, {"notifications": {"channel": "email"}})
    errors = FileSystemConfigProvider(str(tmp_path)).validate()
    assert "notifications.channel must be one of console, telegram." in errors


def test_validate_reports_solver_problems(tmp_path: Path) -> None:
    _write_config(
        tmp_path,
        {
            "solvers": {
                "2captcha": {"api_key": "YOUR_KEY"},
                "anti-captcha": "key",
                "nopecha": {"api_key": "x"},
                "capsolver": {"api_key": "k", "timeout_seconds": -1},
            }
        },
    )
    errors = FileSystemConfigProvider(str(tmp_path)).validate()
    assert "solvers.2captcha.api_key is missing or a placeholder." in errors
    assert "solvers.anti-captcha must be an object." in errors
    assert "solvers.nopecha is not a supported backend." in errors
    assert "solvers.capsolver.timeout_seconds must be a positive number." in errors


def test_validate_reports_invalid_widget_selector(tmp_path: Path) -> None:
    _write_config(tmp_path, {"custom_widget_signatures": {"dropdown": ["div[[broken"], "chips": "x"}})
    errors = FileSystemConfigProvider(str(tmp_path)).validate()
    assert any(e.startswith("custom_widget_signatures.dropdown: invalid selector") for e in errors)
    assert "custom_widget_signatures.chips must be a list of selectors." in errors


def test_validate_reports_string_debug_mode(tmp_path: Path) -> None:
    _write_config(tmp_path, {"debug_mode": "true"})
    errors = FileSystemConfigProvider(str(tmp_path)).validate()
    assert any("debug_mode must be a boolean" in e for e in errors)


def test_validate_reports_blank_db_path(tmp_path: Path) -> None:
    _write_config(tmp_path, {"db_path": "  "})
    assert "db_path must be a non-empty string." in FileSystemConfigProvider(str(tmp_path)).validate()


# -- get_config() tests ------------------------------------------------------


def test_get_config_defaults_without_file(tmp_path: Path) -> None:
    assert FileSystemConfigProvider(str(tmp_path)).get_config() == AppConfig()


def test_get_config_returns_typed_settings(tmp_path: Path) -> None:
    config = _setup_valid(tmp_path).get_config()

    assert config.captcha.auto_solve is True
    assert config.captcha.solver == "2captcha"
    assert config.captcha.session_duration_hours == 12
    assert config.captcha.pause_on_detection is True
    assert config.tabs.oauth_timeout_seconds == 90
    assert config.tabs.max_child_tabs == 3
    assert config.notifications.channel == "telegram"
    assert config.notifications.chat_id == "-100999"
    assert config.solvers["2captcha"] == TwoCaptchaBackend(api_key="abc123", timeout_seconds=60)
    assert config.solvers["capsolver"] == CapSolverBackend(api_key="CAP-1")
    assert config.custom_widget_signatures["dropdown"] == (".acme-select",)
    assert config.debug_mode is True
    assert config.db_path == "applyflow.db"


def test_get_config_rereads_file(tmp_path: Path) -> None:
    provider = _setup_valid(tmp_path)
    assert provider.get_config().debug_mode is True

    _write_config(tmp_path, {"debug_mode": False, "db_path": "/var/lib/applyflow.db"})
    config = provider.get_config()
    assert config.debug_mode is False
    assert config.db_path == "/var/lib/applyflow.db"


# -- validate_connectivity() ------------------------------------------------------


def test_connectivity_skipped_for_console_channel(tmp_path: Path) -> None:
    provider = FileSystemConfigProvider(str(tmp_path))
    result = asyncio.run(provider.validate_connectivity())
    assert result.ok is True
    assert result.bot_username is None


def test_connectivity_reports_bot_username(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    provider = _setup_valid(tmp_path)
    seen: list[str] = []

    def _fake_check(bot_token: str) -> tuple[str | None, str | None]:
        seen.append(bot_token)
        return "applyflow_bot", None

    monkeypatch.setattr(FileSystemConfigProvider, "_check_telegram", staticmethod(_fake_check))
    result = asyncio.run(provider.validate_connectivity())

    assert seen == ["tok-123"]
    assert result.ok is True
    assert result.bot_username == "applyflow_bot"


def test_connectivity_reports_rejected_token(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    provider = _setup_valid(tmp_path)
    monkeypatch.setattr(
        FileSystemConfigProvider,
        "_check_telegram",
        staticmethod(lambda token: (None, "Telegram bot_token is invalid: 401 Unauthorized.")),
    )
    result = asyncio.run(provider.validate_connectivity())
    assert result.ok is False
    assert result.errors == ["Telegram bot_token is invalid: 401 Unauthorized."]
