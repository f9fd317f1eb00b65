"""Test fixtures for integration and unit tests."""

from pathlib import Path

_FIXTURES_DIR = Path(__file__).parent


def fixture_path(*parts: str) -> Path:
    """Resolve a path relative to the test/fixtures/ directory."""
    return _FIXTURES_DIR.joinpath(*parts)


def pages_dir() -> Path:
    return fixture_path("pages")


def page_html(name: str) -> str:
    """Mock application page ``pages/<name>.html``."""
    return fixture_path("pages", f"{name}.html").read_text(encoding="utf-8")
