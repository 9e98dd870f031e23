"""Root pytest configuration for all tests."""

from __future__ import annotations

from pathlib import Path

import pytest

import hotreload.logging as logging_module
from tests.utils import FakeDetectorFactory, FakeHost

pytest_plugins = ("pytest_asyncio",)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep HOTRELOAD_* variables and user config files out of tests."""
    for name in ("HOTRELOAD_INTERVAL", "HOTRELOAD_SILENT", "HOTRELOAD_SCOPE", "HOTRELOAD_LOG"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))


@pytest.fixture
def reset_logging():
    """Allow setup_logging() to run again and drop handlers it added."""
    logging_module._initialized = False
    before = list(logging_module.logger.handlers)
    yield logging_module
    for handler in list(logging_module.logger.handlers):
        if handler not in before:
            logging_module.logger.removeHandler(handler)
            handler.close()
    logging_module._initialized = False


@pytest.fixture
def host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def factory() -> FakeDetectorFactory:
    return FakeDetectorFactory()


@pytest.fixture
def make_file(tmp_path: Path):
    """Create a file under tmp_path and return its absolute path."""

    def make(name: str, content: str = "original\n") -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        return path.absolute()

    return make
