import asyncio
import os
from typing import Any, List

import pytest
from typer.testing import CliRunner

from taskguard.domain.events.progress_events import ProgressEvent
from taskguard.infrastructure.cli.display import ConsoleDisplay
from taskguard.infrastructure.config import settings


class RecordingDelay:
    """Stand-in delay primitive: records requested cooldowns and yields once."""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, ms: float) -> None:
        self.calls.append(ms)
        await asyncio.sleep(0)


class FlakyTask:
    """Task failing ``failures`` times before returning ``value``.

    With ``failures=None`` it never succeeds.
    """

    def __init__(self, failures=0, value: Any = "ok", error: Exception = None, sync: bool = False):
        self.failures = failures
        self.value = value
        self.error = error or RuntimeError("boom")
        self.sync = sync
        self.calls = 0

    def _attempt(self) -> Any:
        self.calls += 1
        if self.failures is None or self.calls <= self.failures:
            raise self.error
        return self.value

    def __call__(self):
        if self.sync:
            return self._attempt()
        return self._run()

    async def _run(self) -> Any:
        await asyncio.sleep(0)
        return self._attempt()


@pytest.fixture
def events() -> List[ProgressEvent]:
    return []


@pytest.fixture
def sink(events):
    return events.append


@pytest.fixture
def recording_delay() -> RecordingDelay:
    return RecordingDelay()


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    """Keeps user config files and TASKGUARD_* variables out of every test."""
    for name in list(os.environ):
        if name.startswith(settings.ENV_PREFIX):
            monkeypatch.delenv(name)
    monkeypatch.setattr(settings, "_config", {})
    monkeypatch.setattr(settings, "_loaded", False)
    settings.clear_test_config()
    yield
    settings.clear_test_config()


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture
def mock_console_display(mocker):
    """Mocks the ConsoleDisplay wired by main.py and skips config/logging setup."""
    from taskguard import main

    mock = mocker.MagicMock(spec=ConsoleDisplay)
    mocker.patch('taskguard.main.ConsoleDisplay', return_value=mock)
    mocker.patch('taskguard.main.load_configuration')
    mocker.patch('taskguard.main.setup_logging')
    main.reset_dependencies()
    yield mock
    main.reset_dependencies()


@pytest.fixture
def make_flaky():
    """Factory fixture building FlakyTask instances."""
    return FlakyTask
