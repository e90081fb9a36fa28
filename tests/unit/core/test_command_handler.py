import asyncio

import pytest
from unittest.mock import MagicMock

from taskguard.core.command_handler import EXIT_FAILED, EXIT_OK, CommandHandler, build_cooldown_schedule
from taskguard.domain.events.progress_events import BATCH_FINISHED, BATCH_STARTED
from taskguard.domain.interfaces.user_interface import UserInterface
from taskguard.domain.models.common import RetryPolicy, ThrottlePolicy


@pytest.fixture
def mock_ui():
    return MagicMock(spec=UserInterface)


@pytest.fixture
def handler(mock_ui, recording_delay):
    """Fixture to create a CommandHandler with a mocked UI and an instant backoff."""
    return CommandHandler(ui=mock_ui, delay=recording_delay)


def policy(fail_fast=True, retry_times=0, max_concurrency=2):
    return ThrottlePolicy(
        max_concurrency=max_concurrency,
        fail_fast=fail_fast,
        retry=RetryPolicy(retry_times=retry_times, base_cooldown_seconds=1, jitter_enabled=False),
    )


@pytest.mark.asyncio
async def test_run_all_succeeding(handler: CommandHandler, mock_ui: MagicMock):
    exit_code = await handler.handle_run(["echo one", "echo two"], policy())

    assert exit_code == EXIT_OK
    mock_ui.display_batch_result.assert_called_once()
    labels, result = mock_ui.display_batch_result.call_args.args
    assert labels == ["echo one", "echo two"]
    assert [outcome.value.stdout.strip() for outcome in result] == ["one", "two"]
    mock_ui.display_error.assert_not_called()


@pytest.mark.asyncio
async def test_run_streams_progress_events_to_ui(handler: CommandHandler, mock_ui: MagicMock):
    await handler.handle_run(["echo one"], policy())

    messages = [call.args[0].message for call in mock_ui.display_event.call_args_list]
    assert messages[0] == BATCH_STARTED
    assert messages[-1] == BATCH_FINISHED


@pytest.mark.asyncio
async def test_run_fail_fast_reports_failing_command(handler: CommandHandler, mock_ui: MagicMock):
    exit_code = await handler.handle_run(["echo a", "exit 4", "echo c"], policy(max_concurrency=1))

    assert exit_code == EXIT_FAILED
    mock_ui.display_batch_result.assert_not_called()
    message = mock_ui.display_error.call_args.args[0]
    assert "command 1 ('exit 4')" in message
    assert "status 4" in message


@pytest.mark.asyncio
async def test_run_continue_on_error_shows_every_result(handler: CommandHandler, mock_ui: MagicMock):
    exit_code = await handler.handle_run(["echo a", "exit 4", "echo c"], policy(fail_fast=False))

    assert exit_code == EXIT_FAILED
    _, result = mock_ui.display_batch_result.call_args.args
    assert [outcome.ok for outcome in result] == [True, False, True]


@pytest.mark.asyncio
async def test_run_retries_with_injected_delay(handler: CommandHandler, recording_delay, tmp_path):
    marker = tmp_path / "marker"
    # Fails on the first attempt, succeeds once the marker exists
    command = f"if [ -f {marker} ]; then echo recovered; else touch {marker}; exit 1; fi"

    exit_code = await handler.handle_run([command], policy(retry_times=2))

    assert exit_code == EXIT_OK
    assert recording_delay.calls == [1000.0]


@pytest.mark.asyncio
async def test_run_task_timeout_fails_the_command(handler: CommandHandler, mock_ui: MagicMock):
    exit_code = await handler.handle_run(["sleep 0.3"], policy(), task_timeout_ms=20)

    assert exit_code == EXIT_FAILED
    assert "command 0" in mock_ui.display_error.call_args.args[0]


@pytest.mark.asyncio
async def test_run_batch_timeout(handler: CommandHandler, mock_ui: MagicMock):
    exit_code = await handler.handle_run(["sleep 0.3"], policy(), batch_timeout_ms=20)

    assert exit_code == EXIT_FAILED
    mock_ui.display_error.assert_called_once_with("Batch did not finish within 20ms.")
    await asyncio.sleep(0.4)


@pytest.mark.asyncio
async def test_run_without_commands_warns(handler: CommandHandler, mock_ui: MagicMock):
    assert await handler.handle_run([], policy()) == EXIT_OK
    mock_ui.display_warning.assert_called_once()


def test_schedule_without_jitter_is_exact():
    rows = build_cooldown_schedule(RetryPolicy(retry_times=3, base_cooldown_seconds=2, jitter_enabled=False))

    assert [row["min_ms"] for row in rows] == [2000.0, 4000.0, 6000.0]
    assert [row["max_ms"] for row in rows] == [2000.0, 4000.0, 6000.0]
    assert rows[-1]["cumulative_max_ms"] == 12000.0


def test_schedule_with_jitter_gives_bounds():
    rows = build_cooldown_schedule(RetryPolicy(retry_times=2, base_cooldown_seconds=10, jitter_enabled=True))

    assert rows[0]["min_ms"] == pytest.approx(10100.0)
    assert rows[0]["max_ms"] == pytest.approx(11100.0)
    assert rows[1]["min_ms"] == pytest.approx(20200.0)


def test_handle_schedule_displays_rows(handler: CommandHandler, mock_ui: MagicMock):
    handler.handle_schedule(RetryPolicy(retry_times=2, base_cooldown_seconds=1, jitter_enabled=False))

    rows = mock_ui.display_cooldown_schedule.call_args.args[0]
    assert len(rows) == 2
    assert mock_ui.display_cooldown_schedule.call_args.kwargs["title"] == "2 retries, base 1s, no jitter"


@pytest.mark.asyncio
async def test_run_announces_the_batch(handler: CommandHandler, mock_ui: MagicMock):
    await handler.handle_run(["echo one", "echo two"], policy(retry_times=2, max_concurrency=1))

    mock_ui.display_info.assert_called_once_with("Running 2 command(s), at most 1 at a time, up to 3 attempt(s) each.")


@pytest.mark.asyncio
async def test_timed_out_attempts_never_overlap(handler: CommandHandler, mock_ui: MagicMock, tmp_path):
    starts, dones = tmp_path / "starts", tmp_path / "dones"
    command = f"echo started >> {starts}; sleep 1; echo done >> {dones}"

    exit_code = await handler.handle_run([command], policy(retry_times=2, max_concurrency=1), task_timeout_ms=300)

    assert exit_code == EXIT_FAILED
    assert "command 0" in mock_ui.display_error.call_args.args[0]
    assert starts.read_text().split() == ["started"] * 3
    # Killed attempts never reach their last step, even after the batch has returned
    assert not dones.exists()
    await asyncio.sleep(1.2)
    assert not dones.exists()
