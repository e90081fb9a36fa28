import asyncio
import time

import pytest

from taskguard.domain.errors import CommandFailedError, DeadlineExceededError
from taskguard.infrastructure.tasks.shell import CommandResult, ShellCommandTask


@pytest.mark.asyncio
async def test_successful_command_returns_output():
    task = ShellCommandTask("echo hello")

    result = await task()

    assert isinstance(result, CommandResult)
    assert result.returncode == 0
    assert result.stdout.strip() == "hello"
    assert result.duration_s >= 0
    assert task.invocations == 1


@pytest.mark.asyncio
async def test_non_zero_exit_raises_command_failed():
    task = ShellCommandTask("echo broken >&2; exit 3")

    with pytest.raises(CommandFailedError) as excinfo:
        await task()

    assert excinfo.value.returncode == 3
    assert excinfo.value.command == "echo broken >&2; exit 3"
    assert "broken" in excinfo.value.stderr
    assert "status 3" in str(excinfo.value)


@pytest.mark.asyncio
async def test_each_call_runs_the_command_again(tmp_path):
    counter = tmp_path / "count.txt"
    task = ShellCommandTask(f"echo x >> {counter}")

    await task()
    await task()

    assert counter.read_text().count("x") == 2
    assert task.invocations == 2


@pytest.mark.asyncio
async def test_working_directory_is_honoured(tmp_path):
    result = await ShellCommandTask("pwd", cwd=str(tmp_path))()
    assert result.stdout.strip().endswith(tmp_path.name)


def test_empty_command_is_rejected():
    with pytest.raises(ValueError):
        ShellCommandTask("   ")


def test_non_positive_timeout_is_rejected():
    with pytest.raises(ValueError):
        ShellCommandTask("true", timeout_ms=0)


@pytest.mark.asyncio
async def test_timeout_kills_the_command_and_its_children(tmp_path):
    finished = tmp_path / "finished"
    task = ShellCommandTask(f"sleep 1; echo late > {finished}", timeout_ms=50)

    started = time.perf_counter()
    with pytest.raises(DeadlineExceededError) as excinfo:
        await task()

    assert excinfo.value.timeout_ms == 50
    assert time.perf_counter() - started < 0.9
    await asyncio.sleep(1.2)
    assert not finished.exists()


@pytest.mark.asyncio
async def test_command_within_timeout_succeeds():
    result = await ShellCommandTask("echo quick", timeout_ms=5000)()
    assert result.stdout.strip() == "quick"


@pytest.mark.asyncio
async def test_cancelled_invocation_kills_the_command(tmp_path):
    finished = tmp_path / "finished"
    running = asyncio.ensure_future(ShellCommandTask(f"sleep 1; echo late > {finished}")())
    await asyncio.sleep(0.1)

    running.cancel()
    with pytest.raises(asyncio.CancelledError):
        await running

    await asyncio.sleep(1.2)
    assert not finished.exists()
