"""Shell commands as taskguard tasks.

A ShellCommandTask is an uncalled, zero-argument callable: the throttler
decides when, and through the retrier how often, the command is started.
Each invocation owns its process: when the attempt ends early (timeout or
cancellation) the whole process group is killed before the call returns.
"""

import asyncio
import logging
import os
import signal
import time
from dataclasses import dataclass
from typing import Optional

from taskguard.domain.errors import CommandFailedError, DeadlineExceededError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    """Captured output of a command that exited with status 0."""
    command: str
    returncode: int
    stdout: str
    stderr: str
    duration_s: float


def _kill_process_group(process: asyncio.subprocess.Process) -> None:
    """Kills the shell and every child it started."""
    try:
        if os.name == "posix":
            os.killpg(process.pid, signal.SIGKILL)
        else:
            process.kill()
    except ProcessLookupError:
        logger.debug(f"Process {process.pid} already gone")


class ShellCommandTask:
    """Runs one shell command per invocation.

    Args:
        command: The command line, run through the system shell.
        cwd: Working directory for the command.
        timeout_ms: Deadline for each invocation. A command still running when
            it expires is killed and the call raises DeadlineExceededError.
    """

    def __init__(self, command: str, cwd: Optional[str] = None, timeout_ms: Optional[float] = None):
        if not command or not command.strip():
            raise ValueError("command must be a non-empty string")
        if timeout_ms is not None and timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be positive, got {timeout_ms!r}")
        self.command = command
        self.cwd = cwd
        self.timeout_ms = timeout_ms
        self.invocations = 0

    def __repr__(self) -> str:
        return f"ShellCommandTask({self.command!r})"

    async def __call__(self) -> CommandResult:
        """Starts the command and waits for it to exit.

        Raises:
            CommandFailedError: If the command exits with a non-zero status.
            DeadlineExceededError: If the command outlived ``timeout_ms``.
        """
        self.invocations += 1
        logger.debug(f"Starting '{self.command}' (invocation {self.invocations})")
        started = time.perf_counter()
        process = await asyncio.create_subprocess_shell(
            self.command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=self.cwd,
            start_new_session=True,
        )
        try:
            if self.timeout_ms is None:
                stdout, stderr = await process.communicate()
            else:
                stdout, stderr = await asyncio.wait_for(process.communicate(), self.timeout_ms / 1000)
        except asyncio.TimeoutError:
            logger.debug(f"'{self.command}' still running after {self.timeout_ms}ms, killing it")
            raise DeadlineExceededError(self.timeout_ms) from None
        finally:
            if process.returncode is None:
                _kill_process_group(process)
                await process.wait()

        duration = time.perf_counter() - started
        out = stdout.decode('utf-8', errors='replace')
        err = stderr.decode('utf-8', errors='replace')

        if process.returncode != 0:
            logger.debug(f"'{self.command}' exited with {process.returncode} after {duration:.2f}s")
            raise CommandFailedError(self.command, process.returncode, err)
        return CommandResult(
            command=self.command,
            returncode=process.returncode,
            stdout=out,
            stderr=err,
            duration_s=duration,
        )
