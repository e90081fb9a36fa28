"""Exception types raised by taskguard itself.

Failures raised by user tasks are never wrapped in any of these; they reach
the caller as the original exception object.
"""

from typing import Optional


class TaskGuardError(Exception):
    """Base class for errors raised by taskguard."""


class InvalidTaskError(TaskGuardError, TypeError):
    """Raised when a batch is not an ordered sequence of zero-argument callables."""

    def __init__(self, message: str, index: Optional[int] = None):
        self.index = index
        super().__init__(message)


class InvalidPolicyError(TaskGuardError, ValueError):
    """Raised when a retry or throttle policy holds out-of-range values."""


class DeadlineExceededError(TaskGuardError, TimeoutError):
    """Raised by the deadline guard when the timer wins the race."""

    def __init__(self, timeout_ms: float):
        self.timeout_ms = timeout_ms
        super().__init__(f"Operation did not settle within {timeout_ms}ms")


class CommandFailedError(TaskGuardError):
    """Raised when a shell command task exits with a non-zero status."""

    def __init__(self, command: str, returncode: int, stderr: str = ""):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        detail = f": {stderr.strip()}" if stderr.strip() else ""
        super().__init__(f"Command '{command}' exited with status {returncode}{detail}")
