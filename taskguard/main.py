"""Main entry point for the taskguard CLI.

Sets up the Typer application, wires dependencies (Composition Root),
defines the CLI commands and delegates execution to the CommandHandler.
"""

import asyncio
import logging
from typing import Any, Coroutine, Dict, List, Optional

import typer
from typing_extensions import Annotated

from taskguard.core.command_handler import CommandHandler
from taskguard.domain.errors import InvalidPolicyError
from taskguard.domain.models.common import RetryPolicy, ThrottlePolicy
from taskguard.infrastructure.cli.display import ConsoleDisplay
from taskguard.infrastructure.config.settings import (
    get_batch_timeout_ms,
    get_config,
    get_log_level,
    get_task_timeout_ms,
    get_throttle_policy,
    load_configuration,
)
from taskguard.infrastructure.monitoring.logger_setup import (
    DEFAULT_BACKUP_COUNT,
    DEFAULT_MAX_BYTES,
    resolve_log_level,
    setup_logging,
)

logger = logging.getLogger(__name__)

# --- Dependency Wiring (Manual) ---

_dependencies: Dict[str, Any] = {}


def create_dependencies() -> Dict[str, Any]:
    """Creates and wires up the CLI's dependencies.

    This acts as the Composition Root.
    """
    load_configuration()
    setup_logging(
        log_level=resolve_log_level(get_log_level()),
        log_format=get_config('logging.format', '%(asctime)s - %(name)s - %(levelname)s - %(message)s'),
        log_file=get_config('logging.file'),
        max_bytes=int(get_config('logging.max_bytes', DEFAULT_MAX_BYTES)),
        backup_count=int(get_config('logging.backup_count', DEFAULT_BACKUP_COUNT)),
    )
    ui = ConsoleDisplay(show_events=bool(get_config('display.show_events', True)))
    return {
        'ui': ui,
        'command_handler': CommandHandler(ui=ui),
    }


def get_dependencies() -> Dict[str, Any]:
    if not _dependencies:
        _dependencies.update(create_dependencies())
    return _dependencies


def reset_dependencies() -> None:
    """Forgets the wired instances so the next command rebuilds them."""
    _dependencies.clear()


# --- Typer App Definition ---
app = typer.Typer(
    name="taskguard",
    help="taskguard: run commands with retries, linear jittered backoff, bounded concurrency and deadlines.",
    add_completion=False,
)


def run_async(coro: Coroutine[Any, Any, Any]) -> Any:
    """Runs an async command handler from a sync Typer command."""
    return asyncio.run(coro)


def _resolve_policy(
    max_concurrency: Optional[int],
    retry_times: Optional[int],
    cooldown: Optional[float],
    no_jitter: bool,
    continue_on_error: bool,
) -> ThrottlePolicy:
    """Overlays command-line options on the configured throttle policy."""
    configured = get_throttle_policy()
    retry = RetryPolicy(
        retry_times=configured.retry.retry_times if retry_times is None else retry_times,
        base_cooldown_seconds=configured.retry.base_cooldown_seconds if cooldown is None else cooldown,
        jitter_enabled=configured.retry.jitter_enabled and not no_jitter,
    )
    return ThrottlePolicy(
        max_concurrency=configured.max_concurrency if max_concurrency is None else max_concurrency,
        fail_fast=configured.fail_fast and not continue_on_error,
        retry=retry,
    )


# --- CLI Options ---

MaxConcurrencyOption = Annotated[
    Optional[int],
    typer.Option("--max-concurrency", "-c", min=1, help="Maximum number of commands running at once."),
]
RetryTimesOption = Annotated[
    Optional[int],
    typer.Option("--retry-times", "-r", min=0, help="Retries per command after the first attempt."),
]
CooldownOption = Annotated[
    Optional[float],
    typer.Option("--cooldown", "-b", help="Base cooldown in seconds; the n-th retry waits n times this (plus jitter)."),
]
NoJitterOption = Annotated[
    bool,
    typer.Option("--no-jitter", help="Disable the random 0.1-1.1s added to the base cooldown."),
]


@app.command()
def run(
    commands: Annotated[List[str], typer.Argument(help="Shell commands to run, one task per argument.")],
    max_concurrency: MaxConcurrencyOption = None,
    retry_times: RetryTimesOption = None,
    cooldown: CooldownOption = None,
    no_jitter: NoJitterOption = False,
    continue_on_error: Annotated[
        bool,
        typer.Option("--continue-on-error", "-k", help="Run every command even after one has failed for good."),
    ] = False,
    task_timeout_ms: Annotated[
        Optional[float],
        typer.Option("--task-timeout-ms", min=0, help="Deadline for each attempt of a command (0 disables)."),
    ] = None,
    batch_timeout_ms: Annotated[
        Optional[float],
        typer.Option("--batch-timeout-ms", min=0, help="Deadline for the whole batch (0 disables)."),
    ] = None,
    cwd: Annotated[
        Optional[str],
        typer.Option("--cwd", help="Working directory for the commands."),
    ] = None,
):
    """Run shell commands as a throttled, retrying batch."""
    deps = get_dependencies()
    try:
        policy = _resolve_policy(max_concurrency, retry_times, cooldown, no_jitter, continue_on_error)
        task_deadline = get_task_timeout_ms() if task_timeout_ms is None else task_timeout_ms
        batch_deadline = get_batch_timeout_ms() if batch_timeout_ms is None else batch_timeout_ms
    except InvalidPolicyError as e:
        deps['ui'].display_error(f"Invalid settings: {e}")
        raise typer.Exit(code=2)

    handler: CommandHandler = deps['command_handler']
    exit_code = run_async(handler.handle_run(commands, policy, task_deadline, batch_deadline, cwd=cwd))
    raise typer.Exit(code=exit_code)


@app.command()
def schedule(
    retry_times: RetryTimesOption = None,
    cooldown: CooldownOption = None,
    no_jitter: NoJitterOption = False,
):
    """Preview the cooldown before each retry."""
    deps = get_dependencies()
    try:
        policy = _resolve_policy(None, retry_times, cooldown, no_jitter, False).retry
    except InvalidPolicyError as e:
        deps['ui'].display_error(f"Invalid settings: {e}")
        raise typer.Exit(code=2)
    handler: CommandHandler = deps['command_handler']
    handler.handle_schedule(policy)


def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    app()


if __name__ == "__main__":
    cli_entry_point()
