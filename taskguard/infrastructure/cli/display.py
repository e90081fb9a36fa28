import logging
from datetime import datetime
from typing import Any, Optional, Sequence

from rich.box import HEAVY, ROUNDED, SIMPLE
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from taskguard.domain.events import progress_events
from taskguard.domain.events.progress_events import ProgressEvent
from taskguard.domain.interfaces.user_interface import UserInterface
from taskguard.domain.models.common import BatchResult

logger = logging.getLogger(__name__)

# Event message -> (label, style) used for the one-line progress feed
EVENT_STYLES = {
    progress_events.BATCH_STARTED: ("batch", "bold cyan"),
    progress_events.BATCH_FINISHED: ("batch", "bold cyan"),
    progress_events.TASK_ADMITTED: ("start", "blue"),
    progress_events.TASK_COMPLETED: ("done", "green"),
    progress_events.TASK_FAILED: ("fail", "red"),
    progress_events.FAIL_FAST_TRIGGERED: ("abort", "bold red"),
    progress_events.RETRY_PAUSING: ("retry", "yellow"),
    progress_events.RETRY_RESUMING: ("retry", "dim yellow"),
    progress_events.RETRY_EXHAUSTED: ("retry", "bold yellow"),
}

MAX_CELL_LENGTH = 80


def _truncate(text: str, limit: int = MAX_CELL_LENGTH) -> str:
    text = text.strip().replace("\n", " ")
    return text if len(text) <= limit else text[:limit - 3] + "..."


class ConsoleDisplay(UserInterface):
    """Concrete implementation of UserInterface using the rich library for console output."""

    def __init__(self, console: Optional[Console] = None, show_events: bool = True):
        self._console = console or Console()
        self.show_events = show_events
        self.events_seen = 0

    @property
    def console(self) -> Console:
        """Get the Rich console instance for direct operations."""
        return self._console

    @console.setter
    def console(self, value: Console) -> None:
        self._console = value

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        self.console.print(f"[blue]Info:[/blue] {info_message}")

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        logger.warning(f"Display warning: {warning_message}")
        self.console.print(f"[bold yellow]Warning:[/bold yellow] {warning_message}")

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message in a distinct style."""
        panel = Panel(
            Text(error_message, style="white"),
            title="[bold red]Error[/bold red]",
            border_style="red",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_event(self, event: ProgressEvent) -> None:
        """Prints one progress event as a timestamped line.

        Used directly as a progress sink, so rendering problems are logged
        rather than raised.
        """
        self.events_seen += 1
        if not self.show_events:
            return
        try:
            label, style = EVENT_STYLES.get(event.message, ("event", "white"))
            timestamp = datetime.fromtimestamp(event.timestamp).strftime("%H:%M:%S")
            details = " ".join(f"{key}={value}" for key, value in event.data.items() if key != "error")
            line = Text()
            line.append(f"{timestamp} ", style="dim")
            line.append(f"[{label}] ", style=style)
            line.append(event.message, style=style)
            if details:
                line.append(f" {details}", style="dim")
            if "error" in event.data:
                line.append(f" {_truncate(str(event.data['error']))}", style="red")
            self.console.print(line)
        except Exception as e:
            logger.error(f"Error displaying progress event {event.message!r}: {e}")

    def display_batch_result(self, labels: Sequence[str], result: BatchResult) -> None:
        """Displays one row per task with its status and a short summary."""
        table = Table(show_header=True, box=ROUNDED, border_style="cyan", padding=(0, 1))
        table.add_column("#", style="cyan", justify="right")
        table.add_column("Task", style="bold")
        table.add_column("Status")
        table.add_column("Detail", style="white")

        for outcome, label in zip(result, labels):
            if outcome.ok:
                status = "[green]ok[/green]"
                detail = getattr(outcome.value, "stdout", None)
                detail = _truncate(str(outcome.value if detail is None else detail))
            else:
                status = "[red]failed[/red]"
                detail = _truncate(f"{type(outcome.error).__name__}: {outcome.error}")
            table.add_row(str(outcome.index), _truncate(label, 40), status, detail)

        self.console.print(table)
        summary_style = "green" if result.all_ok else "red"
        self.console.print(
            f"[{summary_style}]{result.succeeded} succeeded, {result.failed} failed[/{summary_style}]"
        )

    def display_cooldown_schedule(self, rows: Sequence[dict], **kwargs: Any) -> None:
        """Displays the retry cooldown schedule as a table."""
        if not rows:
            self.console.print("[dim]No retries configured: each task is attempted once.[/dim]")
            return
        title = kwargs.get("title", "Cooldown schedule")
        table = Table(title=title, show_header=True, box=SIMPLE, padding=(0, 1))
        table.add_column("Retry", style="cyan", justify="right")
        table.add_column("Min cooldown", justify="right")
        table.add_column("Max cooldown", justify="right")
        table.add_column("Cumulative (max)", justify="right", style="dim")
        for row in rows:
            table.add_row(
                str(row["attempt"]),
                f"{row['min_ms'] / 1000:.2f}s",
                f"{row['max_ms'] / 1000:.2f}s",
                f"{row['cumulative_max_ms'] / 1000:.2f}s",
            )
        self.console.print(table)
