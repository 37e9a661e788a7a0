"""Reporter classes for controlling run output."""
from __future__ import annotations

from contextlib import contextmanager
from typing import Generator, List, Optional, Sequence

from rich.console import Console
from rich.table import Table
from rich.text import Text

from .actions.base import Action
from .redaction import Redactor
from .schemas import RunRecord, StepResult, StepStatus

ERROR_WIDTH = 160

STATUS_STYLES = {
    StepStatus.SUCCEEDED: ("✓", "green"),
    StepStatus.SKIPPED: ("=", "dim"),
    StepStatus.FAILED: ("✗", "bold red"),
    StepStatus.UNREACHED: ("-", "yellow"),
    StepStatus.PLANNED: ("~", "cyan"),
}


def truncate(text: str, width: int = ERROR_WIDTH) -> str:
    text = " ".join(text.split())
    if len(text) <= width:
        return text
    return text[: width - 3] + "..."


class Reporter:
    """Stream one line per step result and print a final summary."""

    def __init__(self, console: Optional[Console] = None, redactor: Optional[Redactor] = None) -> None:
        self.console = console or Console()
        self.redactor = redactor or Redactor()

    def _clean(self, text: Optional[str]) -> str:
        return self.redactor.redact(text or "")

    def plan(self, title: str, actions: Sequence[Action]) -> None:
        """Print the ordered action list before anything runs."""

        self.console.print(Text(self._clean(title), style="bold"))
        for index, action in enumerate(actions, start=1):
            line = Text(f"  {index:>2}. {action.name}", style="cyan")
            line.append(f"  {self._clean(action.description)}", style="dim")
            if action.is_destructive:
                line.append("  [destructive]", style="yellow")
            self.console.print(line)
        self.console.print()

    @contextmanager
    def running(self, action: Action) -> Generator[None, None, None]:
        with self.console.status(Text(f"{action.name}: {self._clean(action.description)}", style="cyan")):
            yield

    def step(self, result: StepResult) -> None:
        icon, style = STATUS_STYLES[result.status]
        line = Text(f"{icon} ", style=style)
        line.append(f"{result.action_name:<28}")
        line.append(f" {result.status.value:<9}", style=style)
        line.append(f" {result.duration_seconds:6.1f}s")
        if result.error:
            line.append(f"  {truncate(self._clean(result.error))}", style="red")
        elif result.detail:
            line.append(f"  {truncate(self._clean(result.detail))}", style="dim")
        self.console.print(line)

    def summary(self, record: RunRecord, hints: Sequence[str] = ()) -> None:
        counts = record.counts()
        table = Table(title="Provisioning Summary", show_header=True)
        table.add_column("Status")
        table.add_column("Actions", justify="right")
        for status in (StepStatus.SUCCEEDED, StepStatus.SKIPPED, StepStatus.FAILED, StepStatus.UNREACHED):
            table.add_row(status.value, str(counts[status]))
        if counts[StepStatus.PLANNED]:
            table.add_row(StepStatus.PLANNED.value, str(counts[StepStatus.PLANNED]))
        self.console.print(table)
        self.console.print(f"Run {record.run_id} status: {record.status.value}")

        failure = record.first_failure()
        if failure is not None:
            self.console.print(
                Text(f"First failure: {failure.action_name}: {self._clean(failure.error)}", style="bold red")
            )
        for hint in hints:
            self.console.print(Text(f"  - {self._clean(hint)}", style="yellow"))

    def info(self, message: str) -> None:
        self.console.print(Text(self._clean(message), style="cyan"))

    def warning(self, message: str) -> None:
        self.console.print(Text(self._clean(message), style="yellow"))

    def error(self, message: str) -> None:
        self.console.print(Text(self._clean(message), style="bold red"))


class NullReporter:
    """No-op reporter for testing or quiet mode; keeps the lines it would print."""

    def __init__(self) -> None:
        self.results: List[StepResult] = []

    def plan(self, title: str, actions: Sequence[Action]) -> None:
        pass

    @contextmanager
    def running(self, action: Action) -> Generator[None, None, None]:
        yield

    def step(self, result: StepResult) -> None:
        self.results.append(result)

    def summary(self, record: RunRecord, hints: Sequence[str] = ()) -> None:
        pass

    def info(self, message: str) -> None:
        pass

    def warning(self, message: str) -> None:
        pass

    def error(self, message: str) -> None:
        pass


__all__ = ["Reporter", "NullReporter", "truncate", "ERROR_WIDTH"]
