"""Terminal output handling using Rich library.

This module provides the OutputHandler class for all CLI terminal output:
colored messages, a live progress display driven by pipeline
events, and the end-of-run summary. Supports verbosity levels and the
--no-color flag.
"""

from contextlib import contextmanager
from typing import Iterator, List

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)

from confluence_mirror.links.models import BrokenReference
from confluence_mirror.manifest import EntryStatus
from confluence_mirror.pipeline import EventSink, EventType, PipelineEvent, RunResult

# Broken references listed individually before the summary truncates
MAX_LISTED_BROKEN = 10

# Statuses whose files a dry run lists as would-be writes
PLANNED_WRITES = (EntryStatus.EXPORTED, EntryStatus.ADDED, EntryStatus.CHANGED)


class OutputHandler:
    """Handles all terminal output using Rich library.

    Attributes:
        verbosity: Verbosity level (0=summary, 1=info, 2=debug)
        console: Rich Console instance for output

    Example:
        >>> handler = OutputHandler(verbosity=1, no_color=False)
        >>> handler.warning("Interrupted")
        >>> with handler.progress_reporter() as on_event:
        ...     Pipeline(..., event_sink=on_event).run()
    """

    def __init__(self, verbosity: int = 0, no_color: bool = False):
        """Initialize output handler.

        Args:
            verbosity: Verbosity level (0=summary, 1=info, 2=debug)
            no_color: Disable color output if True
        """
        self.verbosity = verbosity
        self.console = Console(
            no_color=no_color,
            highlight=False,
        )

    def error(self, message: str) -> None:
        """Display error message in red."""
        self.console.print(f"[red]✗[/red] {message}", style="red")

    def warning(self, message: str) -> None:
        """Display warning message in yellow."""
        self.console.print(f"[yellow]⚠[/yellow] {message}", style="yellow")

    def info(self, message: str) -> None:
        """Display info message (only if verbosity >= 1)."""
        if self.verbosity >= 1:
            self.console.print(message)

    @contextmanager
    def progress_reporter(self) -> Iterator[EventSink]:
        """Display live export progress.

        The total grows as the traversal discovers items, so the bar tracks
        completed items against everything enqueued so far.

        Yields:
            Event sink to hand to the Pipeline
        """
        progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=self.console,
            transient=True,
        )
        task = progress.add_task("Discovering", total=None)

        def on_event(event: PipelineEvent) -> None:
            if event.type == EventType.PHASE_TRANSITION:
                progress.update(task, description=event.phase.value.capitalize())
                return
            if event.type == EventType.ITEM_FAILED and event.status == EntryStatus.FAILED:
                progress.console.print(
                    f"[red]✗[/red] {event.item.kind.value} {event.item.remote_id}: {event.message}"
                )
            elif event.type == EventType.ITEM_STARTED and self.verbosity >= 2:
                progress.console.print(
                    f"[dim]{event.item.kind.value} {event.item.remote_id}[/dim]"
                )
            if event.stats is not None:
                progress.update(task, completed=event.stats.completed, total=event.stats.enqueued)

        with progress:
            yield on_event

    def print_summary(self, result: RunResult) -> None:
        """Display the export summary with color coding.

        For a dry run the counts are the plan, and at verbosity 1 or more the
        files that would be written or deleted are listed.
        """
        counters = result.counters
        title = "Export Plan (dry run)" if result.dry_run else "Export Summary"
        self.console.print(f"\n[bold]{title}:[/bold]")

        rows = [
            (EntryStatus.EXPORTED, "[green]+[/green] Exported"),
            (EntryStatus.ADDED, "[green]+[/green] Added"),
            (EntryStatus.CHANGED, "[blue]~[/blue] Changed"),
            (EntryStatus.UNCHANGED, "[dim]─[/dim] Unchanged"),
            (EntryStatus.REMOVED, "[red]-[/red] Removed"),
            (EntryStatus.SKIPPED, "[yellow]⊘[/yellow] Skipped"),
            (EntryStatus.DENIED, "[yellow]⊘[/yellow] Denied"),
            (EntryStatus.FAILED, "[red]✗[/red] Failed"),
        ]
        for status, label in rows:
            count = counters.get(status)
            if count > 0:
                self.console.print(f"  {label}: {count} item(s)")

        if counters.restored:
            self.console.print(f"  [dim]Restored from checkpoint: {counters.restored} item(s)[/dim]")
        if result.carried_forward:
            self.console.print(
                f"  [yellow]⚠[/yellow] Kept {result.carried_forward} unvisited item(s) from the previous export"
            )

        self._print_broken(result.broken_references)

        if result.dry_run:
            self._print_plan(result)
            self.console.print("\n[green]Dry run complete: no files were written[/green]")
            return

        if counters.processed == 0:
            self.console.print("\n[yellow]Nothing to export[/yellow]")
        elif counters.failed > 0:
            self.console.print("\n[yellow]Export completed with failures[/yellow]")
        else:
            self.console.print("\n[green]Export completed successfully[/green]")

    def _print_broken(self, broken: List[BrokenReference]) -> None:
        if not broken:
            return
        self.console.print(f"  [yellow]⚠[/yellow] Broken references: {len(broken)}")
        if self.verbosity >= 1:
            for ref in broken[:MAX_LISTED_BROKEN]:
                self.console.print(f"    • {ref.source_id}: {ref.token} ({ref.reason})")
            if len(broken) > MAX_LISTED_BROKEN:
                self.console.print(f"    … and {len(broken) - MAX_LISTED_BROKEN} more")

    def _print_plan(self, result: RunResult) -> None:
        if self.verbosity < 1:
            return
        for entry in result.manifest.sorted_entries():
            if entry.status in PLANNED_WRITES and entry.path:
                self.console.print(f"    [green]+[/green] {entry.path}")
            elif entry.status == EntryStatus.REMOVED and entry.path:
                self.console.print(f"    [red]-[/red] {entry.path}")
