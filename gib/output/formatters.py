"""Console output for bulk runs.

Provides:
- A progress reporter that keeps a single "Fetched n of total" line
- Run summaries (totals and skipped tokens)
- A holder snapshot overview
"""

import logging
from typing import Optional

from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn, TimeElapsedColumn
from rich.table import Table

from ..core.models import HolderSnapshot, RunSummary

logger = logging.getLogger(__name__)


class ProgressReporter:
    """
    Progress line for a bulk run.

    Usage:
        with ProgressReporter(console, "Fetching owners") as reporter:
            await pipeline.run(hashlist, progress=reporter.update)
    """

    def __init__(self, console: Console, description: str, enabled: bool = True):
        self.console = console
        self.description = description
        self.enabled = enabled
        self._progress: Optional[Progress] = None
        self._task_id = None

    def __enter__(self) -> "ProgressReporter":
        if self.enabled:
            self._progress = Progress(
                TextColumn("{task.description}"),
                BarColumn(),
                MofNCompleteColumn(),
                TimeElapsedColumn(),
                console=self.console,
                transient=True,
            )
            self._progress.start()
        return self

    def __exit__(self, *exc_info) -> None:
        if self._progress is not None:
            self._progress.stop()
            self._progress = None

    def update(self, processed: int, total: int) -> None:
        if self._progress is None:
            return
        if self._task_id is None:
            self._task_id = self._progress.add_task(self.description, total=total)
        self._progress.update(
            self._task_id,
            completed=processed,
            total=total,
            description=f"{self.description}: fetched {processed} of {total}",
        )


class SummaryFormatter:
    """Formats run summaries for the console."""

    def __init__(self, max_skipped_rows: int = 20):
        """
        Initialize summary formatter.

        Args:
            max_skipped_rows: Skipped tokens listed individually before
                              the table is truncated
        """
        self.max_skipped_rows = max_skipped_rows

    def format_summary(self, summary: RunSummary) -> Table:
        table = Table(title=f"{summary.command} summary", show_header=False)
        table.add_column("Field", style="cyan")
        table.add_column("Value", style="green")

        table.add_row("Tokens in hashlist", str(summary.total))
        if summary.duplicates:
            table.add_row("Duplicates ignored", str(summary.duplicates))
        if summary.already_cached:
            table.add_row("Already cached", str(summary.already_cached))
        table.add_row("Fetched", str(summary.succeeded))
        skipped_style = "yellow" if summary.skipped else "green"
        table.add_row("Skipped", f"[{skipped_style}]{len(summary.skipped)}[/]")
        for reason, count in sorted(summary.skip_counts().items(), key=lambda item: -item[1]):
            table.add_row(f"  {reason.display_name}", str(count))
        if summary.output_path:
            table.add_row("Saved as", summary.output_path)
        table.add_row("Elapsed", f"{summary.elapsed_seconds():.1f}s")
        return table

    def format_skipped(self, summary: RunSummary) -> Optional[Table]:
        if not summary.skipped:
            return None

        table = Table(title="Skipped tokens")
        table.add_column("Token", style="cyan")
        table.add_column("Reason", style="yellow")
        table.add_column("Detail", style="dim")

        for outcome in summary.skipped[: self.max_skipped_rows]:
            table.add_row(outcome.token, outcome.skip_reason.display_name, outcome.detail or "")

        hidden = len(summary.skipped) - self.max_skipped_rows
        if hidden > 0:
            table.add_row(f"... {hidden} more", "", "")
        return table

    def format_holders(self, snapshot: HolderSnapshot, top: int = 10) -> Table:
        table = Table(title=f"Top holders ({snapshot.total_holders} holders, {snapshot.total_mints} mints)")
        table.add_column("Owner", style="cyan")
        table.add_column("Amount", justify="right", style="green")

        ranked = sorted(snapshot.holders.items(), key=lambda item: -item[1].amount)
        for owner, record in ranked[:top]:
            table.add_row(owner, str(record.amount))
        return table

    def print(self, console: Console, summary: RunSummary, verbose: bool = False) -> None:
        console.print(self.format_summary(summary))
        if verbose:
            skipped = self.format_skipped(summary)
            if skipped is not None:
                console.print(skipped)
