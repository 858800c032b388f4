"""Audit trail formatter for RPC and HTTP calls made during a run.

Shows, per data source and method:
- Number of calls and failures
- Average latency
- The most recent error message
"""

import logging
from typing import Any

from rich.table import Table

from ..core.models import AuditEntry

logger = logging.getLogger(__name__)


class AuditTrailFormatter:
    """Formats audit trail information for transparency."""

    def summarize(self, entries: list[AuditEntry]) -> dict[tuple[str, str], dict[str, Any]]:
        """
        Aggregate audit entries by (source, action).

        Args:
            entries: Audit entries collected from providers

        Returns:
            Mapping of (source, action) to call statistics
        """
        summary: dict[tuple[str, str], dict[str, Any]] = {}

        for entry in entries:
            key = (entry.source.value, entry.action)
            if key not in summary:
                summary[key] = {
                    "total_count": 0,
                    "failure_count": 0,
                    "total_ms": 0,
                    "timed_count": 0,
                    "last_error": None,
                }
            info = summary[key]
            info["total_count"] += 1
            if not entry.success:
                info["failure_count"] += 1
                info["last_error"] = entry.error_message
            if entry.duration_ms is not None:
                info["total_ms"] += entry.duration_ms
                info["timed_count"] += 1

        return summary

    def format_table(self, entries: list[AuditEntry]) -> Table:
        table = Table(title="Calls made")
        table.add_column("Source", style="cyan")
        table.add_column("Method", style="cyan")
        table.add_column("Calls", justify="right", style="green")
        table.add_column("Failed", justify="right")
        table.add_column("Avg ms", justify="right", style="dim")
        table.add_column("Last error", style="dim")

        for (source, action), info in sorted(self.summarize(entries).items()):
            avg = (
                f"{info['total_ms'] / info['timed_count']:.0f}"
                if info["timed_count"]
                else "-"
            )
            failed = str(info["failure_count"])
            if info["failure_count"]:
                failed = f"[red]{failed}[/]"
            table.add_row(
                source,
                action,
                str(info["total_count"]),
                failed,
                avg,
                info["last_error"] or "",
            )

        return table
