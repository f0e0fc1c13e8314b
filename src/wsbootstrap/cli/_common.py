"""Shared console helpers for the CLI.

Provides the Rich console instances and the run summary table.
"""

from __future__ import annotations

import logging
from typing import Iterable

from rich.console import Console
from rich.table import Table

from ..models import ReconciliationResult, ResourceKind, StepReport

console = Console()
err_console = Console(stderr=True)

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """Send log records to stderr at the configured level."""
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)
    logging.getLogger("wsbootstrap").setLevel(level)


def result_icon(result: ReconciliationResult) -> str:
    """Map a reconciliation result to Rich markup.

    Args:
        result: Outcome of a single step.

    Returns:
        str: Rich markup string for the result.
    """
    return {
        ReconciliationResult.CREATED: "[bold green]CREATED[/]",
        ReconciliationResult.ALREADY_EXISTS: "[dim]EXISTS[/]",
        ReconciliationResult.FAILED: "[bold red]FAILED[/]",
    }.get(result, "[dim]UNKNOWN[/]")


def summary_table(reports: Iterable[StepReport]) -> Table:
    """Build a table with one row per processed resource."""
    table = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
    table.add_column("Kind", style="cyan")
    table.add_column("Resource")
    table.add_column("Location", style="dim")
    table.add_column("Result")

    for report in reports:
        spec = report.spec
        name = spec.params.get("role", spec.name) if spec.kind == ResourceKind.IAM_BINDING else spec.name
        table.add_row(spec.kind.label, name, spec.location or "global", result_icon(report.result))
    return table
