"""
Verdict renderer.

Presentation only: turns a gate Verdict into a Rich panel for the console
and a one-line summary. All measurement happens upstream.
"""

import shutil
from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from tracegate.harness.gate import CountEquals, Verdict
from tracegate.utils.formatting import fmt_bytes, fmt_count


class VerdictRenderer:

    NAME = "Verdict"

    def __init__(self, verdict: Verdict, console: Optional[Console] = None):
        self.verdict = verdict
        self._console = console or Console()

    def _is_count(self) -> bool:
        return isinstance(self.verdict.threshold, CountEquals)

    def _observed_str(self) -> str:
        if self._is_count():
            return f"{fmt_count(self.verdict.observed)} events/request"
        return f"{fmt_bytes(self.verdict.observed)}/request"

    def get_panel_renderable(self) -> Panel:
        v = self.verdict
        r = v.result

        table = Table.grid(padding=(0, 2))
        table.add_column(justify="left")
        table.add_column(justify="left")

        table.add_row("[bold green]Requests measured[/bold green]", fmt_count(r.total_units))
        table.add_row("[bold green]Matched events[/bold green]", fmt_count(r.event_count))
        table.add_row("[bold green]Total[/bold green]", fmt_bytes(r.sum))
        table.add_row("[bold green]Observed[/bold green]", self._observed_str())
        table.add_row("[bold green]Required[/bold green]", v.threshold.describe())

        if v.passed:
            status = "[bold green]PASS[/bold green]"
            border = "green"
        else:
            status = "[bold red]REGRESSION[/bold red]"
            border = "red"
        table.add_row("[bold green]Verdict[/bold green]", status)

        cols, _ = shutil.get_terminal_size()
        width = min(max(60, int(cols * 0.75)), 100)

        return Panel(
            table,
            title=f"[bold cyan]{v.name}[/bold cyan]",
            border_style=border,
            width=width,
        )

    def summary_line(self) -> str:
        r = self.verdict.result
        if self._is_count():
            return (
                f"Requests executed: {r.total_units}, "
                f"I/O operations: {r.count_per_unit} ops/request"
            )
        return f"Requests executed: {r.total_units}, {self.verdict.name}: {r.per_unit} bytes/request"

    def log_summary(self) -> None:
        self._console.print(self.get_panel_renderable())
        self._console.print(self.summary_line())
