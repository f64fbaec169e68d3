"""Console output for the CLI (text, tables and JSON)."""

from __future__ import annotations

import json
from typing import Any, Iterable, Sequence

import click
from rich.console import Console
from rich.table import Table
from rich.text import Text


class OutputFormatter:
    """Renders command results.

    In JSON mode only :meth:`output_json` and errors produce output. In
    quiet mode informational messages are suppressed.
    """

    def __init__(self, json_output: bool = False, quiet: bool = False):
        self.json_output = json_output
        self.quiet = quiet
        self._console = Console(soft_wrap=True, highlight=False)
        self._err_console = Console(stderr=True, soft_wrap=True, highlight=False)

    def _emit(self, message: str, style: str | None = None) -> None:
        self._console.print(message, style=style, markup=False)

    def print(self, message: str = "") -> None:
        """Print plain text (suppressed in JSON mode)."""
        if not self.json_output:
            self._emit(message)

    def info(self, message: str) -> None:
        if not self.json_output and not self.quiet:
            self._emit(message, style="cyan")

    def success(self, message: str) -> None:
        if not self.json_output:
            self._emit(message, style="green")

    def warning(self, message: str) -> None:
        if not self.json_output:
            self._err_console.print(message, style="yellow", markup=False)

    def error(self, message: str) -> None:
        """Print an error. Errors are shown in every mode."""
        self._err_console.print(f"Error: {message}", style="bold red", markup=False)

    def progress_message(self, message: str) -> None:
        if not self.json_output and not self.quiet:
            self._emit(message, style="dim")

    def output_json(self, data: Any) -> None:
        """Print data as indented JSON."""
        click.echo(json.dumps(data, indent=2, default=str))

    def print_summary(self, title: str, rows: Iterable[tuple[str, Any]]) -> None:
        """Print a titled block of "label: value" lines."""
        if self.json_output:
            return
        self._emit(title, style="bold")
        for label, value in rows:
            self._emit(f"  {label}: {value}")

    def print_table(
        self,
        title: str,
        columns: Sequence[str],
        rows: Iterable[Sequence[Any]],
    ) -> None:
        """Print rows as a rich table."""
        if self.json_output:
            return
        table = Table(title=title, show_lines=False)
        for column in columns:
            table.add_column(column, overflow="fold")
        for row in rows:
            table.add_row(*(Text("" if cell is None else str(cell)) for cell in row))
        self._console.print(table)
