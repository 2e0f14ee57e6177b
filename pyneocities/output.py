"""Console output for the CLI."""

import json
from typing import Any, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table


class OutputFormatter:
    """Formats messages for the terminal (or as JSON).

    Informational messages are dropped in quiet mode; errors never are.
    Errors and warnings go to stderr so stdout stays parseable.
    """

    def __init__(
        self,
        json_output: bool = False,
        quiet: bool = False,
        console: Optional[Console] = None,
        err_console: Optional[Console] = None,
    ):
        self.json_output = json_output
        self.quiet = quiet
        self.console = console or Console(highlight=False)
        self.err_console = err_console or Console(stderr=True, highlight=False)

    def print(self, message: str = "") -> None:
        if not self.quiet and not self.json_output:
            self.console.print(message, markup=False)

    def info(self, message: str) -> None:
        if not self.quiet and not self.json_output:
            self.console.print(message, markup=False)

    def success(self, message: str) -> None:
        if not self.quiet and not self.json_output:
            self.console.print(f"[green]{escape(message)}[/green]")

    def warning(self, message: str) -> None:
        if not self.quiet:
            self.err_console.print(f"[yellow]{escape(message)}[/yellow]")

    def error(self, message: str) -> None:
        self.err_console.print(f"[red]{escape(message)}[/red]")

    def output_json(self, data: Any) -> None:
        self.console.print_json(json.dumps(data))

    def print_summary(self, title: str, items: list[tuple[str, str]]) -> None:
        """Print a two-column summary table."""
        if self.quiet or self.json_output:
            return
        table = Table(title=title, show_header=False, box=None)
        table.add_column("Field", style="bold")
        table.add_column("Value")
        for key, value in items:
            table.add_row(key, value)
        self.console.print(table)
