"""Console output helpers for the command line tool."""

import json
import sys
from typing import Any, Optional

from rich.console import Console
from rich.table import Table


class OutputFormatter:
    """Writes human or JSON output for CLI commands.

    Informational messages are dropped in quiet and JSON mode so that
    ``--json`` output can be piped straight into other tools. Errors are
    always written, to stderr.
    """

    def __init__(self, json_output: bool = False, quiet: bool = False):
        self.json_output = json_output
        self.quiet = quiet
        self._console: Optional[Console] = None
        self._err_console: Optional[Console] = None

    @property
    def console(self) -> Console:
        # Created lazily so the console binds to the current sys.stdout
        if self._console is None:
            self._console = Console(file=sys.stdout, highlight=False)
        return self._console

    @property
    def err_console(self) -> Console:
        if self._err_console is None:
            self._err_console = Console(file=sys.stderr, highlight=False)
        return self._err_console

    def _show_messages(self) -> bool:
        return not self.quiet and not self.json_output

    def info(self, message: str) -> None:
        if self._show_messages():
            self.console.print(message, markup=False, soft_wrap=True)

    def success(self, message: str) -> None:
        if self._show_messages():
            self.console.print(
                f"✓ {message}", style="green", markup=False, soft_wrap=True
            )

    def warning(self, message: str) -> None:
        if not self.json_output:
            self.err_console.print(
                f"Warning: {message}", style="yellow", markup=False, soft_wrap=True
            )

    def error(self, message: str) -> None:
        self.err_console.print(
            f"Error: {message}", style="bold red", markup=False, soft_wrap=True
        )

    def print(self, message: str) -> None:
        """Print regardless of quiet mode, unless JSON output is active."""
        if not self.json_output:
            self.console.print(message, markup=False, soft_wrap=True)

    def output_json(self, data: Any) -> None:
        """Write ``data`` as indented JSON to stdout."""
        sys.stdout.write(json.dumps(data, indent=2, default=str) + "\n")
        sys.stdout.flush()

    def print_summary(self, title: str, items: list[tuple[str, str]]) -> None:
        """Print a two-column summary table.

        Args:
            title: Table title
            items: (label, value) rows
        """
        if self.json_output or self.quiet:
            return
        table = Table(title=title, show_header=False, title_justify="left")
        table.add_column("Field", style="bold")
        table.add_column("Value")
        for label, value in items:
            table.add_row(label, value)
        self.console.print(table)
