"""Terminal output for the ``capi`` command.

Data and diagnostics go to separate streams:

* **stdout** -- API payloads and tables only, safe to pipe into ``jq``.
* **stderr** -- status lines, retries, warnings and errors.

``auto`` format renders with Rich on an interactive terminal and falls back
to plain text when piped.  ``NO_COLOR``, ``TERM=dumb`` and ``--no-color``
switch colour off.

The library itself never prints; the transport only reports retries through
:meth:`OutputManager.debug`, which stays silent unless ``--verbose`` is set.
"""

from __future__ import annotations

import json
import os
import sys
from enum import Enum
from typing import Any, Optional

from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table


class OutputFormat(str, Enum):
    """Supported renderings of response data.

    ``AUTO`` resolves to ``RICH`` for a colour-capable TTY and ``PLAIN``
    otherwise.
    """

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


class OutputManager:
    """Routes every CLI message to the right stream in the right format.

    Args:
        format: Requested format; ``AUTO`` is resolved on construction.
        no_color: Disable colour and Rich markup.
        quiet: Drop informational stderr messages.
        verbose: Show debug messages.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose

        if format == OutputFormat.AUTO:
            self._format = (
                OutputFormat.RICH if _is_tty() and not self._no_color else OutputFormat.PLAIN
            )
        else:
            self._format = format

        self._stdout = Console(
            file=sys.stdout,
            no_color=self._no_color,
            force_terminal=(self._format == OutputFormat.RICH),
        )
        self._stderr = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        return self._format

    @property
    def is_quiet(self) -> bool:
        return self._quiet

    @property
    def is_verbose(self) -> bool:
        return self._verbose

    # ------------------------------------------------------------------ #
    # Data (stdout)
    # ------------------------------------------------------------------ #

    def format_response(self, data: Any) -> None:
        """Render a decoded response body in the active format."""
        if self._format == OutputFormat.JSON:
            self.print_data(_dump(data))
        elif self._format == OutputFormat.PLAIN:
            self._print_plain(data)
        else:
            self._print_rich(data)

    def print_data(self, text: str) -> None:
        print(text, file=sys.stdout, flush=True)

    def print_table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: Optional[str] = None,
    ) -> None:
        """Print rows as a Rich table, a JSON array of objects, or TSV."""
        if self._format == OutputFormat.JSON:
            self.print_data(_dump([dict(zip(headers, row)) for row in rows]))
        elif self._format == OutputFormat.PLAIN:
            self.print_data("\t".join(headers))
            for row in rows:
                self.print_data("\t".join(row))
        else:
            table = Table(title=title, show_header=True, header_style="bold cyan")
            for header in headers:
                table.add_column(header)
            for row in rows:
                table.add_row(*row)
            self._stdout.print(table)

    # ------------------------------------------------------------------ #
    # Diagnostics (stderr)
    # ------------------------------------------------------------------ #

    def info(self, message: str) -> None:
        if not self._quiet:
            self._emit(message, message)

    def success(self, message: str) -> None:
        if not self._quiet:
            self._emit(message, f"[green]{message}[/green]")

    def warning(self, message: str) -> None:
        """Never suppressed by ``--quiet``."""
        self._emit(f"Warning: {message}", f"[yellow]Warning:[/yellow] {message}")

    def error(self, message: str) -> None:
        """Never suppressed by ``--quiet``."""
        self._emit(f"Error: {message}", f"[bold red]Error:[/bold red] {message}")

    def debug(self, message: str) -> None:
        """Only shown with ``--verbose``."""
        if self._verbose:
            self._emit(f"[debug] {message}", f"[dim]\\[debug] {message}[/dim]")

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _emit(self, plain: str, markup: str) -> None:
        if self._no_color:
            print(plain, file=sys.stderr, flush=True)
        else:
            self._stderr.print(markup)

    def _print_plain(self, data: Any) -> None:
        if isinstance(data, dict):
            for key, value in data.items():
                rendered = _dump(value, indent=None) if isinstance(value, (dict, list)) else value
                self.print_data(f"{key}\t{rendered}")
        elif isinstance(data, list):
            for item in data:
                self.print_data(_dump(item, indent=None) if isinstance(item, (dict, list)) else str(item))
        else:
            self.print_data(str(data))

    def _print_rich(self, data: Any) -> None:
        if isinstance(data, (dict, list)):
            self._stdout.print(Syntax(_dump(data), "json", theme="monokai", word_wrap=True))
        else:
            self._stdout.print(str(data))


def _dump(data: Any, indent: Optional[int] = 2) -> str:
    return json.dumps(data, indent=indent, ensure_ascii=False, default=str)


def _is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _should_disable_color() -> bool:
    """``NO_COLOR`` (any value) or ``TERM=dumb`` disable colour."""
    return os.environ.get("NO_COLOR") is not None or os.environ.get("TERM") == "dumb"


# ------------------------------------------------------------------ #
# Global instance
# ------------------------------------------------------------------ #

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the installed :class:`OutputManager`, creating a default one lazily."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    """Install *output* as the global manager (done by the CLI callback)."""
    global _output
    _output = output


def reset_output() -> None:
    """Forget the global manager; used by tests."""
    global _output
    _output = None
