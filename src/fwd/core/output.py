"""Console output for fwd.

There is no separate logging layer: every message goes through the
module-level ``console``. Each message kind has a minimum verbosity and a
markup prefix. Warnings and errors are written to stderr, the rest to stdout.
"""

from enum import IntEnum
from typing import Any, Mapping, NamedTuple

from rich.console import Console as RichConsole
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table


class Verbosity(IntEnum):
    QUIET = 0    # warnings, errors and hints
    NORMAL = 1
    VERBOSE = 2
    DEBUG = 3    # every command fwd runs


class _Kind(NamedTuple):
    verbosity: Verbosity
    prefix: str
    stderr: bool = False


_KINDS = {
    "info": _Kind(Verbosity.NORMAL, "[green][INFO][/green]"),
    "success": _Kind(Verbosity.NORMAL, "[green][OK][/green]"),
    "step": _Kind(Verbosity.NORMAL, "[blue]->[/blue]"),
    "debug": _Kind(Verbosity.DEBUG, "[cyan][DEBUG][/cyan]"),
    "hint": _Kind(Verbosity.QUIET, "[cyan]Hint:[/cyan]"),
    "warn": _Kind(Verbosity.QUIET, "[yellow][WARN][/yellow]", stderr=True),
    "error": _Kind(Verbosity.QUIET, "[red][ERROR][/red]", stderr=True),
}


class Console:
    """Verbosity-aware wrapper around a pair of Rich consoles."""

    def __init__(self) -> None:
        self.verbosity = Verbosity.NORMAL
        self.dry_run = False
        self._out, self._err = self._make_consoles(no_color=False)

    @staticmethod
    def _make_consoles(no_color: bool) -> tuple[RichConsole, RichConsole]:
        return (
            RichConsole(highlight=False, no_color=no_color),
            RichConsole(stderr=True, highlight=False, no_color=no_color),
        )

    def configure(
        self,
        verbosity: int = Verbosity.NORMAL,
        dry_run: bool = False,
        no_color: bool = False,
    ) -> None:
        self.verbosity = Verbosity(max(Verbosity.QUIET, min(verbosity, Verbosity.DEBUG)))
        self.dry_run = dry_run
        self._out, self._err = self._make_consoles(no_color)

    def _emit(self, kind: str, message: str) -> None:
        style = _KINDS[kind]
        if self.verbosity >= style.verbosity:
            target = self._err if style.stderr else self._out
            target.print(f"{style.prefix} {message}")

    def info(self, message: str) -> None:
        self._emit("info", message)

    def success(self, message: str) -> None:
        self._emit("success", message)

    def step(self, message: str) -> None:
        self._emit("step", message)

    def debug(self, message: str) -> None:
        self._emit("debug", message)

    def hint(self, message: str) -> None:
        self._emit("hint", message)

    def warn(self, message: str) -> None:
        self._emit("warn", message)

    def error(self, message: str) -> None:
        self._emit("error", message)

    def dry_run_msg(self, message: str) -> None:
        """Describe an action that dry-run mode skips."""
        if self.dry_run:
            self._out.print(f"[blue][DRY-RUN][/blue] Would: {message}")

    def print(self, message: Any = "", **kwargs: Any) -> None:
        self._out.print(message, **kwargs)

    def yaml(self, yaml_text: str, title: str) -> None:
        syntax = Syntax(yaml_text, "yaml", theme="monokai", line_numbers=False)
        self._out.print(Panel(syntax, title=title, border_style="cyan"))

    def settings(self, title: str, values: Mapping[str, Any]) -> None:
        """Print a two-column table of setting names and values."""
        table = Table(title=title, show_header=False, title_justify="left")
        table.add_column(style="bold")
        table.add_column()
        for name, value in values.items():
            if isinstance(value, bool):
                value = "[green]yes[/green]" if value else "[red]no[/red]"
            table.add_row(name, "-" if value is None else str(value))
        self._out.print(table)


console = Console()
