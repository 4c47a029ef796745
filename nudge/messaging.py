"""Console output for nudge commands.

The CLI never prints directly; it goes through these helpers so every
message shares one Rich console and one visual style.

Example:
    >>> from nudge.messaging import emit_info, emit_error
    >>> emit_info("Reminder added")
    >>> emit_error("Reminder 4 not found")
"""

from typing import Iterable, Optional, Sequence

from rich.console import Console
from rich.markup import escape as escape_rich_markup
from rich.table import Table

_console: Optional[Console] = None
_error_console: Optional[Console] = None


def get_console() -> Console:
    """Get the shared stdout console."""
    global _console
    if _console is None:
        _console = Console(highlight=False)
    return _console


def get_error_console() -> Console:
    """Get the shared stderr console."""
    global _error_console
    if _error_console is None:
        _error_console = Console(stderr=True, highlight=False)
    return _error_console


def set_console(console: Optional[Console], error_console: Optional[Console] = None) -> None:
    """Swap the consoles (tests capture output with a recording console)."""
    global _console, _error_console
    _console = console
    _error_console = error_console if error_console is not None else console


def emit_info(message: str) -> None:
    get_console().print(escape_rich_markup(message))


def emit_success(message: str) -> None:
    get_console().print(f"[bold green]{escape_rich_markup(message)}[/bold green]")


def emit_warning(message: str) -> None:
    get_console().print(f"[yellow]{escape_rich_markup(message)}[/yellow]")


def emit_error(message: str) -> None:
    get_error_console().print(f"[bold red]{escape_rich_markup(message)}[/bold red]")


def emit_table(
    columns: Sequence[str],
    rows: Iterable[Sequence[str]],
    title: Optional[str] = None,
) -> None:
    """Render rows as a Rich table."""
    table = Table(title=title, show_lines=False, header_style="bold cyan")
    for column in columns:
        table.add_column(column)
    for row in rows:
        table.add_row(*(escape_rich_markup(cell) for cell in row))
    get_console().print(table)
