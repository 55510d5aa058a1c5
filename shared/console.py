"""
PEScope Console Interface
==========================

Rich-powered console abstraction providing one presentation layer for
every PEScope command.

The class wraps :class:`rich.console.Console` and adds convenience methods
for section headers, severity-coloured messages, tables and status
spinners -- all with consistent styling.

References:
    - Rich library: https://github.com/Textualize/rich
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Generator, Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.theme import Theme

# ---------------------------------------------------------------------------
# Theme -- consistent palette across all PEScope output
# ---------------------------------------------------------------------------
_SCOPE_THEME = Theme(
    {
        "scope.title": "bold bright_cyan",
        "scope.section": "bold bright_magenta",
        "scope.success": "bold green",
        "scope.error": "bold red",
        "scope.info": "bold bright_blue",
    }
)


class ScopeConsole:
    """Unified console interface for PEScope output.

    Usage::

        con = ScopeConsole()
        con.section("Exported Functions")
        con.success("Report written")
    """

    def __init__(self, *, quiet: bool = False, record: bool = False) -> None:
        """Initialise the console.

        Args:
            quiet:  Suppress all output (useful in library / test mode).
            record: Enable Rich recording so output can be exported as text.
        """
        self._console = Console(
            theme=_SCOPE_THEME,
            quiet=quiet,
            record=record,
            highlight=False,
        )

    @property
    def rich(self) -> Console:
        """Direct access to the underlying Rich Console instance."""
        return self._console

    # ------------------------------------------------------------------ #
    #  Headers
    # ------------------------------------------------------------------ #

    def title(self, text: str) -> None:
        """Print a bold title line followed by a heavy rule."""
        self._console.print(f"[scope.title]{escape(text)}[/scope.title]")
        self._console.rule(style="scope.title", characters="=")

    def section(self, title: str) -> None:
        """Print a prominent section header."""
        self._console.rule(
            f"  {escape(title)}  ",
            style="scope.section",
            characters="─",
        )

    # ------------------------------------------------------------------ #
    #  Message helpers
    # ------------------------------------------------------------------ #

    def success(self, message: str) -> None:
        """Print a success message."""
        self._console.print(
            f"[scope.success][✔] SUCCESS:[/scope.success] {escape(message)}"
        )

    def error(self, message: str) -> None:
        """Print an error message."""
        self._console.print(
            f"[scope.error][✘] ERROR:[/scope.error] {escape(message)}"
        )

    def info(self, message: str) -> None:
        """Print an informational message."""
        self._console.print(
            f"[scope.info][ℹ] INFO:[/scope.info] {escape(message)}"
        )

    # ------------------------------------------------------------------ #
    #  Table display
    # ------------------------------------------------------------------ #

    def table(
        self,
        title: str,
        columns: Sequence[str],
        rows: Sequence[Sequence[Any]],
        *,
        caption: str | None = None,
        styles: Sequence[str] | None = None,
    ) -> None:
        """Render a styled Rich table.

        Args:
            title:    Table title.
            columns:  Column header labels.
            rows:     Iterable of row tuples; each element is stringified.
            caption:  Optional footer caption.
            styles:   Optional per-column Rich style strings.
        """
        tbl = Table(
            title=title,
            caption=caption,
            border_style="bright_cyan",
            header_style="bold bright_magenta",
            show_lines=False,
            padding=(0, 1),
        )
        for idx, col_name in enumerate(columns):
            style = styles[idx] if styles and idx < len(styles) else ""
            tbl.add_column(col_name, style=style)

        for row in rows:
            tbl.add_row(*(escape(str(cell)) for cell in row))

        self._console.print(tbl)

    # ------------------------------------------------------------------ #
    #  Status spinner
    # ------------------------------------------------------------------ #

    @contextmanager
    def status(self, message: str = "Working...") -> Generator[Any, None, None]:
        """Context-manager showing a spinner with a status message.

        Example::

            with con.status("Decoding import table..."):
                result = engine.analyze(path)
        """
        with self._console.status(
            f"[scope.info]{escape(message)}[/scope.info]",
            spinner="dots",
            spinner_style="bright_cyan",
        ) as status_obj:
            yield status_obj

    # ------------------------------------------------------------------ #
    #  Utility
    # ------------------------------------------------------------------ #

    def blank(self, count: int = 1) -> None:
        """Print *count* blank lines."""
        for _ in range(count):
            self._console.print()

    def export_text(self) -> str:
        """Export recorded console output as plain text (requires ``record=True``)."""
        return self._console.export_text()
