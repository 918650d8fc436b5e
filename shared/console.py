"""
Xray Console Facade
====================

Thin wrapper around :class:`rich.console.Console` with the Xray colour
theme and a handful of message helpers, so every renderer prints status
lines, rules and tables the same way.

References:
    - Rich library: https://github.com/Textualize/rich
"""

from __future__ import annotations

from typing import IO, Any, Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.theme import Theme

_XRAY_THEME = Theme(
    {
        "xray.section": "bold bright_magenta",
        "xray.success": "bold green",
        "xray.warning": "bold yellow",
        "xray.error": "bold red",
        "xray.info": "bold bright_blue",
        "xray.dim": "dim white",
        "xray.highlight": "bold bright_white",
        "xray.address": "bright_cyan",
    }
)


class ToolConsole:
    """Themed console used by the renderers and the command line.

    Usage::

        con = ToolConsole()
        con.section("Sections")
        con.table("Sections", ["#", "Name"], [(0, ".text")])
        con.success("3 file(s) parsed")
    """

    def __init__(
        self,
        *,
        quiet: bool = False,
        record: bool = False,
        file: IO[str] | None = None,
        width: int | None = None,
    ) -> None:
        """Create the console.

        Args:
            quiet: Suppress all output.
            record: Keep a copy of the output for :meth:`export_text`.
            file: Write somewhere other than stdout.
            width: Fixed width; useful when output is captured.
        """
        self._console = Console(
            theme=_XRAY_THEME,
            quiet=quiet,
            record=record,
            file=file,
            width=width,
            highlight=False,
        )

    @property
    def rich(self) -> Console:
        return self._console

    def section(self, title: str) -> None:
        self._console.rule(f"  {escape(title)}  ", style="xray.section", characters="─")

    def success(self, message: str) -> None:
        self._console.print(f"[xray.success][✔][/xray.success] {message}")

    def info(self, message: str) -> None:
        self._console.print(f"[xray.info][ℹ][/xray.info] {message}")

    def warning(self, message: str) -> None:
        self._console.print(f"[xray.warning][⚠] WARNING:[/xray.warning] {message}")

    def error(self, message: str) -> None:
        self._console.print(f"[xray.error][✘] ERROR:[/xray.error] {message}")

    def table(
        self,
        title: str,
        columns: Sequence[str],
        rows: Sequence[Sequence[Any]],
        *,
        caption: str | None = None,
        styles: Sequence[str] | None = None,
        justify: Sequence[str] | None = None,
    ) -> None:
        """Render rows as a bordered Rich table.

        Args:
            title: Table title.
            columns: Header labels.
            rows: Row tuples; cells are rendered as plain text, not markup.
            caption: Footer line, e.g. a truncation notice.
            styles: Per-column Rich styles.
            justify: Per-column justification (``"left"``/``"right"``).
        """
        tbl = Table(
            title=title,
            caption=caption,
            border_style="bright_cyan",
            header_style="bold bright_magenta",
            padding=(0, 1),
        )
        for idx, name in enumerate(columns):
            tbl.add_column(
                name,
                style=styles[idx] if styles and idx < len(styles) else "",
                justify=justify[idx] if justify and idx < len(justify) else "left",
            )
        for row in rows:
            tbl.add_row(*(escape(str(cell)) for cell in row))
        self._console.print(tbl)

    def print(self, *args: Any, **kwargs: Any) -> None:
        self._console.print(*args, **kwargs)

    def blank(self, count: int = 1) -> None:
        for _ in range(count):
            self._console.print()

    def export_text(self) -> str:
        """Recorded output as plain text (requires ``record=True``)."""
        return self._console.export_text()
