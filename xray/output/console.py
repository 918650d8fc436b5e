"""
Xray Console Output
====================

Rich terminal rendering of :class:`InspectionResult` objects: a header
panel followed by section, segment, import, export, dependency and symbol
tables.  Failed inspections print a single status line.

References:
    - Rich library: https://github.com/Textualize/rich
"""

from __future__ import annotations

from typing import Any, Sequence

from rich.markup import escape
from rich.panel import Panel

from shared.config import OutputConfig
from shared.console import ToolConsole

from xray.core.models import (
    ContainerFormat,
    ExportRecord,
    HeaderSummary,
    ImportRecord,
    InspectionResult,
    InspectionStatus,
    ParseReport,
    SectionDescriptor,
    SegmentDescriptor,
    SymbolRecord,
)

_STATUS_STYLE: dict[InspectionStatus, str] = {
    InspectionStatus.PARSED: "xray.success",
    InspectionStatus.UNRECOGNIZED: "xray.warning",
    InspectionStatus.CORRUPT: "xray.error",
    InspectionStatus.UNREADABLE: "xray.error",
}


def _hex(value: int | None) -> str:
    return "-" if value is None else f"0x{value:x}"


class ConsoleRenderer:
    """Print inspection results to a :class:`ToolConsole`.

    Usage::

        renderer = ConsoleRenderer()
        for result in engine.analyze_sync(paths):
            renderer.display(result)
    """

    def __init__(
        self,
        console: ToolConsole | None = None,
        settings: OutputConfig | None = None,
    ) -> None:
        self._console: ToolConsole = console or ToolConsole()
        self._settings: OutputConfig = settings or OutputConfig()

    def display(self, result: InspectionResult) -> None:
        """Render one result, whatever its status."""
        if result.report is None:
            self.display_status(result)
            return

        report = result.report
        self._console.section(result.source)
        self.display_header(report)

        if not report.complete:
            self._console.warning(
                f"{report.format.value.upper()} tables are not decoded; identity only"
            )
        if report.sections:
            self.display_sections(report.format, report.sections)
        if report.segments and self._settings.show_segments:
            self.display_segments(report.segments)
        if report.needed:
            self._console.table(
                "Shared Library Dependencies (DT_NEEDED)",
                ["#", "Library"],
                self._limit([(i, name) for i, name in enumerate(report.needed_names)]),
                caption=self._caption(len(report.needed)),
            )
        if report.imports:
            self.display_imports(report.imports)
        if report.exports:
            self.display_exports(report.export_name, report.exports)
        if report.symbols and self._settings.show_symbols:
            self.display_symbols(report.symbols)
        self._console.blank()

    def display_status(self, result: InspectionResult) -> None:
        style = _STATUS_STYLE[result.status]
        line = f"[{style}]{result.status.value.upper()}[/{style}] {escape(result.source)}"
        if result.error_kind:
            line += f" [xray.dim]({result.error_kind})[/xray.dim] {escape(result.error_message)}"
        self._console.print(line)

    def display_header(self, report: ParseReport) -> None:
        """Header summary panel."""
        header: HeaderSummary = report.header
        lines: list[str] = [
            f"[bold]Format:[/bold]      {report.format.value.upper()}",
            f"[bold]Size:[/bold]        {report.size:,} bytes",
            f"[bold]Machine:[/bold]     {escape(header.machine_name or '-')} ({_hex(header.machine)})",
            f"[bold]Class:[/bold]       {header.bits or '?'}-bit, {header.endianness} endian",
            f"[bold]Type:[/bold]        {escape(header.file_type or '-')}",
            f"[bold]Entry point:[/bold] {_hex(header.entry_point)}",
        ]
        if report.format == ContainerFormat.PE:
            lines.append(f"[bold]Image base:[/bold]  {_hex(header.image_base)}")
            lines.append(f"[bold]Subsystem:[/bold]   {escape(header.subsystem or '-')}")
            if header.timestamp is not None:
                lines.append(f"[bold]Timestamp:[/bold]   {header.timestamp:%Y-%m-%d %H:%M:%S} UTC")
        if report.interpreter:
            lines.append(f"[bold]Interpreter:[/bold] {escape(report.interpreter)}")
        if report.soname:
            lines.append(f"[bold]SONAME:[/bold]      {escape(report.soname)}")
        if report.rpath:
            lines.append(f"[bold]RPATH:[/bold]       {escape(report.rpath)}")
        if report.runpath:
            lines.append(f"[bold]RUNPATH:[/bold]     {escape(report.runpath)}")

        self._console.rich.print(Panel(
            "\n".join(lines),
            title="[bold bright_cyan]Image Header[/bold bright_cyan]",
            border_style="bright_cyan",
            padding=(0, 2),
        ))

    def display_sections(
        self,
        fmt: ContainerFormat,
        sections: Sequence[SectionDescriptor],
    ) -> None:
        if fmt == ContainerFormat.PE:
            columns = ["#", "Name", "RVA", "VSize", "Raw Offset", "Raw Size", "Kind"]
            rows = [
                (s.index, s.name, _hex(s.virtual_address), _hex(s.virtual_size),
                 _hex(s.offset), _hex(s.size), s.type_name)
                for s in sections
            ]
        else:
            columns = ["#", "Name", "Type", "Address", "Offset", "Size", "Flags", "Link"]
            rows = [
                (s.index, s.name or "<unnamed>", s.type_name, _hex(s.virtual_address),
                 _hex(s.offset), _hex(s.size), _hex(s.flags), s.link)
                for s in sections
            ]
        self._console.table(
            "Sections",
            columns,
            self._limit(rows),
            caption=self._caption(len(rows)),
            styles=["dim", "bold"],
        )

    def display_segments(self, segments: Sequence[SegmentDescriptor]) -> None:
        rows = [
            (seg.type_name, _hex(seg.offset), _hex(seg.virtual_address),
             _hex(seg.file_size), _hex(seg.memory_size), seg.flags)
            for seg in segments
        ]
        self._console.table(
            "Program Headers",
            ["Type", "Offset", "VirtAddr", "FileSize", "MemSize", "Flags"],
            self._limit(rows),
            caption=self._caption(len(rows)),
        )

    def display_imports(self, imports: Sequence[ImportRecord]) -> None:
        """Imports, one row per symbol, grouped by library in on-disk order."""
        rows: list[tuple[Any, ...]] = []
        previous = None
        for imp in imports:
            library = imp.library if imp.library != previous else ""
            previous = imp.library
            hint = "" if imp.hint is None else imp.hint
            rows.append((library, imp.display_name, hint, _hex(imp.thunk_rva)))
        self._console.table(
            "Imports",
            ["Library", "Symbol", "Hint", "Thunk RVA"],
            self._limit(rows),
            caption=self._caption(len(rows)),
            styles=["bold bright_blue", "", "dim", "xray.address"],
        )

    def display_exports(self, dll_name: str, exports: Sequence[ExportRecord]) -> None:
        rows = [
            (e.ordinal, e.name, e.forwarder or _hex(e.address))
            for e in exports
        ]
        self._console.table(
            f"Exports ({escape(dll_name)})" if dll_name else "Exports",
            ["Ordinal", "Name", "Address / Forwarder"],
            self._limit(rows),
            caption=self._caption(len(rows)),
            justify=["right"],
        )

    def display_symbols(self, symbols: Sequence[SymbolRecord]) -> None:
        rows = [
            (sym.name, _hex(sym.value), sym.size, sym.type, sym.bind, sym.section_index)
            for sym in symbols
        ]
        self._console.table(
            "Symbols",
            ["Name", "Value", "Size", "Type", "Bind", "Shndx"],
            self._limit(rows),
            caption=self._caption(len(rows)),
        )

    # ------------------------------------------------------------------ #

    def _limit(self, rows: list[Any]) -> list[Any]:
        cap = self._settings.max_rows
        return rows[:cap] if cap > 0 else rows

    def _caption(self, total: int) -> str | None:
        cap = self._settings.max_rows
        if 0 < cap < total:
            return f"showing {cap} of {total}"
        return None
