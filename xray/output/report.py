"""
Xray Report Writer
===================

Writes inspection results as JSON or as a self-contained HTML page.

The JSON document is the pydantic serialisation of each
:class:`InspectionResult` wrapped in a small envelope::

    {
      "report_type": "xray_inspection",
      "version": "1.0.0",
      "generated_at": "...",
      "results": [ {"source": ..., "status": "parsed", "report": {...}}, ... ]
    }
"""

from __future__ import annotations

import html
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Sequence

from xray import __version__
from xray.core.models import InspectionResult, ParseReport

_HTML_HEADER = """\
<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<title>Xray - Executable Inspection Report</title>
<style>
  body { font-family: 'Segoe UI', sans-serif; background: #0d1117; color: #c9d1d9; padding: 2rem; }
  h1, h2 { color: #58a6ff; }
  h3 { color: #bc8cff; }
  table { border-collapse: collapse; margin: 1rem 0; width: 100%; background: #161b22; }
  th { background: #21262d; color: #bc8cff; text-align: left; padding: 0.4rem 0.6rem; border: 1px solid #30363d; }
  td { padding: 0.3rem 0.6rem; border: 1px solid #30363d; font-size: 0.85rem; }
  .mono { font-family: 'Consolas', 'Monaco', monospace; }
  .status-parsed { color: #3fb950; }
  .status-unrecognized { color: #d29922; }
  .status-corrupt, .status-unreadable { color: #f85149; }
  .footer { margin-top: 3rem; color: #8b949e; font-size: 0.85rem; text-align: center; }
</style>
</head>
<body>
<h1>Xray - Executable Inspection Report</h1>
"""

_HTML_FOOTER = """\
<div class="footer">Generated by Xray {version} at {timestamp}</div>
</body>
</html>
"""


def _hex(value: int | None) -> str:
    return "-" if value is None else f"0x{value:x}"


def _html_table(columns: Sequence[str], rows: Sequence[Sequence[Any]]) -> str:
    head = "".join(f"<th>{html.escape(c)}</th>" for c in columns)
    body = "\n".join(
        "<tr>" + "".join(f"<td>{html.escape(str(cell))}</td>" for cell in row) + "</tr>"
        for row in rows
    )
    return f"<table><tr>{head}</tr>\n{body}</table>"


class ReportWriter:
    """Serialise inspection results to disk.

    Usage::

        writer = ReportWriter()
        writer.write(results, "out.json")   # format picked by suffix
        writer.write(results, "out.html")
    """

    def to_dict(self, results: Sequence[InspectionResult]) -> dict[str, Any]:
        return {
            "report_type": "xray_inspection",
            "version": __version__,
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "results": [r.model_dump(mode="json") for r in results],
        }

    def to_json(self, results: Sequence[InspectionResult]) -> str:
        return json.dumps(self.to_dict(results), indent=2, ensure_ascii=False)

    def generate_json(self, results: Sequence[InspectionResult], output_path: str | Path) -> str:
        """Write the JSON report and return its absolute path."""
        return self._write(output_path, self.to_json(results))

    def generate_html(self, results: Sequence[InspectionResult], output_path: str | Path) -> str:
        """Write the HTML report and return its absolute path."""
        parts: list[str] = [_HTML_HEADER]
        for result in results:
            status = result.status.value
            parts.append(
                f"<h2 class='mono'>{html.escape(result.source)} "
                f"<span class='status-{status}'>[{status}]</span></h2>"
            )
            if result.report is not None:
                parts.append(self._html_report(result.report))
            elif result.error_message:
                parts.append(
                    f"<p>{html.escape(result.error_kind)}: {html.escape(result.error_message)}</p>"
                )
        parts.append(_HTML_FOOTER.format(
            version=__version__,
            timestamp=datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC"),
        ))
        return self._write(output_path, "\n".join(parts))

    def write(self, results: Sequence[InspectionResult], output_path: str | Path) -> str:
        """Write JSON for a ``.json`` suffix and HTML otherwise."""
        if Path(output_path).suffix.lower() == ".json":
            return self.generate_json(results, output_path)
        return self.generate_html(results, output_path)

    # ------------------------------------------------------------------ #

    @staticmethod
    def _html_report(report: ParseReport) -> str:
        header = report.header
        parts = [_html_table(
            ["Field", "Value"],
            [
                ("Format", report.format.value.upper()),
                ("Size", f"{report.size:,} bytes"),
                ("Machine", header.machine_name),
                ("Class", f"{header.bits}-bit {header.endianness} endian"),
                ("Type", header.file_type),
                ("Entry point", _hex(header.entry_point)),
                ("Complete", "yes" if report.complete else "no"),
            ],
        )]
        if report.sections:
            parts.append("<h3>Sections</h3>")
            parts.append(_html_table(
                ["#", "Name", "Address", "Offset", "Size", "Type"],
                [(s.index, s.name, _hex(s.virtual_address), _hex(s.offset), _hex(s.size), s.type_name)
                 for s in report.sections],
            ))
        if report.needed:
            parts.append("<h3>Needed</h3>")
            parts.append(_html_table(["Library"], [(n,) for n in report.needed_names]))
        if report.imports:
            parts.append("<h3>Imports</h3>")
            parts.append(_html_table(
                ["Library", "Symbol"],
                [(i.library, i.display_name) for i in report.imports],
            ))
        if report.exports:
            parts.append("<h3>Exports</h3>")
            parts.append(_html_table(
                ["Ordinal", "Name", "Address / Forwarder"],
                [(e.ordinal, e.name, e.forwarder or _hex(e.address)) for e in report.exports],
            ))
        if report.symbols:
            parts.append("<h3>Symbols</h3>")
            parts.append(_html_table(
                ["Name", "Value", "Type", "Bind"],
                [(s.name, _hex(s.value), s.type, s.bind) for s in report.symbols],
            ))
        return "\n".join(parts)

    @staticmethod
    def _write(output_path: str | Path, content: str) -> str:
        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return str(path.resolve())
