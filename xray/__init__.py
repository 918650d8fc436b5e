"""
Xray -- Executable Image Inspector
===================================

Xray reads an executable image and reports its structure without ever
running it.

Capabilities:
    - Container detection by magic number (ELF, PE, Mach-O)
    - ELF32/ELF64 in either byte order: sections, program headers,
      DT_NEEDED/SONAME/RPATH/RUNPATH and .symtab symbols
    - PE32/PE32+: section table, imports by name or ordinal, exports
      with ordinal base and forwarders
    - Bounds-checked reads throughout, with typed errors for corrupt input
    - Rich console, JSON and HTML output

References:
    - TIS Committee. (1995). ELF Specification.
    - Microsoft. (2024). PE Format.
"""

__version__ = "1.0.0"
__all__ = [
    "InspectionEngine",
    "InspectionResult",
    "ParseReport",
    "ConsoleRenderer",
    "ReportWriter",
]

from xray.core.engine import InspectionEngine
from xray.core.models import InspectionResult, ParseReport
from xray.output.console import ConsoleRenderer
from xray.output.report import ReportWriter
