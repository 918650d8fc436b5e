"""
Xray Data Models
=================

Pydantic-based value objects describing the structure decoded from an
executable image.  Every model is frozen: decoders build them once during a
single pass and nothing downstream mutates them.

The :class:`ParseReport` is the only artefact a decoder hands to the outer
layers (console renderer, report writer, CLI).

References:
    - TIS Committee. (1995). Executable and Linkable Format (ELF) Specification.
    - Microsoft. (2024). PE Format. Microsoft Learn.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class ContainerFormat(str, enum.Enum):
    """Executable container formats recognised by the detector."""
    ELF = "elf"
    PE = "pe"
    MACHO = "macho"


class InspectionStatus(str, enum.Enum):
    """Outcome of inspecting one input."""
    PARSED = "parsed"
    UNRECOGNIZED = "unrecognized"
    CORRUPT = "corrupt"
    UNREADABLE = "unreadable"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Section / segment tables
# ---------------------------------------------------------------------------

class SectionDescriptor(_Frozen):
    """One entry of a section table.

    Attributes:
        index: Position in the on-disk table; the section's identity.
        name: Section name (``.text``, ``.rdata`` ...).
        virtual_address: Address (ELF) or RVA (PE) when mapped.
        virtual_size: Mapped size (PE only; equals ``size`` for ELF).
        offset: File offset of the section data.
        size: Size of the section data on disk.
        type: ELF ``sh_type`` value (0 for PE).
        type_name: Readable form of ``type`` or a PE content guess.
        flags: ELF ``sh_flags`` / PE ``Characteristics`` bitmask.
        link: ELF ``sh_link`` section index.
        entry_size: ELF ``sh_entsize`` for table sections.
    """
    index: int = 0
    name: str = ""
    virtual_address: int = 0
    virtual_size: int = 0
    offset: int = 0
    size: int = 0
    type: int = 0
    type_name: str = ""
    flags: int = 0
    link: int = 0
    entry_size: int = 0


class SegmentDescriptor(_Frozen):
    """An ELF program header (segment)."""
    type: int = 0
    type_name: str = ""
    offset: int = 0
    virtual_address: int = 0
    file_size: int = 0
    memory_size: int = 0
    flags: str = ""


# ---------------------------------------------------------------------------
# Imports / exports / symbols
# ---------------------------------------------------------------------------

class ImportRecord(_Frozen):
    """A single imported symbol.

    Exactly one of ``name`` and ``ordinal`` is set.  Records of the same
    library are adjacent and keep the on-disk thunk order.
    """
    library: str
    name: Optional[str] = None
    ordinal: Optional[int] = None
    hint: Optional[int] = None
    thunk_rva: int = 0

    @property
    def by_ordinal(self) -> bool:
        return self.ordinal is not None

    @property
    def display_name(self) -> str:
        if self.name is not None:
            return self.name
        return f"Ordinal_{self.ordinal}"


class ExportRecord(_Frozen):
    """An exported function.

    Attributes:
        name: Exported name.
        ordinal: Name-ordinal table value plus the directory's ordinal base.
        address: Function RVA from the address table, when readable.
        forwarder: Forwarder string (``"NTDLL.RtlAllocateHeap"``) when the
            function RVA points back inside the export directory.
    """
    name: str
    ordinal: int
    address: Optional[int] = None
    forwarder: Optional[str] = None


class DynamicNeededEntry(_Frozen):
    """A ``DT_NEEDED`` shared-object dependency."""
    name: str


class SymbolRecord(_Frozen):
    """A named entry of an ELF ``.symtab`` section."""
    name: str
    value: int = 0
    size: int = 0
    type: str = ""
    bind: str = ""
    section_index: int = 0


# ---------------------------------------------------------------------------
# Header summary and report
# ---------------------------------------------------------------------------

class HeaderSummary(_Frozen):
    """Format-independent header fields.

    Attributes:
        entry_point: Entry-point address (ELF) or RVA (PE).
        machine: Raw machine / architecture code.
        machine_name: Readable architecture name.
        timestamp: PE build timestamp as a UTC datetime.
        bits: Address width (32 or 64), 0 when unknown.
        endianness: ``"little"`` or ``"big"``.
        file_type: ELF ``e_type`` name or ``"DLL"``/``"EXE"`` for PE.
        image_base: PE preferred load address.
        subsystem: PE subsystem name.
        is_dll: PE DLL characteristics flag.
    """
    entry_point: int = 0
    machine: int = 0
    machine_name: str = ""
    timestamp: Optional[datetime] = None
    bits: int = 0
    endianness: str = "little"
    file_type: str = ""
    image_base: Optional[int] = None
    subsystem: Optional[str] = None
    is_dll: bool = False


class ParseReport(_Frozen):
    """Complete decoder output for one input.

    ``complete`` is ``False`` only for formats whose table decoding is not
    implemented (Mach-O).
    """
    format: ContainerFormat
    source: str = "<memory>"
    size: int = 0
    complete: bool = True
    header: HeaderSummary = Field(default_factory=HeaderSummary)
    sections: list[SectionDescriptor] = Field(default_factory=list)
    segments: list[SegmentDescriptor] = Field(default_factory=list)
    imports: list[ImportRecord] = Field(default_factory=list)
    exports: list[ExportRecord] = Field(default_factory=list)
    needed: list[DynamicNeededEntry] = Field(default_factory=list)
    symbols: list[SymbolRecord] = Field(default_factory=list)
    soname: str = ""
    rpath: str = ""
    runpath: str = ""
    interpreter: str = ""
    export_name: str = ""

    @property
    def needed_names(self) -> list[str]:
        return [entry.name for entry in self.needed]

    @property
    def symbol_names(self) -> list[str]:
        return [sym.name for sym in self.symbols]

    @property
    def libraries(self) -> list[str]:
        """Imported library names in first-seen order."""
        seen: dict[str, None] = {}
        for imp in self.imports:
            seen.setdefault(imp.library, None)
        return list(seen)


class InspectionResult(_Frozen):
    """What the engine hands to a report consumer for one input.

    Attributes:
        source: Display label of the input (usually its path).
        status: Parsed, unrecognised, corrupt, or unreadable.
        report: The decoded report when ``status`` is ``PARSED``.
        error_kind: :attr:`ParseError.kind` (or ``"io_error"``) on failure.
        error_message: Human-readable failure description.
    """
    source: str
    status: InspectionStatus
    report: Optional[ParseReport] = None
    error_kind: str = ""
    error_message: str = ""

    @property
    def ok(self) -> bool:
        return self.status == InspectionStatus.PARSED
