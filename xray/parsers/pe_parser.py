"""
PE/COFF Binary Format Decoder
==============================

Struct-based decoder for the Portable Executable format used by Windows
executables (.exe), dynamic link libraries (.dll) and drivers.  Both PE32
and PE32+ (64-bit) optional headers are supported.

The decoder extracts:
    - DOS header (``MZ``) and the ``e_lfanew`` pointer
    - PE signature verification
    - COFF file header (machine, section count, timestamp, characteristics)
    - Optional header magic, entry point, image base, subsystem
    - Section table
    - Import directory (DLL names and imported names / ordinals)
    - Export directory (exported names, ordinals, forwarders)

Malformed DOS/NT headers are fatal.  Inside an already located import or
export directory a bad entry is skipped, or ends the walk of that list, and
never causes a read outside the image.

References:
    - Microsoft. (2024). PE Format. Microsoft Learn.
      https://learn.microsoft.com/en-us/windows/win32/debug/pe-format
    - Pietrek, M. (1994). Peering Inside the PE: A Tour of the Win32
      Portable Executable File Format. Microsoft Systems Journal.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from xray.core.errors import (
    InvalidSignature,
    OutOfBounds,
    TruncatedHeader,
    UnmappedAddress,
)
from xray.core.models import (
    ContainerFormat,
    ExportRecord,
    HeaderSummary,
    ImportRecord,
    ParseReport,
    SectionDescriptor,
)
from xray.parsers import rva
from xray.parsers.base import BinaryDecoder
from xray.parsers.detector import MZ_MAGIC
from xray.parsers.reader import ByteReader


# ---------------------------------------------------------------------------
# PE Constants
# ---------------------------------------------------------------------------

PE_SIGNATURE: bytes = b"PE"

E_LFANEW_OFFSET: int = 0x3C
COFF_HEADER_SIZE: int = 20
OPTIONAL_HEADER_OFFSET: int = 24  # PE signature (4) + COFF header (20)
SECTION_HEADER_SIZE: int = 40
IMPORT_DESCRIPTOR_SIZE: int = 20
EXPORT_DIRECTORY_SIZE: int = 40

PE32_MAGIC: int = 0x10B
PE32PLUS_MAGIC: int = 0x20B

# Data directory array offset within the optional header
_DATA_DIRECTORY_OFFSET: dict[bool, int] = {False: 96, True: 112}

ORDINAL_FLAG32: int = 1 << 31
ORDINAL_FLAG64: int = 1 << 63

IMAGE_FILE_DLL: int = 0x2000

_MACHINE_NAMES: dict[int, str] = {
    0x0: "Unknown",
    0x14C: "x86",
    0x162: "MIPS R3000",
    0x166: "MIPS R4000",
    0x1C0: "ARM",
    0x1C4: "ARM Thumb-2",
    0x200: "IA-64",
    0x5032: "RISC-V 32",
    0x5064: "RISC-V 64",
    0x8664: "x86_64",
    0xAA64: "AArch64",
}

_SUBSYSTEM_NAMES: dict[int, str] = {
    0: "Unknown",
    1: "Native",
    2: "Windows GUI",
    3: "Windows Console",
    7: "POSIX Console",
    9: "Windows CE GUI",
    10: "EFI Application",
    11: "EFI Boot Service Driver",
    12: "EFI Runtime Driver",
    13: "EFI ROM",
    14: "Xbox",
}

IMAGE_SCN_CNT_CODE: int = 0x00000020
IMAGE_SCN_CNT_INITIALIZED_DATA: int = 0x00000040
IMAGE_SCN_CNT_UNINITIALIZED_DATA: int = 0x00000080

_KNOWN_SECTIONS: dict[str, str] = {
    ".text": "Code",
    ".code": "Code",
    ".rdata": "Read-only data",
    ".data": "Initialized data",
    ".bss": "Uninitialized data",
    ".idata": "Import data",
    ".edata": "Export data",
    ".rsrc": "Resources",
    ".reloc": "Relocations",
    ".tls": "Thread-local storage",
    ".pdata": "Exception handling",
}


def decode_thunk(value: int, pe32_plus: bool = True) -> tuple[Optional[int], Optional[int]]:
    """Split an import lookup table entry.

    Args:
        value: Raw thunk value (8 bytes for PE32+, 4 bytes for PE32).
        pe32_plus: Whether the image uses 64-bit thunks.

    Returns:
        ``(ordinal, None)`` for an ordinal import (ordinal flag set; ordinal
        is the low 16 bits) or ``(None, hint_name_rva)`` for a name import.
    """
    flag = ORDINAL_FLAG64 if pe32_plus else ORDINAL_FLAG32
    if value & flag:
        return value & 0xFFFF, None
    return None, value & 0x7FFFFFFF


# ---------------------------------------------------------------------------
# PE Decoder
# ---------------------------------------------------------------------------

class PEDecoder(BinaryDecoder):
    """Struct-based PE32/PE32+ decoder.

    Usage::

        report = PEDecoder().decode(raw_bytes, "kernel32.dll")
        for imp in report.imports:
            print(imp.library, imp.display_name)
    """

    format = ContainerFormat.PE

    def decode(self, data: bytes, source: str = "<memory>") -> ParseReport:
        reader = ByteReader(data, "little")

        if data[:2] != MZ_MAGIC:
            raise InvalidSignature("missing DOS 'MZ' signature")
        e_lfanew = _header_field(reader, "I", E_LFANEW_OFFSET, "DOS e_lfanew")

        signature = _header_bytes(reader, e_lfanew, len(PE_SIGNATURE), "PE signature")
        if signature != PE_SIGNATURE:
            raise InvalidSignature(f"missing 'PE' signature at offset 0x{e_lfanew:x}")

        machine, num_sections, timestamp, _sym_ptr, _sym_count, opt_size, characteristics = (
            _header_field(reader, "HHIIIHH", e_lfanew + 4, "COFF file header", single=False)
        )

        opt_offset = e_lfanew + OPTIONAL_HEADER_OFFSET
        magic = _header_field(reader, "H", opt_offset, "optional header magic")
        entry_point = _header_field(reader, "I", opt_offset + 16, "AddressOfEntryPoint")
        pe32_plus = magic == PE32PLUS_MAGIC

        dd_offset = opt_offset + _DATA_DIRECTORY_OFFSET[pe32_plus]
        export_rva, export_size, import_rva, _import_size = _header_field(
            reader, "IIII", dd_offset, "data directories", single=False,
        )
        if pe32_plus:
            image_base = reader.u64(opt_offset + 24)
        else:
            image_base = reader.u32(opt_offset + 28)
        subsystem = reader.u16(opt_offset + 68)

        sections = self._parse_section_table(reader, opt_offset + opt_size, num_sections)
        imports = self._parse_imports(reader, import_rva, sections, pe32_plus)
        export_name, exports = self._parse_exports(reader, export_rva, export_size, sections)

        is_dll = bool(characteristics & IMAGE_FILE_DLL)
        summary = HeaderSummary(
            entry_point=entry_point,
            machine=machine,
            machine_name=_MACHINE_NAMES.get(machine, f"unknown(0x{machine:x})"),
            timestamp=datetime.fromtimestamp(timestamp, tz=timezone.utc),
            bits=64 if pe32_plus else 32,
            endianness="little",
            file_type="DLL" if is_dll else "EXE",
            image_base=image_base,
            subsystem=_SUBSYSTEM_NAMES.get(subsystem, f"Unknown(0x{subsystem:x})"),
            is_dll=is_dll,
        )

        return ParseReport(
            format=ContainerFormat.PE,
            source=source,
            size=len(data),
            header=summary,
            sections=sections,
            imports=imports,
            exports=exports,
            export_name=export_name,
        )

    # ------------------------------------------------------------------ #
    #  Section table
    # ------------------------------------------------------------------ #

    @staticmethod
    def _parse_section_table(
        reader: ByteReader,
        offset: int,
        count: int,
    ) -> list[SectionDescriptor]:
        """Decode exactly *count* 40-byte section headers starting at *offset*."""
        sections: list[SectionDescriptor] = []
        for i in range(count):
            sec_offset = offset + i * SECTION_HEADER_SIZE
            reader.require(sec_offset, SECTION_HEADER_SIZE, f"section header {i}")

            name = (
                reader.slice(sec_offset, 8)
                .rstrip(b"\x00")
                .decode("ascii", errors="replace")
            )
            (
                virtual_size, virtual_address, raw_size, raw_ptr,
                _reloc_ptr, _lineno_ptr, _reloc_count, _lineno_count,
                characteristics,
            ) = reader.unpack("IIIIIIHHI", sec_offset + 8)

            sections.append(SectionDescriptor(
                index=i,
                name=name,
                virtual_address=virtual_address,
                virtual_size=virtual_size,
                offset=raw_ptr,
                size=raw_size,
                type_name=_guess_section_type(name, characteristics),
                flags=characteristics,
            ))
        return sections

    # ------------------------------------------------------------------ #
    #  Import directory
    # ------------------------------------------------------------------ #

    def _parse_imports(
        self,
        reader: ByteReader,
        import_rva: int,
        sections: list[SectionDescriptor],
        pe32_plus: bool,
    ) -> list[ImportRecord]:
        """Walk the import descriptor array.

        The array ends at the first descriptor whose ``OriginalFirstThunk``
        is zero.  A descriptor whose name cannot be read is skipped.
        """
        if import_rva == 0:
            return []

        offset = rva.resolve(import_rva, sections)
        reader.require(offset, IMPORT_DESCRIPTOR_SIZE, "import directory")

        records: list[ImportRecord] = []
        while reader.contains(offset, IMPORT_DESCRIPTOR_SIZE):
            original_first_thunk, _stamp, _forwarder, name_rva, _first_thunk = (
                reader.unpack("IIIII", offset)
            )
            if original_first_thunk == 0:
                break
            offset += IMPORT_DESCRIPTOR_SIZE

            library = _rva_string(reader, name_rva, sections)
            if library is None:
                continue
            records.extend(
                self._walk_thunks(reader, library, original_first_thunk, sections, pe32_plus)
            )
        return records

    @staticmethod
    def _walk_thunks(
        reader: ByteReader,
        library: str,
        thunk_rva: int,
        sections: list[SectionDescriptor],
        pe32_plus: bool,
    ) -> list[ImportRecord]:
        """Decode one import lookup table up to its zero terminator.

        The table never extends past the section that holds it.
        """
        try:
            base, limit = rva.resolve_extent(thunk_rva, sections)
        except UnmappedAddress:
            return []

        width, fmt = (8, "Q") if pe32_plus else (4, "I")
        records: list[ImportRecord] = []
        index = 0
        while (
            base + (index + 1) * width <= limit
            and reader.contains(base + index * width, width)
        ):
            (value,) = reader.unpack(fmt, base + index * width)
            if value == 0:
                break
            entry_rva = thunk_rva + index * width
            index += 1

            ordinal, hint_name_rva = decode_thunk(value, pe32_plus)
            if ordinal is not None:
                records.append(ImportRecord(library=library, ordinal=ordinal, thunk_rva=entry_rva))
                continue

            hint_offset = rva.try_resolve(hint_name_rva, sections)
            if hint_offset is None:
                continue
            try:
                hint = reader.u16(hint_offset)
                name = reader.cstring(hint_offset + 2)
            except OutOfBounds:
                continue
            records.append(ImportRecord(
                library=library,
                name=name,
                hint=hint,
                thunk_rva=entry_rva,
            ))
        return records

    # ------------------------------------------------------------------ #
    #  Export directory
    # ------------------------------------------------------------------ #

    @staticmethod
    def _parse_exports(
        reader: ByteReader,
        export_rva: int,
        export_size: int,
        sections: list[SectionDescriptor],
    ) -> tuple[str, list[ExportRecord]]:
        """Decode the named entries of the export directory.

        Returns:
            ``(dll_name, exports)``.  Entries whose name cannot be resolved
            are skipped; the walk stops when the name-pointer or ordinal
            table runs past the end of the image.
        """
        if export_rva == 0:
            return "", []

        offset = rva.resolve(export_rva, sections)
        reader.require(offset, EXPORT_DIRECTORY_SIZE, "export directory")
        (
            _characteristics, _stamp, _major, _minor,
            name_rva, ordinal_base, function_count, name_count,
            functions_rva, names_rva, ordinals_rva,
        ) = reader.unpack("IIHHIIIIIII", offset)

        dll_name = _rva_string(reader, name_rva, sections) or ""

        names_offset = rva.try_resolve(names_rva, sections)
        ordinals_offset = rva.try_resolve(ordinals_rva, sections)
        functions_offset = rva.try_resolve(functions_rva, sections)
        if names_offset is None or ordinals_offset is None:
            return dll_name, []

        exports: list[ExportRecord] = []
        for i in range(name_count):
            name_ptr = names_offset + i * 4
            ordinal_ptr = ordinals_offset + i * 2
            if not (reader.contains(name_ptr, 4) and reader.contains(ordinal_ptr, 2)):
                break

            name = _rva_string(reader, reader.u32(name_ptr), sections)
            if name is None:
                continue
            index = reader.u16(ordinal_ptr)

            address: Optional[int] = None
            forwarder: Optional[str] = None
            if functions_offset is not None and index < function_count:
                func_ptr = functions_offset + index * 4
                if reader.contains(func_ptr, 4):
                    address = reader.u32(func_ptr)
                    if export_rva <= address < export_rva + export_size:
                        forwarder = _rva_string(reader, address, sections)

            exports.append(ExportRecord(
                name=name,
                ordinal=index + ordinal_base,
                address=address,
                forwarder=forwarder,
            ))
        return dll_name, exports


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _header_field(
    reader: ByteReader,
    fmt: str,
    offset: int,
    what: str,
    single: bool = True,
):
    """Read a fixed header field, reporting a short image as truncated."""
    try:
        fields = reader.unpack(fmt, offset)
    except OutOfBounds as exc:
        raise TruncatedHeader(f"{what}: {exc.message}") from exc
    return fields[0] if single else fields


def _header_bytes(reader: ByteReader, offset: int, size: int, what: str) -> bytes:
    try:
        return reader.slice(offset, size)
    except OutOfBounds as exc:
        raise TruncatedHeader(f"{what}: {exc.message}") from exc


def _rva_string(
    reader: ByteReader,
    address: int,
    sections: list[SectionDescriptor],
) -> Optional[str]:
    """Read a NUL-terminated string at an RVA, or ``None`` if unreadable."""
    offset = rva.try_resolve(address, sections)
    if offset is None:
        return None
    try:
        return reader.cstring(offset)
    except OutOfBounds:
        return None


def _guess_section_type(name: str, characteristics: int) -> str:
    """Heuristically classify a section by its name and characteristics."""
    known = _KNOWN_SECTIONS.get(name.lower())
    if known:
        return known
    if characteristics & IMAGE_SCN_CNT_CODE:
        return "Code"
    if characteristics & IMAGE_SCN_CNT_INITIALIZED_DATA:
        return "Initialized data"
    if characteristics & IMAGE_SCN_CNT_UNINITIALIZED_DATA:
        return "Uninitialized data"
    return "Unknown"
