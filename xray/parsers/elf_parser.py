"""
ELF Binary Format Decoder
==========================

Struct-based decoder for the Executable and Linkable Format used by Linux,
the BSDs and most other Unix-like systems.  ELF32 and ELF64 images in either
byte order are supported.

The decoder extracts:
    - ELF header (class, byte order, type, machine, entry point)
    - Section headers and their names (``e_shstrndx`` string table)
    - Program headers and the ``PT_INTERP`` interpreter path
    - ``DT_NEEDED`` / ``DT_SONAME`` / ``DT_RPATH`` / ``DT_RUNPATH`` from
      every ``.dynamic`` section
    - Named entries of every ``.symtab`` section

Header and table reads outside the image abort the decode.  A single name
offset that falls outside its string table only drops that one entry.

References:
    - TIS Committee. (1995). Tool Interface Standard (TIS) Executable and
      Linkable Format (ELF) Specification, Version 1.2.
    - System V Application Binary Interface, Edition 4.1.
    - Linux man page: elf(5).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from xray.core.errors import (
    InvalidSignature,
    InvalidStringTableIndex,
    OutOfBounds,
    TruncatedHeader,
)
from xray.core.models import (
    ContainerFormat,
    DynamicNeededEntry,
    HeaderSummary,
    ParseReport,
    SectionDescriptor,
    SegmentDescriptor,
    SymbolRecord,
)
from xray.parsers.base import BinaryDecoder
from xray.parsers.detector import ELF_MAGIC
from xray.parsers.reader import ByteReader


# ---------------------------------------------------------------------------
# ELF Constants
# ---------------------------------------------------------------------------

EI_NIDENT: int = 16
EI_CLASS: int = 4
EI_DATA: int = 5

ELFCLASS32: int = 1
ELFCLASS64: int = 2

ELFDATA2LSB: int = 1  # Little-endian
ELFDATA2MSB: int = 2  # Big-endian

ET_NONE: int = 0
ET_REL: int = 1
ET_EXEC: int = 2
ET_DYN: int = 3
ET_CORE: int = 4

_ET_NAMES: dict[int, str] = {
    ET_NONE: "NONE",
    ET_REL: "REL (Relocatable)",
    ET_EXEC: "EXEC (Executable)",
    ET_DYN: "DYN (Shared object)",
    ET_CORE: "CORE (Core dump)",
}

_EM_NAMES: dict[int, str] = {
    0: "None",
    2: "SPARC",
    3: "x86",
    8: "MIPS",
    20: "PowerPC",
    21: "PowerPC64",
    22: "S390",
    40: "ARM",
    62: "x86_64",
    183: "AArch64",
    243: "RISC-V",
    258: "LoongArch",
}

SHT_NULL: int = 0
SHT_PROGBITS: int = 1
SHT_SYMTAB: int = 2
SHT_STRTAB: int = 3
SHT_RELA: int = 4
SHT_HASH: int = 5
SHT_DYNAMIC: int = 6
SHT_NOTE: int = 7
SHT_NOBITS: int = 8
SHT_REL: int = 9
SHT_DYNSYM: int = 11
SHT_INIT_ARRAY: int = 14
SHT_FINI_ARRAY: int = 15
SHT_GNU_HASH: int = 0x6FFFFFF6
SHT_GNU_VERDEF: int = 0x6FFFFFFD
SHT_GNU_VERNEED: int = 0x6FFFFFFE
SHT_GNU_VERSYM: int = 0x6FFFFFFF

_SHT_NAMES: dict[int, str] = {
    SHT_NULL: "NULL",
    SHT_PROGBITS: "PROGBITS",
    SHT_SYMTAB: "SYMTAB",
    SHT_STRTAB: "STRTAB",
    SHT_RELA: "RELA",
    SHT_HASH: "HASH",
    SHT_DYNAMIC: "DYNAMIC",
    SHT_NOTE: "NOTE",
    SHT_NOBITS: "NOBITS",
    SHT_REL: "REL",
    SHT_DYNSYM: "DYNSYM",
    SHT_INIT_ARRAY: "INIT_ARRAY",
    SHT_FINI_ARRAY: "FINI_ARRAY",
    SHT_GNU_HASH: "GNU_HASH",
    SHT_GNU_VERDEF: "GNU_VERDEF",
    SHT_GNU_VERNEED: "GNU_VERNEED",
    SHT_GNU_VERSYM: "GNU_VERSYM",
}

SHN_UNDEF: int = 0

PT_NULL: int = 0
PT_LOAD: int = 1
PT_DYNAMIC: int = 2
PT_INTERP: int = 3
PT_NOTE: int = 4
PT_PHDR: int = 6
PT_TLS: int = 7
PT_GNU_EH_FRAME: int = 0x6474E550
PT_GNU_STACK: int = 0x6474E551
PT_GNU_RELRO: int = 0x6474E552

_PT_NAMES: dict[int, str] = {
    PT_NULL: "NULL",
    PT_LOAD: "LOAD",
    PT_DYNAMIC: "DYNAMIC",
    PT_INTERP: "INTERP",
    PT_NOTE: "NOTE",
    PT_PHDR: "PHDR",
    PT_TLS: "TLS",
    PT_GNU_EH_FRAME: "GNU_EH_FRAME",
    PT_GNU_STACK: "GNU_STACK",
    PT_GNU_RELRO: "GNU_RELRO",
}

PF_X: int = 0x1
PF_W: int = 0x2
PF_R: int = 0x4

_STB_NAMES: dict[int, str] = {0: "LOCAL", 1: "GLOBAL", 2: "WEAK"}
_STT_NAMES: dict[int, str] = {
    0: "NOTYPE",
    1: "OBJECT",
    2: "FUNC",
    3: "SECTION",
    4: "FILE",
    6: "TLS",
    10: "GNU_IFUNC",
}

DT_NULL: int = 0
DT_NEEDED: int = 1
DT_SONAME: int = 14
DT_RPATH: int = 15
DT_RUNPATH: int = 29

# Layouts without the byte-order prefix (added by ByteReader)
_EHDR_FMT = {ELFCLASS32: "HHIIIIIHHHHHH", ELFCLASS64: "HHIQQQIHHHHHH"}
_SHDR_FMT = {ELFCLASS32: "IIIIIIIIII", ELFCLASS64: "IIQQQQIIQQ"}
_PHDR_FMT = {ELFCLASS32: "IIIIIIII", ELFCLASS64: "IIQQQQQQ"}
_DYN_FMT = {ELFCLASS32: "iI", ELFCLASS64: "qQ"}


# ---------------------------------------------------------------------------
# Internal parsed structures
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class _ELFHeader:
    """Fields of the ELF file header needed by later decode steps."""
    ei_class: int
    endianness: str
    e_type: int
    e_machine: int
    e_entry: int
    e_phoff: int
    e_shoff: int
    e_phentsize: int
    e_phnum: int
    e_shentsize: int
    e_shnum: int
    e_shstrndx: int

    @property
    def is_64bit(self) -> bool:
        return self.ei_class == ELFCLASS64


@dataclass(frozen=True, slots=True)
class _DynamicInfo:
    needed: list[DynamicNeededEntry]
    soname: str
    rpath: str
    runpath: str


# ---------------------------------------------------------------------------
# ELF Decoder
# ---------------------------------------------------------------------------

class ELFDecoder(BinaryDecoder):
    """Struct-based ELF32/ELF64 decoder.

    Usage::

        report = ELFDecoder().decode(raw_bytes, "/usr/bin/ls")
        print(report.needed_names)
    """

    format = ContainerFormat.ELF

    def decode(self, data: bytes, source: str = "<memory>") -> ParseReport:
        header = self._parse_header(data)
        reader = ByteReader(data, header.endianness)

        sections = self._parse_section_headers(reader, header)
        segments, interpreter = self._parse_program_headers(reader, header)

        needed: list[DynamicNeededEntry] = []
        soname = rpath = runpath = ""
        for sec in sections:
            if sec.name == ".dynamic":
                dyn = self._parse_dynamic_section(reader, header, sec, sections)
                needed.extend(dyn.needed)
                soname = soname or dyn.soname
                rpath = rpath or dyn.rpath
                runpath = runpath or dyn.runpath

        symbols: list[SymbolRecord] = []
        for sec in sections:
            if sec.name == ".symtab":
                symbols.extend(self._parse_symbol_table(reader, header, sec, sections))

        summary = HeaderSummary(
            entry_point=header.e_entry,
            machine=header.e_machine,
            machine_name=_EM_NAMES.get(header.e_machine, f"unknown({header.e_machine})"),
            bits=64 if header.is_64bit else 32,
            endianness=header.endianness,
            file_type=_ET_NAMES.get(header.e_type, f"0x{header.e_type:x}"),
        )

        return ParseReport(
            format=ContainerFormat.ELF,
            source=source,
            size=len(data),
            header=summary,
            sections=sections,
            segments=segments,
            needed=needed,
            symbols=symbols,
            soname=soname,
            rpath=rpath,
            runpath=runpath,
            interpreter=interpreter,
        )

    # ------------------------------------------------------------------ #
    #  ELF header
    # ------------------------------------------------------------------ #

    @staticmethod
    def _parse_header(data: bytes) -> _ELFHeader:
        """Validate ``e_ident`` and read the class-dependent file header."""
        if data[:4] != ELF_MAGIC:
            raise InvalidSignature("missing ELF magic \\x7fELF")
        if len(data) < EI_NIDENT:
            raise TruncatedHeader(
                f"ELF identification needs {EI_NIDENT} bytes, image has {len(data)}"
            )

        ei_class = data[EI_CLASS]
        if ei_class not in (ELFCLASS32, ELFCLASS64):
            raise InvalidSignature(f"unsupported ELF class {ei_class}")

        ei_data = data[EI_DATA]
        if ei_data == ELFDATA2LSB:
            endianness = "little"
        elif ei_data == ELFDATA2MSB:
            endianness = "big"
        else:
            raise InvalidSignature(f"unsupported ELF data encoding {ei_data}")

        reader = ByteReader(data, endianness)
        try:
            (
                e_type, e_machine, _e_version, e_entry,
                e_phoff, e_shoff, _e_flags, _e_ehsize,
                e_phentsize, e_phnum, e_shentsize, e_shnum,
                e_shstrndx,
            ) = reader.unpack(_EHDR_FMT[ei_class], EI_NIDENT)
        except OutOfBounds as exc:
            bits = 64 if ei_class == ELFCLASS64 else 32
            raise TruncatedHeader(f"ELF{bits} file header: {exc.message}") from exc

        return _ELFHeader(
            ei_class=ei_class,
            endianness=endianness,
            e_type=e_type,
            e_machine=e_machine,
            e_entry=e_entry,
            e_phoff=e_phoff,
            e_shoff=e_shoff,
            e_phentsize=e_phentsize,
            e_phnum=e_phnum,
            e_shentsize=e_shentsize,
            e_shnum=e_shnum,
            e_shstrndx=e_shstrndx,
        )

    # ------------------------------------------------------------------ #
    #  Section headers
    # ------------------------------------------------------------------ #

    def _parse_section_headers(
        self,
        reader: ByteReader,
        header: _ELFHeader,
    ) -> list[SectionDescriptor]:
        """Decode exactly ``e_shnum`` section headers and name them."""
        fmt = _SHDR_FMT[header.ei_class]
        raw: list[tuple[int, ...]] = []
        for i in range(header.e_shnum):
            offset = header.e_shoff + i * header.e_shentsize
            reader.require(offset, 64 if header.is_64bit else 40, f"section header {i}")
            raw.append(reader.unpack(fmt, offset))

        names = self._section_names(reader, header, raw)

        sections: list[SectionDescriptor] = []
        for i, fields in enumerate(raw):
            (
                _sh_name, sh_type, sh_flags, sh_addr,
                sh_offset, sh_size, sh_link, _sh_info,
                _sh_addralign, sh_entsize,
            ) = fields
            sections.append(SectionDescriptor(
                index=i,
                name=names[i],
                virtual_address=sh_addr,
                virtual_size=sh_size,
                offset=sh_offset,
                size=sh_size,
                type=sh_type,
                type_name=_SHT_NAMES.get(sh_type, f"0x{sh_type:x}"),
                flags=sh_flags,
                link=sh_link,
                entry_size=sh_entsize,
            ))
        return sections

    @staticmethod
    def _section_names(
        reader: ByteReader,
        header: _ELFHeader,
        raw: list[tuple[int, ...]],
    ) -> list[str]:
        """Resolve every ``sh_name`` against the ``e_shstrndx`` table.

        ``SHN_UNDEF`` means the image carries no section name table; every
        name is then empty.
        """
        if not raw or header.e_shstrndx == SHN_UNDEF:
            return [""] * len(raw)
        if header.e_shstrndx >= len(raw):
            raise InvalidStringTableIndex(header.e_shstrndx, len(raw))

        strtab = raw[header.e_shstrndx]
        start, size = strtab[4], strtab[5]
        reader.require(start, size, "section name string table")
        return [reader.cstring(start + fields[0], start + size) for fields in raw]

    # ------------------------------------------------------------------ #
    #  Program headers
    # ------------------------------------------------------------------ #

    @staticmethod
    def _parse_program_headers(
        reader: ByteReader,
        header: _ELFHeader,
    ) -> tuple[list[SegmentDescriptor], str]:
        """Decode the program header table and the interpreter path."""
        if header.e_phoff == 0 or header.e_phnum == 0:
            return [], ""

        fmt = _PHDR_FMT[header.ei_class]
        segments: list[SegmentDescriptor] = []
        interpreter = ""
        for i in range(header.e_phnum):
            offset = header.e_phoff + i * header.e_phentsize
            reader.require(offset, 56 if header.is_64bit else 32, f"program header {i}")
            if header.is_64bit:
                p_type, p_flags, p_offset, p_vaddr, _p_paddr, p_filesz, p_memsz, _p_align = (
                    reader.unpack(fmt, offset)
                )
            else:
                p_type, p_offset, p_vaddr, _p_paddr, p_filesz, p_memsz, p_flags, _p_align = (
                    reader.unpack(fmt, offset)
                )

            if p_type == PT_INTERP and not interpreter and reader.contains(p_offset, p_filesz):
                interpreter = (
                    reader.slice(p_offset, p_filesz)
                    .rstrip(b"\x00")
                    .decode("ascii", errors="replace")
                )

            segments.append(SegmentDescriptor(
                type=p_type,
                type_name=_PT_NAMES.get(p_type, f"0x{p_type:x}"),
                offset=p_offset,
                virtual_address=p_vaddr,
                file_size=p_filesz,
                memory_size=p_memsz,
                flags=_segment_flags_str(p_flags),
            ))
        return segments, interpreter

    # ------------------------------------------------------------------ #
    #  Dynamic section
    # ------------------------------------------------------------------ #

    def _parse_dynamic_section(
        self,
        reader: ByteReader,
        header: _ELFHeader,
        sec: SectionDescriptor,
        sections: list[SectionDescriptor],
    ) -> _DynamicInfo:
        """Walk one ``.dynamic`` section and resolve its string-valued tags.

        String values are offsets into the section named by ``sh_link``;
        that table is only located once a string-valued tag is seen.
        """
        needed: list[DynamicNeededEntry] = []
        strings: dict[int, str] = {}
        if sec.entry_size == 0:
            return _DynamicInfo(needed, "", "", "")

        reader.require(sec.offset, sec.size, f"section {sec.name}")
        fmt = _DYN_FMT[header.ei_class]
        strtab: Optional[tuple[int, int]] = None

        for i in range(sec.size // sec.entry_size):
            d_tag, d_val = reader.unpack(fmt, sec.offset + i * sec.entry_size)
            if d_tag == DT_NULL:
                break
            if d_tag not in (DT_NEEDED, DT_SONAME, DT_RPATH, DT_RUNPATH):
                continue

            if strtab is None:
                strtab = self._string_table(reader, sections, sec.link)
            text = _lookup(reader, strtab, d_val)
            if text is None:
                continue

            if d_tag == DT_NEEDED:
                needed.append(DynamicNeededEntry(name=text))
            else:
                strings.setdefault(d_tag, text)

        return _DynamicInfo(
            needed=needed,
            soname=strings.get(DT_SONAME, ""),
            rpath=strings.get(DT_RPATH, ""),
            runpath=strings.get(DT_RUNPATH, ""),
        )

    # ------------------------------------------------------------------ #
    #  Symbol table
    # ------------------------------------------------------------------ #

    def _parse_symbol_table(
        self,
        reader: ByteReader,
        header: _ELFHeader,
        sec: SectionDescriptor,
        sections: list[SectionDescriptor],
    ) -> list[SymbolRecord]:
        """Decode the named entries of one ``.symtab`` section.

        Entries with an empty name (the null symbol, most section symbols)
        are skipped silently.
        """
        if sec.entry_size == 0:
            return []

        reader.require(sec.offset, sec.size, f"section {sec.name}")
        strtab = self._string_table(reader, sections, sec.link)

        symbols: list[SymbolRecord] = []
        for i in range(sec.size // sec.entry_size):
            offset = sec.offset + i * sec.entry_size
            if header.is_64bit:
                st_name, st_info, _st_other, st_shndx, st_value, st_size = (
                    reader.unpack("IBBHQQ", offset)
                )
            else:
                st_name, st_value, st_size, st_info, _st_other, st_shndx = (
                    reader.unpack("IIIBBH", offset)
                )

            name = _lookup(reader, strtab, st_name)
            if not name:
                continue

            bind = st_info >> 4
            sym_type = st_info & 0xF
            symbols.append(SymbolRecord(
                name=name,
                value=st_value,
                size=st_size,
                type=_STT_NAMES.get(sym_type, f"UNKNOWN({sym_type})"),
                bind=_STB_NAMES.get(bind, f"UNKNOWN({bind})"),
                section_index=st_shndx,
            ))
        return symbols

    # ------------------------------------------------------------------ #
    #  Utility methods
    # ------------------------------------------------------------------ #

    @staticmethod
    def _string_table(
        reader: ByteReader,
        sections: list[SectionDescriptor],
        index: int,
    ) -> tuple[int, int]:
        """Return the validated ``(start, end)`` file range of a string table."""
        if index >= len(sections):
            raise InvalidStringTableIndex(index, len(sections))
        strtab = sections[index]
        reader.require(strtab.offset, strtab.size, f"string table section {index}")
        return strtab.offset, strtab.offset + strtab.size


def _lookup(reader: ByteReader, strtab: tuple[int, int], offset: int) -> Optional[str]:
    """Read a string-table entry, or ``None`` when *offset* is past its end."""
    start, end = strtab
    try:
        return reader.cstring(start + offset, end)
    except OutOfBounds:
        return None


def _segment_flags_str(flags: int) -> str:
    """Convert program header flags to a string like ``"R-X"``."""
    return "".join((
        "R" if flags & PF_R else "-",
        "W" if flags & PF_W else "-",
        "X" if flags & PF_X else "-",
    ))
