"""
Synthetic executable images for the test suites.

Every builder returns a complete, self-consistent image as ``bytes``; tests
corrupt or truncate the result themselves.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Optional, Sequence, Union

DT_NULL = 0
DT_NEEDED = 1
DT_SONAME = 14
DT_RUNPATH = 29

TEXT_RVA = 0x1000
RDATA_RVA = 0x2000
FILE_ALIGN = 0x200
RDATA_OFFSET = 0x400


def _strtab(names: Sequence[str]) -> tuple[bytes, dict[str, int]]:
    blob = bytearray(b"\x00")
    offsets: dict[str, int] = {"": 0}
    for name in names:
        if name in offsets:
            continue
        offsets[name] = len(blob)
        blob += name.encode("ascii") + b"\x00"
    return bytes(blob), offsets


def _pad(buf: bytearray, align: int) -> None:
    if align > 1 and len(buf) % align:
        buf += bytes(align - len(buf) % align)


# ---------------------------------------------------------------------------
# ELF
# ---------------------------------------------------------------------------

# (name, value, size, type, bind)
Symbol = tuple[str, int, int, int, int]


def build_elf(
    *,
    is_64: bool = True,
    endian: str = "little",
    needed: Sequence[str] = ("libc.so.6",),
    soname: str = "",
    runpath: str = "",
    symbols: Sequence[Symbol] = (("main", 0x1040, 32, 2, 1),),
    interpreter: str = "",
    extra_dynamic: Sequence[tuple[int, int]] = (),
    shstrndx: Optional[int] = None,
    machine: Optional[int] = None,
    e_type: int = 3,
    entry: int = 0x1040,
) -> bytes:
    """Build an ELF image with sections::

        0 <null>  1 .dynstr  2 .dynamic  3 .strtab  4 .symtab  5 .shstrtab

    ``.dynamic`` links to ``.dynstr`` and ``.symtab`` to ``.strtab``.  The
    section header table is the last thing in the file.
    """
    p = "<" if endian == "little" else ">"
    ehsize, phentsize, shentsize = (64, 56, 64) if is_64 else (52, 32, 40)
    if machine is None:
        machine = 62 if is_64 else 8

    dyn_names = list(needed) + [s for s in (soname, runpath) if s]
    dynstr, dyn_off = _strtab(dyn_names)
    entries = [(DT_NEEDED, dyn_off[name]) for name in needed]
    if soname:
        entries.append((DT_SONAME, dyn_off[soname]))
    if runpath:
        entries.append((DT_RUNPATH, dyn_off[runpath]))
    entries.extend(extra_dynamic)
    entries.append((DT_NULL, 0))
    dyn_fmt = p + ("qQ" if is_64 else "iI")
    dynamic = b"".join(struct.pack(dyn_fmt, tag, val) for tag, val in entries)

    strtab, sym_off = _strtab([s[0] for s in symbols])
    sym_rows = [(0, 0, 0, 0, 0)] + [
        (sym_off[name], value, size, (bind << 4) | typ, 1)
        for name, value, size, typ, bind in symbols
    ]
    if is_64:
        symtab = b"".join(
            struct.pack(p + "IBBHQQ", name, info, 0, shndx, value, size)
            for name, value, size, info, shndx in sym_rows
        )
    else:
        symtab = b"".join(
            struct.pack(p + "IIIBBH", name, value, size, info, 0, shndx)
            for name, value, size, info, shndx in sym_rows
        )

    shstrtab, sh_off = _strtab([".dynstr", ".dynamic", ".strtab", ".symtab", ".shstrtab"])

    body = bytearray(ehsize)
    phoff = phnum = 0
    interp_off = 0
    interp = interpreter.encode("ascii") + b"\x00"
    if interpreter:
        phoff, phnum = len(body), 1
        body += bytes(phentsize)
        interp_off = len(body)
        body += interp

    def place(blob: bytes) -> int:
        _pad(body, 8)
        offset = len(body)
        body.extend(blob)
        return offset

    dynstr_at = place(dynstr)
    dynamic_at = place(dynamic)
    strtab_at = place(strtab)
    symtab_at = place(symtab)
    shstrtab_at = place(shstrtab)
    _pad(body, 8)
    shoff = len(body)

    # (name, type, flags, addr, offset, size, link, info, align, entsize)
    headers = [
        (0, 0, 0, 0, 0, 0, 0, 0, 0, 0),
        (sh_off[".dynstr"], 3, 2, dynstr_at, dynstr_at, len(dynstr), 0, 0, 1, 0),
        (sh_off[".dynamic"], 6, 3, dynamic_at, dynamic_at, len(dynamic), 1, 0, 8,
         16 if is_64 else 8),
        (sh_off[".strtab"], 3, 0, 0, strtab_at, len(strtab), 0, 0, 1, 0),
        (sh_off[".symtab"], 2, 0, 0, symtab_at, len(symtab), 3, 1, 8,
         24 if is_64 else 16),
        (sh_off[".shstrtab"], 3, 0, 0, shstrtab_at, len(shstrtab), 0, 0, 1, 0),
    ]
    shdr_fmt = p + ("IIQQQQIIQQ" if is_64 else "IIIIIIIIII")
    for row in headers:
        body += struct.pack(shdr_fmt, *row)

    if interpreter:
        if is_64:
            phdr = struct.pack(p + "IIQQQQQQ", 3, 4, interp_off, interp_off, interp_off,
                               len(interp), len(interp), 1)
        else:
            phdr = struct.pack(p + "IIIIIIII", 3, interp_off, interp_off, interp_off,
                               len(interp), len(interp), 4, 1)
        body[phoff:phoff + phentsize] = phdr

    ident = b"\x7fELF" + bytes([2 if is_64 else 1, 1 if endian == "little" else 2, 1, 0]) + bytes(8)
    ehdr_fmt = p + ("HHIQQQIHHHHHH" if is_64 else "HHIIIIIHHHHHH")
    body[0:ehsize] = ident + struct.pack(
        ehdr_fmt,
        e_type, machine, 1, entry, phoff, shoff, 0,
        ehsize, phentsize, phnum, shentsize, len(headers),
        5 if shstrndx is None else shstrndx,
    )
    return bytes(body)


# ---------------------------------------------------------------------------
# PE
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RawThunk:
    """An import lookup table entry written verbatim."""
    value: int


ImportEntry = Union[str, int, RawThunk]


def build_pe(
    *,
    pe32_plus: bool = True,
    imports: Optional[dict[str, Sequence[ImportEntry]]] = None,
    exports: Optional[Sequence[tuple[str, Union[int, str]]]] = None,
    export_dll: str = "sample.dll",
    ordinal_base: int = 1,
    is_dll: bool = False,
    timestamp: int = 0x5F5E1000,
    entry_point: int = 0x1010,
    subsystem: int = 3,
    import_rva: Optional[int] = None,
    export_rva: Optional[int] = None,
) -> bytes:
    """Build a PE image with a ``.text`` and an ``.rdata`` section.

    Import entries are names (hint = position), ints (ordinal imports) or
    :class:`RawThunk`.  Export targets are function RVAs (int) or forwarder
    strings; ordinal table value ``i`` is used for export ``i``.
    ``import_rva``/``export_rva`` override the data directory entries.
    """
    blob = bytearray()

    def put(data: bytes, align: int = 2) -> int:
        _pad(blob, align)
        offset = len(blob)
        blob.extend(data)
        return RDATA_RVA + offset

    imp_rva = imp_size = 0
    if imports:
        desc_off = len(blob)
        blob.extend(bytes(20 * (len(imports) + 1)))
        imp_rva, imp_size = RDATA_RVA + desc_off, 20 * (len(imports) + 1)
        width, flag, tfmt = (8, 1 << 63, "<Q") if pe32_plus else (4, 1 << 31, "<I")
        for i, (library, entries) in enumerate(imports.items()):
            values: list[int] = []
            for hint, entry in enumerate(entries):
                if isinstance(entry, RawThunk):
                    values.append(entry.value)
                elif isinstance(entry, int):
                    values.append(flag | entry)
                else:
                    values.append(put(struct.pack("<H", hint) + entry.encode("ascii") + b"\x00"))
            ilt = put(b"".join(struct.pack(tfmt, v) for v in values) + bytes(width), align=8)
            name = put(library.encode("ascii") + b"\x00")
            struct.pack_into("<IIIII", blob, desc_off + 20 * i, ilt, 0, 0, name, ilt)

    exp_rva = exp_size = 0
    if exports is not None:
        _pad(blob, 4)
        start = len(blob)
        blob.extend(bytes(40))
        count = len(exports)
        dll_name = put(export_dll.encode("ascii") + b"\x00", 1)
        name_rvas = [put(name.encode("ascii") + b"\x00", 1) for name, _ in exports]
        functions = [
            put(target.encode("ascii") + b"\x00", 1) if isinstance(target, str) else target
            for _, target in exports
        ]
        functions_rva = put(struct.pack(f"<{count}I", *functions), 4)
        names_rva = put(struct.pack(f"<{count}I", *name_rvas), 4)
        ordinals_rva = put(struct.pack(f"<{count}H", *range(count)), 2)
        exp_rva, exp_size = RDATA_RVA + start, len(blob) - start
        struct.pack_into(
            "<IIHHIIIIIII", blob, start,
            0, timestamp, 0, 0, dll_name, ordinal_base, count, count,
            functions_rva, names_rva, ordinals_rva,
        )

    rdata_vsize = len(blob)
    _pad(blob, FILE_ALIGN)
    if not blob:
        blob.extend(bytes(FILE_ALIGN))

    opt_size = 240 if pe32_plus else 224
    head = bytearray(FILE_ALIGN)
    head[0:2] = b"MZ"
    struct.pack_into("<I", head, 0x3C, 0x40)
    head[0x40:0x44] = b"PE\x00\x00"
    characteristics = 0x0022 | (0x2000 if is_dll else 0)
    struct.pack_into(
        "<HHIIIHH", head, 0x44,
        0x8664 if pe32_plus else 0x14C, 2, timestamp, 0, 0, opt_size, characteristics,
    )

    opt = 0x58
    struct.pack_into("<H", head, opt, 0x20B if pe32_plus else 0x10B)
    struct.pack_into("<I", head, opt + 16, entry_point)
    if pe32_plus:
        struct.pack_into("<Q", head, opt + 24, 0x140000000)
    else:
        struct.pack_into("<I", head, opt + 28, 0x400000)
    struct.pack_into("<H", head, opt + 68, subsystem)
    dd = opt + (112 if pe32_plus else 96)
    struct.pack_into("<I", head, dd - 4, 16)
    struct.pack_into(
        "<IIII", head, dd,
        exp_rva if export_rva is None else export_rva, exp_size,
        imp_rva if import_rva is None else import_rva, imp_size,
    )

    sections = [
        (".text", FILE_ALIGN, TEXT_RVA, FILE_ALIGN, FILE_ALIGN, 0x60000020),
        (".rdata", rdata_vsize, RDATA_RVA, len(blob), RDATA_OFFSET, 0x40000040),
    ]
    for i, (name, vsize, va, raw_size, raw_ptr, chars) in enumerate(sections):
        at = opt + opt_size + 40 * i
        head[at:at + 8] = name.encode("ascii").ljust(8, b"\x00")
        struct.pack_into("<IIIIIIHHI", head, at + 8, vsize, va, raw_size, raw_ptr, 0, 0, 0, 0, chars)

    text = bytearray(FILE_ALIGN)
    text[0x10] = 0xC3
    return bytes(head) + bytes(text) + bytes(blob)
