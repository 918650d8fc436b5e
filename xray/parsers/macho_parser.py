"""
Mach-O Decoder (identity only)
===============================

Mach-O images are recognised by the detector but their load commands are
not decoded.  The report carries the format, the address width implied by
the magic number, and ``complete=False`` so consumers can tell it apart
from a fully decoded image that simply has no imports.

References:
    - Apple. (2009). OS X ABI Mach-O File Format Reference.
"""

from __future__ import annotations

from xray.core.errors import InvalidSignature, TruncatedHeader
from xray.core.models import ContainerFormat, HeaderSummary, ParseReport
from xray.parsers.base import BinaryDecoder
from xray.parsers.detector import MACHO_MAGICS
from xray.parsers.reader import ByteReader

MH_MAGIC: int = 0xFEEDFACE
MH_MAGIC_64: int = 0xFEEDFACF
FAT_MAGIC: int = 0xCAFEBABE
FAT_MAGIC_64: int = 0xCAFEBABF

_KIND: dict[int, tuple[int, str]] = {
    MH_MAGIC: (32, "Mach-O"),
    MH_MAGIC_64: (64, "Mach-O"),
    FAT_MAGIC: (0, "Universal"),
    FAT_MAGIC_64: (0, "Universal"),
}


class MachODecoder(BinaryDecoder):
    """Placeholder decoder returning an identity-only report."""

    format = ContainerFormat.MACHO

    def decode(self, data: bytes, source: str = "<memory>") -> ParseReport:
        reader = ByteReader(data, "big")
        if not reader.contains(0, 4):
            raise TruncatedHeader("Mach-O magic needs 4 bytes")
        magic = reader.u32(0)
        if magic not in MACHO_MAGICS:
            raise InvalidSignature(f"unknown Mach-O magic 0x{magic:08x}")

        bits, file_type = _KIND[magic]
        return ParseReport(
            format=ContainerFormat.MACHO,
            source=source,
            size=len(data),
            complete=False,
            header=HeaderSummary(bits=bits, endianness="big", file_type=file_type),
        )
