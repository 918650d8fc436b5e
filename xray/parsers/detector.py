"""
Container Format Detection
===========================

Classifies an input by its leading magic bytes.  Rules are checked in order
and the first match wins:

    1. ``MZ``                                  -> PE
    2. ``\\x7fELF``                            -> ELF
    3. big-endian u32 in the Mach-O magic set  -> Mach-O

Nothing beyond the magic is validated here; secondary signatures such as
PE's ``PE\\0\\0`` are the decoder's job.

References:
    - Gary Kessler's File Signatures Table.
      https://www.garykessler.net/library/file_sigs.html
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Optional

from xray.core.models import ContainerFormat


MZ_MAGIC: bytes = b"MZ"
ELF_MAGIC: bytes = b"\x7fELF"

# 32/64-bit thin images and the universal (fat) header, read big-endian
MACHO_MAGICS: frozenset[int] = frozenset({
    0xFEEDFACE,
    0xFEEDFACF,
    0xCAFEBABE,
    0xCAFEBABF,
})


@dataclass(frozen=True, slots=True)
class _Signature:
    """A leading-bytes signature mapped to a container format."""
    magic: bytes
    format: ContainerFormat


_SIGNATURES: tuple[_Signature, ...] = (
    _Signature(MZ_MAGIC, ContainerFormat.PE),
    _Signature(ELF_MAGIC, ContainerFormat.ELF),
)


def detect(data: bytes) -> Optional[ContainerFormat]:
    """Classify *data* as one of the known container formats.

    Args:
        data: Raw file bytes; only the first four are examined.

    Returns:
        The detected :class:`ContainerFormat`, or ``None`` when the input
        is not recognised.
    """
    for sig in _SIGNATURES:
        if len(data) >= len(sig.magic) and data[:len(sig.magic)] == sig.magic:
            return sig.format

    if len(data) >= 4:
        (magic,) = struct.unpack_from(">I", data, 0)
        if magic in MACHO_MAGICS:
            return ContainerFormat.MACHO

    return None
