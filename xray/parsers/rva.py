"""
RVA to File Offset Translation
===============================

PE images are laid out differently on disk than in memory, so any relative
virtual address (RVA) taken from a header must be translated through the
section table before it can be used as a file offset.

Overlapping sections are resolved by table order: the first section whose
``[virtual_address, virtual_address + size)`` range contains the address
wins, regardless of section size.
"""

from __future__ import annotations

from typing import Optional, Sequence

from xray.core.errors import UnmappedAddress
from xray.core.models import SectionDescriptor


def resolve(rva: int, sections: Sequence[SectionDescriptor]) -> int:
    """Translate *rva* into a file offset.

    Args:
        rva: Relative virtual address to translate.
        sections: Section table in on-disk order.  ``size`` is the raw
            (on-disk) size and ``offset`` the raw data pointer.

    Returns:
        ``offset + (rva - virtual_address)`` of the first containing section.

    Raises:
        UnmappedAddress: if no section contains *rva*.
    """
    return resolve_extent(rva, sections)[0]


def resolve_extent(rva: int, sections: Sequence[SectionDescriptor]) -> tuple[int, int]:
    """Translate *rva* and return ``(offset, end)``.

    *end* is the file offset just past the raw data of the section that
    maps *rva*, so tables read from *offset* can be kept inside it.
    """
    for sec in sections:
        if sec.virtual_address <= rva < sec.virtual_address + sec.size:
            return sec.offset + (rva - sec.virtual_address), sec.offset + sec.size
    raise UnmappedAddress(rva)


def try_resolve(rva: int, sections: Sequence[SectionDescriptor]) -> Optional[int]:
    """Like :func:`resolve` but return ``None`` for an unmapped address."""
    try:
        return resolve(rva, sections)
    except UnmappedAddress:
        return None
