"""
Xray Format Decoders
=====================

Detection and dispatch.  :func:`decode` classifies a buffer once and hands
it to the decoder registered for that format.
"""

from __future__ import annotations

from typing import Optional

from xray.core.models import ContainerFormat, ParseReport
from xray.parsers.base import BinaryDecoder
from xray.parsers.detector import detect
from xray.parsers.elf_parser import ELFDecoder
from xray.parsers.macho_parser import MachODecoder
from xray.parsers.pe_parser import PEDecoder

DECODERS: dict[ContainerFormat, BinaryDecoder] = {
    ContainerFormat.ELF: ELFDecoder(),
    ContainerFormat.PE: PEDecoder(),
    ContainerFormat.MACHO: MachODecoder(),
}


def decoder_for(fmt: ContainerFormat) -> BinaryDecoder:
    """Return the decoder registered for *fmt*."""
    return DECODERS[fmt]


def decode(data: bytes, source: str = "<memory>") -> Optional[ParseReport]:
    """Detect the container format of *data* and decode it.

    Returns:
        The :class:`ParseReport`, or ``None`` if the format is unrecognised.

    Raises:
        xray.core.errors.ParseError: if a recognised image is malformed.
    """
    fmt = detect(data)
    if fmt is None:
        return None
    return decoder_for(fmt).decode(data, source)


__all__ = [
    "BinaryDecoder",
    "DECODERS",
    "ELFDecoder",
    "MachODecoder",
    "PEDecoder",
    "decode",
    "decoder_for",
    "detect",
]
