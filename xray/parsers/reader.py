"""
Bounds-Checked Byte Reader
===========================

Primitive reads shared by every decoder.  A :class:`ByteReader` is an
immutable view over the raw image plus a byte order; it never returns a
default value for a failed read, so a genuine zero field can always be told
apart from a read past the end of the buffer.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass

from xray.core.errors import OutOfBounds


_PREFIX: dict[str, str] = {"little": "<", "big": ">"}


@dataclass(frozen=True, slots=True)
class ByteReader:
    """Endian-aware, bounds-checked reader over an immutable buffer.

    Usage::

        reader = ByteReader(data, "big")
        e_type = reader.u16(16)
        name = reader.cstring(strtab_start + st_name, strtab_end)
    """

    data: bytes
    endianness: str = "little"

    def __post_init__(self) -> None:
        if self.endianness not in _PREFIX:
            raise ValueError(f"unknown endianness: {self.endianness!r}")

    def __len__(self) -> int:
        return len(self.data)

    # ------------------------------------------------------------------ #
    #  Range validation
    # ------------------------------------------------------------------ #

    def contains(self, offset: int, size: int) -> bool:
        """Return ``True`` if ``[offset, offset + size)`` lies in the buffer."""
        return offset >= 0 and size >= 0 and offset + size <= len(self.data)

    def require(self, offset: int, size: int, what: str = "read") -> None:
        """Raise :class:`OutOfBounds` unless the range lies in the buffer."""
        if not self.contains(offset, size):
            raise OutOfBounds(offset, size, len(self.data), what)

    # ------------------------------------------------------------------ #
    #  Fixed-width integers
    # ------------------------------------------------------------------ #

    def unpack(self, fmt: str, offset: int) -> tuple[int, ...]:
        """Unpack a :mod:`struct` layout (without byte-order prefix)."""
        full = _PREFIX[self.endianness] + fmt
        self.require(offset, struct.calcsize(full))
        return struct.unpack_from(full, self.data, offset)

    def u8(self, offset: int) -> int:
        self.require(offset, 1)
        return self.data[offset]

    def u16(self, offset: int) -> int:
        return self.unpack("H", offset)[0]

    def u32(self, offset: int) -> int:
        return self.unpack("I", offset)[0]

    def u64(self, offset: int) -> int:
        return self.unpack("Q", offset)[0]

    def word(self, offset: int, is_64bit: bool) -> int:
        """Read a class-sized word: ``u64`` for 64-bit images, else ``u32``."""
        return self.u64(offset) if is_64bit else self.u32(offset)

    # ------------------------------------------------------------------ #
    #  Byte ranges and strings
    # ------------------------------------------------------------------ #

    def slice(self, offset: int, size: int) -> bytes:
        self.require(offset, size)
        return self.data[offset:offset + size]

    def cstring(self, start: int, end: int | None = None) -> str:
        """Read a NUL-terminated string starting at *start*.

        The scan stops at the first NUL byte or at *end* (default: end of
        buffer), whichever comes first.  Each byte maps to the code point
        of the same value, so no byte is lost.

        Raises:
            OutOfBounds: if *start* is not strictly inside ``[0, end)``.
        """
        limit = len(self.data) if end is None else min(end, len(self.data))
        if start < 0 or start >= limit:
            raise OutOfBounds(start, 1, limit, "string read")
        stop = self.data.find(b"\x00", start, limit)
        if stop == -1:
            stop = limit
        return self.data[start:stop].decode("latin-1")
