"""
Xray Decode Errors
===================

Typed failures raised by the format decoders.  Every error carries a short
machine-friendly ``kind`` tag so that report consumers can map failures to
exit codes or JSON fields without parsing messages.

An unrecognised container is deliberately *not* an exception here: the
format detector simply returns ``None`` and the engine reports the input as
unrecognised.
"""

from __future__ import annotations


class ParseError(Exception):
    """Base class for every fatal decode failure."""

    kind: str = "parse_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class TruncatedHeader(ParseError):
    """A fixed-position header field lies beyond the end of the buffer."""

    kind = "truncated_header"


class InvalidSignature(ParseError):
    """A required magic number or signature field does not match."""

    kind = "invalid_signature"


class OutOfBounds(ParseError):
    """A computed ``offset + width`` range exceeds the buffer length."""

    kind = "out_of_bounds"

    def __init__(self, offset: int, width: int, limit: int, what: str = "read") -> None:
        super().__init__(
            f"{what} of {width} byte(s) at offset 0x{offset:x} "
            f"exceeds buffer length 0x{limit:x}"
        )
        self.offset = offset
        self.width = width
        self.limit = limit


class UnmappedAddress(ParseError):
    """No section contains the requested relative virtual address."""

    kind = "unmapped_address"

    def __init__(self, rva: int) -> None:
        super().__init__(f"RVA 0x{rva:x} is not mapped by any section")
        self.rva = rva


class InvalidStringTableIndex(ParseError):
    """A string-table section index is outside the decoded section list."""

    kind = "invalid_string_table_index"

    def __init__(self, index: int, count: int) -> None:
        super().__init__(
            f"string table index {index} out of range for {count} section(s)"
        )
        self.index = index
        self.count = count
