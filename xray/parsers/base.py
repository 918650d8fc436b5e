"""
Decoder Capability
===================

Every container format is decoded by a :class:`BinaryDecoder` subclass.
Decoders are stateless: all working state lives in local variables of a
single :meth:`BinaryDecoder.decode` call and is discarded when it returns.
"""

from __future__ import annotations

import abc
from typing import ClassVar

from xray.core.models import ContainerFormat, ParseReport


class BinaryDecoder(abc.ABC):
    """Turns a raw image into a :class:`ParseReport` or raises a ParseError."""

    format: ClassVar[ContainerFormat]

    @abc.abstractmethod
    def decode(self, data: bytes, source: str = "<memory>") -> ParseReport:
        """Decode *data* completely.

        Args:
            data: The full, immutable image contents.
            source: Display label copied into the report.

        Raises:
            xray.core.errors.ParseError: on any fatal header or table error.
        """
