"""Tests for the Mach-O identity decoder and format dispatch."""

import struct
import unittest

from xray.core.errors import InvalidSignature, TruncatedHeader
from xray.core.models import ContainerFormat
from xray.parsers import DECODERS, decode, decoder_for
from xray.parsers.macho_parser import MachODecoder

from tests.images import build_elf, build_pe


class TestMachODecoder(unittest.TestCase):

    def test_identity_only_report(self):
        image = struct.pack(">I", 0xFEEDFACF) + bytes(28)
        report = MachODecoder().decode(image, "a.out")
        self.assertEqual(report.format, ContainerFormat.MACHO)
        self.assertFalse(report.complete)
        self.assertEqual(report.header.bits, 64)
        self.assertEqual(report.size, 32)
        self.assertEqual(report.sections, [])
        self.assertEqual(report.imports, [])

    def test_universal_binary(self):
        report = MachODecoder().decode(struct.pack(">II", 0xCAFEBABE, 2))
        self.assertEqual(report.header.file_type, "Universal")
        self.assertEqual(report.header.bits, 0)

    def test_short_and_foreign_input(self):
        with self.assertRaises(TruncatedHeader):
            MachODecoder().decode(b"\xfe\xed")
        with self.assertRaises(InvalidSignature):
            MachODecoder().decode(b"\x7fELF\x02\x01")


class TestDispatch(unittest.TestCase):

    def test_every_format_has_a_decoder(self):
        for fmt in ContainerFormat:
            with self.subTest(fmt=fmt):
                self.assertEqual(decoder_for(fmt).format, fmt)
        self.assertEqual(set(DECODERS), set(ContainerFormat))

    def test_decode_detects_then_invokes(self):
        self.assertEqual(decode(build_elf()).format, ContainerFormat.ELF)
        self.assertEqual(decode(build_pe()).format, ContainerFormat.PE)
        self.assertEqual(decode(struct.pack(">I", 0xFEEDFACE)).format, ContainerFormat.MACHO)

    def test_unrecognized_is_not_an_error(self):
        self.assertIsNone(decode(b"#!/bin/sh\necho hi\n"))
        self.assertIsNone(decode(b""))


if __name__ == "__main__":
    unittest.main()
