"""Tests for RVA to file offset translation."""

import unittest

from xray.core.errors import UnmappedAddress
from xray.core.models import SectionDescriptor
from xray.parsers.rva import resolve, resolve_extent, try_resolve


def _section(va, ptr, size, index=0):
    return SectionDescriptor(index=index, virtual_address=va, offset=ptr, size=size)


class TestResolve(unittest.TestCase):

    def setUp(self):
        self.sections = [_section(0x1000, 0x400, 0x200)]

    def test_address_inside_section(self):
        self.assertEqual(resolve(0x1050, self.sections), 0x450)
        self.assertEqual(resolve(0x1000, self.sections), 0x400)

    def test_upper_bound_is_exclusive(self):
        self.assertEqual(resolve(0x1199, self.sections), 0x599)
        with self.assertRaises(UnmappedAddress) as ctx:
            resolve(0x1200, self.sections)
        self.assertEqual(ctx.exception.rva, 0x1200)

    def test_below_first_section(self):
        with self.assertRaises(UnmappedAddress):
            resolve(0xFFF, self.sections)

    def test_first_section_in_table_order_wins(self):
        sections = [
            _section(0x1000, 0x400, 0x100, index=0),
            _section(0x1000, 0x800, 0x1000, index=1),
        ]
        self.assertEqual(resolve(0x1010, sections), 0x410)
        self.assertEqual(resolve(0x1200, sections), 0xA00)

    def test_empty_section_list(self):
        with self.assertRaises(UnmappedAddress):
            resolve(0, [])

    def test_extent_ends_at_section_raw_data(self):
        self.assertEqual(resolve_extent(0x1050, self.sections), (0x450, 0x600))
        with self.assertRaises(UnmappedAddress):
            resolve_extent(0x1200, self.sections)

    def test_try_resolve(self):
        self.assertEqual(try_resolve(0x1050, self.sections), 0x450)
        self.assertIsNone(try_resolve(0x5000, self.sections))


if __name__ == "__main__":
    unittest.main()
