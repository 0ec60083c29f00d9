#
#  ktool | tests
#  memory_tests.py
#
#  Value memory and function handles
#
#  This file is part of ktool. ktool is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#
#  Copyright (c) 0cyn 2022.
#
import os
import sys
import unittest

scriptdir = os.path.dirname(os.path.realpath(__file__))
sys.path.extend([f'{scriptdir}/../src'])

from kswift.exceptions import MemoryAccessError
from kswift.memory import ValueMemory, FunctionTable

from lib0cyn.log import log, LogLevel

log.LOG_LEVEL = LogLevel.NONE


class ValueMemoryTestCase(unittest.TestCase):
    def test_page_size(self):
        with self.assertRaises(ValueError):
            ValueMemory(page_size=3000)
        self.assertEqual(ValueMemory(page_size=0x1000).page_size_bits, 12)

    def test_null_is_unmapped(self):
        memory = ValueMemory()
        self.assertFalse(memory.is_mapped(0))
        with self.assertRaises(MemoryAccessError) as ctx:
            memory.read_pointer(0)
        self.assertEqual(ctx.exception.address, 0)

    def test_allocate(self):
        memory = ValueMemory()
        first = memory.allocate(3)
        second = memory.allocate(8, 8)
        self.assertNotEqual(first, 0)
        self.assertEqual(second % 8, 0)
        self.assertGreaterEqual(second, first + 3)
        self.assertTrue(memory.is_mapped(second))
        self.assertEqual(memory.allocations[second], 8)

        empty = memory.allocate(0)
        self.assertNotEqual(memory.allocate(0), empty)

        with self.assertRaises(ValueError):
            memory.allocate(8, 6)

    def test_deallocate(self):
        memory = ValueMemory()
        address = memory.allocate(8)
        memory.mark_initialized(address)
        memory.deallocate(address)
        self.assertNotIn(address, memory.allocations)
        self.assertFalse(memory.is_initialized(address))

        with self.assertRaises(MemoryAccessError):
            memory.deallocate(address)

    def test_read_write(self):
        memory = ValueMemory()
        address = memory.allocate(16)
        memory.write(address, b'\x01\x02\x03')
        self.assertEqual(memory.read(address, 4), b'\x01\x02\x03\x00')

        memory.write_int(address, -1, 4, signed=True)
        self.assertEqual(memory.read_int(address, 4), 0xffffffff)
        self.assertEqual(memory.read_int(address, 4, signed=True), -1)

        # unsigned writes are truncated to the field
        memory.write_int(address, 0x1ff, 1)
        self.assertEqual(memory.read_int(address, 1), 0xff)

        memory.write_pointer(address + 8, 0xdeadbeef)
        self.assertEqual(memory.read_pointer(address + 8), 0xdeadbeef)
        self.assertEqual(memory.read(address + 8, 4), b'\xef\xbe\xad\xde')

    def test_page_spanning(self):
        memory = ValueMemory(page_size=0x1000)
        memory.allocate(0x1000 - 4)
        address = memory.allocate(8)
        self.assertNotEqual(address >> 12, (address + 7) >> 12)

        memory.write_int(address, 0x1122334455667788, 8)
        self.assertEqual(memory.read_int(address, 8), 0x1122334455667788)

    def test_copy_and_fill(self):
        memory = ValueMemory()
        src = memory.allocate(4)
        dest = memory.allocate(4)
        memory.write(src, b'abcd')
        memory.copy(dest, src, 4)
        self.assertEqual(memory.read(dest, 4), b'abcd')

        memory.fill(dest, 4, 0x41)
        self.assertEqual(memory.read(dest, 4), b'AAAA')
        memory.fill(dest, 2)
        self.assertEqual(memory.read(dest, 4), b'\x00\x00AA')

    def test_initialization_marks(self):
        memory = ValueMemory()
        address = memory.allocate(4)
        self.assertFalse(memory.is_initialized(address))
        memory.mark_initialized(address)
        self.assertTrue(memory.is_initialized(address))
        memory.mark_uninitialized(address)
        self.assertFalse(memory.is_initialized(address))


class FunctionTableTestCase(unittest.TestCase):
    def test_register(self):
        table = FunctionTable(base=0x1000, stride=8)

        def first():
            return 1

        def second():
            return 2

        handle = table.register(first)
        self.assertEqual(handle, 0x1000)
        self.assertEqual(table.register(second), 0x1008)
        self.assertEqual(table.register(first), handle)
        self.assertEqual(len(table), 2)
        self.assertIn(handle, table)
        self.assertEqual(table.resolve(handle)(), 1)

        with self.assertRaises(MemoryAccessError):
            table.resolve(0)

    def test_memory_stride(self):
        memory = ValueMemory(pointer_size=4)
        self.assertEqual(memory.functions.stride, 4)


if __name__ == '__main__':
    unittest.main()
