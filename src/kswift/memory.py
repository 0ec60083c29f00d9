#
#  ktool | kswift
#  memory.py
#
#  Addressable value memory the value witnesses operate on.
#
#  Addresses are translated through a page table (page number -> backing bytearray), the same way ktool's VM
#       translates virtual addresses of a mapped image. Page zero is never mapped, so a null pointer always faults.
#
#  This file is part of ktool. ktool is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#
#  Copyright (c) 0cyn 2022.
#
from typing import Callable, Dict

from kswift.exceptions import MemoryAccessError

from lib0cyn.log import log


class FunctionTable:
    """
    Hands out non-null integer handles for python callables, so they can be stored in pointer sized table fields
        and called back through them.

    Registering the same callable twice returns the same handle.
    """

    def __init__(self, base=0x1000, stride=8):
        self.base = base
        self.stride = stride
        self._functions: Dict[int, Callable] = {}
        self._handles: Dict[Callable, int] = {}

    def __len__(self):
        return len(self._functions)

    def __contains__(self, handle):
        return handle in self._functions

    def register(self, fn: Callable) -> int:
        if fn in self._handles:
            return self._handles[fn]
        handle = self.base + len(self._functions) * self.stride
        self._functions[handle] = fn
        self._handles[fn] = handle
        log.debug_tm(f'Registered function {getattr(fn, "__name__", fn)} at {hex(handle)}')
        return handle

    def resolve(self, handle: int) -> Callable:
        try:
            return self._functions[handle]
        except KeyError:
            log.debug(f'Call through unregistered function handle {hex(handle)}')
            raise MemoryAccessError(handle, "No function registered at")


class ValueMemory:
    """
    Page mapped little endian address space with a bump allocator.

    Besides raw bytes, the memory tracks which value addresses currently hold an initialized value. The value
        witnesses use this to enforce their preconditions (e.g. `initializeWithCopy` needs an uninitialized dest).
    """

    def __init__(self, page_size=0x4000, pointer_size=8):
        if page_size <= 0 or page_size & (page_size - 1) != 0:
            raise ValueError(f'Page size {hex(page_size)} is not a power of two')
        self.page_size = page_size
        self.page_size_bits = (self.page_size - 1).bit_length()
        self.pointer_size = pointer_size
        self.byte_order = 'little'

        self.page_table: Dict[int, bytearray] = {}
        self.allocations: Dict[int, int] = {}
        self.functions = FunctionTable(stride=pointer_size)

        self._cursor = page_size
        self._initialized = set()

    def _map(self, address, size):
        if size == 0:
            return
        first = address >> self.page_size_bits
        last = (address + size - 1) >> self.page_size_bits
        for page in range(first, last + 1):
            if page not in self.page_table:
                self.page_table[page] = bytearray(self.page_size)

    def _page(self, address):
        try:
            return self.page_table[address >> self.page_size_bits]
        except KeyError:
            log.debug(f'Access to unmapped address {hex(address)}')
            raise MemoryAccessError(address)

    def is_mapped(self, address) -> bool:
        return address >> self.page_size_bits in self.page_table

    def allocate(self, size: int, alignment=1) -> int:
        if alignment <= 0 or alignment & (alignment - 1) != 0:
            raise ValueError(f'Alignment {alignment} is not a power of two')
        address = (self._cursor + alignment - 1) & ~(alignment - 1)
        # zero sized allocations still get a unique address
        self._cursor = address + max(size, 1)
        self._map(address, size)
        self.allocations[address] = size
        log.debug_tm(f'Allocated {size} bytes at {hex(address)}')
        return address

    def deallocate(self, address: int):
        if address not in self.allocations:
            log.debug(f'Tried to free {hex(address)}, which was never allocated')
            raise MemoryAccessError(address, "Freeing unallocated address")
        del self.allocations[address]
        self._initialized.discard(address)
        log.debug_tm(f'Freed {hex(address)}')

    def read(self, address: int, size: int) -> bytes:
        data = bytearray()
        while size > 0:
            page = self._page(address)
            offset = address & self.page_size - 1
            count = min(size, self.page_size - offset)
            data += page[offset:offset + count]
            address += count
            size -= count
        return bytes(data)

    def write(self, address: int, data):
        data = bytes(data)
        while data:
            page = self._page(address)
            offset = address & self.page_size - 1
            count = min(len(data), self.page_size - offset)
            page[offset:offset + count] = data[:count]
            address += count
            data = data[count:]

    def read_int(self, address: int, size: int, signed=False) -> int:
        return int.from_bytes(self.read(address, size), self.byte_order, signed=signed)

    def write_int(self, address: int, value: int, size: int, signed=False):
        if not signed:
            value &= (1 << (size * 8)) - 1
        self.write(address, value.to_bytes(size, self.byte_order, signed=signed))

    def read_pointer(self, address: int) -> int:
        return self.read_int(address, self.pointer_size)

    def write_pointer(self, address: int, value: int):
        self.write_int(address, value, self.pointer_size)

    def copy(self, dest: int, src: int, size: int):
        self.write(dest, self.read(src, size))

    def fill(self, address: int, size: int, byte=0):
        self.write(address, bytes([byte]) * size)

    def mark_initialized(self, address: int):
        self._initialized.add(address)

    def mark_uninitialized(self, address: int):
        self._initialized.discard(address)

    def is_initialized(self, address: int) -> bool:
        return address in self._initialized
