#
#  ktool | kswift
#  witness.py
#
#  Value witness tables.
#
#  A value witness table is what the runtime hands generic code so it can copy, move, destroy and inspect values of
#       a type it only knows by layout. Here a table is built from a TypeLayout, its witnesses operate on a
#       ValueMemory, and it can be materialised into the ABI shaped structs from kswift.structs.
#
#  This file is part of ktool. ktool is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#
#  Copyright (c) 0cyn 2022.
#
from enum import IntFlag
from typing import Callable, Dict, Optional, Union

from kswift.exceptions import WitnessContractViolation
from kswift.memory import ValueMemory
from kswift.node import Node
from kswift.printer import print_node
from kswift.structs import (WitnessKind, WitnessRole, WitnessSlot, WITNESS_SLOTS, WITNESS_SLOT_NAMES,
                            REQUIRED_WITNESS_SLOTS, FUNCTION_WITNESS_SLOTS, RequiredValueWitnesses,
                            AllValueWitnesses, ValueBuffer)
from kswift.util import opts

from lib0cyn.log import log
from lib0cyn.structs import Struct

__all__ = ['WitnessKind', 'WitnessRole', 'WitnessSlot', 'WITNESS_SLOTS', 'WITNESS_SLOT_NAMES',
           'REQUIRED_WITNESS_SLOTS', 'FUNCTION_WITNESS_SLOTS', 'ValueWitnessFlags', 'MAX_EXTRA_INHABITANTS',
           'TypeLayout', 'ValueWitnessTable', 'get_enum_tag_counts', 'load_value_witnesses']


class ValueWitnessFlags(IntFlag):
    ALIGNMENT_MASK = 0xFF
    IS_NON_POD = 0x10000
    IS_NON_INLINE = 0x20000
    HAS_SPARE_BITS = 0x80000
    IS_NON_BITWISE_TAKABLE = 0x100000
    HAS_ENUM_WITNESSES = 0x200000
    INCOMPLETE = 0x400000


MAX_EXTRA_INHABITANTS = 0x7FFFFFFF


def _round_up(value, alignment):
    return (value + alignment - 1) & ~(alignment - 1)


class TypeLayout:
    """
    Size, alignment and semantic properties of a type, which is everything needed to derive its value witnesses.

    `on_copy(memory, dest, src)` and `on_destroy(memory, address)` are called whenever a value is copied / destroyed
        (after the bytes are copied, before the memory is marked uninitialized). They model the retain/release
        work a non-POD type does.

    `enum_case_count` marks the layout as a no-payload enum with that many cases; such layouts get the enum witnesses.
    """

    def __init__(self, size: int, alignment: int, extra_inhabitant_count=0, is_pod=True, is_bitwise_takable=True,
                 enum_case_count: Optional[int] = None, has_spare_bits=False,
                 on_copy: Callable = None, on_destroy: Callable = None, pointer_size: int = None):
        self.size = size
        self.alignment = alignment
        self.extra_inhabitant_count = extra_inhabitant_count
        self.is_pod = is_pod
        self.is_bitwise_takable = is_bitwise_takable
        self.enum_case_count = enum_case_count
        self.has_spare_bits = has_spare_bits
        self.on_copy = on_copy
        self.on_destroy = on_destroy
        self.pointer_size = pointer_size if pointer_size is not None else opts.POINTER_SIZE

        self._validate()

    def _validate(self):
        problem = None
        if self.size < 0:
            problem = f'negative size {self.size}'
        elif self.alignment <= 0 or self.alignment & (self.alignment - 1) != 0:
            problem = f'alignment {self.alignment} is not a power of two'
        elif self.alignment - 1 > ValueWitnessFlags.ALIGNMENT_MASK:
            problem = f'alignment {self.alignment} does not fit the alignment mask'
        elif self.extra_inhabitant_count < 0 or self.extra_inhabitant_count > MAX_EXTRA_INHABITANTS:
            problem = f'extra inhabitant count {self.extra_inhabitant_count} out of range'
        elif self.size == 0 and self.extra_inhabitant_count != 0:
            problem = 'zero sized types have no extra inhabitants'
        elif self.size and self.extra_inhabitant_count >= 1 << (self.size * 8):
            problem = f'{self.extra_inhabitant_count} extra inhabitants do not fit in {self.size} bytes'
        elif self.enum_case_count is not None:
            if self.enum_case_count < 0:
                problem = f'negative case count {self.enum_case_count}'
            elif self.enum_case_count > 1 << (self.size * 8):
                problem = f'{self.enum_case_count} cases do not fit in {self.size} bytes'
        if problem:
            log.debug(f'Invalid type layout: {problem}')
            raise ValueError(f'Invalid type layout: {problem}')

    @classmethod
    def struct_of(cls, *fields: 'TypeLayout', pointer_size=None):
        """
        Layout of a struct with the given stored properties, in declaration order.

        Each field is placed at the next offset satisfying its alignment. The struct inherits the extra inhabitants
            of the field that has the most of them.
        """
        offset = 0
        alignment = 1
        for field in fields:
            offset = _round_up(offset, field.alignment) + field.size
            alignment = max(alignment, field.alignment)
        return cls(offset, alignment,
                   extra_inhabitant_count=max([f.extra_inhabitant_count for f in fields], default=0),
                   is_pod=all(f.is_pod for f in fields),
                   is_bitwise_takable=all(f.is_bitwise_takable for f in fields),
                   has_spare_bits=any(f.has_spare_bits for f in fields),
                   pointer_size=pointer_size)

    @classmethod
    def no_payload_enum(cls, case_count: int, pointer_size=None):
        """
        Layout of an enum whose cases carry no payload. The tag is the whole value.
        """
        if case_count <= 1:
            size = 0
        elif case_count <= 0x100:
            size = 1
        elif case_count <= 0x10000:
            size = 2
        else:
            size = 4
        xi = min((1 << (size * 8)) - case_count, MAX_EXTRA_INHABITANTS) if size else 0
        return cls(size, max(size, 1), extra_inhabitant_count=xi, enum_case_count=case_count,
                   pointer_size=pointer_size)

    @classmethod
    def from_witnesses(cls, witnesses: Struct, pointer_size=None):
        """
        Recover a layout from a loaded RequiredValueWitnesses / AllValueWitnesses struct.

        The case count of an enum isn't recorded in the table, so it is left unset.
        """
        flags = witnesses.flags
        return cls(witnesses.size, (flags & ValueWitnessFlags.ALIGNMENT_MASK) + 1,
                   extra_inhabitant_count=witnesses.extraInhabitantCount,
                   is_pod=not flags & ValueWitnessFlags.IS_NON_POD,
                   is_bitwise_takable=not flags & ValueWitnessFlags.IS_NON_BITWISE_TAKABLE,
                   has_spare_bits=bool(flags & ValueWitnessFlags.HAS_SPARE_BITS),
                   pointer_size=pointer_size if pointer_size is not None else witnesses.ptr_size)

    @property
    def stride(self) -> int:
        return max(1, _round_up(self.size, self.alignment))

    @property
    def is_enum(self) -> bool:
        return self.enum_case_count is not None

    @property
    def is_inline(self) -> bool:
        return (self.is_bitwise_takable
                and self.size <= opts.VALUE_BUFFER_WORDS * self.pointer_size
                and self.alignment <= self.pointer_size)

    @property
    def flags(self) -> int:
        flags = (self.alignment - 1) & ValueWitnessFlags.ALIGNMENT_MASK
        if not self.is_pod:
            flags |= ValueWitnessFlags.IS_NON_POD
        if not self.is_inline:
            flags |= ValueWitnessFlags.IS_NON_INLINE
        if self.has_spare_bits:
            flags |= ValueWitnessFlags.HAS_SPARE_BITS
        if not self.is_bitwise_takable:
            flags |= ValueWitnessFlags.IS_NON_BITWISE_TAKABLE
        if self.is_enum:
            flags |= ValueWitnessFlags.HAS_ENUM_WITNESSES
        return int(flags)

    def __repr__(self):
        return (f'TypeLayout(size={self.size}, alignment={self.alignment}, stride={self.stride}, '
                f'extra_inhabitants={self.extra_inhabitant_count}, flags={hex(self.flags)})')


def get_enum_tag_counts(size: int, empty_cases: int, payload_cases: int):
    """
    Number of tags and tag bytes needed to encode `empty_cases` in a value of `size` bytes next to `payload_cases`.

    :return: (num_tags, num_tag_bytes)
    """
    num_tags = payload_cases
    if empty_cases > 0:
        if size >= 4:
            num_tags += 1
        else:
            bits = size * 8
            cases_per_tag_value = 1 << bits
            num_tags += (empty_cases + cases_per_tag_value - 1) >> bits

    if num_tags <= 1:
        num_tag_bytes = 0
    elif num_tags < 0x100:
        num_tag_bytes = 1
    elif num_tags < 0x10000:
        num_tag_bytes = 2
    else:
        num_tag_bytes = 4
    return num_tags, num_tag_bytes


def _violation(slot: str, message: str):
    log.debug(f'{slot}: {message}')
    return WitnessContractViolation(slot, message)


def _require_initialized(slot, memory: ValueMemory, address, what='value'):
    if not memory.is_initialized(address):
        raise _violation(slot, f'{what} at {hex(address)} is not initialized')


def _require_uninitialized(slot, memory: ValueMemory, address, what='value'):
    if memory.is_initialized(address):
        raise _violation(slot, f'{what} at {hex(address)} is already initialized')


def _copy_value(table: 'ValueWitnessTable', dest, src):
    layout = table.layout
    table.memory.copy(dest, src, layout.size)
    if layout.on_copy:
        layout.on_copy(table.memory, dest, src)


def _destroy_value(table: 'ValueWitnessTable', address):
    if table.layout.on_destroy:
        table.layout.on_destroy(table.memory, address)


def _move_value(table: 'ValueWitnessTable', dest, src):
    if table.layout.is_bitwise_takable:
        table.memory.copy(dest, src, table.layout.size)
    else:
        _copy_value(table, dest, src)
        _destroy_value(table, src)


# Required witnesses

def initialize_buffer_with_copy_of_buffer(dest: int, src: int, metadata: 'ValueWitnessTable'):
    slot = 'initializeBufferWithCopyOfBuffer'
    memory = metadata.memory
    _require_uninitialized(slot, memory, dest, 'dest buffer')
    src_value = metadata.project_buffer(src)
    _require_initialized(slot, memory, src_value, 'src value')

    dest_value = metadata.allocate_buffer(dest)
    _copy_value(metadata, dest_value, src_value)
    memory.mark_initialized(dest)
    memory.mark_initialized(dest_value)
    return dest_value


def destroy(value: int, metadata: 'ValueWitnessTable'):
    _require_initialized('destroy', metadata.memory, value)
    _destroy_value(metadata, value)
    metadata.memory.mark_uninitialized(value)


def initialize_with_copy(dest: int, src: int, metadata: 'ValueWitnessTable'):
    slot = 'initializeWithCopy'
    _require_uninitialized(slot, metadata.memory, dest, 'dest')
    _require_initialized(slot, metadata.memory, src, 'src')
    _copy_value(metadata, dest, src)
    metadata.memory.mark_initialized(dest)
    return dest


def assign_with_copy(dest: int, src: int, metadata: 'ValueWitnessTable'):
    slot = 'assignWithCopy'
    _require_initialized(slot, metadata.memory, dest, 'dest')
    _require_initialized(slot, metadata.memory, src, 'src')
    if dest == src:
        return dest
    _destroy_value(metadata, dest)
    _copy_value(metadata, dest, src)
    return dest


def initialize_with_take(dest: int, src: int, metadata: 'ValueWitnessTable'):
    slot = 'initializeWithTake'
    _require_uninitialized(slot, metadata.memory, dest, 'dest')
    _require_initialized(slot, metadata.memory, src, 'src')
    _move_value(metadata, dest, src)
    metadata.memory.mark_uninitialized(src)
    metadata.memory.mark_initialized(dest)
    return dest


def assign_with_take(dest: int, src: int, metadata: 'ValueWitnessTable'):
    slot = 'assignWithTake'
    if dest == src:
        raise _violation(slot, 'dest and src must be distinct')
    _require_initialized(slot, metadata.memory, dest, 'dest')
    _require_initialized(slot, metadata.memory, src, 'src')
    _destroy_value(metadata, dest)
    _move_value(metadata, dest, src)
    metadata.memory.mark_uninitialized(src)
    return dest


def _load_extra_inhabitant_tag(table: 'ValueWitnessTable', value):
    size = table.layout.size
    first = (1 << (size * 8)) - table.layout.extra_inhabitant_count
    payload = table.memory.read_int(value, size)
    if payload >= first:
        return payload - first + 1
    return 0


def _store_extra_inhabitant_tag(table: 'ValueWitnessTable', value, tag):
    size = table.layout.size
    first = (1 << (size * 8)) - table.layout.extra_inhabitant_count
    table.memory.write_int(value, first + tag - 1, size)


def get_enum_tag_single_payload(value: int, empty_cases: int, metadata: 'ValueWitnessTable'):
    """
    Case of an Optional-like enum wrapping this type: 0 for the payload case, 1...empty_cases for the others.

    Empty cases use the payload's extra inhabitants first. The remaining ones are encoded by a nonzero tag in the
        extra tag bytes following the payload, with the case index in the payload bytes.
    """
    memory = metadata.memory
    _require_initialized('getEnumTagSinglePayload', memory, value)
    size = metadata.layout.size
    xi = metadata.layout.extra_inhabitant_count

    if empty_cases > xi:
        _, tag_bytes = get_enum_tag_counts(size, empty_cases - xi, 1)
        extra_tag = memory.read_int(value + size, tag_bytes)
        if extra_tag > 0:
            case_from_tag = 0 if size >= 4 else (extra_tag - 1) << (size * 8)
            case_from_value = memory.read_int(value, min(size, 4))
            return (case_from_tag | case_from_value) + xi + 1

    if xi > 0:
        return _load_extra_inhabitant_tag(metadata, value)
    return 0


def store_enum_tag_single_payload(value: int, which_case: int, empty_cases: int, metadata: 'ValueWitnessTable'):
    slot = 'storeEnumTagSinglePayload'
    memory = metadata.memory
    if which_case > empty_cases:
        raise _violation(slot, f'case {which_case} out of range for {empty_cases} empty cases')
    if which_case == 0:
        _require_initialized(slot, memory, value, 'payload')

    size = metadata.layout.size
    xi = metadata.layout.extra_inhabitant_count
    tag_bytes = get_enum_tag_counts(size, empty_cases - xi, 1)[1] if empty_cases > xi else 0

    if which_case <= xi:
        if tag_bytes:
            memory.write_int(value + size, 0, tag_bytes)
        if which_case:
            _store_extra_inhabitant_tag(metadata, value, which_case)
    else:
        case_index = which_case - 1 - xi
        if size >= 4:
            extra_tag = 1
            payload_index = case_index
        else:
            bits = size * 8
            extra_tag = 1 + (case_index >> bits)
            payload_index = case_index & ((1 << bits) - 1)
        if size:
            memory.fill(value, size)
            memory.write_int(value, payload_index, min(size, 4))
        memory.write_int(value + size, extra_tag, tag_bytes)

    if which_case:
        memory.mark_initialized(value)


# Enum witnesses. Only no-payload enums are modeled, where the value is the tag.

def get_enum_tag(value: int, metadata: 'ValueWitnessTable'):
    _require_initialized('getEnumTag', metadata.memory, value)
    return metadata.memory.read_int(value, metadata.layout.size)


def destructive_project_enum_data(value: int, metadata: 'ValueWitnessTable'):
    _require_initialized('destructiveProjectEnumData', metadata.memory, value)


def destructive_inject_enum_tag(value: int, tag: int, metadata: 'ValueWitnessTable'):
    if tag >= metadata.layout.enum_case_count:
        raise _violation('destructiveInjectEnumTag',
                         f'tag {tag} out of range for {metadata.layout.enum_case_count} cases')
    metadata.memory.write_int(value, tag, metadata.layout.size)
    metadata.memory.mark_initialized(value)


_WITNESS_IMPLEMENTATIONS = {
    'initializeBufferWithCopyOfBuffer': initialize_buffer_with_copy_of_buffer,
    'destroy': destroy,
    'initializeWithCopy': initialize_with_copy,
    'assignWithCopy': assign_with_copy,
    'initializeWithTake': initialize_with_take,
    'assignWithTake': assign_with_take,
    'getEnumTagSinglePayload': get_enum_tag_single_payload,
    'storeEnumTagSinglePayload': store_enum_tag_single_payload,
    'getEnumTag': get_enum_tag,
    'destructiveProjectEnumData': destructive_project_enum_data,
    'destructiveInjectEnumTag': destructive_inject_enum_tag,
}

_DATA_ATTRIBUTES = {
    'size': 'size',
    'stride': 'stride',
    'flags': 'flags',
    'extraInhabitantCount': 'extra_inhabitant_count',
}


class ValueWitnessTable:
    """
    Value witnesses of one type layout, bound to the memory its values live in.

    Function witnesses are called as `fn(*args, metadata)`, with the table itself standing in for the type metadata.
        `invoke` calls them through the handle they were materialised at, the way runtime code calls through the
        function pointers of a real table.
    """

    def __init__(self, layout: TypeLayout, memory: ValueMemory, witnesses: Dict[str, Callable],
                 data: Dict[str, int], type_node: Node = None):
        self.layout = layout
        self.memory = memory
        self.type_node = type_node
        self._witnesses = witnesses
        self._data = data

    @classmethod
    def build(cls, layout: TypeLayout, memory: ValueMemory, type_node: Node = None):
        if layout.pointer_size != memory.pointer_size:
            raise ValueError(f'Layout uses {layout.pointer_size} byte pointers, memory uses {memory.pointer_size}')

        witnesses = {}
        data = {}
        for slot in WITNESS_SLOTS:
            if slot.kind == WitnessKind.DATA:
                data[slot.name] = getattr(layout, _DATA_ATTRIBUTES[slot.name])
            elif slot.required or layout.is_enum:
                witnesses[slot.name] = _WITNESS_IMPLEMENTATIONS[slot.name]

        table = cls(layout, memory, witnesses, data, type_node)
        log.debug(f'Built value witness table for {table.name}: {layout}')
        return table

    @property
    def name(self) -> str:
        if self.type_node is None:
            return '<opaque type>'
        return print_node(self.type_node)

    @property
    def size(self):
        return self._data['size']

    @property
    def stride(self):
        return self._data['stride']

    @property
    def flags(self):
        return self._data['flags']

    @property
    def extra_inhabitant_count(self):
        return self._data['extraInhabitantCount']

    @property
    def has_enum_witnesses(self) -> bool:
        return bool(self.flags & ValueWitnessFlags.HAS_ENUM_WITNESSES)

    @staticmethod
    def _slot(slot: Union[str, int, WitnessSlot]) -> WitnessSlot:
        if isinstance(slot, WitnessSlot):
            return slot
        if isinstance(slot, int):
            return WITNESS_SLOTS[slot]
        return WITNESS_SLOT_NAMES[slot]

    def __contains__(self, slot):
        slot = self._slot(slot)
        return slot.name in self._witnesses or slot.name in self._data

    def __getitem__(self, slot):
        """
        Witness function or data value of a slot.
        """
        slot = self._slot(slot)
        if slot.kind == WitnessKind.DATA:
            return self._data[slot.name]
        try:
            return self._witnesses[slot.name]
        except KeyError:
            raise _violation(slot.name, f'{self.name} has no enum witnesses') from None

    def handle(self, slot) -> int:
        slot = self._slot(slot)
        if slot.kind != WitnessKind.FUNCTION:
            raise KeyError(f'{slot.name} is a data slot')
        return self.memory.functions.register(self[slot])

    def invoke(self, slot, *args):
        slot = self._slot(slot)
        fn = self.memory.functions.resolve(self.handle(slot))
        log.debug_more(f'{self.name}.{slot.name}{args}')
        return fn(*args, self)

    def _materialise(self, struct_class, slots):
        values = []
        for slot in slots:
            if slot.kind == WitnessKind.FUNCTION:
                # enum witnesses a layout lacks stay null
                values.append(self.handle(slot) if slot.name in self._witnesses else 0)
            else:
                values.append(self._data[slot.name])
        return Struct.create_with_values(struct_class, values, self.memory.byte_order, self.memory.pointer_size)

    def required(self) -> RequiredValueWitnesses:
        return self._materialise(RequiredValueWitnesses, REQUIRED_WITNESS_SLOTS)

    def all(self) -> AllValueWitnesses:
        return self._materialise(AllValueWitnesses, WITNESS_SLOTS)

    # Buffers

    def new_value(self, extra_bytes=0) -> int:
        """
        Allocate uninitialized storage for one value (plus `extra_bytes`, e.g. enum tag bytes).
        """
        return self.memory.allocate(self.layout.size + extra_bytes, self.layout.alignment)

    def new_buffer(self) -> int:
        size = ValueBuffer.size(self.memory.pointer_size)
        address = self.memory.allocate(size, self.memory.pointer_size)
        self.memory.fill(address, size)
        return address

    def single_payload_enum_size(self, empty_cases: int) -> int:
        """
        Bytes an enum with this type as its single payload and `empty_cases` other cases occupies.
        """
        xi = self.layout.extra_inhabitant_count
        if empty_cases <= xi:
            return self.layout.size
        return self.layout.size + get_enum_tag_counts(self.layout.size, empty_cases - xi, 1)[1]

    def allocate_buffer(self, buffer: int) -> int:
        """
        Make room for a value in `buffer`, returning the address the value should be initialized at.

        Inline values live in the buffer itself. Otherwise a box is allocated and its address stored in the first
            word of the buffer.
        """
        if self.layout.is_inline:
            return buffer
        box = self.memory.allocate(self.layout.size, self.layout.alignment)
        self.memory.write_pointer(buffer, box)
        return box

    def project_buffer(self, buffer: int) -> int:
        if self.layout.is_inline:
            return buffer
        box = self.memory.read_pointer(buffer)
        if box == 0:
            raise _violation('projectBuffer', f'buffer at {hex(buffer)} holds no value')
        return box

    def deallocate_buffer(self, buffer: int):
        value = self.project_buffer(buffer)
        _require_uninitialized('deallocateBuffer', self.memory, value, 'buffer value')
        if not self.layout.is_inline:
            self.memory.deallocate(value)
            self.memory.write_pointer(buffer, 0)
        self.memory.mark_uninitialized(buffer)

    def __repr__(self):
        return f'<ValueWitnessTable {self.name} {self.layout}>'


def load_value_witnesses(raw, ptr_size=8, byte_order='little'):
    """
    Unpack a value witness table from raw bytes.

    The enum witnesses are only read when the flags word says they are present.

    :param raw: bytes starting at the table
    :param ptr_size: pointer size of the image the table came from
    :param byte_order:
    :return: RequiredValueWitnesses or AllValueWitnesses
    """
    witnesses = Struct.create_with_bytes(RequiredValueWitnesses, raw, byte_order, ptr_size)
    if witnesses.flags & ValueWitnessFlags.HAS_ENUM_WITNESSES:
        witnesses = Struct.create_with_bytes(AllValueWitnesses, raw, byte_order, ptr_size)
    log.debug(f'Loaded value witnesses: {witnesses}')
    return witnesses
