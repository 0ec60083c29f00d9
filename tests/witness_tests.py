#
#  ktool | tests
#  witness_tests.py
#
#  Type layouts and value witness tables
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

from kswift.demangle import demangle_type
from kswift.exceptions import WitnessContractViolation, MemoryAccessError
from kswift.memory import ValueMemory
from kswift.structs import RequiredValueWitnesses, AllValueWitnesses, REQUIRED_WITNESS_SLOTS, FUNCTION_WITNESS_SLOTS
from kswift.witness import TypeLayout, ValueWitnessTable, ValueWitnessFlags, get_enum_tag_counts, \
    load_value_witnesses

from lib0cyn.log import log, LogLevel

log.LOG_LEVEL = LogLevel.NONE


def int_layout(**kwargs):
    return TypeLayout(8, 8, **kwargs)


def bool_layout():
    return TypeLayout(1, 1, extra_inhabitant_count=254)


def table_for(layout, type_mangling=None):
    memory = ValueMemory(pointer_size=layout.pointer_size)
    type_node = demangle_type(type_mangling) if type_mangling else None
    return ValueWitnessTable.build(layout, memory, type_node)


def new_int(table, value):
    address = table.new_value()
    table.memory.write_int(address, value, 8)
    table.memory.mark_initialized(address)
    return address


class LifetimeTracker:
    def __init__(self):
        self.copies = []
        self.destroys = []

    def on_copy(self, memory, dest, src):
        self.copies.append((dest, src))

    def on_destroy(self, memory, address):
        self.destroys.append(address)


class TypeLayoutTestCase(unittest.TestCase):
    def test_validation(self):
        for kwargs in (dict(size=-1, alignment=1),
                       dict(size=4, alignment=3),
                       dict(size=4, alignment=512),
                       dict(size=0, alignment=1, extra_inhabitant_count=1),
                       dict(size=1, alignment=1, extra_inhabitant_count=256),
                       dict(size=8, alignment=8, extra_inhabitant_count=-1),
                       dict(size=1, alignment=1, enum_case_count=257)):
            with self.subTest(**kwargs):
                with self.assertRaises(ValueError):
                    TypeLayout(**kwargs)

        self.assertEqual(TypeLayout(1, 1, extra_inhabitant_count=255).extra_inhabitant_count, 255)

    def test_stride(self):
        self.assertEqual(TypeLayout(0, 1).stride, 1)
        self.assertEqual(TypeLayout(9, 8).stride, 16)
        self.assertEqual(int_layout().stride, 8)

    def test_struct_of(self):
        layout = TypeLayout.struct_of(int_layout(), bool_layout())
        self.assertEqual(layout.size, 9)
        self.assertEqual(layout.alignment, 8)
        self.assertEqual(layout.stride, 16)
        self.assertEqual(layout.extra_inhabitant_count, 254)
        self.assertTrue(layout.is_pod)

        empty = TypeLayout.struct_of()
        self.assertEqual((empty.size, empty.alignment, empty.stride), (0, 1, 1))

    def test_no_payload_enum(self):
        three = TypeLayout.no_payload_enum(3)
        self.assertEqual((three.size, three.alignment, three.extra_inhabitant_count), (1, 1, 253))
        self.assertTrue(three.is_enum)

        single = TypeLayout.no_payload_enum(1)
        self.assertEqual((single.size, single.extra_inhabitant_count), (0, 0))

        wide = TypeLayout.no_payload_enum(300)
        self.assertEqual((wide.size, wide.alignment, wide.extra_inhabitant_count), (2, 2, 65536 - 300))

    def test_inline(self):
        self.assertTrue(int_layout().is_inline)
        self.assertTrue(TypeLayout(24, 8).is_inline)
        self.assertFalse(TypeLayout(25, 8).is_inline)
        self.assertFalse(TypeLayout(8, 16).is_inline)
        self.assertFalse(int_layout(is_bitwise_takable=False).is_inline)
        # three words is less on 32 bit
        self.assertFalse(TypeLayout(16, 4, pointer_size=4).is_inline)

    def test_flags(self):
        self.assertEqual(int_layout().flags, 7)

        flags = TypeLayout(32, 8, is_pod=False, is_bitwise_takable=False, has_spare_bits=True).flags
        self.assertEqual(flags & ValueWitnessFlags.ALIGNMENT_MASK, 7)
        self.assertTrue(flags & ValueWitnessFlags.IS_NON_POD)
        self.assertTrue(flags & ValueWitnessFlags.IS_NON_INLINE)
        self.assertTrue(flags & ValueWitnessFlags.IS_NON_BITWISE_TAKABLE)
        self.assertTrue(flags & ValueWitnessFlags.HAS_SPARE_BITS)
        self.assertFalse(flags & ValueWitnessFlags.HAS_ENUM_WITNESSES)

        self.assertTrue(TypeLayout.no_payload_enum(2).flags & ValueWitnessFlags.HAS_ENUM_WITNESSES)

    def test_enum_tag_counts(self):
        self.assertEqual(get_enum_tag_counts(8, 1, 1), (2, 1))
        self.assertEqual(get_enum_tag_counts(1, 300, 1), (3, 1))
        self.assertEqual(get_enum_tag_counts(0, 0, 1), (1, 0))
        self.assertEqual(get_enum_tag_counts(0, 300, 1), (301, 2))


class ValueWitnessTableTestCase(unittest.TestCase):
    def test_build(self):
        table = table_for(int_layout(), 'Si')
        self.assertEqual(table.name, 'Swift.Int')
        self.assertEqual((table.size, table.stride, table.flags, table.extra_inhabitant_count), (8, 8, 7, 0))
        self.assertFalse(table.has_enum_witnesses)

        self.assertEqual(table_for(int_layout()).name, '<opaque type>')

        with self.assertRaises(ValueError):
            ValueWitnessTable.build(TypeLayout(4, 4, pointer_size=4), ValueMemory(pointer_size=8))

    def test_slot_lookup(self):
        table = table_for(int_layout())
        self.assertIn('destroy', table)
        self.assertIn('size', table)
        self.assertNotIn('getEnumTag', table)
        self.assertEqual(table['size'], 8)
        self.assertEqual(table[9], 8)
        self.assertEqual(table[REQUIRED_WITNESS_SLOTS[10]], 7)

        with self.assertRaises(WitnessContractViolation):
            _ = table['getEnumTag']
        with self.assertRaises(KeyError):
            table.handle('size')

    def test_handles(self):
        table = table_for(int_layout())
        handles = [table.handle(slot) for slot in ('destroy', 'initializeWithCopy', 'assignWithTake')]
        self.assertEqual(len(set(handles)), 3)
        self.assertNotIn(0, handles)
        # stable across calls
        self.assertEqual(table.handle('destroy'), handles[0])

        with self.assertRaises(MemoryAccessError):
            table.memory.functions.resolve(0xdead)

    def test_initialize_with_copy(self):
        tracker = LifetimeTracker()
        table = table_for(int_layout(is_pod=False, on_copy=tracker.on_copy, on_destroy=tracker.on_destroy))
        memory = table.memory

        src = new_int(table, 42)
        dest = table.new_value()
        self.assertEqual(table.invoke('initializeWithCopy', dest, src), dest)
        self.assertEqual(memory.read_int(dest, 8), 42)
        self.assertTrue(memory.is_initialized(dest))
        self.assertTrue(memory.is_initialized(src))
        self.assertEqual(tracker.copies, [(dest, src)])

        # dest is initialized now
        with self.assertRaises(WitnessContractViolation):
            table.invoke('initializeWithCopy', dest, src)
        with self.assertRaises(WitnessContractViolation):
            table.invoke('initializeWithCopy', table.new_value(), table.new_value())

    def test_assign_with_copy(self):
        tracker = LifetimeTracker()
        table = table_for(int_layout(is_pod=False, on_copy=tracker.on_copy, on_destroy=tracker.on_destroy))
        memory = table.memory

        src = new_int(table, 1)
        dest = new_int(table, 2)
        table.invoke('assignWithCopy', dest, src)
        self.assertEqual(memory.read_int(dest, 8), 1)
        self.assertEqual(tracker.destroys, [dest])
        self.assertEqual(tracker.copies, [(dest, src)])

        # self assignment leaves the value alone
        table.invoke('assignWithCopy', dest, dest)
        self.assertEqual(len(tracker.destroys), 1)
        self.assertEqual(memory.read_int(dest, 8), 1)

        with self.assertRaises(WitnessContractViolation):
            table.invoke('assignWithCopy', table.new_value(), src)

    def test_initialize_with_take(self):
        tracker = LifetimeTracker()
        table = table_for(int_layout(on_copy=tracker.on_copy, on_destroy=tracker.on_destroy))
        memory = table.memory

        src = new_int(table, 7)
        dest = table.new_value()
        table.invoke('initializeWithTake', dest, src)
        self.assertEqual(memory.read_int(dest, 8), 7)
        self.assertTrue(memory.is_initialized(dest))
        self.assertFalse(memory.is_initialized(src))
        # bitwise takable types move without touching the hooks
        self.assertEqual(tracker.copies, [])
        self.assertEqual(tracker.destroys, [])

    def test_take_non_bitwise_takable(self):
        tracker = LifetimeTracker()
        table = table_for(int_layout(is_pod=False, is_bitwise_takable=False,
                                     on_copy=tracker.on_copy, on_destroy=tracker.on_destroy))
        src = new_int(table, 7)
        dest = table.new_value()
        table.invoke('initializeWithTake', dest, src)
        self.assertEqual(tracker.copies, [(dest, src)])
        self.assertEqual(tracker.destroys, [src])

    def test_assign_with_take(self):
        tracker = LifetimeTracker()
        table = table_for(int_layout(is_pod=False, on_copy=tracker.on_copy, on_destroy=tracker.on_destroy))
        memory = table.memory

        src = new_int(table, 3)
        dest = new_int(table, 4)
        table.invoke('assignWithTake', dest, src)
        self.assertEqual(memory.read_int(dest, 8), 3)
        self.assertFalse(memory.is_initialized(src))
        self.assertTrue(memory.is_initialized(dest))
        self.assertEqual(tracker.destroys, [dest])

        with self.assertRaises(WitnessContractViolation):
            table.invoke('assignWithTake', dest, dest)
        with self.assertRaises(WitnessContractViolation):
            table.invoke('assignWithTake', dest, src)

    def test_destroy(self):
        tracker = LifetimeTracker()
        table = table_for(int_layout(is_pod=False, on_destroy=tracker.on_destroy))
        value = new_int(table, 5)
        table.invoke('destroy', value)
        self.assertFalse(table.memory.is_initialized(value))
        self.assertEqual(tracker.destroys, [value])

        with self.assertRaises(WitnessContractViolation) as ctx:
            table.invoke('destroy', value)
        self.assertEqual(ctx.exception.slot, 'destroy')


class BufferTestCase(unittest.TestCase):
    def test_inline_buffer(self):
        table = table_for(int_layout())
        memory = table.memory

        src = table.new_buffer()
        src_value = table.allocate_buffer(src)
        self.assertEqual(src_value, src)
        memory.write_int(src_value, 42, 8)
        memory.mark_initialized(src_value)

        dest = table.new_buffer()
        dest_value = table.invoke('initializeBufferWithCopyOfBuffer', dest, src)
        self.assertEqual(dest_value, dest)
        self.assertEqual(table.project_buffer(dest), dest)
        self.assertEqual(memory.read_int(dest_value, 8), 42)

        # a live value can't be deallocated
        with self.assertRaises(WitnessContractViolation):
            table.deallocate_buffer(dest)
        table.invoke('destroy', dest_value)
        table.deallocate_buffer(dest)

    def test_out_of_line_buffer(self):
        table = table_for(TypeLayout(32, 8))
        memory = table.memory
        self.assertFalse(table.layout.is_inline)

        src = table.new_buffer()
        box = table.allocate_buffer(src)
        self.assertNotEqual(box, src)
        self.assertEqual(memory.read_pointer(src), box)
        memory.write(box, bytes(range(32)))
        memory.mark_initialized(box)

        dest = table.new_buffer()
        dest_value = table.invoke('initializeBufferWithCopyOfBuffer', dest, src)
        self.assertNotEqual(dest_value, box)
        self.assertEqual(memory.read_pointer(dest), dest_value)
        self.assertEqual(memory.read(dest_value, 32), bytes(range(32)))
        self.assertTrue(memory.is_initialized(dest))

        table.invoke('destroy', dest_value)
        table.deallocate_buffer(dest)
        self.assertNotIn(dest_value, memory.allocations)
        self.assertEqual(memory.read_pointer(dest), 0)
        with self.assertRaises(WitnessContractViolation):
            table.project_buffer(dest)

    def test_copy_into_live_buffer(self):
        table = table_for(int_layout())
        src = table.new_buffer()
        table.memory.mark_initialized(table.allocate_buffer(src))
        with self.assertRaises(WitnessContractViolation):
            table.invoke('initializeBufferWithCopyOfBuffer', src, src)


class SinglePayloadEnumTestCase(unittest.TestCase):
    def new_enum(self, table, empty_cases):
        return table.new_value(table.single_payload_enum_size(empty_cases) - table.layout.size)

    def test_extra_inhabitants(self):
        # Bool? fits in the Bool's own byte
        table = table_for(bool_layout(), 'Sb')
        self.assertEqual(table.single_payload_enum_size(1), 1)
        value = self.new_enum(table, 1)

        table.invoke('storeEnumTagSinglePayload', value, 1, 1)
        self.assertEqual(table.memory.read_int(value, 1), 2)
        self.assertEqual(table.invoke('getEnumTagSinglePayload', value, 1), 1)

        table.memory.write_int(value, 1, 1)
        table.invoke('storeEnumTagSinglePayload', value, 0, 1)
        self.assertEqual(table.invoke('getEnumTagSinglePayload', value, 1), 0)
        self.assertEqual(table.memory.read_int(value, 1), 1)

    def test_extra_tag_byte(self):
        # Int has no spare patterns, Int? needs a tag byte
        table = table_for(int_layout(), 'Si')
        self.assertEqual(table.single_payload_enum_size(1), 9)
        value = self.new_enum(table, 1)

        table.invoke('storeEnumTagSinglePayload', value, 1, 1)
        self.assertEqual(table.memory.read_int(value + 8, 1), 1)
        self.assertEqual(table.invoke('getEnumTagSinglePayload', value, 1), 1)

        table.memory.write_int(value, 42, 8)
        table.invoke('storeEnumTagSinglePayload', value, 0, 1)
        self.assertEqual(table.invoke('getEnumTagSinglePayload', value, 1), 0)
        self.assertEqual(table.memory.read_int(value, 8), 42)

    def test_cases_spill_into_tag(self):
        table = table_for(TypeLayout(1, 1))
        self.assertEqual(table.single_payload_enum_size(300), 2)
        value = self.new_enum(table, 300)

        table.invoke('storeEnumTagSinglePayload', value, 300, 300)
        self.assertEqual(table.memory.read_int(value + 1, 1), 2)
        self.assertEqual(table.memory.read_int(value, 1), 43)
        self.assertEqual(table.invoke('getEnumTagSinglePayload', value, 300), 300)

        table.invoke('storeEnumTagSinglePayload', value, 1, 300)
        self.assertEqual(table.invoke('getEnumTagSinglePayload', value, 300), 1)

    def test_extra_inhabitants_then_tag(self):
        table = table_for(bool_layout())
        self.assertEqual(table.single_payload_enum_size(256), 2)
        value = self.new_enum(table, 256)

        for case in (200, 254, 255, 256):
            with self.subTest(case=case):
                table.invoke('storeEnumTagSinglePayload', value, case, 256)
                self.assertEqual(table.invoke('getEnumTagSinglePayload', value, 256), case)

        table.invoke('storeEnumTagSinglePayload', value, 254, 256)
        self.assertEqual(table.memory.read_int(value + 1, 1), 0)

    def test_case_out_of_range(self):
        table = table_for(int_layout())
        value = self.new_enum(table, 1)
        with self.assertRaises(WitnessContractViolation):
            table.invoke('storeEnumTagSinglePayload', value, 2, 1)
        # the payload case needs a payload
        with self.assertRaises(WitnessContractViolation):
            table.invoke('storeEnumTagSinglePayload', value, 0, 1)


class EnumWitnessTestCase(unittest.TestCase):
    def test_no_payload_enum(self):
        table = table_for(TypeLayout.no_payload_enum(3))
        self.assertTrue(table.has_enum_witnesses)
        self.assertIn('getEnumTag', table)

        value = table.new_value()
        table.invoke('destructiveInjectEnumTag', value, 2)
        self.assertTrue(table.memory.is_initialized(value))
        self.assertEqual(table.invoke('getEnumTag', value), 2)
        self.assertIsNone(table.invoke('destructiveProjectEnumData', value))

        with self.assertRaises(WitnessContractViolation):
            table.invoke('destructiveInjectEnumTag', value, 3)

    def test_enum_uses_its_extra_inhabitants(self):
        table = table_for(TypeLayout.no_payload_enum(3))
        value = table.new_value()
        table.invoke('storeEnumTagSinglePayload', value, 1, 1)
        self.assertEqual(table.memory.read_int(value, 1), 3)
        self.assertEqual(table.invoke('getEnumTagSinglePayload', value, 1), 1)


class MaterialisedTableTestCase(unittest.TestCase):
    def test_required(self):
        table = table_for(int_layout())
        required = table.required()
        self.assertIsInstance(required, RequiredValueWitnesses)
        self.assertEqual(len(required.raw), 88)
        self.assertEqual(required.size, 8)
        self.assertEqual(required.stride, 8)
        self.assertEqual(required.flags, 7)
        self.assertEqual(required.extraInhabitantCount, 0)
        self.assertEqual(required.destroy, table.handle('destroy'))
        for slot in REQUIRED_WITNESS_SLOTS:
            if slot in FUNCTION_WITNESS_SLOTS:
                self.assertNotEqual(getattr(required, slot.name), 0)
            else:
                self.assertEqual(getattr(required, slot.name), table[slot])

        # the stored pointers call back into the table's witnesses
        fn = table.memory.functions.resolve(required.initializeWithCopy)
        src = new_int(table, 9)
        dest = table.new_value()
        fn(dest, src, table)
        self.assertEqual(table.memory.read_int(dest, 8), 9)

    def test_all(self):
        table = table_for(TypeLayout.no_payload_enum(4))
        witnesses = table.all()
        self.assertIsInstance(witnesses, AllValueWitnesses)
        self.assertEqual(len(witnesses.raw), 112)
        self.assertEqual(witnesses.getEnumTag, table.handle('getEnumTag'))

    def test_all_without_enum_witnesses(self):
        table = table_for(int_layout())
        required = table.required()
        witnesses = table.all()
        self.assertTrue(set(required.fields) < set(witnesses.fields))
        for name in required.fields:
            self.assertEqual(getattr(witnesses, name), getattr(required, name))
        for name in ('getEnumTag', 'destructiveProjectEnumData', 'destructiveInjectEnumTag'):
            self.assertEqual(getattr(witnesses, name), 0)
        self.assertEqual(load_value_witnesses(bytes(witnesses.raw)), required)

    def test_pointer_size(self):
        table = table_for(TypeLayout(4, 4, pointer_size=4))
        self.assertEqual(len(table.required().raw), 48)

    def test_load(self):
        table = table_for(int_layout(extra_inhabitant_count=0x1000))
        required = table.required()
        loaded = load_value_witnesses(bytes(required.raw))
        self.assertIsInstance(loaded, RequiredValueWitnesses)
        self.assertEqual(loaded, required)

        enum_table = table_for(TypeLayout.no_payload_enum(4))
        loaded = load_value_witnesses(bytes(enum_table.all().raw))
        self.assertIsInstance(loaded, AllValueWitnesses)

        big_endian = load_value_witnesses(bytes(table.required().raw), byte_order='big')
        self.assertNotEqual(big_endian.size, 8)

    def test_from_witnesses(self):
        original = TypeLayout(12, 4, extra_inhabitant_count=3, is_pod=False)
        layout = TypeLayout.from_witnesses(table_for(original).required())
        self.assertEqual(layout.size, 12)
        self.assertEqual(layout.alignment, 4)
        self.assertEqual(layout.extra_inhabitant_count, 3)
        self.assertFalse(layout.is_pod)
        self.assertEqual(layout.flags, original.flags)
        self.assertIsNone(layout.enum_case_count)


if __name__ == '__main__':
    unittest.main()
