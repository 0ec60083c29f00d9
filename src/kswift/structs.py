#
#  ktool | kswift
#  structs.py
#
#  Value witness table catalogue and the ABI layouts generated from it
#
#  This file is part of ktool. ktool is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#
#  Copyright (c) 0cyn 2022.
#
from collections import namedtuple
from enum import Enum

from lib0cyn.structs import Struct, uintptr_t, uint32_t


class WitnessKind(Enum):
    FUNCTION = 0
    DATA = 1


class WitnessRole(Enum):
    MUTABLE_VALUE = 0
    IMMUTABLE_VALUE = 1
    MUTABLE_BUFFER = 2
    IMMUTABLE_BUFFER = 3
    TYPE = 4
    SIZE = 5
    FLAGS = 6
    COUNT = 7
    INT = 8
    UINT = 9
    VOID = 10


WitnessSlot = namedtuple("WitnessSlot", ["name", "kind", "returns", "params", "required", "doc"])

_FN = WitnessKind.FUNCTION
_DATA = WitnessKind.DATA

_MUT = WitnessRole.MUTABLE_VALUE
_IMM = WitnessRole.IMMUTABLE_VALUE
_MUT_BUF = WitnessRole.MUTABLE_BUFFER
_TYPE = WitnessRole.TYPE

"""
struct ValueWitnessTable {
    OpaqueValue *(*initializeBufferWithCopyOfBuffer)(ValueBuffer *dest, ValueBuffer *src, const Metadata *self);
    void (*destroy)(OpaqueValue *object, const Metadata *self);
    OpaqueValue *(*initializeWithCopy)(OpaqueValue *dest, OpaqueValue *src, const Metadata *self);
    OpaqueValue *(*assignWithCopy)(OpaqueValue *dest, OpaqueValue *src, const Metadata *self);
    OpaqueValue *(*initializeWithTake)(OpaqueValue *dest, OpaqueValue *src, const Metadata *self);
    OpaqueValue *(*assignWithTake)(OpaqueValue *dest, OpaqueValue *src, const Metadata *self);
    unsigned (*getEnumTagSinglePayload)(const OpaqueValue *enum, unsigned emptyCases, const Metadata *self);
    void (*storeEnumTagSinglePayload)(OpaqueValue *enum, unsigned whichCase, unsigned emptyCases, const Metadata *self);
    size_t size;
    size_t stride;
    uint32_t flags;
    uint32_t extraInhabitantCount;
};

struct EnumValueWitnessTable : ValueWitnessTable {
    int (*getEnumTag)(const OpaqueValue *obj, const Metadata *self);
    void (*destructiveProjectEnumData)(OpaqueValue *obj, const Metadata *self);
    void (*destructiveInjectEnumTag)(OpaqueValue *obj, unsigned tag, const Metadata *self);
};
"""
WITNESS_SLOTS = [
    WitnessSlot('initializeBufferWithCopyOfBuffer', _FN, _MUT, (_MUT_BUF, _MUT_BUF, _TYPE), True,
                "Given an unallocated dest buffer and an initialized src buffer, copy the value into dest "
                "(inline or into a fresh box) and return the address of the dest value."),
    WitnessSlot('destroy', _FN, WitnessRole.VOID, (_MUT, _TYPE), True,
                "Destroy an initialized value, leaving the memory uninitialized."),
    WitnessSlot('initializeWithCopy', _FN, _MUT, (_MUT, _MUT, _TYPE), True,
                "Copy an initialized src value into uninitialized dest memory. src stays owned by the caller."),
    WitnessSlot('assignWithCopy', _FN, _MUT, (_MUT, _MUT, _TYPE), True,
                "Copy an initialized src value over an initialized dest value, destroying the old dest value."),
    WitnessSlot('initializeWithTake', _FN, _MUT, (_MUT, _MUT, _TYPE), True,
                "Move an initialized src value into uninitialized dest memory. src becomes uninitialized."),
    WitnessSlot('assignWithTake', _FN, _MUT, (_MUT, _MUT, _TYPE), True,
                "Move an initialized src value over an initialized dest value. The old dest value is destroyed "
                "and src becomes uninitialized."),
    WitnessSlot('getEnumTagSinglePayload', _FN, WitnessRole.UINT, (_IMM, WitnessRole.UINT, _TYPE), True,
                "Case of a single payload enum with this type as payload and emptyCases empty cases. "
                "0 is the payload case."),
    WitnessSlot('storeEnumTagSinglePayload', _FN, WitnessRole.VOID,
                (_MUT, WitnessRole.UINT, WitnessRole.UINT, _TYPE), True,
                "Store whichCase into a single payload enum with this type as payload and emptyCases empty cases."),
    WitnessSlot('size', _DATA, WitnessRole.SIZE, (), True,
                "Number of bytes a value of the type occupies, without trailing padding."),
    WitnessSlot('stride', _DATA, WitnessRole.SIZE, (), True,
                "Distance between consecutive array elements. Never 0."),
    WitnessSlot('flags', _DATA, WitnessRole.FLAGS, (), True,
                "Alignment mask and layout flags."),
    WitnessSlot('extraInhabitantCount', _DATA, WitnessRole.COUNT, (), True,
                "Number of bit patterns of the type that are not valid values."),
    WitnessSlot('getEnumTag', _FN, WitnessRole.INT, (_IMM, _TYPE), False,
                "Tag of an enum value."),
    WitnessSlot('destructiveProjectEnumData', _FN, WitnessRole.VOID, (_MUT, _TYPE), False,
                "Prepare an enum value for payload extraction."),
    WitnessSlot('destructiveInjectEnumTag', _FN, WitnessRole.VOID, (_MUT, WitnessRole.UINT, _TYPE), False,
                "Store a tag into an enum value whose payload is initialized."),
]

WITNESS_SLOT_NAMES = {slot.name: slot for slot in WITNESS_SLOTS}
REQUIRED_WITNESS_SLOTS = [slot for slot in WITNESS_SLOTS if slot.required]
FUNCTION_WITNESS_SLOTS = [slot for slot in WITNESS_SLOTS if slot.kind == WitnessKind.FUNCTION]

_DATA_FIELD_TYPES = {
    WitnessRole.SIZE: uintptr_t,
    WitnessRole.FLAGS: uint32_t,
    WitnessRole.COUNT: uint32_t,
}


def _field_type(slot: WitnessSlot):
    if slot.kind == WitnessKind.FUNCTION:
        return uintptr_t
    return _DATA_FIELD_TYPES[slot.returns]


class RequiredValueWitnesses(Struct):
    FIELDS = {slot.name: _field_type(slot) for slot in REQUIRED_WITNESS_SLOTS}

    def __init__(self, byte_order="little", ptr_size=8):
        super().__init__(byte_order=byte_order, ptr_size=ptr_size)


class AllValueWitnesses(Struct):
    FIELDS = {slot.name: _field_type(slot) for slot in WITNESS_SLOTS}

    def __init__(self, byte_order="little", ptr_size=8):
        super().__init__(byte_order=byte_order, ptr_size=ptr_size)


"""
struct ValueBuffer {
    void *PrivateData[NumWords_ValueBuffer];
};
"""


class ValueBuffer(Struct):
    FIELDS = {
        'word0': uintptr_t,
        'word1': uintptr_t,
        'word2': uintptr_t,
    }

    def __init__(self, byte_order="little", ptr_size=8):
        super().__init__(byte_order=byte_order, ptr_size=ptr_size)
