#
#  ktool | lib0cyn
#  structs.py
#
#  Custom Struct implementation reflecting behavior of named tuples while also handling behind-the-scenes
#    packing/unpacking. Used here to lay out value witness tables the way the runtime sees them.
#
#  This file is part of ktool. ktool is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#
#  Copyright (c) 0cyn 2022.
#

# Size calc is hot code, so field sizes are plain ints
uint8_t = 1
uint16_t = 2
uint32_t = 4
uint64_t = 8


class uintptr_t:
    """ Pointer sized field. Its size is only known once a ptr_size is supplied. """
    pass


class StructLayoutError(Exception):
    """
    """


def _field_size(value, ptr_size):
    if isinstance(value, int):
        return value
    if isinstance(value, type) and issubclass(value, uintptr_t):
        if ptr_size is None:
            raise StructLayoutError("Trying to get size on variable (ptr) sized type without a ptr_size")
        return ptr_size
    raise StructLayoutError(f'Unknown field type {value}')


# noinspection PyUnresolvedReferences
class Struct:
    """
    Custom namedtuple-esque Struct representation. Can be unpacked from bytes or manually created with existing
        field values

    Subclasses provide a `FIELDS` dict of field name -> field type.

    Fields are exposed as read-write attributes, and the backing byte representation is
        rebuilt on access via the .raw attribute
    """

    @classmethod
    def size(cls, ptr_size=None):
        size = 0
        for _, value in cls.FIELDS.items():
            size += _field_size(value, ptr_size)
        return size

    @classmethod
    def offset_of(cls, field_name, ptr_size=None):
        offset = 0
        for name, value in cls.FIELDS.items():
            if name == field_name:
                return offset
            offset += _field_size(value, ptr_size)
        raise KeyError(field_name)

    # noinspection PyProtectedMember
    @staticmethod
    def create_with_bytes(struct_class, raw, byte_order="little", ptr_size=8):
        """
        Unpack a struct from raw bytes

        :param struct_class: Struct subclass
        :param raw: Bytes
        :param byte_order: Little/Big Endian Struct Unpacking
        :param ptr_size: Size of uintptr_t fields
        :return: struct_class Instance
        """
        instance: Struct = struct_class(byte_order, ptr_size)
        current_off = 0

        needed = struct_class.size(ptr_size=ptr_size)
        if len(raw) < needed:
            raise StructLayoutError(f'{struct_class.__name__} needs {needed} bytes, got {len(raw)}')

        for field in instance._fields:
            size = _field_size(instance._field_sizes[field], ptr_size)
            data = raw[current_off:current_off + size]
            setattr(instance, field, int.from_bytes(data, byte_order))
            current_off += size

        return instance

    @staticmethod
    def create_with_values(struct_class, values, byte_order="little", ptr_size=8):
        """
        Pack/Create a struct given field values

        :param struct_class: Struct subclass
        :param values: List of values, in field order
        :param byte_order:
        :param ptr_size:
        :return: struct_class Instance
        """

        instance: Struct = struct_class(byte_order, ptr_size)

        if len(values) != len(instance._fields):
            raise StructLayoutError(f'{struct_class.__name__} has {len(instance._fields)} fields, got {len(values)} values')

        # noinspection PyProtectedMember
        for i, field in enumerate(instance._fields):
            setattr(instance, field, values[i])
        return instance

    @property
    def fields(self):
        return list(self._fields)

    @property
    def raw(self):
        raw = bytearray()
        for field in self._fields:
            size = _field_size(self._field_sizes[field], self.ptr_size)
            raw += getattr(self, field).to_bytes(size, byteorder=self.byte_order)
        return raw

    def __eq__(self, other):
        try:
            for field in self._fields:
                if getattr(self, field) != getattr(other, field):
                    return False
        except AttributeError:
            return False
        return True

    def __ne__(self, other):
        return not self.__eq__(other)

    def __repr__(self):
        return str(self)

    def __str__(self):
        text = f'{self.__class__.__name__}('
        for field in self._fields:
            text += f'{field}={hex(getattr(self, field, 0))}, '
        return text[:-2] + ')'

    def __init__(self, byte_order="little", ptr_size=8):
        if not hasattr(self.__class__, 'FIELDS'):
            raise StructLayoutError("Do not use the bare Struct class; it must be implemented in an actual type")

        self._fields = list(self.__class__.FIELDS.keys())
        self.byte_order = byte_order
        self.ptr_size = ptr_size

        self._field_sizes = dict(self.__class__.FIELDS)
