#
#  ktool | kswift
#  exceptions.py
#
#  Custom Exceptions raised by the mangling engine and the value witness model
#
#  This file is part of ktool. ktool is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#
#  Copyright (c) 0cyn 2022.
#


class KSwiftException(Exception):
    """
    """


class MalformedMangling(KSwiftException):
    """
    Input violates the mangling grammar. `offset` is the position in the mangled text the parser was at.
    """

    def __init__(self, message, offset=None):
        self.message = message
        self.offset = offset
        if offset is not None:
            message = f'{message} (at offset {offset})'
        super().__init__(message)


class UnknownSubstitutionIndex(MalformedMangling):
    """
    A back-reference named a substitution ordinal that was never registered.
    """

    def __init__(self, index, count, offset=None):
        self.index = index
        self.count = count
        super().__init__(f'Substitution index {index} out of range ({count} registered)', offset)


class ShapeMismatch(KSwiftException):
    """
    """

    def __init__(self, kind, message=""):
        self.kind = kind
        self.message = message
        super().__init__(f'{getattr(kind, "name", kind)}: {message}')


class UnmangleableNode(KSwiftException):
    """
    """

    def __init__(self, kind, message=""):
        self.kind = kind
        self.message = message
        super().__init__(f'{getattr(kind, "name", kind)}: {message}')


class WitnessContractViolation(KSwiftException):
    """
    A value witness was invoked on memory that does not satisfy its precondition.
    """

    def __init__(self, slot, message=""):
        self.slot = slot
        self.message = message
        super().__init__(f'{slot}: {message}')


class MemoryAccessError(KSwiftException):
    """
    """

    def __init__(self, address, message="Unmapped address"):
        self.address = address
        super().__init__(f'{message} {hex(address)}')
