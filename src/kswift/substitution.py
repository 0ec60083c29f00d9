#
#  ktool | kswift
#  substitution.py
#
#  Substitution tables
#
#  There are two independent code spaces here:
#       Standard substitutions: 'S' + one character naming a well known type from the Swift module (Si == Swift.Int).
#           These are fixed and never change during a mangling.
#       Dynamic substitutions: 'A' + ordinal, naming a subtree seen earlier in the same mangled name.
#           A fresh table is used for every demangle / remangle operation.
#
#  This file is part of ktool. ktool is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#
#  Copyright (c) 0cyn 2022.
#
from typing import Dict, List, Optional

from kswift.exceptions import ShapeMismatch, UnknownSubstitutionIndex
from kswift.mangling import STDLIB_NAME, translate_operator
from kswift.node import Node, Kind, is_substitutable, ident, module, type_node

from lib0cyn.log import log

# code -> (nominal kind, type name)
STANDARD_TYPES = {
    'A': (Kind.Structure, 'AutoreleasingUnsafeMutablePointer'),
    'a': (Kind.Structure, 'Array'),
    'b': (Kind.Structure, 'Bool'),
    'c': (Kind.Structure, 'UnicodeScalar'),
    'D': (Kind.Structure, 'Dictionary'),
    'd': (Kind.Structure, 'Double'),
    'f': (Kind.Structure, 'Float'),
    'h': (Kind.Structure, 'Set'),
    'I': (Kind.Structure, 'DefaultIndices'),
    'i': (Kind.Structure, 'Int'),
    'J': (Kind.Structure, 'Character'),
    'N': (Kind.Structure, 'ClosedRange'),
    'n': (Kind.Structure, 'Range'),
    'O': (Kind.Structure, 'ObjectIdentifier'),
    'P': (Kind.Structure, 'UnsafePointer'),
    'p': (Kind.Structure, 'UnsafeMutablePointer'),
    'R': (Kind.Structure, 'UnsafeBufferPointer'),
    'r': (Kind.Structure, 'UnsafeMutableBufferPointer'),
    'S': (Kind.Structure, 'String'),
    's': (Kind.Structure, 'Substring'),
    'u': (Kind.Structure, 'UInt'),
    'V': (Kind.Structure, 'UnsafeRawPointer'),
    'v': (Kind.Structure, 'UnsafeMutableRawPointer'),
    'W': (Kind.Structure, 'UnsafeRawBufferPointer'),
    'w': (Kind.Structure, 'UnsafeMutableRawBufferPointer'),

    'q': (Kind.Enum, 'Optional'),

    'B': (Kind.Protocol, 'BinaryFloatingPoint'),
    'E': (Kind.Protocol, 'Encodable'),
    'e': (Kind.Protocol, 'Decodable'),
    'F': (Kind.Protocol, 'FloatingPoint'),
    'G': (Kind.Protocol, 'RandomNumberGenerator'),
    'H': (Kind.Protocol, 'Hashable'),
    'j': (Kind.Protocol, 'Numeric'),
    'K': (Kind.Protocol, 'BidirectionalCollection'),
    'k': (Kind.Protocol, 'RandomAccessCollection'),
    'L': (Kind.Protocol, 'Comparable'),
    'l': (Kind.Protocol, 'Collection'),
    'M': (Kind.Protocol, 'MutableCollection'),
    'm': (Kind.Protocol, 'RangeReplaceableCollection'),
    'Q': (Kind.Protocol, 'Equatable'),
    'T': (Kind.Protocol, 'Sequence'),
    't': (Kind.Protocol, 'IteratorProtocol'),
    'U': (Kind.Protocol, 'UnsignedInteger'),
    'X': (Kind.Protocol, 'RangeExpression'),
    'x': (Kind.Protocol, 'Strideable'),
    'Y': (Kind.Protocol, 'RawRepresentable'),
    'y': (Kind.Protocol, 'StringProtocol'),
    'Z': (Kind.Protocol, 'SignedInteger'),
    'z': (Kind.Protocol, 'BinaryInteger'),
}

_STANDARD_NODES: Dict[str, Node] = {
    code: type_node(Node(kind, (module(STDLIB_NAME), ident(name))))
    for code, (kind, name) in STANDARD_TYPES.items()
}

_STANDARD_CODES: Dict[Node, str] = {node.children[0]: code for code, node in _STANDARD_NODES.items()}


def lookup_standard_code(code: str) -> Optional[Node]:
    """
    Canonical Type node for a standard substitution character, or None.

    :param code: single character following 'S'
    :return:
    """
    return _STANDARD_NODES.get(code)


def standard_code_for(node: Node) -> Optional[str]:
    """
    Standard substitution character for a node, or None if it isn't one of the catalogued Swift types.

    Accepts either the Type wrapper or the nominal node itself.

    :param node:
    :return:
    """
    if node.kind == Kind.Type:
        node = node.children[0]
    if node.kind not in (Kind.Structure, Kind.Enum, Kind.Protocol):
        return None
    return _STANDARD_CODES.get(node)


_IDENTIFIER_LIKE = frozenset({Kind.Identifier, Kind.Module, Kind.TupleElementName,
                              Kind.PrefixOperator, Kind.PostfixOperator, Kind.InfixOperator})
_OPERATORS = frozenset({Kind.PrefixOperator, Kind.PostfixOperator, Kind.InfixOperator})


def _entry_key(node: Node, as_identifier: bool):
    if as_identifier:
        if node.kind not in _IDENTIFIER_LIKE:
            raise ShapeMismatch(node.kind, "Only identifier-like nodes can be keyed by text")
        text = node.text
        if node.kind in _OPERATORS:
            text = translate_operator(text)
        return Kind.Identifier, text
    return node


class SubstitutionTable:
    """
    Ordinal indexed table of subtrees seen so far in one demangle / remangle operation.

    Identifier-like entries registered `as_identifier` are keyed by their (operator translated) text, so a
        Module and an Identifier with the same name share an entry. Everything else is keyed by deep structure.
    """

    def __init__(self):
        self._entries: List[Node] = []
        self._first_index: Dict[object, int] = {}

    def __len__(self):
        return len(self._entries)

    def reset(self):
        self._entries.clear()
        self._first_index.clear()

    def register(self, node: Node, as_identifier=False) -> int:
        if not is_substitutable(node.kind):
            raise ShapeMismatch(node.kind, "Kind is not substitutable")
        key = _entry_key(node, as_identifier)
        index = len(self._entries)
        self._entries.append(node)
        self._first_index.setdefault(key, index)
        log.debug_tm(f'Registered substitution {index}: {node!r}')
        return index

    def resolve(self, index: int, offset=None) -> Node:
        if index < 0 or index >= len(self._entries):
            raise UnknownSubstitutionIndex(index, len(self._entries), offset)
        return self._entries[index]

    def lookup(self, node: Node, as_identifier=False) -> Optional[int]:
        return self._first_index.get(_entry_key(node, as_identifier))
