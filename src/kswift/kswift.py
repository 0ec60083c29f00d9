#
#  ktool | kswift
#  kswift.py
#
#  Outward facing API
#
#  Some of these functions are only one line long, but the point is to standardize an outward facing API that allows
#   me to refactor and change things internally without breaking others' scripts.
#
#  This file is part of ktool. ktool is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#
#  Copyright (c) 0cyn 2022.
#
from typing import Union

from .demangle import demangle as _demangle, demangle_type as _demangle_type
from .memory import ValueMemory
from .node import Node
from .printer import DemangleOptions, print_node
from .remangle import remangle as _remangle
from .structs import RequiredValueWitnesses, AllValueWitnesses
from .util import opts, highlight_swift
from .witness import TypeLayout, ValueWitnessTable, load_value_witnesses as _load_value_witnesses


def is_mangled_name(text: str) -> bool:
    """
    Does this look like a Swift 5 mangled symbol? Only the prefix is checked.

    :param text:
    :return:
    """
    return any(text.startswith(prefix) for prefix in opts.MANGLING_PREFIXES)


def demangle(text: str) -> Node:
    """
    Demangle a full symbol into a Global node tree.

    :param text: mangled symbol, e.g. '$s1b1CC16funcWithCallback3fooyyyXE_tF'
    :return: Global node
    :raises MalformedMangling:
    """
    return _demangle(text)


def demangle_type(text: str) -> Node:
    """
    Demangle a bare type mangling, e.g. 'SaySiG'.

    :param text:
    :return: Type node
    :raises MalformedMangling:
    """
    return _demangle_type(text)


def remangle(node: Node) -> str:
    """
    Turn a node tree back into its mangled form.

    :param node: Global node (mangled with the configured prefix) or a type node (mangled bare)
    :return:
    :raises UnmangleableNode:
    """
    return _remangle(node)


def demangle_to_string(text: str, options: DemangleOptions = DemangleOptions.DEFAULT, color=False) -> str:
    """
    Demangle a symbol and render it the way swift-demangle does.

    :param text: mangled symbol
    :param options: DemangleOptions flags. DemangleOptions.SIMPLIFIED gives sugared, short names
    :param color: Highlight the result with Pygments (ignored when color is disabled or stdout isn't a tty)
    :return:
    """
    rendered = print_node(_demangle(text), options)
    if color:
        return highlight_swift(rendered)
    return rendered


def build_value_witness_table(layout: TypeLayout, memory: ValueMemory = None,
                              type_node: Union[Node, str] = None) -> ValueWitnessTable:
    """
    Build the value witness table for a type layout.

    :param layout: TypeLayout describing the type
    :param memory: ValueMemory the witnesses operate on. A fresh one is created when omitted
    :param type_node: Type node (or bare type mangling) naming the type, used for logging and repr
    :return:
    """
    if memory is None:
        memory = ValueMemory(pointer_size=layout.pointer_size)
    if isinstance(type_node, str):
        type_node = _demangle_type(type_node)
    return ValueWitnessTable.build(layout, memory, type_node)


def load_value_witnesses(raw: bytes, ptr_size=8, byte_order='little') -> Union[RequiredValueWitnesses,
                                                                                AllValueWitnesses]:
    """
    Read a value witness table out of binary data.

    :param raw: bytes starting at the table
    :param ptr_size:
    :param byte_order:
    :return:
    """
    return _load_value_witnesses(raw, ptr_size, byte_order)
