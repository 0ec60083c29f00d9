#
#  ktool | kswift
#  remangle.py
#
#  Swift 5 remangler: node tree -> mangled string
#
#  Emission is post-order and mirrors the demangler, so every subtree the demangler registered as a substitution
#       gets registered here at the same point, in the same order. That keeps 'A' ordinals in sync and makes
#       remangle(demangle(s)) == s for canonical input.
#
#  This file is part of ktool. ktool is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#
#  Copyright (c) 0cyn 2022.
#
from typing import List

from kswift.demangle import node_consumes_generic_args
from kswift.exceptions import UnmangleableNode, ShapeMismatch
from kswift.mangling import STDLIB_NAME, MANGLING_MODULE_OBJC, MANGLING_MODULE_CLANG_IMPORTER, \
    METATYPE_REPRESENTATION_CODES, VALUE_WITNESS_CODES, BUILTIN_TYPE_CODES, SubstitutionMerging, \
    mangle_identifier, mangle_index, translate_operator
from kswift.node import Node, Kind
from kswift.substitution import SubstitutionTable, standard_code_for
from kswift.util import opts

from lib0cyn.log import log

_NOMINAL_KINDS = frozenset({
    Kind.Structure, Kind.Enum, Kind.Class, Kind.TypeAlias, Kind.OtherNominalType, Kind.Protocol,
})

_BOUND_GENERIC_NOMINALS = frozenset({
    Kind.BoundGenericStructure, Kind.BoundGenericClass, Kind.BoundGenericEnum, Kind.BoundGenericProtocol,
    Kind.BoundGenericTypeAlias, Kind.BoundGenericOtherNominalType,
})

# Entities whose first child is the context they're declared in
_FUNCTION_LIKE_KINDS = frozenset({
    Kind.Function, Kind.Getter, Kind.Setter, Kind.WillSet, Kind.DidSet, Kind.ReadAccessor,
    Kind.ModifyAccessor, Kind.UnsafeAddressor, Kind.UnsafeMutableAddressor, Kind.Allocator, Kind.Constructor,
    Kind.Destructor, Kind.Variable, Kind.Subscript, Kind.ExplicitClosure, Kind.ImplicitClosure,
    Kind.Initializer, Kind.DefaultArgumentInitializer,
})

_NOMINAL_OPS = {
    Kind.Structure: 'V',
    Kind.Enum: 'O',
    Kind.Class: 'C',
    Kind.OtherNominalType: 'XY',
    Kind.TypeAlias: 'a',
    Kind.Protocol: 'P',
}

_ACCESSOR_SUFFIXES = {
    Kind.Getter: 'g',
    Kind.Setter: 's',
    Kind.MaterializeForSet: 'm',
    Kind.GlobalGetter: 'G',
    Kind.WillSet: 'w',
    Kind.DidSet: 'W',
    Kind.ReadAccessor: 'r',
    Kind.ModifyAccessor: 'M',
    Kind.OwningAddressor: 'lO',
    Kind.NativeOwningAddressor: 'lo',
    Kind.NativePinningAddressor: 'lp',
    Kind.UnsafeAddressor: 'lu',
    Kind.OwningMutableAddressor: 'aO',
    Kind.NativeOwningMutableAddressor: 'ao',
    Kind.NativePinningMutableAddressor: 'aP',
    Kind.UnsafeMutableAddressor: 'au',
}

_FUNCTION_TYPE_SUFFIXES = {
    Kind.FunctionType: 'c',
    Kind.NoEscapeFunctionType: 'XE',
    Kind.EscapingAutoClosureType: 'XA',
    Kind.AutoClosureType: 'XK',
    Kind.ThinFunctionType: 'Xf',
    Kind.ObjCBlock: 'XB',
    Kind.CFunctionPointer: 'XC',
}

# Kinds emitted as "children, then a fixed suffix"
_CHILDREN_THEN_SUFFIX = {
    Kind.Allocator: 'fC',
    Kind.Constructor: 'fc',
    Kind.Deallocator: 'fD',
    Kind.Destructor: 'fd',
    Kind.Initializer: 'fi',
    Kind.IVarInitializer: 'fe',
    Kind.IVarDestroyer: 'fE',
    Kind.GenericTypeParamDecl: 'fp',
    Kind.Variable: 'vp',
    Kind.Subscript: 'ip',
    Kind.Static: 'Z',
    Kind.InOut: 'z',
    Kind.Shared: 'h',
    Kind.Owned: 'n',
    Kind.Weak: 'Xw',
    Kind.Unowned: 'Xo',
    Kind.Unmanaged: 'Xu',
    Kind.DynamicSelf: 'XD',
    Kind.SugaredOptional: 'XSq',
    Kind.SugaredArray: 'XSa',
    Kind.SugaredDictionary: 'XSD',
    Kind.SugaredParen: 'XSp',
    Kind.TypeMangling: 'D',
    Kind.TypeMetadata: 'N',
    Kind.TypeMetadataAccessFunction: 'Ma',
    Kind.FullTypeMetadata: 'Mf',
    Kind.NominalTypeDescriptor: 'Mn',
    Kind.Metaclass: 'Mm',
    Kind.ValueWitnessTable: 'WV',
    Kind.EnumCase: 'WC',
}

_SIMPLE_TOKENS = {
    Kind.ThrowsAnnotation: 'K',
    Kind.EmptyList: 'y',
    Kind.FirstElementMarker: '_',
    Kind.VariadicMarker: 'd',
    Kind.ErrorType: 'Xe',
}

_OPERATOR_FIXITY = {
    Kind.InfixOperator: 'oi',
    Kind.PrefixOperator: 'op',
    Kind.PostfixOperator: 'oP',
}


def is_specialized(node: Node) -> bool:
    """
    Whether generic arguments are bound anywhere in this node or the contexts above it.
    """
    kind = node.kind
    if kind in _BOUND_GENERIC_NOMINALS or kind == Kind.BoundGenericFunction:
        return True
    if kind in _NOMINAL_KINDS or kind in _FUNCTION_LIKE_KINDS:
        return is_specialized(node.children[0])
    if kind == Kind.Extension:
        return is_specialized(node.children[1])
    return False


def get_unspecialized(node: Node) -> Node:
    """
    Strip bound generic arguments from this node and its parent contexts.
    """
    kind = node.kind
    if kind in _FUNCTION_LIKE_KINDS or kind in _NOMINAL_KINDS:
        parent = node.children[0]
        if is_specialized(parent):
            parent = get_unspecialized(parent)
        if kind in _FUNCTION_LIKE_KINDS:
            return node.with_children((parent,) + node.children[1:])
        return node.with_children((parent, node.children[1]))

    if kind in _BOUND_GENERIC_NOMINALS:
        nominal = node.children[0].children[0]
        return get_unspecialized(nominal) if is_specialized(nominal) else nominal

    if kind == Kind.BoundGenericFunction:
        unbound = node.children[0]
        return get_unspecialized(unbound) if is_specialized(unbound) else unbound

    if kind == Kind.Extension:
        parent = node.children[1]
        if is_specialized(parent):
            parent = get_unspecialized(parent)
        return Node(Kind.Extension, (node.children[0], parent))

    raise UnmangleableNode(kind, "Node can't be unspecialized")


def _skip_type(node: Node) -> Node:
    if node.kind == Kind.Type:
        return node.children[0]
    return node


def _is_swift_optional(node: Node) -> bool:
    nominal = _skip_type(node)
    return nominal.kind == Kind.Enum and standard_code_for(nominal) == 'q'


class Remangler:
    """
    Remangles one node tree. Like the Demangler, an instance belongs to one mangled name.
    """

    def __init__(self):
        self.buffer = ''
        self.words: List[str] = []
        self.substitutions = SubstitutionTable()
        self.merging = SubstitutionMerging()

    def fail(self, node: Node, message: str):
        log.debug_more(f'Cannot remangle {node.kind.name}: {message}')
        raise UnmangleableNode(node.kind, message)

    def mangle(self, node: Node):
        handler = _HANDLERS.get(node.kind)
        if handler is None:
            self.fail(node, "Unsupported node kind")
        handler(self, node)

    def mangle_children(self, node: Node):
        for child in node.children:
            self.mangle(child)

    def mangle_children_reversed(self, node: Node):
        for child in reversed(node.children):
            self.mangle(child)

    # Substitutions

    def mangle_standard_substitution(self, node: Node) -> bool:
        code = standard_code_for(node)
        if code is None:
            return False
        if not self.merging.try_merge(self, code, True):
            self.buffer += 'S' + code
        return True

    def try_substitution(self, node: Node, as_identifier=False) -> bool:
        if self.mangle_standard_substitution(node):
            return True

        index = self.substitutions.lookup(node, as_identifier)
        if index is None:
            return False

        if index >= 26:
            self.buffer += 'A' + mangle_index(index - 26)
            return True

        subst = chr(ord('A') + index)
        if not self.merging.try_merge(self, subst, False):
            self.buffer += 'A' + subst
        return True

    def add_substitution(self, node: Node, as_identifier=False):
        self.substitutions.register(node, as_identifier)

    # Names

    def mangle_identifier_impl(self, node: Node, is_operator=False):
        if self.try_substitution(node, True):
            return
        text = translate_operator(node.text) if is_operator else node.text
        self.buffer += mangle_identifier(text, self.words, node.kind)
        self.add_substitution(node, True)

    def mangle_identifier_node(self, node: Node):
        self.mangle_identifier_impl(node)

    def mangle_operator(self, node: Node):
        self.mangle_identifier_impl(node, is_operator=True)
        self.buffer += _OPERATOR_FIXITY[node.kind]

    def mangle_module(self, node: Node):
        name = node.text
        if name == STDLIB_NAME:
            self.buffer += 's'
        elif name == MANGLING_MODULE_OBJC:
            self.buffer += 'So'
        elif name == MANGLING_MODULE_CLANG_IMPORTER:
            self.buffer += 'SC'
        else:
            self.mangle_identifier_impl(node)

    def mangle_private_decl_name(self, node: Node):
        self.mangle_children_reversed(node)
        self.buffer += 'Ll' if len(node.children) == 1 else 'LL'

    def mangle_local_decl_name(self, node: Node):
        self.mangle(node.children[1])
        self.buffer += 'L'
        self.mangle(node.children[0])

    def mangle_related_entity_decl_name(self, node: Node):
        self.mangle(node.children[0])
        self.buffer += 'L' + node.text

    def mangle_number(self, node: Node):
        self.buffer += mangle_index(node.index)

    # Nominal types

    def mangle_any_generic_type(self, node: Node, type_op: str):
        if self.try_substitution(node):
            return
        self.mangle_children(node)
        self.buffer += type_op
        self.add_substitution(node)

    def mangle_any_nominal_type(self, node: Node):
        if is_specialized(node):
            if self.try_substitution(node):
                return
            self.mangle_any_nominal_type(get_unspecialized(node))
            self.mangle_generic_args(node, 'y')
            self.buffer += 'G'
            self.add_substitution(node)
            return

        type_op = _NOMINAL_OPS.get(node.kind)
        if type_op is None:
            self.fail(node, "Not a nominal type")
        self.mangle_any_generic_type(node, type_op)

    def mangle_generic_args(self, node: Node, separator: str, full_substitution_map=False) -> str:
        kind = node.kind
        if kind in (Kind.Structure, Kind.Enum, Kind.Class, Kind.TypeAlias):
            if kind == Kind.TypeAlias:
                full_substitution_map = True
            separator = self.mangle_generic_args(node.children[0], separator, full_substitution_map)
            self.buffer += separator
            separator = '_'

        elif kind in _FUNCTION_LIKE_KINDS:
            if not full_substitution_map:
                return separator
            separator = self.mangle_generic_args(node.children[0], separator, full_substitution_map)
            if node_consumes_generic_args(node):
                self.buffer += separator
                separator = '_'

        elif kind in _BOUND_GENERIC_NOMINALS:
            if kind == Kind.BoundGenericTypeAlias:
                full_substitution_map = True
            unbound = node.children[0].children[0]
            separator = self.mangle_generic_args(unbound.children[0], separator, full_substitution_map)
            self.buffer += separator
            separator = '_'
            self.mangle_children(node.children[1])

        elif kind == Kind.BoundGenericFunction:
            unbound = node.children[0]
            separator = self.mangle_generic_args(unbound.children[0], separator, True)
            self.buffer += separator
            separator = '_'
            self.mangle_children(node.children[1])

        elif kind == Kind.Extension:
            separator = self.mangle_generic_args(node.children[1], separator, full_substitution_map)

        return separator

    def mangle_bound_generic_enum(self, node: Node):
        args = node.children[1]
        # only Optional<T> has the short form
        if not _is_swift_optional(node.children[0]) or len(args.children) != 1:
            self.mangle_any_nominal_type(node)
            return
        if self.try_substitution(node):
            return
        self.mangle(args.children[0])
        self.buffer += 'Sg'
        self.add_substitution(node)

    def mangle_bound_generic_function(self, node: Node):
        if self.try_substitution(node):
            return
        self.mangle(get_unspecialized(node))
        self.mangle_generic_args(node, 'y')
        self.buffer += 'G'
        self.add_substitution(node)

    def mangle_extension(self, node: Node):
        self.mangle(node.children[1])
        self.mangle(node.children[0])
        self.buffer += 'E'

    # Functions

    def mangle_function(self, node: Node):
        self.mangle(node.children[0])
        self.mangle(node.children[1])
        has_labels = node.children[2].kind == Kind.LabelList
        if has_labels:
            self.mangle(node.children[2])
        func_type = _skip_type(node.children[3] if has_labels else node.children[2])
        if func_type.kind != Kind.FunctionType:
            self.fail(node, f'Expected a function type, got {func_type.kind.name}')
        self.mangle_children_reversed(func_type)
        self.buffer += 'F'

    def mangle_function_type(self, node: Node):
        self.mangle_children_reversed(node)
        self.buffer += _FUNCTION_TYPE_SUFFIXES[node.kind]

    def mangle_function_params(self, node: Node):
        params = _skip_type(node.children[0])
        if params.kind == Kind.Tuple and not params.children:
            self.buffer += 'y'
        else:
            self.mangle(params)

    def mangle_closure(self, node: Node):
        self.mangle(node.children[0])
        self.mangle(node.children[2])
        self.buffer += 'fU' if node.kind == Kind.ExplicitClosure else 'fu'
        self.mangle(node.children[1])

    def mangle_default_argument_initializer(self, node: Node):
        self.mangle(node.children[0])
        self.buffer += 'fA'
        self.mangle(node.children[1])

    def mangle_accessor(self, node: Node):
        storage = node.children[0]
        if storage.kind == Kind.Variable:
            storage_op = 'v'
        elif storage.kind == Kind.Subscript:
            storage_op = 'i'
        else:
            self.fail(node, f'Accessor of {storage.kind.name}')
        self.mangle_children(storage)
        self.buffer += storage_op + _ACCESSOR_SUFFIXES[node.kind]

    # Types

    def mangle_children_with_suffix(self, node: Node):
        self.mangle_children(node)
        self.buffer += _CHILDREN_THEN_SUFFIX[node.kind]

    def mangle_simple(self, node: Node):
        self.buffer += _SIMPLE_TOKENS[node.kind]

    def mangle_type_list(self, node: Node):
        first = True
        for child in node.children:
            self.mangle(child)
            if first:
                self.buffer += '_'
                first = False
        if first:
            self.buffer += 'y'

    def mangle_tuple(self, node: Node):
        self.mangle_type_list(node)
        self.buffer += 't'

    def mangle_label_list(self, node: Node):
        if not node.children:
            self.buffer += 'y'
        else:
            self.mangle_children(node)

    def mangle_metatype(self, node: Node):
        if node.children[0].kind == Kind.MetatypeRepresentation:
            self.mangle(node.children[1])
            self.buffer += 'XM' + METATYPE_REPRESENTATION_CODES[node.children[0].text]
        else:
            self.mangle(node.children[0])
            self.buffer += 'm'

    def mangle_existential_metatype(self, node: Node):
        if node.children[0].kind == Kind.MetatypeRepresentation:
            self.mangle(node.children[1])
            self.buffer += 'Xm' + METATYPE_REPRESENTATION_CODES[node.children[0].text]
        else:
            self.mangle(node.children[0])
            self.buffer += 'Xp'

    def mangle_pure_protocol(self, node: Node):
        proto = _skip_type(node)
        if self.mangle_standard_substitution(proto):
            return
        self.mangle_children(proto)

    def mangle_protocol_list_without_prefix(self, node: Node):
        protocols = node.children[0]
        first = True
        for proto in protocols.children:
            self.mangle_pure_protocol(proto)
            if first:
                self.buffer += '_'
                first = False
        if first:
            self.buffer += 'y'

    def mangle_protocol_list(self, node: Node):
        self.mangle_protocol_list_without_prefix(node)
        self.buffer += 'p'

    def mangle_protocol_list_with_any_object(self, node: Node):
        self.mangle_protocol_list_without_prefix(node.children[0])
        self.buffer += 'Xl'

    def mangle_builtin_type_name(self, node: Node):
        text = node.text
        self.buffer += 'B'
        if text in BUILTIN_TYPE_CODES:
            self.buffer += BUILTIN_TYPE_CODES[text]
        elif text.startswith('Builtin.Vec'):
            count, _, element = text[len('Builtin.Vec'):].partition('x')
            if not count.isdigit() or not element:
                self.fail(node, f'Bad builtin vector {text!r}')
            if element == 'RawPointer':
                self.buffer += 'p'
            elif element.startswith('FPIEEE') and element[len('FPIEEE'):].isdigit():
                self.buffer += f'f{element[len("FPIEEE"):]}_'
            elif element.startswith('Int') and element[len('Int'):].isdigit():
                self.buffer += f'i{element[len("Int"):]}_'
            else:
                self.fail(node, f'Bad builtin vector element {element!r}')
            self.buffer += f'Bv{count}_'
        elif text.startswith('Builtin.Int') and text[len('Builtin.Int'):].isdigit():
            self.buffer += f'i{text[len("Builtin.Int"):]}_'
        elif text.startswith('Builtin.FPIEEE') and text[len('Builtin.FPIEEE'):].isdigit():
            self.buffer += f'f{text[len("Builtin.FPIEEE"):]}_'
        else:
            self.fail(node, f'Unknown builtin type {text!r}')

    def mangle_dependent_generic_param_type(self, node: Node):
        depth = node.children[0].index
        index = node.children[1].index
        if depth == 0 and index == 0:
            self.buffer += 'x'
            return
        self.buffer += 'q'
        if depth != 0:
            self.buffer += 'd' + mangle_index(depth - 1) + mangle_index(index)
        elif index != 0:
            self.buffer += mangle_index(index - 1)
        else:
            self.buffer += 'z'

    # Global symbols

    def mangle_global(self, node: Node):
        self.buffer += opts.MANGLING_PREFIX
        self.mangle_children(node)

    def mangle_protocol_descriptor(self, node: Node):
        self.mangle_pure_protocol(node.children[0])
        self.buffer += 'Mp'

    def mangle_value_witness(self, node: Node):
        self.mangle(node.children[0])
        self.buffer += 'w' + VALUE_WITNESS_CODES[node.index][0]

    def mangle_field_offset(self, node: Node):
        self.mangle(node.children[1])
        self.buffer += 'Wv' + ('d' if node.children[0].index == 0 else 'i')

    def mangle_suffix(self, node: Node):
        self.buffer += node.text


_HANDLERS = {
    Kind.Global: Remangler.mangle_global,
    Kind.Type: lambda r, n: r.mangle(n.children[0]),
    Kind.Suffix: Remangler.mangle_suffix,

    Kind.Module: Remangler.mangle_module,
    Kind.Identifier: Remangler.mangle_identifier_node,
    Kind.TupleElementName: Remangler.mangle_identifier_node,
    Kind.InfixOperator: Remangler.mangle_operator,
    Kind.PrefixOperator: Remangler.mangle_operator,
    Kind.PostfixOperator: Remangler.mangle_operator,
    Kind.LocalDeclName: Remangler.mangle_local_decl_name,
    Kind.PrivateDeclName: Remangler.mangle_private_decl_name,
    Kind.RelatedEntityDeclName: Remangler.mangle_related_entity_decl_name,
    Kind.Number: Remangler.mangle_number,

    Kind.Structure: Remangler.mangle_any_nominal_type,
    Kind.Class: Remangler.mangle_any_nominal_type,
    Kind.Enum: Remangler.mangle_any_nominal_type,
    Kind.TypeAlias: Remangler.mangle_any_nominal_type,
    Kind.OtherNominalType: Remangler.mangle_any_nominal_type,
    Kind.Protocol: lambda r, n: r.mangle_any_generic_type(n, 'P'),
    Kind.Extension: Remangler.mangle_extension,
    Kind.BoundGenericStructure: Remangler.mangle_any_nominal_type,
    Kind.BoundGenericClass: Remangler.mangle_any_nominal_type,
    Kind.BoundGenericProtocol: Remangler.mangle_any_nominal_type,
    Kind.BoundGenericTypeAlias: Remangler.mangle_any_nominal_type,
    Kind.BoundGenericOtherNominalType: Remangler.mangle_any_nominal_type,
    Kind.BoundGenericEnum: Remangler.mangle_bound_generic_enum,
    Kind.BoundGenericFunction: Remangler.mangle_bound_generic_function,

    Kind.Function: Remangler.mangle_function,
    Kind.ExplicitClosure: Remangler.mangle_closure,
    Kind.ImplicitClosure: Remangler.mangle_closure,
    Kind.DefaultArgumentInitializer: Remangler.mangle_default_argument_initializer,

    Kind.ArgumentTuple: Remangler.mangle_function_params,
    Kind.ReturnType: Remangler.mangle_function_params,

    Kind.TypeList: Remangler.mangle_type_list,
    Kind.Tuple: Remangler.mangle_tuple,
    Kind.TupleElement: Remangler.mangle_children_reversed,
    Kind.LabelList: Remangler.mangle_label_list,

    Kind.Metatype: Remangler.mangle_metatype,
    Kind.ExistentialMetatype: Remangler.mangle_existential_metatype,
    Kind.ProtocolList: Remangler.mangle_protocol_list,
    Kind.ProtocolListWithAnyObject: Remangler.mangle_protocol_list_with_any_object,
    Kind.BuiltinTypeName: Remangler.mangle_builtin_type_name,
    Kind.DependentGenericParamType: Remangler.mangle_dependent_generic_param_type,

    Kind.ProtocolDescriptor: Remangler.mangle_protocol_descriptor,
    Kind.ValueWitness: Remangler.mangle_value_witness,
    Kind.FieldOffset: Remangler.mangle_field_offset,
}

_HANDLERS.update({kind: Remangler.mangle_accessor for kind in _ACCESSOR_SUFFIXES})
_HANDLERS.update({kind: Remangler.mangle_function_type for kind in _FUNCTION_TYPE_SUFFIXES})
_HANDLERS.update({kind: Remangler.mangle_children_with_suffix for kind in _CHILDREN_THEN_SUFFIX})
_HANDLERS.update({kind: Remangler.mangle_simple for kind in _SIMPLE_TOKENS})


def remangle(node: Node) -> str:
    """
    Mangle a node tree.

    A Global node gets the mangling prefix, anything else is mangled bare (a type mangling).

    :param node:
    :return: mangled string
    :raises UnmangleableNode: for kinds or shapes the mangling grammar can't express
    """
    remangler = Remangler()
    try:
        remangler.mangle(node)
    except (IndexError, KeyError, ShapeMismatch) as ex:
        log.debug_more(f'Malformed tree while remangling {node.kind.name}: {ex}')
        raise UnmangleableNode(node.kind, f'Malformed node tree: {ex}') from ex
    log.debug_more(f'Remangled {node.kind.name} -> {remangler.buffer}')
    return remangler.buffer
