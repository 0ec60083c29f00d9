#
#  ktool | kswift
#  printer.py
#
#  Human readable rendering of demangled node trees, in swift-demangle's format
#
#  This file is part of ktool. ktool is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#
#  Copyright (c) 0cyn 2022.
#
from enum import IntFlag
from typing import Optional

from kswift.exceptions import UnmangleableNode, ShapeMismatch
from kswift.mangling import STDLIB_NAME, VALUE_WITNESS_CODES
from kswift.node import Node, Kind

from lib0cyn.log import log


class DemangleOptions(IntFlag):
    NONE = 0
    SYNTHESIZE_SUGAR = 1 << 0
    QUALIFY_ENTITIES = 1 << 1
    DISPLAY_EXTENSION_CONTEXTS = 1 << 2
    DISPLAY_UNMANGLED_SUFFIX = 1 << 3
    DISPLAY_MODULE_NAMES = 1 << 4
    DISPLAY_ENTITY_TYPES = 1 << 5
    SHOW_PRIVATE_DISCRIMINATORS = 1 << 6
    SHOW_FUNCTION_ARGUMENT_TYPES = 1 << 7

    DEFAULT = QUALIFY_ENTITIES | DISPLAY_EXTENSION_CONTEXTS | DISPLAY_UNMANGLED_SUFFIX | DISPLAY_MODULE_NAMES \
        | DISPLAY_ENTITY_TYPES | SHOW_PRIVATE_DISCRIMINATORS | SHOW_FUNCTION_ARGUMENT_TYPES
    SIMPLIFIED = SYNTHESIZE_SUGAR | QUALIFY_ENTITIES


class TypePrinting:
    NO_TYPE = 0
    WITH_COLON = 1
    FUNCTION_STYLE = 2


_SIMPLE_TYPE_KINDS = frozenset({
    Kind.BoundGenericClass, Kind.BoundGenericEnum, Kind.BoundGenericStructure, Kind.BoundGenericProtocol,
    Kind.BoundGenericOtherNominalType, Kind.BoundGenericTypeAlias, Kind.BoundGenericFunction,
    Kind.BuiltinTypeName, Kind.Class, Kind.DependentGenericParamType, Kind.DynamicSelf, Kind.Enum,
    Kind.ErrorType, Kind.ExistentialMetatype, Kind.Metatype, Kind.MetatypeRepresentation, Kind.Module,
    Kind.Tuple, Kind.Protocol, Kind.ReturnType, Kind.Structure, Kind.OtherNominalType, Kind.TupleElementName,
    Kind.Type, Kind.TypeAlias, Kind.TypeList, Kind.LabelList, Kind.SugaredOptional, Kind.SugaredArray,
    Kind.SugaredDictionary, Kind.SugaredParen,
})

_EXISTENTIAL_KINDS = frozenset({Kind.ExistentialMetatype, Kind.ProtocolList, Kind.ProtocolListWithAnyObject})

_FUNCTION_STYLE_TYPES = frozenset({Kind.FunctionType, Kind.NoEscapeFunctionType, Kind.CFunctionPointer,
                                   Kind.ThinFunctionType})

_FUNCTION_TYPE_PREFIXES = {
    Kind.FunctionType: '',
    Kind.NoEscapeFunctionType: '',
    Kind.EscapingAutoClosureType: '@autoclosure ',
    Kind.AutoClosureType: '@autoclosure ',
    Kind.ThinFunctionType: '@convention(thin) ',
    Kind.CFunctionPointer: '@convention(c) ',
    Kind.ObjCBlock: '@convention(block) ',
}

_STORAGE_ACCESSOR_NAMES = {
    Kind.OwningAddressor: 'owningAddressor',
    Kind.OwningMutableAddressor: 'owningMutableAddressor',
    Kind.NativeOwningAddressor: 'nativeOwningAddressor',
    Kind.NativeOwningMutableAddressor: 'nativeOwningMutableAddressor',
    Kind.NativePinningAddressor: 'nativePinningAddressor',
    Kind.NativePinningMutableAddressor: 'nativePinningMutableAddressor',
    Kind.UnsafeAddressor: 'unsafeAddressor',
    Kind.UnsafeMutableAddressor: 'unsafeMutableAddressor',
    Kind.GlobalGetter: 'getter',
    Kind.Getter: 'getter',
    Kind.Setter: 'setter',
    Kind.MaterializeForSet: 'materializeForSet',
    Kind.WillSet: 'willset',
    Kind.DidSet: 'didset',
    Kind.ReadAccessor: 'read',
    Kind.ModifyAccessor: 'modify',
}

# "<description> for <child>" symbols
_DESCRIBED_SYMBOLS = {
    Kind.TypeMetadata: 'type metadata for ',
    Kind.FullTypeMetadata: 'full type metadata for ',
    Kind.TypeMetadataAccessFunction: 'type metadata accessor for ',
    Kind.NominalTypeDescriptor: 'nominal type descriptor for ',
    Kind.Metaclass: 'metaclass for ',
    Kind.ProtocolDescriptor: 'protocol descriptor for ',
    Kind.ValueWitnessTable: 'value witness table for ',
    Kind.EnumCase: 'enum case for ',
    Kind.Static: 'static ',
    Kind.InOut: 'inout ',
    Kind.Shared: '__shared ',
    Kind.Owned: '__owned ',
    Kind.Weak: 'weak ',
    Kind.Unowned: 'unowned ',
    Kind.Unmanaged: 'unowned(unsafe) ',
}

_MARKERS = {
    Kind.ThrowsAnnotation: ' throws ',
    Kind.EmptyList: ' empty-list ',
    Kind.FirstElementMarker: ' first-element-marker ',
    Kind.VariadicMarker: ' variadic-marker ',
    Kind.DynamicSelf: 'Self',
    Kind.ErrorType: '<ERROR TYPE>',
}


def generic_parameter_name(depth: int, index: int) -> str:
    name = ''
    while True:
        name += chr(ord('A') + index % 26)
        index //= 26
        if not index:
            break
    if depth != 0:
        name += str(depth)
    return name


def _quoted(text: str) -> str:
    out = '"'
    for c in text:
        if c == '\\':
            out += '\\\\'
        elif c == '\t':
            out += '\\t'
        elif c == '\n':
            out += '\\n'
        elif c == '\r':
            out += '\\r'
        elif c == '"':
            out += '\\"'
        elif c == '\0':
            out += '\\0'
        elif ord(c) < 0x20 or ord(c) == 0x7f:
            out += f'\\x{ord(c):02X}'
        else:
            out += c
    return out + '"'


def _is_swift_module(node: Node) -> bool:
    return node.kind == Kind.Module and node.text == STDLIB_NAME


def _is_identifier(node: Node, text: str) -> bool:
    return node.kind == Kind.Identifier and node.text == text


def _need_space_before_type(node: Node) -> bool:
    if node.kind == Kind.Type:
        return _need_space_before_type(node.children[0])
    return node.kind not in (Kind.FunctionType, Kind.NoEscapeFunctionType)


class NodePrinter:
    """
    Renders one node tree. `print_root` is the entry point; everything else appends to `self.out`.
    """

    def __init__(self, options: DemangleOptions = DemangleOptions.DEFAULT):
        self.options = options
        self.out = ''

    def fail(self, node: Node, message: str):
        log.debug_more(f'Cannot print {node.kind.name}: {message}')
        raise UnmangleableNode(node.kind, message)

    def print_root(self, root: Node) -> str:
        self.out = ''
        self.print(root)
        return self.out

    def print_children(self, node: Node, separator: Optional[str] = None):
        for i, child in enumerate(node.children):
            if separator is not None and i > 0:
                self.out += separator
            self.print(child)

    def print_with_parens(self, node: Node):
        needs_parens = node.kind not in _SIMPLE_TYPE_KINDS
        if node.kind == Kind.ProtocolList:
            needs_parens = len(node.children[0].children) > 1
        elif node.kind == Kind.ProtocolListWithAnyObject:
            needs_parens = len(node.children[0].children[0].children) > 0
        if needs_parens:
            self.out += '('
        self.print(node)
        if needs_parens:
            self.out += ')'

    def print_context(self, context: Node) -> bool:
        return bool(self.options & DemangleOptions.QUALIFY_ENTITIES)

    # Generics

    def find_sugar(self, node: Node) -> Optional[str]:
        if node.kind == Kind.Type:
            return self.find_sugar(node.children[0])
        if node.kind not in (Kind.BoundGenericEnum, Kind.BoundGenericStructure):
            return None

        unbound = node.children[0].children[0]
        args = node.children[1]
        if not _is_swift_module(unbound.children[0]):
            return None

        if node.kind == Kind.BoundGenericEnum:
            if _is_identifier(unbound.children[1], 'Optional') and len(args.children) == 1:
                return 'optional'
            if _is_identifier(unbound.children[1], 'ImplicitlyUnwrappedOptional') and len(args.children) == 1:
                return 'iuo'
            return None

        if _is_identifier(unbound.children[1], 'Array') and len(args.children) == 1:
            return 'array'
        if _is_identifier(unbound.children[1], 'Dictionary') and len(args.children) == 2:
            return 'dictionary'
        return None

    def print_bound_generic_no_sugar(self, node: Node):
        self.print(node.children[0])
        self.out += '<'
        self.print_children(node.children[1], ', ')
        self.out += '>'

    def print_bound_generic(self, node: Node):
        if not (self.options & DemangleOptions.SYNTHESIZE_SUGAR) or node.kind == Kind.BoundGenericClass:
            self.print_bound_generic_no_sugar(node)
            return

        if node.kind == Kind.BoundGenericProtocol:
            self.print_children(node.children[1])
            self.out += ' as '
            self.print(node.children[0])
            return

        sugar = self.find_sugar(node)
        args = node.children[1].children
        if sugar in ('optional', 'iuo'):
            self.print_with_parens(args[0])
            self.out += '?' if sugar == 'optional' else '!'
        elif sugar == 'array':
            self.out += '['
            self.print(args[0])
            self.out += ']'
        elif sugar == 'dictionary':
            self.out += '['
            self.print(args[0])
            self.out += ' : '
            self.print(args[1])
            self.out += ']'
        else:
            self.print_bound_generic_no_sugar(node)

    # Functions

    def print_function_parameters(self, label_list: Optional[Node], parameter_type: Node, show_types: bool):
        if parameter_type.kind != Kind.ArgumentTuple:
            self.fail(parameter_type, "Expected an argument tuple")

        parameters = parameter_type.children[0]
        if parameters.kind == Kind.Type:
            parameters = parameters.children[0]

        if parameters.kind != Kind.Tuple:
            # a single unlabeled parameter
            if show_types:
                self.out += '('
                self.print(parameters)
                self.out += ')'
            else:
                self.out += '(_:)'
            return

        has_labels = label_list is not None and len(label_list.children) > 0
        if has_labels and len(label_list.children) != len(parameters.children):
            self.fail(label_list, "Label count doesn't match the parameter count")

        self.out += '('
        for i, param in enumerate(parameters.children):
            if i > 0 and show_types:
                self.out += ', '
            if param.kind != Kind.TupleElement:
                self.fail(param, "Expected a tuple element")

            if has_labels:
                label = label_list.children[i]
                self.out += (label.text if label.kind == Kind.Identifier else '_') + ':'
                if show_types:
                    self.out += ' '
            elif not show_types:
                name = param.child_of_kind(Kind.TupleElementName)
                self.out += (name.text if name is not None else '_') + ':'

            if show_types:
                self.print(param)
        self.out += ')'

    def print_function_type(self, label_list: Optional[Node], node: Node):
        if len(node.children) not in (2, 3):
            self.fail(node, "Bad function type")

        start = 1 if node.children[0].kind == Kind.ThrowsAnnotation else 0
        show_types = bool(self.options & DemangleOptions.SHOW_FUNCTION_ARGUMENT_TYPES)
        self.print_function_parameters(label_list, node.children[start], show_types)

        if not show_types:
            return
        if start == 1:
            self.out += ' throws'
        self.print(node.children[start + 1])

    # Entities

    def print_entity(self, entity: Node, as_prefix_context: bool, type_printing: int, has_name: bool,
                     extra_name='', extra_index=None, overwrite_name='') -> Optional[Node]:
        """
        Print a named declaration and (depending on type_printing) its type.

        The context is printed as a prefix ("Context.name") when possible. Multi word names and local names
            push the context into suffix form instead ("name in Context").

        :return: a context that still has to be printed in suffix form by the caller, or None
        """
        generic_args = None
        if entity.kind == Kind.BoundGenericFunction:
            generic_args = entity.children[1]
            entity = entity.children[0]

        multi_word_name = ' ' in extra_name
        if has_name and entity.children[1].kind == Kind.LocalDeclName:
            multi_word_name = True

        if as_prefix_context and (type_printing != TypePrinting.NO_TYPE or multi_word_name):
            return entity

        postfix_context = None
        context = entity.children[0]
        if self.print_context(context):
            if multi_word_name:
                postfix_context = context
            else:
                pos = len(self.out)
                postfix_context = self.print(context, as_prefix_context=True)
                if len(self.out) != pos:
                    self.out += '.'

        if has_name or overwrite_name:
            if extra_name and multi_word_name:
                self.out += extra_name + ' of '
                extra_name = ''
            pos = len(self.out)
            if overwrite_name:
                self.out += overwrite_name
            else:
                name = entity.children[1]
                if name.kind != Kind.PrivateDeclName:
                    self.print(name)
                private_name = entity.child_of_kind(Kind.PrivateDeclName)
                if private_name is not None:
                    self.print(private_name)
            if len(self.out) != pos and extra_name:
                self.out += '.'

        if extra_name:
            self.out += extra_name
            if extra_index is not None:
                self.out += str(extra_index)

        if type_printing != TypePrinting.NO_TYPE:
            type_child = entity.child_of_kind(Kind.Type)
            if type_child is None:
                self.fail(entity, "Entity has no type")
            typ = type_child.children[0]
            if type_printing == TypePrinting.FUNCTION_STYLE and typ.kind not in _FUNCTION_STYLE_TYPES:
                type_printing = TypePrinting.WITH_COLON

            if type_printing == TypePrinting.WITH_COLON:
                if self.options & DemangleOptions.DISPLAY_ENTITY_TYPES:
                    self.out += ' : '
                    self.print_entity_type(entity, typ, generic_args)
            else:
                if multi_word_name or _need_space_before_type(typ):
                    self.out += ' '
                self.print_entity_type(entity, typ, generic_args)

        if postfix_context is not None and not as_prefix_context:
            if entity.kind in (Kind.DefaultArgumentInitializer, Kind.Initializer):
                self.out += ' of '
            else:
                self.out += ' in '
            self.print(postfix_context)
            postfix_context = None
        return postfix_context

    def print_entity_type(self, entity: Node, typ: Node, generic_args: Optional[Node]):
        label_list = entity.child_of_kind(Kind.LabelList)
        if label_list is not None or generic_args is not None:
            if generic_args is not None:
                self.out += '<'
                self.print_children(generic_args, ', ')
                self.out += '>'
            self.print_function_type(label_list, typ)
        else:
            self.print(typ)

    def print_abstract_storage(self, node: Node, as_prefix_context: bool, extra_name: str) -> Optional[Node]:
        if node.kind == Kind.Variable:
            return self.print_entity(node, as_prefix_context, TypePrinting.WITH_COLON, True, extra_name)
        if node.kind == Kind.Subscript:
            return self.print_entity(node, as_prefix_context, TypePrinting.WITH_COLON, False, extra_name,
                                     overwrite_name='subscript')
        self.fail(node, "Not an abstract storage node")

    # Dispatch

    def print(self, node: Node, as_prefix_context=False) -> Optional[Node]:
        kind = node.kind

        if kind in _DESCRIBED_SYMBOLS:
            self.out += _DESCRIBED_SYMBOLS[kind]
            self.print(node.children[0])
            return None
        if kind in _MARKERS:
            self.out += _MARKERS[kind]
            return None
        if kind in _STORAGE_ACCESSOR_NAMES:
            return self.print_abstract_storage(node.children[0], as_prefix_context, _STORAGE_ACCESSOR_NAMES[kind])
        if kind in _FUNCTION_TYPE_PREFIXES:
            self.out += _FUNCTION_TYPE_PREFIXES[kind]
            self.print_function_type(None, node)
            return None

        show_arg_types = bool(self.options & DemangleOptions.SHOW_FUNCTION_ARGUMENT_TYPES)

        if kind == Kind.Global:
            self.print_children(node)
        elif kind == Kind.Type:
            self.print(node.children[0])
        elif kind == Kind.Suffix:
            if self.options & DemangleOptions.DISPLAY_UNMANGLED_SUFFIX:
                self.out += ' with unmangled suffix ' + _quoted(node.text)

        elif kind in (Kind.Class, Kind.Structure, Kind.Enum, Kind.Protocol, Kind.TypeAlias,
                      Kind.OtherNominalType):
            return self.print_entity(node, as_prefix_context, TypePrinting.NO_TYPE, True)
        elif kind in (Kind.BoundGenericClass, Kind.BoundGenericStructure, Kind.BoundGenericEnum,
                      Kind.BoundGenericProtocol, Kind.BoundGenericOtherNominalType, Kind.BoundGenericTypeAlias):
            self.print_bound_generic(node)
        elif kind == Kind.Extension:
            if self.options & DemangleOptions.QUALIFY_ENTITIES \
                    and self.options & DemangleOptions.DISPLAY_EXTENSION_CONTEXTS:
                self.out += '(extension in '
                self.print(node.children[0], as_prefix_context=True)
                self.out += '):'
            self.print(node.children[1])

        elif kind == Kind.Variable:
            return self.print_entity(node, as_prefix_context, TypePrinting.WITH_COLON, True)
        elif kind in (Kind.Function, Kind.BoundGenericFunction):
            return self.print_entity(node, as_prefix_context, TypePrinting.FUNCTION_STYLE, True)
        elif kind == Kind.Subscript:
            return self.print_entity(node, as_prefix_context, TypePrinting.FUNCTION_STYLE, False,
                                     overwrite_name='subscript')
        elif kind == Kind.GenericTypeParamDecl:
            return self.print_entity(node, as_prefix_context, TypePrinting.NO_TYPE, True)
        elif kind in (Kind.ExplicitClosure, Kind.ImplicitClosure):
            extra_name = 'closure #' if kind == Kind.ExplicitClosure else 'implicit closure #'
            type_printing = TypePrinting.FUNCTION_STYLE if show_arg_types else TypePrinting.NO_TYPE
            return self.print_entity(node, as_prefix_context, type_printing, False, extra_name,
                                     node.children[1].index + 1)
        elif kind == Kind.Initializer:
            return self.print_entity(node, as_prefix_context, TypePrinting.NO_TYPE, False,
                                     'variable initialization expression')
        elif kind == Kind.DefaultArgumentInitializer:
            return self.print_entity(node, as_prefix_context, TypePrinting.NO_TYPE, False, 'default argument ',
                                     node.children[1].index)
        elif kind == Kind.Allocator:
            extra_name = '__allocating_init' if node.children[0].kind == Kind.Class else 'init'
            return self.print_entity(node, as_prefix_context, TypePrinting.FUNCTION_STYLE, False, extra_name)
        elif kind == Kind.Constructor:
            return self.print_entity(node, as_prefix_context, TypePrinting.FUNCTION_STYLE,
                                     len(node.children) > 2, 'init')
        elif kind == Kind.Destructor:
            return self.print_entity(node, as_prefix_context, TypePrinting.NO_TYPE, False, 'deinit')
        elif kind == Kind.Deallocator:
            extra_name = '__deallocating_deinit' if node.children[0].kind == Kind.Class else 'deinit'
            return self.print_entity(node, as_prefix_context, TypePrinting.NO_TYPE, False, extra_name)
        elif kind == Kind.IVarInitializer:
            return self.print_entity(node, as_prefix_context, TypePrinting.NO_TYPE, False, '__ivar_initializer')
        elif kind == Kind.IVarDestroyer:
            return self.print_entity(node, as_prefix_context, TypePrinting.NO_TYPE, False, '__ivar_destroyer')

        elif kind == Kind.TypeMangling:
            if node.children[0].kind == Kind.LabelList:
                self.print_function_type(node.children[0], node.children[1].children[0])
            else:
                self.print(node.children[0])

        elif kind == Kind.Module:
            if self.options & DemangleOptions.DISPLAY_MODULE_NAMES:
                self.out += node.text
        elif kind == Kind.Identifier:
            self.out += node.text
        elif kind in (Kind.Index, Kind.Number):
            self.out += str(node.index)
        elif kind == Kind.LocalDeclName:
            self.print(node.children[1])
            self.out += f' #{node.children[0].index + 1}'
        elif kind == Kind.PrivateDeclName:
            show = self.options & DemangleOptions.SHOW_PRIVATE_DISCRIMINATORS
            if len(node.children) > 1:
                if show:
                    self.out += '('
                self.print(node.children[1])
                if show:
                    self.out += f' in {node.children[0].text})'
            elif show:
                self.out += f'(in {node.children[0].text})'
        elif kind == Kind.RelatedEntityDeclName:
            self.out += f"related decl '{node.text}' for "
            self.print(node.children[0])
        elif kind == Kind.InfixOperator:
            self.out += node.text + ' infix'
        elif kind == Kind.PrefixOperator:
            self.out += node.text + ' prefix'
        elif kind == Kind.PostfixOperator:
            self.out += node.text + ' postfix'

        elif kind == Kind.ArgumentTuple:
            self.print_function_parameters(None, node, show_arg_types)
        elif kind == Kind.ReturnType:
            self.out += ' -> '
            self.print_children(node)
        elif kind == Kind.Tuple:
            self.out += '('
            self.print_children(node, ', ')
            self.out += ')'
        elif kind == Kind.TupleElement:
            name = node.child_of_kind(Kind.TupleElementName)
            if name is not None:
                self.out += name.text + ': '
            typ = node.child_of_kind(Kind.Type)
            if typ is None:
                self.fail(node, "Tuple element has no type")
            self.print(typ)
            if node.child_of_kind(Kind.VariadicMarker) is not None:
                self.out += '...'
        elif kind == Kind.TupleElementName:
            self.out += node.text + ': '
        elif kind == Kind.TypeList:
            self.print_children(node)
        elif kind == Kind.LabelList:
            pass

        elif kind == Kind.BuiltinTypeName:
            self.out += node.text
        elif kind == Kind.DependentGenericParamType:
            self.out += generic_parameter_name(node.children[0].index, node.children[1].index)
        elif kind == Kind.Metatype:
            index = 0
            if len(node.children) == 2:
                self.print(node.children[0])
                self.out += ' '
                index = 1
            typ = node.children[index].children[0]
            self.print_with_parens(typ)
            self.out += '.Protocol' if typ.kind in _EXISTENTIAL_KINDS else '.Type'
        elif kind == Kind.ExistentialMetatype:
            index = 0
            if len(node.children) == 2:
                self.print(node.children[0])
                self.out += ' '
                index = 1
            self.print(node.children[index])
            self.out += '.Type'
        elif kind == Kind.MetatypeRepresentation:
            self.out += node.text
        elif kind == Kind.ProtocolList:
            protocols = node.children[0]
            if not protocols.children:
                self.out += 'Any'
            else:
                self.print_children(protocols, ' & ')
        elif kind == Kind.ProtocolListWithAnyObject:
            protocols = node.children[0].children[0]
            if protocols.children:
                self.print_children(protocols, ' & ')
                self.out += ' & '
            if self.options & DemangleOptions.QUALIFY_ENTITIES:
                self.out += 'Swift.'
            self.out += 'AnyObject'

        elif kind == Kind.SugaredOptional:
            self.print_with_parens(node.children[0])
            self.out += '?'
        elif kind == Kind.SugaredArray:
            self.out += '['
            self.print(node.children[0])
            self.out += ']'
        elif kind == Kind.SugaredDictionary:
            self.out += '['
            self.print(node.children[0])
            self.out += ' : '
            self.print(node.children[1])
            self.out += ']'
        elif kind == Kind.SugaredParen:
            self.out += '('
            self.print(node.children[0])
            self.out += ')'

        elif kind == Kind.ValueWitness:
            self.out += VALUE_WITNESS_CODES[node.index][1] + ' value witness for '
            self.print(node.children[0])
        elif kind == Kind.FieldOffset:
            self.print(node.children[0])
            self.out += 'field offset for '
            self.print(node.children[1])
        elif kind == Kind.Directness:
            self.out += ('direct' if node.index == 0 else 'indirect') + ' '

        else:
            self.fail(node, "Unprintable node kind")
        return None


def print_node(node: Node, options: DemangleOptions = DemangleOptions.DEFAULT) -> str:
    """
    Render a node tree as text.

    :param node: usually the Global node returned by demangle()
    :param options: DemangleOptions flags
    :return: rendered name
    :raises UnmangleableNode: if the tree can't be printed
    """
    try:
        return NodePrinter(options).print_root(node)
    except (IndexError, KeyError, ShapeMismatch) as ex:
        log.debug_more(f'Malformed tree while printing {node.kind.name}: {ex}')
        raise UnmangleableNode(node.kind, f'Malformed node tree: {ex}') from ex
