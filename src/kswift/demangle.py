#
#  ktool | kswift
#  demangle.py
#
#  Swift 5 symbol demangler
#
#  This is a stack machine. Each operator character either pushes a fresh node (identifiers, markers, standard
#       types) or pops the nodes it applies to and pushes the result. 'C' for instance pops a decl name and a
#       context and pushes Type(Class(context, name)). Whatever is left on the stack once the input runs out
#       becomes the children of the Global node.
#
#  Substitutions: identifiers, nominal types and bound generic types are registered in order of completion.
#       'A' + ordinal refers back to them.
#
#  Operators we don't understand fail closed with MalformedMangling.
#
#  This file is part of ktool. ktool is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#
#  Copyright (c) 0cyn 2022.
#
from typing import List, Optional

from kswift.exceptions import MalformedMangling, ShapeMismatch
from kswift.mangling import STDLIB_NAME, MANGLING_MODULE_OBJC, MANGLING_MODULE_CLANG_IMPORTER, \
    OLD_MANGLING_PREFIXES, METATYPE_REPRESENTATIONS, VALUE_WITNESS_INDEX, ACCESSOR_CODES, ADDRESSOR_CODES, \
    MUTABLE_ADDRESSOR_CODES, BUILTIN_TYPE_NAMES, operator_char, is_word_end, is_word_start
from kswift.node import Node, Kind, BOUND_GENERIC_KINDS, is_context, is_decl_name, is_any_generic, is_entity, \
    module, ident, type_node
from kswift.punycode import decode as punycode_decode
from kswift.substitution import SubstitutionTable, lookup_standard_code
from kswift.util import opts

from lib0cyn.log import log

# Entities that never take generic arguments of their own
_NON_GENERIC_ENTITIES = frozenset({
    Kind.Variable, Kind.Subscript, Kind.ImplicitClosure, Kind.ExplicitClosure,
    Kind.DefaultArgumentInitializer, Kind.Initializer,
})

_FUNCTION_ENTITY_KINDS = {
    'D': Kind.Deallocator,
    'd': Kind.Destructor,
    'E': Kind.IVarDestroyer,
    'e': Kind.IVarInitializer,
    'i': Kind.Initializer,
    'C': Kind.Allocator,
    'c': Kind.Constructor,
    'U': Kind.ExplicitClosure,
    'u': Kind.ImplicitClosure,
    'A': Kind.DefaultArgumentInitializer,
}

_SPECIAL_FUNCTION_TYPES = {
    'E': Kind.NoEscapeFunctionType,
    'A': Kind.EscapingAutoClosureType,
    'f': Kind.ThinFunctionType,
    'K': Kind.AutoClosureType,
    'B': Kind.ObjCBlock,
    'C': Kind.CFunctionPointer,
}

_REFERENCE_STORAGE = {
    'o': Kind.Unowned,
    'u': Kind.Unmanaged,
    'w': Kind.Weak,
    'D': Kind.DynamicSelf,
}

_METADATA_KINDS = {
    'a': Kind.TypeMetadataAccessFunction,
    'f': Kind.FullTypeMetadata,
    'n': Kind.NominalTypeDescriptor,
    'm': Kind.Metaclass,
}

_SUGAR_KINDS = {
    'q': Kind.SugaredOptional,
    'a': Kind.SugaredArray,
    'p': Kind.SugaredParen,
}


def _is_digit(c):
    return '0' <= c <= '9'


def _is_lower(c):
    return 'a' <= c <= 'z'


def _is_upper(c):
    return 'A' <= c <= 'Z'


def node_consumes_generic_args(node: Node) -> bool:
    return node.kind not in _NON_GENERIC_ENTITIES


class Demangler:
    """
    Demangles one symbol. Instances are single use; the substitution table and word list belong to the
        mangled name being parsed.
    """

    def __init__(self, text: str):
        self.text = text
        self.pos = 0
        self.stack: List[Node] = []
        self.substitutions = SubstitutionTable()
        self.words: List[str] = []

    # Cursor

    def fail(self, message="Malformed mangling"):
        log.debug(f'{message} in {self.text!r} at {self.pos}')
        raise MalformedMangling(message, self.pos)

    def require(self, value, message="Malformed mangling"):
        if value is None or value is False:
            self.fail(message)
        return value

    def peek(self) -> str:
        if self.pos >= len(self.text):
            return '\0'
        return self.text[self.pos]

    def next_char(self) -> str:
        if self.pos >= len(self.text):
            self.fail("Unexpected end of input")
        c = self.text[self.pos]
        self.pos += 1
        return c

    def next_if(self, s: str) -> bool:
        if self.text.startswith(s, self.pos):
            self.pos += len(s)
            return True
        return False

    def push_back(self):
        self.pos -= 1

    # Stack

    def pop(self, kind: Optional[Kind] = None) -> Optional[Node]:
        if not self.stack:
            return None
        if kind is not None and self.stack[-1].kind != kind:
            return None
        return self.stack.pop()

    def pop_if(self, predicate) -> Optional[Node]:
        if self.stack and predicate(self.stack[-1].kind):
            return self.stack.pop()
        return None

    def pop_module(self) -> Optional[Node]:
        name = self.pop(Kind.Identifier)
        if name is not None:
            return name.with_kind(Kind.Module)
        return self.pop(Kind.Module)

    def pop_context(self) -> Node:
        mod = self.pop_module()
        if mod is not None:
            return mod
        typ = self.pop(Kind.Type)
        if typ is not None:
            child = typ.children[0]
            self.require(is_context(child.kind), f'{child.kind.name} is not a context')
            return child
        return self.require(self.pop_if(is_context), "Expected a context")

    def pop_type(self) -> Node:
        return self.require(self.pop(Kind.Type), "Expected a type")

    def pop_type_and_get_child(self) -> Node:
        return self.pop_type().children[0]

    def pop_type_and_get_any_generic(self) -> Node:
        child = self.pop_type_and_get_child()
        self.require(is_any_generic(child.kind), f'{child.kind.name} is not a nominal type')
        return child

    def pop_decl_name(self) -> Node:
        return self.require(self.pop_if(is_decl_name), "Expected a declaration name")

    def pop_entity(self) -> Node:
        return self.require(self.pop_if(is_entity), "Expected an entity")

    def pop_function_type(self, kind: Kind) -> Node:
        children = []
        throws = self.pop(Kind.ThrowsAnnotation)
        if throws is not None:
            children.append(throws)
        children.append(self.pop_function_params(Kind.ArgumentTuple))
        children.append(self.pop_function_params(Kind.ReturnType))
        return type_node(Node(kind, children))

    def pop_function_params(self, kind: Kind) -> Node:
        if self.pop(Kind.EmptyList) is not None:
            params = type_node(Node(Kind.Tuple))
            # An empty list carries no labels. Index 0 marks that for pop_function_param_labels
            return Node(kind, (params,), 0 if kind == Kind.ArgumentTuple else None)

        params = self.pop_type()
        if kind == Kind.ArgumentTuple:
            inner = params.children[0]
            count = len(inner.children) if inner.kind == Kind.Tuple else 1
            return Node(kind, (params,), count)
        return Node(kind, (params,))

    def pop_function_param_labels(self, typ: Node) -> Optional[Node]:
        if self.pop(Kind.EmptyList) is not None:
            return Node(Kind.LabelList)

        if typ.kind != Kind.Type:
            return None

        func_type = typ.children[0]
        if func_type.kind not in (Kind.FunctionType, Kind.NoEscapeFunctionType):
            return None

        params = func_type.children[0]
        if params.kind == Kind.ThrowsAnnotation:
            params = func_type.children[1]
        self.require(params.kind == Kind.ArgumentTuple)

        if params.index == 0:
            return None

        if params.children[0].children[0].kind != Kind.Tuple:
            return Node(Kind.LabelList)

        labels = []
        for _ in range(params.index):
            label = self.require(self.pop(), "Missing parameter label")
            self.require(label.kind in (Kind.Identifier, Kind.FirstElementMarker), "Bad parameter label")
            labels.append(label)

        if all(label.kind == Kind.FirstElementMarker for label in labels):
            return Node(Kind.LabelList)
        return Node(Kind.LabelList, reversed(labels))

    def pop_tuple(self) -> Node:
        elements = []
        if self.pop(Kind.EmptyList) is None:
            first = False
            while not first:
                first = self.pop(Kind.FirstElementMarker) is not None
                element = []
                variadic = self.pop(Kind.VariadicMarker)
                if variadic is not None:
                    element.append(variadic)
                label = self.pop(Kind.Identifier)
                if label is not None:
                    element.append(Node(Kind.TupleElementName, payload=label.text))
                element.append(self.pop_type())
                elements.insert(0, Node(Kind.TupleElement, element))
        return type_node(Node(Kind.Tuple, elements))

    def pop_type_list(self) -> Node:
        types = []
        if self.pop(Kind.EmptyList) is None:
            first = False
            while not first:
                first = self.pop(Kind.FirstElementMarker) is not None
                types.insert(0, self.pop_type())
        return Node(Kind.TypeList, types)

    def pop_protocol(self) -> Node:
        typ = self.pop(Kind.Type)
        if typ is not None:
            self.require(typ.children[0].kind == Kind.Protocol, "Expected a protocol")
            return typ
        name = self.pop_decl_name()
        context = self.pop_context()
        return type_node(Node(Kind.Protocol, (context, name)))

    # Numbers

    def demangle_natural(self) -> Optional[int]:
        if not _is_digit(self.peek()):
            return None
        start = self.pos
        while _is_digit(self.peek()):
            self.pos += 1
        return int(self.text[start:self.pos])

    def demangle_index(self) -> int:
        if self.next_if('_'):
            return 0
        num = self.demangle_natural()
        if num is not None and self.next_if('_'):
            return num + 1
        self.fail("Bad index")

    def demangle_index_as_node(self) -> Node:
        return Node(Kind.Number, payload=self.demangle_index())

    # Entry points

    def demangle_symbol(self) -> Node:
        for prefix in opts.MANGLING_PREFIXES:
            if self.text.startswith(prefix):
                self.pos = len(prefix)
                break
        else:
            if self.text.startswith(OLD_MANGLING_PREFIXES[0]):
                self.fail("Old-style class and protocol names are not supported")
            if self.text.startswith(OLD_MANGLING_PREFIXES[1]):
                self.fail("Old function type mangling is not supported")
            self.fail("Missing mangling prefix")

        if self.pos >= len(self.text):
            self.fail("Nothing to demangle after the prefix")

        self.parse_and_push_nodes()

        children = []
        for node in self.stack:
            if node.kind == Kind.Type:
                children.append(node.children[0])
            else:
                children.append(node)
        self.require(len(children) > 0, "Nothing to demangle")
        return Node(Kind.Global, children)

    def demangle_type(self) -> Node:
        self.require(len(self.text) > 0, "Nothing to demangle")
        self.parse_and_push_nodes()
        self.require(len(self.stack) == 1, f'Type mangling left {len(self.stack)} nodes')
        return self.stack.pop()

    def parse_and_push_nodes(self):
        while self.pos < len(self.text):
            try:
                node = self.demangle_operator()
            except ShapeMismatch as ex:
                self.fail(f'Malformed node: {ex}')
            self.stack.append(node)
            log.debug_tm(f'Pushed {node!r}')

    def demangle_operator(self) -> Node:
        c = self.next_char()
        handler = _OPERATORS.get(c)
        if handler is not None:
            return handler(self)
        if _is_digit(c):
            self.push_back()
            return self.demangle_identifier()
        self.fail(f'Unsupported operator {c!r}')

    # Operators

    def demangle_multi_substitutions(self) -> Node:
        repeat_count = -1
        while True:
            c = self.next_char()
            if _is_lower(c):
                self.stack.append(self.push_multi_substitutions(repeat_count, ord(c) - ord('a')))
                repeat_count = -1
                continue
            if _is_upper(c):
                return self.push_multi_substitutions(repeat_count, ord(c) - ord('A'))
            if c == '_':
                return self.substitutions.resolve(repeat_count + 27, self.pos)
            self.push_back()
            repeat_count = self.require(self.demangle_natural(), "Bad substitution")

    def push_multi_substitutions(self, repeat_count: int, index: int) -> Node:
        node = self.substitutions.resolve(index, self.pos)
        self.require(repeat_count <= opts.MAX_REPEAT_COUNT, "Repeat count too large")
        for _ in range(repeat_count - 1):
            self.stack.append(node)
        return node

    def demangle_standard_substitution(self) -> Node:
        c = self.next_char()
        if c == 'o':
            return module(MANGLING_MODULE_OBJC)
        if c == 'C':
            return module(MANGLING_MODULE_CLANG_IMPORTER)
        if c == 'g':
            optional = type_node(Node(Kind.BoundGenericEnum, (
                lookup_standard_code('q'),
                Node(Kind.TypeList, (self.pop_type(),))
            )))
            self.substitutions.register(optional)
            return optional

        self.push_back()
        repeat_count = self.demangle_natural()
        if repeat_count is not None:
            self.require(repeat_count <= opts.MAX_REPEAT_COUNT, "Repeat count too large")
        node = self.require(lookup_standard_code(self.next_char()), "Unknown standard substitution")
        for _ in range((repeat_count or 0) - 1):
            self.stack.append(node)
        return node

    def demangle_identifier(self) -> Node:
        has_word_substs = False
        is_punycode = False

        self.require(_is_digit(self.peek()), "Expected an identifier")
        if self.peek() == '0':
            self.next_char()
            if self.peek() == '0':
                self.next_char()
                is_punycode = True
            else:
                has_word_substs = True

        identifier = ''
        while True:
            while has_word_substs and (_is_lower(self.peek()) or _is_upper(self.peek())):
                c = self.next_char()
                if _is_lower(c):
                    word_index = ord(c) - ord('a')
                else:
                    word_index = ord(c) - ord('A')
                    has_word_substs = False
                self.require(word_index < len(self.words) and word_index < opts.MAX_NUM_WORDS,
                             "Unknown word substitution")
                identifier += self.words[word_index]

            if self.next_if('0'):
                break

            num_chars = self.demangle_natural()
            self.require(num_chars is not None and num_chars > 0, "Bad identifier length")
            if is_punycode:
                self.next_if('_')
            self.require(self.pos + num_chars <= len(self.text), "Identifier runs past the end of input")
            chunk = self.text[self.pos:self.pos + num_chars]
            self.pos += num_chars

            if is_punycode:
                identifier += self.require(punycode_decode(chunk), "Bad punycode identifier")
            else:
                identifier += chunk
                self._collect_words(chunk)

            if not has_word_substs:
                break

        self.require(len(identifier) > 0, "Empty identifier")
        node = ident(identifier)
        self.substitutions.register(node)
        return node

    def _collect_words(self, chunk: str):
        word_start = -1
        for i in range(len(chunk) + 1):
            c = chunk[i] if i < len(chunk) else '\0'
            if word_start >= 0 and is_word_end(c, chunk[i - 1]):
                if i - word_start >= 2 and len(self.words) < opts.MAX_NUM_WORDS:
                    self.words.append(chunk[word_start:i])
                word_start = -1
            if word_start < 0 and is_word_start(c):
                word_start = i

    def demangle_operator_identifier(self) -> Node:
        name = self.require(self.pop(Kind.Identifier), "Expected an operator name")
        op = ''
        for c in name.text:
            op += self.require(operator_char(c), f'Bad operator character {c!r}')

        c = self.next_char()
        if c == 'i':
            return Node(Kind.InfixOperator, payload=op)
        if c == 'p':
            return Node(Kind.PrefixOperator, payload=op)
        if c == 'P':
            return Node(Kind.PostfixOperator, payload=op)
        self.fail("Bad operator fixity")

    def demangle_local_identifier(self) -> Node:
        if self.next_if('L'):
            discriminator = self.require(self.pop(Kind.Identifier), "Expected a discriminator")
            name = self.pop_decl_name()
            return Node(Kind.PrivateDeclName, (discriminator, name))
        if self.next_if('l'):
            discriminator = self.require(self.pop(Kind.Identifier), "Expected a discriminator")
            return Node(Kind.PrivateDeclName, (discriminator,))
        c = self.peek()
        if 'a' <= c <= 'j' or 'A' <= c <= 'J':
            self.next_char()
            name = self.pop_decl_name()
            return Node(Kind.RelatedEntityDeclName, (name,), c)
        discriminator = self.demangle_index_as_node()
        name = self.pop_decl_name()
        return Node(Kind.LocalDeclName, (discriminator, name))

    def demangle_builtin_type(self) -> Node:
        c = self.next_char()
        if c in BUILTIN_TYPE_NAMES:
            name = BUILTIN_TYPE_NAMES[c]
        elif c in ('f', 'i', 'v'):
            size = self.demangle_index() - 1
            self.require(0 < size < opts.MAX_BUILTIN_TYPE_SIZE, "Bad builtin type size")
            if c == 'f':
                name = f'Builtin.FPIEEE{size}'
            elif c == 'i':
                name = f'Builtin.Int{size}'
            else:
                element = self.pop_type_and_get_child()
                self.require(element.kind == Kind.BuiltinTypeName and element.text.startswith('Builtin.'),
                             "Vector element must be a builtin type")
                name = f'Builtin.Vec{size}x{element.text[len("Builtin."):]}'
        else:
            self.fail(f'Unknown builtin type {c!r}')
        return type_node(Node(Kind.BuiltinTypeName, payload=name))

    def demangle_any_generic_type(self, kind: Kind) -> Node:
        name = self.pop_decl_name()
        context = self.pop_context()
        typ = type_node(Node(kind, (context, name)))
        self.substitutions.register(typ)
        return typ

    def demangle_type_mangling(self) -> Node:
        typ = self.pop_type()
        labels = self.pop_function_param_labels(typ)
        if labels is not None:
            return Node(Kind.TypeMangling, (labels, typ))
        return Node(Kind.TypeMangling, (typ,))

    def demangle_extension_context(self) -> Node:
        mod = self.require(self.pop_module(), "Expected the extension's module")
        extended = self.pop_type_and_get_any_generic()
        return Node(Kind.Extension, (mod, extended))

    def demangle_plain_function(self) -> Node:
        typ = self.pop_function_type(Kind.FunctionType)
        labels = self.pop_function_param_labels(typ)
        name = self.pop_decl_name()
        context = self.pop_context()
        if labels is not None:
            return Node(Kind.Function, (context, name, labels, typ))
        return Node(Kind.Function, (context, name, typ))

    def demangle_bound_generic_type(self) -> Node:
        type_lists = []
        while True:
            types = []
            while True:
                typ = self.pop(Kind.Type)
                if typ is None:
                    break
                types.append(typ)
            type_lists.append(Node(Kind.TypeList, reversed(types)))
            if self.pop(Kind.EmptyList) is not None:
                break
            self.require(self.pop(Kind.FirstElementMarker), "Expected a generic argument list separator")

        nominal = self.pop_type_and_get_any_generic()
        bound = type_node(self.demangle_bound_generic_args(nominal, type_lists, 0))
        self.substitutions.register(bound)
        return bound

    def demangle_bound_generic_args(self, nominal: Node, type_lists: List[Node], index: int) -> Node:
        self.require(index < len(type_lists), "Too few generic argument lists")
        self.require(len(nominal.children) > 0, f'{nominal.kind.name} cannot take generic arguments')

        context = nominal.children[0]
        consumes = node_consumes_generic_args(nominal)
        args = type_lists[index]
        if consumes:
            index += 1

        if index < len(type_lists):
            if context.kind == Kind.Extension:
                parent = self.demangle_bound_generic_args(context.children[1], type_lists, index)
                parent = Node(Kind.Extension, (context.children[0], parent))
            else:
                parent = self.demangle_bound_generic_args(context, type_lists, index)
            nominal = nominal.with_children((parent,) + nominal.children[1:])

        if not consumes or not args.children:
            return nominal

        if nominal.kind in BOUND_GENERIC_KINDS:
            kind = BOUND_GENERIC_KINDS[nominal.kind]
        elif nominal.kind in (Kind.Function, Kind.Constructor):
            return Node(Kind.BoundGenericFunction, (nominal, args))
        else:
            self.fail(f'{nominal.kind.name} cannot be specialized')
        return Node(kind, (type_node(nominal), args))

    def demangle_metatype(self) -> Node:
        c = self.next_char()
        if c in _METADATA_KINDS:
            return Node(_METADATA_KINDS[c], (self.pop_type(),))
        if c == 'p':
            return Node(Kind.ProtocolDescriptor, (self.pop_protocol(),))
        self.fail(f'Unsupported metadata symbol M{c}')

    def demangle_witness(self) -> Node:
        c = self.next_char()
        if c == 'C':
            return Node(Kind.EnumCase, (self.pop_entity(),))
        if c == 'V':
            return Node(Kind.ValueWitnessTable, (self.pop_type(),))
        if c == 'v':
            d = self.next_char()
            if d not in ('d', 'i'):
                self.fail("Bad field offset directness")
            directness = Node(Kind.Directness, payload=0 if d == 'd' else 1)
            return Node(Kind.FieldOffset, (directness, self.pop_entity()))
        self.fail(f'Unsupported witness W{c}')

    def demangle_metatype_representation(self) -> Node:
        c = self.next_char()
        rep = self.require(METATYPE_REPRESENTATIONS.get(c), "Bad metatype representation")
        return Node(Kind.MetatypeRepresentation, payload=rep)

    def demangle_special_type(self) -> Node:
        c = self.next_char()
        if c in _SPECIAL_FUNCTION_TYPES:
            return self.pop_function_type(_SPECIAL_FUNCTION_TYPES[c])
        if c in _REFERENCE_STORAGE:
            return type_node(Node(_REFERENCE_STORAGE[c], (self.pop_type(),)))
        if c == 'M' or c == 'm':
            rep = self.demangle_metatype_representation()
            kind = Kind.Metatype if c == 'M' else Kind.ExistentialMetatype
            return type_node(Node(kind, (rep, self.pop_type())))
        if c == 'p':
            return type_node(Node(Kind.ExistentialMetatype, (self.pop_type(),)))
        if c == 'l':
            return type_node(Node(Kind.ProtocolListWithAnyObject, (self.demangle_protocol_list(),)))
        if c == 'Y':
            return self.demangle_any_generic_type(Kind.OtherNominalType)
        if c == 'e':
            return type_node(Node(Kind.ErrorType))
        if c == 'S':
            s = self.next_char()
            if s in _SUGAR_KINDS:
                return type_node(Node(_SUGAR_KINDS[s], (self.pop_type(),)))
            if s == 'D':
                value = self.pop_type()
                key = self.pop_type()
                return type_node(Node(Kind.SugaredDictionary, (key, value)))
            self.fail(f'Unsupported sugared type XS{s}')
        self.fail(f'Unsupported special type X{c}')

    def demangle_protocol_list(self) -> Node:
        protocols = []
        if self.pop(Kind.EmptyList) is None:
            first = False
            while not first:
                first = self.pop(Kind.FirstElementMarker) is not None
                protocols.append(self.pop_protocol())
            protocols.reverse()
        return Node(Kind.ProtocolList, (Node(Kind.TypeList, protocols),))

    def demangle_protocol_list_type(self) -> Node:
        return type_node(self.demangle_protocol_list())

    def demangle_generic_param_index(self) -> Node:
        if self.next_if('d'):
            depth = self.demangle_index() + 1
            index = self.demangle_index()
        elif self.next_if('z'):
            depth, index = 0, 0
        else:
            depth, index = 0, self.demangle_index() + 1
        return dependent_generic_param_type(depth, index)

    def demangle_function_entity(self) -> Node:
        c = self.next_char()
        if c == 'p':
            return self.demangle_entity(Kind.GenericTypeParamDecl)
        kind = self.require(_FUNCTION_ENTITY_KINDS.get(c), f'Unsupported function entity f{c}')

        children = []
        if c in ('C', 'c'):
            private_name = self.pop(Kind.PrivateDeclName)
            typ = self.pop_type()
            labels = self.pop_function_param_labels(typ)
            if labels is not None:
                children.append(labels)
            children.append(typ)
            if private_name is not None:
                children.append(private_name)
        elif c in ('U', 'u'):
            index = self.demangle_index_as_node()
            children += [index, self.pop_type()]
        elif c == 'A':
            children.append(self.demangle_index_as_node())

        children.insert(0, self.pop_context())
        return Node(kind, children)

    def demangle_entity(self, kind: Kind) -> Node:
        typ = self.pop_type()
        labels = self.pop_function_param_labels(typ)
        name = self.pop_decl_name()
        context = self.pop_context()
        if labels is not None:
            return Node(kind, (context, name, labels, typ))
        return Node(kind, (context, name, typ))

    def demangle_accessor(self, child: Node) -> Node:
        c = self.next_char()
        if c == 'p':
            return child
        if c in ACCESSOR_CODES:
            kind = ACCESSOR_CODES[c]
        elif c == 'a':
            kind = self.require(MUTABLE_ADDRESSOR_CODES.get(self.next_char()), "Bad addressor")
        elif c == 'l':
            kind = self.require(ADDRESSOR_CODES.get(self.next_char()), "Bad addressor")
        else:
            self.fail(f'Unsupported accessor {c!r}')
        return Node(kind, (child,))

    def demangle_variable(self) -> Node:
        return self.demangle_accessor(self.demangle_entity(Kind.Variable))

    def demangle_subscript(self) -> Node:
        private_name = self.pop(Kind.PrivateDeclName)
        typ = self.pop_type()
        labels = self.require(self.pop_function_param_labels(typ), "Subscript needs a label list")
        context = self.pop_context()
        children = [context, labels, typ]
        if private_name is not None:
            children.append(private_name)
        return self.demangle_accessor(Node(Kind.Subscript, children))

    def demangle_value_witness(self) -> Node:
        code = self.next_char() + self.next_char()
        index = self.require(VALUE_WITNESS_INDEX.get(code), f'Unknown value witness {code!r}')
        return Node(Kind.ValueWitness, (self.pop_type(),), index)

    def demangle_suffix(self) -> Node:
        self.push_back()
        suffix = Node(Kind.Suffix, payload=self.text[self.pos:])
        self.pos = len(self.text)
        return suffix


def dependent_generic_param_type(depth: int, index: int) -> Node:
    return Node(Kind.DependentGenericParamType, (
        Node(Kind.Index, payload=depth),
        Node(Kind.Index, payload=index),
    ))


def _simple(kind):
    return lambda d: Node(kind)


def _wrapping_type(kind):
    return lambda d: Node(kind, (d.pop_type(),))


def _wrapping_type_child(kind):
    return lambda d: type_node(Node(kind, (d.pop_type_and_get_child(),)))


_OPERATORS = {
    'A': Demangler.demangle_multi_substitutions,
    'B': Demangler.demangle_builtin_type,
    'C': lambda d: d.demangle_any_generic_type(Kind.Class),
    'D': Demangler.demangle_type_mangling,
    'E': Demangler.demangle_extension_context,
    'F': Demangler.demangle_plain_function,
    'G': Demangler.demangle_bound_generic_type,
    'K': _simple(Kind.ThrowsAnnotation),
    'L': Demangler.demangle_local_identifier,
    'M': Demangler.demangle_metatype,
    'N': _wrapping_type(Kind.TypeMetadata),
    'O': lambda d: d.demangle_any_generic_type(Kind.Enum),
    'P': lambda d: d.demangle_any_generic_type(Kind.Protocol),
    'S': Demangler.demangle_standard_substitution,
    'V': lambda d: d.demangle_any_generic_type(Kind.Structure),
    'W': Demangler.demangle_witness,
    'X': Demangler.demangle_special_type,
    'Z': lambda d: Node(Kind.Static, (d.pop_entity(),)),
    'a': lambda d: d.demangle_any_generic_type(Kind.TypeAlias),
    'c': lambda d: d.pop_function_type(Kind.FunctionType),
    'd': _simple(Kind.VariadicMarker),
    'f': Demangler.demangle_function_entity,
    'h': _wrapping_type_child(Kind.Shared),
    'i': Demangler.demangle_subscript,
    'm': lambda d: type_node(Node(Kind.Metatype, (d.pop_type(),))),
    'n': _wrapping_type_child(Kind.Owned),
    'o': Demangler.demangle_operator_identifier,
    'p': Demangler.demangle_protocol_list_type,
    'q': lambda d: type_node(d.demangle_generic_param_index()),
    's': lambda d: module(STDLIB_NAME),
    't': Demangler.pop_tuple,
    'v': Demangler.demangle_variable,
    'w': Demangler.demangle_value_witness,
    'x': lambda d: type_node(dependent_generic_param_type(0, 0)),
    'y': _simple(Kind.EmptyList),
    'z': _wrapping_type_child(Kind.InOut),
    '_': _simple(Kind.FirstElementMarker),
    '.': Demangler.demangle_suffix,
}


def demangle(text: str) -> Node:
    """
    Demangle a full symbol ($s...) into a Global node.

    :param text: mangled symbol
    :return: Global node
    :raises MalformedMangling: on any grammar violation
    """
    return Demangler(text).demangle_symbol()


def demangle_type(text: str) -> Node:
    """
    Demangle a bare type mangling (no prefix), e.g. 'SaySiG'.

    :param text:
    :return: the type node
    """
    return Demangler(text).demangle_type()
