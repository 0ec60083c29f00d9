#
#  ktool | kswift
#  node.py
#
#  Node model for demangled names.
#
#  A demangled symbol is a tree of Nodes. Every node carries a Kind, an ordered tuple of children, and
#       optionally a text or integer payload. Which payload a kind carries, how many children it takes, and
#       which grammar groups it belongs to (context, decl name, nominal, ...) all live in one catalogue
#       (KIND_INFO), so shape checks and predicates are plain table lookups.
#
#  Nodes are immutable. Trees may share subtrees freely, since nothing can mutate them.
#
#  This file is part of ktool. ktool is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#
#  Copyright (c) 0cyn 2022.
#

from enum import Enum, IntFlag
from typing import Iterator, Optional, Tuple, Union

from kswift.exceptions import ShapeMismatch


class PayloadShape(Enum):
    NONE = 0
    TEXT = 1
    INDEX = 2


class KindFlag(IntFlag):
    NONE = 0
    CONTEXT = 1
    SUBSTITUTABLE = 2
    ENTITY = 4
    DECL_NAME = 8
    ANY_GENERIC = 16


class Kind(Enum):
    Global = 0
    Type = 1
    Suffix = 2

    # names
    Module = 10
    Identifier = 11
    LocalDeclName = 12
    PrivateDeclName = 13
    RelatedEntityDeclName = 14
    PrefixOperator = 15
    PostfixOperator = 16
    InfixOperator = 17
    Number = 18
    Index = 19

    # nominal types
    Structure = 30
    Class = 31
    Enum = 32
    Protocol = 33
    TypeAlias = 34
    OtherNominalType = 35
    Extension = 36

    BoundGenericStructure = 40
    BoundGenericClass = 41
    BoundGenericEnum = 42
    BoundGenericProtocol = 43
    BoundGenericTypeAlias = 44
    BoundGenericOtherNominalType = 45
    BoundGenericFunction = 46

    # entities
    Function = 50
    Variable = 51
    Subscript = 52
    Static = 53
    Allocator = 54
    Constructor = 55
    Destructor = 56
    Deallocator = 57
    Initializer = 58
    IVarInitializer = 59
    IVarDestroyer = 60
    ExplicitClosure = 61
    ImplicitClosure = 62
    DefaultArgumentInitializer = 63
    GenericTypeParamDecl = 64

    # accessors
    Getter = 70
    Setter = 71
    MaterializeForSet = 72
    GlobalGetter = 73
    WillSet = 74
    DidSet = 75
    ReadAccessor = 76
    ModifyAccessor = 77
    OwningAddressor = 78
    NativeOwningAddressor = 79
    NativePinningAddressor = 80
    UnsafeAddressor = 81
    OwningMutableAddressor = 82
    NativeOwningMutableAddressor = 83
    NativePinningMutableAddressor = 84
    UnsafeMutableAddressor = 85

    # function types
    FunctionType = 90
    NoEscapeFunctionType = 91
    EscapingAutoClosureType = 92
    AutoClosureType = 93
    ThinFunctionType = 94
    ObjCBlock = 95
    CFunctionPointer = 96
    ArgumentTuple = 97
    ReturnType = 98
    ThrowsAnnotation = 99

    # lists
    TypeList = 110
    Tuple = 111
    TupleElement = 112
    TupleElementName = 113
    VariadicMarker = 114
    EmptyList = 115
    FirstElementMarker = 116
    LabelList = 117

    # other types
    Weak = 120
    Unowned = 121
    Unmanaged = 122
    DynamicSelf = 123
    InOut = 124
    Shared = 125
    Owned = 126
    Metatype = 127
    ExistentialMetatype = 128
    MetatypeRepresentation = 129
    ProtocolList = 130
    ProtocolListWithAnyObject = 131
    ErrorType = 132
    SugaredOptional = 133
    SugaredArray = 134
    SugaredDictionary = 135
    SugaredParen = 136
    BuiltinTypeName = 137
    DependentGenericParamType = 138

    # global symbols
    TypeMangling = 150
    TypeMetadata = 151
    TypeMetadataAccessFunction = 152
    FullTypeMetadata = 153
    NominalTypeDescriptor = 154
    Metaclass = 155
    ProtocolDescriptor = 156
    ValueWitnessTable = 157
    ValueWitness = 158
    EnumCase = 159
    FieldOffset = 160
    Directness = 161


class KindInfo:
    def __init__(self, payload=PayloadShape.NONE, min_children=0, max_children=0, flags=KindFlag.NONE):
        self.payload = payload
        self.min_children = min_children
        # None means unbounded
        self.max_children = max_children
        self.flags = flags
        # positional child kinds, filled in from CHILD_SLOTS
        self.child_slots = None


_T = PayloadShape.TEXT
_I = PayloadShape.INDEX
_N = PayloadShape.NONE

_CTX = KindFlag.CONTEXT | KindFlag.ENTITY
_SUB = KindFlag.SUBSTITUTABLE
_DECL = KindFlag.DECL_NAME
_GENERIC = KindFlag.ANY_GENERIC | _CTX | _SUB


def _info(payload=_N, min_children=0, max_children=0, flags=KindFlag.NONE):
    return KindInfo(payload, min_children, max_children, flags)


KIND_INFO = {
    Kind.Global: _info(_N, 1, None),
    Kind.Type: _info(_N, 1, 1, KindFlag.ENTITY | _SUB),
    Kind.Suffix: _info(_T),

    Kind.Module: _info(_T, flags=_CTX | _SUB),
    Kind.Identifier: _info(_T, flags=_DECL | _SUB),
    Kind.LocalDeclName: _info(_N, 2, 2, _DECL),
    Kind.PrivateDeclName: _info(_N, 1, 2, _DECL),
    Kind.RelatedEntityDeclName: _info(_T, 1, 1, _DECL),
    Kind.PrefixOperator: _info(_T, flags=_DECL | _SUB),
    Kind.PostfixOperator: _info(_T, flags=_DECL | _SUB),
    Kind.InfixOperator: _info(_T, flags=_DECL | _SUB),
    Kind.Number: _info(_I),
    Kind.Index: _info(_I),

    Kind.Structure: _info(_N, 2, 2, _GENERIC),
    Kind.Class: _info(_N, 2, 2, _GENERIC),
    Kind.Enum: _info(_N, 2, 2, _GENERIC),
    Kind.Protocol: _info(_N, 2, 2, _GENERIC),
    Kind.TypeAlias: _info(_N, 2, 2, _GENERIC),
    Kind.OtherNominalType: _info(_N, 2, 2, _GENERIC),
    Kind.Extension: _info(_N, 2, 2, _CTX),

    Kind.BoundGenericStructure: _info(_N, 2, 2, _SUB),
    Kind.BoundGenericClass: _info(_N, 2, 2, _SUB),
    Kind.BoundGenericEnum: _info(_N, 2, 2, _SUB),
    Kind.BoundGenericProtocol: _info(_N, 2, 2, _SUB),
    Kind.BoundGenericTypeAlias: _info(_N, 2, 2, _SUB),
    Kind.BoundGenericOtherNominalType: _info(_N, 2, 2, _SUB),
    Kind.BoundGenericFunction: _info(_N, 2, 2, _SUB),

    Kind.Function: _info(_N, 3, 4, _CTX),
    Kind.Variable: _info(_N, 3, 4, _CTX),
    Kind.Subscript: _info(_N, 2, 4, _CTX),
    Kind.Static: _info(_N, 1, 1, _CTX),
    Kind.Allocator: _info(_N, 2, 4, _CTX),
    Kind.Constructor: _info(_N, 2, 4, _CTX),
    Kind.Destructor: _info(_N, 1, 1, _CTX),
    Kind.Deallocator: _info(_N, 1, 1, _CTX),
    Kind.Initializer: _info(_N, 1, 1, _CTX),
    Kind.IVarInitializer: _info(_N, 1, 1, _CTX),
    Kind.IVarDestroyer: _info(_N, 1, 1, _CTX),
    Kind.ExplicitClosure: _info(_N, 3, 3, _CTX),
    Kind.ImplicitClosure: _info(_N, 3, 3, _CTX),
    Kind.DefaultArgumentInitializer: _info(_N, 2, 2, _CTX),
    Kind.GenericTypeParamDecl: _info(_N, 3, 4),

    Kind.Getter: _info(_N, 1, 1, _CTX),
    Kind.Setter: _info(_N, 1, 1, _CTX),
    Kind.MaterializeForSet: _info(_N, 1, 1, _CTX),
    Kind.GlobalGetter: _info(_N, 1, 1, _CTX),
    Kind.WillSet: _info(_N, 1, 1, _CTX),
    Kind.DidSet: _info(_N, 1, 1, _CTX),
    Kind.ReadAccessor: _info(_N, 1, 1, _CTX),
    Kind.ModifyAccessor: _info(_N, 1, 1, _CTX),
    Kind.OwningAddressor: _info(_N, 1, 1, _CTX),
    Kind.NativeOwningAddressor: _info(_N, 1, 1, _CTX),
    Kind.NativePinningAddressor: _info(_N, 1, 1, _CTX),
    Kind.UnsafeAddressor: _info(_N, 1, 1, _CTX),
    Kind.OwningMutableAddressor: _info(_N, 1, 1, _CTX),
    Kind.NativeOwningMutableAddressor: _info(_N, 1, 1, _CTX),
    Kind.NativePinningMutableAddressor: _info(_N, 1, 1, _CTX),
    Kind.UnsafeMutableAddressor: _info(_N, 1, 1, _CTX),

    Kind.FunctionType: _info(_N, 2, 3),
    Kind.NoEscapeFunctionType: _info(_N, 2, 3),
    Kind.EscapingAutoClosureType: _info(_N, 2, 3),
    Kind.AutoClosureType: _info(_N, 2, 3),
    Kind.ThinFunctionType: _info(_N, 2, 3),
    Kind.ObjCBlock: _info(_N, 2, 3),
    Kind.CFunctionPointer: _info(_N, 2, 3),
    Kind.ArgumentTuple: _info(_I, 1, 1),
    Kind.ReturnType: _info(_N, 1, 1),
    Kind.ThrowsAnnotation: _info(),

    Kind.TypeList: _info(_N, 0, None),
    Kind.Tuple: _info(_N, 0, None),
    Kind.TupleElement: _info(_N, 1, 3),
    Kind.TupleElementName: _info(_T, flags=_SUB),
    Kind.VariadicMarker: _info(),
    Kind.EmptyList: _info(),
    Kind.FirstElementMarker: _info(),
    Kind.LabelList: _info(_N, 0, None),

    Kind.Weak: _info(_N, 1, 1),
    Kind.Unowned: _info(_N, 1, 1),
    Kind.Unmanaged: _info(_N, 1, 1),
    Kind.DynamicSelf: _info(_N, 1, 1),
    Kind.InOut: _info(_N, 1, 1),
    Kind.Shared: _info(_N, 1, 1),
    Kind.Owned: _info(_N, 1, 1),
    Kind.Metatype: _info(_N, 1, 2),
    Kind.ExistentialMetatype: _info(_N, 1, 2),
    Kind.MetatypeRepresentation: _info(_T),
    Kind.ProtocolList: _info(_N, 1, 1),
    Kind.ProtocolListWithAnyObject: _info(_N, 1, 1),
    Kind.ErrorType: _info(),
    Kind.SugaredOptional: _info(_N, 1, 1),
    Kind.SugaredArray: _info(_N, 1, 1),
    Kind.SugaredDictionary: _info(_N, 2, 2),
    Kind.SugaredParen: _info(_N, 1, 1),
    Kind.BuiltinTypeName: _info(_T),
    Kind.DependentGenericParamType: _info(_N, 2, 2),

    Kind.TypeMangling: _info(_N, 1, 2),
    Kind.TypeMetadata: _info(_N, 1, 1),
    Kind.TypeMetadataAccessFunction: _info(_N, 1, 1),
    Kind.FullTypeMetadata: _info(_N, 1, 1),
    Kind.NominalTypeDescriptor: _info(_N, 1, 1),
    Kind.Metaclass: _info(_N, 1, 1),
    Kind.ProtocolDescriptor: _info(_N, 1, 1),
    Kind.ValueWitnessTable: _info(_N, 1, 1),
    Kind.ValueWitness: _info(_I, 1, 1),
    Kind.EnumCase: _info(_N, 1, 1),
    Kind.FieldOffset: _info(_N, 2, 2),
    Kind.Directness: _info(_I),
}


# Kinds the grammar wraps in bound generic nodes once generic arguments are applied
BOUND_GENERIC_KINDS = {
    Kind.Class: Kind.BoundGenericClass,
    Kind.Structure: Kind.BoundGenericStructure,
    Kind.Enum: Kind.BoundGenericEnum,
    Kind.Protocol: Kind.BoundGenericProtocol,
    Kind.OtherNominalType: Kind.BoundGenericOtherNominalType,
    Kind.TypeAlias: Kind.BoundGenericTypeAlias,
}

FUNCTION_TYPE_KINDS = frozenset({
    Kind.FunctionType, Kind.NoEscapeFunctionType, Kind.EscapingAutoClosureType, Kind.AutoClosureType,
    Kind.ThinFunctionType, Kind.ObjCBlock, Kind.CFunctionPointer,
})


def _flagged(flag):
    return frozenset(kind for kind, info in KIND_INFO.items() if info.flags & flag)


CONTEXT_KINDS = _flagged(KindFlag.CONTEXT)
SUBSTITUTABLE_KINDS = _flagged(KindFlag.SUBSTITUTABLE)
ENTITY_KINDS = _flagged(KindFlag.ENTITY)
DECL_NAME_KINDS = _flagged(KindFlag.DECL_NAME)
ANY_GENERIC_KINDS = _flagged(KindFlag.ANY_GENERIC)


def is_context(kind: Kind) -> bool:
    return kind in CONTEXT_KINDS


def is_substitutable(kind: Kind) -> bool:
    return kind in SUBSTITUTABLE_KINDS


def is_entity(kind: Kind) -> bool:
    return kind in ENTITY_KINDS


def is_decl_name(kind: Kind) -> bool:
    return kind in DECL_NAME_KINDS


def is_any_generic(kind: Kind) -> bool:
    return kind in ANY_GENERIC_KINDS


def is_function_type(kind: Kind) -> bool:
    return kind in FUNCTION_TYPE_KINDS


class ChildSlot:
    """
    One position in a kind's child list. `kinds` of None accepts any kind.

    Optional slots may be skipped, repeated slots take every following child they accept.
    """

    def __init__(self, kinds=None, optional=False, repeated=False):
        self.kinds = frozenset(kinds) if kinds is not None else None
        self.optional = optional
        self.repeated = repeated

    def accepts(self, kind: Kind) -> bool:
        return self.kinds is None or kind in self.kinds


BOUND_GENERIC_NODE_KINDS = frozenset(BOUND_GENERIC_KINDS.values()) | {Kind.BoundGenericFunction}

# A bound generic parent stands in for the nominal or function it specializes
CONTEXT_CHILD_KINDS = CONTEXT_KINDS | BOUND_GENERIC_NODE_KINDS

# Kinds a Type node may wrap
TYPE_KINDS = ANY_GENERIC_KINDS | frozenset(BOUND_GENERIC_KINDS.values()) | FUNCTION_TYPE_KINDS | frozenset({
    Kind.Tuple, Kind.BuiltinTypeName, Kind.DependentGenericParamType, Kind.Metatype, Kind.ExistentialMetatype,
    Kind.ProtocolList, Kind.ProtocolListWithAnyObject, Kind.ErrorType, Kind.SugaredOptional, Kind.SugaredArray,
    Kind.SugaredDictionary, Kind.SugaredParen, Kind.Weak, Kind.Unowned, Kind.Unmanaged, Kind.DynamicSelf,
    Kind.InOut, Kind.Shared, Kind.Owned,
})

ACCESSOR_KINDS = frozenset({
    Kind.Getter, Kind.Setter, Kind.MaterializeForSet, Kind.GlobalGetter, Kind.WillSet, Kind.DidSet,
    Kind.ReadAccessor, Kind.ModifyAccessor, Kind.OwningAddressor, Kind.NativeOwningAddressor,
    Kind.NativePinningAddressor, Kind.UnsafeAddressor, Kind.OwningMutableAddressor,
    Kind.NativeOwningMutableAddressor, Kind.NativePinningMutableAddressor, Kind.UnsafeMutableAddressor,
})

_TYPE = ChildSlot({Kind.Type})
_CONTEXT = ChildSlot(CONTEXT_CHILD_KINDS)
_NAME = ChildSlot(DECL_NAME_KINDS)
_ENTITY = ChildSlot(ENTITY_KINDS)
_NUMBER = ChildSlot({Kind.Number})
_TYPE_LIST = ChildSlot({Kind.TypeList})
_LABELS = ChildSlot({Kind.LabelList}, optional=True)
_PRIVATE_NAME = ChildSlot({Kind.PrivateDeclName}, optional=True)

_NOMINAL_CHILDREN = (_CONTEXT, _NAME)
_ENTITY_CHILDREN = (_CONTEXT, _NAME, _LABELS, _TYPE)
_CONSTRUCTOR_CHILDREN = (_CONTEXT, _LABELS, _TYPE, _PRIVATE_NAME)
_FUNCTION_TYPE_CHILDREN = (ChildSlot({Kind.ThrowsAnnotation}, optional=True), ChildSlot({Kind.ArgumentTuple}),
                           ChildSlot({Kind.ReturnType}))
_METATYPE_CHILDREN = (ChildSlot({Kind.MetatypeRepresentation}, optional=True), _TYPE)

CHILD_SLOTS = {
    Kind.Global: (ChildSlot(repeated=True),),
    Kind.Type: (ChildSlot(TYPE_KINDS),),

    Kind.LocalDeclName: (_NUMBER, _NAME),
    Kind.PrivateDeclName: (ChildSlot({Kind.Identifier}), ChildSlot(DECL_NAME_KINDS, optional=True)),
    Kind.RelatedEntityDeclName: (_NAME,),

    Kind.Extension: (ChildSlot({Kind.Module}), ChildSlot(ANY_GENERIC_KINDS | BOUND_GENERIC_NODE_KINDS)),
    Kind.BoundGenericFunction: (ChildSlot({Kind.Function, Kind.Constructor}), _TYPE_LIST),

    Kind.Function: _ENTITY_CHILDREN,
    Kind.Variable: _ENTITY_CHILDREN,
    Kind.GenericTypeParamDecl: _ENTITY_CHILDREN,
    Kind.Subscript: _CONSTRUCTOR_CHILDREN,
    Kind.Allocator: _CONSTRUCTOR_CHILDREN,
    Kind.Constructor: _CONSTRUCTOR_CHILDREN,
    Kind.Static: (_ENTITY,),
    Kind.Destructor: (_CONTEXT,),
    Kind.Deallocator: (_CONTEXT,),
    Kind.Initializer: (_CONTEXT,),
    Kind.IVarInitializer: (_CONTEXT,),
    Kind.IVarDestroyer: (_CONTEXT,),
    Kind.ExplicitClosure: (_CONTEXT, _NUMBER, _TYPE),
    Kind.ImplicitClosure: (_CONTEXT, _NUMBER, _TYPE),
    Kind.DefaultArgumentInitializer: (_CONTEXT, _NUMBER),

    Kind.ArgumentTuple: (_TYPE,),
    Kind.ReturnType: (_TYPE,),
    Kind.TypeList: (ChildSlot({Kind.Type}, repeated=True),),
    Kind.Tuple: (ChildSlot({Kind.TupleElement}, repeated=True),),
    Kind.TupleElement: (ChildSlot({Kind.VariadicMarker}, optional=True),
                        ChildSlot({Kind.TupleElementName}, optional=True), _TYPE),
    Kind.LabelList: (ChildSlot({Kind.Identifier, Kind.FirstElementMarker}, repeated=True),),

    Kind.Weak: (_TYPE,),
    Kind.Unowned: (_TYPE,),
    Kind.Unmanaged: (_TYPE,),
    Kind.DynamicSelf: (_TYPE,),
    # these wrap the type itself, not its Type node
    Kind.InOut: (ChildSlot(TYPE_KINDS),),
    Kind.Shared: (ChildSlot(TYPE_KINDS),),
    Kind.Owned: (ChildSlot(TYPE_KINDS),),
    Kind.Metatype: _METATYPE_CHILDREN,
    Kind.ExistentialMetatype: _METATYPE_CHILDREN,
    Kind.ProtocolList: (_TYPE_LIST,),
    Kind.ProtocolListWithAnyObject: (ChildSlot({Kind.ProtocolList}),),
    Kind.SugaredOptional: (_TYPE,),
    Kind.SugaredArray: (_TYPE,),
    Kind.SugaredDictionary: (_TYPE, _TYPE),
    Kind.SugaredParen: (_TYPE,),
    Kind.DependentGenericParamType: (ChildSlot({Kind.Index}), ChildSlot({Kind.Index})),

    Kind.TypeMangling: (_LABELS, _TYPE),
    Kind.TypeMetadata: (_TYPE,),
    Kind.TypeMetadataAccessFunction: (_TYPE,),
    Kind.FullTypeMetadata: (_TYPE,),
    Kind.NominalTypeDescriptor: (_TYPE,),
    Kind.Metaclass: (_TYPE,),
    Kind.ProtocolDescriptor: (_TYPE,),
    Kind.ValueWitnessTable: (_TYPE,),
    Kind.ValueWitness: (_TYPE,),
    Kind.EnumCase: (_ENTITY,),
    Kind.FieldOffset: (ChildSlot({Kind.Directness}), _ENTITY),
}

for _kind in ANY_GENERIC_KINDS:
    CHILD_SLOTS[_kind] = _NOMINAL_CHILDREN
for _kind in BOUND_GENERIC_KINDS.values():
    CHILD_SLOTS[_kind] = (_TYPE, _TYPE_LIST)
for _kind in ACCESSOR_KINDS:
    CHILD_SLOTS[_kind] = (ChildSlot({Kind.Variable, Kind.Subscript}),)
for _kind in FUNCTION_TYPE_KINDS:
    CHILD_SLOTS[_kind] = _FUNCTION_TYPE_CHILDREN
for _kind, _slots in CHILD_SLOTS.items():
    KIND_INFO[_kind].child_slots = _slots


def _first_misplaced_child(slots, children) -> Optional[int]:
    """
    Index of the first child the slots don't accept (len(children) if a required slot went unfilled), or None.
    """
    i = 0
    for slot in slots:
        if slot.repeated:
            while i < len(children) and slot.accepts(children[i].kind):
                i += 1
        elif i < len(children) and slot.accepts(children[i].kind):
            i += 1
        elif not slot.optional:
            return i
    return i if i < len(children) else None


class Node:
    """
    One node of a demangled name.

    Construction validates the payload, the child count and the kind of every child against KIND_INFO, raising
        ShapeMismatch.

    Equality and hashing are structural (kind, payload, children, recursively).
    """

    def __init__(self, kind: Kind, children=(), payload: Union[str, int, None] = None):
        info = KIND_INFO.get(kind)
        if info is None:
            raise ShapeMismatch(kind, "Unknown node kind")

        children = tuple(children)

        if info.payload == PayloadShape.NONE and payload is not None:
            raise ShapeMismatch(kind, f'Takes no payload, got {payload!r}')
        if info.payload == PayloadShape.TEXT and not isinstance(payload, str):
            raise ShapeMismatch(kind, f'Expects a text payload, got {payload!r}')
        if info.payload == PayloadShape.INDEX and (not isinstance(payload, int) or isinstance(payload, bool)):
            raise ShapeMismatch(kind, f'Expects an index payload, got {payload!r}')

        if len(children) < info.min_children or (info.max_children is not None
                                                 and len(children) > info.max_children):
            raise ShapeMismatch(kind, f'Bad child count {len(children)}')

        for child in children:
            if not isinstance(child, Node):
                raise ShapeMismatch(kind, f'Child {child!r} is not a Node')

        if info.child_slots is not None:
            misplaced = _first_misplaced_child(info.child_slots, children)
            if misplaced is not None and misplaced < len(children):
                raise ShapeMismatch(kind, f'Unexpected {children[misplaced].kind.name} child at {misplaced}')
            if misplaced is not None:
                raise ShapeMismatch(kind, f'Missing child at {misplaced}')

        self._kind = kind
        self._children: Tuple['Node', ...] = children
        self._payload = payload
        self._hash = None

    @property
    def kind(self) -> Kind:
        return self._kind

    @property
    def children(self) -> Tuple['Node', ...]:
        return self._children

    @property
    def payload(self):
        return self._payload

    @property
    def has_text(self) -> bool:
        return isinstance(self._payload, str)

    @property
    def has_index(self) -> bool:
        return KIND_INFO[self._kind].payload == PayloadShape.INDEX

    @property
    def text(self) -> str:
        if not self.has_text:
            raise ShapeMismatch(self._kind, "Node carries no text")
        return self._payload

    @property
    def index(self) -> int:
        if not self.has_index:
            raise ShapeMismatch(self._kind, "Node carries no index")
        return self._payload

    def __len__(self):
        return len(self._children)

    def __iter__(self):
        return iter(self._children)

    def __getitem__(self, item):
        return self._children[item]

    def child_of_kind(self, kind: Kind) -> Optional['Node']:
        for child in self._children:
            if child.kind == kind:
                return child
        return None

    def with_children(self, children) -> 'Node':
        return Node(self._kind, children, self._payload)

    def with_kind(self, kind: Kind) -> 'Node':
        return Node(kind, self._children, self._payload)

    def adding_child(self, child: 'Node') -> 'Node':
        return Node(self._kind, self._children + (child,), self._payload)

    def walk(self) -> Iterator['Node']:
        """
        Pre-order traversal over this node and all of its descendants.
        """
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node._children))

    def __eq__(self, other):
        if self is other:
            return True
        if not isinstance(other, Node):
            return NotImplemented
        if self._kind != other._kind or self._payload != other._payload:
            return False
        if len(self._children) != len(other._children):
            return False
        if hash(self) != hash(other):
            return False
        return self._children == other._children

    def __ne__(self, other):
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    def __hash__(self):
        if self._hash is None:
            self._hash = hash((self._kind, self._payload, self._children))
        return self._hash

    def __repr__(self):
        if self._payload is not None:
            return f'Node({self._kind.name}, {self._payload!r})'
        return f'Node({self._kind.name}, {len(self._children)} children)'

    def __str__(self):
        return self.render()

    def render(self, indent_size=0) -> str:
        text = " " * indent_size + self._kind.name
        if self._payload is not None:
            text += f': {self._payload!r}'
        for child in self._children:
            text += '\n' + child.render(indent_size + 2)
        return text


def ident(text) -> Node:
    return Node(Kind.Identifier, payload=text)


def module(text) -> Node:
    return Node(Kind.Module, payload=text)


def type_node(child: Node) -> Node:
    return Node(Kind.Type, (child,))
