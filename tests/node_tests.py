#
#  ktool | tests
#  node_tests.py
#
#  Node model and substitution table
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

from kswift.exceptions import ShapeMismatch, UnknownSubstitutionIndex
from kswift.node import Node, Kind, KindFlag, KIND_INFO, ident, module, type_node, is_context, is_substitutable, \
    is_decl_name
from kswift.substitution import SubstitutionTable, lookup_standard_code, standard_code_for

from lib0cyn.log import log, LogLevel

log.LOG_LEVEL = LogLevel.NONE


def swift_int():
    return type_node(Node(Kind.Structure, (module('Swift'), ident('Int'))))


class NodeTestCase(unittest.TestCase):
    def test_payload_shapes(self):
        self.assertEqual(ident('foo').text, 'foo')
        self.assertEqual(Node(Kind.Number, payload=3).index, 3)

        with self.assertRaises(ShapeMismatch):
            Node(Kind.Identifier)
        with self.assertRaises(ShapeMismatch):
            Node(Kind.Number, payload='3')
        with self.assertRaises(ShapeMismatch):
            Node(Kind.Number, payload=True)
        with self.assertRaises(ShapeMismatch):
            Node(Kind.EmptyList, payload='x')

    def test_child_counts(self):
        with self.assertRaises(ShapeMismatch):
            Node(Kind.Type)
        with self.assertRaises(ShapeMismatch):
            Node(Kind.Type, (ident('a'), ident('b')))
        with self.assertRaises(ShapeMismatch):
            Node(Kind.Structure, (module('Swift'),))
        with self.assertRaises(ShapeMismatch):
            Node(Kind.Type, ('not a node',))

        # unbounded
        Node(Kind.TypeList, [swift_int()] * 10)

    def test_child_kinds(self):
        with self.assertRaises(ShapeMismatch):
            Node(Kind.Type, (module('m'),))
        with self.assertRaises(ShapeMismatch):
            Node(Kind.ValueWitness, (ident('Int'),), 0)
        with self.assertRaises(ShapeMismatch):
            # name and context swapped
            Node(Kind.Structure, (ident('Int'), module('Swift')))
        with self.assertRaises(ShapeMismatch):
            Node(Kind.TypeList, (swift_int(), ident('Int')))
        with self.assertRaises(ShapeMismatch):
            Node(Kind.TupleElement, (swift_int(), Node(Kind.TupleElementName, payload='x')))
        with self.assertRaises(ShapeMismatch):
            Node(Kind.Getter, (swift_int(),))

        # optional slots may be left out
        Node(Kind.TupleElement, (Node(Kind.TupleElementName, payload='x'), swift_int()))
        Node(Kind.TupleElement, (swift_int(),))
        Node(Kind.Metatype, (swift_int(),))
        Node(Kind.Metatype, (Node(Kind.MetatypeRepresentation, payload='@thin'), swift_int()))

    def test_child_slots_cover_every_parent_kind(self):
        for kind, info in KIND_INFO.items():
            with self.subTest(kind=kind):
                if info.max_children == 0:
                    self.assertIsNone(info.child_slots)
                else:
                    self.assertIsNotNone(info.child_slots)

    def test_accessors(self):
        node = ident('foo')
        with self.assertRaises(ShapeMismatch):
            _ = node.index
        with self.assertRaises(ShapeMismatch):
            _ = swift_int().text
        self.assertTrue(Node(Kind.Index, payload=0).has_index)
        self.assertFalse(node.has_index)

    def test_structural_equality(self):
        self.assertEqual(swift_int(), swift_int())
        self.assertEqual(hash(swift_int()), hash(swift_int()))
        self.assertNotEqual(swift_int(), type_node(Node(Kind.Structure, (module('Swift'), ident('UInt')))))
        self.assertNotEqual(ident('Foo'), module('Foo'))

        lookup = {swift_int(): 'int'}
        self.assertEqual(lookup[swift_int()], 'int')

    def test_derivation(self):
        structure = swift_int().children[0]
        as_enum = structure.with_kind(Kind.Enum)
        self.assertEqual(as_enum.kind, Kind.Enum)
        self.assertEqual(structure.kind, Kind.Structure)

        renamed = structure.with_children((module('Swift'), ident('Double')))
        self.assertEqual(renamed.children[1].text, 'Double')
        self.assertEqual(structure.children[1].text, 'Int')

        type_list = Node(Kind.TypeList).adding_child(swift_int())
        self.assertEqual(len(type_list.children), 1)
        self.assertIsNotNone(structure.child_of_kind(Kind.Module))
        self.assertIsNone(structure.child_of_kind(Kind.Class))

    def test_walk(self):
        kinds = [node.kind for node in swift_int().walk()]
        self.assertEqual(kinds, [Kind.Type, Kind.Structure, Kind.Module, Kind.Identifier])

        walker = swift_int().walk()
        self.assertEqual(next(walker).kind, Kind.Type)
        # every call starts over
        self.assertEqual(len(list(swift_int().walk())), 4)

    def test_predicates(self):
        self.assertTrue(is_context(Kind.Module))
        self.assertTrue(is_context(Kind.Class))
        self.assertFalse(is_context(Kind.Identifier))
        self.assertTrue(is_substitutable(Kind.BoundGenericStructure))
        self.assertFalse(is_substitutable(Kind.Function))
        self.assertTrue(is_decl_name(Kind.InfixOperator))

    def test_catalogue_is_exhaustive(self):
        for kind in Kind:
            with self.subTest(kind=kind):
                self.assertIn(kind, KIND_INFO)
                self.assertEqual(is_context(kind), bool(KIND_INFO[kind].flags & KindFlag.CONTEXT))

    def test_render(self):
        rendered = swift_int().render()
        self.assertEqual(rendered.splitlines()[0], 'Type')
        self.assertIn("    Module: 'Swift'", rendered)


class SubstitutionTableTestCase(unittest.TestCase):
    def test_register_and_resolve(self):
        table = SubstitutionTable()
        self.assertEqual(table.register(ident('a')), 0)
        self.assertEqual(table.register(swift_int()), 1)
        self.assertEqual(len(table), 2)
        self.assertEqual(table.resolve(1), swift_int())

        with self.assertRaises(UnknownSubstitutionIndex) as ctx:
            table.resolve(2, offset=7)
        self.assertEqual(ctx.exception.index, 2)
        self.assertEqual(ctx.exception.count, 2)
        self.assertEqual(ctx.exception.offset, 7)

    def test_first_occurrence_wins(self):
        table = SubstitutionTable()
        table.register(swift_int())
        table.register(ident('x'))
        table.register(swift_int())
        self.assertEqual(table.lookup(swift_int()), 0)
        self.assertIsNone(table.lookup(ident('y')))

    def test_identifier_keys(self):
        table = SubstitutionTable()
        table.register(module('Foo'), as_identifier=True)
        self.assertEqual(table.lookup(ident('Foo'), as_identifier=True), 0)
        # keyed by structure, a Module and an Identifier differ
        self.assertIsNone(table.lookup(ident('Foo')))

        table.register(Node(Kind.InfixOperator, payload='+'), as_identifier=True)
        self.assertEqual(table.lookup(ident('p'), as_identifier=True), 1)

    def test_unsubstitutable(self):
        table = SubstitutionTable()
        with self.assertRaises(ShapeMismatch):
            table.register(Node(Kind.EmptyList))
        with self.assertRaises(ShapeMismatch):
            table.register(swift_int(), as_identifier=True)

    def test_reset(self):
        table = SubstitutionTable()
        table.register(ident('a'))
        table.reset()
        self.assertEqual(len(table), 0)
        self.assertIsNone(table.lookup(ident('a')))

    def test_standard_types(self):
        self.assertEqual(lookup_standard_code('i'), swift_int())
        self.assertEqual(lookup_standard_code('q').children[0].kind, Kind.Enum)
        self.assertEqual(lookup_standard_code('Q').children[0].kind, Kind.Protocol)
        self.assertIsNone(lookup_standard_code('!'))

        self.assertEqual(standard_code_for(swift_int()), 'i')
        self.assertEqual(standard_code_for(swift_int().children[0]), 'i')
        self.assertIsNone(standard_code_for(type_node(Node(Kind.Class, (module('Swift'), ident('Int'))))))
        self.assertIsNone(standard_code_for(type_node(Node(Kind.Structure, (module('Foo'), ident('Int'))))))


if __name__ == '__main__':
    unittest.main()
