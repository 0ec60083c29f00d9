#
#  ktool | tests
#  demangle_tests.py
#
#  Demangler, remangler, printer and punycode
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

from kswift import punycode
from kswift.demangle import demangle, demangle_type
from kswift.exceptions import MalformedMangling, UnknownSubstitutionIndex, UnmangleableNode, ShapeMismatch
from kswift.mangling import mangle_identifier, split_words, translate_operator
from kswift.node import Node, Kind, ident, module, type_node
from kswift.printer import DemangleOptions, print_node
from kswift.remangle import remangle

from lib0cyn.log import log, LogLevel

log.LOG_LEVEL = LogLevel.NONE


# symbol -> swift-demangle output
PRINTED = {
    '$s1b1CC16funcWithCallback3fooyyyXE_tF': 'b.C.funcWithCallback(foo: () -> ()) -> ()',
    '$s7TestMod5OuterV3Fooayx_SiGD': 'TestMod.Outer<A>.Foo<Swift.Int>',
    '$sBf128_N': 'type metadata for Builtin.FPIEEE128',
    '$sSaySiGD': 'Swift.Array<Swift.Int>',
    '$sSiSgD': 'Swift.Optional<Swift.Int>',
    '$sSDySSSiGD': 'Swift.Dictionary<Swift.String, Swift.Int>',
    '$sSi_SitD': '(Swift.Int, Swift.Int)',
    '$s4main3FooV3bar1xyAC_tF': 'main.Foo.bar(x: main.Foo) -> ()',
    '$s3FooAAVN': 'type metadata for Foo.Foo',
    '$sSiwxx': 'destroy value witness for Swift.Int',
    '$sSiWV': 'value witness table for Swift.Int',
    '$s4main3fooSivg': 'main.foo.getter : Swift.Int',
    '$s4main3FooV3baryyFZ': 'static main.Foo.bar() -> ()',
    '$s4main3FooVACycfC': 'main.Foo.init() -> main.Foo',
    '$sSa4mainE3fooyyF': '(extension in main):Swift.Array.foo() -> ()',
    '$sSQMp': 'protocol descriptor for Swift.Equatable',
    '$sSimD': 'Swift.Int.Type',
    '$sypD': 'Any',
    '$syXlD': 'Swift.AnyObject',
    '$s4blah8PatatinoaySiGD': 'blah.Patatino<Swift.Int>',
}

SIMPLIFIED = {
    '$sSaySiGD': '[Int]',
    '$sSiSgD': 'Int?',
    '$sSDySSSiGD': '[String : Int]',
}

# symbols older toolchains emitted with a different prefix, paired with their current form
OLD_PREFIX = {
    '$S4blah8PatatinoaySiGD': '$s4blah8PatatinoaySiGD',
    '$Ss17_VariantSetBufferO05CocoaC0ayx_GD': '$ss17_VariantSetBufferO05CocoaC0ayx_GD',
}


class DemangleTestCase(unittest.TestCase):
    def test_printed_names(self):
        for symbol, expected in PRINTED.items():
            with self.subTest(symbol=symbol):
                self.assertEqual(print_node(demangle(symbol)), expected)

    def test_simplified(self):
        for symbol, expected in SIMPLIFIED.items():
            with self.subTest(symbol=symbol):
                self.assertEqual(print_node(demangle(symbol), DemangleOptions.SIMPLIFIED), expected)

    def test_tree_shape(self):
        tree = demangle('$s1b1CC16funcWithCallback3fooyyyXE_tF')
        self.assertEqual(tree.kind, Kind.Global)
        function = tree.children[0]
        self.assertEqual(function.kind, Kind.Function)

        context, name, labels, typ = function.children
        self.assertEqual(context.kind, Kind.Class)
        self.assertEqual(context.children[0].text, 'b')
        self.assertEqual(name.text, 'funcWithCallback')
        self.assertEqual([label.text for label in labels.children], ['foo'])
        self.assertEqual(typ.children[0].kind, Kind.FunctionType)

        # the parameter is a non-escaping closure
        params = typ.children[0].children[0]
        self.assertEqual(params.kind, Kind.ArgumentTuple)
        closure = params.children[0].children[0].children[0].children[0].children[0]
        self.assertEqual(closure.kind, Kind.NoEscapeFunctionType)

    def test_type_metadata_global(self):
        tree = demangle('$s3FooAAVN')
        metadata = tree.children[0]
        self.assertEqual(metadata.kind, Kind.TypeMetadata)
        structure = metadata.children[0].children[0]
        self.assertEqual(structure.kind, Kind.Structure)
        # 'AA' refers back to the module identifier
        self.assertEqual(structure.children[0].kind, Kind.Module)
        self.assertEqual(structure.children[1].text, 'Foo')

    def test_value_witness(self):
        witness = demangle('$sSiwxx').children[0]
        self.assertEqual(witness.kind, Kind.ValueWitness)
        self.assertEqual(witness.index, 4)

    def test_punycode_identifier(self):
        variable = demangle('$s4main007caf_dmaSivg').children[0].children[0]
        self.assertEqual(variable.kind, Kind.Variable)
        self.assertEqual(variable.children[1].text, 'café')

    def test_demangle_type(self):
        typ = demangle_type('SaySiG')
        self.assertEqual(typ.kind, Kind.Type)
        self.assertEqual(typ.children[0].kind, Kind.BoundGenericStructure)
        self.assertEqual(print_node(typ, DemangleOptions.SIMPLIFIED), '[Int]')

        with self.assertRaises(MalformedMangling):
            demangle_type('')
        # two types left on the stack
        with self.assertRaises(MalformedMangling):
            demangle_type('SiSi')

    def test_malformed(self):
        for symbol in ('foo', '$s', '$sSD5IndexVy__GD', '$sSi!', '$s4mai', '$sBi0_N', '$sSiwZZ'):
            with self.subTest(symbol=symbol):
                with self.assertRaises(MalformedMangling):
                    demangle(symbol)

    def test_old_manglings_rejected(self):
        for symbol in ('_TtC3foo3Bar', '_TFV3foo3Bar3bazfT_T_'):
            with self.subTest(symbol=symbol):
                with self.assertRaises(MalformedMangling):
                    demangle(symbol)

    def test_unknown_substitution(self):
        with self.assertRaises(UnknownSubstitutionIndex) as ctx:
            demangle('$sAB')
        self.assertEqual(ctx.exception.index, 1)
        self.assertEqual(ctx.exception.count, 0)


class RemangleTestCase(unittest.TestCase):
    def test_round_trip(self):
        for symbol in PRINTED:
            with self.subTest(symbol=symbol):
                self.assertEqual(remangle(demangle(symbol)), symbol)

        self.assertEqual(remangle(demangle('$s4main007caf_dmaSivg')), '$s4main007caf_dmaSivg')

    def test_old_prefix_normalized(self):
        for symbol, current in OLD_PREFIX.items():
            with self.subTest(symbol=symbol):
                self.assertEqual(remangle(demangle(symbol)), current)

    def test_type_round_trip(self):
        self.assertEqual(remangle(demangle_type('SaySiG')), 'SaySiG')
        self.assertEqual(remangle(demangle_type('Si')), 'Si')

    def test_standard_codes_preferred(self):
        def swift_type(kind, name):
            return type_node(Node(kind, (module('Swift'), ident(name))))

        array = type_node(Node(Kind.BoundGenericStructure, (
            swift_type(Kind.Structure, 'Array'),
            Node(Kind.TypeList, (swift_type(Kind.Structure, 'Int'),)),
        )))
        mangled = remangle(array)
        self.assertEqual(mangled, 'SaySiG')
        self.assertEqual(demangle_type(mangled), array)

        spelled_out = '5Swift5ArrayVy5Swift3IntVG'
        self.assertEqual(demangle_type(spelled_out), array)
        self.assertLess(len(mangled), len(spelled_out))
        self.assertEqual(remangle(demangle_type(spelled_out)), mangled)

        # Swift.Int twice is two standard codes, never a back reference
        pair = type_node(Node(Kind.Tuple, (
            Node(Kind.TupleElement, (swift_type(Kind.Structure, 'Int'),)),
            Node(Kind.TupleElement, (swift_type(Kind.Structure, 'Int'),)),
        )))
        self.assertEqual(remangle(pair), 'Si_Sit')

        # even when the demangler registered it as a back reference
        self.assertEqual(remangle(demangle('$s5Swift3IntV_ACtD')), '$sSi_SitD')

    def test_optional_with_extra_arguments(self):
        tree = demangle('$sSqySSSbGD')
        self.assertEqual(remangle(tree), '$sSqySSSbGD')
        self.assertEqual(demangle(remangle(tree)), tree)
        self.assertEqual(remangle(demangle('$sSiSgD')), '$sSiSgD')

    def test_structural_equality_after_round_trip(self):
        tree = demangle('$s7TestMod5OuterV3Fooayx_SiGD')
        self.assertEqual(demangle(remangle(tree)), tree)

    def test_unmangleable(self):
        with self.assertRaises(UnmangleableNode):
            # a function whose type isn't a function type
            remangle(Node(Kind.Global, (Node(Kind.Function, (module('m'), ident('f'), type_node(Node(Kind.Tuple)))),)))

    def test_misshapen_trees_cannot_be_built(self):
        # a value witness of a bare identifier would remangle to a symbol nothing can demangle
        with self.assertRaises(ShapeMismatch):
            Node(Kind.ValueWitness, (ident('Int'),), 0)
        with self.assertRaises(ShapeMismatch):
            type_node(module('m'))

        witness = Node(Kind.Global, (Node(Kind.ValueWitness, (demangle_type('Si'),), 0),))
        self.assertEqual(demangle(remangle(witness)), witness)

    def test_unlabeled_function_type(self):
        # a type level function type gets an explicit empty label list
        tree = demangle('$sSiSSKcD')
        self.assertEqual(print_node(tree), '(Swift.String) throws -> Swift.Int')
        self.assertEqual(remangle(tree), '$sySiSSKcD')
        self.assertEqual(demangle(remangle(tree)), tree)


class PrinterTestCase(unittest.TestCase):
    def test_option_flags(self):
        tree = demangle('$s4main3FooV3bar1xyAC_tF')
        unqualified = DemangleOptions.DEFAULT & ~DemangleOptions.QUALIFY_ENTITIES
        self.assertEqual(print_node(tree, unqualified), 'bar(x: Foo) -> ()')

    def test_printing_is_pure(self):
        tree = demangle('$sSaySiGD')
        self.assertEqual(print_node(tree), print_node(tree))


class IdentifierTestCase(unittest.TestCase):
    def test_words(self):
        self.assertEqual(list(split_words('funcWithCallback')), [(0, 'func'), (4, 'With'), (8, 'Callback')])

        words = []
        first = mangle_identifier('OuterType', words)
        self.assertEqual(first, '9OuterType')
        # the second time around 'Outer' is a word substitution
        second = mangle_identifier('OuterValue', words)
        self.assertEqual(second, '0A5Value')

    def test_operator_translation(self):
        self.assertEqual(translate_operator('+'), 'p')
        self.assertEqual(translate_operator('=='), 'ee')

    def test_punycode_identifier(self):
        self.assertEqual(mangle_identifier('café', []), '007caf_dma')


class PunycodeTestCase(unittest.TestCase):
    def test_encode(self):
        self.assertEqual(punycode.encode('café'), 'caf_dma')

    def test_decode(self):
        self.assertEqual(punycode.decode('caf_dma'), 'café')
        self.assertIsNone(punycode.decode('caf_!'))

    def test_round_trip(self):
        text = 'Привіт! 这样啊！那吃鱼吧。鱼可是你伯母的拿手菜 😄 الى اللقاء'
        encoded = 'rAaCbrFamDjrDlmbaaABawabaGetHAGgrAsegzarHEdnlagzGDrCmBgosdBGzeomosxosCeqEGdgfvdIdfcxEicaHBCADcsaadnGECJJabDIEe'
        self.assertEqual(punycode.encode(text), encoded)
        self.assertEqual(punycode.decode(encoded), text)

    def test_needs_punycode(self):
        self.assertFalse(punycode.needs_punycode('plain_name$'))
        self.assertTrue(punycode.needs_punycode('café'))


if __name__ == '__main__':
    unittest.main()
