#
#  ktool | kswift
#  mangling.py
#
#  Grammar helpers shared by the demangler and the remangler
#
#  This file is part of ktool. ktool is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#
#  Copyright (c) 0cyn 2022.
#
from typing import List

from kswift.exceptions import UnmangleableNode
from kswift.node import Kind
from kswift.punycode import needs_punycode, encode as punycode_encode
from kswift.util import opts

STDLIB_NAME = 'Swift'
MANGLING_MODULE_OBJC = '__C'
MANGLING_MODULE_CLANG_IMPORTER = '__C_Synthesized'

# Old (swift 3 / 4.0) manglings we recognize only to reject them
OLD_MANGLING_PREFIXES = ('_Tt', '_T')

# Operator character table, indexed by (letter - 'a'). ' ' marks letters with no operator.
OPERATOR_TABLE = "& @/= >    <*!|+?%-~   ^ ."

_OPERATOR_TO_LETTER = {op: chr(ord('a') + i) for i, op in enumerate(OPERATOR_TABLE) if op != ' '}

METATYPE_REPRESENTATIONS = {
    't': '@thin',
    'T': '@thick',
    'o': '@objc_metatype',
}
METATYPE_REPRESENTATION_CODES = {v: k for k, v in METATYPE_REPRESENTATIONS.items()}

BUILTIN_TYPE_NAMES = {
    'b': 'Builtin.BridgeObject',
    'B': 'Builtin.UnsafeValueBuffer',
    'I': 'Builtin.IntLiteral',
    'O': 'Builtin.UnknownObject',
    'o': 'Builtin.NativeObject',
    'p': 'Builtin.RawPointer',
    't': 'Builtin.SILToken',
    'w': 'Builtin.Word',
}
BUILTIN_TYPE_CODES = {v: k for k, v in BUILTIN_TYPE_NAMES.items()}

# Value witness function codes, in ValueWitnessKind order
VALUE_WITNESS_CODES = [
    ('al', 'allocateBuffer'),
    ('ca', 'assignWithCopy'),
    ('ta', 'assignWithTake'),
    ('de', 'deallocateBuffer'),
    ('xx', 'destroy'),
    ('Xx', 'destroyArray'),
    ('XX', 'destroyBuffer'),
    ('CP', 'initializeBufferWithCopyOfBuffer'),
    ('Cp', 'initializeBufferWithCopy'),
    ('cp', 'initializeWithCopy'),
    ('Tk', 'initializeBufferWithTake'),
    ('tk', 'initializeWithTake'),
    ('pr', 'projectBuffer'),
    ('TK', 'initializeBufferWithTakeOfBuffer'),
    ('Cc', 'initializeArrayWithCopy'),
    ('Tt', 'initializeArrayWithTakeFrontToBack'),
    ('tT', 'initializeArrayWithTakeBackToFront'),
    ('xs', 'storeExtraInhabitant'),
    ('xg', 'getExtraInhabitantIndex'),
    ('ug', 'getEnumTag'),
    ('up', 'destructiveProjectEnumData'),
    ('ui', 'destructiveInjectEnumTag'),
    ('et', 'getEnumTagSinglePayload'),
    ('st', 'storeEnumTagSinglePayload'),
]
VALUE_WITNESS_INDEX = {code: i for i, (code, _) in enumerate(VALUE_WITNESS_CODES)}

ACCESSOR_CODES = {
    'm': Kind.MaterializeForSet,
    's': Kind.Setter,
    'g': Kind.Getter,
    'G': Kind.GlobalGetter,
    'w': Kind.WillSet,
    'W': Kind.DidSet,
    'r': Kind.ReadAccessor,
    'M': Kind.ModifyAccessor,
}

MUTABLE_ADDRESSOR_CODES = {
    'O': Kind.OwningMutableAddressor,
    'o': Kind.NativeOwningMutableAddressor,
    'P': Kind.NativePinningMutableAddressor,
    'u': Kind.UnsafeMutableAddressor,
}

ADDRESSOR_CODES = {
    'O': Kind.OwningAddressor,
    'o': Kind.NativeOwningAddressor,
    'p': Kind.NativePinningAddressor,
    'u': Kind.UnsafeAddressor,
}


def operator_char(letter: str):
    """
    Translate a mangled operator letter back to its operator character.

    Non-ascii characters stand for themselves. Returns None for letters with no operator.
    """
    if ord(letter) >= 0x80:
        return letter
    if not 'a' <= letter <= 'z':
        return None
    op = OPERATOR_TABLE[ord(letter) - ord('a')]
    return None if op == ' ' else op


def translate_operator(text: str) -> str:
    return ''.join(_OPERATOR_TO_LETTER.get(c, c) for c in text)


def is_word_start(c: str) -> bool:
    return not ('0' <= c <= '9') and c != '_' and c != '\0'


def is_word_end(c: str, prev: str) -> bool:
    if c == '_' or c == '\0':
        return True
    return not ('A' <= prev <= 'Z') and 'A' <= c <= 'Z'


def split_words(text: str):
    """
    Yield (start, word) for every substitution word candidate in text.
    """
    word_start = -1
    for pos in range(len(text) + 1):
        c = text[pos] if pos < len(text) else '\0'
        if word_start >= 0 and is_word_end(c, text[pos - 1]):
            yield word_start, text[word_start:pos]
            word_start = -1
        if word_start < 0 and is_word_start(c):
            word_start = pos


def mangle_index(value: int) -> str:
    if value == 0:
        return '_'
    return f'{value - 1}_'


class SubstitutionMerging:
    """
    Tracks the last emitted substitution so consecutive ones merge

    'AB' + 'AC' -> 'AbC', 'AB' + 'AB' -> 'A2B', 'Si' + 'Si' -> 'S2i'
    """

    def __init__(self):
        self.last_position = 0
        self.last_size = 0
        self.last_count = 0
        self.last_is_standard = False

    def clear(self):
        self.last_count = 0

    def try_merge(self, mangler, subst: str, is_standard: bool) -> bool:
        buffer = mangler.buffer
        if 0 < self.last_count < opts.MAX_REPEAT_COUNT \
                and len(buffer) == self.last_position + self.last_size \
                and self.last_is_standard == is_standard:
            last = buffer[-1]
            if last != subst and not is_standard:
                self.last_position = len(buffer)
                self.last_count = 1
                mangler.buffer = buffer[:-1] + last.lower() + subst
                self.last_size = 1
                return True
            if last == subst:
                self.last_count += 1
                mangler.buffer = buffer[:self.last_position] + str(self.last_count) + subst
                self.last_size = len(mangler.buffer) - self.last_position
                return True

        self.last_position = len(buffer) + 1
        self.last_size = 1
        self.last_count = 1
        self.last_is_standard = is_standard
        return False


def mangle_identifier(text: str, words: List[str], kind=Kind.Identifier) -> str:
    """
    Encode an identifier, using and extending the word list of the current mangling.

    :param text: identifier text
    :param words: words seen so far in this mangling, updated in place
    :param kind: kind reported when the identifier can't be encoded
    :return: encoded identifier
    """
    if not text:
        raise UnmangleableNode(kind, "Empty identifier")

    if opts.USE_PUNYCODE and needs_punycode(text):
        encoded = punycode_encode(text)
        if encoded is None:
            raise UnmangleableNode(kind, f'Identifier {text!r} cannot be punycode encoded')
        out = f'00{len(encoded)}'
        if encoded[0].isdigit() or encoded[0] == '_':
            out += '_'
        return out + encoded

    replacements = []
    for start, word in split_words(text):
        if word in words:
            replacements.append((start, words.index(word), len(word)))
        elif len(word) >= 2 and len(words) < opts.MAX_NUM_WORDS:
            words.append(word)

    out = '0' if replacements else ''
    replacements.append((len(text), -1, 0))

    pos = 0
    end = len(replacements)
    for i, (start, word_index, length) in enumerate(replacements):
        if pos < start:
            if text[pos].isdigit():
                raise UnmangleableNode(kind, f'Identifier {text!r} has a sub-string starting with a digit')
            out += f'{start - pos}{text[pos:start]}'
            pos = start
        if word_index >= 0:
            pos += length
            if i < end - 2:
                out += chr(ord('a') + word_index)
            else:
                out += chr(ord('A') + word_index)
                if pos == len(text):
                    out += '0'
    return out
