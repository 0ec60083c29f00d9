#
#  ktool | kswift
#  punycode.py
#
#  Swift's punycode variant (RFC 3492) for identifiers that contain characters outside [A-Za-z0-9_$]
#
#  Differences from the RFC:
#       '_' is the delimiter instead of '-'
#       digits are a-z then A-J, since symbol names are case sensitive and identifiers can't start with a digit
#       ASCII characters that aren't valid in a symbol are mapped to 0xD800 + c before encoding
#
#  This file is part of ktool. ktool is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#
#  Copyright (c) 0cyn 2022.
#
from typing import List, Optional

BASE = 36
TMIN = 1
TMAX = 26
SKEW = 38
DAMP = 700
INITIAL_BIAS = 72
INITIAL_N = 128

DELIMITER = '_'

NON_SYMBOL_BASE = 0xD800


def is_valid_symbol_char(c: str) -> bool:
    return ('a' <= c <= 'z') or ('A' <= c <= 'Z') or ('0' <= c <= '9') or c == '_' or c == '$'


def needs_punycode(identifier: str) -> bool:
    return any(not is_valid_symbol_char(c) for c in identifier)


def _digit_value(digit: int) -> str:
    if digit < 26:
        return chr(ord('a') + digit)
    return chr(ord('A') + digit - 26)


def _digit_index(c: str) -> Optional[int]:
    if 'a' <= c <= 'z':
        return ord(c) - ord('a')
    if 'A' <= c <= 'J':
        return ord(c) - ord('A') + 26
    return None


def _is_valid_scalar(s: int) -> bool:
    # 0xD800 - 0xD880 carries the mapped non-symbol ASCII characters
    return s < 0xD880 or 0xE000 <= s <= 0x1FFFFF


def _threshold(k, bias):
    if k <= bias:
        return TMIN
    if k >= bias + TMAX:
        return TMAX
    return k - bias


def _adapt(delta, numpoints, firsttime):
    delta = delta // DAMP if firsttime else delta // 2
    delta += delta // numpoints
    k = 0
    while delta > ((BASE - TMIN) * TMAX) // 2:
        delta //= BASE - TMIN
        k += BASE
    return k + (((BASE - TMIN + 1) * delta) // (delta + SKEW))


def _map_non_symbol_chars(text: str) -> List[int]:
    scalars = []
    for c in text:
        value = ord(c)
        if value < 0x80 and not is_valid_symbol_char(c):
            value += NON_SYMBOL_BASE
        scalars.append(value)
    return scalars


def encode(identifier: str) -> Optional[str]:
    """
    Encode an identifier. Returns None if it contains a scalar punycode can't carry.

    :param identifier:
    :return:
    """
    scalars = _map_non_symbol_chars(identifier)
    output = []

    for c in scalars:
        if not _is_valid_scalar(c):
            return None
        if c < 0x80:
            output.append(chr(c))

    h = b = len(output)
    if b > 0:
        output.append(DELIMITER)

    n = INITIAL_N
    delta = 0
    bias = INITIAL_BIAS

    while h < len(scalars):
        m = min(c for c in scalars if c >= n)
        delta += (m - n) * (h + 1)
        n = m
        for c in scalars:
            if c < n:
                delta += 1
            if c == n:
                q = delta
                k = BASE
                while True:
                    t = _threshold(k, bias)
                    if q < t:
                        break
                    output.append(_digit_value(t + ((q - t) % (BASE - t))))
                    q = (q - t) // (BASE - t)
                    k += BASE
                output.append(_digit_value(q))
                bias = _adapt(delta, h + 1, h == b)
                delta = 0
                h += 1
        delta += 1
        n += 1

    return ''.join(output)


def decode(encoded: str) -> Optional[str]:
    """
    Decode a punycode identifier body (the text following '00<len>'). Returns None when malformed.

    :param encoded:
    :return:
    """
    output: List[int] = []

    remainder = encoded
    last_delimiter = encoded.rfind(DELIMITER)
    if last_delimiter >= 0:
        for c in encoded[:last_delimiter]:
            if ord(c) > 0x7f:
                return None
            output.append(ord(c))
        remainder = encoded[last_delimiter + 1:]

    n = INITIAL_N
    i = 0
    bias = INITIAL_BIAS
    pos = 0

    while pos < len(remainder):
        oldi = i
        w = 1
        k = BASE
        while True:
            if pos >= len(remainder):
                return None
            digit = _digit_index(remainder[pos])
            pos += 1
            if digit is None:
                return None
            i += digit * w
            t = _threshold(k, bias)
            if digit < t:
                break
            w *= BASE - t
            k += BASE

        bias = _adapt(i - oldi, len(output) + 1, oldi == 0)
        n += i // (len(output) + 1)
        i %= len(output) + 1
        if n < 0x80:
            return None
        output.insert(i, n)
        i += 1

    text = ''
    for c in output:
        if NON_SYMBOL_BASE <= c < NON_SYMBOL_BASE + 0x80:
            c -= NON_SYMBOL_BASE
        try:
            text += chr(c)
        except (ValueError, OverflowError):
            return None
    return text
