#
#  ktool | kswift
#  util.py
#
#  Global options and miscellaneous helpers used around kswift
#
#  This file is part of ktool. ktool is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#
#  Copyright (c) 0cyn 2022.
#
import sys
from importlib import metadata

from pygments import highlight
from pygments.formatters.terminal import TerminalFormatter
from pygments.lexers import SwiftLexer

try:
    KSWIFT_VERSION = metadata.version('kswift')
except metadata.PackageNotFoundError:
    KSWIFT_VERSION = '1.0.0'

OUT_IS_TTY = sys.stdout.isatty()


class opts:
    DISABLE_COLOR = False

    # Prefix emitted by the remangler. Every entry of MANGLING_PREFIXES is accepted by the demangler.
    MANGLING_PREFIX = '$s'
    MANGLING_PREFIXES = ('_T0', '$S', '_$S', '$s', '_$s')

    MAX_REPEAT_COUNT = 2048
    MAX_NUM_WORDS = 26
    MAX_BUILTIN_TYPE_SIZE = 4096
    USE_PUNYCODE = True

    POINTER_SIZE = 8
    VALUE_BUFFER_WORDS = 3


def highlight_swift(text):
    """
    Colorize a printed swift name for terminal output.

    Returns the input unchanged when color is disabled or stdout isn't a tty.
    """
    if opts.DISABLE_COLOR or not OUT_IS_TTY:
        return text
    return highlight(text, SwiftLexer(), TerminalFormatter()).rstrip('\n')
