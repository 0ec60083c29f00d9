#
#  ktool | lib0cyn
#  log.py
#
#  Leveled logger shared by the mangling engine and the witness model
#
#  This file is part of ktool. ktool is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#
#  Copyright (c) 0cyn 2022.
#
import inspect
import os
from enum import Enum


class LogLevel(Enum):
    NONE = -1
    DEBUG = 3
    DEBUG_MORE = 4
    # one line per demangled operator. pipe it to a file.
    DEBUG_TOO_MUCH = 5


class log:
    """
    Python's default logging module is far too heavy for per-operator tracing

    so we use this.
    """

    LOG_LEVEL = LogLevel.NONE
    # Should be a function name, without ()
    # Swappable so tests and embedding tools can capture output.
    LOG_FUNC = print

    @staticmethod
    def get_class_from_frame(fr):
        fr: inspect.FrameInfo = fr
        if 'self' in fr.frame.f_locals:
            return type(fr.frame.f_locals["self"]).__name__
        elif 'cls' in fr.frame.f_locals:
            return fr.frame.f_locals['cls'].__name__

        return None

    @staticmethod
    def line():
        stack_frame = inspect.stack()[2]
        filename = os.path.basename(stack_frame[1]).split('.')[0]
        line_name = f'L#{stack_frame[2]}'
        cn = log.get_class_from_frame(stack_frame)
        call_from = cn + ':' if cn is not None else ""
        call_from += stack_frame[3]
        return 'kswift.' + filename + ":" + line_name + ":" + call_from + '()'

    @staticmethod
    def debug(msg=""):
        if log.LOG_LEVEL.value >= LogLevel.DEBUG.value:
            log.LOG_FUNC(f'DEBUG - {log.line()} - {msg}')

    @staticmethod
    def debug_more(msg: str = ""):
        if log.LOG_LEVEL.value >= LogLevel.DEBUG_MORE.value:
            log.LOG_FUNC(f'DEBUG-2 - {log.line()} - {msg}')

    @staticmethod
    def debug_tm(msg: str = ""):
        if log.LOG_LEVEL.value >= LogLevel.DEBUG_TOO_MUCH.value:
            log.LOG_FUNC(f'DEBUG-3 - {log.line()} - {msg}')
