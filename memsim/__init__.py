"""
memsim - Memory Safety Simulator

Parses a small C subset and executes it statement by statement against an
explicit model of process memory (stack frame, heap blocks, pointers),
flagging memory-safety violations as they happen.

Exports:
- ExecutionDriver: step / run / pause / reset / step-back control surface
- ExecutionConfig: address-space constants and driver limits
- Parser, ParseError, tokenize: the front end
"""

from memsim.lang import Parser, ParseError, tokenize
from memsim.runtime import (
    ExecutionConfig,
    ExecutionDriver,
    ExecutionState,
    ErrorKind,
    Interpreter,
)

import logging as _logging

_logging.getLogger(__name__).addHandler(_logging.NullHandler())

__version__ = "1.0.0"

__all__ = [
    "ExecutionDriver",
    "ExecutionConfig",
    "ExecutionState",
    "ErrorKind",
    "Interpreter",
    "Parser",
    "ParseError",
    "tokenize",
]
