"""
memsim Runtime Engine

This package provides the simulated machine:
- ExecutionDriver: stepping, auto-run and bounded undo history
- Interpreter: statement execution with embedded error detection
- ExpressionEvaluator: expression evaluation
- AddressAllocator: deterministic stack/heap addresses
- ExecutionState: stack, heap, errors and event log, with to_dict/from_dict
"""

from memsim.runtime.config import ExecutionConfig
from memsim.runtime.state import (
    BlockStatus,
    ErrorKind,
    EventKind,
    ExecutionEvent,
    ExecutionState,
    HeapBlock,
    MemoryErrorRecord,
    StackFrame,
    Variable,
)
from memsim.runtime.values import CType, IntValue, PointerValue, ArrayValue
from memsim.runtime.memory import AddressAllocator
from memsim.runtime.detector import MemoryViolation, RuntimeFault
from memsim.runtime.evaluator import ExpressionEvaluator
from memsim.runtime.interpreter import Interpreter
from memsim.runtime.history import SnapshotHistory
from memsim.runtime.driver import ExecutionDriver

__all__ = [
    "ExecutionConfig",
    "BlockStatus",
    "ErrorKind",
    "EventKind",
    "ExecutionEvent",
    "ExecutionState",
    "HeapBlock",
    "MemoryErrorRecord",
    "StackFrame",
    "Variable",
    "CType",
    "IntValue",
    "PointerValue",
    "ArrayValue",
    "AddressAllocator",
    "MemoryViolation",
    "RuntimeFault",
    "ExpressionEvaluator",
    "Interpreter",
    "SnapshotHistory",
    "ExecutionDriver",
]
