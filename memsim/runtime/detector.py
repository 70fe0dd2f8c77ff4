"""
memsim Error Detector

Checks interleaved into evaluation. A failed check raises `MemoryViolation`;
the interpreter catches it at the statement boundary, records it and halts.
Checks never mutate memory, so a violating operation leaves no effect.

Kinds:
- OOB:         index outside [0, length) on read or write
- NULL_DEREF:  dereference, write or free through a NULL pointer
- UAF:         any access through a pointer to a freed block
- DOUBLE_FREE: free of an already freed block
- SYNTAX:      invalid free, runaway loop, or any evaluation failure
- LEAK:        blocks still allocated at natural completion (one aggregate)
"""

from __future__ import annotations

from typing import List, Optional
import logging

from memsim.runtime.state import (
    ErrorKind,
    ExecutionState,
    HeapBlock,
    MemoryErrorRecord,
)
from memsim.runtime.values import PointerValue

logger = logging.getLogger(__name__)


class MemoryViolation(Exception):
    """A detected memory-safety violation."""

    def __init__(self, kind: ErrorKind, message: str, line: int, details: Optional[str] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.line = line
        self.details = details

    def to_record(self) -> MemoryErrorRecord:
        return MemoryErrorRecord(self.kind, self.message, self.line, self.details)


class RuntimeFault(Exception):
    """Evaluation that cannot proceed (undeclared names, type mismatches, ...)."""


def record(state: ExecutionState, error: MemoryErrorRecord, halt: bool = True) -> None:
    """Append an error to the state and, unless told otherwise, halt."""
    logger.warning("%s at line %d: %s", error.kind.value, error.line, error.message)
    state.add_error(error)
    if halt:
        state.is_halted = True


def check_index(index: int, length: int, name: str, line: int) -> None:
    if index < 0 or index >= length:
        raise MemoryViolation(
            ErrorKind.OOB,
            f"Array index {index} out of bounds [0, {length}) for {name}",
            line,
        )


def check_pointer(state: ExecutionState, pointer: PointerValue,
                  name: str, line: int) -> Optional[HeapBlock]:
    """
    Validate an access through `pointer`.

    Returns the target heap block, or None for a stack target.
    """
    if pointer.is_null:
        raise MemoryViolation(ErrorKind.NULL_DEREF, f"Dereferencing NULL pointer {name}", line)
    if not pointer.is_heap:
        return None

    block = state.heap.get(pointer.target)
    if block is None:
        raise RuntimeFault(f"{name} does not point to a known heap block")
    if block.is_freed:
        raise MemoryViolation(
            ErrorKind.UAF,
            f"Use-after-free: pointer {name} points to freed memory",
            line,
            details=f"block {block.address} allocated at line {block.allocated_at}, "
                    f"freed at line {block.freed_at}",
        )
    return block


def check_heap_cell(block: HeapBlock, cell: int, name: str, line: int) -> None:
    if cell < 0 or cell >= len(block.data):
        raise MemoryViolation(
            ErrorKind.OOB,
            f"Heap access through {name} outside block {block.address}",
            line,
            details=f"cell {cell} of {len(block.data)} ({block.size} bytes)",
        )


def check_free(state: ExecutionState, pointer: PointerValue, line: int) -> HeapBlock:
    """Validate a `free` call and return the block it releases."""
    if pointer.is_null:
        raise MemoryViolation(ErrorKind.NULL_DEREF, "Attempting to free NULL pointer", line)

    block = state.heap.get(pointer.target) if pointer.is_heap else None
    if block is None or pointer.offset != 0:
        raise MemoryViolation(
            ErrorKind.SYNTAX,
            "Invalid pointer passed to free()",
            line,
            details=f"{pointer.target}+{pointer.offset} is not the start of a heap block",
        )
    if block.is_freed:
        raise MemoryViolation(
            ErrorKind.DOUBLE_FREE,
            f"Double free detected at {block.address}",
            line,
            details=f"first freed at line {block.freed_at}",
        )
    return block


def find_leaks(state: ExecutionState) -> List[HeapBlock]:
    return [b for b in state.heap.values() if not b.is_freed]


def leak_report(state: ExecutionState) -> Optional[MemoryErrorRecord]:
    """One aggregate LEAK record for every block still allocated, or None."""
    leaks = find_leaks(state)
    if not leaks:
        return None
    return MemoryErrorRecord(
        ErrorKind.LEAK,
        f"{len(leaks)} memory leak(s) detected",
        state.current_line,
        details=", ".join(
            f"{b.address} ({b.size} bytes, line {b.allocated_at})" for b in leaks
        ),
    )
