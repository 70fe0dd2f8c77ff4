"""
memsim Memory Model / Address Allocator

Deterministic address space:
- stack: starts at `stack_base`, each frame reserves `frame_reservation`,
  each declared variable takes the next `size` bytes downwards
- heap: starts at `heap_base`, each block advances by `size + heap_padding`;
  addresses are never reused within a run, even after free

Addresses are fixed-width upper-case hex strings and string equality is the
only identity check used to resolve pointer targets.

Key classes:
- AddressAllocator: hands out stack/heap addresses from the state's layout
- MemoryCell: one resolved location a pointer reads or writes
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
import logging
import math

from memsim.runtime.config import ExecutionConfig
from memsim.runtime.detector import (
    RuntimeFault,
    MemoryViolation,
    check_pointer,
    check_heap_cell,
    check_index,
)
from memsim.runtime.state import (
    ErrorKind,
    ExecutionState,
    HeapBlock,
    MemoryLayout,
    StackFrame,
    Variable,
)
from memsim.runtime.values import HEAP_PREFIX, IntValue, PointerValue, Value, ValueKind

logger = logging.getLogger(__name__)


def format_address(address: int) -> str:
    return f"0x{address:08X}"


def heap_block_id(address: str) -> str:
    return f"{HEAP_PREFIX}{address}"


class AddressAllocator:
    """Allocates addresses by advancing the counters kept in `state.layout`."""

    def __init__(self, config: ExecutionConfig = None):
        self.config = config or ExecutionConfig()

    def initial_layout(self) -> MemoryLayout:
        return MemoryLayout(
            next_stack_address=self.config.stack_base,
            next_heap_address=self.config.heap_base,
        )

    def push_frame(self, state: ExecutionState, function_name: str) -> StackFrame:
        frame = StackFrame(
            function_name=function_name,
            frame_pointer=format_address(state.layout.next_stack_address),
        )
        state.layout.next_stack_address -= self.config.frame_reservation
        state.call_stack.append(frame)
        return frame

    def allocate_stack(self, state: ExecutionState, size: int) -> str:
        address = format_address(state.layout.next_stack_address)
        state.layout.next_stack_address -= size
        return address

    def allocate_heap(self, state: ExecutionState, size: int, line: int) -> HeapBlock:
        if size < 0:
            raise RuntimeFault(f"malloc size must not be negative, got {size}")
        if size > self.config.max_allocation:
            raise RuntimeFault(
                f"malloc({size}) exceeds the {self.config.max_allocation}-byte allocation limit"
            )
        # Freed blocks keep their cells, so they count against the heap too.
        used = sum(b.size for b in state.heap.values())
        if used + size > self.config.max_heap_size:
            raise RuntimeFault(
                f"malloc({size}) exceeds the {self.config.max_heap_size}-byte heap limit"
            )

        address = format_address(state.layout.next_heap_address)
        block = HeapBlock(
            id=heap_block_id(address),
            address=address,
            size=size,
            data=[0] * math.ceil(size / self.config.cell_size),
            allocated_at=line,
        )
        state.heap[block.id] = block
        state.layout.next_heap_address += size + self.config.heap_padding
        logger.debug("Allocated %d bytes at %s", size, address)
        return block

    def resolve(self, state: ExecutionState, pointer: PointerValue,
                name: str, line: int) -> MemoryCell:
        """
        Resolve the location `pointer` designates, running the NULL, UAF and
        bounds checks on the way.
        """
        block = check_pointer(state, pointer, name, line)
        if block is not None:
            cell = pointer.offset // self.config.cell_size
            check_heap_cell(block, cell, name, line)
            return MemoryCell(block=block, index=cell)

        variable = state.find_variable_by_address(pointer.target)
        if variable is None:
            raise RuntimeFault(f"{name} points to {pointer.target}, where no variable lives")

        if variable.is_array:
            index = pointer.offset // variable.type.base.size
            check_index(index, variable.type.length, variable.name, line)
            return MemoryCell(variable=variable, index=index)

        if pointer.offset != 0:
            raise MemoryViolation(
                ErrorKind.OOB,
                f"Pointer {name} reaches past variable {variable.name}",
                line,
                details=f"offset {pointer.offset} from {variable.address}",
            )
        return MemoryCell(variable=variable)


@dataclass
class MemoryCell:
    """A heap cell, an array element or a whole scalar variable."""
    block: Optional[HeapBlock] = None
    variable: Optional[Variable] = None
    index: Optional[int] = None

    def describe(self) -> str:
        if self.block is not None:
            return "heap write"
        if self.index is not None:
            return f"{self.variable.name}[{self.index}]"
        return self.variable.name

    def read(self) -> Value:
        if self.block is not None:
            return IntValue(self.block.data[self.index])
        if self.index is not None:
            return IntValue(self.variable.value.cells[self.index])
        return self.variable.value

    def write(self, value: Value) -> None:
        if self.block is not None:
            if value.kind != ValueKind.INT:
                raise RuntimeFault("heap cells can only hold integers")
            self.block.data[self.index] = value.value
        elif self.index is not None:
            if value.kind != ValueKind.INT:
                raise RuntimeFault(f"{self.variable.name} holds integers only")
            self.variable.value.cells[self.index] = value.value
        else:
            if value.kind != self.variable.value.kind:
                raise RuntimeFault(
                    f"cannot store a {value.kind.value} in {self.variable.name}"
                )
            self.variable.value = value
