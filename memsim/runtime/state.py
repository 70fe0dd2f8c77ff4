"""
memsim Execution State

The aggregate observed by everything outside the engine: call stack, heap,
errors, event log and run/halt flags.

`ExecutionState.to_dict()` / `ExecutionState.from_dict()` are the single
deep-copy boundary: history snapshots, step-back and every external view
go through them.

Key classes:
- Variable, StackFrame: stack memory
- HeapBlock: one malloc'd block
- MemoryErrorRecord: a detected violation
- ExecutionEvent: one entry of the append-only event log
- MemoryLayout: next free stack/heap addresses
- ExecutionState: the whole thing
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from memsim.runtime.values import CType, Value, value_from_dict


class BlockStatus(Enum):
    ALLOCATED = "allocated"
    FREED = "freed"


class ErrorKind(Enum):
    OOB = "OOB"
    UAF = "UAF"
    NULL_DEREF = "NULL_DEREF"
    DOUBLE_FREE = "DOUBLE_FREE"
    LEAK = "LEAK"
    SYNTAX = "SYNTAX"


class EventKind(Enum):
    MALLOC = "malloc"
    FREE = "free"
    ASSIGNMENT = "assignment"
    DECLARATION = "declaration"
    FUNCTION_CALL = "function_call"
    ERROR = "error"
    INFO = "info"


@dataclass
class Variable:
    name: str
    type: CType
    value: Value
    address: str
    size: int
    is_pointer: bool = False
    is_array: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type.to_dict(),
            "value": self.value.to_dict(),
            "address": self.address,
            "size": self.size,
            "is_pointer": self.is_pointer,
            "is_array": self.is_array,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Variable:
        return cls(
            name=data["name"],
            type=CType.from_dict(data["type"]),
            value=value_from_dict(data["value"]),
            address=data["address"],
            size=data["size"],
            is_pointer=data["is_pointer"],
            is_array=data["is_array"],
        )


@dataclass
class StackFrame:
    function_name: str
    frame_pointer: str
    variables: Dict[str, Variable] = field(default_factory=dict)
    return_address: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "function_name": self.function_name,
            "frame_pointer": self.frame_pointer,
            "return_address": self.return_address,
            "variables": [v.to_dict() for v in self.variables.values()],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> StackFrame:
        frame = cls(
            function_name=data["function_name"],
            frame_pointer=data["frame_pointer"],
            return_address=data.get("return_address", 0),
        )
        for var_data in data["variables"]:
            variable = Variable.from_dict(var_data)
            frame.variables[variable.name] = variable
        return frame


@dataclass
class HeapBlock:
    id: str
    address: str
    size: int
    data: List[int]
    allocated_at: int
    status: BlockStatus = BlockStatus.ALLOCATED
    freed_at: Optional[int] = None

    @property
    def is_freed(self) -> bool:
        return self.status == BlockStatus.FREED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "address": self.address,
            "size": self.size,
            "status": self.status.value,
            "data": list(self.data),
            "allocated_at": self.allocated_at,
            "freed_at": self.freed_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> HeapBlock:
        return cls(
            id=data["id"],
            address=data["address"],
            size=data["size"],
            data=list(data["data"]),
            allocated_at=data["allocated_at"],
            status=BlockStatus(data["status"]),
            freed_at=data.get("freed_at"),
        )


@dataclass(frozen=True)
class MemoryErrorRecord:
    """A detected memory-safety violation (named to avoid the builtin MemoryError)."""
    kind: ErrorKind
    message: str
    line: int
    details: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "line": self.line,
            "details": self.details,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> MemoryErrorRecord:
        return cls(ErrorKind(data["kind"]), data["message"], data["line"], data.get("details"))


@dataclass(frozen=True)
class ExecutionEvent:
    line: int
    kind: EventKind
    message: str
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "line": self.line,
            "kind": self.kind.value,
            "message": self.message,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ExecutionEvent:
        return cls(data["line"], EventKind(data["kind"]), data["message"], data["timestamp"])


@dataclass
class MemoryLayout:
    """Next free addresses; part of the state so step-back rewinds them too."""
    next_stack_address: int
    next_heap_address: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "next_stack_address": self.next_stack_address,
            "next_heap_address": self.next_heap_address,
        }


@dataclass
class ExecutionState:
    """
    Everything the simulator knows about the running program.

    Once `is_halted` is set no further statement is evaluated until the
    driver resets.
    """
    code: str = ""
    layout: MemoryLayout = field(default_factory=lambda: MemoryLayout(0, 0))
    current_line: int = 1
    call_stack: List[StackFrame] = field(default_factory=list)
    heap: Dict[str, HeapBlock] = field(default_factory=dict)
    errors: List[MemoryErrorRecord] = field(default_factory=list)
    log: List[ExecutionEvent] = field(default_factory=list)
    is_running: bool = False
    is_halted: bool = False

    @property
    def lines(self) -> List[str]:
        return self.code.split("\n")

    def current_frame(self) -> StackFrame:
        if not self.call_stack:
            raise RuntimeError("No active stack frame")
        return self.call_stack[-1]

    def find_variable_by_address(self, address: str) -> Optional[Variable]:
        for variable in self.current_frame().variables.values():
            if variable.address == address:
                return variable
        return None

    def add_log(self, line: int, kind: EventKind, message: str) -> ExecutionEvent:
        event = ExecutionEvent(line, kind, message)
        self.log.append(event)
        return event

    def add_error(self, record: MemoryErrorRecord) -> None:
        self.errors.append(record)
        self.add_log(record.line, EventKind.ERROR, f"{record.kind.value}: {record.message}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "layout": self.layout.to_dict(),
            "current_line": self.current_line,
            "call_stack": [f.to_dict() for f in self.call_stack],
            "heap": {block_id: b.to_dict() for block_id, b in self.heap.items()},
            "errors": [e.to_dict() for e in self.errors],
            "log": [e.to_dict() for e in self.log],
            "is_running": self.is_running,
            "is_halted": self.is_halted,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ExecutionState:
        return cls(
            code=data["code"],
            layout=MemoryLayout(**data["layout"]),
            current_line=data["current_line"],
            call_stack=[StackFrame.from_dict(f) for f in data["call_stack"]],
            heap={block_id: HeapBlock.from_dict(b) for block_id, b in data["heap"].items()},
            errors=[MemoryErrorRecord.from_dict(e) for e in data["errors"]],
            log=[ExecutionEvent.from_dict(e) for e in data["log"]],
            is_running=data["is_running"],
            is_halted=data["is_halted"],
        )
