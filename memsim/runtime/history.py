"""
memsim Snapshot History

Bounded ring buffer of pre-step snapshots used by step-back. Once full, the
oldest snapshot is dropped. There is no redo stack.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Dict

from memsim.runtime.state import ExecutionState


@dataclass(frozen=True)
class Snapshot:
    """Serialized state plus the index of the statement that was about to run."""
    statement_index: int
    state: Dict[str, Any]

    def restore(self) -> ExecutionState:
        return ExecutionState.from_dict(self.state)


class SnapshotHistory:
    def __init__(self, capacity: int = 100):
        self.capacity = capacity
        self._snapshots: Deque[Snapshot] = deque(maxlen=capacity)

    def push(self, statement_index: int, state: ExecutionState) -> Snapshot:
        snapshot = Snapshot(statement_index, state.to_dict())
        self._snapshots.append(snapshot)
        return snapshot

    def pop(self) -> Snapshot:
        """Remove and return the most recent snapshot (IndexError when empty)."""
        return self._snapshots.pop()

    def clear(self) -> None:
        self._snapshots.clear()

    def __len__(self) -> int:
        return len(self._snapshots)

    def __bool__(self) -> bool:
        return bool(self._snapshots)
