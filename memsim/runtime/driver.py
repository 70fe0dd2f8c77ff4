"""
memsim Execution Driver

Owns the canonical ExecutionState and the step-back history, and exposes the
control surface used by the CLI and the HTTP API:

    set_code(text)   parse and re-initialize
    step()           execute exactly one pending statement
    run() / pause()  start / cancel the timed auto-run loop
    reset()          re-derive everything from the source text
    step_back()      restore the snapshot taken before the last step
    set_speed(ms)    change the auto-run interval (restarts a running loop)

Execution moves READY -> RUNNING/STEPPING -> HALTED. HALTED is terminal until
reset() or set_code().

Auto-run is driven by a scheduler exposing `call_later(delay_seconds,
callback)` that returns a handle with `cancel()`. By default the running
asyncio event loop is used. Each tick performs one complete step before the
next tick is scheduled, so pausing never leaves a step half applied.

Key classes:
- ExecutionDriver: the stepping/undo state machine
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional
import asyncio
import logging

from memsim.lang.ast import ASTNode, NodeKind
from memsim.lang.parser import Parser, ParseError
from memsim.runtime.config import ExecutionConfig
from memsim.runtime.detector import record
from memsim.runtime.history import SnapshotHistory
from memsim.runtime.interpreter import Interpreter
from memsim.runtime.memory import AddressAllocator
from memsim.runtime.state import (
    ErrorKind,
    EventKind,
    ExecutionState,
    MemoryErrorRecord,
)

logger = logging.getLogger(__name__)


def unroll_entry_point(program: List[ASTNode]) -> List[ASTNode]:
    """
    Flatten the program into the list of steps.

    The body of the single top-level function definition (normally `main`)
    is spliced in place so each of its statements becomes its own step.
    """
    definitions = [n for n in program if n.kind == NodeKind.FUNCTION_DEFINITION]
    if len(definitions) > 1:
        raise ParseError(
            "only a single function definition (main) is supported",
            definitions[1].line,
        )

    statements: List[ASTNode] = []
    for stmt in program:
        if stmt.kind == NodeKind.FUNCTION_DEFINITION:
            statements.extend(stmt.children[0].children)
        else:
            statements.append(stmt)
    return statements


class ExecutionDriver:
    """Stepping, auto-run and undo over one loaded program."""

    def __init__(self, config: ExecutionConfig = None, scheduler: Any = None):
        self.config = (config or ExecutionConfig()).validate()
        self.scheduler = scheduler
        self.parser = Parser()
        self.allocator = AddressAllocator(self.config)
        self.history = SnapshotHistory(self.config.history_capacity)
        self.state = ExecutionState(layout=self.allocator.initial_layout())
        self.statements: Optional[List[ASTNode]] = None
        self.statement_index = 0
        self.speed_ms = self.config.speed_ms
        self._timer = None

    @property
    def is_loaded(self) -> bool:
        return self.statements is not None

    @property
    def is_running(self) -> bool:
        return self.state.is_running

    @property
    def is_halted(self) -> bool:
        return self.state.is_halted

    def set_code(self, code: str) -> None:
        """Parse `code` and start over; a parse failure halts with one SYNTAX error."""
        self.pause()
        self.history.clear()
        self.statement_index = 0

        try:
            statements = unroll_entry_point(self.parser.parse(code))
            state = ExecutionState(code=code, layout=self.allocator.initial_layout())
            Interpreter(state, self.config, self.allocator).initialize_main()
        except Exception as exc:
            line = exc.line if isinstance(exc, ParseError) else None
            message = exc.message if isinstance(exc, ParseError) else str(exc)
            logger.info("Program failed to load: %s", message)
            statements = []
            state = ExecutionState(code=code, layout=self.allocator.initial_layout())
            record(state, MemoryErrorRecord(
                ErrorKind.SYNTAX,
                f"Parse error: {message}",
                1,
                details=f"at source line {line}" if line is not None else None,
            ))
        else:
            logger.info("Loaded program with %d statements", len(statements))

        self.statements = statements
        self.state = state

    def step(self) -> bool:
        """Execute one statement. Returns False when nothing could be executed."""
        if not self.is_loaded or self.state.is_halted:
            return False

        self.history.push(self.statement_index, self.state)
        interpreter = Interpreter(self.state, self.config, self.allocator)

        if self.statement_index < len(self.statements):
            stmt = self.statements[self.statement_index]
            logger.debug("Step %d: %s at line %d", self.statement_index, stmt.kind.value, stmt.line)
            interpreter.execute_statement(stmt)
            self.statement_index += 1

        if not self.state.is_halted and self.statement_index >= len(self.statements):
            self.state.is_halted = True
            self.state.add_log(self.state.current_line, EventKind.INFO, "Program completed")

        if self.state.is_halted:
            if not self.state.errors:
                interpreter.check_for_leaks()
            logger.info("Program halted at line %d with %d error(s)",
                        self.state.current_line, len(self.state.errors))

        if self.state.is_halted or self.state.errors:
            self.pause()
        return True

    def run(self) -> None:
        """Start stepping every `speed_ms` milliseconds until halted or paused."""
        if not self.is_loaded or self.state.is_halted or self.state.is_running:
            return
        scheduler = self._resolve_scheduler()
        self.state.is_running = True
        logger.info("Auto-run started at %d ms per step", self.speed_ms)
        self._schedule(scheduler)

    def pause(self) -> None:
        """Cancel the auto-run loop. Pausing a paused driver does nothing."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self.state.is_running:
            logger.info("Auto-run paused")
        self.state.is_running = False

    def reset(self) -> None:
        """Discard all state and re-parse the original source."""
        self.pause()
        if self.is_loaded:
            logger.info("Resetting program")
            self.set_code(self.state.code)

    def step_back(self) -> bool:
        """Restore the state from before the last step. Returns False if there is none."""
        if not self.history:
            return False
        self.pause()
        snapshot = self.history.pop()
        self.state = snapshot.restore()
        self.state.is_running = False
        self.statement_index = snapshot.statement_index
        logger.debug("Stepped back to statement %d", self.statement_index)
        return True

    def set_speed(self, speed_ms: int) -> None:
        self.speed_ms = self.config.check_speed(speed_ms)
        if self.state.is_running:
            self.pause()
            self.run()

    def run_to_end(self) -> int:
        """Step synchronously until halted; returns the number of steps taken."""
        steps = 0
        while self.step():
            steps += 1
        return steps

    def snapshot(self) -> Dict[str, Any]:
        """Read-only view of the current state for renderers."""
        data = self.state.to_dict()
        data.update({
            "statement_index": self.statement_index,
            "statement_count": len(self.statements) if self.statements is not None else 0,
            "history_depth": len(self.history),
            "speed_ms": self.speed_ms,
        })
        return data

    def _resolve_scheduler(self) -> Any:
        if self.scheduler is not None:
            return self.scheduler
        try:
            return asyncio.get_running_loop()
        except RuntimeError:
            raise RuntimeError(
                "run() needs a scheduler or a running asyncio event loop"
            ) from None

    def _schedule(self, scheduler: Any) -> None:
        self._timer = scheduler.call_later(self.speed_ms / 1000.0, self._tick)

    def _tick(self) -> None:
        self._timer = None
        if not self.state.is_running:
            return
        if self.state.is_halted or self.state.errors:
            self.pause()
            return
        self.step()
        if self.state.is_running:
            self._schedule(self._resolve_scheduler())
