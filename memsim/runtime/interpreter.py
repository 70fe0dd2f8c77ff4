"""
memsim Interpreter

Tree-walking executor for statement nodes.

An Interpreter is built around the driver's state for a single step and
dropped afterwards. `execute_statement` is the error boundary: violations
and every evaluation failure become entries in `state.errors` and halt the
run, so nothing propagates out of a step.

Key classes:
- Interpreter: statement execution (declarations, writes, malloc/free,
  branches, loops, return)
"""

from __future__ import annotations

from typing import Callable, Dict
import logging

from memsim.lang.ast import ASTNode, NodeKind
from memsim.runtime.config import ExecutionConfig
from memsim.runtime.detector import (
    MemoryViolation,
    RuntimeFault,
    check_free,
    check_index,
    leak_report,
    record,
)
from memsim.runtime.evaluator import ExpressionEvaluator, as_int
from memsim.runtime.memory import AddressAllocator
from memsim.runtime.state import (
    BlockStatus,
    ErrorKind,
    EventKind,
    ExecutionState,
    MemoryErrorRecord,
    StackFrame,
    Variable,
)
from memsim.runtime.values import (
    NULL,
    ArrayValue,
    CType,
    IntValue,
    TypeKind,
    Value,
    ValueKind,
    value_to_string,
)

logger = logging.getLogger(__name__)


class Interpreter:
    """Executes statements against a borrowed ExecutionState."""

    def __init__(self, state: ExecutionState, config: ExecutionConfig = None,
                 allocator: AddressAllocator = None):
        self.state = state
        self.config = config or ExecutionConfig()
        self.allocator = allocator or AddressAllocator(self.config)
        self.evaluator = ExpressionEvaluator(state, self.allocator, self.config)
        self._handlers: Dict[NodeKind, Callable[[ASTNode], None]] = {
            NodeKind.DECLARATION: self._exec_declaration,
            NodeKind.ASSIGNMENT: self._exec_assignment,
            NodeKind.POINTER_ASSIGNMENT: self._exec_pointer_assignment,
            NodeKind.ARRAY_ASSIGNMENT: self._exec_array_assignment,
            NodeKind.FUNCTION_CALL: self._exec_function_call,
            NodeKind.BLOCK: self._exec_block,
            NodeKind.IF: self._exec_if,
            NodeKind.WHILE: self._exec_while,
            NodeKind.FOR: self._exec_for,
            NodeKind.RETURN: self._exec_return,
            NodeKind.FUNCTION_DEFINITION: self._exec_function_definition,
        }

    def initialize_main(self) -> StackFrame:
        """Push the `main` frame and log the start of the program."""
        frame = self.allocator.push_frame(self.state, "main")
        self.state.add_log(1, EventKind.INFO, "Started main()")
        return frame

    def execute_statement(self, node: ASTNode) -> None:
        """Execute one statement; violations are recorded and halt the run."""
        if self.state.is_halted:
            return

        try:
            self._execute(node)
        except MemoryViolation as violation:
            record(self.state, violation.to_record())
        except Exception as exc:
            logger.debug("Statement at line %d failed", self.state.current_line, exc_info=True)
            record(self.state, MemoryErrorRecord(
                ErrorKind.SYNTAX,
                str(exc) or type(exc).__name__,
                self.state.current_line,
                details=type(exc).__name__,
            ))

    def check_for_leaks(self) -> None:
        """Report every still-allocated block as a single LEAK error."""
        report = leak_report(self.state)
        if report is not None:
            record(self.state, report)

    def _execute(self, node: ASTNode) -> None:
        if self.state.is_halted:
            return
        self.state.current_line = node.line
        handler = self._handlers.get(node.kind)
        if handler is None:
            raise RuntimeFault(f"{node.kind.value} is not a statement")
        logger.debug("Executing %s at line %d", node.kind.value, node.line)
        handler(node)

    def _frame(self) -> StackFrame:
        return self.state.current_frame()

    # ------------------------------------------------------------------
    # Declarations and writes
    # ------------------------------------------------------------------

    def _exec_declaration(self, node: ASTNode) -> None:
        decl = node.payload
        base = CType.scalar(decl.base_type)

        if decl.is_array:
            ctype = CType.array_of(base, decl.array_size)
            value: Value = ArrayValue([0] * decl.array_size)
        elif decl.is_pointer:
            ctype = CType.pointer_to(base)
            value = NULL.with_stride(base.size)
        else:
            ctype = base
            value = IntValue(0)

        initializer = node.child(0)
        if initializer is not None:
            value = coerce(ctype, self.evaluator.evaluate(initializer), decl.name)

        frame = self._frame()
        existing = frame.variables.get(decl.name)
        if existing is not None:
            # Re-entering a declaration (e.g. inside a loop) reuses its slot.
            if existing.type != ctype:
                raise RuntimeFault(f"Redeclaration of {decl.name} with a different type")
            existing.value = value
        else:
            frame.variables[decl.name] = Variable(
                name=decl.name,
                type=ctype,
                value=value,
                address=self.allocator.allocate_stack(self.state, ctype.size),
                size=ctype.size,
                is_pointer=decl.is_pointer,
                is_array=decl.is_array,
            )

        self.state.add_log(
            node.line,
            EventKind.DECLARATION,
            f"Declared {ctype.describe()} {decl.name} = {value_to_string(value)}",
        )

    def _exec_assignment(self, node: ASTNode) -> None:
        name = node.payload.name
        variable = self.evaluator.lookup(name)
        value = coerce(variable.type, self.evaluator.evaluate(node.children[0]), name)
        variable.value = value
        self.state.add_log(node.line, EventKind.ASSIGNMENT, f"{name} = {value_to_string(value)}")

    def _exec_pointer_assignment(self, node: ASTNode) -> None:
        name = node.payload.name
        variable = self.evaluator.lookup(name)
        if not variable.is_pointer:
            raise RuntimeFault(f"{name} is not a pointer")

        # The target is validated before the right-hand side is evaluated.
        cell = self.allocator.resolve(self.state, variable.value, name, node.line)
        value = self.evaluator.evaluate(node.children[0])
        cell.write(value)
        self.state.add_log(
            node.line,
            EventKind.ASSIGNMENT,
            f"*{name} = {value_to_string(value)} ({cell.describe()})",
        )

    def _exec_array_assignment(self, node: ASTNode) -> None:
        name = node.payload.name
        variable = self.evaluator.lookup(name)
        index = self.evaluator.evaluate_int(node.children[0], "array index")

        # As with `*p = e`, the target is validated before the right-hand side runs.
        if variable.is_array:
            check_index(index, variable.type.length, name, node.line)
            value = self.evaluator.evaluate(node.children[1])
            variable.value.cells[index] = as_int(value, f"{name}[{index}]")
        elif variable.is_pointer:
            cell = self.allocator.resolve(self.state, variable.value.shifted(index), name, node.line)
            value = self.evaluator.evaluate(node.children[1])
            cell.write(value)
        else:
            raise RuntimeFault(f"{name} is not an array")

        self.state.add_log(
            node.line,
            EventKind.ASSIGNMENT,
            f"{name}[{index}] = {value_to_string(value)}",
        )

    # ------------------------------------------------------------------
    # Calls
    # ------------------------------------------------------------------

    def _exec_function_call(self, node: ASTNode) -> None:
        name = node.payload.name

        if name == "malloc":
            if len(node.children) != 1:
                raise RuntimeFault("malloc() takes exactly one argument")
            self.evaluator.malloc(node.children[0], node.line)
        elif name == "free":
            if len(node.children) != 1:
                raise RuntimeFault("free() takes exactly one argument")
            self._free(node)
        else:
            self.state.add_log(
                node.line,
                EventKind.FUNCTION_CALL,
                f"{name}() is not simulated; call ignored",
            )

    def _free(self, node: ASTNode) -> None:
        pointer = self.evaluator.evaluate(node.children[0])
        if pointer.kind == ValueKind.INT and pointer.value == 0:
            pointer = NULL
        elif pointer.kind != ValueKind.POINTER:
            raise RuntimeFault("free() expects a pointer")

        block = check_free(self.state, pointer, node.line)
        block.status = BlockStatus.FREED
        block.freed_at = node.line
        self.state.add_log(node.line, EventKind.FREE, f"free({block.address})")

    # ------------------------------------------------------------------
    # Control flow
    # ------------------------------------------------------------------

    def _exec_block(self, node: ASTNode) -> None:
        for child in node.children:
            if self.state.is_halted:
                break
            self._execute(child)

    def _exec_if(self, node: ASTNode) -> None:
        if self.evaluator.is_true(node.children[0]):
            self._execute(node.children[1])
        elif node.child(2) is not None:
            self._execute(node.children[2])

    def _exec_while(self, node: ASTNode) -> None:
        condition, body = node.children
        self._loop(node, condition, body)

    def _exec_for(self, node: ASTNode) -> None:
        init, condition, update, body = node.children
        self._execute(init)
        self._loop(node, condition, body, update)

    def _loop(self, node: ASTNode, condition: ASTNode, body: ASTNode,
              update: ASTNode = None) -> None:
        limit = self.config.max_loop_iterations
        iterations = 0

        while not self.state.is_halted:
            self.state.current_line = node.line
            if not self.evaluator.is_true(condition):
                break
            if iterations >= limit:
                raise MemoryViolation(
                    ErrorKind.SYNTAX,
                    "Infinite loop detected",
                    node.line,
                    details=f"loop exceeded {limit} iterations",
                )
            self._execute(body)
            iterations += 1
            if update is not None:
                self._execute(update)

    def _exec_return(self, node: ASTNode) -> None:
        message = "Program completed"
        value_node = node.child(0)
        if value_node is not None:
            message += f" (returned {value_to_string(self.evaluator.evaluate(value_node))})"
        self.state.is_halted = True
        self.state.add_log(node.line, EventKind.INFO, message)

    def _exec_function_definition(self, node: ASTNode) -> None:
        self._execute(node.children[0])


def coerce(ctype: CType, value: Value, name: str) -> Value:
    """Convert an evaluated value to what a variable of `ctype` can hold."""
    if ctype.kind == TypeKind.ARRAY:
        raise RuntimeFault(f"cannot assign to array {name}")

    if ctype.kind == TypeKind.POINTER:
        if value.kind == ValueKind.POINTER:
            return value.with_stride(ctype.base.size)
        if value.kind == ValueKind.INT and value.value == 0:
            return NULL.with_stride(ctype.base.size)
        raise RuntimeFault(f"cannot assign {value_to_string(value)} to pointer {name}")

    if value.kind != ValueKind.INT:
        raise RuntimeFault(f"cannot assign a {value.kind.value} to {ctype.describe()} {name}")
    return value
