"""
memsim Expression Evaluator

Evaluates expression nodes against the execution state. Evaluation has no
side effects except `malloc`, which creates a heap block, logs it and
returns a pointer to it as the value of the call.

Binary operators:
- `+ - * /` on integers (`/` floors, division by zero is a fault)
- `< >` and `=` (equality) yield 1 or 0
- `p + n`, `p - n` move a pointer by n pointees; `p - q` is their distance
- `p < q`, `p > q` compare offsets of pointers into the same object

`sizeof` of a pointer type (`sizeof(int*)`) is 8; any unknown name is 1.
"""

from __future__ import annotations

import logging

from memsim.lang.ast import ASTNode, NodeKind
from memsim.runtime.config import ExecutionConfig
from memsim.runtime.detector import RuntimeFault, check_index
from memsim.runtime.memory import AddressAllocator
from memsim.runtime.state import EventKind, ExecutionState, Variable
from memsim.runtime.values import (
    NULL,
    POINTER_SIZE,
    SCALAR_SIZES,
    IntValue,
    PointerValue,
    Value,
    ValueKind,
)

logger = logging.getLogger(__name__)


class ExpressionEvaluator:
    """Evaluates expression nodes; lives for the duration of one step."""

    def __init__(self, state: ExecutionState, allocator: AddressAllocator = None,
                 config: ExecutionConfig = None):
        self.state = state
        self.config = config or ExecutionConfig()
        self.allocator = allocator or AddressAllocator(self.config)

    def evaluate(self, node: ASTNode) -> Value:
        kind = node.kind

        if kind == NodeKind.NUMBER_LITERAL:
            return IntValue(node.payload.value)
        if kind == NodeKind.IDENTIFIER:
            return self._eval_identifier(node)
        if kind == NodeKind.ADDRESS_OF:
            return self._eval_address_of(node)
        if kind == NodeKind.DEREFERENCE:
            return self._eval_dereference(node)
        if kind == NodeKind.ARRAY_ACCESS:
            return self._eval_array_access(node)
        if kind == NodeKind.MALLOC:
            return self.malloc(node.children[0], node.line)
        if kind == NodeKind.SIZEOF:
            return IntValue(sizeof(node.payload.type_name))
        if kind == NodeKind.BINARY_OP:
            left = self.evaluate(node.children[0])
            right = self.evaluate(node.children[1])
            return apply_operator(node.payload.operator, left, right)

        raise RuntimeFault(f"{kind.value} cannot be used as an expression")

    def evaluate_int(self, node: ASTNode, what: str = "value") -> int:
        return as_int(self.evaluate(node), what)

    def is_true(self, node: ASTNode) -> bool:
        value = self.evaluate(node)
        if value.kind == ValueKind.INT:
            return value.value != 0
        if value.kind == ValueKind.POINTER:
            return not value.is_null
        return True

    def lookup(self, name: str) -> Variable:
        variable = self.state.current_frame().variables.get(name)
        if variable is None:
            raise RuntimeFault(f"Variable {name} not declared")
        return variable

    def malloc(self, size_node: ASTNode, line: int) -> PointerValue:
        size = self.evaluate_int(size_node, "malloc size")
        block = self.allocator.allocate_heap(self.state, size, line)
        self.state.add_log(line, EventKind.MALLOC, f"malloc({size}) → {block.address}")
        return PointerValue(block.id, 0, self.config.cell_size)

    def _eval_identifier(self, node: ASTNode) -> Value:
        name = node.payload.name
        variables = self.state.current_frame().variables
        if name == "NULL" and name not in variables:
            return NULL

        variable = self.lookup(name)
        if variable.is_array:
            # Arrays decay to a pointer to their first element.
            return PointerValue(variable.address, 0, variable.type.base.size)
        return variable.value

    def _eval_address_of(self, node: ASTNode) -> PointerValue:
        variable = self.lookup(node.payload.name)
        stride = variable.type.base.size if variable.is_array else variable.size
        return PointerValue(variable.address, 0, stride)

    def _eval_dereference(self, node: ASTNode) -> Value:
        operand = node.children[0]
        name = operand.payload.name if operand.kind == NodeKind.IDENTIFIER else "expression"
        pointer = self.evaluate(operand)
        if pointer.kind != ValueKind.POINTER:
            raise RuntimeFault(f"cannot dereference {name}: it is not a pointer")
        cell = self.allocator.resolve(self.state, pointer, name, node.line)
        return cell.read()

    def _eval_array_access(self, node: ASTNode) -> Value:
        name = node.payload.name
        variable = self.lookup(name)
        index = self.evaluate_int(node.children[0], "array index")

        if variable.is_array:
            check_index(index, variable.type.length, name, node.line)
            return IntValue(variable.value.cells[index])
        if variable.is_pointer:
            pointer = variable.value.shifted(index)
            return self.allocator.resolve(self.state, pointer, name, node.line).read()

        raise RuntimeFault(f"{name} is not an array or pointer")


def sizeof(type_name: str) -> int:
    """`sizeof(int)` is 4, pointers are 8; any other name counts as 1 byte."""
    if type_name.endswith("*"):
        return POINTER_SIZE
    if type_name == "int":
        return SCALAR_SIZES["int"]
    return 1


def as_int(value: Value, what: str = "value") -> int:
    if value.kind != ValueKind.INT:
        raise RuntimeFault(f"{what} must be an integer, got a {value.kind.value}")
    return value.value


def _pointers_equal(left: Value, right: Value) -> bool:
    if left.kind == ValueKind.POINTER and right.kind == ValueKind.POINTER:
        return left.target == right.target and left.offset == right.offset
    pointer, other = (left, right) if left.kind == ValueKind.POINTER else (right, left)
    if other.kind == ValueKind.INT and other.value == 0:
        return pointer.is_null
    raise RuntimeFault("pointers can only be compared with pointers or 0")


def apply_operator(operator: str, left: Value, right: Value) -> Value:
    if left.kind == ValueKind.POINTER or right.kind == ValueKind.POINTER:
        return _apply_pointer_operator(operator, left, right)

    a = as_int(left, "left operand")
    b = as_int(right, "right operand")

    if operator == "+":
        return IntValue(a + b)
    if operator == "-":
        return IntValue(a - b)
    if operator == "*":
        return IntValue(a * b)
    if operator == "/":
        if b == 0:
            raise RuntimeFault("Division by zero")
        return IntValue(a // b)
    if operator == "<":
        return IntValue(1 if a < b else 0)
    if operator == ">":
        return IntValue(1 if a > b else 0)
    if operator == "=":
        return IntValue(1 if a == b else 0)

    raise RuntimeFault(f"unknown operator '{operator}'")


def _apply_pointer_operator(operator: str, left: Value, right: Value) -> Value:
    if operator == "=":
        return IntValue(1 if _pointers_equal(left, right) else 0)

    if left.kind == ValueKind.POINTER and right.kind == ValueKind.INT and operator in ("+", "-"):
        if left.is_null:
            raise RuntimeFault("arithmetic on a NULL pointer")
        step = right.value if operator == "+" else -right.value
        return left.shifted(step)

    if left.kind == ValueKind.INT and right.kind == ValueKind.POINTER and operator == "+":
        if right.is_null:
            raise RuntimeFault("arithmetic on a NULL pointer")
        return right.shifted(left.value)

    if left.kind == ValueKind.POINTER and right.kind == ValueKind.POINTER and operator in ("<", ">"):
        if left.target != right.target:
            raise RuntimeFault("comparing pointers into different objects")
        if operator == "<":
            return IntValue(1 if left.offset < right.offset else 0)
        return IntValue(1 if left.offset > right.offset else 0)

    if left.kind == ValueKind.POINTER and right.kind == ValueKind.POINTER and operator == "-":
        if left.target != right.target:
            raise RuntimeFault("subtracting pointers into different objects")
        return IntValue((left.offset - right.offset) // left.stride)

    raise RuntimeFault(f"operator '{operator}' is not defined for pointers")
