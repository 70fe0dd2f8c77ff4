"""
memsim Abstract Syntax Tree

Every node has a closed `NodeKind` tag, exactly one payload class for that
kind, an ordered list of children and a source line.

Children order per kind:
- declaration:        [initializer?]
- assignment:         [value]
- pointer_assignment: [value]
- array_assignment:   [index, value]
- function_call:      [args...]
- block:              [statements...]
- if:                 [condition, then, else?]
- while:              [condition, body]
- for:                [init, condition, update, body]
- return:             [value?]
- function_definition:[body]
- dereference:        [operand]
- array_access:       [index]
- malloc:             [size]
- binary_op:          [left, right]
"""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class NodeKind(Enum):
    DECLARATION = "declaration"
    ASSIGNMENT = "assignment"
    POINTER_ASSIGNMENT = "pointer_assignment"
    ARRAY_ASSIGNMENT = "array_assignment"
    FUNCTION_CALL = "function_call"
    BLOCK = "block"
    IF = "if"
    WHILE = "while"
    FOR = "for"
    RETURN = "return"
    FUNCTION_DEFINITION = "function_definition"
    NUMBER_LITERAL = "number_literal"
    IDENTIFIER = "identifier"
    ADDRESS_OF = "address_of"
    DEREFERENCE = "dereference"
    ARRAY_ACCESS = "array_access"
    MALLOC = "malloc"
    SIZEOF = "sizeof"
    BINARY_OP = "binary_op"


@dataclass(frozen=True)
class EmptyPayload:
    """Payload for kinds whose meaning lives entirely in their children."""


@dataclass(frozen=True)
class DeclarationPayload:
    base_type: str
    name: str
    is_pointer: bool = False
    is_array: bool = False
    array_size: int = 0


@dataclass(frozen=True)
class NamePayload:
    """Payload for nodes that refer to a single variable or function by name."""
    name: str


@dataclass(frozen=True)
class NumberPayload:
    value: int


@dataclass(frozen=True)
class SizeofPayload:
    type_name: str


@dataclass(frozen=True)
class OperatorPayload:
    operator: str


@dataclass(frozen=True)
class FunctionPayload:
    return_type: str
    name: str


Payload = Union[
    EmptyPayload,
    DeclarationPayload,
    NamePayload,
    NumberPayload,
    SizeofPayload,
    OperatorPayload,
    FunctionPayload,
]

PAYLOAD_TYPES = {
    NodeKind.DECLARATION: DeclarationPayload,
    NodeKind.ASSIGNMENT: NamePayload,
    NodeKind.POINTER_ASSIGNMENT: NamePayload,
    NodeKind.ARRAY_ASSIGNMENT: NamePayload,
    NodeKind.FUNCTION_CALL: NamePayload,
    NodeKind.BLOCK: EmptyPayload,
    NodeKind.IF: EmptyPayload,
    NodeKind.WHILE: EmptyPayload,
    NodeKind.FOR: EmptyPayload,
    NodeKind.RETURN: EmptyPayload,
    NodeKind.FUNCTION_DEFINITION: FunctionPayload,
    NodeKind.NUMBER_LITERAL: NumberPayload,
    NodeKind.IDENTIFIER: NamePayload,
    NodeKind.ADDRESS_OF: NamePayload,
    NodeKind.DEREFERENCE: EmptyPayload,
    NodeKind.ARRAY_ACCESS: NamePayload,
    NodeKind.MALLOC: EmptyPayload,
    NodeKind.SIZEOF: SizeofPayload,
    NodeKind.BINARY_OP: OperatorPayload,
}


@dataclass
class ASTNode:
    """A parsed statement or expression."""
    kind: NodeKind
    payload: Payload
    children: List[ASTNode] = field(default_factory=list)
    line: int = 1

    def __post_init__(self):
        expected = PAYLOAD_TYPES[self.kind]
        if not isinstance(self.payload, expected):
            raise TypeError(
                f"{self.kind.value} node requires {expected.__name__}, "
                f"got {type(self.payload).__name__}"
            )

    def child(self, index: int) -> Optional[ASTNode]:
        """Return the child at `index`, or None when it is absent."""
        if index < len(self.children):
            return self.children[index]
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "line": self.line,
            "payload": asdict(self.payload),
            "children": [c.to_dict() for c in self.children],
        }


def node(kind: NodeKind, payload: Payload = None,
         children: List[ASTNode] = None, line: int = 1) -> ASTNode:
    """Build a node, defaulting to an empty payload."""
    return ASTNode(
        kind=kind,
        payload=payload if payload is not None else EmptyPayload(),
        children=list(children or []),
        line=line,
    )
