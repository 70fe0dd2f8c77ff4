"""
memsim Types and Values

Key classes:
- CType: int | char | pointer | array | void with byte size
- IntValue / PointerValue / ArrayValue: the tagged value variant stored in a
  variable slot; callers branch on `.kind`, never on the Python type
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Union

SCALAR_SIZES = {"int": 4, "char": 1}
POINTER_SIZE = 8
HEAP_PREFIX = "heap_"


class TypeKind(Enum):
    INT = "int"
    CHAR = "char"
    POINTER = "pointer"
    ARRAY = "array"
    VOID = "void"


@dataclass(frozen=True)
class CType:
    kind: TypeKind
    size: int
    base: Optional[CType] = None
    length: Optional[int] = None

    @classmethod
    def scalar(cls, name: str) -> CType:
        if name == "void":
            return cls(TypeKind.VOID, 0)
        return cls(TypeKind(name), SCALAR_SIZES[name])

    @classmethod
    def pointer_to(cls, base: CType) -> CType:
        return cls(TypeKind.POINTER, POINTER_SIZE, base=base)

    @classmethod
    def array_of(cls, base: CType, length: int) -> CType:
        return cls(TypeKind.ARRAY, base.size * length, base=base, length=length)

    def describe(self) -> str:
        if self.kind == TypeKind.POINTER:
            return f"{self.base.describe()}*"
        if self.kind == TypeKind.ARRAY:
            return f"{self.base.describe()}[{self.length}]"
        return self.kind.value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "size": self.size,
            "base": self.base.to_dict() if self.base else None,
            "length": self.length,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> CType:
        base = data.get("base")
        return cls(
            kind=TypeKind(data["kind"]),
            size=data["size"],
            base=cls.from_dict(base) if base else None,
            length=data.get("length"),
        )


class ValueKind(Enum):
    INT = "int"
    POINTER = "pointer"
    ARRAY = "array"


@dataclass(frozen=True)
class IntValue:
    value: int
    kind: ClassVar[ValueKind] = ValueKind.INT

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "value": self.value}


@dataclass(frozen=True)
class PointerValue:
    """
    Reference to a heap block id (`heap_0x...`) or a stack variable address
    (`0x...`), plus a byte offset. A `None` target is NULL.

    `stride` is the pointee size used to scale pointer arithmetic.
    """
    target: Optional[str] = None
    offset: int = 0
    stride: int = 4
    kind: ClassVar[ValueKind] = ValueKind.POINTER

    @property
    def is_null(self) -> bool:
        return self.target is None

    @property
    def is_heap(self) -> bool:
        return self.target is not None and self.target.startswith(HEAP_PREFIX)

    def shifted(self, elements: int) -> PointerValue:
        return PointerValue(self.target, self.offset + elements * self.stride, self.stride)

    def with_stride(self, stride: int) -> PointerValue:
        return PointerValue(self.target, self.offset, stride)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "target": self.target,
            "offset": self.offset,
            "stride": self.stride,
        }


@dataclass
class ArrayValue:
    cells: List[int] = field(default_factory=list)
    kind: ClassVar[ValueKind] = ValueKind.ARRAY

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "cells": list(self.cells)}


Value = Union[IntValue, PointerValue, ArrayValue]

NULL = PointerValue()


def value_from_dict(data: Dict[str, Any]) -> Value:
    kind = ValueKind(data["kind"])
    if kind == ValueKind.INT:
        return IntValue(data["value"])
    if kind == ValueKind.POINTER:
        return PointerValue(data["target"], data["offset"], data.get("stride", 4))
    return ArrayValue(list(data["cells"]))


def value_to_string(value: Value) -> str:
    """Render a value the way the event log shows it."""
    if value.kind == ValueKind.INT:
        return str(value.value)
    if value.kind == ValueKind.ARRAY:
        return "[" + ", ".join(str(c) for c in value.cells) + "]"
    if value.is_null:
        return "NULL"
    if value.offset:
        return f"{value.target}+{value.offset}"
    return value.target
