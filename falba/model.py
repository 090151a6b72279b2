"""Core data model: results, artifacts, facts, metrics and typed values."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import ClassVar, Dict, List, Union


class ValueType(Enum):
    """The type of a fact or metric value."""

    INT = "int"
    FLOAT = "float"
    STRING = "string"

    def __str__(self) -> str:
        return self.value

    def sql(self) -> str:
        """Return the SQL column type used to store values of this type."""
        return _SQL_TYPES[self]


_SQL_TYPES = {
    ValueType.INT: "INT64",
    ValueType.FLOAT: "FLOAT",
    ValueType.STRING: "STRING",
}


def parse_value_type(s: str) -> ValueType:
    """Return the value type named by ``s``."""
    try:
        return ValueType(s)
    except ValueError:
        raise ValueError(
            f"unknown value type {s!r}, expect 'int', 'float' or 'string'"
        ) from None


@dataclass(frozen=True)
class IntValue:
    """A 64-bit signed integer value."""

    value: int
    type: ClassVar[ValueType] = ValueType.INT

    def sql_value(self) -> int:
        return self.value


@dataclass(frozen=True)
class FloatValue:
    """A double-precision floating point value."""

    value: float
    type: ClassVar[ValueType] = ValueType.FLOAT

    def sql_value(self) -> float:
        return self.value


@dataclass(frozen=True)
class StringValue:
    """A text value."""

    value: str
    type: ClassVar[ValueType] = ValueType.STRING

    def sql_value(self) -> str:
        return self.value


Value = Union[IntValue, FloatValue, StringValue]

_INT_MIN = -(2**63)
_INT_MAX = 2**63 - 1

_INT_SYNTAX = re.compile(
    r"[+-]?(?:"
    r"0[xX](?:_?[0-9a-fA-F])+"
    r"|0[bB](?:_?[01])+"
    r"|0[oO](?:_?[0-7])+"
    r"|0(?:_?[0-7])*"
    r"|[1-9](?:_?[0-9])*"
    r")\Z"
)
_DECIMAL_FLOAT = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?\Z")
_HEX_FLOAT = re.compile(
    r"[+-]?0[xX](?:[0-9a-fA-F]+\.?[0-9a-fA-F]*|\.[0-9a-fA-F]+)[pP][+-]?\d+\Z"
)
_SPECIAL_FLOAT = re.compile(r"(?:[+-]?(?:infinity|inf)|nan)\Z", re.IGNORECASE)


def _parse_int(s: str) -> int:
    if not _INT_SYNTAX.match(s):
        raise ValueError(f"couldn't parse {s} as int: invalid syntax")
    sign = ""
    body = s
    if body[0] in "+-":
        sign, body = body[0], body[1:]
    # A bare leading zero introduces an octal literal.
    if len(body) > 1 and body[0] == "0" and body[1] not in "xXbBoO":
        body = "0o" + body[1:]
    number = int(sign + body, 0)
    if not _INT_MIN <= number <= _INT_MAX:
        raise ValueError(f"couldn't parse {s} as int: value out of range")
    return number


def _parse_float(s: str) -> float:
    if _SPECIAL_FLOAT.match(s):
        return float(s)
    if _HEX_FLOAT.match(s):
        number = float.fromhex(s)
    elif _DECIMAL_FLOAT.match(s):
        number = float(s)
    else:
        raise ValueError(f"couldn't parse {s} as float: invalid syntax")
    if math.isinf(number):
        raise ValueError(f"couldn't parse {s} as float: value out of range")
    return number


def parse_value(s: str, value_type: ValueType) -> Value:
    """Parse ``s`` as a value of the given type."""
    if value_type is ValueType.INT:
        return IntValue(_parse_int(s))
    if value_type is ValueType.FLOAT:
        return FloatValue(_parse_float(s))
    if value_type is ValueType.STRING:
        return StringValue(s)
    raise ValueError(f"invalid value type {value_type}")


@dataclass(frozen=True)
class Artifact:
    """A file belonging to a result; its name is its path within the artifacts dir."""

    name: str
    path: Path

    def content(self) -> bytes:
        return Path(self.path).read_bytes()


@dataclass
class Metric:
    """A measured output of a result."""

    name: str
    value: Value


@dataclass
class Result:
    """The outcome of one run of a test, with its artifacts, metrics and facts."""

    test_name: str
    result_id: str
    artifacts: List[Artifact] = field(default_factory=list)
    metrics: List[Metric] = field(default_factory=list)
    facts: Dict[str, Value] = field(default_factory=dict)