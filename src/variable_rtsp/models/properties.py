"""
Property Value Model
====================

Closed tagged variant for introspected element properties.

The pipeline engine exposes properties through its own reflection
mechanism. Engines translate each readable property into a TypedValue,
and the codec formats TypedValues without ever touching the engine.

Kinds:
    STRING      -> value: Optional[str]
    BOOL        -> value: bool
    INT / UINT  -> value: int
    FLOAT       -> value: float
    ENUM        -> value: int (ordinal), nick: str
    FRACTION    -> value: (numerator, denominator)
    UNSUPPORTED -> skipped by formatting (chars, bytes, objects, ...)
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple


class ValueKind(str, Enum):
    """Runtime type tag of a property value."""

    STRING = "string"
    BOOL = "bool"
    INT = "int"
    UINT = "uint"
    FLOAT = "float"
    ENUM = "enum"
    FRACTION = "fraction"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True, slots=True)
class TypedValue:
    """
    A property value tagged with its kind.

    Attributes:
        kind: Runtime type tag
        value: Python value (see module docstring for per-kind shape)
        nick: Enum nickname, only meaningful for ENUM
    """

    kind: ValueKind
    value: Any = None
    nick: Optional[str] = None

    @classmethod
    def string(cls, value: Optional[str]) -> "TypedValue":
        return cls(ValueKind.STRING, value)

    @classmethod
    def boolean(cls, value: bool) -> "TypedValue":
        return cls(ValueKind.BOOL, bool(value))

    @classmethod
    def integer(cls, value: int, unsigned: bool = False) -> "TypedValue":
        return cls(ValueKind.UINT if unsigned else ValueKind.INT, int(value))

    @classmethod
    def floating(cls, value: float) -> "TypedValue":
        return cls(ValueKind.FLOAT, float(value))

    @classmethod
    def enum(cls, ordinal: int, nick: str) -> "TypedValue":
        return cls(ValueKind.ENUM, int(ordinal), nick)

    @classmethod
    def fraction(cls, numerator: int, denominator: int) -> "TypedValue":
        value: Tuple[int, int] = (int(numerator), int(denominator))
        return cls(ValueKind.FRACTION, value)

    @classmethod
    def unsupported(cls) -> "TypedValue":
        return cls(ValueKind.UNSUPPORTED)
