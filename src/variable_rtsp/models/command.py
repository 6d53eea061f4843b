"""
Command Model
=============

Parsed form of one line read from the command pipe.

Input Contract (command pipe):
    setparam:<element>:<pad-or-empty>:<property>:<value>
    status::::
    printbin::::

Every line maps to exactly one verb plus four positional fields.
Missing fields are empty strings; arg_count records how many
delimiters were actually present so handlers that need all four
arguments can reject short commands before dispatch.
"""

from dataclasses import dataclass
from enum import Enum


COMMAND_ARITY = 4


class CommandVerb(str, Enum):
    """
    Verbs understood by the command dispatcher.

    Attributes:
        SETPARAM: Set a numeric property on an element or pad
        STATUS: Emit a full status snapshot
        PRINTBIN: Dump every property of every pipeline element
        UNKNOWN: Anything else (logged and ignored)
    """

    SETPARAM = "setparam"
    STATUS = "status"
    PRINTBIN = "printbin"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, token: str) -> "CommandVerb":
        for verb in cls:
            if verb is not cls.UNKNOWN and verb.value == token:
                return verb
        return cls.UNKNOWN


@dataclass(frozen=True, slots=True)
class Command:
    """
    A single tokenized command.

    Attributes:
        verb: Parsed verb
        raw_verb: Verb token as received (for diagnostics)
        element: Target element name
        pad: Target pad name, empty for the element itself
        prop: Property name
        value: Property value as text
        arg_count: Number of positional fields supplied (0-4)
    """

    verb: CommandVerb
    raw_verb: str = ""
    element: str = ""
    pad: str = ""
    prop: str = ""
    value: str = ""
    arg_count: int = 0

    @property
    def is_complete(self) -> bool:
        """True when all positional fields were supplied."""
        return self.arg_count >= COMMAND_ARITY

    def __repr__(self) -> str:
        return (
            f"Command({self.verb.value}, element={self.element!r}, "
            f"pad={self.pad!r}, prop={self.prop!r}, value={self.value!r}, "
            f"args={self.arg_count})"
        )
