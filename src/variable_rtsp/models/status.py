"""
Status Message Model
====================

Outbound records written to the status pipe (or stdout).

Output Contract:
    msg{
    type:<status|setparam|elementprops>,
    data:{
    <key>:<value>,
    ...
    }}

A StatusMessage is a type tag plus an ordered list of key/value lines.
Values are already formatted text; the codec only frames them.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Tuple


class MessageType(str, Enum):
    """
    Type tags for outbound messages.

    Attributes:
        STATUS: Session and rate snapshot
        SETPARAM: Outcome of a setparam command
        ELEMENTPROPS: Property dump of one pipeline element
    """

    STATUS = "status"
    SETPARAM = "setparam"
    ELEMENTPROPS = "elementprops"


@dataclass(slots=True)
class StatusMessage:
    """
    One outbound message.

    Attributes:
        type: Message type tag
        body: Ordered (key, value) lines
    """

    type: MessageType
    body: List[Tuple[str, str]] = field(default_factory=list)

    def add(self, key: str, value: object) -> "StatusMessage":
        """Append one body line; booleans are written as true/false."""
        if isinstance(value, bool):
            text = "true" if value else "false"
        else:
            text = str(value)
        self.body.append((key, text))
        return self

    def keys(self) -> List[str]:
        return [key for key, _ in self.body]

    def as_dict(self) -> Dict[str, str]:
        return dict(self.body)
