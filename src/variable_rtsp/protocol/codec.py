"""
Command Protocol Codec
======================

Text framing for the command pipe (inbound) and status pipe (outbound).

Inbound:
    One command per newline-terminated ASCII line, tokenized on ':'
    into a verb and four positional fields:

        setparam:enc0::bitrate:5000
        status::::
        printbin::::

    Lines longer than the configured maximum are discarded whole.
    Anything after the fifth field's delimiter is dropped.

Outbound:
    msg{
    type:<tag>,
    data:{
    key:value,
    key:value
    }}

Design Rules:
    - Pure functions, no I/O; pipes.py owns the file descriptors
    - Malformed input is logged and dropped, never raised
    - encode_message() and decode_message() are exact inverses
"""

import logging
from typing import List, Optional, Tuple

from variable_rtsp.models.command import COMMAND_ARITY, Command, CommandVerb
from variable_rtsp.models.properties import TypedValue, ValueKind
from variable_rtsp.models.status import MessageType, StatusMessage


logger = logging.getLogger(__name__)


DELIMITER = ":"
DEFAULT_MAX_LINE_LENGTH = 256

_HEADER = "msg{\ntype:"
_DATA_OPEN = ",\ndata:{\n"
_TRAILER = "\n}}\n"
_BODY_SEPARATOR = ",\n"


# =============================================================================
# Inbound
# =============================================================================

def parse_command(line: str) -> Optional[Command]:
    """
    Tokenize one command line.

    Args:
        line: A single line, with or without its trailing newline

    Returns:
        Command, or None for a blank line
    """
    line = line.rstrip("\r\n")
    if not line.strip():
        return None

    fields = line.split(DELIMITER, COMMAND_ARITY + 1)
    if len(fields) > COMMAND_ARITY + 1:
        logger.warning(
            f"Dropping trailing characters after argument {COMMAND_ARITY}: "
            f"{fields[-1]!r}"
        )
        fields = fields[:COMMAND_ARITY + 1]

    arg_count = len(fields) - 1
    fields += [""] * (COMMAND_ARITY + 1 - len(fields))
    raw_verb, element, pad, prop, value = fields

    return Command(
        verb=CommandVerb.parse(raw_verb),
        raw_verb=raw_verb,
        element=element,
        pad=pad,
        prop=prop,
        value=value,
        arg_count=arg_count,
    )


class LineAssembler:
    """
    Reassembles newline-terminated lines from arbitrary byte chunks.

    A partial line is held between feeds. Once the pending data exceeds
    max_line_length without a newline, it is discarded along with the
    rest of that line, so memory stays bounded.

    Example:
        assembler = LineAssembler()
        assembler.feed(b"sta")          # -> []
        assembler.feed(b"tus::::\\n")   # -> ["status::::"]
    """

    def __init__(self, max_line_length: int = DEFAULT_MAX_LINE_LENGTH) -> None:
        self.max_line_length = max_line_length
        self._pending = bytearray()
        self._discarding = False
        self.discarded: int = 0

    def feed(self, data: bytes) -> List[str]:
        lines: List[str] = []
        start = 0
        while True:
            newline = data.find(b"\n", start)
            if newline < 0:
                self._hold(data[start:])
                break
            chunk = data[start:newline]
            start = newline + 1
            if self._discarding:
                self._discarding = False
                continue
            if len(self._pending) + len(chunk) > self.max_line_length:
                self._reject()
                self._discarding = False
                continue
            self._pending += chunk
            lines.append(self._pending.decode("ascii", errors="replace").rstrip("\r"))
            self._pending.clear()
        return lines

    def _hold(self, tail: bytes) -> None:
        if self._discarding:
            return
        self._pending += tail
        if len(self._pending) > self.max_line_length:
            self._reject()

    def _reject(self) -> None:
        logger.warning(
            f"Command line exceeds {self.max_line_length} bytes, discarding"
        )
        self._pending.clear()
        self._discarding = True
        self.discarded += 1

    def flush(self) -> Optional[str]:
        """Return the unterminated tail as a line, if any, and start fresh."""
        line = None
        if self._pending and not self._discarding:
            line = self._pending.decode("ascii", errors="replace").rstrip("\r")
        self.reset()
        return line

    def reset(self) -> None:
        self._pending.clear()
        self._discarding = False


# =============================================================================
# Outbound
# =============================================================================

def encode_message(message: StatusMessage) -> str:
    """Frame a StatusMessage in the reply envelope."""
    body = _BODY_SEPARATOR.join(f"{key}:{value}" for key, value in message.body)
    return f"{_HEADER}{message.type.value}{_DATA_OPEN}{body}{_TRAILER}"


def decode_message(text: str) -> StatusMessage:
    """
    Parse one reply envelope back into a StatusMessage.

    Raises:
        ValueError: if the text is not a well-formed envelope
    """
    if not text.startswith(_HEADER) or not text.endswith(_TRAILER):
        raise ValueError("Not a message envelope")

    inner = text[len(_HEADER):-len(_TRAILER)]
    tag, sep, body = inner.partition(_DATA_OPEN)
    if not sep:
        raise ValueError("Message envelope has no data block")

    try:
        message_type = MessageType(tag)
    except ValueError as e:
        raise ValueError(f"Unknown message type: {tag!r}") from e

    message = StatusMessage(message_type)
    if body:
        for line in body.split(_BODY_SEPARATOR):
            key, sep, value = line.partition(":")
            if not sep:
                raise ValueError(f"Malformed body line: {line!r}")
            message.body.append((key, value))
    return message


def format_typed_value(value: TypedValue) -> Optional[str]:
    """Render a property value; None for kinds that are not reported."""
    kind = value.kind
    if kind is ValueKind.STRING:
        return "null" if value.value is None else f'"{value.value}"'
    if kind is ValueKind.BOOL:
        return "true" if value.value else "false"
    if kind in (ValueKind.INT, ValueKind.UINT):
        return str(value.value)
    if kind is ValueKind.FLOAT:
        return f"{value.value:.7g}"
    if kind is ValueKind.ENUM:
        return f"[{value.value}]{value.nick}"
    if kind is ValueKind.FRACTION:
        numerator, denominator = value.value
        return f"{numerator}/{denominator}"
    return None


def element_properties_message(
    class_name: str,
    name: str,
    properties: List[Tuple[str, TypedValue]],
) -> StatusMessage:
    """Build one elementprops message; unsupported kinds are skipped."""
    message = StatusMessage(MessageType.ELEMENTPROPS)
    message.add("classname", f'"{class_name}"')
    message.add("name", f'"{name}"')
    for prop_name, value in properties:
        if prop_name == "name":
            continue
        text = format_typed_value(value)
        if text is None:
            continue
        message.add(prop_name, text)
    return message
