"""
Protocol Module
===============

Command-pipe and status-pipe protocol.

This module provides:
    - parse_command / LineAssembler: inbound tokenization
    - encode_message / decode_message: outbound envelope
    - CommandPipeReader / StatusPipeWriter: non-blocking FIFO transport
"""

from variable_rtsp.protocol.codec import (
    LineAssembler,
    decode_message,
    element_properties_message,
    encode_message,
    format_typed_value,
    parse_command,
)
from variable_rtsp.protocol.pipes import (
    CommandPipeReader,
    PipeMetrics,
    StatusPipeWriter,
    ensure_fifo,
)


__all__ = [
    "LineAssembler",
    "decode_message",
    "element_properties_message",
    "encode_message",
    "format_typed_value",
    "parse_command",
    "CommandPipeReader",
    "PipeMetrics",
    "StatusPipeWriter",
    "ensure_fifo",
]
