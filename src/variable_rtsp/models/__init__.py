"""
Data Models
===========

Typed records shared by the control plane.

Models:
    Rate:
        - RateConfig: Immutable adaptive-rate bounds (pydantic)
        - RateState: Currently applied quant level and bitrate
        - RateMode: BITRATE, QUANT or NONE

    Session:
        - Session: Viewer count, connected flag, element handles
        - PipelineHandles: The four handles held while streaming

    Protocol:
        - Command, CommandVerb: One parsed command-pipe line
        - StatusMessage, MessageType: One outbound reply

    Introspection:
        - TypedValue, ValueKind: Tagged property values
"""

from variable_rtsp.models.rate import RateConfig, RateMode, RateState
from variable_rtsp.models.properties import TypedValue, ValueKind
from variable_rtsp.models.command import Command, CommandVerb
from variable_rtsp.models.status import MessageType, StatusMessage
from variable_rtsp.models.session import PipelineHandles, Session

__all__ = [
    # Rate
    "RateConfig",
    "RateMode",
    "RateState",
    # Session
    "Session",
    "PipelineHandles",
    # Protocol
    "Command",
    "CommandVerb",
    "MessageType",
    "StatusMessage",
    # Introspection
    "TypedValue",
    "ValueKind",
]
