"""
Control Module
==============

The control plane proper.

This module provides:
    - RateController: viewer count -> encoder quality
    - SessionRegistry: shared-stream lifecycle driven by engine events
    - CommandDispatcher: setparam / status / printbin
    - StatusReporter: status snapshots and the periodic timer

DESIGN RULES:
    - Does NOT import a concrete engine
    - All output goes through StatusReporter.emit
"""

from variable_rtsp.control.rate import (
    RateController,
    bitrate_for_viewers,
    next_rate_state,
    quant_for_viewers,
)
from variable_rtsp.control.reporter import StatusReporter
from variable_rtsp.control.session import ElementNames, SessionRegistry
from variable_rtsp.control.dispatcher import CommandDispatcher


__all__ = [
    "RateController",
    "bitrate_for_viewers",
    "next_rate_state",
    "quant_for_viewers",
    "StatusReporter",
    "ElementNames",
    "SessionRegistry",
    "CommandDispatcher",
]
