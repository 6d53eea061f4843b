"""
Engine Module
=============

Pipeline engine abstraction and implementations.

This module provides:
    - PipelineEngine and handle protocols: what the control plane needs
    - PropertyProxy: get/set/enumerate element properties
    - MockPipelineEngine: deterministic in-process engine

The GStreamer engine lives in variable_rtsp.engine.gstreamer and is
imported on demand, so this package loads without PyGObject.
"""

from variable_rtsp.engine.interface import (
    ElementHandle,
    PipelineEngine,
    PipelineHandle,
    PropertyInspectable,
    PropertyTarget,
    SessionEvents,
)
from variable_rtsp.engine.proxy import PropertyProxy
from variable_rtsp.engine.mock import (
    MockElement,
    MockPad,
    MockPipeline,
    MockPipelineEngine,
    default_mock_pipeline,
)


__all__ = [
    "ElementHandle",
    "PipelineEngine",
    "PipelineHandle",
    "PropertyInspectable",
    "PropertyTarget",
    "SessionEvents",
    "PropertyProxy",
    "MockElement",
    "MockPad",
    "MockPipeline",
    "MockPipelineEngine",
    "default_mock_pipeline",
]
