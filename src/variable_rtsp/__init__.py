"""
variable-rtsp-server
====================

Control plane for a shared, adaptive RTSP video stream.

One live encoded stream is shared by every viewer. As viewers join, the
encoder is stepped down (lower bitrate or higher quant level) so the
total outgoing bandwidth stays bounded; as they leave, quality is
stepped back up. A line-based protocol over named pipes allows runtime
inspection and property overrides.

Components:
    - models: Rate, session, command, status and property value types
    - engine: Pipeline engine interface, mock engine, GStreamer engine
    - protocol: Command/status codec and FIFO transport
    - control: Rate controller, session registry, dispatcher, reporter
    - observability: Optional HTTP status surface

Example:
    from variable_rtsp.config import load_config
    from variable_rtsp.context import build_context
    from variable_rtsp.engine import MockPipelineEngine

    context = build_context(load_config(), MockPipelineEngine())
"""

__version__ = "1.4.0"
__author__ = "variable-rtsp-server developers"

__all__ = [
    "__version__",
]
