"""
Server Context
==============

Explicit wiring of every control-plane component.

One ServerContext is built at startup and handed to the entry point,
the HTTP surface and the tests. Nothing in the package reaches for
module-level state; everything a handler needs hangs off the context.

Example:
    settings = load_config()
    context = build_context(settings, MockPipelineEngine())
    context.engine.connect_client()
    print(context.reporter.to_dict())
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Optional, TextIO

from variable_rtsp.config import Settings
from variable_rtsp.control.dispatcher import CommandDispatcher
from variable_rtsp.control.rate import RateController
from variable_rtsp.control.reporter import StatusReporter
from variable_rtsp.control.session import ElementNames, SessionRegistry
from variable_rtsp.engine.interface import PipelineEngine
from variable_rtsp.engine.proxy import PropertyProxy
from variable_rtsp.models.session import Session
from variable_rtsp.protocol.pipes import CommandPipeReader, PipeMetrics, StatusPipeWriter


logger = logging.getLogger(__name__)


@dataclass
class ServerContext:
    """
    Every long-lived component of a running server.

    Attributes:
        settings: Validated configuration
        engine: Pipeline engine delivering session events
        session: Shared-stream session state
        proxy: Property access on the live pipeline
        rate: Adaptive rate controller
        reporter: Output funnel and periodic status
        registry: Session state machine (bound to the engine)
        dispatcher: Command routing
        writer: Status pipe (or stdout) writer
        reader: Command pipe reader, None when no pipe is configured
        metrics: Pipe counters shared by reader and writer
        started_at: Wall-clock start time
    """

    settings: Settings
    engine: PipelineEngine
    session: Session
    proxy: PropertyProxy
    rate: RateController
    reporter: StatusReporter
    registry: SessionRegistry
    dispatcher: CommandDispatcher
    writer: StatusPipeWriter
    reader: Optional[CommandPipeReader] = None
    metrics: PipeMetrics = field(default_factory=PipeMetrics)
    started_at: float = field(default_factory=time.time)

    @property
    def uptime(self) -> float:
        return time.time() - self.started_at


def build_context(
    settings: Settings,
    engine: PipelineEngine,
    stream: Optional[TextIO] = None,
    loop: Optional[asyncio.AbstractEventLoop] = None,
) -> ServerContext:
    """
    Construct and wire all components.

    Args:
        settings: Validated configuration
        engine: Pipeline engine; bound to the session registry here
        stream: Mirror target for status output (defaults to stdout)
        loop: Event loop for the periodic timer (defaults to the running loop)
    """
    metrics = PipeMetrics()
    session = Session()
    proxy = PropertyProxy()

    rate = RateController(
        config=settings.rate_config(),
        proxy=proxy,
        bitrate_property=settings.encoder.bitrate_property,
        quant_property=settings.encoder.quant_property,
    )

    writer = StatusPipeWriter(settings.ipc.status_pipe, stream=stream, metrics=metrics)

    reporter = StatusReporter(
        session=session,
        rate=rate,
        sink=writer,
        msg_rate=settings.reporting.msg_rate,
        config_interval=settings.encoder.config_interval,
        idr_interval=settings.encoder.idr_interval,
        loop=loop,
    )

    names = ElementNames(
        source=settings.pipeline.source_name,
        encoder=settings.pipeline.encoder_name,
        payloader=settings.pipeline.payloader_name,
        bitrate_property=settings.encoder.bitrate_property,
        quant_property=settings.encoder.quant_property,
        idr_property=settings.encoder.idr_property,
    )

    registry = SessionRegistry(
        session=session,
        engine=engine,
        rate=rate,
        reporter=reporter,
        proxy=proxy,
        names=names,
        video_in=settings.pipeline.video_in,
        config_interval=settings.encoder.config_interval,
        idr_interval=settings.encoder.idr_interval,
    )
    engine.bind(registry)

    dispatcher = CommandDispatcher(session=session, proxy=proxy, reporter=reporter)

    reader: Optional[CommandPipeReader] = None
    if settings.ipc.command_pipe:
        reader = CommandPipeReader(
            settings.ipc.command_pipe,
            dispatcher.handle_line,
            poll_interval=settings.ipc.poll_interval_ms / 1000.0,
            max_line_length=settings.ipc.max_line_length,
            metrics=metrics,
        )

    logger.debug("Server context built")

    return ServerContext(
        settings=settings,
        engine=engine,
        session=session,
        proxy=proxy,
        rate=rate,
        reporter=reporter,
        registry=registry,
        dispatcher=dispatcher,
        writer=writer,
        reader=reader,
        metrics=metrics,
    )
