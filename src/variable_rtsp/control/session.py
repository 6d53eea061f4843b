"""
Session Registry
================

Lifecycle state machine of the single shared stream.

The registry implements SessionEvents; the pipeline engine calls it when
viewers attach or detach and whenever it (re)builds its media.

State Transitions:
    connect      0 -> 1   install configure hook (once), emit status
    connect      n -> n+1 retune encoder, emit status
    configure             acquire handles, apply initial properties,
                          mark connected, arm periodic status, emit status
    disconnect   n -> n-1 retune encoder, emit status
    disconnect   1 -> 0   stop pipeline, release handles, emit status
    disconnect   0        warning only

Design Rules:
    - Handles are acquired all-or-nothing
    - Errors from the engine are logged here, never raised into the engine
    - Every transition ends with exactly one status message
"""

import logging
from typing import List, Optional

from variable_rtsp.control.rate import RateController
from variable_rtsp.control.reporter import StatusReporter
from variable_rtsp.engine.interface import ElementHandle, PipelineEngine, PipelineHandle
from variable_rtsp.engine.proxy import PropertyProxy
from variable_rtsp.errors import PropertyError
from variable_rtsp.models.rate import RateMode
from variable_rtsp.models.session import PipelineHandles, Session


logger = logging.getLogger(__name__)


class ElementNames:
    """Element and property names the registry looks up on configure."""

    __slots__ = (
        "source",
        "encoder",
        "payloader",
        "bitrate_property",
        "quant_property",
        "idr_property",
    )

    def __init__(
        self,
        source: str = "source0",
        encoder: str = "enc0",
        payloader: str = "pay0",
        bitrate_property: str = "bitrate",
        quant_property: str = "quantizer",
        idr_property: str = "key-int-max",
    ) -> None:
        self.source = source
        self.encoder = encoder
        self.payloader = payloader
        self.bitrate_property = bitrate_property
        self.quant_property = quant_property
        self.idr_property = idr_property


class SessionRegistry:
    """
    Session state machine driven by engine events.

    Attributes:
        session: The shared-stream session
        rate: Rate controller for encoder retuning
        reporter: Output funnel for status messages
        names: Element and property names
        video_in: Device path written to the source element
        config_interval: Written to the payloader on configure
        idr_interval: Written to the encoder on configure (variable mode)

    Example:
        registry = SessionRegistry(session, engine, rate, reporter, proxy)
        engine.bind(registry)
    """

    def __init__(
        self,
        session: Session,
        engine: PipelineEngine,
        rate: RateController,
        reporter: StatusReporter,
        proxy: PropertyProxy,
        names: Optional[ElementNames] = None,
        video_in: str = "/dev/video0",
        config_interval: int = 2,
        idr_interval: int = 0,
    ) -> None:
        self.session = session
        self.rate = rate
        self.reporter = reporter
        self.names = names or ElementNames()
        self.video_in = video_in
        self.config_interval = config_interval
        self.idr_interval = idr_interval

        self._engine = engine
        self._proxy = proxy

    # -------------------------------------------------------------------------
    # SessionEvents
    # -------------------------------------------------------------------------

    def on_client_connected(self) -> None:
        session = self.session
        session.viewer_count += 1
        logger.info(f"Client connected, {session.viewer_count} client(s) attached")

        if session.viewer_count == 1:
            if not session.configure_latch:
                self._engine.install_configure_hook(self.on_configure)
                session.configure_latch = True
        else:
            self._retune()

        self.reporter.emit_status("on_client_connected")

    def on_client_disconnected(self) -> None:
        session = self.session
        if session.viewer_count == 0:
            logger.warning("Client disconnect with no clients attached, ignoring")
            return

        session.viewer_count -= 1
        logger.info(f"Client disconnected, {session.viewer_count} client(s) attached")

        if session.viewer_count == 0:
            self._teardown()
        else:
            self._retune()

        self.reporter.emit_status("on_client_disconnected")

    def on_configure(self, pipeline: PipelineHandle) -> None:
        """Acquire handles on a freshly built media and apply startup values."""
        handles = self._acquire(pipeline)
        if handles is None:
            self.session.release()
            self.reporter.emit_status("on_configure")
            return

        self._apply_initial(handles)

        self.session.handles = handles
        self.session.connected = True
        logger.info("Pipeline configured, streaming")

        if self.session.viewer_count >= 1:
            self.reporter.arm_periodic()

        self.reporter.emit_status("on_configure")

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _acquire(self, pipeline: PipelineHandle) -> Optional[PipelineHandles]:
        wanted = (self.names.source, self.names.encoder, self.names.payloader)
        found: List[Optional[ElementHandle]] = [pipeline.get_element(n) for n in wanted]

        missing = [name for name, element in zip(wanted, found) if element is None]
        if missing:
            logger.error(f"Pipeline is missing element(s): {', '.join(missing)}")
            return None

        source, encoder, payloader = found
        return PipelineHandles(
            pipeline=pipeline,
            source=source,
            encoder=encoder,
            payloader=payloader,
        )

    def _apply_initial(self, handles: PipelineHandles) -> None:
        writes = [(handles.source, "device", self.video_in)]

        config = self.rate.config
        state = self.rate.state
        if config.variable_mode_enabled:
            if config.mode is RateMode.BITRATE:
                writes.append((handles.encoder, self.names.bitrate_property, state.current_bitrate))
            elif config.mode is RateMode.QUANT:
                writes.append((handles.encoder, self.names.quant_property, state.current_quant))
            writes.append((handles.encoder, self.names.idr_property, self.idr_interval))

        writes.append((handles.payloader, "config-interval", self.config_interval))

        for element, prop, value in writes:
            try:
                self._proxy.set_on(element, prop, value, label=element.name)
            except PropertyError as e:
                logger.warning(f"Initial property not applied: {e}")

    def _retune(self) -> None:
        try:
            self.rate.apply(self.session.viewer_count, self.session.encoder)
        except PropertyError as e:
            logger.error(f"Rate change failed: {e}")

    def _teardown(self) -> None:
        pipeline = self.session.pipeline
        if pipeline is not None:
            pipeline.stop()
        self.session.release()
        self.rate.reset()
        logger.info("Last client left, pipeline released")
