"""
GStreamer RTSP Engine
=====================

Production pipeline engine built on GStreamer and gst-rtsp-server (PyGObject).

This engine:
    - Serves one shared media factory at the configured mount point
    - Forwards client-connected / closed / media-configure signals to the
      bound SessionEvents sink
    - Wraps Gst elements, pads and bins in the handle protocols the
      control plane consumes
    - Translates GParamSpec reflection into TypedValues for printbin

Event Loop Integration:
    GStreamer delivers its signals on the GLib default main context.
    Instead of running a GLib.MainLoop in another thread, the default
    context is iterated (non-blocking) from an asyncio task, so every
    callback runs on the same thread as the command pipe and the
    status reporter.

Requires the system GStreamer typelibs (Gst-1.0, GstRtspServer-1.0).
"""

import asyncio
import logging
from typing import Any, Iterator, List, Optional, Tuple

import gi

gi.require_version("Gst", "1.0")
gi.require_version("GstRtspServer", "1.0")
from gi.repository import GLib, GObject, Gst, GstRtspServer  # noqa: E402

from variable_rtsp.config import Settings  # noqa: E402
from variable_rtsp.engine.interface import ConfigureHook, SessionEvents  # noqa: E402
from variable_rtsp.errors import (  # noqa: E402
    ConfigurationError,
    ExitCode,
    VariableRtspError,
)
from variable_rtsp.models.properties import TypedValue  # noqa: E402


logger = logging.getLogger(__name__)


_SIGNED_TYPES = (GObject.TYPE_INT, GObject.TYPE_LONG, GObject.TYPE_INT64)
_UNSIGNED_TYPES = (GObject.TYPE_UINT, GObject.TYPE_ULONG, GObject.TYPE_UINT64)
_FLOAT_TYPES = (GObject.TYPE_FLOAT, GObject.TYPE_DOUBLE)
_CHAR_TYPES = (GObject.TYPE_CHAR, GObject.TYPE_UCHAR)


def _coerce(obj: GObject.Object, name: str, value: Any) -> Any:
    """Convert a numeric value to the Python type a property expects."""
    pspec = obj.find_property(name)
    if pspec is None:
        raise TypeError(f"{type(obj).__name__} has no property '{name}'")

    fundamental = pspec.value_type.fundamental
    if fundamental in _SIGNED_TYPES or fundamental in _UNSIGNED_TYPES:
        return int(value)
    if fundamental == GObject.TYPE_ENUM:
        return int(value)
    if fundamental == GObject.TYPE_BOOLEAN:
        return bool(value)
    if fundamental in _FLOAT_TYPES:
        return float(value)
    return value


def _typed_value(pspec: GObject.ParamSpec, value: Any) -> TypedValue:
    """Tag a property value read from a GObject with its kind."""
    value_type = pspec.value_type
    fundamental = value_type.fundamental

    if fundamental == GObject.TYPE_STRING:
        return TypedValue.string(value)
    if fundamental == GObject.TYPE_BOOLEAN:
        return TypedValue.boolean(value)
    if fundamental in _SIGNED_TYPES:
        return TypedValue.integer(value)
    if fundamental in _UNSIGNED_TYPES:
        return TypedValue.integer(value, unsigned=True)
    if fundamental in _FLOAT_TYPES:
        return TypedValue.floating(value)
    if fundamental in _CHAR_TYPES:
        return TypedValue.unsupported()
    if fundamental == GObject.TYPE_ENUM:
        return TypedValue.enum(int(value), getattr(value, "value_nick", ""))
    if isinstance(value, Gst.Fraction):
        return TypedValue.fraction(value.num, value.denom)
    return TypedValue.unsupported()


class GstPadHandle:
    """Property access on a static pad."""

    def __init__(self, pad: Gst.Pad) -> None:
        self._pad = pad

    def get_property(self, name: str) -> Any:
        return self._pad.get_property(name)

    def set_property(self, name: str, value: Any) -> None:
        self._pad.set_property(name, _coerce(self._pad, name, value))

    def __repr__(self) -> str:
        return f"GstPadHandle({self._pad.get_name()!r})"


class GstElementHandle:
    """ElementHandle backed by a Gst.Element."""

    def __init__(self, element: Gst.Element) -> None:
        self._element = element

    @property
    def name(self) -> str:
        return self._element.get_name()

    @property
    def class_name(self) -> str:
        return self._element.__gtype__.name

    def get_property(self, name: str) -> Any:
        return self._element.get_property(name)

    def set_property(self, name: str, value: Any) -> None:
        self._element.set_property(name, _coerce(self._element, name, value))

    def get_pad(self, name: str) -> Optional[GstPadHandle]:
        pad = self._element.get_static_pad(name)
        return GstPadHandle(pad) if pad is not None else None

    def list_properties(self) -> List[Tuple[str, TypedValue]]:
        result: List[Tuple[str, TypedValue]] = []
        for pspec in self._element.list_properties():
            if not pspec.flags & GObject.ParamFlags.READABLE:
                continue
            try:
                value = self._element.get_property(pspec.name)
            except TypeError:
                # Types PyGObject cannot marshal
                result.append((pspec.name, TypedValue.unsupported()))
                continue
            result.append((pspec.name, _typed_value(pspec, value)))
        return result

    def __repr__(self) -> str:
        return f"GstElementHandle({self.name!r}, {self.class_name})"


class GstPipelineHandle:
    """PipelineHandle backed by the media's top-level Gst.Bin."""

    def __init__(self, bin_: Gst.Bin) -> None:
        self._bin = bin_

    def get_element(self, name: str) -> Optional[GstElementHandle]:
        element = self._bin.get_by_name(name)
        return GstElementHandle(element) if element is not None else None

    def iterate_elements(self) -> Iterator[GstElementHandle]:
        it = self._bin.iterate_elements()
        while True:
            result, item = it.next()
            if result == Gst.IteratorResult.OK:
                yield GstElementHandle(item)
            elif result == Gst.IteratorResult.RESYNC:
                it.resync()
            else:
                break

    def stop(self) -> None:
        self._bin.set_state(Gst.State.NULL)


class GstRtspEngine:
    """
    Shared-media RTSP server engine.

    Attributes:
        settings: Server and pipeline configuration
        pump_interval: Seconds between GLib context iterations
    """

    def __init__(self, settings: Settings, pump_interval: float = 0.01) -> None:
        self.settings = settings
        self.pump_interval = pump_interval

        self._events: Optional[SessionEvents] = None
        self._hook: Optional[ConfigureHook] = None
        self._server: Optional[GstRtspServer.RTSPServer] = None
        self._factory: Optional[GstRtspServer.RTSPMediaFactory] = None
        self._source_id: int = 0
        self._pump_task: Optional[asyncio.Task] = None
        self._running: bool = False

        Gst.init(None)

    def bind(self, events: SessionEvents) -> None:
        self._events = events

    def install_configure_hook(self, hook: ConfigureHook) -> None:
        self._hook = hook
        if self._factory is not None:
            self._factory.connect("media-configure", self._on_media_configure)
            logger.debug("Created 'media-configure' signal handler")

    async def start(self) -> None:
        """Create the server, mount the factory, and start pumping GLib."""
        server_cfg = self.settings.server
        pipeline_cfg = self.settings.pipeline

        self._server = GstRtspServer.RTSPServer()
        self._server.set_service(str(server_cfg.port))

        factory = GstRtspServer.RTSPMediaFactory()
        launch = self.settings.launch_description()
        logger.info(f"Pipeline set to: {launch}")
        factory.set_launch(launch)
        factory.set_shared(pipeline_cfg.shared)

        if pipeline_cfg.no_suspend:
            factory.set_suspend_mode(GstRtspServer.RTSPSuspendMode.NONE)

        if pipeline_cfg.client_port_min is not None:
            pool = GstRtspServer.RTSPAddressPool()
            pool.add_range(
                GstRtspServer.RTSP_ADDRESS_POOL_ANY_IPV4,
                GstRtspServer.RTSP_ADDRESS_POOL_ANY_IPV4,
                pipeline_cfg.client_port_min,
                pipeline_cfg.client_port_max,
                0,
            )
            factory.set_address_pool(pool)
            logger.info(
                f"Client port range: {pipeline_cfg.client_port_min}-"
                f"{pipeline_cfg.client_port_max}"
            )

        self._factory = factory
        if self._hook is not None:
            factory.connect("media-configure", self._on_media_configure)

        mounts = self._server.get_mount_points()
        mounts.add_factory(server_cfg.mount_point, factory)

        self._server.connect("client-connected", self._on_client_connected)

        self._source_id = self._server.attach(None)
        if not self._source_id:
            raise ConfigurationError(
                "Unable to attach RTSP server", exit_code=ExitCode.ENGINE
            )

        self._running = True
        self._pump_task = asyncio.create_task(self._pump(), name="glib_pump")

        logger.info(
            f"Stream ready at rtsp://{server_cfg.host}:{server_cfg.port}"
            f"{server_cfg.mount_point}"
        )

    async def stop(self) -> None:
        self._running = False
        if self._pump_task:
            self._pump_task.cancel()
            try:
                await self._pump_task
            except asyncio.CancelledError:
                pass
        if self._source_id:
            GLib.source_remove(self._source_id)
            self._source_id = 0
        logger.info("GstRtspEngine stopped")

    async def _pump(self) -> None:
        """Dispatch pending GLib events without blocking the asyncio loop."""
        context = GLib.MainContext.default()
        while self._running:
            while context.pending():
                context.iteration(False)
            await asyncio.sleep(self.pump_interval)

    # -------------------------------------------------------------------------
    # Signal handlers
    # -------------------------------------------------------------------------

    def _on_client_connected(
        self,
        server: GstRtspServer.RTSPServer,
        client: GstRtspServer.RTSPClient,
    ) -> None:
        logger.debug("Creating 'closed' signal handler")
        client.connect("closed", self._on_client_closed)
        if self._events is None:
            return
        try:
            self._events.on_client_connected()
        except VariableRtspError as e:
            logger.error(f"Client connect handling failed: {e}")

    def _on_client_closed(self, client: GstRtspServer.RTSPClient) -> None:
        if self._events is None:
            return
        try:
            self._events.on_client_disconnected()
        except VariableRtspError as e:
            logger.error(f"Client close handling failed: {e}")

    def _on_media_configure(
        self,
        factory: GstRtspServer.RTSPMediaFactory,
        media: GstRtspServer.RTSPMedia,
    ) -> None:
        if self._hook is None:
            return
        try:
            self._hook(GstPipelineHandle(media.get_element()))
        except VariableRtspError as e:
            logger.error(f"Media configure handling failed: {e}")
