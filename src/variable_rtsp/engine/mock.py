"""
Mock Pipeline Engine
====================

Deterministic in-process pipeline engine for testing and dry runs.

This module provides a pure-Python stand-in for the GStreamer RTSP engine.
It mimics the parts of the real engine's behavior the control plane relies on:
    - A shared media is built when the first client arrives
    - The configure hook fires each time a media is built
    - The media is destroyed when the last client leaves
    - Unknown properties are rejected with TypeError, like GObject

Design Rules:
    - No threads, no timers: events fire synchronously when simulated
    - Every property write is recorded for assertions
    - Element properties are plain Python values, typed on enumeration
"""

import logging
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Set, Tuple

from variable_rtsp.engine.interface import ConfigureHook, SessionEvents
from variable_rtsp.models.properties import TypedValue


logger = logging.getLogger(__name__)


def to_typed_value(value: Any) -> TypedValue:
    """Tag a plain Python value with its property kind."""
    if isinstance(value, TypedValue):
        return value
    if value is None or isinstance(value, str):
        return TypedValue.string(value)
    if isinstance(value, bool):
        return TypedValue.boolean(value)
    if isinstance(value, int):
        return TypedValue.integer(value, unsigned=value >= 0)
    if isinstance(value, float):
        return TypedValue.floating(value)
    if (
        isinstance(value, tuple)
        and len(value) == 2
        and all(isinstance(v, int) for v in value)
    ):
        return TypedValue.fraction(*value)
    return TypedValue.unsupported()


class MockPad:
    """A static pad with its own properties."""

    def __init__(self, name: str, properties: Optional[Dict[str, Any]] = None) -> None:
        self.name = name
        self._properties: Dict[str, Any] = dict(properties or {})
        self.set_calls: List[Tuple[str, Any]] = []

    def get_property(self, name: str) -> Any:
        if name not in self._properties:
            raise TypeError(f"object of type MockPad does not have property '{name}'")
        return self._properties[name]

    def set_property(self, name: str, value: Any) -> None:
        if name not in self._properties:
            raise TypeError(f"object of type MockPad does not have property '{name}'")
        self.set_calls.append((name, value))
        self._properties[name] = value


class MockElement:
    """
    A named element with plain-Python properties.

    Attributes:
        name: Element name inside the pipeline
        class_name: Reported type name (e.g. "GstX264Enc")
        set_calls: Every (property, value) written, in order
        read_only: Properties that reject writes
    """

    def __init__(
        self,
        name: str,
        class_name: str,
        properties: Optional[Dict[str, Any]] = None,
        pads: Optional[Iterable[MockPad]] = None,
        read_only: Optional[Set[str]] = None,
    ) -> None:
        self._name = name
        self._class_name = class_name
        self._properties: Dict[str, Any] = {"name": name}
        self._properties.update(properties or {})
        self._pads: Dict[str, MockPad] = {pad.name: pad for pad in pads or ()}
        self.read_only: Set[str] = set(read_only or ())
        self.set_calls: List[Tuple[str, Any]] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def class_name(self) -> str:
        return self._class_name

    def get_property(self, name: str) -> Any:
        if name not in self._properties:
            raise TypeError(
                f"object of type {self._class_name} does not have property '{name}'"
            )
        value = self._properties[name]
        return value.value if isinstance(value, TypedValue) else value

    def set_property(self, name: str, value: Any) -> None:
        if name not in self._properties:
            raise TypeError(
                f"object of type {self._class_name} does not have property '{name}'"
            )
        if name in self.read_only:
            raise TypeError(f"property '{name}' of {self._class_name} is not writable")
        self.set_calls.append((name, value))
        self._properties[name] = value

    def get_pad(self, name: str) -> Optional[MockPad]:
        return self._pads.get(name)

    def list_properties(self) -> List[Tuple[str, TypedValue]]:
        return [(name, to_typed_value(value)) for name, value in self._properties.items()]

    def __repr__(self) -> str:
        return f"MockElement({self._name!r}, {self._class_name})"


class MockPipeline:
    """A bin of MockElements that records when it is stopped."""

    def __init__(self, elements: Iterable[MockElement]) -> None:
        self._elements: Dict[str, MockElement] = {e.name: e for e in elements}
        self.stopped: bool = False

    def get_element(self, name: str) -> Optional[MockElement]:
        return self._elements.get(name)

    def iterate_elements(self) -> Iterator[MockElement]:
        return iter(list(self._elements.values()))

    def stop(self) -> None:
        self.stopped = True


def default_mock_pipeline() -> MockPipeline:
    """Build the mock equivalent of `v4l2src ! videoconvert ! x264enc ! rtph264pay`."""
    return MockPipeline([
        MockElement(
            "source0",
            "GstV4l2Src",
            {
                "device": "/dev/video0",
                "do-timestamp": False,
                "io-mode": TypedValue.enum(0, "auto"),
            },
        ),
        MockElement("videoconvert0", "GstVideoConvert", {"qos": True}),
        MockElement(
            "enc0",
            "GstX264Enc",
            {
                "bitrate": 2048,
                "quantizer": 21,
                "key-int-max": 0,
                "speed-preset": TypedValue.enum(6, "medium"),
                "psy-tune": TypedValue.enum(0, "none"),
                "ip-factor": 1.4,
            },
        ),
        MockElement(
            "pay0",
            "GstRtpH264Pay",
            {
                "config-interval": 0,
                "pt": 96,
                "stats": TypedValue.unsupported(),
            },
            pads=[MockPad("src", {"offset": 0.0})],
            read_only={"stats"},
        ),
    ])


class MockPipelineEngine:
    """
    Mock engine that simulates a shared RTSP media.

    Clients are attached and detached explicitly with connect_client()
    and disconnect_client(). The first attach builds a fresh pipeline and
    fires the configure hook; the last detach stops and discards it.

    Example:
        engine = MockPipelineEngine()
        engine.bind(registry)
        engine.connect_client()     # registry sees connect + configure
        engine.disconnect_client()  # registry sees disconnect
    """

    def __init__(
        self,
        pipeline_factory: Callable[[], MockPipeline] = default_mock_pipeline,
    ) -> None:
        self._pipeline_factory = pipeline_factory
        self._events: Optional[SessionEvents] = None
        self._hook: Optional[ConfigureHook] = None
        self.pipeline: Optional[MockPipeline] = None
        self.clients: int = 0
        self.hook_installs: int = 0
        self.running: bool = False

        logger.info("MockPipelineEngine initialized")

    def bind(self, events: SessionEvents) -> None:
        self._events = events

    def install_configure_hook(self, hook: ConfigureHook) -> None:
        self._hook = hook
        self.hook_installs += 1
        logger.debug("Configure hook installed")

    async def start(self) -> None:
        self.running = True
        logger.info("MockPipelineEngine started (no real clients will connect)")

    async def stop(self) -> None:
        self.running = False
        logger.info("MockPipelineEngine stopped")

    def connect_client(self) -> None:
        """Simulate a viewer attaching to the shared stream."""
        if self._events is None:
            raise RuntimeError("MockPipelineEngine is not bound to a session")

        self.clients += 1
        self._events.on_client_connected()

        # Shared media is prepared after the client handshake
        if self.pipeline is None:
            self.pipeline = self._pipeline_factory()
            if self._hook is not None:
                self._hook(self.pipeline)

    def disconnect_client(self) -> None:
        """Simulate a viewer detaching."""
        if self._events is None:
            raise RuntimeError("MockPipelineEngine is not bound to a session")

        self.clients = max(0, self.clients - 1)
        self._events.on_client_disconnected()

        if self.clients == 0:
            self.pipeline = None
